#!/usr/bin/env python3

"""
Pipeline orchestrator: runs every stage in order for one request.
"""

# Standard Library
import threading

# local repo modules
from repauselib.audio.rebuild import BufferRebuilder
from repauselib.audio.rebuild import planned_frame_count
from repauselib.audio.rescale import GapRescaler
from repauselib.audio.rescale import RescalePolicy
from repauselib.audio.resample import Resampler
from repauselib.audio.resample import choose_output_rate
from repauselib.audio.silence import SilenceDetector
from repauselib.audio.wav import WavEncoder
from repauselib.core import utils
from repauselib.core.config import PipelineConfig
from repauselib.core.control import RunControl
from repauselib.core.errors import AllocationFailedError
from repauselib.core.errors import CancelledError
from repauselib.core.errors import InvalidInputError
from repauselib.core.errors import RepauseError

#============================================

STATE_IDLE = 'idle'
STATE_DETECTING = 'detecting'
STATE_RESCALING = 'rescaling'
STATE_REBUILDING = 'rebuilding'
STATE_RESAMPLING = 'resampling'
STATE_ENCODING = 'encoding'
STATE_COMPLETE = 'complete'
STATE_FAILED = 'failed'
STATE_CANCELLED = 'cancelled'

TERMINAL_STATES = (STATE_COMPLETE, STATE_FAILED, STATE_CANCELLED)

STATE_MESSAGES = {
	STATE_DETECTING: "Detecting silence regions",
	STATE_RESCALING: "Calculating adjustments",
	STATE_REBUILDING: "Rebuilding audio",
	STATE_RESAMPLING: "Resampling audio",
	STATE_ENCODING: "Creating wav data",
	STATE_COMPLETE: "Complete",
	STATE_FAILED: "Failed",
	STATE_CANCELLED: "Cancelled",
}

#============================================

class PipelineResult():
	def __init__(self, intervals: list, rescaled: list, rebuilt, output,
		wav_bytes: bytes, input_duration: float, timings: dict):
		self.intervals = intervals
		self.rescaled = rescaled
		self.rebuilt = rebuilt
		self.output = output
		self.wav_bytes = wav_bytes
		self.input_duration = input_duration
		self.timings = timings

	#============================
	@property
	def output_duration(self) -> float:
		return self.output.duration

	#============================
	@property
	def gaps_adjusted(self) -> int:
		return len(self.rescaled)

	#============================
	def summary(self) -> dict:
		return {
			'input_duration': self.input_duration,
			'output_duration': self.output_duration,
			'gaps_adjusted': self.gaps_adjusted,
			'output_sample_rate': self.output.sample_rate,
			'channels': self.output.channel_count,
			'wav_bytes': len(self.wav_bytes),
		}

#============================================

class PipelineOrchestrator():
	"""
	Runs detect, rescale, rebuild, optional resample and encode in order.

	The observer receives dict events with 'state', 'percent' and
	'message' keys; percent never decreases within a run. Errors move the
	run to the failed state with the error attached and are re-raised.
	Nothing is retried.
	"""

	def __init__(self, config: PipelineConfig, observer=None,
		control: RunControl = None):
		config.validate()
		self.config = config
		self.observer = observer
		if control is None:
			control = RunControl(timeout_seconds=config.effective_timeout_seconds)
		self.control = control
		self.state = STATE_IDLE
		self.percent = 0
		self.error = None
		self.history = [STATE_IDLE]
		self.timings = {}
		self._stage_started = None

	#============================
	def run(self, buffer) -> PipelineResult:
		if self.state != STATE_IDLE:
			raise InvalidInputError("an orchestrator runs once; create a new one",
				stage=self.state, value=self.state)
		self.control.start()
		try:
			return self._run_stages(buffer)
		except CancelledError as exc:
			self._fail(exc, STATE_CANCELLED)
			raise
		except RepauseError as exc:
			self._fail(exc, STATE_FAILED)
			raise
		except MemoryError as exc:
			error = AllocationFailedError("out of memory", stage=self.state)
			self._fail(error, STATE_FAILED)
			raise error from exc
		except Exception as exc:
			self._fail(exc, STATE_FAILED)
			raise

	#============================
	def cancel(self) -> None:
		self.control.cancel()

	#============================
	def _run_stages(self, buffer) -> PipelineResult:
		config = self.config
		safety = config.effective_safety_max_samples
		input_duration = buffer.duration

		self._enter(STATE_DETECTING, 0)
		detector = SilenceDetector(stride_samples=config.effective_stride_samples)
		intervals = detector.detect(buffer, config.amplitude_threshold,
			config.min_silence_duration, progress=self._band(0, 30),
			control=self.control)

		self._enter(STATE_RESCALING, 30)
		policy = RescalePolicy(config.target_duration, config.min_gap_duration,
			config.preserve_relative_pacing, scale_factor=config.scale_factor)
		rescaled = GapRescaler().rescale(intervals, buffer, policy)
		self.control.checkpoint(STATE_RESCALING)

		planned_frames = planned_frame_count(buffer, rescaled)
		output_rate = self._output_rate(buffer.sample_rate,
			planned_frames / float(buffer.sample_rate))
		needs_resample = output_rate != buffer.sample_rate
		rebuild_end = 80 if needs_resample else 90

		self._enter(STATE_REBUILDING, 50)
		rebuilder = BufferRebuilder(safety_max_samples=safety)
		rebuilt = rebuilder.rebuild(buffer, rescaled,
			progress=self._band(50, rebuild_end), control=self.control)

		output = rebuilt
		if needs_resample:
			self._enter(STATE_RESAMPLING, 80)
			resampler = Resampler(safety_max_samples=safety)
			output = resampler.resample(rebuilt, output_rate,
				progress=self._band(80, 90), control=self.control)

		self._enter(STATE_ENCODING, 90)
		wav_bytes = WavEncoder().encode(output, progress=self._band(90, 100),
			control=self.control)

		self._enter(STATE_COMPLETE, 100)
		return PipelineResult(intervals, rescaled, rebuilt, output, wav_bytes,
			input_duration, dict(self.timings))

	#============================
	def _output_rate(self, sample_rate: int, duration: float) -> int:
		if self.config.output_sample_rate is not None:
			return int(self.config.output_sample_rate)
		return choose_output_rate(sample_rate, duration,
			self.config.compatibility, self.config.constrained)

	#============================
	def _close_stage(self) -> None:
		if self._stage_started is None:
			return
		self.timings[self.state] = self.control.elapsed() - self._stage_started
		self._stage_started = None

	#============================
	def _enter(self, state: str, percent: int) -> None:
		self._close_stage()
		self.state = state
		self.history.append(state)
		if state not in TERMINAL_STATES:
			self._stage_started = self.control.elapsed()
		self._report(percent, force=True)

	#============================
	def _fail(self, error, state: str) -> None:
		self._close_stage()
		self.error = error
		self.state = state
		self.history.append(state)
		self._report(self.percent, force=True)

	#============================
	def _band(self, low: int, high: int):
		span = high - low
		def progress(fraction: float) -> None:
			fraction = min(1.0, max(0.0, float(fraction)))
			self._report(low + int(span * fraction))
		return progress

	#============================
	def _report(self, percent: int, force: bool = False) -> None:
		percent = max(self.percent, int(percent))
		if percent == self.percent and not force:
			return
		self.percent = percent
		event = {
			'state': self.state,
			'percent': percent,
			'message': STATE_MESSAGES.get(self.state, self.state),
		}
		if self.error is not None:
			event['error'] = self.error
		if self.observer is not None:
			self.observer(event)
		else:
			utils.report_progress(event)

#============================================

class PipelineWorker():
	"""
	Runs one orchestrator on a background thread.

	The worker takes the input buffer and drops its reference once the
	run starts, so the caller should not keep writing to it.
	"""

	def __init__(self, orchestrator: PipelineOrchestrator, buffer):
		self.orchestrator = orchestrator
		self._buffer = buffer
		self.result = None
		self.error = None
		self._thread = threading.Thread(target=self._run, daemon=True)

	#============================
	def start(self):
		self._thread.start()
		return self

	#============================
	def _run(self) -> None:
		buffer = self._buffer
		self._buffer = None
		try:
			self.result = self.orchestrator.run(buffer)
		except Exception as exc:
			# handed to the joining thread, which re-raises it
			self.error = exc

	#============================
	def cancel(self) -> None:
		self.orchestrator.cancel()

	#============================
	@property
	def done(self) -> bool:
		return not self._thread.is_alive() and self._buffer is None

	#============================
	def join(self, timeout: float = None) -> PipelineResult:
		self._thread.join(timeout)
		if self._thread.is_alive():
			return None
		if self.error is not None:
			raise self.error
		return self.result

#============================================

def process_buffer(buffer, config: PipelineConfig, observer=None,
	control: RunControl = None) -> PipelineResult:
	orchestrator = PipelineOrchestrator(config, observer=observer, control=control)
	return orchestrator.run(buffer)
