#!/usr/bin/env python3

"""
Linear-interpolation resampling.

No anti-aliasing filter is applied. Downsampling by a large ratio will
fold high frequencies back into the audible band; this trades fidelity
for speed and simplicity, which suits spoken-word tracks.
"""

# Standard Library
import math

# PIP3 modules
import numpy

# local repo modules
from repauselib.audio.buffer import SampleBuffer
from repauselib.audio.rebuild import allocate_samples
from repauselib.audio.rebuild import check_allocation
from repauselib.core.control import resolve_control
from repauselib.core.errors import InvalidInputError

#============================================

STAGE = "resampling"
DEFAULT_CHUNK_FRAMES = 1 << 20
HIGH_COMPATIBILITY_RATE = 44100
CONSTRAINED_LONG_TRACK_RATE = 22050
CONSTRAINED_LONG_TRACK_SECONDS = 15 * 60

#============================================

class Resampler():
	"""
	Converts a buffer to another sample rate.

	Args:
		safety_max_samples: Ceiling on output frames times channels.
		chunk_frames: Output frames computed between yields.
	"""

	def __init__(self, safety_max_samples: int = None,
		chunk_frames: int = DEFAULT_CHUNK_FRAMES):
		self.safety_max_samples = safety_max_samples
		self.chunk_frames = max(1, int(chunk_frames))

	#============================
	def resample(self, buffer: SampleBuffer, target_sample_rate: int,
		progress=None, control=None) -> SampleBuffer:
		"""
		Resample every channel to `target_sample_rate`.

		Output index i reads source position i / ratio, blending the two
		neighbouring samples; both neighbours are clamped to the last frame.

		Args:
			buffer: Source buffer.
			target_sample_rate: Output rate in Hz.
			progress: Optional callable taking a 0..1 fraction.
			control: Optional RunControl.

		Returns:
			SampleBuffer: New buffer at the target rate.
		"""
		if target_sample_rate is None or int(target_sample_rate) != target_sample_rate:
			raise InvalidInputError("target sample rate must be a whole number",
				stage=STAGE, value=target_sample_rate)
		target_sample_rate = int(target_sample_rate)
		if target_sample_rate <= 0:
			raise InvalidInputError("target sample rate must be positive",
				stage=STAGE, value=target_sample_rate)
		control = resolve_control(control)
		if target_sample_rate == buffer.sample_rate:
			if progress is not None:
				progress(1.0)
			return buffer.copy()
		ratio = target_sample_rate / float(buffer.sample_rate)
		new_length = int(math.floor(buffer.frame_count * ratio))
		check_allocation(new_length, buffer.channel_count,
			self.safety_max_samples, STAGE)
		target = allocate_samples(buffer.channel_count, new_length, STAGE)
		source = buffer.data
		last_index = buffer.frame_count - 1
		if last_index < 0 or new_length == 0:
			if progress is not None:
				progress(1.0)
			return SampleBuffer(target, target_sample_rate, copy=False)
		for chunk_start in range(0, new_length, self.chunk_frames):
			control.checkpoint(STAGE)
			chunk_end = min(new_length, chunk_start + self.chunk_frames)
			positions = numpy.arange(chunk_start, chunk_end, dtype=numpy.float64) / ratio
			lower = numpy.floor(positions)
			frac = (positions - lower).astype(numpy.float64)
			lower = lower.astype(numpy.int64)
			upper = numpy.minimum(lower + 1, last_index)
			lower = numpy.minimum(lower, last_index)
			first = source[:, lower].astype(numpy.float64)
			second = source[:, upper].astype(numpy.float64)
			target[:, chunk_start:chunk_end] = first + (second - first) * frac
			if progress is not None:
				progress(chunk_end / float(new_length))
		return SampleBuffer(target, target_sample_rate, copy=False)

#============================================

def resample_buffer(buffer: SampleBuffer, target_sample_rate: int,
	safety_max_samples: int = None, progress=None, control=None) -> SampleBuffer:
	resampler = Resampler(safety_max_samples=safety_max_samples)
	return resampler.resample(buffer, target_sample_rate,
		progress=progress, control=control)

#============================================

def choose_output_rate(sample_rate: int, duration: float,
	compatibility: str = "native", constrained: bool = False) -> int:
	"""
	Pick the output sample rate for a compatibility mode.

	Args:
		sample_rate: Rate of the buffer about to be encoded.
		duration: Its length in seconds.
		compatibility: "native" keeps the buffer rate, "high" targets 44.1 kHz.
		constrained: Low-memory device profile; long tracks drop to 22.05 kHz.

	Returns:
		int: Sample rate in Hz.
	"""
	if compatibility == "native":
		return sample_rate
	if compatibility != "high":
		raise InvalidInputError("compatibility must be 'native' or 'high'",
			stage=STAGE, value=compatibility)
	rate = HIGH_COMPATIBILITY_RATE
	if constrained and duration > CONSTRAINED_LONG_TRACK_SECONDS:
		rate = min(rate, CONSTRAINED_LONG_TRACK_RATE)
	return rate
