#!/usr/bin/env python3

"""
Amplitude-threshold silence detection over channel 0 of a SampleBuffer.

The scan walks every `stride_samples`-th sample. A stride above 1 is a
speed/accuracy trade: interval boundaries may land up to
stride / sample_rate seconds away from the true edge. Samples are
processed in fixed-size chunks so memory use stays flat for long tracks,
and the open silent run is carried from one chunk into the next.
"""

# Standard Library
import math

# PIP3 modules
import numpy

# local repo modules
from repauselib.audio.buffer import SampleBuffer
from repauselib.audio.buffer import SilenceInterval
from repauselib.core.control import resolve_control
from repauselib.core.errors import InvalidInputError

#============================================

STAGE = "detecting"
DEFAULT_CHUNK_POINTS = 1 << 20

#============================================

def validate_detection_args(buffer: SampleBuffer, amplitude_threshold: float,
	min_silence_duration: float, stride_samples: int) -> None:
	"""
	Reject parameters the scan cannot work with.

	Args:
		buffer: Buffer to scan.
		amplitude_threshold: Absolute amplitude below which a sample is quiet.
		min_silence_duration: Shortest run, in seconds, reported as silence.
		stride_samples: Step between inspected samples.
	"""
	if amplitude_threshold is None or not math.isfinite(amplitude_threshold):
		raise InvalidInputError("amplitude threshold must be a finite number",
			stage=STAGE, value=amplitude_threshold)
	if amplitude_threshold < 0:
		raise InvalidInputError("amplitude threshold must be >= 0",
			stage=STAGE, value=amplitude_threshold)
	if min_silence_duration is None or not math.isfinite(min_silence_duration):
		raise InvalidInputError("minimum silence duration must be a finite number",
			stage=STAGE, value=min_silence_duration)
	if min_silence_duration < 0:
		raise InvalidInputError("minimum silence duration must be >= 0",
			stage=STAGE, value=min_silence_duration)
	if int(stride_samples) != stride_samples or stride_samples < 1:
		raise InvalidInputError("stride must be a whole number >= 1",
			stage=STAGE, value=stride_samples)
	if buffer.channel_count == 0:
		raise InvalidInputError("buffer has no channels", stage=STAGE, value=0)
	if buffer.frame_count == 0:
		raise InvalidInputError("buffer has no frames", stage=STAGE, value=0)
	return

#============================================

class SilenceDetector():
	"""
	Finds runs of quiet samples long enough to count as pauses.

	Example:
		detector = SilenceDetector(stride_samples=1)
		intervals = detector.detect(buffer, 0.01, 3.0)
	"""

	def __init__(self, stride_samples: int = 1,
		chunk_points: int = DEFAULT_CHUNK_POINTS):
		if chunk_points < 1:
			raise InvalidInputError("chunk size must be >= 1",
				stage=STAGE, value=chunk_points)
		self.stride_samples = stride_samples
		self.chunk_points = int(chunk_points)

	#============================
	def detect(self, buffer: SampleBuffer, amplitude_threshold: float,
		min_silence_duration: float, progress=None, control=None) -> list:
		"""
		Scan channel 0 and return the silence intervals.

		Args:
			buffer: Decoded audio.
			amplitude_threshold: Samples with |value| below this are quiet.
			min_silence_duration: Minimum run length in seconds.
			progress: Optional callable taking a 0..1 fraction.
			control: Optional RunControl for cancellation and deadline.

		Returns:
			list: SilenceInterval objects in increasing order.
		"""
		validate_detection_args(buffer, amplitude_threshold,
			min_silence_duration, self.stride_samples)
		control = resolve_control(control)
		stride = int(self.stride_samples)
		sample_rate = buffer.sample_rate
		frame_count = buffer.frame_count
		channel = buffer.channel(0)
		threshold = numpy.float32(amplitude_threshold)
		intervals = []
		# open run carried across chunks: first quiet sample index and point count
		run_start = None
		run_points = 0
		span = self.chunk_points * stride
		for chunk_start in range(0, frame_count, span):
			control.checkpoint(STAGE)
			chunk_end = min(frame_count, chunk_start + span)
			values = channel[chunk_start:chunk_end:stride]
			quiet = numpy.abs(values) < threshold
			padded = numpy.zeros(quiet.size + 2, dtype=numpy.int8)
			padded[1:-1] = quiet
			edges = numpy.diff(padded)
			starts = numpy.flatnonzero(edges == 1)
			ends = numpy.flatnonzero(edges == -1)
			if run_start is not None and not quiet[0]:
				self._emit(intervals, run_start, chunk_start, run_points,
					stride, sample_rate, min_silence_duration)
				run_start = None
				run_points = 0
			for start_idx, end_idx in zip(starts.tolist(), ends.tolist()):
				if start_idx == 0 and run_start is not None:
					start_sample = run_start
					points = run_points + end_idx
				else:
					start_sample = chunk_start + start_idx * stride
					points = end_idx - start_idx
				if end_idx == quiet.size:
					run_start = start_sample
					run_points = points
					continue
				run_start = None
				run_points = 0
				end_sample = chunk_start + end_idx * stride
				self._emit(intervals, start_sample, end_sample, points,
					stride, sample_rate, min_silence_duration)
			if progress is not None:
				progress(chunk_end / float(frame_count))
		if run_start is not None:
			self._emit(intervals, run_start, frame_count, run_points,
				stride, sample_rate, min_silence_duration)
		return intervals

	#============================
	def _emit(self, intervals: list, start_sample: int, end_sample: int,
		points: int, stride: int, sample_rate: int,
		min_silence_duration: float) -> None:
		run_seconds = (points * stride) / float(sample_rate)
		if run_seconds < min_silence_duration:
			return
		intervals.append(SilenceInterval(start_sample, end_sample, sample_rate))

#============================================

def detect_silence(buffer: SampleBuffer, amplitude_threshold: float,
	min_silence_duration: float, stride_samples: int = 1,
	progress=None, control=None) -> list:
	"""
	Convenience wrapper around SilenceDetector.detect().

	Returns:
		list: SilenceInterval objects.
	"""
	detector = SilenceDetector(stride_samples=stride_samples)
	return detector.detect(buffer, amplitude_threshold, min_silence_duration,
		progress=progress, control=control)

#============================================

def measure_levels(buffer: SampleBuffer) -> dict:
	"""
	Peak and RMS amplitude of channel 0, for reports.

	Args:
		buffer: Buffer to measure.

	Returns:
		dict: peak_amp and rms_amp, both None for an empty buffer.
	"""
	if buffer.channel_count == 0 or buffer.frame_count == 0:
		return {'peak_amp': None, 'rms_amp': None}
	channel = buffer.channel(0).astype(numpy.float64)
	peak = float(numpy.max(numpy.abs(channel)))
	rms = math.sqrt(float(numpy.mean(channel ** 2)))
	return {'peak_amp': peak, 'rms_amp': rms}
