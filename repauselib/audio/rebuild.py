#!/usr/bin/env python3

"""
Rebuild a buffer with rescaled pauses.

Speech between gaps is copied verbatim. Every gap is replaced by pure
digital silence of its new length. Boundaries come from the intervals,
which were detected on channel 0, and all channels are written with the
same boundaries so they stay phase-aligned.
"""

# PIP3 modules
import numpy

# local repo modules
from repauselib.audio.buffer import SAMPLE_DTYPE
from repauselib.audio.buffer import SampleBuffer
from repauselib.audio.buffer import check_interval_order
from repauselib.core.control import resolve_control
from repauselib.core.errors import AllocationFailedError
from repauselib.core.errors import InvalidInputError

#============================================

STAGE = "rebuilding"
# two hours of 48 kHz stereo
DEFAULT_SAFETY_MAX_SAMPLES = 48000 * 2 * 2 * 3600

#============================================

def planned_frame_count(original: SampleBuffer, rescaled: list) -> int:
	"""
	Output length in frames: untouched content plus every new gap.

	Args:
		original: Source buffer.
		rescaled: RescaledInterval list.

	Returns:
		int: Frame count, at least 1.
	"""
	sample_rate = original.sample_rate
	silence_frames = sum(item.original.sample_count for item in rescaled)
	content_frames = original.frame_count - silence_frames
	gap_frames = sum(item.new_sample_count(sample_rate) for item in rescaled)
	return max(1, content_frames + gap_frames)

#============================================

def check_allocation(frame_count: int, channel_count: int,
	safety_max_samples: int, stage: str) -> None:
	total_samples = frame_count * channel_count
	if safety_max_samples is not None and total_samples > safety_max_samples:
		raise AllocationFailedError(
			f"output needs {total_samples} samples, ceiling is {safety_max_samples}",
			stage=stage, value=total_samples)
	return

#============================================

def allocate_samples(channel_count: int, frame_count: int, stage: str) -> numpy.ndarray:
	try:
		return numpy.zeros((channel_count, frame_count), dtype=SAMPLE_DTYPE)
	except MemoryError as exc:
		raise AllocationFailedError(
			f"could not allocate {channel_count}x{frame_count} samples",
			stage=stage, value=channel_count * frame_count) from exc

#============================================

def _copy_clamped(target: numpy.ndarray, write_index: int,
	source: numpy.ndarray, read_start: int, read_end: int) -> int:
	# writes past the fixed allocation are dropped
	length = read_end - read_start
	room = target.shape[1] - write_index
	length = max(0, min(length, room))
	if length > 0:
		target[:, write_index:write_index + length] = source[:, read_start:read_start + length]
	return write_index + length

#============================================

def _skip_clamped(target: numpy.ndarray, write_index: int, length: int) -> int:
	# the allocation is already zero filled, so silence is a cursor move
	room = target.shape[1] - write_index
	return write_index + max(0, min(length, room))

#============================================

class BufferRebuilder():
	"""
	Walks the source buffer and the rescaled gaps in lockstep.

	Args:
		safety_max_samples: Ceiling on output frames times channels.
		intervals_per_checkpoint: Gaps processed between yields.
	"""

	def __init__(self, safety_max_samples: int = DEFAULT_SAFETY_MAX_SAMPLES,
		intervals_per_checkpoint: int = 10):
		if safety_max_samples is not None and safety_max_samples <= 0:
			raise InvalidInputError("safety ceiling must be positive",
				stage=STAGE, value=safety_max_samples)
		self.safety_max_samples = safety_max_samples
		self.intervals_per_checkpoint = max(1, int(intervals_per_checkpoint))

	#============================
	def rebuild(self, original: SampleBuffer, rescaled: list,
		progress=None, control=None) -> SampleBuffer:
		"""
		Produce the new buffer.

		Args:
			original: Source buffer, left unchanged.
			rescaled: RescaledInterval list in increasing order.
			progress: Optional callable taking a 0..1 fraction.
			control: Optional RunControl.

		Returns:
			SampleBuffer: Freshly allocated output at the source rate.
		"""
		control = resolve_control(control)
		if original.channel_count == 0:
			raise InvalidInputError("buffer has no channels", stage=STAGE, value=0)
		sample_rate = original.sample_rate
		intervals = [item.original for item in rescaled]
		for interval in intervals:
			if interval.sample_rate != sample_rate:
				raise InvalidInputError("interval sample rate does not match buffer",
					stage=STAGE, value=interval.sample_rate)
		check_interval_order(intervals, original.frame_count, stage=STAGE)
		frame_count = planned_frame_count(original, rescaled)
		check_allocation(frame_count, original.channel_count,
			self.safety_max_samples, STAGE)
		control.checkpoint(STAGE)
		target = allocate_samples(original.channel_count, frame_count, STAGE)
		source = original.data
		total_source = original.frame_count
		if len(rescaled) == 0:
			_copy_clamped(target, 0, source, 0, total_source)
			if progress is not None:
				progress(1.0)
			return SampleBuffer(target, sample_rate, copy=False)
		write_index = _copy_clamped(target, 0, source, 0, intervals[0].start_sample)
		count = len(rescaled)
		for index, item in enumerate(rescaled):
			if index % self.intervals_per_checkpoint == 0:
				control.checkpoint(STAGE)
				if progress is not None:
					progress(index / float(count))
			write_index = _skip_clamped(target, write_index,
				item.new_sample_count(sample_rate))
			read_start = item.original.end_sample
			if index + 1 < count:
				read_end = intervals[index + 1].start_sample
			else:
				read_end = total_source
			write_index = _copy_clamped(target, write_index, source,
				read_start, read_end)
		if progress is not None:
			progress(1.0)
		return SampleBuffer(target, sample_rate, copy=False)

#============================================

def rebuild_buffer(original: SampleBuffer, rescaled: list,
	safety_max_samples: int = DEFAULT_SAFETY_MAX_SAMPLES,
	progress=None, control=None) -> SampleBuffer:
	rebuilder = BufferRebuilder(safety_max_samples=safety_max_samples)
	return rebuilder.rebuild(original, rescaled, progress=progress, control=control)
