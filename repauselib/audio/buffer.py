#!/usr/bin/env python3

"""
Sample buffer and interval value types shared by every pipeline stage.
"""

# Standard Library
import math

# PIP3 modules
import numpy

# local repo modules
from repauselib.core.errors import InvalidInputError

#============================================

SAMPLE_DTYPE = numpy.float32

#============================================

class SampleBuffer():
	"""
	Owned multi-channel block of float samples at a fixed sample rate.

	Samples are stored as a (channel_count, frame_count) float32 array.
	The constructor always copies its input, and stages return new
	buffers instead of writing into the one they were given.
	"""

	def __init__(self, data, sample_rate: int, copy: bool = True):
		sample_rate_value = float(sample_rate)
		if not math.isfinite(sample_rate_value) or sample_rate_value <= 0:
			raise InvalidInputError("sample rate must be positive",
				stage="buffer", value=sample_rate)
		if int(sample_rate_value) != sample_rate_value:
			raise InvalidInputError("sample rate must be a whole number",
				stage="buffer", value=sample_rate)
		if copy:
			array = numpy.array(data, dtype=SAMPLE_DTYPE, order='C')
		else:
			array = numpy.ascontiguousarray(data, dtype=SAMPLE_DTYPE)
		if array.ndim == 1:
			array = array.reshape(1, array.shape[0])
		if array.ndim != 2:
			raise InvalidInputError("sample data must be 1-D or 2-D",
				stage="buffer", value=array.ndim)
		self._data = array
		self._data.flags.writeable = False
		self.sample_rate = int(sample_rate_value)

	#============================
	@classmethod
	def silent(cls, channel_count: int, frame_count: int, sample_rate: int):
		data = numpy.zeros((channel_count, frame_count), dtype=SAMPLE_DTYPE)
		return cls(data, sample_rate, copy=False)

	#============================
	@classmethod
	def from_interleaved(cls, samples, channel_count: int, sample_rate: int):
		flat = numpy.asarray(samples, dtype=SAMPLE_DTYPE)
		if channel_count <= 0:
			raise InvalidInputError("channel count must be positive",
				stage="buffer", value=channel_count)
		frame_count = flat.size // channel_count
		flat = flat[:frame_count * channel_count]
		data = flat.reshape(frame_count, channel_count).T
		return cls(data, sample_rate)

	#============================
	@property
	def data(self) -> numpy.ndarray:
		return self._data

	#============================
	@property
	def channel_count(self) -> int:
		return int(self._data.shape[0])

	#============================
	@property
	def frame_count(self) -> int:
		return int(self._data.shape[1])

	#============================
	@property
	def duration(self) -> float:
		return self.frame_count / float(self.sample_rate)

	#============================
	def channel(self, index: int) -> numpy.ndarray:
		return self._data[index]

	#============================
	def interleaved(self) -> numpy.ndarray:
		return self._data.T.reshape(-1)

	#============================
	def copy(self):
		return SampleBuffer(self._data, self.sample_rate, copy=True)

	#============================
	def __len__(self) -> int:
		return self.frame_count

	#============================
	def __repr__(self) -> str:
		return (f"SampleBuffer(channels={self.channel_count}, "
			f"frames={self.frame_count}, sample_rate={self.sample_rate})")

#============================================

class SilenceInterval():
	"""Half-open [start_sample, end_sample) run of silence."""

	__slots__ = ('_start_sample', '_end_sample', '_sample_rate')

	def __init__(self, start_sample: int, end_sample: int, sample_rate: int):
		start_sample = int(start_sample)
		end_sample = int(end_sample)
		if start_sample < 0:
			raise InvalidInputError("interval start must not be negative",
				stage="interval", value=start_sample)
		if end_sample <= start_sample:
			raise InvalidInputError("interval end must be after its start",
				stage="interval", value=(start_sample, end_sample))
		if sample_rate <= 0:
			raise InvalidInputError("interval sample rate must be positive",
				stage="interval", value=sample_rate)
		self._start_sample = start_sample
		self._end_sample = end_sample
		self._sample_rate = int(sample_rate)

	#============================
	@property
	def start_sample(self) -> int:
		return self._start_sample

	#============================
	@property
	def end_sample(self) -> int:
		return self._end_sample

	#============================
	@property
	def sample_rate(self) -> int:
		return self._sample_rate

	#============================
	@property
	def sample_count(self) -> int:
		return self._end_sample - self._start_sample

	#============================
	@property
	def start_time(self) -> float:
		return self._start_sample / float(self._sample_rate)

	#============================
	@property
	def end_time(self) -> float:
		return self._end_sample / float(self._sample_rate)

	#============================
	@property
	def duration(self) -> float:
		return self.sample_count / float(self._sample_rate)

	#============================
	def to_dict(self) -> dict:
		return {
			'start': self.start_time,
			'end': self.end_time,
			'duration': self.duration,
		}

	#============================
	def __eq__(self, other) -> bool:
		if not isinstance(other, SilenceInterval):
			return NotImplemented
		return (self._start_sample == other._start_sample
			and self._end_sample == other._end_sample
			and self._sample_rate == other._sample_rate)

	#============================
	def __hash__(self) -> int:
		return hash((self._start_sample, self._end_sample, self._sample_rate))

	#============================
	def __repr__(self) -> str:
		return (f"SilenceInterval({self._start_sample}, {self._end_sample}, "
			f"sample_rate={self._sample_rate})")

#============================================

class RescaledInterval():
	"""A detected silence paired with the duration it should have."""

	__slots__ = ('_original', '_new_duration')

	def __init__(self, original: SilenceInterval, new_duration: float):
		new_duration = float(new_duration)
		if not math.isfinite(new_duration) or new_duration < 0:
			raise InvalidInputError("new gap duration must be finite and >= 0",
				stage="interval", value=new_duration)
		self._original = original
		self._new_duration = new_duration

	#============================
	@property
	def original(self) -> SilenceInterval:
		return self._original

	#============================
	@property
	def new_duration(self) -> float:
		return self._new_duration

	#============================
	def new_sample_count(self, sample_rate: int) -> int:
		return int(math.floor(self._new_duration * sample_rate))

	#============================
	def to_dict(self) -> dict:
		entry = self._original.to_dict()
		entry['new_duration'] = self._new_duration
		return entry

	#============================
	def __repr__(self) -> str:
		return f"RescaledInterval({self._original!r}, new_duration={self._new_duration:.6f})"

#============================================

def check_interval_order(intervals: list, frame_count: int = None,
	stage: str = "intervals") -> None:
	"""
	Verify intervals are sorted, non-overlapping and inside the buffer.

	Args:
		intervals: SilenceInterval list.
		frame_count: Buffer length to bound against, or None to skip.
		stage: Stage name used in raised errors.
	"""
	previous_end = 0
	for index, interval in enumerate(intervals):
		if interval.start_sample < previous_end:
			raise InvalidInputError(
				f"interval {index} overlaps or precedes the previous interval",
				stage=stage, value=(interval.start_sample, previous_end))
		if frame_count is not None and interval.end_sample > frame_count:
			raise InvalidInputError(
				f"interval {index} ends past the buffer end",
				stage=stage, value=(interval.end_sample, frame_count))
		previous_end = interval.end_sample
	return
