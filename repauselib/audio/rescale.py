#!/usr/bin/env python3

"""
Gap rescaling policies.

Given the detected silences, work out how long each one should become so
the rebuilt track lands on a target duration. Speech is never touched,
so the only freedom is in the gaps:

	total_silence = sum of interval durations
	content = buffer duration - total_silence
	available = max(target - content, count * min_gap)

Proportional ("preserve relative pacing") multiplies every gap by
available / total_silence. Equalize hands every gap the same share of
`available`. Both clamp each gap to at least `min_gap`.
"""

# Standard Library
import math

# local repo modules
from repauselib.audio.buffer import RescaledInterval
from repauselib.audio.buffer import SampleBuffer
from repauselib.audio.buffer import check_interval_order
from repauselib.core.errors import InvalidInputError

#============================================

STAGE = "rescaling"

#============================================

class RescalePolicy():
	"""
	How to turn detected gaps into new gap durations.

	Args:
		target_total_duration: Desired output length in seconds.
		min_gap_duration: Floor for every rescaled gap, in seconds.
		preserve_relative_pacing: Proportional scaling when True,
			equal distribution when False.
		scale_factor: Optional explicit multiplier for the total silence;
			replaces the target-derived amount when given.
	"""

	def __init__(self, target_total_duration: float = None,
		min_gap_duration: float = 0.0, preserve_relative_pacing: bool = True,
		scale_factor: float = None):
		self.target_total_duration = target_total_duration
		self.min_gap_duration = min_gap_duration
		self.preserve_relative_pacing = bool(preserve_relative_pacing)
		self.scale_factor = scale_factor

	#============================
	def validate(self) -> None:
		min_gap = self.min_gap_duration
		if min_gap is None or not math.isfinite(min_gap) or min_gap < 0:
			raise InvalidInputError("minimum gap duration must be >= 0",
				stage=STAGE, value=min_gap)
		if self.scale_factor is not None:
			scale = self.scale_factor
			if not math.isfinite(scale) or scale <= 0:
				raise InvalidInputError("scale factor must be positive",
					stage=STAGE, value=scale)
			return
		target = self.target_total_duration
		if target is None:
			raise InvalidInputError("a target duration or scale factor is required",
				stage=STAGE, value=None)
		if not math.isfinite(target) or target <= 0:
			raise InvalidInputError("target duration must be positive",
				stage=STAGE, value=target)

	#============================
	def __repr__(self) -> str:
		return (f"RescalePolicy(target_total_duration={self.target_total_duration}, "
			f"min_gap_duration={self.min_gap_duration}, "
			f"preserve_relative_pacing={self.preserve_relative_pacing}, "
			f"scale_factor={self.scale_factor})")

#============================================

def total_silence_duration(intervals: list) -> float:
	return float(sum(interval.duration for interval in intervals))

#============================================

def available_silence_duration(intervals: list, buffer: SampleBuffer,
	policy: RescalePolicy) -> float:
	"""
	Silence budget the rescaled gaps share.

	The floor of count * min_gap keeps every gap satisfiable even when the
	target leaves no room for silence at all.

	Args:
		intervals: Detected silences.
		buffer: Original buffer.
		policy: Rescale policy.

	Returns:
		float: Seconds of silence to distribute.
	"""
	total_silence = total_silence_duration(intervals)
	floor_total = len(intervals) * policy.min_gap_duration
	if policy.scale_factor is not None:
		wanted = total_silence * policy.scale_factor
	else:
		content = buffer.duration - total_silence
		wanted = policy.target_total_duration - content
	return max(wanted, floor_total)

#============================================

def proportional_scale(total_silence: float, available: float) -> float:
	"""
	Multiplier for the proportional policy, coerced to 1 when undefined.

	Args:
		total_silence: Sum of detected gap durations.
		available: Silence budget.

	Returns:
		float: Finite positive scale.
	"""
	if total_silence <= 0:
		return 1.0
	scale = available / total_silence
	if not math.isfinite(scale) or scale <= 0:
		return 1.0
	return scale

#============================================

class GapRescaler():
	"""Computes a new duration for every detected silence."""

	#============================
	def rescale(self, intervals: list, buffer: SampleBuffer,
		policy: RescalePolicy) -> list:
		"""
		Apply the policy to each interval.

		Args:
			intervals: SilenceInterval list from the detector.
			buffer: The buffer the intervals were detected in.
			policy: RescalePolicy.

		Returns:
			list: RescaledInterval objects parallel to `intervals`.
		"""
		policy.validate()
		check_interval_order(intervals, buffer.frame_count, stage=STAGE)
		if len(intervals) == 0:
			return []
		min_gap = float(policy.min_gap_duration)
		available = available_silence_duration(intervals, buffer, policy)
		rescaled = []
		if policy.preserve_relative_pacing:
			scale = proportional_scale(total_silence_duration(intervals), available)
			for interval in intervals:
				new_duration = max(interval.duration * scale, min_gap)
				rescaled.append(RescaledInterval(interval, new_duration))
			return rescaled
		share = available / len(intervals)
		if not math.isfinite(share):
			share = min_gap
		new_duration = max(min_gap, share)
		for interval in intervals:
			rescaled.append(RescaledInterval(interval, new_duration))
		return rescaled

#============================================

def rescale_gaps(intervals: list, buffer: SampleBuffer,
	policy: RescalePolicy) -> list:
	return GapRescaler().rescale(intervals, buffer, policy)

#============================================

def summarize(intervals: list, buffer: SampleBuffer,
	min_gap_duration: float = 0.0) -> dict:
	"""
	Silence statistics used to guide the choice of target duration.

	The bounds here are advice for a caller picking a target; the
	pipeline itself accepts any positive target and clamps gaps instead.

	Args:
		intervals: Detected silences.
		buffer: Original buffer.
		min_gap_duration: Gap floor that would be applied.

	Returns:
		dict: Totals, counts, and shortest reachable duration.
	"""
	total_silence = total_silence_duration(intervals)
	content = buffer.duration - total_silence
	min_required = len(intervals) * min_gap_duration
	shortest = content + min_required
	silence_pct = 0.0
	if buffer.duration > 0:
		silence_pct = (total_silence / buffer.duration) * 100.0
	return {
		'duration': buffer.duration,
		'total_silence': total_silence,
		'content_duration': content,
		'interval_count': len(intervals),
		'silence_pct': silence_pct,
		'shortest_duration': shortest,
		'min_target_minutes': max(1, int(math.ceil(shortest / 60.0))),
	}

#============================================

def rescaled_total_duration(rescaled: list, buffer: SampleBuffer) -> float:
	total_silence = sum(item.original.duration for item in rescaled)
	new_silence = sum(item.new_duration for item in rescaled)
	return buffer.duration - total_silence + new_silence
