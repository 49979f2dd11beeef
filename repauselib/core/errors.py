#!/usr/bin/env python3

"""
Exception taxonomy for the pause rescaling pipeline.

Every error subclasses RuntimeError and carries the pipeline stage that
raised it plus the offending value, so callers can build an actionable
message without parsing text.
"""

#============================================

class RepauseError(RuntimeError):
	"""Base class for all pipeline failures."""

	kind = "error"

	def __init__(self, message: str, stage: str = None, value=None):
		super().__init__(message)
		self.message = message
		self.stage = stage
		self.value = value

	#============================
	def __str__(self) -> str:
		if self.stage is None:
			return self.message
		return f"{self.stage}: {self.message}"

	#============================
	def to_dict(self) -> dict:
		return {
			'kind': self.kind,
			'stage': self.stage,
			'message': self.message,
			'value': self.value,
		}

#============================================

class InvalidInputError(RepauseError):
	"""Malformed parameters, empty buffers, or out-of-order intervals."""

	kind = "invalid_input"

#============================================

class AllocationFailedError(RepauseError):
	"""An output buffer would exceed the configured sample ceiling."""

	kind = "allocation_failed"

#============================================

class BufferTooLargeError(RepauseError):
	"""The encoded WAV would overflow the 32-bit RIFF size fields."""

	kind = "buffer_too_large"

#============================================

class PipelineTimeoutError(RepauseError):
	"""The wall-clock ceiling for one run expired."""

	kind = "timeout"

#============================================

class CancelledError(RepauseError):
	"""The caller cancelled the run; not a failure."""

	kind = "cancelled"
