#!/usr/bin/env python3

import threading
import time
from repauselib.core.errors import CancelledError
from repauselib.core.errors import PipelineTimeoutError

#============================================

class RunControl():
	"""
	Cooperative cancellation and wall-clock ceiling for one pipeline run.

	Long loops call checkpoint() between chunks. The call yields the
	interpreter to other threads and raises when the run was cancelled
	or its deadline passed. Output values never depend on it.
	"""

	def __init__(self, timeout_seconds: float = None, clock=None):
		self._cancel_event = threading.Event()
		self._clock = clock if clock is not None else time.monotonic
		self.timeout_seconds = timeout_seconds
		self.started_at = None
		self.deadline = None
		self.checkpoints = 0

	#============================
	def start(self) -> None:
		self.started_at = self._clock()
		self.deadline = None
		if self.timeout_seconds is not None:
			self.deadline = self.started_at + float(self.timeout_seconds)

	#============================
	def cancel(self) -> None:
		self._cancel_event.set()

	#============================
	@property
	def cancelled(self) -> bool:
		return self._cancel_event.is_set()

	#============================
	def elapsed(self) -> float:
		if self.started_at is None:
			return 0.0
		return self._clock() - self.started_at

	#============================
	def checkpoint(self, stage: str = None) -> None:
		self.checkpoints += 1
		# give a UI or worker thread a chance to run
		time.sleep(0)
		if self._cancel_event.is_set():
			raise CancelledError("run cancelled by caller", stage=stage)
		if self.deadline is not None and self._clock() > self.deadline:
			raise PipelineTimeoutError(
				f"run exceeded {self.timeout_seconds}s wall-clock ceiling",
				stage=stage, value=self.timeout_seconds)

#============================================

def resolve_control(control) -> RunControl:
	if control is not None:
		return control
	return RunControl()
