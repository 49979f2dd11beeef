#!/usr/bin/env python3

"""
Unit tests for repauselib/core/pipeline.py.
"""

# Standard Library
import os
import sys
import itertools
import unittest

# PIP3 modules
import numpy

# local repo modules
TESTS_DIR = os.path.abspath(os.path.dirname(__file__))
if TESTS_DIR not in sys.path:
	sys.path.insert(0, TESTS_DIR)
from audio_fixtures import TWO_GAP_LAYOUT
from audio_fixtures import build_buffer

from repauselib.audio import wav
from repauselib.audio.buffer import SampleBuffer
from repauselib.core import pipeline
from repauselib.core import utils
from repauselib.core.config import PipelineConfig
from repauselib.core.control import RunControl
from repauselib.core.errors import AllocationFailedError
from repauselib.core.errors import CancelledError
from repauselib.core.errors import InvalidInputError
from repauselib.core.errors import PipelineTimeoutError

#============================================

def make_config(**overrides) -> PipelineConfig:
	values = {
		'target_duration': 6.0,
		'amplitude_threshold': 0.01,
		'min_silence_duration': 1.0,
		'min_gap_duration': 0.0,
	}
	values.update(overrides)
	return PipelineConfig(**values)

#============================================

class PipelineOrchestratorTest(unittest.TestCase):
	#============================================
	def test_end_to_end(self) -> None:
		buffer = build_buffer(TWO_GAP_LAYOUT, channels=2)
		events = []
		orchestrator = pipeline.PipelineOrchestrator(make_config(), observer=events.append)
		result = orchestrator.run(buffer)
		self.assertEqual(orchestrator.state, pipeline.STATE_COMPLETE)
		self.assertEqual(len(result.intervals), 2)
		self.assertEqual(result.gaps_adjusted, 2)
		self.assertEqual(result.output.frame_count, 6000)
		self.assertAlmostEqual(result.output_duration, 6.0)
		self.assertAlmostEqual(result.input_duration, 9.0)
		self.assertIs(result.output, result.rebuilt)
		self.assertEqual(len(result.wav_bytes), 44 + 6000 * 2 * 2)
		decoded = wav.decode_wav(result.wav_bytes)
		self.assertEqual(decoded.channel_count, 2)
		self.assertEqual(decoded.sample_rate, 1000)
		summary = result.summary()
		self.assertEqual(summary['gaps_adjusted'], 2)
		self.assertEqual(summary['wav_bytes'], len(result.wav_bytes))

	#============================================
	def test_state_sequence_and_progress(self) -> None:
		buffer = build_buffer(TWO_GAP_LAYOUT)
		events = []
		orchestrator = pipeline.PipelineOrchestrator(make_config(), observer=events.append)
		orchestrator.run(buffer)
		expected = ['idle', 'detecting', 'rescaling', 'rebuilding', 'encoding', 'complete']
		self.assertEqual(orchestrator.history, expected)
		percents = [event['percent'] for event in events]
		self.assertEqual(percents, sorted(percents))
		self.assertEqual(percents[-1], 100)
		self.assertEqual(events[-1]['state'], 'complete')
		for event in events:
			self.assertIn('message', event)
		self.assertEqual(set(orchestrator.timings),
			{'detecting', 'rescaling', 'rebuilding', 'encoding'})

	#============================================
	def test_no_silence_keeps_duration(self) -> None:
		data = numpy.full(3000, 0.5, dtype=numpy.float32)
		buffer = SampleBuffer(data, 1000)
		result = pipeline.process_buffer(buffer, make_config(target_duration=1.0))
		self.assertEqual(result.intervals, [])
		self.assertEqual(result.output.frame_count, 3000)
		self.assertTrue(numpy.array_equal(result.output.data, buffer.data))

	#============================================
	def test_high_compatibility_resamples(self) -> None:
		buffer = build_buffer(TWO_GAP_LAYOUT, sample_rate=8000)
		events = []
		config = make_config(compatibility='high')
		orchestrator = pipeline.PipelineOrchestrator(config, observer=events.append)
		result = orchestrator.run(buffer)
		self.assertIn('resampling', orchestrator.history)
		self.assertEqual(result.rebuilt.sample_rate, 8000)
		self.assertEqual(result.output.sample_rate, 44100)
		self.assertEqual(wav.parse_wav_header(result.wav_bytes)['sample_rate'], 44100)
		percents = [event['percent'] for event in events]
		self.assertEqual(percents, sorted(percents))

	#============================================
	def test_explicit_output_rate(self) -> None:
		buffer = build_buffer(TWO_GAP_LAYOUT, sample_rate=2000)
		result = pipeline.process_buffer(buffer, make_config(output_sample_rate=1000))
		self.assertEqual(result.output.sample_rate, 1000)
		self.assertEqual(result.output.frame_count, 6000)

	#============================================
	def test_default_observer_uses_reporter(self) -> None:
		events = []
		utils.set_progress_reporter(events.append)
		try:
			pipeline.process_buffer(build_buffer(TWO_GAP_LAYOUT), make_config())
		finally:
			utils.clear_progress_reporter()
		self.assertEqual(events[-1]['percent'], 100)

	#============================================
	def test_invalid_config_rejected_up_front(self) -> None:
		with self.assertRaises(InvalidInputError):
			pipeline.PipelineOrchestrator(make_config(target_duration=None))
		with self.assertRaises(InvalidInputError):
			pipeline.PipelineOrchestrator(make_config(amplitude_threshold=-1.0))

	#============================================
	def test_invalid_input_moves_to_failed(self) -> None:
		buffer = SampleBuffer(numpy.zeros((1, 0), dtype=numpy.float32), 1000)
		orchestrator = pipeline.PipelineOrchestrator(make_config())
		with self.assertRaises(InvalidInputError):
			orchestrator.run(buffer)
		self.assertEqual(orchestrator.state, pipeline.STATE_FAILED)
		self.assertEqual(orchestrator.error.stage, "detecting")

	#============================================
	def test_allocation_failure(self) -> None:
		buffer = build_buffer(TWO_GAP_LAYOUT)
		orchestrator = pipeline.PipelineOrchestrator(make_config(safety_max_samples=100))
		with self.assertRaises(AllocationFailedError):
			orchestrator.run(buffer)
		self.assertEqual(orchestrator.state, pipeline.STATE_FAILED)
		self.assertIsInstance(orchestrator.error, AllocationFailedError)
		self.assertEqual(orchestrator.error.stage, 'rebuilding')

	#============================================
	def test_cancel_during_rebuild(self) -> None:
		buffer = build_buffer(TWO_GAP_LAYOUT)
		orchestrator = None

		def observer(event: dict) -> None:
			if event['state'] == 'rebuilding':
				orchestrator.cancel()

		orchestrator = pipeline.PipelineOrchestrator(make_config(), observer=observer)
		with self.assertRaises(CancelledError):
			orchestrator.run(buffer)
		self.assertEqual(orchestrator.state, pipeline.STATE_CANCELLED)
		self.assertEqual(orchestrator.history[-2:], ['rebuilding', 'cancelled'])

	#============================================
	def test_timeout(self) -> None:
		clock = itertools.count(0.0, 10.0).__next__
		control = RunControl(timeout_seconds=5.0, clock=clock)
		orchestrator = pipeline.PipelineOrchestrator(make_config(), control=control)
		with self.assertRaises(PipelineTimeoutError) as context:
			orchestrator.run(build_buffer(TWO_GAP_LAYOUT))
		self.assertEqual(context.exception.stage, 'detecting')
		self.assertEqual(orchestrator.state, pipeline.STATE_FAILED)
		self.assertIs(orchestrator.error, context.exception)

	#============================================
	def test_runs_only_once(self) -> None:
		buffer = build_buffer(TWO_GAP_LAYOUT)
		orchestrator = pipeline.PipelineOrchestrator(make_config())
		orchestrator.run(buffer)
		with self.assertRaises(InvalidInputError):
			orchestrator.run(buffer)

#============================================

class PipelineWorkerTest(unittest.TestCase):
	#============================================
	def test_worker_returns_result(self) -> None:
		orchestrator = pipeline.PipelineOrchestrator(make_config())
		worker = pipeline.PipelineWorker(orchestrator, build_buffer(TWO_GAP_LAYOUT))
		self.assertFalse(worker.done)
		result = worker.start().join(timeout=30.0)
		self.assertTrue(worker.done)
		self.assertEqual(result.output.frame_count, 6000)

	#============================================
	def test_worker_reraises_cancel(self) -> None:
		orchestrator = pipeline.PipelineOrchestrator(make_config())
		worker = pipeline.PipelineWorker(orchestrator, build_buffer(TWO_GAP_LAYOUT))
		worker.cancel()
		worker.start()
		with self.assertRaises(CancelledError):
			worker.join(timeout=30.0)
		self.assertEqual(orchestrator.state, pipeline.STATE_CANCELLED)

#============================================

def main() -> None:
	"""Run the unit tests."""
	unittest.main()

#============================================

if __name__ == "__main__":
	main()
