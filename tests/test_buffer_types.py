#!/usr/bin/env python3

"""
Unit tests for repauselib/audio/buffer.py and the error types.
"""

# Standard Library
import os
import sys
import unittest

# PIP3 modules
import numpy

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

from repauselib.audio.buffer import RescaledInterval
from repauselib.audio.buffer import SampleBuffer
from repauselib.audio.buffer import SilenceInterval
from repauselib.audio.buffer import check_interval_order
from repauselib.core.errors import InvalidInputError
from repauselib.core.errors import PipelineTimeoutError
from repauselib.core.errors import RepauseError

#============================================

class SampleBufferTest(unittest.TestCase):
	#============================================
	def test_copies_input(self) -> None:
		source = numpy.zeros((2, 10), dtype=numpy.float32)
		buffer = SampleBuffer(source, 1000)
		source[0, 0] = 1.0
		self.assertEqual(float(buffer.data[0, 0]), 0.0)
		self.assertFalse(buffer.data.flags.writeable)
		self.assertEqual(buffer.data.dtype, numpy.float32)

	#============================================
	def test_shape_and_duration(self) -> None:
		buffer = SampleBuffer(numpy.zeros(500), 1000)
		self.assertEqual(buffer.channel_count, 1)
		self.assertEqual(buffer.frame_count, 500)
		self.assertEqual(len(buffer), 500)
		self.assertAlmostEqual(buffer.duration, 0.5)

	#============================================
	def test_interleaved_round_trip(self) -> None:
		samples = [0.1, -0.1, 0.2, -0.2, 0.3, -0.3]
		buffer = SampleBuffer.from_interleaved(samples, 2, 8000)
		self.assertEqual(buffer.frame_count, 3)
		self.assertTrue(numpy.allclose(buffer.channel(1), [-0.1, -0.2, -0.3]))
		self.assertTrue(numpy.allclose(buffer.interleaved(), samples))

	#============================================
	def test_bad_sample_rate(self) -> None:
		for rate in (0, -1, 44100.5, float('inf')):
			with self.assertRaises(InvalidInputError):
				SampleBuffer(numpy.zeros(10), rate)
		with self.assertRaises(InvalidInputError):
			SampleBuffer(numpy.zeros((2, 2, 2)), 1000)

#============================================

class IntervalTest(unittest.TestCase):
	#============================================
	def test_times(self) -> None:
		interval = SilenceInterval(1500, 4500, 1000)
		self.assertEqual(interval.sample_count, 3000)
		self.assertAlmostEqual(interval.start_time, 1.5)
		self.assertAlmostEqual(interval.end_time, 4.5)
		self.assertAlmostEqual(interval.duration, 3.0)
		self.assertEqual(interval, SilenceInterval(1500, 4500, 1000))
		self.assertEqual(interval.to_dict()['duration'], 3.0)

	#============================================
	def test_invalid_intervals(self) -> None:
		with self.assertRaises(InvalidInputError):
			SilenceInterval(-1, 10, 1000)
		with self.assertRaises(InvalidInputError):
			SilenceInterval(10, 10, 1000)
		with self.assertRaises(InvalidInputError):
			RescaledInterval(SilenceInterval(0, 10, 1000), -0.5)
		with self.assertRaises(InvalidInputError):
			RescaledInterval(SilenceInterval(0, 10, 1000), float('nan'))

	#============================================
	def test_new_sample_count_floors(self) -> None:
		item = RescaledInterval(SilenceInterval(0, 10, 1000), 0.0129)
		self.assertEqual(item.new_sample_count(1000), 12)
		self.assertEqual(item.to_dict()['new_duration'], 0.0129)

	#============================================
	def test_order_check(self) -> None:
		ordered = [SilenceInterval(0, 5, 10), SilenceInterval(5, 9, 10)]
		check_interval_order(ordered, frame_count=9)
		with self.assertRaises(InvalidInputError):
			check_interval_order(ordered, frame_count=8)
		with self.assertRaises(InvalidInputError):
			check_interval_order(list(reversed(ordered)))

#============================================

class ErrorTest(unittest.TestCase):
	#============================================
	def test_error_fields(self) -> None:
		error = PipelineTimeoutError("too slow", stage="encoding", value=5.0)
		self.assertIsInstance(error, RepauseError)
		self.assertIsInstance(error, RuntimeError)
		self.assertEqual(str(error), "encoding: too slow")
		self.assertEqual(error.to_dict(), {
			'kind': 'timeout',
			'stage': 'encoding',
			'message': 'too slow',
			'value': 5.0,
		})
		self.assertEqual(str(InvalidInputError("plain")), "plain")

#============================================

def main() -> None:
	"""Run the unit tests."""
	unittest.main()

#============================================

if __name__ == "__main__":
	main()
