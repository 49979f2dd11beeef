#!/usr/bin/env python3

"""
Unit tests for repauselib/audio/resample.py.
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

from repauselib.audio.buffer import SampleBuffer
from repauselib.audio.resample import Resampler
from repauselib.audio.resample import choose_output_rate
from repauselib.audio.resample import resample_buffer
from repauselib.core.errors import AllocationFailedError
from repauselib.core.errors import InvalidInputError

#============================================

def ramp_buffer(frame_count: int, sample_rate: int, channels: int = 1) -> SampleBuffer:
	ramp = numpy.linspace(-1.0, 1.0, frame_count, dtype=numpy.float32)
	rows = [ramp * (index + 1) / channels for index in range(channels)]
	return SampleBuffer(numpy.vstack(rows), sample_rate)

#============================================

class ResamplerTest(unittest.TestCase):
	#============================================
	def test_native_rate_is_bit_identical(self) -> None:
		rng = numpy.random.default_rng(7)
		data = rng.uniform(-1.0, 1.0, size=(2, 4410)).astype(numpy.float32)
		buffer = SampleBuffer(data, 44100)
		result = resample_buffer(buffer, 44100)
		self.assertIsNot(result, buffer)
		self.assertEqual(result.sample_rate, 44100)
		self.assertEqual(result.data.tobytes(), buffer.data.tobytes())

	#============================================
	def test_halving_picks_every_other_sample(self) -> None:
		buffer = ramp_buffer(1000, 1000, channels=2)
		result = resample_buffer(buffer, 500)
		self.assertEqual(result.sample_rate, 500)
		self.assertEqual(result.frame_count, 500)
		self.assertTrue(numpy.array_equal(result.data, buffer.data[:, ::2]))

	#============================================
	def test_doubling_interpolates(self) -> None:
		data = numpy.array([0.0, 0.2, 0.4, 0.6], dtype=numpy.float32)
		result = resample_buffer(SampleBuffer(data, 100), 200)
		self.assertEqual(result.frame_count, 8)
		expected = [0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.6]
		self.assertTrue(numpy.allclose(result.channel(0), expected, atol=1e-6))

	#============================================
	def test_length_is_floored(self) -> None:
		buffer = ramp_buffer(1001, 1000)
		result = resample_buffer(buffer, 44100)
		self.assertEqual(result.frame_count, 44144)
		buffer = ramp_buffer(44100, 44100)
		result = resample_buffer(buffer, 22050)
		self.assertEqual(result.frame_count, 22050)

	#============================================
	def test_chunking_does_not_change_output(self) -> None:
		buffer = ramp_buffer(997, 8000, channels=2)
		whole = Resampler().resample(buffer, 11025)
		chunked = Resampler(chunk_frames=17).resample(buffer, 11025)
		self.assertTrue(numpy.array_equal(whole.data, chunked.data))

	#============================================
	def test_invalid_rates(self) -> None:
		buffer = ramp_buffer(100, 1000)
		for rate in (0, -44100, 22050.5, None):
			with self.assertRaises(InvalidInputError):
				resample_buffer(buffer, rate)

	#============================================
	def test_safety_ceiling(self) -> None:
		buffer = ramp_buffer(1000, 1000)
		with self.assertRaises(AllocationFailedError) as context:
			resample_buffer(buffer, 48000, safety_max_samples=10000)
		self.assertEqual(context.exception.stage, "resampling")

	#============================================
	def test_choose_output_rate(self) -> None:
		self.assertEqual(choose_output_rate(48000, 60.0, "native"), 48000)
		self.assertEqual(choose_output_rate(48000, 60.0, "high"), 44100)
		self.assertEqual(choose_output_rate(48000, 3600.0, "high"), 44100)
		self.assertEqual(
			choose_output_rate(48000, 3600.0, "high", constrained=True), 22050)
		self.assertEqual(
			choose_output_rate(48000, 600.0, "high", constrained=True), 44100)
		with self.assertRaises(InvalidInputError):
			choose_output_rate(48000, 60.0, "studio")

#============================================

def main() -> None:
	"""Run the unit tests."""
	unittest.main()

#============================================

if __name__ == "__main__":
	main()
