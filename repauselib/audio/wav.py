#!/usr/bin/env python3

"""
Canonical 16-bit PCM RIFF/WAVE encoding and PCM WAV decoding.

The encoder writes the classic 44-byte header (RIFF, a 16-byte fmt
chunk, then data) followed by interleaved little-endian int16 samples.
Floats are clamped to [-1, 1] and scaled by 32767 before rounding.
"""

# Standard Library
import io
import os
import struct
import wave

# PIP3 modules
import numpy

# local repo modules
from repauselib.audio.buffer import SampleBuffer
from repauselib.core.control import resolve_control
from repauselib.core.errors import BufferTooLargeError
from repauselib.core.errors import InvalidInputError

#============================================

STAGE = "encoding"
HEADER_SIZE = 44
PCM_SCALE = 32767
BYTES_PER_SAMPLE = 2
MAX_UINT32 = 0xFFFFFFFF
MAX_UINT16 = 0xFFFF
DEFAULT_CHUNK_FRAMES = 1 << 18
HEADER_STRUCT = struct.Struct('<4sI4s4sIHHIIHH4sI')

#============================================

def build_wav_header(channel_count: int, sample_rate: int, data_size: int) -> bytes:
	"""
	Pack the 44-byte PCM header.

	Args:
		channel_count: Interleaved channels.
		sample_rate: Frames per second.
		data_size: Byte length of the sample data.

	Returns:
		bytes: Header bytes.
	"""
	block_align = channel_count * BYTES_PER_SAMPLE
	byte_rate = sample_rate * block_align
	if channel_count > MAX_UINT16 or block_align > MAX_UINT16:
		raise BufferTooLargeError("channel count does not fit the WAV header",
			stage=STAGE, value=channel_count)
	if byte_rate > MAX_UINT32:
		raise BufferTooLargeError("byte rate does not fit the WAV header",
			stage=STAGE, value=byte_rate)
	if 36 + data_size > MAX_UINT32:
		raise BufferTooLargeError(
			f"{data_size} bytes of audio overflow the 32-bit RIFF size field",
			stage=STAGE, value=data_size)
	return HEADER_STRUCT.pack(
		b'RIFF', 36 + data_size, b'WAVE',
		b'fmt ', 16, 1, channel_count, sample_rate, byte_rate,
		block_align, 16,
		b'data', data_size,
	)

#============================================

def parse_wav_header(data: bytes) -> dict:
	"""
	Unpack the first 44 bytes of a canonical WAV.

	Args:
		data: WAV bytes.

	Returns:
		dict: Header fields by name.
	"""
	if len(data) < HEADER_SIZE:
		raise InvalidInputError("data is shorter than a WAV header",
			stage="decoding", value=len(data))
	fields = HEADER_STRUCT.unpack(bytes(data[:HEADER_SIZE]))
	names = ('chunk_id', 'chunk_size', 'format', 'subchunk1_id',
		'subchunk1_size', 'audio_format', 'num_channels', 'sample_rate',
		'byte_rate', 'block_align', 'bits_per_sample', 'subchunk2_id',
		'subchunk2_size')
	return dict(zip(names, fields))

#============================================

def float_to_pcm16(samples: numpy.ndarray) -> numpy.ndarray:
	values = numpy.nan_to_num(samples.astype(numpy.float64), nan=0.0,
		posinf=1.0, neginf=-1.0)
	values = numpy.clip(values, -1.0, 1.0)
	return numpy.rint(values * PCM_SCALE).astype('<i2')

#============================================

class WavEncoder():
	"""Serializes SampleBuffers as 16-bit PCM WAV."""

	def __init__(self, chunk_frames: int = DEFAULT_CHUNK_FRAMES):
		self.chunk_frames = max(1, int(chunk_frames))

	#============================
	def encoded_size(self, buffer: SampleBuffer) -> int:
		return HEADER_SIZE + buffer.frame_count * buffer.channel_count * BYTES_PER_SAMPLE

	#============================
	def encode(self, buffer: SampleBuffer, progress=None, control=None) -> bytes:
		"""
		Encode a buffer to WAV bytes.

		Args:
			buffer: Buffer to encode.
			progress: Optional callable taking a 0..1 fraction.
			control: Optional RunControl.

		Returns:
			bytes: Complete WAV file contents.
		"""
		if buffer.channel_count == 0:
			raise InvalidInputError("buffer has no channels", stage=STAGE, value=0)
		control = resolve_control(control)
		frame_count = buffer.frame_count
		data_size = frame_count * buffer.channel_count * BYTES_PER_SAMPLE
		header = build_wav_header(buffer.channel_count, buffer.sample_rate, data_size)
		output = bytearray(HEADER_SIZE + data_size)
		output[:HEADER_SIZE] = header
		block_align = buffer.channel_count * BYTES_PER_SAMPLE
		source = buffer.data
		for chunk_start in range(0, frame_count, self.chunk_frames):
			control.checkpoint(STAGE)
			chunk_end = min(frame_count, chunk_start + self.chunk_frames)
			pcm = float_to_pcm16(source[:, chunk_start:chunk_end])
			offset = HEADER_SIZE + chunk_start * block_align
			payload = pcm.T.tobytes()
			output[offset:offset + len(payload)] = payload
			if progress is not None:
				progress(chunk_end / float(frame_count))
		if progress is not None and frame_count == 0:
			progress(1.0)
		return bytes(output)

#============================================

def encode_wav(buffer: SampleBuffer, progress=None, control=None) -> bytes:
	return WavEncoder().encode(buffer, progress=progress, control=control)

#============================================

def write_wav(path: str, buffer: SampleBuffer) -> int:
	"""
	Encode and write a buffer to disk.

	Args:
		path: Output path.
		buffer: Buffer to write.

	Returns:
		int: Bytes written.
	"""
	return write_wav_bytes(path, encode_wav(buffer))

#============================================

def write_wav_bytes(path: str, data: bytes) -> int:
	os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
	with open(path, 'wb') as handle:
		handle.write(data)
	return len(data)

#============================================

def _wav_to_buffer(wav_handle) -> SampleBuffer:
	channels = wav_handle.getnchannels()
	sample_rate = wav_handle.getframerate()
	sample_width = wav_handle.getsampwidth()
	total_frames = wav_handle.getnframes()
	if channels <= 0:
		raise InvalidInputError("wav channel count must be positive",
			stage="decoding", value=channels)
	if sample_rate <= 0:
		raise InvalidInputError("wav sample rate must be positive",
			stage="decoding", value=sample_rate)
	dtype_map = {
		1: numpy.dtype('u1'),
		2: numpy.dtype('<i2'),
		4: numpy.dtype('<i4'),
	}
	if sample_width not in dtype_map:
		raise InvalidInputError("unsupported wav sample width",
			stage="decoding", value=sample_width)
	raw = wav_handle.readframes(total_frames)
	samples = numpy.frombuffer(raw, dtype=dtype_map[sample_width])
	if sample_width == 1:
		values = (samples.astype(numpy.float64) - 128.0) / 127.0
	else:
		full_scale = float(2 ** (8 * sample_width - 1) - 1)
		values = samples.astype(numpy.float64) / full_scale
	values = numpy.clip(values, -1.0, 1.0)
	return SampleBuffer.from_interleaved(values, channels, sample_rate)

#============================================

def decode_wav(data: bytes) -> SampleBuffer:
	"""
	Decode PCM WAV bytes (8, 16 or 32 bit) into a float buffer.

	Args:
		data: WAV file contents.

	Returns:
		SampleBuffer: Decoded samples, 16-bit values divided by 32767.
	"""
	try:
		with wave.open(io.BytesIO(data), 'rb') as wav_handle:
			return _wav_to_buffer(wav_handle)
	except (wave.Error, EOFError) as exc:
		raise InvalidInputError(f"not a readable PCM wav: {exc}",
			stage="decoding", value=None) from exc

#============================================

def read_wav(path: str) -> SampleBuffer:
	try:
		with wave.open(path, 'rb') as wav_handle:
			return _wav_to_buffer(wav_handle)
	except (wave.Error, EOFError) as exc:
		raise InvalidInputError(f"not a readable PCM wav: {path}: {exc}",
			stage="decoding", value=path) from exc
