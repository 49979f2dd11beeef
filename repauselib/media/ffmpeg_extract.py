#!/usr/bin/env python3

import os
from repauselib.audio import wav
from repauselib.core import utils

#============================================

WAV_EXTENSIONS = ('.wav', '.wave')

#============================================

def extract_audio(input_file: str, wav_path: str, sample_rate: int = None,
	channels: int = None) -> str:
	utils.check_dependency("ffmpeg")
	cmd = [
		"ffmpeg", "-y", "-hide_banner", "-loglevel", "error",
		"-i", input_file,
		"-vn", "-sn",
		"-acodec", "pcm_s16le",
	]
	if sample_rate is not None:
		cmd += ["-ar", str(int(sample_rate))]
	if channels is not None:
		cmd += ["-ac", str(int(channels))]
	cmd.append(wav_path)
	utils.run_process(cmd, capture_output=True)
	if not os.path.isfile(wav_path):
		raise RuntimeError("audio extraction failed")
	return wav_path

#============================================

def load_audio(input_file: str, keep_wav: bool = False):
	utils.ensure_file_exists(input_file)
	extension = os.path.splitext(input_file)[1].lower()
	if extension in WAV_EXTENSIONS:
		return wav.read_wav(input_file)
	temp_wav = utils.make_temp_wav()
	try:
		extract_audio(input_file, temp_wav)
		return wav.read_wav(temp_wav)
	finally:
		if keep_wav:
			utils.echo(f"Extracted wav kept: {temp_wav}")
		elif os.path.exists(temp_wav):
			os.remove(temp_wav)
