#!/usr/bin/env python3

import math
import os
import shlex
import shutil
import subprocess
import tempfile

#============================================

_QUIET_MODE = False
_PROGRESS_REPORTER = None

#============================================

def set_quiet_mode(enabled: bool) -> None:
	global _QUIET_MODE
	_QUIET_MODE = bool(enabled)
	return

#============================================

def is_quiet_mode() -> bool:
	return _QUIET_MODE

#============================================

def echo(text: str) -> None:
	if _QUIET_MODE:
		return
	print(text)
	return

#============================================

def set_progress_reporter(reporter) -> None:
	global _PROGRESS_REPORTER
	_PROGRESS_REPORTER = reporter
	return

#============================================

def clear_progress_reporter() -> None:
	global _PROGRESS_REPORTER
	_PROGRESS_REPORTER = None
	return

#============================================

def report_progress(event: dict) -> None:
	reporter = _PROGRESS_REPORTER
	if reporter is None:
		return
	reporter(event)
	return

#============================================

def run_process(cmd: list, capture_output: bool = True) -> subprocess.CompletedProcess:
	showcmd = shlex.join(cmd)
	echo(f"CMD: '{showcmd}'")
	proc = subprocess.run(cmd, capture_output=capture_output, text=True)
	if proc.returncode != 0:
		stderr_text = ""
		if proc.stderr is not None:
			stderr_text = proc.stderr.strip()
		raise RuntimeError(f"command failed: {showcmd}\n{stderr_text}")
	return proc

#============================================

def check_dependency(cmd_name: str) -> None:
	if shutil.which(cmd_name) is None:
		raise RuntimeError(f"missing dependency: {cmd_name}")
	return

#============================================

def ensure_file_exists(filepath: str) -> None:
	if not os.path.isfile(filepath):
		raise RuntimeError(f"file not found: {filepath}")
	return

#============================================

def make_temp_wav(prefix: str = "repause-") -> str:
	temp_handle, temp_path = tempfile.mkstemp(prefix=prefix, suffix=".wav")
	os.close(temp_handle)
	return temp_path

#============================================

def seconds_to_samples(seconds: float, sample_rate: int) -> int:
	# floor, matching how gap lengths are written into the output buffer
	return int(math.floor(seconds * sample_rate))

#============================================

def format_duration(seconds: float) -> str:
	if seconds is None or seconds < 0:
		seconds = 0.0
	minutes = int(seconds // 60)
	remaining = int(seconds % 60)
	return f"{minutes}:{remaining:02d}"

#============================================

def format_timestamp(seconds: float) -> str:
	if seconds < 0:
		seconds = 0.0
	millis = int(round(seconds * 1000.0))
	hours = millis // 3600000
	millis -= hours * 3600000
	minutes = millis // 60000
	millis -= minutes * 60000
	secs = millis // 1000
	millis -= secs * 1000
	return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"

#============================================

def format_file_size(num_bytes: int) -> str:
	if num_bytes <= 0:
		return "0 Bytes"
	units = ["Bytes", "KB", "MB", "GB"]
	index = int(math.floor(math.log(num_bytes) / math.log(1024)))
	index = min(index, len(units) - 1)
	value = num_bytes / float(1024 ** index)
	text = f"{value:.2f}".rstrip('0').rstrip('.')
	return f"{text} {units[index]}"
