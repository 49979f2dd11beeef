#!/usr/bin/env python3

"""
Rescale the pauses in a recording so it fits a target duration.
"""

# Standard Library
import os
import sys
import argparse

# PIP3 modules
from tqdm import tqdm

# local repo modules
from repauselib.audio import rescale
from repauselib.audio import silence
from repauselib.audio import wav
from repauselib.core import config as config_module
from repauselib.core import pipeline
from repauselib.core import utils
from repauselib.core.errors import CancelledError
from repauselib.core.errors import InvalidInputError
from repauselib.core.errors import RepauseError
from repauselib.media import ffmpeg_extract

#============================================

def parse_args(argv: list = None):
	"""
	Parse command-line arguments.

	Returns:
		argparse.Namespace: Parsed command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Shrink or stretch the pauses in a recording to hit a target length."
	)
	parser.add_argument(
		'-i', '--input', dest='input_file', required=True,
		help="Input audio or video file path."
	)
	parser.add_argument(
		'-o', '--output', dest='output_file', default=None,
		help="Output wav path, default is INPUT.repaused.wav."
	)
	target_group = parser.add_mutually_exclusive_group()
	target_group.add_argument(
		'-t', '--target-seconds', dest='target_seconds', type=float, default=None,
		help="Target output duration in seconds."
	)
	target_group.add_argument(
		'-M', '--target-minutes', dest='target_minutes', type=float, default=None,
		help="Target output duration in minutes."
	)
	parser.add_argument(
		'-a', '--threshold', dest='amplitude_threshold', type=float, default=None,
		help="Override silence amplitude threshold (0.0 to 1.0)."
	)
	parser.add_argument(
		'-s', '--min-silence', dest='min_silence', type=float, default=None,
		help="Override minimum silence seconds."
	)
	parser.add_argument(
		'-g', '--min-gap', dest='min_gap', type=float, default=None,
		help="Override minimum rescaled gap seconds."
	)
	parser.add_argument(
		'-e', '--equalize', dest='preserve_relative_pacing', action='store_false',
		help="Give every pause the same length."
	)
	parser.add_argument(
		'-p', '--preserve-pacing', dest='preserve_relative_pacing', action='store_true',
		help="Scale pauses proportionally to their original length."
	)
	parser.add_argument(
		'-r', '--sample-rate', dest='sample_rate', type=int, default=None,
		help="Force the output sample rate."
	)
	parser.add_argument(
		'-C', '--compatibility', dest='compatibility', default=None,
		choices=config_module.COMPATIBILITY_MODES,
		help="Output rate policy when no sample rate is forced."
	)
	parser.add_argument(
		'-P', '--profile', dest='device_profile', default=None,
		choices=tuple(config_module.DEVICE_PROFILES),
		help="Device profile for stride, timeout and memory defaults."
	)
	parser.add_argument(
		'-S', '--stride', dest='stride_samples', type=int, default=None,
		help="Inspect every Nth frame while detecting silence."
	)
	parser.add_argument(
		'-T', '--timeout', dest='timeout_seconds', type=float, default=None,
		help="Wall-clock ceiling for the run in seconds."
	)
	parser.add_argument(
		'-c', '--config', dest='config_file', default=None,
		help="Path to a repause config YAML."
	)
	parser.add_argument(
		'-w', '--write-config', dest='write_config', action='store_true',
		help="Write the merged config YAML next to the input and exit."
	)
	parser.add_argument(
		'-n', '--analyze', dest='analyze', action='store_true',
		help="Report detected silence and exit without writing audio."
	)
	parser.add_argument(
		'-k', '--keep-wav', dest='keep_wav', action='store_true',
		help="Keep the wav extracted from a non-wav input."
	)
	parser.add_argument(
		'-q', '--quiet', dest='quiet', action='store_true',
		help="Suppress status output and progress bars."
	)
	parser.set_defaults(preserve_relative_pacing=None)
	parser.set_defaults(keep_wav=False)
	parser.set_defaults(quiet=False)
	args = parser.parse_args(argv)
	return args

#============================================

def default_output_path(input_file: str) -> str:
	base, _ = os.path.splitext(input_file)
	return f"{base}.repaused.wav"

#============================================

def build_request(args) -> config_module.PipelineConfig:
	"""
	Merge defaults, config file, and command-line overrides.

	Args:
		args: Parsed arguments.

	Returns:
		PipelineConfig: Merged, unvalidated config.
	"""
	config_path = args.config_file
	if config_path is None:
		candidate = config_module.default_config_path(args.input_file)
		if os.path.isfile(candidate) and not args.write_config:
			config_path = candidate
	config = config_module.PipelineConfig()
	if config_path is not None:
		utils.echo(f"Config: {config_path}")
		data = config_module.load_config(config_path)
		config = config_module.build_config(data, config_path)
	overrides = {}
	if args.target_seconds is not None:
		overrides['target_duration'] = args.target_seconds
	if args.target_minutes is not None:
		overrides['target_duration'] = args.target_minutes * 60.0
	if args.amplitude_threshold is not None:
		overrides['amplitude_threshold'] = args.amplitude_threshold
	if args.min_silence is not None:
		overrides['min_silence_duration'] = args.min_silence
	if args.min_gap is not None:
		overrides['min_gap_duration'] = args.min_gap
	if args.preserve_relative_pacing is not None:
		overrides['preserve_relative_pacing'] = args.preserve_relative_pacing
	if args.sample_rate is not None:
		overrides['output_sample_rate'] = args.sample_rate
	if args.compatibility is not None:
		overrides['compatibility'] = args.compatibility
	if args.device_profile is not None:
		overrides['device_profile'] = args.device_profile
	if args.stride_samples is not None:
		overrides['stride_samples'] = args.stride_samples
	if args.timeout_seconds is not None:
		overrides['timeout_seconds'] = args.timeout_seconds
	return config.replace(**overrides)

#============================================

class ProgressBar():
	"""tqdm bar fed by pipeline progress events."""

	def __init__(self):
		self.bar = tqdm(total=100, unit='%', desc="Starting", leave=False)
		self.position = 0

	#============================
	def __call__(self, event: dict) -> None:
		self.bar.set_description(event.get('message', ''))
		percent = int(event.get('percent', self.position))
		if percent > self.position:
			self.bar.update(percent - self.position)
			self.position = percent

	#============================
	def close(self) -> None:
		self.bar.close()

#============================================

def print_analysis(buffer, intervals: list, config) -> dict:
	report = rescale.summarize(intervals, buffer, config.min_gap_duration)
	levels = silence.measure_levels(buffer)
	report.update(levels)
	print(f"Duration: {utils.format_duration(report['duration'])}"
		f" ({report['duration']:.2f}s)")
	print(f"Silence regions: {report['interval_count']}")
	print(f"Total silence: {report['total_silence']:.2f}s"
		f" ({report['silence_pct']:.1f}%)")
	print(f"Content: {report['content_duration']:.2f}s")
	print(f"Shortest reachable: {report['shortest_duration']:.2f}s"
		f" (about {report['min_target_minutes']} min)")
	if levels['peak_amp'] is not None:
		print(f"Peak amplitude: {levels['peak_amp']:.4f}"
			f"  RMS amplitude: {levels['rms_amp']:.4f}")
	for interval in intervals:
		print(f"  {utils.format_timestamp(interval.start_time)} -> "
			f"{utils.format_timestamp(interval.end_time)}"
			f"  {interval.duration:.2f}s")
	return report

#============================================

def print_summary(result, output_file: str, num_bytes: int) -> None:
	summary = result.summary()
	print(f"Input duration: {utils.format_duration(summary['input_duration'])}"
		f" ({summary['input_duration']:.2f}s)")
	print(f"Output duration: {utils.format_duration(summary['output_duration'])}"
		f" ({summary['output_duration']:.2f}s)")
	print(f"Gaps adjusted: {summary['gaps_adjusted']}")
	print(f"Sample rate: {summary['output_sample_rate']} Hz,"
		f" channels: {summary['channels']}")
	print(f"Wrote {output_file} ({utils.format_file_size(num_bytes)})")
	return

#============================================

def run(args) -> int:
	utils.set_quiet_mode(args.quiet)
	config = build_request(args)
	if args.write_config:
		config_path = args.config_file
		if config_path is None:
			config_path = config_module.default_config_path(args.input_file)
		config_module.write_config_file(config_path, config)
		print(f"Wrote config: {config_path}")
		return 0
	if not args.analyze:
		config.validate()
	utils.echo(f"Loading {args.input_file}")
	buffer = ffmpeg_extract.load_audio(args.input_file, keep_wav=args.keep_wav)
	utils.echo(f"Loaded {buffer.channel_count} channel(s) at {buffer.sample_rate} Hz,"
		f" {buffer.duration:.2f}s")
	if args.analyze:
		intervals = silence.detect_silence(buffer, config.amplitude_threshold,
			config.min_silence_duration,
			stride_samples=config.effective_stride_samples)
		print_analysis(buffer, intervals, config)
		return 0
	output_file = args.output_file
	if output_file is None:
		output_file = default_output_path(args.input_file)
	if os.path.abspath(output_file) == os.path.abspath(args.input_file):
		raise InvalidInputError("output file would overwrite the input",
			stage="cli", value=output_file)
	progress_bar = None
	if not utils.is_quiet_mode():
		progress_bar = ProgressBar()
		utils.set_progress_reporter(progress_bar)
	try:
		result = pipeline.process_buffer(buffer, config)
	finally:
		utils.clear_progress_reporter()
		if progress_bar is not None:
			progress_bar.close()
	num_bytes = wav.write_wav_bytes(output_file, result.wav_bytes)
	if not utils.is_quiet_mode():
		print_summary(result, output_file, num_bytes)
	return 0

#============================================

def main(argv: list = None) -> int:
	args = parse_args(argv)
	try:
		return run(args)
	except CancelledError as exc:
		print(f"cancelled: {exc}", file=sys.stderr)
		return 130
	except RepauseError as exc:
		print(f"error: {exc}", file=sys.stderr)
		return 1


if __name__ == '__main__':
	sys.exit(main())
