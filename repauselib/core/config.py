#!/usr/bin/env python3

"""
Pipeline configuration: defaults, device profiles, YAML config files,
and validation.

Precedence is defaults, then the YAML file, then explicit overrides
(normally command-line flags).
"""

# Standard Library
import math
import os

# PIP3 modules
import yaml

# local repo modules
from repauselib.core.errors import InvalidInputError

#============================================

CONFIG_VERSION = 1
STAGE = "config"

DEVICE_PROFILES = {
	'desktop': {
		'stride_samples': 1,
		'timeout_seconds': 600.0,
		# two hours of 48 kHz stereo
		'safety_max_samples': 48000 * 2 * 2 * 3600,
	},
	'constrained': {
		'stride_samples': 20,
		'timeout_seconds': 120.0,
		# 45 minutes of 22.05 kHz stereo
		'safety_max_samples': 22050 * 2 * 45 * 60,
	},
}

COMPATIBILITY_MODES = ('native', 'high')

#============================================

def coerce_bool(value, config_path: str, key_path: str) -> bool:
	"""
	Coerce a value to bool.

	Args:
		value: Raw value.
		config_path: Config file path.
		key_path: Key path string.

	Returns:
		bool: Coerced boolean.
	"""
	if isinstance(value, bool):
		return value
	if isinstance(value, int):
		return bool(value)
	if isinstance(value, str):
		normalized = value.strip().lower()
		if normalized in ("true", "yes", "1", "on"):
			return True
		if normalized in ("false", "no", "0", "off"):
			return False
	raise InvalidInputError(f"config {config_path}: {key_path} must be a boolean",
		stage=STAGE, value=value)

#============================================

def coerce_float(value, config_path: str, key_path: str) -> float:
	"""
	Coerce a value to float, passing None through.
	"""
	if value is None:
		return None
	if isinstance(value, bool):
		raise InvalidInputError(f"config {config_path}: {key_path} must be a number",
			stage=STAGE, value=value)
	if isinstance(value, (int, float)):
		return float(value)
	if isinstance(value, str):
		try:
			return float(value)
		except ValueError:
			pass
	raise InvalidInputError(f"config {config_path}: {key_path} must be a number",
		stage=STAGE, value=value)

#============================================

def coerce_int(value, config_path: str, key_path: str) -> int:
	"""
	Coerce a value to int, passing None through.
	"""
	if value is None:
		return None
	if isinstance(value, bool):
		raise InvalidInputError(f"config {config_path}: {key_path} must be an integer",
			stage=STAGE, value=value)
	if isinstance(value, int):
		return value
	if isinstance(value, float):
		return int(value)
	if isinstance(value, str):
		try:
			return int(float(value))
		except ValueError:
			pass
	raise InvalidInputError(f"config {config_path}: {key_path} must be an integer",
		stage=STAGE, value=value)

#============================================

class PipelineConfig():
	"""
	One validated request for the pause rescaling pipeline.

	Profile-dependent fields (stride, timeout, safety ceiling) may be left
	as None; the effective_* properties fill them from the device profile.
	"""

	def __init__(self, target_duration: float = None,
		amplitude_threshold: float = 0.01, min_silence_duration: float = 3.0,
		min_gap_duration: float = 1.5, preserve_relative_pacing: bool = True,
		output_sample_rate: int = None, safety_max_samples: int = None,
		stride_samples: int = None, timeout_seconds: float = None,
		device_profile: str = 'desktop', compatibility: str = 'native',
		scale_factor: float = None):
		self.target_duration = target_duration
		self.amplitude_threshold = amplitude_threshold
		self.min_silence_duration = min_silence_duration
		self.min_gap_duration = min_gap_duration
		self.preserve_relative_pacing = preserve_relative_pacing
		self.output_sample_rate = output_sample_rate
		self.safety_max_samples = safety_max_samples
		self.stride_samples = stride_samples
		self.timeout_seconds = timeout_seconds
		self.device_profile = device_profile
		self.compatibility = compatibility
		self.scale_factor = scale_factor

	#============================
	@property
	def profile(self) -> dict:
		return DEVICE_PROFILES[self.device_profile]

	#============================
	@property
	def constrained(self) -> bool:
		return self.device_profile == 'constrained'

	#============================
	@property
	def effective_stride_samples(self) -> int:
		if self.stride_samples is not None:
			return self.stride_samples
		return self.profile['stride_samples']

	#============================
	@property
	def effective_timeout_seconds(self) -> float:
		if self.timeout_seconds is not None:
			return self.timeout_seconds
		return self.profile['timeout_seconds']

	#============================
	@property
	def effective_safety_max_samples(self) -> int:
		if self.safety_max_samples is not None:
			return self.safety_max_samples
		return self.profile['safety_max_samples']

	#============================
	def validate(self) -> None:
		if self.device_profile not in DEVICE_PROFILES:
			raise InvalidInputError(
				f"device_profile must be one of {', '.join(DEVICE_PROFILES)}",
				stage=STAGE, value=self.device_profile)
		if self.compatibility not in COMPATIBILITY_MODES:
			raise InvalidInputError("compatibility must be native or high",
				stage=STAGE, value=self.compatibility)
		if self.scale_factor is not None:
			_require_positive(self.scale_factor, 'scale_factor')
		elif self.target_duration is None:
			raise InvalidInputError("target_duration is required",
				stage=STAGE, value=None)
		if self.target_duration is not None:
			_require_positive(self.target_duration, 'target_duration')
		_require_non_negative(self.amplitude_threshold, 'amplitude_threshold')
		_require_non_negative(self.min_silence_duration, 'min_silence_duration')
		_require_non_negative(self.min_gap_duration, 'min_gap_duration')
		if not isinstance(self.preserve_relative_pacing, bool):
			raise InvalidInputError("preserve_relative_pacing must be a boolean",
				stage=STAGE, value=self.preserve_relative_pacing)
		if self.output_sample_rate is not None:
			_require_whole_positive(self.output_sample_rate, 'output_sample_rate')
		_require_whole_positive(self.effective_safety_max_samples, 'safety_max_samples')
		_require_whole_positive(self.effective_stride_samples, 'stride_samples')
		if self.effective_timeout_seconds is not None:
			_require_positive(self.effective_timeout_seconds, 'timeout_seconds')

	#============================
	def to_dict(self) -> dict:
		return {
			'target_duration': self.target_duration,
			'scale_factor': self.scale_factor,
			'amplitude_threshold': self.amplitude_threshold,
			'min_silence_duration': self.min_silence_duration,
			'min_gap_duration': self.min_gap_duration,
			'preserve_relative_pacing': self.preserve_relative_pacing,
			'output_sample_rate': self.output_sample_rate,
			'compatibility': self.compatibility,
			'device_profile': self.device_profile,
			'stride_samples': self.stride_samples,
			'timeout_seconds': self.timeout_seconds,
			'safety_max_samples': self.safety_max_samples,
		}

	#============================
	def replace(self, **overrides):
		values = self.to_dict()
		for key, value in overrides.items():
			if key not in values:
				raise InvalidInputError(f"unknown config field: {key}",
					stage=STAGE, value=key)
			values[key] = value
		return PipelineConfig(**values)

#============================================

def _require_number(value, name: str) -> None:
	if isinstance(value, bool) or not isinstance(value, (int, float)):
		raise InvalidInputError(f"{name} must be a number", stage=STAGE, value=value)
	if not math.isfinite(value):
		raise InvalidInputError(f"{name} must be finite", stage=STAGE, value=value)

#============================================

def _require_positive(value, name: str) -> None:
	_require_number(value, name)
	if value <= 0:
		raise InvalidInputError(f"{name} must be positive", stage=STAGE, value=value)

#============================================

def _require_non_negative(value, name: str) -> None:
	_require_number(value, name)
	if value < 0:
		raise InvalidInputError(f"{name} must be >= 0", stage=STAGE, value=value)

#============================================

def _require_whole_positive(value, name: str) -> None:
	_require_positive(value, name)
	if int(value) != value:
		raise InvalidInputError(f"{name} must be a whole number",
			stage=STAGE, value=value)

#============================================

def default_config_path(input_file: str) -> str:
	return f"{input_file}.repause.config.yaml"

#============================================

def load_config(config_path: str) -> dict:
	"""
	Load a config file from disk.

	Args:
		config_path: Config file path.

	Returns:
		dict: Parsed config mapping.
	"""
	if not os.path.isfile(config_path):
		raise InvalidInputError(f"config file not found: {config_path}",
			stage=STAGE, value=config_path)
	with open(config_path, 'r', encoding='utf-8') as handle:
		data = yaml.safe_load(handle)
	if not isinstance(data, dict):
		raise InvalidInputError("config file must be a mapping",
			stage=STAGE, value=config_path)
	if data.get('repause') != CONFIG_VERSION:
		raise InvalidInputError(f"config file must set repause: {CONFIG_VERSION}",
			stage=STAGE, value=data.get('repause'))
	return data

#============================================

def _section(settings: dict, name: str, config_path: str) -> dict:
	section = settings.get(name)
	if section is None:
		return {}
	if not isinstance(section, dict):
		raise InvalidInputError(f"config {config_path}: settings.{name} must be a mapping",
			stage=STAGE, value=section)
	return section

#============================================

def build_config(data: dict, config_path: str = "<defaults>",
	base: PipelineConfig = None) -> PipelineConfig:
	"""
	Merge a parsed config mapping over defaults.

	Args:
		data: Mapping from load_config(), or {} for defaults.
		config_path: Path used in error messages.
		base: Starting config, defaults when None.

	Returns:
		PipelineConfig: Unvalidated merged config.
	"""
	config = base if base is not None else PipelineConfig()
	values = config.to_dict()
	settings = {}
	if isinstance(data, dict):
		settings = data.get('settings') or {}
	if not isinstance(settings, dict):
		raise InvalidInputError(f"config {config_path}: settings must be a mapping",
			stage=STAGE, value=settings)
	detection = _section(settings, 'detection', config_path)
	rescale = _section(settings, 'rescale', config_path)
	output = _section(settings, 'output', config_path)
	runtime = _section(settings, 'runtime', config_path)
	if 'amplitude_threshold' in detection:
		values['amplitude_threshold'] = coerce_float(detection['amplitude_threshold'],
			config_path, "settings.detection.amplitude_threshold")
	if 'min_silence' in detection:
		values['min_silence_duration'] = coerce_float(detection['min_silence'],
			config_path, "settings.detection.min_silence")
	if 'stride_samples' in detection:
		values['stride_samples'] = coerce_int(detection['stride_samples'],
			config_path, "settings.detection.stride_samples")
	if 'target_duration' in rescale:
		values['target_duration'] = coerce_float(rescale['target_duration'],
			config_path, "settings.rescale.target_duration")
	if 'scale_factor' in rescale:
		values['scale_factor'] = coerce_float(rescale['scale_factor'],
			config_path, "settings.rescale.scale_factor")
	if 'min_gap' in rescale:
		values['min_gap_duration'] = coerce_float(rescale['min_gap'],
			config_path, "settings.rescale.min_gap")
	if 'preserve_relative_pacing' in rescale:
		values['preserve_relative_pacing'] = coerce_bool(
			rescale['preserve_relative_pacing'], config_path,
			"settings.rescale.preserve_relative_pacing")
	if 'sample_rate' in output:
		values['output_sample_rate'] = coerce_int(output['sample_rate'],
			config_path, "settings.output.sample_rate")
	if 'compatibility' in output:
		values['compatibility'] = str(output['compatibility']).strip().lower()
	if 'device_profile' in runtime:
		values['device_profile'] = str(runtime['device_profile']).strip().lower()
	if 'timeout_seconds' in runtime:
		values['timeout_seconds'] = coerce_float(runtime['timeout_seconds'],
			config_path, "settings.runtime.timeout_seconds")
	if 'safety_max_samples' in runtime:
		values['safety_max_samples'] = coerce_int(runtime['safety_max_samples'],
			config_path, "settings.runtime.safety_max_samples")
	return PipelineConfig(**values)

#============================================

def _yaml_value(value) -> str:
	if value is None:
		return "null"
	if isinstance(value, bool):
		return str(value).lower()
	return str(value)

#============================================

def build_config_text(config: PipelineConfig) -> str:
	"""
	Build YAML text for a config file.

	Args:
		config: Config to serialize.

	Returns:
		str: YAML content.
	"""
	lines = []
	lines.append(f"repause: {CONFIG_VERSION}")
	lines.append("settings:")
	lines.append("  detection:")
	lines.append(f"    amplitude_threshold: {_yaml_value(config.amplitude_threshold)}")
	lines.append(f"    min_silence: {_yaml_value(config.min_silence_duration)}")
	lines.append("    # null uses the device profile stride")
	lines.append(f"    stride_samples: {_yaml_value(config.stride_samples)}")
	lines.append("  rescale:")
	lines.append(f"    target_duration: {_yaml_value(config.target_duration)}")
	lines.append(f"    scale_factor: {_yaml_value(config.scale_factor)}")
	lines.append(f"    min_gap: {_yaml_value(config.min_gap_duration)}")
	lines.append(
		f"    preserve_relative_pacing: {_yaml_value(config.preserve_relative_pacing)}"
	)
	lines.append("  output:")
	lines.append(f"    sample_rate: {_yaml_value(config.output_sample_rate)}")
	lines.append(f"    compatibility: {_yaml_value(config.compatibility)}")
	lines.append("  runtime:")
	lines.append(f"    device_profile: {_yaml_value(config.device_profile)}")
	lines.append(f"    timeout_seconds: {_yaml_value(config.timeout_seconds)}")
	lines.append(f"    safety_max_samples: {_yaml_value(config.safety_max_samples)}")
	lines.append("")
	return "\n".join(lines)

#============================================

def write_config_file(config_path: str, config: PipelineConfig) -> None:
	text = build_config_text(config)
	os.makedirs(os.path.dirname(config_path) or '.', exist_ok=True)
	with open(config_path, 'w', encoding='utf-8') as handle:
		handle.write(text)
	return
