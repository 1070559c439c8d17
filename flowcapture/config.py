import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = 'config/default_config.yaml'

DEFAULT_CONFIG: Dict[str, Any] = {
    'sampling': {
        'time_step': 0.4,
        'detection_scale': 0.25,
        'frame_wait_timeout': 0.25,
        'export_wait_timeout': 2.0
    },
    'detection': {
        'diff_stride': 20,
        'hard_threshold': 6,
        'soft_threshold': 3,
        'low_threshold': 2,
        'min_capture_gap': 0.3
    },
    'output': {
        'directory': 'output',
        'quality': 0.92,
        'archive_name': 'ui_flows.zip',
        'flat_archive_name': 'video_screenshots.zip',
        'flat': False,
        'save_frames': False,
        'include_metadata': True
    },
    'input': {
        'supported_formats': ['.mp4', '.mov', '.avi', '.mkv', '.webm', '.m4v']
    },
    'processing': {
        'log_level': 'INFO',
        'log_file': None,
        'log_max_bytes': 10 * 1024 * 1024,
        'log_backup_count': 5
    }
}

# Environment variable -> (section, key, type)
ENV_OVERRIDES = {
    'OUTPUT_DIR': ('output', 'directory', str),
    'LOG_LEVEL': ('processing', 'log_level', str),
    'LOG_FILE': ('processing', 'log_file', str),
    'TIME_STEP': ('sampling', 'time_step', float),
    'DETECTION_SCALE': ('sampling', 'detection_scale', float),
    'FRAME_WAIT_TIMEOUT': ('sampling', 'frame_wait_timeout', float),
    'EXPORT_QUALITY': ('output', 'quality', float),
}


def merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge `overrides` into a copy of `base`."""
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if value is None and isinstance(merged.get(key), dict):
            # An empty section keeps its defaults
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from a YAML file, layered over the defaults.

    A missing file yields the defaults; a malformed one raises ValueError.
    """
    if config_path is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    config_path = Path(config_path)
    if not config_path.exists():
        logger.warning(f"Config file {config_path} not found, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Error loading config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")
    return merge_config(DEFAULT_CONFIG, data)


def apply_env_overrides(config: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Override config values from environment variables."""
    if environ is None:
        environ = os.environ

    for name, (section, key, cast) in ENV_OVERRIDES.items():
        value = environ.get(name)
        if value:
            try:
                config.setdefault(section, {})[key] = cast(value)
            except ValueError:
                logger.warning(f"Ignoring invalid value for {name}: {value!r}")
    return config


def validate_config(config: Dict[str, Any]) -> None:
    """Check tunables that would make a run meaningless."""
    sampling = config['sampling']
    detection = config['detection']
    if sampling['time_step'] <= 0:
        raise ValueError(f"time_step must be positive, got {sampling['time_step']}")
    if not 0 < sampling['detection_scale'] <= 1:
        raise ValueError(f"detection_scale must be within (0, 1], got {sampling['detection_scale']}")
    if sampling['frame_wait_timeout'] <= 0:
        raise ValueError(f"frame_wait_timeout must be positive, got {sampling['frame_wait_timeout']}")
    if sampling.get('export_wait_timeout', 2.0) <= 0:
        raise ValueError(f"export_wait_timeout must be positive, got {sampling['export_wait_timeout']}")
    if detection['diff_stride'] < 1:
        raise ValueError(f"diff_stride must be at least 1, got {detection['diff_stride']}")
    if not detection['low_threshold'] <= detection['soft_threshold'] <= detection['hard_threshold']:
        raise ValueError("Thresholds must satisfy low <= soft <= hard")
    if not 0 <= config['output']['quality'] <= 1:
        raise ValueError(f"quality must be within 0..1, got {config['output']['quality']}")
