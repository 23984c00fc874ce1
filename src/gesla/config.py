"""
Project configuration.

Paths follow the repository layout (``config/``, ``data/``).
Runtime settings live in ``config/gesla_settings.yaml`` and are merged over
``DEFAULT_SETTINGS``, so a partial file only needs the keys it changes.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Project structure configuration
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

# Main directories
DATA_DIR = PROJECT_ROOT / "data"

SETTINGS_FILE = CONFIG_DIR / "gesla_settings.yaml"

DEFAULT_SETTINGS: Dict[str, Any] = {
    'data': {
        'directory': str(DATA_DIR / "gesla3"),
        'metadata_file': str(DATA_DIR / "GESLA3_ALL.csv"),
        'header_length': 41
    },
    'filters': {
        'gesla_removal': False,
        'contributor_removal': []
    },
    'loader': {
        'max_workers': None,
        'collision': 'raise',
        'on_error': 'raise'
    },
    'logging': {
        'level': 'INFO',
        'file': None
    }
}


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(settings_file: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """Load settings from YAML, falling back to the defaults.

    Args:
        settings_file: Path to a settings file. Defaults to SETTINGS_FILE.

    Returns:
        Settings dictionary with every default key present

    Raises:
        ConfigurationError: If the file exists but is not valid YAML
    """
    settings_file = Path(settings_file) if settings_file else SETTINGS_FILE

    if not settings_file.exists():
        logger.warning(f"Settings file {settings_file} not found, using defaults")
        return copy.deepcopy(DEFAULT_SETTINGS)

    try:
        with open(settings_file) as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.error(f"Error loading settings from {settings_file}: {e}")
        raise ConfigurationError(f"Invalid settings file {settings_file}: {e}")

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Settings file {settings_file} must contain a mapping")

    logger.debug(f"Loaded settings from {settings_file}")
    return _deep_merge(DEFAULT_SETTINGS, loaded)

