"""
Configuration loading for avalanche-installer.

The configuration is an optional flat YAML mapping of upper-case keys stored in
the platformdirs-managed config directory. Every key has a default, so a missing
file simply means "use the defaults".
"""

import os
from typing import Any, Dict, Optional

import platformdirs
import yaml

from avalanche_installer.constants import (
    APP_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_STORE_MAX_ATTEMPTS,
    DEFAULT_STORE_RETRY_DELAY,
    GITHUB_API_BASE,
    GITHUB_DOWNLOAD_BASE,
    GITHUB_TOKEN_ENV_VAR,
)
from avalanche_installer.exceptions import ConfigurationError
from avalanche_installer.log_utils import logger

CONFIG_DIR = platformdirs.user_config_dir(APP_NAME)
CONFIG_FILE = os.path.join(CONFIG_DIR, CONFIG_FILE_NAME)

KNOWN_KEYS = (
    "GITHUB_TOKEN",
    "GITHUB_API_BASE",
    "GITHUB_DOWNLOAD_BASE",
    "REQUEST_TIMEOUT",
    "RELEASE_MAX_ATTEMPTS",
    "RELEASE_RETRY_DELAY",
    "STORE_MAX_ATTEMPTS",
    "STORE_RETRY_DELAY",
    "S3_REGION",
    "S3_ENDPOINT_URL",
    "LOG_LEVEL",
    "LOG_DIR",
)


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the installer configuration YAML.

    Parameters:
        config_path (str | None): Explicit file to read; defaults to CONFIG_FILE.

    Returns:
        dict: The parsed mapping, or an empty dict when the file does not exist.

    Raises:
        ConfigurationError: If the file cannot be read, is not valid YAML, or is not a mapping.
    """
    path = config_path or CONFIG_FILE
    if not os.path.exists(path):
        logger.debug(f"No configuration file at {path}; using defaults")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Failed to load configuration from {path}", str(e)
        ) from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Configuration in {path} must be a mapping",
            f"got {type(config).__name__}",
        )

    unknown = sorted(str(key) for key in config if key not in KNOWN_KEYS)
    if unknown:
        logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")
    return config


def get_int_setting(
    config: Dict[str, Any], key: str, default: int, minimum: int = 1
) -> int:
    """
    Read an integer setting, using `default` when it is missing or invalid and clamping it to `minimum`.
    """
    raw_value = config.get(key, default)
    try:
        parsed_value = int(raw_value)
    except (TypeError, ValueError):
        logger.warning(
            "Invalid %s value %r; using default of %d", key, raw_value, default
        )
        return default

    if parsed_value < minimum:
        logger.warning(
            "%s must be >= %d; clamping %d to %d", key, minimum, parsed_value, minimum
        )
        return minimum
    return parsed_value


def get_float_setting(
    config: Dict[str, Any], key: str, default: float, minimum: float = 0.0
) -> float:
    """
    Read a float setting, using `default` when it is missing or invalid and clamping it to `minimum`.
    """
    raw_value = config.get(key, default)
    try:
        parsed_value = float(raw_value)
    except (TypeError, ValueError):
        logger.warning(
            "Invalid %s value %r; using default %.3f", key, raw_value, default
        )
        return default

    if parsed_value < minimum:
        logger.warning(
            "%s must be >= %.3f; clamping %.3f to %.3f",
            key,
            minimum,
            parsed_value,
            minimum,
        )
        return minimum
    return parsed_value


def get_effective_github_token(config: Dict[str, Any]) -> Optional[str]:
    """
    Determine the GitHub token to use, preferring the configuration over the environment.

    Returns:
        Optional[str]: The token with surrounding whitespace removed, or `None` if none is available.
    """
    candidate = str(config.get("GITHUB_TOKEN") or "").strip()
    if candidate:
        return candidate
    env_token = os.environ.get(GITHUB_TOKEN_ENV_VAR)
    return env_token.strip() if env_token and env_token.strip() else None


def get_api_base(config: Dict[str, Any]) -> str:
    return str(config.get("GITHUB_API_BASE") or GITHUB_API_BASE).rstrip("/")


def get_download_base(config: Dict[str, Any]) -> str:
    return str(config.get("GITHUB_DOWNLOAD_BASE") or GITHUB_DOWNLOAD_BASE).rstrip("/")


def get_request_timeout(config: Dict[str, Any]) -> float:
    return get_float_setting(
        config, "REQUEST_TIMEOUT", float(DEFAULT_REQUEST_TIMEOUT), minimum=1.0
    )


def get_store_retry_settings(config: Dict[str, Any]) -> tuple[int, float]:
    """Return (max_attempts, base_delay) for object-store calls."""
    return (
        get_int_setting(config, "STORE_MAX_ATTEMPTS", DEFAULT_STORE_MAX_ATTEMPTS),
        get_float_setting(config, "STORE_RETRY_DELAY", DEFAULT_STORE_RETRY_DELAY),
    )
