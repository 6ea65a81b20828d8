"""
Configuration loading and validation for sysimage.

Configuration is a plain dictionary with UPPER_CASE keys (see the CONFIG_KEY_*
constants). It can be built in code or loaded from a YAML file that lives in
the platformdirs user config directory.
"""

import os
import re
from typing import Any, Dict, Optional

import platformdirs
import yaml

from sysimage.constants import (
    APP_NAME,
    CONFIG_FILE_NAME,
    CONFIG_KEY_ALLOW_INSECURE,
    CONFIG_KEY_CACHE_TIME,
    CONFIG_KEY_DOWNLOAD_DIR,
    CONFIG_KEY_HOST,
    CONFIG_KEY_MAX_CONCURRENT,
    CONFIG_KEY_SERVE_STALE,
    DEFAULT_CACHE_TIME,
    DEFAULT_HOST,
    DEFAULT_MAX_CONCURRENT_DOWNLOADS,
    HOST_URL_PATTERN,
    INSECURE_SCHEME,
)
from sysimage.exceptions import ConfigFileError, ConfigurationError
from sysimage.log_utils import logger

_HOST_RX = re.compile(HOST_URL_PATTERN, re.IGNORECASE)


def get_config_file_path() -> str:
    """Return the platformdirs location of the sysimage YAML config file."""
    return os.path.join(platformdirs.user_config_dir(APP_NAME), CONFIG_FILE_NAME)


def get_default_download_dir() -> str:
    """Return the default root directory for downloaded artifacts."""
    return platformdirs.user_cache_dir(APP_NAME)


def config_exists(path: Optional[str] = None) -> bool:
    """Check whether a config file exists at `path` or at the default location."""
    return os.path.exists(path or get_config_file_path())


def load_config(path: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Load the sysimage configuration YAML.

    Parameters:
        path (str | None): Explicit config file path. When omitted, the
            platformdirs-managed config file is used.

    Returns:
        dict | None: The parsed configuration mapping, or None if no file exists.

    Raises:
        ConfigFileError: If the file cannot be read, is not valid YAML, or does
            not contain a mapping.
    """
    config_path = path or get_config_file_path()
    if not os.path.exists(config_path):
        logger.debug(f"No configuration file at {config_path}")
        return None

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigFileError(
            f"Could not load configuration from {config_path}", details=str(e)
        ) from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigFileError(
            f"Configuration in {config_path} must be a mapping",
            details=f"got {type(config).__name__}",
        )

    logger.debug(f"Loaded configuration from {config_path}")
    return config


def validate_host(host: str, allow_insecure: bool = False) -> str:
    """
    Validate a release server host and normalize it to end with a slash.

    Parameters:
        host (str): Base URL of the release server.
        allow_insecure (bool): Accept plain `http://` hosts when True.

    Returns:
        str: The host, guaranteed to end with "/".

    Raises:
        ConfigurationError: If the host is not a URL, or is insecure without
            the override.
    """
    if not isinstance(host, str) or not _HOST_RX.match(host):
        raise ConfigurationError("Host is not a valid URL!", details=repr(host))

    if not allow_insecure and host.lower().startswith(INSECURE_SCHEME):
        raise ConfigurationError("Insecure URL! Call with allow_insecure to ignore.")

    return host if host.endswith("/") else host + "/"


def _positive_int(config: Dict[str, Any], key: str, default: int) -> int:
    raw_value = config.get(key, default)
    try:
        value = int(raw_value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid {key} value", details=repr(raw_value)
        ) from e
    if value <= 0:
        raise ConfigurationError(f"{key} must be >= 1", details=repr(raw_value))
    return value


def resolve_config(config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Fill in defaults and validate a configuration mapping.

    Parameters:
        config (dict | None): User configuration; missing keys take defaults.

    Returns:
        dict: A new mapping with every CONFIG_KEY_* key present and the host
        normalized.

    Raises:
        ConfigurationError: On an invalid host or non-positive numeric option.
    """
    config = dict(config or {})
    allow_insecure = bool(config.get(CONFIG_KEY_ALLOW_INSECURE, False))

    return {
        CONFIG_KEY_HOST: validate_host(
            config.get(CONFIG_KEY_HOST) or DEFAULT_HOST, allow_insecure
        ),
        CONFIG_KEY_ALLOW_INSECURE: allow_insecure,
        CONFIG_KEY_CACHE_TIME: _positive_int(
            config, CONFIG_KEY_CACHE_TIME, DEFAULT_CACHE_TIME
        ),
        CONFIG_KEY_DOWNLOAD_DIR: str(
            config.get(CONFIG_KEY_DOWNLOAD_DIR) or get_default_download_dir()
        ),
        CONFIG_KEY_MAX_CONCURRENT: _positive_int(
            config, CONFIG_KEY_MAX_CONCURRENT, DEFAULT_MAX_CONCURRENT_DOWNLOADS
        ),
        CONFIG_KEY_SERVE_STALE: bool(config.get(CONFIG_KEY_SERVE_STALE, False)),
    }
