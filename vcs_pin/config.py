"""Configuration management for vcs-pin.

Settings are resolved through a fallback chain: environment variable, then
an options object handed over by the host tool via ``initialize()``, then an
INI config file named by ``VCS_PIN_CONFIG``, then the built-in default.
"""

from __future__ import annotations

import configparser
import logging
import os
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

CONFIG_SECTION = "vcs_pin"
DEFAULT_OUTPUT_LIMIT = 1024 * 1024

# Module-level config cache
_config: Optional[Dict[str, Any]] = None
_options: Optional[Any] = None  # Host tool options object


def initialize(options: Any) -> None:
    """Initialize config module with the host tool's options object.

    Attributes named ``vcs_pin_<key>`` on the object take precedence over the
    config file.

    Args:
        options: Parsed options object from the calling tool
    """
    global _options
    _options = options
    logger.debug("Config module initialized with options object")


def _parse_config_file(config_file: Optional[str] = None) -> Dict[str, Any]:
    """Parse the [vcs_pin] section of an INI config file.

    Args:
        config_file: Path to config file. If None, nothing is read.

    Returns:
        Dict of raw string values, empty when the file or section is missing
    """
    if not config_file:
        return {}

    parser = configparser.ConfigParser()
    try:
        read = parser.read(config_file)
    except configparser.Error as exc:
        logger.warning("Failed to parse config file %s: %s", config_file, exc)
        return {}

    if not read:
        logger.debug("Config file %s not readable, using defaults", config_file)
        return {}
    if not parser.has_section(CONFIG_SECTION):
        return {}
    return dict(parser.items(CONFIG_SECTION))


def _get_config() -> Dict[str, Any]:
    """Get parsed config dict, initializing if needed."""
    global _config
    if _config is None:
        config_file = os.environ.get("VCS_PIN_CONFIG")
        _config = _parse_config_file(config_file)
    return _config


def _get_config_value(
    key: str,
    default: Any,
    env_var: Optional[str] = None,
    converter: Optional[Callable[[Any], Any]] = None,
) -> Any:
    """Get config value with fallback chain: env var, options, config file, default.

    Args:
        key: Config key name (in [vcs_pin] section)
        default: Default value if not found
        env_var: Optional environment variable name (e.g., VCS_PIN_KEY)
        converter: Optional function to convert string value (e.g., int, bool)

    Returns:
        Config value (converted if converter provided)
    """
    if env_var:
        env_value = os.environ.get(env_var)
        if env_value is not None:
            if converter:
                try:
                    return converter(env_value)
                except (ValueError, TypeError):
                    logger.warning(
                        "Invalid value for %s: %s, using default", env_var, env_value
                    )
                    return default
            return env_value

    if _options is not None:
        option_key = f"vcs_pin_{key}"
        if hasattr(_options, option_key):
            value = getattr(_options, option_key)
            if converter:
                try:
                    return converter(value)
                except (ValueError, TypeError):
                    logger.warning("Invalid value for %s: %s, using default", key, value)
                    return default
            return value

    config = _get_config()
    value = config.get(key)
    if value is not None:
        if converter:
            try:
                return converter(value)
            except (ValueError, TypeError):
                logger.warning(
                    "Invalid value for config key %s: %s, using default", key, value
                )
                return default
        return value

    return default


def _parse_bool(value: Any) -> bool:
    """Parse boolean value from config (string or bool).

    Accepts: True, "true", "True", "1", "yes", "on" -> True
             anything else -> False
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _parse_size(value: Any) -> int:
    """Parse a non-negative byte count."""
    size = int(value)
    if size < 0:
        raise ValueError(f"negative size: {value}")
    return size


def vcs_pin_default_tool() -> str:
    """Tool id of the backend used when a locator matches no backend."""
    return _get_config_value(
        "default_tool",
        "git",
        env_var="VCS_PIN_DEFAULT_TOOL",
    )


def vcs_pin_default_branch() -> str:
    """Reference cloned before pinning a ``sha:`` version (default: master)."""
    return _get_config_value(
        "default_branch",
        "master",
        env_var="VCS_PIN_DEFAULT_BRANCH",
    )


def vcs_pin_verbose() -> bool:
    """Emit failure diagnostics from verbose-only commands."""
    return _get_config_value(
        "verbose",
        False,
        env_var="VCS_PIN_VERBOSE",
        converter=_parse_bool,
    )


def vcs_pin_output_limit() -> int:
    """Maximum bytes of captured command output kept in memory.

    0 disables the limit.
    """
    return _get_config_value(
        "output_limit",
        DEFAULT_OUTPUT_LIMIT,
        env_var="VCS_PIN_OUTPUT_LIMIT",
        converter=_parse_size,
    )


def vcs_pin_help_url() -> str:
    """Help reference printed when a backend tool is missing."""
    return _get_config_value(
        "help_url",
        "http://golang.org/s/gogetcmd",
        env_var="VCS_PIN_HELP_URL",
    )


def reset_config() -> None:
    """Reset config cache (useful for testing)."""
    global _config, _options
    _config = None
    _options = None
