"""Type utilities for configuration processing.

This module provides utilities for type conversion and validation of values
read from configuration files and environment variables.
"""

from .exceptions import ConfigError


def normalize_value(value):
    """
    Strip whitespace and surrounding quotes from a string value.

    Docker's ``--env-file`` keeps the quotes written in ``.env`` files, which
    breaks authentication. Blank values become ``None``.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value

    value = value.strip()
    while value and (value[0] in "\"'" or value[-1] in "\"'"):
        stripped = value.strip('"').strip("'")
        if stripped == value:
            break
        value = stripped.strip()

    return value if value else None


def force_int(key, value) -> int:
    """
    Convert value to int, raise ConfigError on failure.
    """
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(
            f"Could not convert value `{value}` for key `{expand_key(key)}` to integer"
        ) from None


def force_positive_int(key, value) -> int:
    """
    Convert value to an int greater than zero, raise ConfigError otherwise.
    """
    number = force_int(key, value)
    if number <= 0:
        raise ConfigError(
            f"Value `{value}` for key `{expand_key(key)}` must be greater than zero"
        )
    return number


def expand_key(key) -> str:
    """
    Expand config key for display.
    """
    return str(key).replace("_", " ").lower()
