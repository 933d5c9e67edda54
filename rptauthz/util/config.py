"""
Configuration utilities for rptauthz.
Provides environment lookups and duration parsing for EngineConfig.
"""

import os
import re
from datetime import timedelta
from typing import Any, Callable, Optional


def get_config_value(key: str, default: Any = None,
                     cast_type: Optional[Callable[[str], Any]] = None,
                     env_prefix: str = "RPTAUTHZ_") -> Any:
    """
    Get configuration value from environment or return default.
    A value that cannot be cast falls back to the default.
    """
    value = os.environ.get(f"{env_prefix}{key.upper()}")

    if value is None:
        return default
    if cast_type is None:
        return value

    try:
        return cast_type(value)
    except (ValueError, TypeError):
        return default


def parse_duration_string(duration_str: str) -> timedelta:
    """
    Parse duration string like '30s', '5m', '2h', '1d' into timedelta.
    """
    if not isinstance(duration_str, str):
        raise ValueError("Duration must be a string")

    duration_str = duration_str.strip().lower()

    pattern = r'^(\d+(?:\.\d+)?)\s*([smhd])$'
    match = re.match(pattern, duration_str)

    if not match:
        raise ValueError(f"Invalid duration format: {duration_str}")

    value, unit = match.groups()
    value = float(value)

    if unit == 's':
        return timedelta(seconds=value)
    elif unit == 'm':
        return timedelta(minutes=value)
    elif unit == 'h':
        return timedelta(hours=value)
    return timedelta(days=value)
