"""
Environment variable helpers.

Invalid values never crash the test run: they log a warning and fall back to
the default, so a typo in CI configuration degrades to stock behaviour.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


def get_env_str(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(key)
    if value is None or value.strip() == "":
        return default
    return value


def get_env_float(
    key: str,
    default: float,
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
) -> float:
    """Read a float from the environment, clamped to ``[min_val, max_val]``."""
    raw = os.environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except (ValueError, TypeError):
        logger.warning(f"[ENV] {key}={raw!r} is not a number, using default {default}")
        return default

    if min_val is not None and value < min_val:
        logger.warning(f"[ENV] {key}={value} below minimum {min_val}, clamping")
        value = min_val
    if max_val is not None and value > max_val:
        logger.warning(f"[ENV] {key}={value} above maximum {max_val}, clamping")
        value = max_val
    return value


def get_env_int(key: str, default: int, min_val: Optional[int] = None) -> int:
    raw = os.environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except (ValueError, TypeError):
        logger.warning(f"[ENV] {key}={raw!r} is not an integer, using default {default}")
        return default
    if min_val is not None and value < min_val:
        logger.warning(f"[ENV] {key}={value} below minimum {min_val}, clamping")
        value = min_val
    return value


def get_env_bool(key: str, default: bool) -> bool:
    val = os.environ.get(key, "").strip().lower()
    if val in _TRUE_VALUES:
        return True
    if val in _FALSE_VALUES:
        return False
    return default


def is_ci() -> bool:
    """True when running under CI (any non-false ``CI`` value)."""
    val = os.environ.get("CI", "").strip().lower()
    return bool(val) and val not in _FALSE_VALUES
