"""
Utility Functions for GPX Heatmap Analysis

This module provides helper functions for data conversion, rounding, and
display formatting used throughout the pipeline.
"""

import math
import numpy as np
from typing import Optional
from . import constants


def safe_float(value) -> float:
    """
    Safely convert a value to float, returning NaN on failure.

    Args:
        value: Value to convert (string, number, None, etc.).

    Returns:
        Float value, or np.nan if conversion fails.
    """
    try:
        return float(value)
    except (TypeError, ValueError):
        return np.nan


def is_finite(value) -> bool:
    """Return True if value is a real, finite number."""
    if value is None:
        return False
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def finite_or_zero(value) -> float:
    """Return value as float, or 0.0 when it is None, NaN, or Inf."""
    return float(value) if is_finite(value) else 0.0


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer with halves rounded up.

    Python's round() rounds halves to even; grid sizing and kernel radii
    need the conventional behaviour so 2.5 becomes 3.
    """
    return int(math.floor(value + 0.5))


def round_float(value, digits: int = 3) -> Optional[float]:
    """
    Round a float value, handling None, NaN, and Inf.

    Args:
        value: Value to round.
        digits: Number of decimal places. Default 3.

    Returns:
        Rounded float, or None if value is None, NaN, or Inf.
    """
    if not is_finite(value):
        return None
    return round(float(value), digits)


def format_number(value, digits: int = 1, unit: str = "") -> str:
    """
    Format a statistic for display.

    Non-finite values render as a placeholder dash so that NaN or Infinity
    never reach the user.

    Args:
        value: Number to format.
        digits: Decimal places. Default 1.
        unit: Optional unit suffix, separated by a space.

    Returns:
        Display string.
    """
    if not is_finite(value):
        return constants.PLACEHOLDER_DASH
    text = f"{float(value):.{digits}f}"
    return f"{text} {unit}" if unit else text


def format_duration(seconds) -> str:
    """Format seconds as H:MM:SS, or a placeholder dash when undefined."""
    if not is_finite(seconds) or seconds < 0:
        return constants.PLACEHOLDER_DASH
    total = int(round(seconds))
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60
    return f"{hours}:{minutes:02d}:{secs:02d}"
