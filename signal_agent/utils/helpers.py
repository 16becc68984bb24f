"""
Helper Utilities
Common utility functions used across the application.
"""

import math
from typing import Any, Optional


def parse_float(value: Any) -> Optional[float]:
    """
    Parse an indicator value that may arrive as str, int, float or None.

    Technical analysis rows store indicators as strings ('75.5'), so every
    consumer goes through this helper.

    Args:
        value: Raw value

    Returns:
        float, or None if missing / not a finite number

    Example:
        >>> parse_float('75.5')
        75.5
        >>> parse_float(None) is None
        True
        >>> parse_float('n/a') is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Safely divide two numbers, returning default if denominator is zero.

    Args:
        numerator: Top number
        denominator: Bottom number
        default: Value to return if division by zero (default: 0.0)

    Returns:
        Result of division or default

    Example:
        >>> result = safe_divide(10, 2)  # 5.0
        >>> result = safe_divide(10, 0)  # 0.0
    """
    if denominator == 0:
        return default
    return numerator / denominator


def normalize_symbol(symbol: str) -> str:
    """
    Normalize token symbol to uppercase.

    Example:
        >>> normalize_symbol(' sol ')  # 'SOL'
    """
    return symbol.strip().upper()


def truncate_text(text: str, max_length: int = 100) -> str:
    """
    Truncate text to maximum length with ellipsis.

    Args:
        text: Text to truncate
        max_length: Maximum length (default: 100)

    Returns:
        Truncated text with '...' if longer than max_length

    Example:
        >>> truncate_text("Very long article title here...", 20)
        'Very long article...'
    """
    if not text or len(text) <= max_length:
        return text
    return text[:max_length-3] + '...'
