"""
Display helpers for conversion factors.

Factors are stored at full precision; these helpers only shape them for
presentation (4 decimal places by default).
"""

from typing import Optional

from .constants import FACTOR_DISPLAY_PRECISION


def format_factor(factor: Optional[float], precision: int = FACTOR_DISPLAY_PRECISION) -> str:
    """
    Format a conversion factor for display.

    Args:
        factor: Factor to format, or None when the factor is still unknown
        precision: Decimal places

    Returns:
        Formatted factor (e.g., "1000.0000"), or an empty string for None
    """
    if factor is None:
        return ""
    return f"{factor:.{precision}f}"


def format_conversion(
    from_unit: str,
    to_unit: str,
    factor: Optional[float],
    precision: int = FACTOR_DISPLAY_PRECISION,
) -> str:
    """
    Format a single conversion for display.

    Args:
        from_unit: Source unit name
        to_unit: Target unit name
        factor: Units of to_unit in one from_unit, or None if unknown
        precision: Decimal places for the factor

    Returns:
        Formatted string (e.g., "1 kg = 1000.0000 g"), or
        "1 kg = ? g" when the factor is unknown

    Example:
        >>> format_conversion("kg", "g", 1000)
        '1 kg = 1000.0000 g'
    """
    if factor is None:
        return f"1 {from_unit} = ? {to_unit}"
    return f"1 {from_unit} = {format_factor(factor, precision)} {to_unit}"
