"""Utilities package for the unit conversion catalog."""

from .formatting import format_conversion, format_factor

__all__ = [
    "format_conversion",
    "format_factor",
]
