"""Conversion Validator - gate a product's edges before they are saved.

Checks run in a fixed order and the first failure is reported:

0. fewer than two units but edges present
1. the same (from, to) pair appears twice
2. an edge maps a unit to itself or names a unit outside the set
3. a required pair is missing or has no positive factor
4. a pair present in both directions does not multiply to ~1

The validator never raises; callers decide how to surface the result
(product_service raises ConversionValidationError).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from ..utils.constants import INVERSE_FACTOR_TOLERANCE
from .conversion_edges import ConversionEdge, PairKey, required_pairs


class ValidationFailure(str, Enum):
    """Kinds of conversion validation failures."""

    UNEXPECTED_CONVERSIONS = "unexpected_conversions"
    DUPLICATE_PAIR = "duplicate_pair"
    UNEXPECTED_PAIR = "unexpected_pair"
    MISSING_PAIR = "missing_pair"
    INCONSISTENT_INVERSE = "inconsistent_inverse"


@dataclass(frozen=True)
class ConversionValidationResult:
    """Result of validate_conversions().

    Attributes:
        is_valid: True when the edge set may be saved
        failure: Kind of failure, None when valid
        message: Human-readable description, empty when valid
        pair: Offending (from_unit, to_unit) pair, if any
    """

    is_valid: bool
    failure: Optional[ValidationFailure] = None
    message: str = ""
    pair: Optional[PairKey] = None

    @classmethod
    def ok(cls) -> "ConversionValidationResult":
        return cls(is_valid=True)

    def __bool__(self) -> bool:
        return self.is_valid


def _fail(failure: ValidationFailure, message: str, pair: Optional[PairKey] = None):
    return ConversionValidationResult(False, failure, message, pair)


def validate_conversions(
    unit_names: Sequence[str],
    edges: Sequence[ConversionEdge],
    tolerance: float = INVERSE_FACTOR_TOLERANCE,
) -> ConversionValidationResult:
    """
    Validate a final edge list against the final set of unit names.

    Args:
        unit_names: Distinct unit names in play
        edges: Edge list about to be saved
        tolerance: Allowed absolute deviation of f(A->B) * f(B->A) from 1

    Returns:
        ConversionValidationResult (truthy when valid)

    Example:
        >>> edges = [ConversionEdge("kg", "g", 1000), ConversionEdge("g", "kg", 0.0005)]
        >>> validate_conversions(["kg", "g"], edges).failure
        <ValidationFailure.INCONSISTENT_INVERSE: 'inconsistent_inverse'>
    """
    unit_names = list(unit_names)

    if len(unit_names) < 2:
        if edges:
            return _fail(
                ValidationFailure.UNEXPECTED_CONVERSIONS,
                "Conversions require at least two different units",
            )
        return ConversionValidationResult.ok()

    factors = {}
    for edge in edges:
        if edge.key in factors:
            return _fail(
                ValidationFailure.DUPLICATE_PAIR,
                f"Duplicate conversion from {edge.from_unit} to {edge.to_unit}",
                edge.key,
            )
        factors[edge.key] = edge

    pairs = required_pairs(unit_names)
    required = set(pairs)
    for key in factors:
        if key not in required:
            return _fail(
                ValidationFailure.UNEXPECTED_PAIR,
                f"Unexpected conversion from {key[0]} to {key[1]}",
                key,
            )

    for pair in pairs:
        edge = factors.get(pair)
        if edge is None or not edge.has_factor:
            return _fail(
                ValidationFailure.MISSING_PAIR,
                f"Missing conversion from {pair[0]} to {pair[1]}",
                pair,
            )

    checked = set()
    for (from_unit, to_unit), edge in factors.items():
        inverse = factors.get((to_unit, from_unit))
        if inverse is None or frozenset((from_unit, to_unit)) in checked:
            continue
        checked.add(frozenset((from_unit, to_unit)))
        if not (edge.has_factor and inverse.has_factor):
            continue
        if abs(edge.factor * inverse.factor - 1) > tolerance:
            return _fail(
                ValidationFailure.INCONSISTENT_INVERSE,
                f"Conversions between {from_unit} and {to_unit} are not inverse of each other "
                f"({edge.factor} x {inverse.factor})",
                (from_unit, to_unit),
            )

    return ConversionValidationResult.ok()
