"""Conversion Resolver - derive a factor between two unit names from the registry.

Rules are tried in a fixed priority and the first one that succeeds wins:

1. Identity: a unit converts to itself with factor 1.
2. Direct: the source unit has an authored conversion to the target.
3. Reverse: the target unit has an authored conversion to the source (1 / f).
4. Bridge: some unit C is one hop away from both units; the factor is
   f(A->C) / f(B->C). Only the first C found is used.

A pair that matches no rule resolves to factor None; this is a normal
outcome, the user enters the factor by hand.

Resolution is pure: no I/O and no logging beyond debug output, and the same
registry snapshot always yields the same answer.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from .unit_registry import UnitRegistry

logger = logging.getLogger(__name__)


class ResolutionMethod(str, Enum):
    """Which rule produced a resolved factor."""

    IDENTITY = "identity"
    DIRECT = "direct"
    REVERSE = "reverse"
    BRIDGE = "bridge"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one directed pair.

    Attributes:
        from_unit: Source unit name
        to_unit: Target unit name
        factor: Units of to_unit in one from_unit, or None when unresolved
        method: Rule that produced the factor
        via: Intermediate unit name for bridge resolutions
    """

    from_unit: str
    to_unit: str
    factor: Optional[float]
    method: ResolutionMethod
    via: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.factor is not None


def _neighbours(registry: UnitRegistry, name: str) -> Dict[str, float]:
    """Units one hop away from `name`, mapped to f(name -> neighbour).

    Authored conversions of the unit come first; units that author a
    conversion to it follow with the inverted factor.
    """
    result: Dict[str, float] = {}
    for target, factor in registry.direct_conversions(name):
        result.setdefault(target.name, factor)
    for unit in registry:
        if unit.name == name or unit.name in result:
            continue
        for target, factor in registry.direct_conversions(unit.name):
            if target.name == name:
                result[unit.name] = 1.0 / factor
                break
    return result


def _direct_factor(registry: UnitRegistry, from_unit: str, to_unit: str) -> Optional[float]:
    for target, factor in registry.direct_conversions(from_unit):
        if target.name == to_unit:
            return factor
    return None


def resolve(registry: UnitRegistry, from_unit: str, to_unit: str) -> Resolution:
    """Resolve the factor that converts one `from_unit` into `to_unit` units.

    Args:
        registry: Registry snapshot to resolve against
        from_unit: Source unit name
        to_unit: Target unit name

    Returns:
        Resolution; `factor` is None when no rule applies

    Example:
        >>> resolve(registry, "kg", "g").factor
        1000.0
        >>> resolve(registry, "g", "kg").method
        <ResolutionMethod.REVERSE: 'reverse'>
    """
    if from_unit == to_unit:
        return Resolution(from_unit, to_unit, 1.0, ResolutionMethod.IDENTITY)

    factor = _direct_factor(registry, from_unit, to_unit)
    if factor is not None:
        return Resolution(from_unit, to_unit, factor, ResolutionMethod.DIRECT)

    factor = _direct_factor(registry, to_unit, from_unit)
    if factor is not None:
        return Resolution(from_unit, to_unit, 1.0 / factor, ResolutionMethod.REVERSE)

    to_neighbours = _neighbours(registry, to_unit)
    for via, factor_a in _neighbours(registry, from_unit).items():
        if via in (from_unit, to_unit) or via not in to_neighbours:
            continue
        factor = factor_a / to_neighbours[via]
        logger.debug(f"Resolved {from_unit} -> {to_unit} via {via}: {factor}")
        return Resolution(from_unit, to_unit, factor, ResolutionMethod.BRIDGE, via=via)

    logger.debug(f"No conversion found for {from_unit} -> {to_unit}")
    return Resolution(from_unit, to_unit, None, ResolutionMethod.UNRESOLVED)


def resolve_factor(registry: UnitRegistry, from_unit: str, to_unit: str) -> Optional[float]:
    """Shortcut for resolve(...).factor."""
    return resolve(registry, from_unit, to_unit).factor
