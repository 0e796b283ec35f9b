"""Unit Registry - read-only snapshot of measurement units and their conversions.

The registry is the adjacency list the resolver walks: each unit lists the
direct conversions an administrator authored for it. Snapshots are built from
the unit store and cached per editing session by RegistryCache; nothing here
writes to the store.

Example Usage:
    >>> registry = UnitRegistry.from_records([
    ...     {"id": 1, "name": "kg", "acronym": "KG", "conversions": [{"to_unit_id": 2, "factor": 1000}]},
    ...     {"id": 2, "name": "g", "acronym": "G", "conversions": []},
    ... ])
    >>> [(target.name, factor) for target, factor in registry.direct_conversions("kg")]
    [('g', 1000.0)]
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .exceptions import RegistryUnavailable
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


@dataclass(frozen=True)
class RegistryConversion:
    """Authored conversion: 1 owner unit = factor target units."""

    to_unit_id: Any
    factor: float


@dataclass(frozen=True)
class RegistryUnit:
    """Measurement unit as seen by the conversion engine."""

    id: Any
    name: str
    acronym: str = ""
    conversions: Tuple[RegistryConversion, ...] = ()


class UnitRegistry:
    """Immutable lookup structure over a set of registry units.

    Units are looked up by id (conversion targets) and by name (products
    reference units by name). When two units share a name the first one wins.
    """

    def __init__(self, units: Iterable[RegistryUnit] = ()):
        self._units: List[RegistryUnit] = list(units)
        self._by_id: Dict[Any, RegistryUnit] = {}
        self._by_name: Dict[str, RegistryUnit] = {}
        for unit in self._units:
            self._by_id.setdefault(unit.id, unit)
            self._by_name.setdefault(unit.name, unit)

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "UnitRegistry":
        """Build a registry from unit dictionaries as returned by the unit store.

        Conversions with a non-positive or unreadable factor are dropped with a
        warning; the store never writes them, so they indicate corrupt data.

        Args:
            records: Unit dicts with "id", "name", "acronym" and "conversions"

        Returns:
            UnitRegistry snapshot
        """
        units = []
        for record in records:
            conversions = []
            for conversion in record.get("conversions") or []:
                try:
                    factor = float(conversion["factor"])
                except (KeyError, TypeError, ValueError):
                    factor = 0.0
                if factor <= 0:
                    logger.warning(
                        f"Ignoring conversion from unit {record.get('id')} "
                        f"to {conversion.get('to_unit_id')}: invalid factor"
                    )
                    continue
                conversions.append(RegistryConversion(conversion["to_unit_id"], factor))
            units.append(
                RegistryUnit(
                    id=record["id"],
                    name=str(record["name"]).strip(),
                    acronym=record.get("acronym") or "",
                    conversions=tuple(conversions),
                )
            )
        return cls(units)

    def get_by_id(self, unit_id: Any) -> Optional[RegistryUnit]:
        """Return the unit with this id, or None."""
        return self._by_id.get(unit_id)

    def get_by_name(self, name: str) -> Optional[RegistryUnit]:
        """Return the unit with this name, or None."""
        return self._by_name.get(name)

    def names(self) -> List[str]:
        """All unit names, in registry order."""
        return [unit.name for unit in self._units]

    def direct_conversions(self, name: str) -> List[Tuple[RegistryUnit, float]]:
        """Authored conversions of a unit, resolved to their target units.

        Targets missing from the snapshot are skipped.

        Args:
            name: Unit name

        Returns:
            List of (target unit, factor) in authoring order; empty for unknown names
        """
        unit = self._by_name.get(name)
        if unit is None:
            return []
        result = []
        for conversion in unit.conversions:
            target = self._by_id.get(conversion.to_unit_id)
            if target is not None:
                result.append((target, conversion.factor))
        return result

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._units)

    def __iter__(self) -> Iterator[RegistryUnit]:
        return iter(self._units)


class RegistryCache:
    """Session-owned cache of one registry snapshot.

    The snapshot is fetched on first use and reused until invalidate() is
    called, typically when a new editing session starts. A failed fetch is
    not cached.
    """

    def __init__(self, loader: Optional[Callable[[], List[Dict[str, Any]]]] = None):
        """
        Args:
            loader: Returns the unit records; defaults to the unit store's get_all_units
        """
        if loader is None:
            from . import measurement_unit_service

            loader = measurement_unit_service.get_all_units
        self._loader = loader
        self._registry: Optional[UnitRegistry] = None

    @property
    def is_loaded(self) -> bool:
        """True if a snapshot is currently cached."""
        return self._registry is not None

    def get(self) -> UnitRegistry:
        """Return the cached snapshot, loading it if needed.

        Raises:
            RegistryUnavailable: If the store cannot be read
        """
        if self._registry is None:
            try:
                records = self._loader()
            except Exception as e:
                log_operation(
                    logger,
                    operation="load_registry",
                    outcome="error",
                    level=logging.ERROR,
                    error=str(e),
                )
                raise RegistryUnavailable(e) from e
            self._registry = UnitRegistry.from_records(records)
            log_operation(
                logger,
                operation="load_registry",
                outcome="success",
                level=logging.DEBUG,
                unit_count=len(self._registry),
            )
        return self._registry

    def invalidate(self) -> None:
        """Drop the cached snapshot; the next get() refetches."""
        self._registry = None
