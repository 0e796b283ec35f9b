"""Conversion Synchronizer - keep a product's edges in step with its units.

Whenever a unit is added, removed or renamed on a product the required edge
set changes. synchronize() rebuilds it while keeping every factor the user
already entered; new pairs are pre-filled from the registry where possible.

ConversionSynchronizer adds a small state machine around that function.
Listeners that react to new edges may request another synchronization while
one is running; such requests are not run re-entrantly but coalesced into a
single follow-up pass.

Example Usage:
    >>> edges = synchronize(["kg", "g"], [], registry)
    >>> [(e.from_unit, e.to_unit, e.factor) for e in edges]
    [('kg', 'g', 1000.0), ('g', 'kg', 0.001)]
"""

import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence

from ..utils.constants import MAX_SYNC_PASSES
from .conversion_edges import ConversionEdge, required_pairs
from .conversion_resolver import resolve_factor
from .logging_utils import get_service_logger, log_operation
from .unit_registry import UnitRegistry

logger = get_service_logger(__name__)


def synchronize(
    unit_names: Sequence[str],
    existing_edges: Sequence[ConversionEdge],
    registry: Optional[UnitRegistry] = None,
) -> List[ConversionEdge]:
    """
    Derive the edge list required by a set of unit names.

    Args:
        unit_names: Distinct unit names in play (see collect_unit_names)
        existing_edges: Edges currently stored or being edited
        registry: Registry used to pre-fill new pairs; None leaves them unset

    Returns:
        existing_edges itself when its pairs already match the required set,
        otherwise a new list ordered by source unit then target
    """
    pairs = required_pairs(list(unit_names))
    if not pairs:
        return []

    existing_keys = {edge.key for edge in existing_edges}
    if existing_keys == set(pairs) and len(existing_edges) == len(pairs):
        return list(existing_edges)

    # First edge wins when the input carries duplicates
    carried = {}
    for edge in existing_edges:
        if edge.factor is not None:
            carried.setdefault(edge.key, edge.factor)

    result = []
    for from_unit, to_unit in pairs:
        factor = carried.get((from_unit, to_unit))
        if factor is None and registry is not None:
            factor = resolve_factor(registry, from_unit, to_unit)
        result.append(ConversionEdge(from_unit, to_unit, factor))
    return result


class SyncState(str, Enum):
    """Synchronizer lifecycle."""

    IDLE = "idle"
    SYNCHRONIZING = "synchronizing"


class ConversionSynchronizer:
    """Synchronizer bound to one editing session's registry.

    Attributes:
        registry: Registry snapshot used to pre-fill factors
        state: Current SyncState
        max_passes: Upper bound on passes run for one outer request
    """

    def __init__(self, registry: Optional[UnitRegistry] = None, max_passes: int = MAX_SYNC_PASSES):
        self.registry = registry
        self.state = SyncState.IDLE
        self.max_passes = max_passes
        self._pending = False

    @property
    def is_running(self) -> bool:
        return self.state is SyncState.SYNCHRONIZING

    def synchronize(
        self, unit_names: Sequence[str], existing_edges: Sequence[ConversionEdge]
    ) -> List[ConversionEdge]:
        """Run synchronize() against this session's registry."""
        return synchronize(unit_names, existing_edges, self.registry)

    def run(self, pass_fn: Callable[[], None]) -> bool:
        """
        Execute a synchronization pass, coalescing nested requests.

        When called while a pass is already running, the request is recorded
        and this call returns immediately. The outer call then repeats
        pass_fn once more after the current pass, however many nested
        requests arrived.

        Args:
            pass_fn: Callable that reads the current selections, synchronizes
                and publishes the result

        Returns:
            True if pass_fn ran now, False if the request was coalesced
        """
        if self.state is SyncState.SYNCHRONIZING:
            self._pending = True
            log_operation(logger, operation="synchronize", outcome="coalesced", level=logging.DEBUG)
            return False

        self.state = SyncState.SYNCHRONIZING
        passes = 0
        try:
            while True:
                self._pending = False
                pass_fn()
                passes += 1
                if not self._pending:
                    break
                if passes >= self.max_passes:
                    log_operation(
                        logger,
                        operation="synchronize",
                        outcome="pass_limit_reached",
                        level=logging.WARNING,
                        passes=passes,
                    )
                    break
        finally:
            self._pending = False
            self.state = SyncState.IDLE

        log_operation(
            logger, operation="synchronize", outcome="success", level=logging.DEBUG, passes=passes
        )
        return True
