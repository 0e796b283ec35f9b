"""Tests for the conversion synchronizer.

Tests cover:
- Boundary sizes (0 and 1 unit)
- Completeness of a fresh synchronization
- Idempotence on a reconciled edge set
- Carrying user factors across unit changes
- Coalescing of re-entrant requests
"""

import logging

import pytest

from src.services.conversion_edges import ConversionEdge
from src.services.conversion_synchronizer import (
    ConversionSynchronizer,
    SyncState,
    synchronize,
)


class TestSynchronize:
    """Tests for the synchronize() function."""

    @pytest.mark.parametrize("names", [[], ["kg"]])
    def test_fewer_than_two_units(self, registry, names):
        """No conversions are needed below two units."""
        stale = [ConversionEdge("kg", "g", 1000.0)]
        assert synchronize(names, stale, registry) == []

    def test_completeness(self, registry):
        """N units yield N * (N - 1) edges, one per ordered pair."""
        names = ["kg", "g", "unidad", "L"]
        edges = synchronize(names, [], registry)

        assert len(edges) == 12
        assert len({edge.key for edge in edges}) == 12
        assert all(edge.from_unit != edge.to_unit for edge in edges)

    def test_ordering_by_source_then_target(self, registry):
        """Edges are grouped by source unit in first-seen order."""
        edges = synchronize(["kg", "g", "L"], [], registry)
        assert [edge.key for edge in edges] == [
            ("kg", "g"),
            ("kg", "L"),
            ("g", "kg"),
            ("g", "L"),
            ("L", "kg"),
            ("L", "g"),
        ]

    def test_prefills_from_registry(self, registry):
        """New pairs are pre-filled by the resolver where possible."""
        edges = {edge.key: edge.factor for edge in synchronize(["kg", "g"], [], registry)}
        assert edges[("kg", "g")] == 1000.0
        assert edges[("g", "kg")] == pytest.approx(0.001)

    def test_unresolvable_pairs_left_unset(self, registry):
        """Pairs the registry cannot answer get factor None."""
        edges = synchronize(["kg", "caja"], [], registry)
        assert [edge.factor for edge in edges] == [None, None]

    def test_without_registry(self):
        """Without a registry nothing is pre-filled."""
        edges = synchronize(["kg", "g"], [])
        assert all(edge.factor is None for edge in edges)

    def test_idempotent_on_reconciled_set(self, registry):
        """A reconciled set is returned unchanged, user factors included."""
        first = synchronize(["kg", "g", "unidad"], [], registry)
        edited = [edge.with_factor(7.0) if edge.key == ("kg", "g") else edge for edge in first]

        again = synchronize(["kg", "g", "unidad"], edited, registry)
        assert again == edited
        assert synchronize(["kg", "g", "unidad"], again, registry) == again

    def test_carries_existing_factors_when_units_change(self, registry):
        """Adding a unit keeps factors already entered for surviving pairs."""
        existing = [ConversionEdge("kg", "g", 999.0), ConversionEdge("g", "kg", 1 / 999.0)]
        edges = {e.key: e.factor for e in synchronize(["kg", "g", "L"], existing, registry)}

        assert edges[("kg", "g")] == 999.0
        assert edges[("kg", "L")] == pytest.approx(0.5)

    def test_removing_a_unit_drops_its_edges(self, registry):
        """Edges involving removed units disappear."""
        full = synchronize(["kg", "g", "L"], [], registry)
        reduced = synchronize(["kg", "L"], full, registry)
        assert [edge.key for edge in reduced] == [("kg", "L"), ("L", "kg")]

    def test_unset_existing_factor_is_refilled(self, registry):
        """An existing edge without a factor is re-resolved on rebuild."""
        existing = [ConversionEdge("kg", "g", None)]
        edges = {e.key: e.factor for e in synchronize(["kg", "g"], existing, registry)}
        assert edges[("kg", "g")] == 1000.0


class TestConversionSynchronizer:
    """Tests for the synchronizer state machine."""

    def test_runs_pass_when_idle(self, registry):
        """A request while idle runs immediately."""
        sync = ConversionSynchronizer(registry)
        calls = []

        assert sync.run(lambda: calls.append(sync.state)) is True
        assert calls == [SyncState.SYNCHRONIZING]
        assert sync.state == SyncState.IDLE

    def test_nested_requests_are_coalesced(self):
        """Requests made during a pass become a single extra pass."""
        sync = ConversionSynchronizer()
        calls = []
        nested_results = []

        def pass_fn():
            calls.append(1)
            if len(calls) == 1:
                nested_results.append(sync.run(pass_fn))
                nested_results.append(sync.run(pass_fn))

        assert sync.run(pass_fn) is True
        assert nested_results == [False, False]
        assert len(calls) == 2
        assert sync.state == SyncState.IDLE

    def test_pass_limit(self, caplog):
        """A listener that always re-requests cannot loop forever."""
        sync = ConversionSynchronizer(max_passes=3)
        calls = []

        def pass_fn():
            calls.append(1)
            sync.run(pass_fn)

        with caplog.at_level(logging.WARNING):
            sync.run(pass_fn)

        assert len(calls) == 3
        assert "pass_limit_reached" in caplog.text
        assert not sync.is_running

    def test_state_reset_after_error(self):
        """A failing pass leaves the synchronizer idle."""
        sync = ConversionSynchronizer()

        def pass_fn():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            sync.run(pass_fn)
        assert sync.state == SyncState.IDLE

    def test_synchronize_uses_bound_registry(self, registry):
        """The method form pre-fills from the session registry."""
        sync = ConversionSynchronizer(registry)
        edges = sync.synchronize(["kg", "L"], [])
        assert edges[0].factor == pytest.approx(0.5)
