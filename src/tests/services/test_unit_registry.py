"""Tests for the unit registry snapshot and its session cache."""

import logging

import pytest

from src.services.exceptions import RegistryUnavailable
from src.services.unit_registry import RegistryCache, UnitRegistry


class TestUnitRegistry:
    """Tests for UnitRegistry lookups."""

    def test_lookup_by_name_and_id(self, registry):
        """Units can be found by name and by id."""
        assert registry.get_by_name("kg").id == 1
        assert registry.get_by_id(3).name == "unidad"
        assert registry.get_by_name("docena") is None
        assert registry.get_by_id(99) is None

    def test_names_membership_and_length(self, registry):
        """names() keeps registry order; `in` checks names."""
        assert registry.names() == ["kg", "g", "unidad", "L"]
        assert "L" in registry
        assert "ml" not in registry
        assert len(registry) == 4
        assert [unit.name for unit in registry] == registry.names()

    def test_direct_conversions_resolve_targets(self, registry):
        """direct_conversions() returns target units in authoring order."""
        result = [(target.name, factor) for target, factor in registry.direct_conversions("kg")]
        assert result == [("g", 1000.0), ("unidad", 2.0)]
        assert registry.direct_conversions("g") == []
        assert registry.direct_conversions("docena") == []

    def test_dangling_targets_are_skipped(self):
        """A conversion to a unit outside the snapshot is ignored."""
        registry = UnitRegistry.from_records(
            [{"id": 1, "name": "kg", "conversions": [{"to_unit_id": 42, "factor": 5}]}]
        )
        assert registry.direct_conversions("kg") == []

    def test_invalid_factors_are_dropped(self, caplog):
        """Non-positive factors never enter the registry."""
        with caplog.at_level(logging.WARNING):
            registry = UnitRegistry.from_records(
                [
                    {"id": 1, "name": "kg", "conversions": [{"to_unit_id": 2, "factor": 0}]},
                    {"id": 2, "name": "g", "conversions": [{"to_unit_id": 1, "factor": None}]},
                ]
            )
        assert registry.get_by_name("kg").conversions == ()
        assert registry.get_by_name("g").conversions == ()
        assert "invalid factor" in caplog.text

    def test_first_unit_wins_on_duplicate_name(self):
        """Name lookups resolve to the first unit with that name."""
        registry = UnitRegistry.from_records(
            [{"id": 1, "name": "kg"}, {"id": 2, "name": "kg"}]
        )
        assert registry.get_by_name("kg").id == 1
        assert len(registry) == 2

    def test_empty_registry(self):
        """An empty registry answers every lookup with nothing."""
        registry = UnitRegistry()
        assert len(registry) == 0
        assert registry.names() == []
        assert "kg" not in registry


class TestRegistryCache:
    """Tests for the session-owned registry cache."""

    def test_loads_once(self):
        """The loader runs only on first use."""
        calls = []

        def loader():
            calls.append(1)
            return [{"id": 1, "name": "kg", "acronym": "KG", "conversions": []}]

        cache = RegistryCache(loader)
        assert not cache.is_loaded
        first = cache.get()
        second = cache.get()

        assert first is second
        assert len(calls) == 1
        assert cache.is_loaded

    def test_invalidate_forces_refetch(self):
        """invalidate() makes the next get() reload."""
        names = iter([["kg"], ["kg", "g"]])

        def loader():
            return [{"id": i, "name": n} for i, n in enumerate(next(names), start=1)]

        cache = RegistryCache(loader)
        assert cache.get().names() == ["kg"]
        cache.invalidate()
        assert cache.get().names() == ["kg", "g"]

    def test_loader_failure_raises_registry_unavailable(self):
        """A failing store surfaces as RegistryUnavailable and nothing is cached."""

        def loader():
            raise ConnectionError("store offline")

        cache = RegistryCache(loader)
        with pytest.raises(RegistryUnavailable) as exc_info:
            cache.get()

        assert isinstance(exc_info.value.original_error, ConnectionError)
        assert not cache.is_loaded

    def test_default_loader_reads_unit_store(self, sample_units):
        """Without a loader the cache reads the measurement unit store."""
        registry = RegistryCache().get()
        assert registry.names() == ["kg", "g", "unidad", "L"]
        assert [t.name for t, _ in registry.direct_conversions("L")] == ["unidad"]
