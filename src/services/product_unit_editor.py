"""Product unit editor - one editing session over a product's units.

The editor owns everything a product form needs while the user edits units:

- a RegistryCache and a SupplierCache, loaded once for the session
- the current unit selections and conversion edges
- a ConversionSynchronizer that re-derives the edges on every selection change
- listeners that are told whenever the edges change

Saving validates the final edges and writes them through product_service.

If the unit registry cannot be loaded the session stays usable with an empty
registry (nothing is pre-filled), the failure is kept in `registry_error` and
save() refuses to write until reload_registry() succeeds.

Example Usage:
    >>> editor = ProductUnitEditor.open_product(product_id)
    >>> editor.add_selection(PurchaseUnit("unidad", supplier_id=3))
    >>> editor.unresolved_pairs()
    []
    >>> editor.save()
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..utils.formatting import format_conversion
from . import product_service
from .change_feed import ChangeFeed
from .conversion_edges import ConversionEdge, PairKey, edges_from_records, unresolved_pairs
from .conversion_resolver import resolve_factor
from .conversion_synchronizer import ConversionSynchronizer
from .conversion_validator import ConversionValidationResult, validate_conversions
from .exceptions import (
    ConversionValidationError,
    InvalidUnitSelection,
    ProductNotFound,
    RegistryUnavailable,
    VariantNotFound,
)
from .logging_utils import get_service_logger, log_operation
from .supplier_service import SupplierCache
from .unit_registry import RegistryCache, UnitRegistry
from .unit_selection import (
    ProductionUnit,
    PurchaseUnit,
    SaleUnit,
    UnitSelection,
    collect_unit_names,
    selections_from_record,
    validate_selections,
)

logger = get_service_logger(__name__)

_SINGLE_ROLE_FIELDS = {SaleUnit: "sale_unit", ProductionUnit: "production_unit"}


class ProductUnitEditor:
    """Editing session for the units and conversions of a product or variant."""

    def __init__(
        self,
        selections: Sequence[UnitSelection] = (),
        edges: Sequence[ConversionEdge] = (),
        registry_cache: Optional[RegistryCache] = None,
        supplier_cache: Optional[SupplierCache] = None,
        product_id: Optional[int] = None,
        variant_id: Optional[int] = None,
        parent_units: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            selections: Initial unit selections
            edges: Initial conversion edges (as stored)
            registry_cache: Registry cache owned by this session (new one if None)
            supplier_cache: Supplier name cache owned by this session (new one if None)
            product_id: Product the session saves to
            variant_id: Variant the session saves to (takes precedence over product_id)
            parent_units: Unit fields of the parent product in a variant session;
                a sale or production unit the parent defines cannot be removed
        """
        self.product_id = product_id
        self.variant_id = variant_id
        self.parent_units = dict(parent_units or {})
        self.registry_cache = registry_cache or RegistryCache()
        self.supplier_cache = supplier_cache or SupplierCache()
        self.registry_error: Optional[RegistryUnavailable] = None

        self._synchronizer = ConversionSynchronizer(self._load_registry())
        self._selections: List[UnitSelection] = list(selections)
        self._edges: List[ConversionEdge] = list(edges)
        self._feed = ChangeFeed("product_unit_editor")

        self.request_sync()

    @classmethod
    def open_product(cls, product_id: int, **kwargs: Any) -> "ProductUnitEditor":
        """Start a session on a stored product.

        Raises:
            ProductNotFound: If product doesn't exist
            InvalidUnitSelection: If the stored purchase units are malformed
        """
        product = product_service.get_product(product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return cls(
            selections_from_record(product),
            edges_from_records(product["conversions"]),
            product_id=product_id,
            **kwargs,
        )

    @classmethod
    def open_variant(cls, variant_id: int, **kwargs: Any) -> "ProductUnitEditor":
        """Start a session on a variant, seeded with its effective (inherited) units.

        Raises:
            VariantNotFound: If variant doesn't exist
        """
        variant = product_service.get_variant(variant_id)
        if variant is None:
            raise VariantNotFound(variant_id)
        effective = product_service.get_effective_units(variant_id)
        parent = product_service.get_product(variant["product_id"])
        return cls(
            selections_from_record(effective),
            edges_from_records(effective["conversions"]),
            variant_id=variant_id,
            parent_units={field: parent[field] for field in _SINGLE_ROLE_FIELDS.values()},
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def _load_registry(self) -> UnitRegistry:
        try:
            registry = self.registry_cache.get()
        except RegistryUnavailable as e:
            log_operation(
                logger,
                operation="open_editor",
                outcome="registry_unavailable",
                level=logging.ERROR,
                error=str(e),
            )
            self.registry_error = e
            return UnitRegistry()
        self.registry_error = None
        return registry

    @property
    def registry(self) -> UnitRegistry:
        return self._synchronizer.registry

    def reload_registry(self) -> UnitRegistry:
        """Refetch the registry and pre-fill factors that are still unknown.

        Raises:
            RegistryUnavailable: If the registry still cannot be loaded
        """
        self.registry_cache.invalidate()
        registry = self.registry_cache.get()
        self.registry_error = None
        self._synchronizer.registry = registry

        refreshed = [
            edge
            if edge.factor is not None
            else edge.with_factor(resolve_factor(registry, edge.from_unit, edge.to_unit))
            for edge in self._edges
        ]
        self._set_edges(refreshed)
        self.request_sync()
        return registry

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def selections(self) -> List[UnitSelection]:
        return list(self._selections)

    @property
    def edges(self) -> List[ConversionEdge]:
        return list(self._edges)

    @property
    def unit_names(self) -> List[str]:
        return collect_unit_names(self._selections)

    def unresolved_pairs(self) -> List[PairKey]:
        """Pairs that still need a manual factor."""
        return unresolved_pairs(self._edges)

    def subscribe(self, listener: Callable[[List[ConversionEdge]], None]) -> Callable[[], None]:
        """Call listener with the new edge list whenever it changes.

        Returns:
            Function that removes the listener
        """
        return self._feed.subscribe(listener)

    def _set_edges(self, edges: List[ConversionEdge]) -> None:
        if edges == self._edges:
            return
        self._edges = edges
        self._feed.publish(self.edges)

    # ------------------------------------------------------------------
    # Synchronization
    # ------------------------------------------------------------------

    def request_sync(self) -> bool:
        """Re-derive the edges from the current selections.

        Requests made from inside a listener are coalesced into one more pass.

        Returns:
            True if the pass ran now, False if it was coalesced
        """
        return self._synchronizer.run(self._sync_pass)

    def _sync_pass(self) -> None:
        self._set_edges(self._synchronizer.synchronize(self.unit_names, self._edges))

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def _apply_selections(self, selections: List[UnitSelection]) -> None:
        registry = None if self.registry_error else self.registry
        is_valid, errors = validate_selections(selections, registry)
        if not is_valid:
            raise InvalidUnitSelection(errors)
        self._selections = selections
        self.request_sync()

    def add_selection(self, selection: UnitSelection) -> None:
        """Attach a unit to the product.

        Raises:
            InvalidUnitSelection: If the result breaks a selection rule or
                the unit does not exist
        """
        self._apply_selections(self._selections + [selection])

    def remove_selection(self, selection: UnitSelection) -> None:
        """Detach a unit from the product.

        In a variant session a sale or production unit cannot be removed
        while the parent product defines one: the variant would inherit the
        parent's unit again on save. Replace it instead.

        Raises:
            ValueError: If the selection is not present
            InvalidUnitSelection: If the unit would be inherited back
        """
        selections = list(self._selections)
        selections.remove(selection)
        field = _SINGLE_ROLE_FIELDS.get(type(selection))
        if self.variant_id is not None and field and self.parent_units.get(field):
            raise InvalidUnitSelection(
                [
                    f"The {selection.role.value} unit falls back to the product's "
                    f"'{self.parent_units[field]}' when removed; replace it instead"
                ]
            )
        self._apply_selections(selections)

    def replace_selection(self, old: UnitSelection, new: UnitSelection) -> None:
        """Swap one selection for another, e.g. when the user changes a unit.

        Raises:
            ValueError: If old is not present
            InvalidUnitSelection: If the result is invalid
        """
        selections = list(self._selections)
        selections[selections.index(old)] = new
        self._apply_selections(selections)

    def set_factor(self, from_unit: str, to_unit: str, factor: Optional[float]) -> None:
        """Enter or clear (None) the factor of one pair.

        Raises:
            ValueError: If the pair is not part of the edge list or factor <= 0
        """
        if factor is not None:
            factor = float(factor)
            if not factor > 0:
                raise ValueError("Conversion factor must be greater than zero")

        edges = list(self._edges)
        for index, edge in enumerate(edges):
            if edge.key == (from_unit, to_unit):
                edges[index] = edge.with_factor(factor)
                self._set_edges(edges)
                return
        raise ValueError(f"No conversion from {from_unit} to {to_unit} in this product")

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def purchase_unit_label(self, selection: PurchaseUnit) -> str:
        """Label such as "unidad (Distribuidora Norte)"."""
        return f"{selection.unit_name} ({self.supplier_cache.name_for(selection.supplier_id)})"

    def describe_conversions(self) -> List[str]:
        """Conversions formatted for display, e.g. "1 kg = 1000.0000 g"."""
        return [format_conversion(e.from_unit, e.to_unit, e.factor) for e in self._edges]

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def validate(self) -> ConversionValidationResult:
        """Run the conversion validator on the current state."""
        return validate_conversions(self.unit_names, self._edges)

    def save(self, session: Optional[Session] = None) -> Dict[str, Any]:
        """Validate and persist the current selections and edges.

        Returns:
            Saved product or variant as dictionary

        Raises:
            RegistryUnavailable: If the registry failed to load for this session
            ConversionValidationError: If the edges are incomplete or inconsistent
            ValueError: If the session is not bound to a product or variant
        """
        if self.registry_error is not None:
            raise self.registry_error
        if self.variant_id is None and self.product_id is None:
            raise ValueError("Editor is not bound to a product or variant")

        result = self.validate()
        if not result:
            log_operation(
                logger,
                operation="save_units",
                outcome=result.failure.value,
                level=logging.WARNING,
                pair=result.pair,
            )
            raise ConversionValidationError(result)

        if self.variant_id is not None:
            saved = product_service.save_variant_units(
                self.variant_id, self._selections, self._edges, session=session
            )
        else:
            saved = product_service.save_product_units(
                self.product_id, self._selections, self._edges, session=session
            )

        log_operation(
            logger,
            operation="save_units",
            outcome="success",
            product_id=self.product_id,
            variant_id=self.variant_id,
            edge_count=len(self._edges),
        )
        return saved
