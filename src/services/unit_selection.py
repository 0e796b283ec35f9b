"""Unit Selection Set - the units attached to a product and the names in play.

A product references units in three roles:

- SaleUnit: the unit it is sold in (at most one)
- ProductionUnit: the unit it is produced in (at most one)
- PurchaseUnit: the unit it is bought in from one supplier (one per supplier)

The same unit name may appear in several roles; conversions are computed
between distinct unit names, so collect_unit_names() deduplicates.

Stored shape on products and variants:
    sale_unit: "kg"
    production_unit: "g"
    purchase_units: [{"supplier_id": 1, "unit": "bolsa 25kg"}]
"""

import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Tuple, Union

from ..models.enums import UnitRole
from .exceptions import InvalidUnitSelection
from .logging_utils import get_service_logger, log_operation
from .unit_registry import UnitRegistry

logger = get_service_logger(__name__)


def _clean_name(unit_name: Any) -> str:
    name = (unit_name or "").strip() if isinstance(unit_name, str) else ""
    if not name:
        raise ValueError("Unit name is required")
    return name


@dataclass(frozen=True)
class SaleUnit:
    """Unit the product is sold in."""

    role: ClassVar[UnitRole] = UnitRole.SALE

    unit_name: str

    def __post_init__(self):
        object.__setattr__(self, "unit_name", _clean_name(self.unit_name))


@dataclass(frozen=True)
class ProductionUnit:
    """Unit the product is produced in."""

    role: ClassVar[UnitRole] = UnitRole.PRODUCTION

    unit_name: str

    def __post_init__(self):
        object.__setattr__(self, "unit_name", _clean_name(self.unit_name))


@dataclass(frozen=True)
class PurchaseUnit:
    """Unit the product is bought in from one supplier.

    Raises:
        ValueError: If the unit name is empty or supplier_id is missing
    """

    role: ClassVar[UnitRole] = UnitRole.PURCHASE

    unit_name: str
    supplier_id: Any

    def __post_init__(self):
        object.__setattr__(self, "unit_name", _clean_name(self.unit_name))
        if self.supplier_id is None or self.supplier_id == "":
            raise ValueError("Purchase units require a supplier")


UnitSelection = Union[SaleUnit, ProductionUnit, PurchaseUnit]


def collect_unit_names(selections: Iterable[UnitSelection]) -> List[str]:
    """Distinct unit names across all selections, in first-seen order.

    Example:
        >>> collect_unit_names([SaleUnit("kg"), ProductionUnit("kg"), PurchaseUnit("g", 1)])
        ['kg', 'g']
    """
    return list(dict.fromkeys(selection.unit_name for selection in selections))


def validate_selections(
    selections: Iterable[UnitSelection], registry: Optional[UnitRegistry] = None
) -> Tuple[bool, List[str]]:
    """
    Check the role cardinality rules and, optionally, that every unit exists.

    Args:
        selections: Selections to check
        registry: When given, unit names missing from it are reported

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors = []
    sale_count = 0
    production_count = 0
    suppliers = set()

    selections = list(selections)
    for selection in selections:
        if isinstance(selection, SaleUnit):
            sale_count += 1
        elif isinstance(selection, ProductionUnit):
            production_count += 1
        elif isinstance(selection, PurchaseUnit):
            if selection.supplier_id in suppliers:
                errors.append(
                    f"Supplier {selection.supplier_id} already has a purchase unit"
                )
            suppliers.add(selection.supplier_id)
        else:
            errors.append(f"Unknown unit selection: {selection!r}")

    if sale_count > 1:
        errors.append("Only one sale unit is allowed")
    if production_count > 1:
        errors.append("Only one production unit is allowed")

    if registry is not None:
        for name in collect_unit_names(s for s in selections if hasattr(s, "unit_name")):
            if name not in registry:
                errors.append(f"Unit '{name}' does not exist")

    return len(errors) == 0, errors


def require_valid_selections(
    selections: Iterable[UnitSelection], registry: Optional[UnitRegistry] = None
) -> None:
    """
    Raise if selections break a rule.

    Raises:
        InvalidUnitSelection: With every problem found
    """
    is_valid, errors = validate_selections(selections, registry)
    if not is_valid:
        log_operation(
            logger,
            operation="validate_selections",
            outcome="invalid",
            level=logging.WARNING,
            errors=errors,
        )
        raise InvalidUnitSelection(errors)


def selections_from_record(record: Dict[str, Any]) -> List[UnitSelection]:
    """Build selections from the stored unit fields of a product or variant.

    Empty fields produce no selection.

    Raises:
        InvalidUnitSelection: If a unit field is blank or not a name, or a
            purchase unit has no unit or supplier
    """
    selections: List[UnitSelection] = []
    for field, selection_type in (("sale_unit", SaleUnit), ("production_unit", ProductionUnit)):
        value = record.get(field)
        if value is None or value == "":
            continue
        try:
            selections.append(selection_type(value))
        except ValueError as e:
            raise InvalidUnitSelection([f"{field} {value!r}: {e}"])
    for entry in record.get("purchase_units") or []:
        if not isinstance(entry, dict):
            raise InvalidUnitSelection([f"Purchase unit {entry!r}: expected supplier_id and unit"])
        try:
            selections.append(PurchaseUnit(entry.get("unit"), entry.get("supplier_id")))
        except ValueError as e:
            raise InvalidUnitSelection([f"Purchase unit {entry!r}: {e}"])
    return selections


def selections_to_fields(selections: Iterable[UnitSelection]) -> Dict[str, Any]:
    """Map selections back to the stored unit fields.

    Returns:
        Dict with sale_unit, production_unit and purchase_units
    """
    fields: Dict[str, Any] = {"sale_unit": None, "production_unit": None, "purchase_units": []}
    for selection in selections:
        if isinstance(selection, SaleUnit):
            fields["sale_unit"] = selection.unit_name
        elif isinstance(selection, ProductionUnit):
            fields["production_unit"] = selection.unit_name
        else:
            fields["purchase_units"].append(
                {"supplier_id": selection.supplier_id, "unit": selection.unit_name}
            )
    return fields
