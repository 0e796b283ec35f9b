"""Services package - Business logic layer for the Unit Conversion Catalog.

This package contains the stores (database-backed service modules) and the
conversion engine that keeps a product's unit conversions complete and
consistent.

Architecture:
- Stores: Stateless functions per domain (units, suppliers, products)
- Engine: Pure functions over registry snapshots and conversion edges
- Transactions: Managed via session_scope() context manager
- Exceptions: Consistent error handling via ServiceError hierarchy

Service Modules:
- measurement_unit_service: Global unit registry CRUD
- supplier_service: Supplier CRUD and name cache
- product_service: Products, variants and their unit fields

Conversion Engine:
- unit_registry: Registry snapshot and session-owned cache
- conversion_resolver: Identity/direct/reverse/bridge factor lookup
- unit_selection: Sale, production and purchase unit selections
- conversion_synchronizer: Required pair derivation and coalesced re-sync
- conversion_validator: Save-time checks on conversion edges
- product_unit_editor: Editing session tying the engine to the stores

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- change_feed: Subscriptions behind the stores' on_value()
- logging_utils: Structured operation logging
"""

from . import (
    database,
    measurement_unit_service,
    supplier_service,
    product_service,
)

from .conversion_edges import ConversionEdge
from .conversion_resolver import Resolution, ResolutionMethod, resolve, resolve_factor
from .conversion_synchronizer import ConversionSynchronizer, SyncState, synchronize
from .conversion_validator import (
    ConversionValidationResult,
    ValidationFailure,
    validate_conversions,
)
from .product_unit_editor import ProductUnitEditor
from .unit_registry import RegistryCache, UnitRegistry
from .unit_selection import (
    ProductionUnit,
    PurchaseUnit,
    SaleUnit,
    UnitSelection,
    collect_unit_names,
)

from .exceptions import (
    ServiceError,
    MeasurementUnitNotFound,
    ProductNotFound,
    VariantNotFound,
    SupplierNotFoundError,
    ValidationError,
    InvalidUnitSelection,
    ConversionValidationError,
    RegistryUnavailable,
    DatabaseError,
)

__all__ = [
    # Stores
    "database",
    "measurement_unit_service",
    "supplier_service",
    "product_service",
    # Engine
    "ConversionEdge",
    "Resolution",
    "ResolutionMethod",
    "resolve",
    "resolve_factor",
    "ConversionSynchronizer",
    "SyncState",
    "synchronize",
    "ConversionValidationResult",
    "ValidationFailure",
    "validate_conversions",
    "ProductUnitEditor",
    "RegistryCache",
    "UnitRegistry",
    "ProductionUnit",
    "PurchaseUnit",
    "SaleUnit",
    "UnitSelection",
    "collect_unit_names",
    # Exceptions
    "ServiceError",
    "MeasurementUnitNotFound",
    "ProductNotFound",
    "VariantNotFound",
    "SupplierNotFoundError",
    "ValidationError",
    "InvalidUnitSelection",
    "ConversionValidationError",
    "RegistryUnavailable",
    "DatabaseError",
]
