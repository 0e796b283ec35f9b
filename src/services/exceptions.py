"""Service layer exception classes for the Unit Conversion Catalog.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application.

Exception Hierarchy:
    ServiceError (base)
    ├── MeasurementUnitNotFound
    ├── ProductNotFound
    ├── VariantNotFound
    ├── SupplierNotFoundError
    ├── ValidationError
    │   ├── InvalidUnitSelection
    │   └── ConversionValidationError
    ├── RegistryUnavailable
    └── DatabaseError

Unresolvable conversions are not errors: the resolver reports them as an
unresolved result and the editor asks for a manual factor.
"""


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class MeasurementUnitNotFound(ServiceError):
    """Raised when a measurement unit cannot be found by ID.

    Args:
        unit_id: The unit ID that was not found

    Example:
        >>> raise MeasurementUnitNotFound(7)
        MeasurementUnitNotFound: Measurement unit with ID 7 not found
    """

    def __init__(self, unit_id: int):
        self.unit_id = unit_id
        super().__init__(f"Measurement unit with ID {unit_id} not found")


class ProductNotFound(ServiceError):
    """Raised when product cannot be found by ID.

    Args:
        product_id: The product ID that was not found
    """

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found")


class VariantNotFound(ServiceError):
    """Raised when a product variant cannot be found by ID."""

    def __init__(self, variant_id: int):
        self.variant_id = variant_id
        super().__init__(f"Variant with ID {variant_id} not found")


class SupplierNotFoundError(ServiceError):
    """Raised when a supplier cannot be found by ID.

    Args:
        supplier_id: The supplier ID that was not found

    Example:
        >>> raise SupplierNotFoundError(123)
        SupplierNotFoundError: Supplier with ID 123 not found
    """

    def __init__(self, supplier_id: int):
        self.supplier_id = supplier_id
        super().__init__(f"Supplier with ID {supplier_id} not found")


class ValidationError(ServiceError):
    """Raised when data validation fails.

    Args:
        errors: List of human-readable error messages
    """

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class InvalidUnitSelection(ValidationError):
    """Raised when unit selections are malformed.

    Covers purchase units without a supplier, repeated sale/production units,
    two purchase units for one supplier and unit names missing from the
    registry. Selections are rejected before they reach the synchronizer.
    """

    pass


class ConversionValidationError(ValidationError):
    """Raised when a conversion set fails validation at save time.

    Args:
        result: The ConversionValidationResult describing the failure

    Attributes:
        result: Validation result (failure kind, message, offending pair)
        pair: Offending (from_unit, to_unit) pair, if any
    """

    def __init__(self, result):
        self.result = result
        self.pair = result.pair
        super().__init__([result.message])


class RegistryUnavailable(ServiceError):
    """Raised when the unit registry cannot be loaded from the store.

    Args:
        original_error: The underlying store failure
    """

    def __init__(self, original_error: Exception = None):
        self.original_error = original_error
        detail = f": {original_error}" if original_error else ""
        super().__init__(f"Unit registry unavailable{detail}")


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
