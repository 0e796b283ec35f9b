"""Product Service - products, variants and their unit/conversion fields.

This module is the product store. Besides plain CRUD it guards the unit
fields: every write that touches sale_unit, production_unit, purchase_units or
conversions is checked before anything is persisted.

Write-time checks on unit fields:
- purchase units carry a supplier; one purchase unit per supplier
- every referenced unit name exists in the unit registry
- conversions pass validate_conversions() for the distinct unit names

Variants store only the unit fields they override (NULL = inherit). Checks on
a variant run against its effective fields, i.e. after inheritance.

All functions accept an optional session parameter to support being called
from other service functions that need transactional atomicity.

Example Usage:
    >>> from src.services import product_service
    >>> product = product_service.create_product({
    ...     "name": "Harina 000",
    ...     "sale_unit": "kg",
    ...     "production_unit": "g",
    ...     "conversions": [
    ...         {"from_unit": "kg", "to_unit": "g", "factor": 1000},
    ...         {"from_unit": "g", "to_unit": "kg", "factor": 0.001},
    ...     ],
    ... })
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..models import Product, ProductVariant, UNIT_FIELDS
from ..utils.constants import (
    ERROR_DUPLICATE_NAME,
    ERROR_NAME_TOO_LONG,
    ERROR_REQUIRED_FIELD,
    MAX_NAME_LENGTH,
    MAX_SKU_LENGTH,
)
from .change_feed import ChangeFeed
from .conversion_edges import ConversionEdge, edges_from_records, edges_to_records
from .conversion_validator import validate_conversions
from .database import session_scope
from .exceptions import (
    ConversionValidationError,
    DatabaseError,
    InvalidUnitSelection,
    ProductNotFound,
    ValidationError,
    VariantNotFound,
)
from .logging_utils import get_service_logger, log_operation
from .measurement_unit_service import find_missing_unit_names
from .unit_selection import (
    UnitSelection,
    collect_unit_names,
    selections_from_record,
    selections_to_fields,
    validate_selections,
)

logger = get_service_logger(__name__)

_product_feed = ChangeFeed("products")


# ============================================================================
# Validation helpers
# ============================================================================


def _validate_basic_fields(data: Dict[str, Any], require_name: bool = True) -> List[str]:
    """Validate name and sku; returns error messages."""
    errors = []
    if require_name or "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            errors.append(f"Name: {ERROR_REQUIRED_FIELD}")
        elif len(name) > MAX_NAME_LENGTH:
            errors.append(ERROR_NAME_TOO_LONG)
    sku = data.get("sku")
    if sku and len(sku) > MAX_SKU_LENGTH:
        errors.append(f"SKU must be {MAX_SKU_LENGTH} characters or less")
    return errors


def _check_unit_fields(fields: Dict[str, Any], session: Session, operation: str) -> None:
    """
    Validate effective unit fields of a product or variant.

    Args:
        fields: Dict with sale_unit, production_unit, purchase_units, conversions
        session: Database session used for unit existence checks
        operation: Operation name for log records

    Raises:
        InvalidUnitSelection: If selections are malformed or reference unknown units
        ConversionValidationError: If the conversions fail validation
        ValidationError: If a stored conversion record is malformed
    """
    selections = selections_from_record(fields)
    is_valid, errors = validate_selections(selections)
    if not is_valid:
        raise InvalidUnitSelection(errors)

    unit_names = collect_unit_names(selections)
    missing = find_missing_unit_names(unit_names, session=session)
    if missing:
        raise InvalidUnitSelection([f"Unit '{name}' does not exist" for name in missing])

    try:
        edges = edges_from_records(fields.get("conversions"))
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ValidationError([f"Malformed conversion record: {e}"])

    result = validate_conversions(unit_names, edges)
    if not result:
        log_operation(
            logger,
            operation=operation,
            outcome=result.failure.value,
            level=logging.WARNING,
            pair=result.pair,
            error=result.message,
        )
        raise ConversionValidationError(result)


def _touches_units(data: Dict[str, Any]) -> bool:
    return any(field in data for field in UNIT_FIELDS)


def _run(impl: Callable[[Session], Any], session: Optional[Session]) -> Any:
    """Run impl inside the given session or a new session_scope()."""
    if session is not None:
        return impl(session)
    with session_scope() as sess:
        return impl(sess)


# ============================================================================
# Products
# ============================================================================


def create_product(data: Dict[str, Any], session: Optional[Session] = None) -> Dict[str, Any]:
    """Create a new product.

    Args:
        data: Dictionary containing:
            - name (str, required): Product name
            - sku (str, optional): Unique SKU
            - sale_unit (str, optional): Unit name
            - production_unit (str, optional): Unit name
            - purchase_units (list, optional): [{"supplier_id", "unit"}]
            - conversions (list, optional): [{"from_unit", "to_unit", "factor"}]
        session: Optional database session for transactional atomicity

    Returns:
        Dict[str, Any]: Created product as dictionary

    Raises:
        ValidationError: If fields are invalid (InvalidUnitSelection and
            ConversionValidationError for unit fields)
        DatabaseError: If database operation fails
    """
    errors = _validate_basic_fields(data)
    if errors:
        raise ValidationError(errors)

    def _impl(sess: Session) -> Dict[str, Any]:
        sku = (data.get("sku") or "").strip() or None
        if sku and sess.query(Product).filter(Product.sku == sku).first():
            raise ValidationError([f"SKU '{sku}': {ERROR_DUPLICATE_NAME}"])

        fields = {field: data.get(field) for field in UNIT_FIELDS}
        _check_unit_fields(fields, sess, "create_product")

        product = Product(
            name=data["name"].strip(),
            sku=sku,
            sale_unit=fields["sale_unit"] or None,
            production_unit=fields["production_unit"] or None,
            purchase_units=list(fields["purchase_units"] or []),
            conversions=_normalized_conversions(fields["conversions"]),
            is_active=data.get("is_active", True),
        )
        sess.add(product)
        sess.flush()
        return product.to_dict()

    try:
        result = _run(_impl, session)
    except ValidationError:
        raise
    except Exception as e:
        raise DatabaseError("Failed to create product", original_error=e)

    log_operation(logger, operation="create_product", outcome="success", product_id=result["id"])
    _publish(session)
    return result


def get_product(
    product_id: int, include_variants: bool = False, session: Optional[Session] = None
) -> Optional[Dict[str, Any]]:
    """Get product by ID, or None if not found.

    Raises:
        DatabaseError: If the store cannot be read
    """

    def _impl(sess: Session) -> Optional[Dict[str, Any]]:
        product = sess.get(Product, product_id)
        return product.to_dict(include_relationships=include_variants) if product else None

    try:
        return _run(_impl, session)
    except Exception as e:
        raise DatabaseError(f"Failed to load product {product_id}", original_error=e)


def get_all_products(
    include_inactive: bool = False, session: Optional[Session] = None
) -> List[Dict[str, Any]]:
    """Get all products sorted by name.

    Raises:
        DatabaseError: If the store cannot be read
    """

    def _impl(sess: Session) -> List[Dict[str, Any]]:
        query = sess.query(Product)
        if not include_inactive:
            query = query.filter(Product.is_active == True)  # noqa: E712
        return [p.to_dict() for p in query.order_by(Product.name, Product.id).all()]

    try:
        return _run(_impl, session)
    except Exception as e:
        raise DatabaseError("Failed to load products", original_error=e)


def update_product(
    product_id: int, data: Dict[str, Any], session: Optional[Session] = None
) -> Dict[str, Any]:
    """Update a product.

    Fields not present in data keep their value. Unit fields are checked
    together after merging, so changing the sale unit without updating the
    conversions is rejected.

    Args:
        product_id: Product ID
        data: Fields to update
        session: Optional database session

    Returns:
        Dict[str, Any]: Updated product as dictionary

    Raises:
        ProductNotFound: If product doesn't exist
        ValidationError: If the merged data is invalid
        DatabaseError: If database operation fails
    """
    errors = _validate_basic_fields(data, require_name=False)
    if errors:
        raise ValidationError(errors)

    def _impl(sess: Session) -> Dict[str, Any]:
        product = sess.get(Product, product_id)
        if product is None:
            raise ProductNotFound(product_id)

        if "sku" in data:
            sku = (data.get("sku") or "").strip() or None
            duplicate = (
                sess.query(Product).filter(Product.sku == sku, Product.id != product_id).first()
            )
            if sku and duplicate:
                raise ValidationError([f"SKU '{sku}': {ERROR_DUPLICATE_NAME}"])
            product.sku = sku

        if _touches_units(data):
            fields = {
                field: data[field] if field in data else getattr(product, field)
                for field in UNIT_FIELDS
            }
            _check_unit_fields(fields, sess, "update_product")
            product.sale_unit = fields["sale_unit"] or None
            product.production_unit = fields["production_unit"] or None
            product.purchase_units = list(fields["purchase_units"] or [])
            product.conversions = _normalized_conversions(fields["conversions"])

        if "name" in data:
            product.name = data["name"].strip()
        if "is_active" in data:
            product.is_active = bool(data["is_active"])

        sess.flush()
        return product.to_dict()

    try:
        result = _run(_impl, session)
    except (ProductNotFound, ValidationError):
        raise
    except Exception as e:
        raise DatabaseError(f"Failed to update product {product_id}", original_error=e)

    log_operation(logger, operation="update_product", outcome="success", product_id=product_id)
    _publish(session)
    return result


def delete_product(product_id: int, session: Optional[Session] = None) -> None:
    """Delete a product and its variants.

    Raises:
        ProductNotFound: If product doesn't exist
        DatabaseError: If database operation fails
    """

    def _impl(sess: Session) -> None:
        product = sess.get(Product, product_id)
        if product is None:
            raise ProductNotFound(product_id)
        sess.delete(product)
        sess.flush()

    try:
        _run(_impl, session)
    except ProductNotFound:
        raise
    except Exception as e:
        raise DatabaseError(f"Failed to delete product {product_id}", original_error=e)

    log_operation(logger, operation="delete_product", outcome="success", product_id=product_id)
    _publish(session)


def _normalized_conversions(records: Optional[Sequence[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Store conversions in their canonical {from_unit, to_unit, factor} shape."""
    return edges_to_records(edges_from_records(records))


# ============================================================================
# Variants
# ============================================================================


def _variant_name_taken(
    sess: Session, product_id: int, name: str, variant_id: Optional[int] = None
) -> bool:
    query = sess.query(ProductVariant).filter(
        ProductVariant.product_id == product_id, ProductVariant.name == name
    )
    if variant_id is not None:
        query = query.filter(ProductVariant.id != variant_id)
    return query.first() is not None


def _effective_fields(variant_fields: Dict[str, Any], product: Product) -> Dict[str, Any]:
    """Apply per-field inheritance: None on the variant means the product's value."""
    return {
        field: (
            variant_fields[field]
            if variant_fields.get(field) is not None
            else getattr(product, field)
        )
        for field in UNIT_FIELDS
    }


def create_variant(
    product_id: int, data: Dict[str, Any], session: Optional[Session] = None
) -> Dict[str, Any]:
    """Create a variant of a product.

    Unit fields left out (or None) are inherited from the product.

    Args:
        product_id: Parent product ID
        data: Dictionary with name (required), sku and any unit field overrides
        session: Optional database session

    Returns:
        Dict[str, Any]: Created variant as dictionary

    Raises:
        ProductNotFound: If the parent product doesn't exist
        ValidationError: If fields or effective unit fields are invalid
        DatabaseError: If database operation fails
    """
    errors = _validate_basic_fields(data)
    if errors:
        raise ValidationError(errors)

    def _impl(sess: Session) -> Dict[str, Any]:
        product = sess.get(Product, product_id)
        if product is None:
            raise ProductNotFound(product_id)

        name = data["name"].strip()
        if _variant_name_taken(sess, product_id, name):
            raise ValidationError([f"Variant name '{name}': {ERROR_DUPLICATE_NAME}"])

        overrides = {field: data.get(field) for field in UNIT_FIELDS}
        _check_unit_fields(_effective_fields(overrides, product), sess, "create_variant")

        variant = ProductVariant(
            product_id=product_id,
            name=name,
            sku=(data.get("sku") or "").strip() or None,
            sale_unit=overrides["sale_unit"],
            production_unit=overrides["production_unit"],
            purchase_units=overrides["purchase_units"],
            conversions=(
                _normalized_conversions(overrides["conversions"])
                if overrides["conversions"] is not None
                else None
            ),
        )
        sess.add(variant)
        sess.flush()
        return variant.to_dict()

    try:
        result = _run(_impl, session)
    except (ProductNotFound, ValidationError):
        raise
    except Exception as e:
        raise DatabaseError(f"Failed to create variant for product {product_id}", original_error=e)

    log_operation(
        logger,
        operation="create_variant",
        outcome="success",
        product_id=product_id,
        variant_id=result["id"],
    )
    _publish(session)
    return result


def get_variant(variant_id: int, session: Optional[Session] = None) -> Optional[Dict[str, Any]]:
    """Get variant by ID (stored fields, without inheritance), or None.

    Raises:
        DatabaseError: If the store cannot be read
    """

    def _impl(sess: Session) -> Optional[Dict[str, Any]]:
        variant = sess.get(ProductVariant, variant_id)
        return variant.to_dict() if variant else None

    try:
        return _run(_impl, session)
    except Exception as e:
        raise DatabaseError(f"Failed to load variant {variant_id}", original_error=e)


def get_variants_for_product(
    product_id: int, session: Optional[Session] = None
) -> List[Dict[str, Any]]:
    """Get all variants of a product, in creation order.

    Raises:
        ProductNotFound: If product doesn't exist
        DatabaseError: If the store cannot be read
    """

    def _impl(sess: Session) -> List[Dict[str, Any]]:
        product = sess.get(Product, product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return [variant.to_dict() for variant in product.variants]

    try:
        return _run(_impl, session)
    except ProductNotFound:
        raise
    except Exception as e:
        raise DatabaseError(f"Failed to load variants of product {product_id}", original_error=e)


def update_variant(
    variant_id: int, data: Dict[str, Any], session: Optional[Session] = None
) -> Dict[str, Any]:
    """Update a variant.

    Setting a unit field to None makes the variant inherit it again.

    Raises:
        VariantNotFound: If variant doesn't exist
        ValidationError: If the merged data is invalid
        DatabaseError: If database operation fails
    """
    errors = _validate_basic_fields(data, require_name=False)
    if errors:
        raise ValidationError(errors)

    def _impl(sess: Session) -> Dict[str, Any]:
        variant = sess.get(ProductVariant, variant_id)
        if variant is None:
            raise VariantNotFound(variant_id)

        if "name" in data:
            name = data["name"].strip()
            if _variant_name_taken(sess, variant.product_id, name, variant_id):
                raise ValidationError([f"Variant name '{name}': {ERROR_DUPLICATE_NAME}"])
            variant.name = name
        if "sku" in data:
            variant.sku = (data.get("sku") or "").strip() or None

        if _touches_units(data):
            overrides = {
                field: data[field] if field in data else getattr(variant, field)
                for field in UNIT_FIELDS
            }
            _check_unit_fields(
                _effective_fields(overrides, variant.product), sess, "update_variant"
            )
            variant.sale_unit = overrides["sale_unit"]
            variant.production_unit = overrides["production_unit"]
            variant.purchase_units = overrides["purchase_units"]
            variant.conversions = (
                _normalized_conversions(overrides["conversions"])
                if overrides["conversions"] is not None
                else None
            )

        sess.flush()
        return variant.to_dict()

    try:
        result = _run(_impl, session)
    except (VariantNotFound, ValidationError):
        raise
    except Exception as e:
        raise DatabaseError(f"Failed to update variant {variant_id}", original_error=e)

    log_operation(logger, operation="update_variant", outcome="success", variant_id=variant_id)
    _publish(session)
    return result


def delete_variant(variant_id: int, session: Optional[Session] = None) -> None:
    """Delete a variant.

    Raises:
        VariantNotFound: If variant doesn't exist
    """

    def _impl(sess: Session) -> None:
        variant = sess.get(ProductVariant, variant_id)
        if variant is None:
            raise VariantNotFound(variant_id)
        sess.delete(variant)
        sess.flush()

    try:
        _run(_impl, session)
    except VariantNotFound:
        raise
    except Exception as e:
        raise DatabaseError(f"Failed to delete variant {variant_id}", original_error=e)

    log_operation(logger, operation="delete_variant", outcome="success", variant_id=variant_id)
    _publish(session)


def get_effective_units(variant_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Unit fields a variant actually uses, after inheritance.

    Returns:
        Dict with sale_unit, production_unit, purchase_units, conversions and
        "inherited" (the fields taken from the parent product)

    Raises:
        VariantNotFound: If variant doesn't exist
        DatabaseError: If the store cannot be read
    """

    def _impl(sess: Session) -> Dict[str, Any]:
        variant = sess.get(ProductVariant, variant_id)
        if variant is None:
            raise VariantNotFound(variant_id)
        return variant.effective_units()

    try:
        return _run(_impl, session)
    except VariantNotFound:
        raise
    except Exception as e:
        raise DatabaseError(f"Failed to load units of variant {variant_id}", original_error=e)


# ============================================================================
# Reconciled unit sets
# ============================================================================


def _unit_payload(
    selections: Sequence[UnitSelection], edges: Sequence[ConversionEdge]
) -> Dict[str, Any]:
    payload = selections_to_fields(selections)
    payload["conversions"] = edges_to_records(edges)
    return payload


def save_product_units(
    product_id: int,
    selections: Sequence[UnitSelection],
    edges: Sequence[ConversionEdge],
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Write a reconciled set of unit selections and conversions to a product.

    Args:
        product_id: Product ID
        selections: Final unit selections
        edges: Final conversion edges
        session: Optional database session

    Returns:
        Dict[str, Any]: Updated product as dictionary

    Raises:
        ProductNotFound: If product doesn't exist
        InvalidUnitSelection: If selections are invalid
        ConversionValidationError: If the edges fail validation
    """
    return update_product(product_id, _unit_payload(selections, edges), session=session)


def save_variant_units(
    variant_id: int,
    selections: Sequence[UnitSelection],
    edges: Sequence[ConversionEdge],
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Write a reconciled unit set to a variant as explicit overrides.

    Purchase units and conversions become explicit overrides. A sale or
    production unit missing from the selections is stored as NULL and is
    inherited from the product again.

    Raises:
        VariantNotFound: If variant doesn't exist
        InvalidUnitSelection: If selections are invalid
        ConversionValidationError: If the edges fail validation
    """
    return update_variant(variant_id, _unit_payload(selections, edges), session=session)


# ============================================================================
# Live updates
# ============================================================================


def on_value(callback: Callable[[List[Dict[str, Any]]], None]) -> Callable[[], None]:
    """Subscribe to the active product list.

    The callback receives the current list immediately and again after every
    product or variant write.

    Returns:
        Function that cancels the subscription
    """
    snapshot = get_all_products()
    callback(snapshot)
    return _product_feed.subscribe(callback)


def _publish(session: Optional[Session]) -> None:
    """Notify subscribers with a fresh snapshot, if anyone is listening."""
    if _product_feed.has_subscribers:
        _product_feed.publish(get_all_products(session=session))
