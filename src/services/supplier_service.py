"""Supplier Service - CRUD operations for supplier management.

Suppliers have no algorithmic role in unit conversion: they only label the
per-supplier purchase units of a product.

All functions follow the optional-session pattern for transactional safety.

Example Usage:
    >>> from src.services.supplier_service import create_supplier, SupplierCache
    >>> supplier = create_supplier(name="Distribuidora Norte")
    >>> cache = SupplierCache()
    >>> cache.name_for(supplier["id"])
    'Distribuidora Norte'
"""

from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ..models import Supplier
from ..utils.constants import (
    ERROR_NAME_TOO_LONG,
    ERROR_REQUIRED_FIELD,
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
)
from .change_feed import ChangeFeed
from .database import session_scope
from .exceptions import DatabaseError, SupplierNotFoundError, ValidationError
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

_supplier_feed = ChangeFeed("suppliers")


def _validate_name(name: Optional[str]) -> str:
    """Return the stripped supplier name or raise ValidationError."""
    name = (name or "").strip()
    if not name:
        raise ValidationError([f"Name: {ERROR_REQUIRED_FIELD}"])
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError([ERROR_NAME_TOO_LONG])
    return name


def _validate_notes(notes: Optional[str]) -> Optional[str]:
    """Return the stripped notes (None when blank) or raise ValidationError."""
    notes = (notes or "").strip() or None
    if notes and len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError([f"Notes must be {MAX_NOTES_LENGTH} characters or less"])
    return notes


def create_supplier(
    name: str,
    notes: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Create a new supplier.

    Args:
        name: Supplier name (required)
        notes: Additional notes (optional)
        session: Optional database session for transactional atomicity

    Returns:
        Dict[str, Any]: Created supplier as dictionary

    Raises:
        ValidationError: If name is empty or too long, or notes are too long
    """
    name = _validate_name(name)
    notes = _validate_notes(notes)
    if session is not None:
        result = _create_supplier_impl(name, notes, session)
    else:
        with session_scope() as session_:
            result = _create_supplier_impl(name, notes, session_)

    log_operation(logger, operation="create_supplier", outcome="success", supplier_id=result["id"])
    _publish(session)
    return result


def _create_supplier_impl(name: str, notes: Optional[str], session: Session) -> Dict[str, Any]:
    """Implementation of create_supplier."""
    supplier = Supplier(name=name, notes=notes)
    session.add(supplier)
    session.flush()
    return supplier.to_dict()


def get_supplier(supplier_id: int, session: Optional[Session] = None) -> Optional[Dict[str, Any]]:
    """Get supplier by ID.

    Args:
        supplier_id: Supplier ID
        session: Optional database session

    Returns:
        Dict[str, Any]: Supplier data as dictionary, or None if not found

    Raises:
        DatabaseError: If the store cannot be read
    """
    try:
        if session is not None:
            return _get_supplier_impl(supplier_id, session)
        with session_scope() as session:
            return _get_supplier_impl(supplier_id, session)
    except Exception as e:
        raise DatabaseError(f"Failed to load supplier {supplier_id}", original_error=e)


def _get_supplier_impl(supplier_id: int, session: Session) -> Optional[Dict[str, Any]]:
    """Implementation of get_supplier."""
    supplier = session.get(Supplier, supplier_id)
    return supplier.to_dict() if supplier else None


def get_all_suppliers(
    include_inactive: bool = False,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """Get all suppliers, optionally including inactive.

    Args:
        include_inactive: If True, include deactivated suppliers (default: False)
        session: Optional database session

    Returns:
        List[Dict[str, Any]]: List of supplier dictionaries, sorted by name

    Raises:
        DatabaseError: If the store cannot be read
    """
    try:
        if session is not None:
            return _get_all_suppliers_impl(include_inactive, session)
        with session_scope() as session:
            return _get_all_suppliers_impl(include_inactive, session)
    except Exception as e:
        raise DatabaseError("Failed to load suppliers", original_error=e)


def _get_all_suppliers_impl(include_inactive: bool, session: Session) -> List[Dict[str, Any]]:
    """Implementation of get_all_suppliers."""
    query = session.query(Supplier)
    if not include_inactive:
        query = query.filter(Supplier.is_active == True)  # noqa: E712
    return [s.to_dict() for s in query.order_by(Supplier.name).all()]


def update_supplier(
    supplier_id: int,
    session: Optional[Session] = None,
    **updates: Any,
) -> Dict[str, Any]:
    """Update supplier attributes.

    Args:
        supplier_id: Supplier ID
        session: Optional database session
        **updates: Fields to update (name, notes, is_active)

    Returns:
        Dict[str, Any]: Updated supplier as dictionary

    Raises:
        SupplierNotFoundError: If supplier doesn't exist
        ValidationError: If name is set to an empty value or notes are too long
    """
    if "name" in updates:
        updates["name"] = _validate_name(updates["name"])
    if "notes" in updates:
        updates["notes"] = _validate_notes(updates["notes"])

    if session is not None:
        result = _update_supplier_impl(supplier_id, updates, session)
    else:
        with session_scope() as session_:
            result = _update_supplier_impl(supplier_id, updates, session_)

    log_operation(logger, operation="update_supplier", outcome="success", supplier_id=supplier_id)
    _publish(session)
    return result


def _update_supplier_impl(
    supplier_id: int, updates: Dict[str, Any], session: Session
) -> Dict[str, Any]:
    """Implementation of update_supplier."""
    supplier = session.get(Supplier, supplier_id)
    if not supplier:
        raise SupplierNotFoundError(supplier_id)

    for field in ("name", "notes", "is_active"):
        if field in updates:
            setattr(supplier, field, updates[field])

    session.flush()
    return supplier.to_dict()


def delete_supplier(supplier_id: int, session: Optional[Session] = None) -> None:
    """Delete a supplier.

    Purchase units that reference the supplier keep their supplier_id and are
    labelled with the raw ID afterwards.

    Args:
        supplier_id: Supplier ID
        session: Optional database session

    Raises:
        SupplierNotFoundError: If supplier doesn't exist
    """
    if session is not None:
        _delete_supplier_impl(supplier_id, session)
    else:
        with session_scope() as session_:
            _delete_supplier_impl(supplier_id, session_)

    log_operation(logger, operation="delete_supplier", outcome="success", supplier_id=supplier_id)
    _publish(session)


def _delete_supplier_impl(supplier_id: int, session: Session) -> None:
    """Implementation of delete_supplier."""
    supplier = session.get(Supplier, supplier_id)
    if not supplier:
        raise SupplierNotFoundError(supplier_id)
    session.delete(supplier)
    session.flush()


def on_value(callback: Callable[[List[Dict[str, Any]]], None]) -> Callable[[], None]:
    """Subscribe to the active supplier list.

    Args:
        callback: Called with the list of supplier dictionaries now and after every write

    Returns:
        Function that cancels the subscription
    """
    snapshot = get_all_suppliers()
    callback(snapshot)
    return _supplier_feed.subscribe(callback)


def _publish(session: Optional[Session]) -> None:
    """Notify subscribers with a fresh snapshot, if anyone is listening."""
    if _supplier_feed.has_subscribers:
        _supplier_feed.publish(get_all_suppliers(session=session))


class SupplierCache:
    """Supplier id -> name lookup owned by one editing session.

    Loaded lazily on first use and kept until invalidate() is called.
    Inactive suppliers are included so that existing purchase units keep
    their label.
    """

    def __init__(self, loader: Optional[Callable[[], List[Dict[str, Any]]]] = None):
        self._loader = loader or (lambda: get_all_suppliers(include_inactive=True))
        self._names: Optional[Dict[Any, str]] = None

    def _load(self) -> Dict[Any, str]:
        if self._names is None:
            self._names = {s["id"]: s["name"] for s in self._loader()}
        return self._names

    def name_for(self, supplier_id: Any) -> str:
        """Return the supplier name, or "ID: <id>" when it is unknown.

        Raises:
            DatabaseError: If the supplier list cannot be loaded
        """
        return self._load().get(supplier_id, f"ID: {supplier_id}")

    def all(self) -> Dict[Any, str]:
        """Return the full id -> name mapping."""
        return dict(self._load())

    def invalidate(self) -> None:
        """Forget cached names; the next lookup reloads them."""
        self._names = None
