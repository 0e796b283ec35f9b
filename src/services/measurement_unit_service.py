"""Measurement Unit Service - CRUD for the global unit registry.

This module is the unit store: administrators create, edit and delete named
measurement units and their authored direct conversions. The conversion engine
only reads from it (through UnitRegistry snapshots).

All functions accept an optional session parameter to support being called from
other service functions that need to maintain transactional atomicity.

Write-time invariants:
- name and acronym are required; names are unique; acronyms are upper-cased
- every conversion factor is > 0
- every conversion targets an existing unit other than the owner
- at most one conversion per target unit
- deleting a unit removes conversions that point at it

Example Usage:
    >>> from src.services import measurement_unit_service as units
    >>> kg = units.create_unit({"name": "kg", "acronym": "kg"})
    >>> g = units.create_unit({"name": "g", "acronym": "g"})
    >>> units.update_unit(kg["id"], {"conversions": [{"to_unit_id": g["id"], "factor": 1000}]})
    >>> [u["name"] for u in units.get_all_units()]
    ['kg', 'g']
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..models import MeasurementUnit, MeasurementUnitConversion
from ..utils.constants import (
    ERROR_DUPLICATE_NAME,
    ERROR_INVALID_POSITIVE,
    ERROR_REQUIRED_FIELD,
    MAX_ACRONYM_LENGTH,
    MAX_UNIT_NAME_LENGTH,
)
from .change_feed import ChangeFeed
from .database import session_scope
from .exceptions import (
    DatabaseError,
    MeasurementUnitNotFound,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

_unit_feed = ChangeFeed("measurement_units")


# ============================================================================
# Queries
# ============================================================================


def get_all_units(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """Get all measurement units with their conversions.

    Units are returned in creation order and each unit's conversions in the
    order they were authored; bridge resolution depends on this order.

    Args:
        session: Optional database session. If None, creates a new session.

    Returns:
        List of unit dictionaries ({"id", "name", "acronym", "conversions", ...})

    Raises:
        DatabaseError: If the store cannot be read
    """

    def _impl(sess: Session) -> List[Dict[str, Any]]:
        units = sess.query(MeasurementUnit).order_by(MeasurementUnit.id).all()
        return [unit.to_dict() for unit in units]

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except Exception as e:
        raise DatabaseError("Failed to load measurement units", original_error=e)


def get_unit(unit_id: int, session: Optional[Session] = None) -> Optional[Dict[str, Any]]:
    """Get a measurement unit by ID.

    Args:
        unit_id: Unit ID
        session: Optional database session

    Returns:
        Unit dictionary, or None if not found

    Raises:
        DatabaseError: If the store cannot be read
    """

    def _impl(sess: Session) -> Optional[Dict[str, Any]]:
        unit = sess.get(MeasurementUnit, unit_id)
        return unit.to_dict() if unit else None

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except Exception as e:
        raise DatabaseError(f"Failed to load unit {unit_id}", original_error=e)


def get_unit_by_name(name: str, session: Optional[Session] = None) -> Optional[Dict[str, Any]]:
    """Get a measurement unit by its exact name.

    Args:
        name: Unit name (e.g., "kg")
        session: Optional database session

    Returns:
        Unit dictionary, or None if not found

    Raises:
        DatabaseError: If the store cannot be read
    """

    def _impl(sess: Session) -> Optional[Dict[str, Any]]:
        unit = sess.query(MeasurementUnit).filter(MeasurementUnit.name == name).first()
        return unit.to_dict() if unit else None

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except Exception as e:
        raise DatabaseError(f"Failed to load unit '{name}'", original_error=e)


def find_missing_unit_names(
    names: Iterable[str], session: Optional[Session] = None
) -> List[str]:
    """Return the names that do not exist in the registry.

    Args:
        names: Unit names to check
        session: Optional database session

    Returns:
        Missing names, in the order given (deduplicated)

    Raises:
        DatabaseError: If the store cannot be read
    """
    wanted = list(dict.fromkeys(names))
    if not wanted:
        return []

    def _impl(sess: Session) -> List[str]:
        rows = sess.query(MeasurementUnit.name).filter(MeasurementUnit.name.in_(wanted)).all()
        existing = {row[0] for row in rows}
        return [name for name in wanted if name not in existing]

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except Exception as e:
        raise DatabaseError("Failed to check unit names", original_error=e)


# ============================================================================
# Validation
# ============================================================================


def _validate_unit_data(
    data: Dict[str, Any], session: Session, unit_id: Optional[int] = None
) -> List[str]:
    """Validate unit fields and conversions.

    Args:
        data: Unit fields; name and acronym must already be merged for updates
        session: Database session used for existence checks
        unit_id: ID of the unit being updated (None when creating)

    Returns:
        List of error messages (empty if valid)
    """
    errors = []

    name = (data.get("name") or "").strip()
    acronym = (data.get("acronym") or "").strip()

    if not name:
        errors.append(f"Name: {ERROR_REQUIRED_FIELD}")
    elif len(name) > MAX_UNIT_NAME_LENGTH:
        errors.append(f"Name must be {MAX_UNIT_NAME_LENGTH} characters or less")
    else:
        query = session.query(MeasurementUnit).filter(MeasurementUnit.name == name)
        if unit_id is not None:
            query = query.filter(MeasurementUnit.id != unit_id)
        if query.first() is not None:
            errors.append(f"Name '{name}': {ERROR_DUPLICATE_NAME}")

    if not acronym:
        errors.append(f"Acronym: {ERROR_REQUIRED_FIELD}")
    elif len(acronym) > MAX_ACRONYM_LENGTH:
        errors.append(f"Acronym must be {MAX_ACRONYM_LENGTH} characters or less")

    seen_targets = set()
    for conversion in data.get("conversions") or []:
        to_unit_id = conversion.get("to_unit_id")
        factor = conversion.get("factor")

        if to_unit_id is None:
            errors.append(f"Conversion target: {ERROR_REQUIRED_FIELD}")
            continue
        if unit_id is not None and to_unit_id == unit_id:
            errors.append("A unit cannot declare a conversion to itself")
            continue
        if to_unit_id in seen_targets:
            errors.append(f"Duplicate conversion to unit {to_unit_id}")
            continue
        seen_targets.add(to_unit_id)

        if session.get(MeasurementUnit, to_unit_id) is None:
            errors.append(f"Conversion target unit {to_unit_id} does not exist")

        try:
            factor_value = float(factor)
        except (TypeError, ValueError):
            errors.append(f"Conversion factor to unit {to_unit_id}: {ERROR_INVALID_POSITIVE}")
            continue
        if not factor_value > 0:
            errors.append(f"Conversion factor to unit {to_unit_id}: {ERROR_INVALID_POSITIVE}")

    return errors


def _replace_conversions(
    unit: MeasurementUnit, conversions: List[Dict[str, Any]], session: Session
) -> None:
    """Replace a unit's authored conversions.

    Old rows are flushed away first so that re-adding the same target does not
    collide with the unique (from, to) constraint.
    """
    unit.conversions.clear()
    session.flush()
    for conversion in conversions:
        unit.conversions.append(
            MeasurementUnitConversion(
                to_unit_id=conversion["to_unit_id"],
                factor=float(conversion["factor"]),
            )
        )


# ============================================================================
# Mutations
# ============================================================================


def create_unit(data: Dict[str, Any], session: Optional[Session] = None) -> Dict[str, Any]:
    """Create a new measurement unit.

    Args:
        data: Dictionary containing:
            - name (str, required): Unique unit name
            - acronym (str, required): Acronym, stored upper-cased
            - conversions (list, optional): [{"to_unit_id": int, "factor": float}]
        session: Optional database session for transactional atomicity

    Returns:
        Dict[str, Any]: Created unit as dictionary

    Raises:
        ValidationError: If fields or conversions are invalid
        DatabaseError: If database operation fails
    """
    try:
        if session is not None:
            result = _create_unit_impl(data, session)
        else:
            with session_scope() as sess:
                result = _create_unit_impl(data, sess)
    except ValidationError:
        raise
    except Exception as e:
        raise DatabaseError("Failed to create measurement unit", original_error=e)

    log_operation(logger, operation="create_unit", outcome="success", unit_id=result["id"])
    _publish(session)
    return result


def _create_unit_impl(data: Dict[str, Any], session: Session) -> Dict[str, Any]:
    """Implementation of create_unit."""
    errors = _validate_unit_data(data, session)
    if errors:
        log_operation(
            logger,
            operation="create_unit",
            outcome="validation_failed",
            level=logging.WARNING,
            errors=errors,
        )
        raise ValidationError(errors)

    unit = MeasurementUnit(
        name=data["name"].strip(),
        acronym=data["acronym"].strip().upper(),
    )
    session.add(unit)
    session.flush()

    _replace_conversions(unit, data.get("conversions") or [], session)
    session.flush()
    return unit.to_dict()


def update_unit(
    unit_id: int, data: Dict[str, Any], session: Optional[Session] = None
) -> Dict[str, Any]:
    """Update a measurement unit.

    Fields not present in data keep their current value. When "conversions"
    is present it replaces the unit's full conversion list.

    Args:
        unit_id: Unit ID
        data: Fields to update (name, acronym, conversions)
        session: Optional database session

    Returns:
        Dict[str, Any]: Updated unit as dictionary

    Raises:
        MeasurementUnitNotFound: If unit doesn't exist
        ValidationError: If the merged data is invalid
        DatabaseError: If database operation fails
    """
    try:
        if session is not None:
            result = _update_unit_impl(unit_id, data, session)
        else:
            with session_scope() as sess:
                result = _update_unit_impl(unit_id, data, sess)
    except (MeasurementUnitNotFound, ValidationError):
        raise
    except Exception as e:
        raise DatabaseError(f"Failed to update measurement unit {unit_id}", original_error=e)

    log_operation(logger, operation="update_unit", outcome="success", unit_id=unit_id)
    _publish(session)
    return result


def _update_unit_impl(unit_id: int, data: Dict[str, Any], session: Session) -> Dict[str, Any]:
    """Implementation of update_unit."""
    unit = session.get(MeasurementUnit, unit_id)
    if unit is None:
        raise MeasurementUnitNotFound(unit_id)

    merged = {
        "name": data.get("name", unit.name),
        "acronym": data.get("acronym", unit.acronym),
        "conversions": data.get("conversions") or [],
    }
    errors = _validate_unit_data(merged, session, unit_id=unit_id)
    if errors:
        log_operation(
            logger,
            operation="update_unit",
            outcome="validation_failed",
            level=logging.WARNING,
            unit_id=unit_id,
            errors=errors,
        )
        raise ValidationError(errors)

    unit.name = merged["name"].strip()
    unit.acronym = merged["acronym"].strip().upper()
    if "conversions" in data:
        _replace_conversions(unit, merged["conversions"], session)
    session.flush()
    return unit.to_dict()


def delete_unit(unit_id: int, session: Optional[Session] = None) -> None:
    """Delete a measurement unit.

    Conversions owned by the unit and conversions from other units that
    target it are deleted too.

    Args:
        unit_id: Unit ID
        session: Optional database session

    Raises:
        MeasurementUnitNotFound: If unit doesn't exist
        DatabaseError: If database operation fails
    """
    try:
        if session is not None:
            _delete_unit_impl(unit_id, session)
        else:
            with session_scope() as sess:
                _delete_unit_impl(unit_id, sess)
    except MeasurementUnitNotFound:
        raise
    except Exception as e:
        raise DatabaseError(f"Failed to delete measurement unit {unit_id}", original_error=e)

    log_operation(logger, operation="delete_unit", outcome="success", unit_id=unit_id)
    _publish(session)


def _delete_unit_impl(unit_id: int, session: Session) -> None:
    """Implementation of delete_unit."""
    unit = session.get(MeasurementUnit, unit_id)
    if unit is None:
        raise MeasurementUnitNotFound(unit_id)

    incoming = (
        session.query(MeasurementUnitConversion)
        .filter(MeasurementUnitConversion.to_unit_id == unit_id)
        .all()
    )
    for conversion in incoming:
        session.delete(conversion)

    session.delete(unit)
    session.flush()


# ============================================================================
# Live updates
# ============================================================================


def on_value(callback: Callable[[List[Dict[str, Any]]], None]) -> Callable[[], None]:
    """Subscribe to the unit collection.

    The callback receives the current list of units immediately and again
    after every create, update or delete.

    Args:
        callback: Called with the full list of unit dictionaries

    Returns:
        Function that cancels the subscription

    Raises:
        DatabaseError: If the initial snapshot cannot be read
    """
    snapshot = get_all_units()
    callback(snapshot)
    return _unit_feed.subscribe(callback)


def _publish(session: Optional[Session]) -> None:
    """Notify subscribers with a fresh snapshot, if anyone is listening."""
    if _unit_feed.has_subscribers:
        _unit_feed.publish(get_all_units(session=session))
