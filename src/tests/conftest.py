"""Pytest configuration and fixtures for service layer tests."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session

from src.models.base import Base
from src.services import measurement_unit_service, product_service, supplier_service
from src.services.unit_registry import UnitRegistry


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import src.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    Base.metadata.drop_all(engine)

    db_module.get_session_factory = original_get_session

    # Subscriptions never outlive a test
    measurement_unit_service._unit_feed.clear()
    supplier_service._supplier_feed.clear()
    product_service._product_feed.clear()


@pytest.fixture(scope="function")
def sample_units(test_db):
    """Provide a small unit registry in the database.

    Creates kg, g, unidad and L with:
    - kg -> g: 1000
    - kg -> unidad: 2
    - L -> unidad: 4

    Returns:
        Dict mapping unit name to unit dictionary
    """
    kg = measurement_unit_service.create_unit({"name": "kg", "acronym": "kg"})
    g = measurement_unit_service.create_unit({"name": "g", "acronym": "g"})
    unidad = measurement_unit_service.create_unit({"name": "unidad", "acronym": "u"})
    litro = measurement_unit_service.create_unit({"name": "L", "acronym": "l"})

    kg = measurement_unit_service.update_unit(
        kg["id"],
        {
            "conversions": [
                {"to_unit_id": g["id"], "factor": 1000},
                {"to_unit_id": unidad["id"], "factor": 2},
            ]
        },
    )
    litro = measurement_unit_service.update_unit(
        litro["id"], {"conversions": [{"to_unit_id": unidad["id"], "factor": 4}]}
    )
    return {"kg": kg, "g": g, "unidad": unidad, "L": litro}


@pytest.fixture
def registry():
    """Registry snapshot with the same units as sample_units, without a database."""
    return UnitRegistry.from_records(
        [
            {
                "id": 1,
                "name": "kg",
                "acronym": "KG",
                "conversions": [
                    {"to_unit_id": 2, "factor": 1000},
                    {"to_unit_id": 3, "factor": 2},
                ],
            },
            {"id": 2, "name": "g", "acronym": "G", "conversions": []},
            {"id": 3, "name": "unidad", "acronym": "U", "conversions": []},
            {
                "id": 4,
                "name": "L",
                "acronym": "L",
                "conversions": [{"to_unit_id": 3, "factor": 4}],
            },
        ]
    )


@pytest.fixture(scope="function")
def sample_supplier(test_db):
    """Provide a sample supplier for tests."""
    return supplier_service.create_supplier(name="Distribuidora Norte")
