"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .enums import UnitRole
from .measurement_unit import MeasurementUnit, MeasurementUnitConversion
from .supplier import Supplier
from .product import Product, UNIT_FIELDS
from .product_variant import ProductVariant

__all__ = [
    "Base",
    "BaseModel",
    "UnitRole",
    # Unit registry
    "MeasurementUnit",
    "MeasurementUnitConversion",
    # Catalog
    "Supplier",
    "Product",
    "ProductVariant",
    "UNIT_FIELDS",
]
