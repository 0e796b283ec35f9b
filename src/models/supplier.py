"""
Supplier model for vendors products are purchased from.

Suppliers label per-supplier purchase units on products
(e.g., "Distribuidora Norte: caja x12").
"""

from sqlalchemy import Column, String, Boolean, Text, Index

from .base import BaseModel


class Supplier(BaseModel):
    """
    Supplier model representing vendors where products are purchased.

    Attributes:
        name: Supplier name
        notes: Optional notes
        is_active: Soft delete flag (True = active, False = deactivated)
    """

    __tablename__ = "suppliers"

    name = Column(String(200), nullable=False)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("idx_supplier_active", "is_active"),)

    def __repr__(self) -> str:
        """String representation of supplier."""
        return f"Supplier(id={self.id}, name='{self.name}')"
