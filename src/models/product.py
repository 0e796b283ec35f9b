"""
Product model with its unit assignments and derived conversions.

A product is sold in one unit, produced in another and bought from each
supplier in its own purchase unit. The conversions between all of those units
are stored alongside as a flat list of directed edges.

Example: "Harina 000"
- sale_unit: "kg"
- production_unit: "g"
- purchase_units: [{"supplier_id": 1, "unit": "bolsa 25kg"}]
- conversions: [{"from_unit": "kg", "to_unit": "g", "factor": 1000.0}, ...]
"""

from sqlalchemy import Column, String, Boolean, JSON, Index
from sqlalchemy.orm import relationship

from .base import BaseModel

# Fields that describe a product's units; variants may override each one
UNIT_FIELDS = ("sale_unit", "production_unit", "purchase_units", "conversions")


class Product(BaseModel):
    """
    Product model owning unit selections and conversion edges.

    Attributes:
        name: Product name
        sku: Optional stock keeping unit code
        sale_unit: Unit name the product is sold in
        production_unit: Unit name the product is produced in
        purchase_units: List of {"supplier_id", "unit"} entries, one per supplier
        conversions: List of {"from_unit", "to_unit", "factor"} edges
        is_active: Soft delete flag

    Relationships:
        variants: ProductVariant rows that may override unit fields
    """

    __tablename__ = "products"

    name = Column(String(200), nullable=False, index=True)
    sku = Column(String(50), nullable=True, unique=True)

    sale_unit = Column(String(100), nullable=True)
    production_unit = Column(String(100), nullable=True)
    purchase_units = Column(JSON, nullable=True)
    conversions = Column(JSON, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)

    variants = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.id",
        lazy="select",
    )

    __table_args__ = (Index("idx_product_active", "is_active"),)

    def __repr__(self) -> str:
        """String representation of product."""
        return f"Product(id={self.id}, name='{self.name}')"

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert product to dictionary.

        Args:
            include_relationships: If True, include variants

        Returns:
            Dictionary representation; list fields are never None
        """
        result = super().to_dict(False)
        result["purchase_units"] = list(self.purchase_units or [])
        result["conversions"] = list(self.conversions or [])

        if include_relationships:
            result["variants"] = [variant.to_dict() for variant in self.variants]

        return result
