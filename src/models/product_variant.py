"""
ProductVariant model for specific versions of a product.

A variant inherits every unit field it leaves NULL from its parent product.
Inheritance is per field: a variant may define its own sale unit while still
using the parent's purchase units and conversions.
"""

from typing import Any, Dict

from sqlalchemy import Column, Integer, String, JSON, ForeignKey, Index
from sqlalchemy.orm import relationship

from .base import BaseModel
from .product import UNIT_FIELDS


class ProductVariant(BaseModel):
    """
    ProductVariant model with optional unit overrides.

    Attributes:
        product_id: Foreign key to Product
        name: Variant name (unique per product)
        sku: Optional variant SKU
        sale_unit: Override of the product's sale unit (NULL = inherit)
        production_unit: Override of the production unit (NULL = inherit)
        purchase_units: Override of the purchase units (NULL = inherit)
        conversions: Override of the conversions (NULL = inherit)
    """

    __tablename__ = "product_variants"

    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)
    sku = Column(String(50), nullable=True)

    sale_unit = Column(String(100), nullable=True)
    production_unit = Column(String(100), nullable=True)
    purchase_units = Column(JSON, nullable=True)
    conversions = Column(JSON, nullable=True)

    product = relationship("Product", back_populates="variants")

    __table_args__ = (Index("idx_variant_product", "product_id"),)

    def __repr__(self) -> str:
        """String representation of variant."""
        return f"ProductVariant(id={self.id}, product_id={self.product_id}, name='{self.name}')"

    def effective_units(self) -> Dict[str, Any]:
        """
        Resolve the unit fields this variant actually uses.

        Returns:
            Dict with one entry per unit field plus "inherited", the list of
            fields taken from the parent product
        """
        result: Dict[str, Any] = {}
        inherited = []
        for field in UNIT_FIELDS:
            value = getattr(self, field)
            if value is None:
                value = getattr(self.product, field)
                inherited.append(field)
            result[field] = value
        result["purchase_units"] = list(result["purchase_units"] or [])
        result["conversions"] = list(result["conversions"] or [])
        result["inherited"] = inherited
        return result
