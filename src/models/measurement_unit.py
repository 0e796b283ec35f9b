"""
MeasurementUnit models for the global unit registry.

A measurement unit is a named unit ("kg", "caja", "unidad") with an acronym and
a list of authored direct conversions to other units. Each conversion states
that one unit of the owner equals `factor` units of the target.

Example:
    kg -> g, factor 1000     (1 kg = 1000 g)
    kg -> unidad, factor 2   (1 kg = 2 unidad)
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    ForeignKey,
    Index,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class MeasurementUnit(BaseModel):
    """
    Registry entry for a named measurement unit.

    Units are created and edited by an administrator independently of
    products. Products reference units by name.

    Attributes:
        name: Unique unit name (e.g., "kg", "caja x12")
        acronym: Short upper-case acronym (e.g., "KG")
        conversions: Authored direct conversions from this unit
    """

    __tablename__ = "measurement_units"

    name = Column(String(100), unique=True, nullable=False, index=True)
    acronym = Column(String(20), nullable=False)

    conversions = relationship(
        "MeasurementUnitConversion",
        foreign_keys="MeasurementUnitConversion.from_unit_id",
        back_populates="from_unit",
        cascade="all, delete-orphan",
        order_by="MeasurementUnitConversion.id",
        lazy="select",
    )

    def __repr__(self) -> str:
        """Return string representation of MeasurementUnit."""
        return f"MeasurementUnit(id={self.id}, name='{self.name}', acronym='{self.acronym}')"

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert unit to dictionary.

        Conversions are always included since they are part of the unit's
        registry entry.

        Args:
            include_relationships: Accepted for interface compatibility

        Returns:
            Dictionary representation with a "conversions" list of
            {"to_unit_id", "factor"} entries
        """
        result = super().to_dict(False)
        result["conversions"] = [
            {"to_unit_id": conversion.to_unit_id, "factor": conversion.factor}
            for conversion in self.conversions
        ]
        return result


class MeasurementUnitConversion(BaseModel):
    """
    Authored direct conversion between two registry units.

    Meaning: 1 from_unit = factor to_unit.

    Attributes:
        from_unit_id: Owning unit
        to_unit_id: Target unit (never the owner)
        factor: Positive conversion factor
    """

    __tablename__ = "measurement_unit_conversions"

    from_unit_id = Column(
        Integer, ForeignKey("measurement_units.id", ondelete="CASCADE"), nullable=False
    )
    to_unit_id = Column(
        Integer, ForeignKey("measurement_units.id", ondelete="CASCADE"), nullable=False
    )
    factor = Column(Float, nullable=False)

    from_unit = relationship(
        "MeasurementUnit", foreign_keys=[from_unit_id], back_populates="conversions"
    )
    to_unit = relationship("MeasurementUnit", foreign_keys=[to_unit_id])

    __table_args__ = (
        CheckConstraint("factor > 0", name="ck_unit_conversion_factor_positive"),
        CheckConstraint("from_unit_id != to_unit_id", name="ck_unit_conversion_not_self"),
        UniqueConstraint("from_unit_id", "to_unit_id", name="uq_unit_conversion_pair"),
        Index("idx_unit_conversion_to", "to_unit_id"),
    )

    def __repr__(self) -> str:
        """String representation of conversion."""
        return (
            f"MeasurementUnitConversion(from_unit_id={self.from_unit_id}, "
            f"to_unit_id={self.to_unit_id}, factor={self.factor})"
        )
