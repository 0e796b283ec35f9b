"""Conversion edges - the directed pairwise factors stored on a product.

A ConversionEdge says that one `from_unit` equals `factor` units of `to_unit`.
A product with N distinct unit names needs one edge for every ordered pair,
N * (N - 1) in total. A factor of None marks an edge that still needs a
manual value.

Stored shape (JSON on products and variants):
    [{"from_unit": "kg", "to_unit": "g", "factor": 1000.0}, ...]
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

PairKey = Tuple[str, str]


@dataclass(frozen=True)
class ConversionEdge:
    """Directed conversion between two unit names.

    Attributes:
        from_unit: Source unit name
        to_unit: Target unit name
        factor: Units of to_unit in one from_unit, or None if not known yet
    """

    from_unit: str
    to_unit: str
    factor: Optional[float] = None

    @property
    def key(self) -> PairKey:
        """Ordered (from_unit, to_unit) pair identifying the edge."""
        return (self.from_unit, self.to_unit)

    @property
    def has_factor(self) -> bool:
        """True if the edge carries a usable (positive) factor."""
        return self.factor is not None and self.factor > 0

    def with_factor(self, factor: Optional[float]) -> "ConversionEdge":
        """Return a copy of this edge with a different factor."""
        return ConversionEdge(self.from_unit, self.to_unit, factor)

    def to_dict(self) -> Dict[str, Any]:
        """Convert edge to its stored dictionary shape."""
        return {"from_unit": self.from_unit, "to_unit": self.to_unit, "factor": self.factor}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversionEdge":
        """Build an edge from its stored dictionary shape.

        Missing or blank factors become None.
        """
        factor = data.get("factor")
        if factor is not None and factor != "":
            factor = float(factor)
        else:
            factor = None
        return cls(
            from_unit=str(data["from_unit"]).strip(),
            to_unit=str(data["to_unit"]).strip(),
            factor=factor,
        )


def required_pairs(unit_names: Sequence[str]) -> List[PairKey]:
    """Every ordered pair of distinct unit names.

    Args:
        unit_names: Distinct unit names, in display order

    Returns:
        Pairs ordered by source, then target; empty for fewer than two names

    Example:
        >>> required_pairs(["kg", "g", "L"])
        [('kg', 'g'), ('kg', 'L'), ('g', 'kg'), ('g', 'L'), ('L', 'kg'), ('L', 'g')]
    """
    if len(unit_names) < 2:
        return []
    return [(a, b) for a in unit_names for b in unit_names if a != b]


def edges_from_records(records: Optional[Iterable[Dict[str, Any]]]) -> List[ConversionEdge]:
    """Deserialize stored conversion records (None is treated as empty)."""
    return [ConversionEdge.from_dict(record) for record in records or []]


def edges_to_records(edges: Iterable[ConversionEdge]) -> List[Dict[str, Any]]:
    """Serialize edges to their stored dictionary shape."""
    return [edge.to_dict() for edge in edges]


def unresolved_pairs(edges: Iterable[ConversionEdge]) -> List[PairKey]:
    """Pairs whose factor still needs manual entry."""
    return [edge.key for edge in edges if not edge.has_factor]
