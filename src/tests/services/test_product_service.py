"""Tests for Product Service.

Tests cover:
- Product CRUD with unit field validation
- Rejection of unknown units, bad selections and invalid conversions
- Variants with per-field inheritance
- Saving reconciled unit sets
- Product subscriptions
"""

import pytest

from src.services import product_service
from src.services.conversion_edges import ConversionEdge
from src.services.conversion_validator import ValidationFailure
from src.services.exceptions import (
    ConversionValidationError,
    DatabaseError,
    InvalidUnitSelection,
    ProductNotFound,
    ValidationError,
    VariantNotFound,
)
from src.services.unit_selection import ProductionUnit, PurchaseUnit, SaleUnit

KG_G = [
    {"from_unit": "kg", "to_unit": "g", "factor": 1000},
    {"from_unit": "g", "to_unit": "kg", "factor": 0.001},
]


@pytest.fixture
def harina(sample_units):
    """Product sold in kg and produced in g."""
    return product_service.create_product(
        {"name": "Harina 000", "sale_unit": "kg", "production_unit": "g", "conversions": KG_G}
    )


class TestCreateProduct:
    """Tests for create_product."""

    def test_create_without_units(self, test_db):
        """Products may start without any unit."""
        result = product_service.create_product({"name": "Azucar"})
        assert result["sale_unit"] is None
        assert result["purchase_units"] == []
        assert result["conversions"] == []

    def test_create_with_units(self, harina):
        """Unit fields and conversions are stored in canonical shape."""
        assert harina["sale_unit"] == "kg"
        assert harina["conversions"][0] == {"from_unit": "kg", "to_unit": "g", "factor": 1000.0}

    def test_name_required(self, test_db):
        """Name is mandatory."""
        with pytest.raises(ValidationError):
            product_service.create_product({"name": ""})

    def test_duplicate_sku(self, test_db):
        """SKUs are unique."""
        product_service.create_product({"name": "A", "sku": "SKU-1"})
        with pytest.raises(ValidationError, match="SKU"):
            product_service.create_product({"name": "B", "sku": "SKU-1"})

    def test_unknown_unit_rejected(self, sample_units):
        """Unit names must exist in the registry."""
        with pytest.raises(InvalidUnitSelection, match="docena"):
            product_service.create_product({"name": "Huevos", "sale_unit": "docena"})

    def test_purchase_unit_without_supplier_rejected(self, sample_units):
        """Purchase units must name a supplier."""
        with pytest.raises(InvalidUnitSelection):
            product_service.create_product(
                {"name": "Harina", "purchase_units": [{"unit": "kg"}]}
            )

    def test_duplicate_supplier_rejected(self, sample_units):
        """One purchase unit per supplier."""
        with pytest.raises(InvalidUnitSelection):
            product_service.create_product(
                {
                    "name": "Harina",
                    "purchase_units": [
                        {"supplier_id": 1, "unit": "kg"},
                        {"supplier_id": 1, "unit": "g"},
                    ],
                    "conversions": KG_G,
                }
            )

    def test_incomplete_conversions_rejected(self, sample_units):
        """Two units with a single conversion fail completeness."""
        with pytest.raises(ConversionValidationError) as exc_info:
            product_service.create_product(
                {
                    "name": "Harina",
                    "sale_unit": "kg",
                    "production_unit": "g",
                    "conversions": KG_G[:1],
                }
            )
        assert exc_info.value.result.failure == ValidationFailure.MISSING_PAIR
        assert exc_info.value.pair == ("g", "kg")

    def test_inconsistent_conversions_rejected(self, sample_units):
        """Inverse factors must multiply to ~1."""
        with pytest.raises(ConversionValidationError):
            product_service.create_product(
                {
                    "name": "Harina",
                    "sale_unit": "kg",
                    "production_unit": "g",
                    "conversions": [
                        {"from_unit": "kg", "to_unit": "g", "factor": 1000},
                        {"from_unit": "g", "to_unit": "kg", "factor": 0.0005},
                    ],
                }
            )
        assert product_service.get_all_products() == []

    @pytest.mark.parametrize(
        "extra, pair",
        [
            ({"from_unit": "kg", "to_unit": "L", "factor": 3}, ("kg", "L")),
            ({"from_unit": "kg", "to_unit": "kg", "factor": 1}, ("kg", "kg")),
        ],
    )
    def test_stray_conversions_rejected(self, sample_units, extra, pair):
        """Only the pairs between the product's own units may be stored."""
        with pytest.raises(ConversionValidationError) as exc_info:
            product_service.create_product(
                {
                    "name": "Harina",
                    "sale_unit": "kg",
                    "production_unit": "g",
                    "conversions": KG_G + [extra],
                }
            )
        assert exc_info.value.result.failure == ValidationFailure.UNEXPECTED_PAIR
        assert exc_info.value.pair == pair
        assert product_service.get_all_products() == []

    @pytest.mark.parametrize("value", ["   ", 123])
    def test_malformed_unit_field_is_a_validation_error(self, sample_units, value):
        """Blank or non-string unit names are rejected as invalid selections."""
        with pytest.raises(InvalidUnitSelection):
            product_service.create_product({"name": "Z", "sale_unit": value})


class TestProductQueriesAndUpdates:
    """Tests for get/update/delete of products."""

    def test_get_product(self, harina):
        """get_product returns the product, None when missing."""
        assert product_service.get_product(harina["id"])["name"] == "Harina 000"
        assert product_service.get_product(999) is None

    @pytest.mark.parametrize(
        "read",
        [
            lambda: product_service.get_product(1),
            lambda: product_service.get_variant(1),
            lambda: product_service.get_variants_for_product(1),
            lambda: product_service.get_effective_units(1),
        ],
    )
    def test_reads_wrap_store_failures(self, test_db, monkeypatch, read):
        """Store failures surface as DatabaseError, not raw driver errors."""
        import src.services.product_service as module

        def broken_scope():
            raise RuntimeError("disk gone")

        monkeypatch.setattr(module, "session_scope", broken_scope)
        with pytest.raises(DatabaseError):
            read()

    def test_get_all_products_sorted(self, test_db):
        """Products are listed by name."""
        product_service.create_product({"name": "Sal"})
        product_service.create_product({"name": "Azucar"})
        assert [p["name"] for p in product_service.get_all_products()] == ["Azucar", "Sal"]

    def test_update_name_keeps_units(self, harina):
        """Non-unit updates skip unit validation and keep unit fields."""
        result = product_service.update_product(harina["id"], {"name": "Harina 0000"})
        assert result["name"] == "Harina 0000"
        assert result["conversions"] == harina["conversions"]

    def test_changing_unit_requires_conversions(self, harina):
        """Adding a unit without matching conversions is rejected."""
        with pytest.raises(ConversionValidationError):
            product_service.update_product(
                harina["id"], {"purchase_units": [{"supplier_id": 1, "unit": "L"}]}
            )
        assert product_service.get_product(harina["id"])["purchase_units"] == []

    def test_update_missing_product(self, test_db):
        """Unknown products raise ProductNotFound."""
        with pytest.raises(ProductNotFound):
            product_service.update_product(999, {"name": "x"})

    def test_delete_product_removes_variants(self, harina):
        """Deleting a product deletes its variants."""
        variant = product_service.create_variant(harina["id"], {"name": "Bolsa"})
        product_service.delete_product(harina["id"])

        assert product_service.get_product(harina["id"]) is None
        assert product_service.get_variant(variant["id"]) is None

    def test_delete_missing_product(self, test_db):
        """Unknown products raise ProductNotFound."""
        with pytest.raises(ProductNotFound):
            product_service.delete_product(999)


class TestVariants:
    """Tests for variants and unit inheritance."""

    def test_variant_inherits_everything(self, harina):
        """A variant without overrides uses the product's units."""
        variant = product_service.create_variant(harina["id"], {"name": "Bolsa 1kg"})
        effective = product_service.get_effective_units(variant["id"])

        assert variant["sale_unit"] is None
        assert effective["sale_unit"] == "kg"
        assert effective["production_unit"] == "g"
        assert effective["conversions"] == harina["conversions"]
        assert set(effective["inherited"]) == {
            "sale_unit",
            "production_unit",
            "purchase_units",
            "conversions",
        }

    def test_variant_override_is_per_field(self, harina):
        """Overriding the units keeps inheriting the conversions."""
        variant = product_service.create_variant(
            harina["id"], {"name": "Granel", "sale_unit": "g", "production_unit": "kg"}
        )
        effective = product_service.get_effective_units(variant["id"])

        assert effective["sale_unit"] == "g"
        assert effective["production_unit"] == "kg"
        assert "sale_unit" not in effective["inherited"]
        assert "conversions" in effective["inherited"]
        assert "purchase_units" in effective["inherited"]

    def test_variant_checked_after_inheritance(self, harina):
        """A variant override that leaves inherited conversions incomplete fails."""
        with pytest.raises(ConversionValidationError):
            product_service.create_variant(harina["id"], {"name": "Litro", "sale_unit": "L"})

    def test_duplicate_variant_name(self, harina):
        """Variant names are unique per product."""
        product_service.create_variant(harina["id"], {"name": "Bolsa"})
        with pytest.raises(ValidationError):
            product_service.create_variant(harina["id"], {"name": "Bolsa"})

    def test_variant_for_missing_product(self, test_db):
        """Variants need an existing product."""
        with pytest.raises(ProductNotFound):
            product_service.create_variant(999, {"name": "x"})

    def test_update_variant_back_to_inheritance(self, harina):
        """Setting an override to None inherits it again."""
        variant = product_service.create_variant(
            harina["id"], {"name": "Granel", "sale_unit": "g", "production_unit": "kg"}
        )
        product_service.update_variant(variant["id"], {"sale_unit": None, "production_unit": None})

        effective = product_service.get_effective_units(variant["id"])
        assert effective["sale_unit"] == "kg"
        assert effective["production_unit"] == "g"
        assert len(effective["inherited"]) == 4

    def test_get_variants_for_product(self, harina):
        """Variants are listed in creation order."""
        product_service.create_variant(harina["id"], {"name": "B"})
        product_service.create_variant(harina["id"], {"name": "A"})
        names = [v["name"] for v in product_service.get_variants_for_product(harina["id"])]
        assert names == ["B", "A"]

    def test_missing_variant(self, test_db):
        """Unknown variants raise VariantNotFound."""
        with pytest.raises(VariantNotFound):
            product_service.get_effective_units(999)
        with pytest.raises(VariantNotFound):
            product_service.delete_variant(999)


class TestSaveUnits:
    """Tests for save_product_units and save_variant_units."""

    def test_save_product_units(self, harina, sample_supplier):
        """A reconciled set is written in stored shape."""
        selections = [SaleUnit("kg"), PurchaseUnit("unidad", sample_supplier["id"])]
        edges = [ConversionEdge("kg", "unidad", 2.0), ConversionEdge("unidad", "kg", 0.5)]

        result = product_service.save_product_units(harina["id"], selections, edges)

        assert result["sale_unit"] == "kg"
        assert result["production_unit"] is None
        assert result["purchase_units"] == [{"supplier_id": sample_supplier["id"], "unit": "unidad"}]
        assert result["conversions"] == [
            {"from_unit": "kg", "to_unit": "unidad", "factor": 2.0},
            {"from_unit": "unidad", "to_unit": "kg", "factor": 0.5},
        ]

    def test_save_product_units_validates(self, harina):
        """Saving an incomplete set is rejected."""
        with pytest.raises(ConversionValidationError):
            product_service.save_product_units(
                harina["id"], [SaleUnit("kg"), ProductionUnit("unidad")], []
            )

    def test_save_variant_units(self, harina):
        """Variant unit sets become overrides."""
        variant = product_service.create_variant(harina["id"], {"name": "Caja"})
        edges = [ConversionEdge("kg", "unidad", 2.0), ConversionEdge("unidad", "kg", 0.5)]

        product_service.save_variant_units(
            variant["id"], [SaleUnit("kg"), ProductionUnit("unidad")], edges
        )
        effective = product_service.get_effective_units(variant["id"])

        assert effective["production_unit"] == "unidad"
        assert effective["inherited"] == []
        assert len(effective["conversions"]) == 2


class TestProductOnValue:
    """Tests for product subscriptions."""

    def test_subscribers_see_writes(self, test_db):
        """Subscribers get the initial list and one update per write."""
        received = []
        unsubscribe = product_service.on_value(received.append)
        product = product_service.create_product({"name": "Sal"})
        product_service.update_product(product["id"], {"name": "Sal fina"})
        unsubscribe()

        assert [[p["name"] for p in snapshot] for snapshot in received] == [
            [],
            ["Sal"],
            ["Sal fina"],
        ]

    def test_failing_first_callback_leaves_no_subscription(self, test_db):
        """A callback that raises on the initial snapshot is not registered."""

        def broken(snapshot):
            raise RuntimeError("listener bug")

        with pytest.raises(RuntimeError):
            product_service.on_value(broken)
        assert not product_service._product_feed.has_subscribers
