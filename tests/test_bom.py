"""
Tests for the pure BOM arithmetic.
"""
import uuid
from decimal import Decimal

import pytest

from bomkit.core.exceptions import ValidationError
from bomkit.models.enums import AlertSeverity, StockStatus
from bomkit.services.bom import (
    ComponentSnapshot, MaterialSnapshot, RecipeSnapshot,
    alert_severity_for, classify_stock_status, component_requirement, effective_quantity,
    explode_recipe, is_below_reorder_level, parse_decimal, require_positive_int, units_from_stock,
)


def material(name, stock, reorder="0", unit_cost="0"):
    return MaterialSnapshot(
        id=uuid.uuid4(),
        name=name,
        unit="kg",
        stock_quantity=Decimal(str(stock)),
        reorder_level=Decimal(str(reorder)),
        unit_cost=Decimal(str(unit_cost)),
    )


def component(mat, quantity, waste="0"):
    return ComponentSnapshot(
        id=uuid.uuid4(),
        material=mat,
        quantity_required=Decimal(str(quantity)),
        waste_percentage=Decimal(str(waste)),
    )


def recipe(*components):
    return RecipeSnapshot(
        id=uuid.uuid4(),
        product_id=uuid.uuid4(),
        name="Test",
        yield_quantity=Decimal("1"),
        yield_unit="pcs",
        components=tuple(components),
    )


class TestEffectiveQuantity:
    """Waste inflates the per-unit requirement."""

    def test_no_waste(self):
        assert effective_quantity(Decimal("0.1"), Decimal("0")) == Decimal("0.1")

    def test_with_waste(self):
        assert effective_quantity(Decimal("0.3"), Decimal("5")) == Decimal("0.315")

    def test_floor_division(self):
        assert units_from_stock(Decimal("3.5"), Decimal("0.22")) == 15

    def test_empty_stock_gives_zero(self):
        assert units_from_stock(Decimal("0"), Decimal("0.22")) == 0

    def test_non_positive_effective_rejected(self):
        with pytest.raises(ValueError):
            units_from_stock(Decimal("10"), Decimal("0"))


class TestExplodeRecipe:
    """Bottleneck computation."""

    def test_pizza_bottleneck(self):
        """Cheese limits a three-component pizza to 15 units."""
        dough = component(material("Dough", 10), "0.3", "5")
        sauce = component(material("Sauce", 5), "0.1")
        cheese = component(material("Cheese", "3.5"), "0.2", "10")

        result = explode_recipe(recipe(dough, sauce, cheese))

        assert result.max_quantity == 15
        assert result.can_produce is True
        assert result.bottleneck.material_name == "Cheese"
        assert result.bottleneck.max_units == 15
        assert [c.max_producible for c in result.components] == [31, 50, 15]

    def test_empty_recipe(self):
        result = explode_recipe(recipe())

        assert result.max_quantity == 0
        assert result.bottleneck is None
        assert result.can_produce is False

    def test_tie_picks_first_component(self):
        first = component(material("Flour", 10), "1")
        second = component(material("Water", 10), "1")

        result = explode_recipe(recipe(first, second))

        assert result.max_quantity == 10
        assert result.bottleneck.material_name == "Flour"

    def test_component_below_one_unit(self):
        """Stock smaller than one unit's requirement means nothing can be produced."""
        scarce = component(material("Saffron", "0.05"), "0.1")

        result = explode_recipe(recipe(scarce))

        assert result.max_quantity == 0
        assert result.components[0].sufficient is False


class TestComponentRequirement:
    def test_shortage_and_cost(self):
        cheese = component(material("Cheese", "3.5", unit_cost="12.00"), "0.2", "10")

        req = component_requirement(cheese, 20)

        assert req.total_required == Decimal("4.400")
        assert req.shortage == Decimal("0.900")
        assert req.sufficient is False
        assert req.total_cost == Decimal("52.80")
        assert req.remaining_after_production == Decimal("-0.900")


class TestClassifyStockStatus:
    """Severity bands for a reorder level of 20 with the default 0.5 ratio."""

    @pytest.mark.parametrize("stock,expected", [
        ("100", StockStatus.NORMAL),
        ("20", StockStatus.NORMAL),
        ("15", StockStatus.LOW),
        ("10", StockStatus.CRITICAL),
        ("8", StockStatus.CRITICAL),
        ("0", StockStatus.OUT_OF_STOCK),
    ])
    def test_bands(self, stock, expected):
        assert classify_stock_status(Decimal(stock), Decimal("20")) == expected

    def test_custom_ratio(self):
        assert classify_stock_status(Decimal("15"), Decimal("20"), Decimal("0.8")) == StockStatus.CRITICAL

    def test_severity_mapping(self):
        assert alert_severity_for(StockStatus.NORMAL) is None
        assert alert_severity_for(StockStatus.LOW) == AlertSeverity.LOW
        assert alert_severity_for(StockStatus.OUT_OF_STOCK) == AlertSeverity.OUT_OF_STOCK

    def test_zero_reorder_level_still_flags_empty_stock(self):
        assert is_below_reorder_level(material("Salt", 0)) is True
        assert is_below_reorder_level(material("Salt", 1)) is False


class TestInputValidation:
    def test_parse_decimal_rejects_garbage(self):
        with pytest.raises(ValidationError):
            parse_decimal("abc", "quantity")

    def test_parse_decimal_rejects_infinity(self):
        with pytest.raises(ValidationError):
            parse_decimal("Infinity", "quantity")

    @pytest.mark.parametrize("value", [0, -1, True, 1.5, "3"])
    def test_require_positive_int(self, value):
        with pytest.raises(ValidationError):
            require_positive_int(value, "quantity")
