"""
Tests for availability, feasibility and requirement calculations.
"""
import uuid
from decimal import Decimal

import pytest

from bomkit.core.exceptions import ConfigurationError, NotFoundError, ValidationError
from bomkit.models.enums import InventoryMode, StockStatus
from bomkit.services.inventory_calculation import (
    EMPTY_RECIPE, NO_ACTIVE_RECIPE, InventoryCalculationService,
)
from bomkit.services.recipes import RecipeService
from bomkit.services.stock_ledger import StockLedger


class TestAvailableQuantity:
    """Maximum producible quantity and bottleneck."""

    def test_pizza(self, db, pizza):
        result = InventoryCalculationService(db).calculate_available_quantity(pizza.product.id, pizza.tenant.id)

        assert result.available_quantity == 15
        assert result.can_produce is True
        assert result.bottleneck_material.material_name == "Cheese"
        assert result.recipe_name == "Classic"
        assert len(result.component_details) == 3
        assert result.message is None

    def test_follows_stock_changes(self, db, pizza):
        StockLedger(db).adjust_stock(pizza.cheese.id, pizza.tenant.id, "restock", "10", "purchase")

        result = InventoryCalculationService(db).calculate_available_quantity(pizza.product.id, pizza.tenant.id)

        # cheese now covers 61, dough becomes the limit
        assert result.available_quantity == 31
        assert result.bottleneck_material.material_name == "Dough"

    def test_tie_goes_to_first_recipe_line(self, db, tenant, make_product, make_material, make_recipe):
        """Equal limits resolve to the earliest line, whatever the names or timestamps."""
        product = make_product(tenant, "Spice mix")
        spices = [make_material(tenant, f"Spice {letter}", 10) for letter in "HCFADGBE"]
        make_recipe(tenant, product, [(spice, 1, 0) for spice in spices])

        result = InventoryCalculationService(db).calculate_available_quantity(product.id, tenant.id)

        assert result.available_quantity == 10
        assert result.bottleneck_material.material_name == "Spice H"
        assert [c.material_name for c in result.component_details] == [s.name for s in spices]

    def test_no_active_recipe(self, db, tenant, make_product):
        product = make_product(tenant, "Calzone")

        result = InventoryCalculationService(db).calculate_available_quantity(product.id, tenant.id)

        assert result.available_quantity == 0
        assert result.can_produce is False
        assert result.bottleneck_material is None
        assert result.message == NO_ACTIVE_RECIPE

    def test_empty_recipe(self, db, tenant, make_product):
        product = make_product(tenant, "Calzone")
        RecipeService(db).create(tenant.id, product.id, "Empty", activate=True)

        result = InventoryCalculationService(db).calculate_available_quantity(product.id, tenant.id)

        assert result.available_quantity == 0
        assert result.message == EMPTY_RECIPE

    def test_simple_product_is_configuration_error(self, db, tenant, make_product):
        drink = make_product(tenant, "Cola", InventoryMode.SIMPLE)

        with pytest.raises(ConfigurationError):
            InventoryCalculationService(db).calculate_available_quantity(drink.id, tenant.id)

    def test_other_tenant_product_not_found(self, db, pizza, other_tenant):
        with pytest.raises(NotFoundError):
            InventoryCalculationService(db).calculate_available_quantity(pizza.product.id, other_tenant.id)


class TestFeasibility:
    def test_feasible(self, db, pizza):
        result = InventoryCalculationService(db).check_production_feasibility(
            pizza.product.id, pizza.tenant.id, 15
        )
        assert result.is_feasible is True
        assert result.shortage == 0

    def test_shortage_in_units(self, db, pizza):
        result = InventoryCalculationService(db).check_production_feasibility(
            pizza.product.id, pizza.tenant.id, 20
        )
        assert result.is_feasible is False
        assert result.shortage == 5
        assert result.bottleneck_material.material_name == "Cheese"

    def test_requested_quantity_must_be_positive(self, db, pizza):
        with pytest.raises(ValidationError):
            InventoryCalculationService(db).check_production_feasibility(pizza.product.id, pizza.tenant.id, 0)


class TestMaterialRequirements:
    def test_requirements_and_cost(self, db, pizza):
        result = InventoryCalculationService(db).get_material_requirements(pizza.product.id, pizza.tenant.id, 10)

        by_name = {r.material_name: r for r in result.requirements}
        assert by_name["Dough"].total_required == Decimal("3.150")
        assert by_name["Sauce"].total_required == Decimal("1.000")
        assert by_name["Cheese"].total_required == Decimal("2.200")
        assert result.total_cost == Decimal("36.70")
        assert result.cost_per_unit == Decimal("3.67")
        assert result.all_sufficient is True

    def test_shortage_reported_as_data(self, db, pizza):
        result = InventoryCalculationService(db).get_material_requirements(pizza.product.id, pizza.tenant.id, 20)

        cheese = next(r for r in result.requirements if r.material_name == "Cheese")
        assert cheese.sufficient is False
        assert cheese.shortage == Decimal("0.900")
        assert result.all_sufficient is False

    def test_missing_recipe_raises(self, db, tenant, make_product):
        product = make_product(tenant, "Calzone")

        with pytest.raises(ConfigurationError):
            InventoryCalculationService(db).get_material_requirements(product.id, tenant.id, 1)

    def test_cost_estimate_shares(self, db, pizza):
        estimate = InventoryCalculationService(db).estimate_production_cost(pizza.product.id, pizza.tenant.id)

        assert estimate.total_cost == Decimal("3.67")
        assert estimate.cost_per_yield_unit == Decimal("3.67")
        assert estimate.material_costs[0].material_name == "Cheese"
        assert sum(s.percentage for s in estimate.material_costs) == Decimal("100.00")


class TestBulkAvailability:
    def test_errors_are_per_product(self, db, pizza, make_product):
        drink = make_product(pizza.tenant, "Cola", InventoryMode.SIMPLE)
        missing = uuid.uuid4()

        entries = InventoryCalculationService(db).bulk_calculate_availability(
            [pizza.product.id, drink.id, missing, pizza.product.id], pizza.tenant.id
        )

        assert len(entries) == 3
        assert entries[0].result.available_quantity == 15
        assert entries[1].error_code == "configuration_error"
        assert entries[2].error_code == "not_found"

    def test_string_and_malformed_ids(self, db, pizza):
        entries = InventoryCalculationService(db).bulk_calculate_availability(
            [str(pizza.product.id), "garbage"], pizza.tenant.id
        )

        assert entries[0].product_id == pizza.product.id
        assert entries[0].result.available_quantity == 15
        assert entries[1].product_id == "garbage"
        assert entries[1].error_code == "validation_error"


class TestLowStockInActiveRecipes:
    def test_only_materials_used_by_active_recipes(self, db, pizza, make_material):
        make_material(pizza.tenant, "Oregano", 0, reorder_level=1)
        ledger = StockLedger(db)
        ledger.adjust_stock(pizza.cheese.id, pizza.tenant.id, "deduction", "2.5", "waste")
        ledger.adjust_stock(pizza.sauce.id, pizza.tenant.id, "deduction", "3.5", "waste")

        results = InventoryCalculationService(db).get_low_stock_materials_in_active_recipes(pizza.tenant.id)

        names = [m.material_name for m in results]
        assert names == ["Cheese", "Sauce"]
        assert results[0].stock_status == StockStatus.CRITICAL
        assert results[0].priority == "high"
        assert results[1].stock_status == StockStatus.LOW
        assert results[1].priority == "medium"
        assert results[0].affected_products[0].product_name == "Margherita"
