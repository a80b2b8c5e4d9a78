"""
Tests for the stock ledger: atomic mutation, non-negativity and audit trail.
"""
import uuid
from decimal import Decimal

import pytest

from bomkit.core.exceptions import (
    ConfigurationError, InsufficientStockError, NotFoundError, ValidationError,
)
from bomkit.models import InventoryTransaction
from bomkit.models.enums import InventoryMode, TransactionReason, TransactionType
from bomkit.models.inventory import LedgerImmutableError
from bomkit.services.recipes import RecipeService
from bomkit.services.stock_ledger import StockLedger, signed_delta


class TestSignedDelta:
    def test_restock_is_positive(self):
        assert signed_delta(TransactionType.RESTOCK, Decimal("-5")) == Decimal("5")

    def test_deduction_is_negative(self):
        assert signed_delta(TransactionType.DEDUCTION, Decimal("5")) == Decimal("-5")

    def test_adjustment_keeps_sign(self):
        assert signed_delta(TransactionType.ADJUSTMENT, Decimal("-2.5")) == Decimal("-2.5")

    def test_zero_rejected(self):
        with pytest.raises(ValidationError):
            signed_delta(TransactionType.RESTOCK, Decimal("0"))


class TestAdjustStock:
    """Single-material movements."""

    def test_restock_then_deduction(self, db, tenant, make_material):
        flour = make_material(tenant, "Flour", 10)
        ledger = StockLedger(db)

        restock = ledger.adjust_stock(flour.id, tenant.id, "restock", "5", "purchase")
        deduction = ledger.adjust_stock(flour.id, tenant.id, TransactionType.DEDUCTION, 3, TransactionReason.WASTE)

        assert restock.quantity_before == Decimal("10")
        assert restock.quantity_after == Decimal("15")
        assert deduction.quantity_before == restock.quantity_after
        assert deduction.quantity_change == Decimal("-3")
        assert deduction.quantity_after == Decimal("12")
        db.refresh(flour)
        assert flour.stock_quantity == Decimal("12")

    def test_opposite_movements_restore_stock(self, db, tenant, make_material):
        flour = make_material(tenant, "Flour", 10)
        ledger = StockLedger(db)

        ledger.adjust_stock(flour.id, tenant.id, "deduction", "3.3", "waste")
        entry = ledger.adjust_stock(flour.id, tenant.id, "restock", "3.3", "purchase")

        assert entry.quantity_after == Decimal("10")
        db.refresh(flour)
        assert flour.stock_quantity == Decimal("10")

    def test_negative_adjustment(self, db, tenant, make_material):
        flour = make_material(tenant, "Flour", 10)

        entry = StockLedger(db).adjust_stock(flour.id, tenant.id, "adjustment", "-2.5", "count_adjustment")

        assert entry.quantity_after == Decimal("7.5")

    def test_insufficient_stock_persists_nothing(self, db, tenant, make_material):
        flour = make_material(tenant, "Flour", 10)
        ledger = StockLedger(db)

        with pytest.raises(InsufficientStockError) as exc:
            ledger.adjust_stock(flour.id, tenant.id, "deduction", 15, "waste")

        assert exc.value.required == Decimal("15")
        assert exc.value.available == Decimal("10")
        db.refresh(flour)
        assert flour.stock_quantity == Decimal("10")
        # only the opening stock entry
        assert len(ledger.get_history(flour.id, tenant.id)) == 1

    def test_deduct_exactly_to_zero(self, db, tenant, make_material):
        flour = make_material(tenant, "Flour", 10)

        entry = StockLedger(db).adjust_stock(flour.id, tenant.id, "deduction", 10, "sale")

        assert entry.quantity_after == Decimal("0")

    def test_zero_quantity_rejected(self, db, tenant, make_material):
        flour = make_material(tenant, "Flour", 10)

        with pytest.raises(ValidationError):
            StockLedger(db).adjust_stock(flour.id, tenant.id, "restock", 0, "purchase")

    def test_unknown_reason_rejected(self, db, tenant, make_material):
        flour = make_material(tenant, "Flour", 10)

        with pytest.raises(ValidationError) as exc:
            StockLedger(db).adjust_stock(flour.id, tenant.id, "restock", 1, "gift")
        assert exc.value.field == "reason"

    def test_other_tenant_material_not_found(self, db, tenant, other_tenant, make_material):
        flour = make_material(tenant, "Flour", 10)

        with pytest.raises(NotFoundError):
            StockLedger(db).adjust_stock(flour.id, other_tenant.id, "restock", 1, "purchase")

    def test_entry_records_actor_and_reference(self, db, tenant, make_material):
        flour = make_material(tenant, "Flour", 10)
        user_id = uuid.uuid4()

        entry = StockLedger(db).adjust_stock(
            flour.id, tenant.id, "restock", 1, "purchase",
            notes="Weekly delivery", user_id=user_id, reference_type="purchase_order", reference_id=42,
        )

        assert entry.user_id == user_id
        assert entry.reference_type == "purchase_order"
        assert entry.reference_id == "42"
        assert entry.notes == "Weekly delivery"


class TestLedgerImmutability:
    """Ledger rows are write-once."""

    def test_update_blocked(self, db, tenant, make_material):
        flour = make_material(tenant, "Flour", 10)
        entry = StockLedger(db).get_history(flour.id, tenant.id)[0]

        entry.notes = "rewritten"
        with pytest.raises(LedgerImmutableError):
            db.commit()
        db.rollback()

    def test_delete_blocked(self, db, tenant, make_material):
        flour = make_material(tenant, "Flour", 10)
        entry = db.query(InventoryTransaction).filter_by(material_id=flour.id).one()

        db.delete(entry)
        with pytest.raises(LedgerImmutableError):
            db.commit()
        db.rollback()


class TestCommitProduction:
    """Production deducts every component or none."""

    def test_deducts_all_components(self, db, pizza):
        entries = StockLedger(db).commit_production(pizza.product.id, pizza.tenant.id, 10)

        assert len(entries) == 3
        assert all(e.reason == TransactionReason.PRODUCTION for e in entries)
        assert all(e.reference_type == "production_run" for e in entries)
        assert "Classic" in entries[0].notes
        for material, expected in ((pizza.dough, "6.85"), (pizza.sauce, "4"), (pizza.cheese, "1.3")):
            db.refresh(material)
            assert material.stock_quantity == Decimal(expected)

    def test_shortage_rolls_back_everything(self, db, pizza):
        """16 pizzas need 3.52 kg cheese but only 3.5 kg is stocked."""
        with pytest.raises(InsufficientStockError) as exc:
            StockLedger(db).commit_production(pizza.product.id, pizza.tenant.id, 16)

        assert exc.value.details["material"] == "Cheese"
        for material, expected in ((pizza.dough, "10"), (pizza.sauce, "5"), (pizza.cheese, "3.5")):
            db.refresh(material)
            assert material.stock_quantity == Decimal(expected)
        production_rows = db.query(InventoryTransaction).filter_by(reason=TransactionReason.PRODUCTION).count()
        assert production_rows == 0

    def test_simple_product_rejected(self, db, tenant, make_product):
        drink = make_product(tenant, "Cola", InventoryMode.SIMPLE)

        with pytest.raises(ConfigurationError):
            StockLedger(db).commit_production(drink.id, tenant.id, 1)

    def test_no_active_recipe(self, db, tenant, make_product):
        product = make_product(tenant, "Calzone")

        with pytest.raises(ConfigurationError) as exc:
            StockLedger(db).commit_production(product.id, tenant.id, 1)
        assert exc.value.message == "No active recipe found for this product"

    def test_empty_recipe(self, db, tenant, make_product):
        product = make_product(tenant, "Calzone")
        RecipeService(db).create(tenant.id, product.id, "Empty", activate=True)

        with pytest.raises(ConfigurationError) as exc:
            StockLedger(db).commit_production(product.id, tenant.id, 1)
        assert exc.value.message == "No materials defined in recipe"

    def test_quantity_must_be_positive(self, db, pizza):
        with pytest.raises(ValidationError):
            StockLedger(db).commit_production(pizza.product.id, pizza.tenant.id, 0)


class TestCanBeDeleted:
    def test_material_in_active_recipe(self, db, pizza):
        assert StockLedger(db).can_be_deleted(pizza.cheese.id, pizza.tenant.id) is False

    def test_unused_material(self, db, tenant, make_material):
        basil = make_material(tenant, "Basil", 1)
        assert StockLedger(db).can_be_deleted(basil.id, tenant.id) is True

    def test_inactive_recipe_does_not_block(self, db, pizza):
        RecipeService(db).deactivate(pizza.recipe.id, pizza.tenant.id)
        assert StockLedger(db).can_be_deleted(pizza.cheese.id, pizza.tenant.id) is True


class TestLedgerSummary:
    def test_totals_by_type_and_reason(self, db, tenant, make_material):
        flour = make_material(tenant, "Flour", 10)
        ledger = StockLedger(db)
        ledger.adjust_stock(flour.id, tenant.id, "restock", 5, "purchase")
        ledger.adjust_stock(flour.id, tenant.id, "deduction", 2, "waste")

        summary = ledger.get_summary(flour.id, tenant.id)

        assert summary.transaction_count == 3
        assert summary.total_increase == Decimal("15")
        assert summary.total_decrease == Decimal("2")
        assert summary.net_change == Decimal("13")
        assert summary.current_stock == Decimal("13")
        assert summary.by_type["restock"]["count"] == 2
        assert summary.by_reason["waste"]["total_change"] == Decimal("-2")

    def test_history_newest_first(self, db, tenant, make_material):
        flour = make_material(tenant, "Flour", 10)
        ledger = StockLedger(db)
        ledger.adjust_stock(flour.id, tenant.id, "deduction", 1, "sale")

        history = ledger.get_history(flour.id, tenant.id, limit=1)

        assert len(history) == 1
        assert history[0].quantity_change == Decimal("-1")
