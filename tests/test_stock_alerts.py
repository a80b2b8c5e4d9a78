"""
Tests for stock alert classification, predictions and the alert workflow.
"""
import uuid
from decimal import Decimal

import pytest

from bomkit.core.exceptions import InvalidStateTransition, NotFoundError, ValidationError
from bomkit.models.enums import AlertSeverity, AlertStatus
from bomkit.services.materials import MaterialService
from bomkit.services.stock_alerts import StockAlertService
from bomkit.services.stock_ledger import StockLedger


@pytest.fixture
def short_kitchen(db, pizza, make_material):
    """Pizza kitchen with empty basil and cheese at the critical bound."""
    basil = make_material(pizza.tenant, "Basil", 0, reorder_level=1, unit_cost="3.00")
    StockLedger(db).adjust_stock(pizza.cheese.id, pizza.tenant.id, "deduction", "2.5", "waste")
    return pizza, basil


class TestActiveAlerts:
    def test_sorted_by_severity(self, db, short_kitchen):
        pizza, basil = short_kitchen

        report = StockAlertService(db).get_active_alerts(pizza.tenant.id)

        assert report.total_alerts == 2
        assert [a.material_name for a in report.alerts] == ["Basil", "Cheese"]
        assert report.alerts[0].severity == AlertSeverity.OUT_OF_STOCK
        assert report.alerts[1].severity == AlertSeverity.CRITICAL
        assert report.counts == {"low": 0, "critical": 1, "out_of_stock": 1}

    def test_recipe_usage_attached(self, db, short_kitchen):
        pizza, _ = short_kitchen

        report = StockAlertService(db).get_active_alerts(pizza.tenant.id)

        cheese = report.alerts[1]
        assert cheese.used_in_active_recipes is True
        assert cheese.shortage_to_reorder == Decimal("1")
        assert report.alerts[0].used_in_active_recipes is False

    def test_archived_materials_ignored(self, db, short_kitchen):
        pizza, basil = short_kitchen
        MaterialService(db).archive(basil.id, pizza.tenant.id)

        report = StockAlertService(db).get_active_alerts(pizza.tenant.id)

        assert [a.material_name for a in report.alerts] == ["Cheese"]


class TestScan:
    """Alert records created from the current stock state."""

    def test_scan_is_idempotent(self, db, short_kitchen):
        pizza, _ = short_kitchen
        service = StockAlertService(db)

        first = service.scan_tenant(pizza.tenant.id)
        second = service.scan_tenant(pizza.tenant.id)

        assert (first.materials_checked, first.created, first.skipped) == (4, 2, 2)
        assert (second.created, second.updated, second.skipped) == (0, 0, 4)
        assert len(service.list_alerts(pizza.tenant.id)) == 2

    def test_open_alert_is_refreshed(self, db, short_kitchen):
        pizza, _ = short_kitchen
        service = StockAlertService(db)
        service.scan_tenant(pizza.tenant.id)
        StockLedger(db).adjust_stock(pizza.cheese.id, pizza.tenant.id, "deduction", "0.5", "waste")

        result = service.scan_tenant(pizza.tenant.id)

        assert result.updated == 1
        alert = service.list_alerts(pizza.tenant.id, material_id=pizza.cheese.id)[0]
        assert alert.current_stock == Decimal("0.5")

    def test_dry_run_writes_nothing(self, db, short_kitchen):
        pizza, _ = short_kitchen
        service = StockAlertService(db)

        result = service.scan_tenant(pizza.tenant.id, dry_run=True)

        assert result.created == 2
        assert service.list_alerts(pizza.tenant.id) == []

    def test_new_alert_after_resolution(self, db, short_kitchen):
        pizza, basil = short_kitchen
        service = StockAlertService(db)
        service.scan_tenant(pizza.tenant.id)
        alert = service.list_alerts(pizza.tenant.id, material_id=basil.id)[0]
        service.acknowledge(alert.id, pizza.tenant.id)
        service.resolve(alert.id, pizza.tenant.id)

        result = service.scan_tenant(pizza.tenant.id)

        assert result.created == 1
        statuses = {a.status for a in service.list_alerts(pizza.tenant.id, material_id=basil.id)}
        assert statuses == {AlertStatus.RESOLVED, AlertStatus.PENDING}

    def test_unknown_tenant(self, db):
        with pytest.raises(NotFoundError):
            StockAlertService(db).scan_tenant(uuid.uuid4())


class TestAlertTransitions:
    @pytest.fixture
    def alert(self, db, short_kitchen):
        pizza, basil = short_kitchen
        service = StockAlertService(db)
        service.scan_tenant(pizza.tenant.id)
        return service.list_alerts(pizza.tenant.id, material_id=basil.id)[0]

    def test_acknowledge_then_resolve(self, db, alert):
        service = StockAlertService(db)
        user_id = uuid.uuid4()

        acked = service.acknowledge(alert.id, alert.tenant_id, user_id, "Ordering today")
        resolved = service.resolve(alert.id, alert.tenant_id, user_id)

        assert acked.acknowledged_by == user_id
        assert acked.acknowledged_notes == "Ordering today"
        assert resolved.status == AlertStatus.RESOLVED
        assert resolved.resolved_at is not None

    def test_resolve_requires_acknowledgement(self, db, alert):
        with pytest.raises(InvalidStateTransition) as exc:
            StockAlertService(db).resolve(alert.id, alert.tenant_id)
        assert exc.value.code == "invalid_state_transition"

    def test_dismiss_pending(self, db, alert):
        dismissed = StockAlertService(db).dismiss(alert.id, alert.tenant_id, notes="Seasonal item")

        assert dismissed.status == AlertStatus.DISMISSED
        assert dismissed.dismissed_notes == "Seasonal item"

    def test_closed_alert_cannot_reopen(self, db, alert):
        service = StockAlertService(db)
        service.dismiss(alert.id, alert.tenant_id)

        with pytest.raises(InvalidStateTransition):
            service.acknowledge(alert.id, alert.tenant_id)

    def test_repeat_is_noop(self, db, alert):
        service = StockAlertService(db)
        first = service.acknowledge(alert.id, alert.tenant_id, notes="first")
        second = service.acknowledge(alert.id, alert.tenant_id, notes="second")

        assert second.status == AlertStatus.ACKNOWLEDGED
        assert second.acknowledged_notes == "first"
        assert first.id == second.id

    def test_other_tenant_cannot_touch_alert(self, db, alert, other_tenant):
        with pytest.raises(NotFoundError):
            StockAlertService(db).acknowledge(alert.id, other_tenant.id)


class TestPredictiveAlerts:
    def test_fast_consumption_is_critical(self, db, tenant, make_material):
        flour = make_material(tenant, "Flour", 100)
        StockLedger(db).adjust_stock(flour.id, tenant.id, "deduction", 95, "production")

        alerts = StockAlertService(db).get_predictive_alerts(tenant.id)

        assert len(alerts) == 1
        assert alerts[0].severity == AlertSeverity.CRITICAL
        assert alerts[0].days_until_stockout == Decimal("1.6")
        assert alerts[0].recommended_reorder_quantity == Decimal("95.000")

    def test_outside_horizon(self, db, tenant, make_material):
        flour = make_material(tenant, "Flour", 100)
        StockLedger(db).adjust_stock(flour.id, tenant.id, "deduction", 60, "production")
        service = StockAlertService(db)

        assert service.get_predictive_alerts(tenant.id) == []
        wide = service.get_predictive_alerts(tenant.id, horizon_days=30)
        assert wide[0].days_until_stockout == Decimal("20.0")
        assert wide[0].severity == AlertSeverity.LOW

    def test_no_consumption_no_prediction(self, db, pizza):
        assert StockAlertService(db).get_predictive_alerts(pizza.tenant.id) == []

    def test_horizon_must_be_positive(self, db, tenant):
        with pytest.raises(ValidationError):
            StockAlertService(db).get_predictive_alerts(tenant.id, horizon_days=0)


class TestReorderRecommendations:
    def test_quantities_and_priority(self, db, short_kitchen):
        pizza, basil = short_kitchen

        report = StockAlertService(db).get_reorder_recommendations(pizza.tenant.id)

        assert [r.material_name for r in report.recommendations] == ["Basil", "Cheese"]
        basil_rec, cheese_rec = report.recommendations
        assert basil_rec.priority == "urgent"
        assert basil_rec.recommended_quantity == Decimal("1.000")
        # 2.5 kg wasted in the lookback window outweighs the 1 kg reorder gap
        assert cheese_rec.priority == "high"
        assert cheese_rec.recommended_quantity == Decimal("2.500")
        assert report.total_estimated_cost == Decimal("33.00")


class TestDashboard:
    def test_summary(self, db, short_kitchen):
        pizza, _ = short_kitchen
        service = StockAlertService(db)
        service.scan_tenant(pizza.tenant.id)

        dashboard = service.get_alert_dashboard(pizza.tenant.id)

        assert dashboard.counts["out_of_stock"] == 1
        assert dashboard.open_alert_records == {"pending": 2, "acknowledged": 0}
        assert len(dashboard.top_alerts) == 2
        assert dashboard.reorder_items == 2

    def test_order_sufficiency(self, db, pizza):
        plan = StockAlertService(db).check_stock_sufficiency_for_orders(pizza.tenant.id, {pizza.product.id: 20})

        assert plan.feasible is False
        assert plan.material_shortages[0].material_name == "Cheese"
