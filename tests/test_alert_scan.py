"""
Tests for the periodic alert scan job.
"""
import uuid

from bomkit.jobs.alert_scan import run_alert_scan
from bomkit.services.stock_alerts import StockAlertService


class TestRunAlertScan:
    def test_scans_every_tenant(self, db, session_factory, tenant, other_tenant, make_material):
        make_material(tenant, "Basil", 0, reorder_level=1)
        make_material(other_tenant, "Yeast", 1, reorder_level=5)
        make_material(other_tenant, "Salt", 10, reorder_level=1)
        tenant_id, other_id = tenant.id, other_tenant.id

        stats = run_alert_scan(session_factory)

        assert stats.tenants_scanned == 2
        assert stats.tenants_failed == 0
        assert (stats.created, stats.skipped) == (2, 1)
        assert len(StockAlertService(db).list_alerts(tenant_id)) == 1
        assert len(StockAlertService(db).list_alerts(other_id)) == 1

    def test_failing_tenant_does_not_stop_others(self, db, session_factory, tenant, make_material):
        make_material(tenant, "Basil", 0, reorder_level=1)
        tenant_id = tenant.id
        missing = uuid.uuid4()

        stats = run_alert_scan(session_factory, tenant_ids=[missing, tenant_id])

        assert stats.tenants_failed == 1
        assert str(missing) in stats.failures
        assert stats.tenants_scanned == 1
        assert stats.created == 1

    def test_dry_run(self, db, session_factory, tenant, make_material):
        make_material(tenant, "Basil", 0, reorder_level=1)
        tenant_id = tenant.id

        stats = run_alert_scan(session_factory, dry_run=True)

        assert stats.dry_run is True
        assert stats.created == 1
        assert StockAlertService(db).list_alerts(tenant_id) == []
