"""
Stock Alert Service.

Classifies current and predicted stock state and manages the StockAlert
records created from it.

Severity (reorder_level r, ratio 0.5 by default):
    out_of_stock : stock == 0
    critical     : 0 < stock <= ratio × r
    low          : ratio × r < stock < r
    normal       : stock >= r               (no alert)

Usage-based predictions use the average daily consumption recorded in the
ledger over the lookback window:
    avg_daily            = Σ |negative changes| / lookback_days
    days_until_stockout  = stock / avg_daily
"""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Mapping, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from bomkit.core.config import Settings, get_settings
from bomkit.core.exceptions import InvalidStateTransition
from bomkit.db.base import utcnow
from bomkit.db.repository import BomRepository
from bomkit.models import StockAlert
from bomkit.models.enums import AlertSeverity, AlertStatus, StockStatus
from bomkit.services.batch_production import BatchProductionService, MultiProductPlan
from bomkit.services.bom import (
    ZERO, SEVERITY_RANK,
    MaterialSnapshot, ProductUsage,
    alert_severity_for, classify_stock_status, is_below_reorder_level,
    require_positive_int, round_money, round_quantity,
)

logger = logging.getLogger(__name__)

# target status -> statuses it may be reached from
ALERT_TRANSITIONS: dict[AlertStatus, tuple[AlertStatus, ...]] = {
    AlertStatus.ACKNOWLEDGED: (AlertStatus.PENDING,),
    AlertStatus.RESOLVED: (AlertStatus.ACKNOWLEDGED,),
    AlertStatus.DISMISSED: (AlertStatus.PENDING, AlertStatus.ACKNOWLEDGED),
}

REORDER_PRIORITY = {
    StockStatus.OUT_OF_STOCK: "urgent",
    StockStatus.CRITICAL: "high",
    StockStatus.LOW: "medium",
}
_PRIORITY_ORDER = {"urgent": 0, "high": 1, "medium": 2}


@dataclass
class MaterialAlert:
    material_id: UUID
    material_name: str
    sku: Optional[str]
    unit: str
    category: Optional[str]
    current_stock: Decimal
    reorder_level: Decimal
    stock_status: StockStatus
    severity: AlertSeverity
    shortage_to_reorder: Decimal
    used_in_active_recipes: bool
    affected_products: list[ProductUsage] = field(default_factory=list)


@dataclass
class ActiveAlertsReport:
    total_alerts: int
    counts: dict[str, int]
    alerts: list[MaterialAlert]


@dataclass
class PredictiveAlert:
    material_id: UUID
    material_name: str
    unit: str
    current_stock: Decimal
    reorder_level: Decimal
    avg_daily_usage: Decimal
    days_until_stockout: Decimal
    predicted_stockout_date: date
    severity: AlertSeverity
    recommended_reorder_quantity: Decimal


@dataclass
class ReorderRecommendation:
    material_id: UUID
    material_name: str
    sku: Optional[str]
    unit: str
    supplier: Optional[str]
    current_stock: Decimal
    reorder_level: Decimal
    avg_daily_usage: Decimal
    recommended_quantity: Decimal
    unit_cost: Decimal
    estimated_cost: Decimal
    priority: str  # urgent | high | medium


@dataclass
class ReorderReport:
    target_days: int
    recommendations: list[ReorderRecommendation]
    total_estimated_cost: Decimal


@dataclass
class AlertDashboard:
    counts: dict[str, int]
    open_alert_records: dict[str, int]
    top_alerts: list[MaterialAlert]
    predictive_alerts: list[PredictiveAlert]
    reorder_items: int
    reorder_estimated_cost: Decimal


@dataclass
class ScanResult:
    tenant_id: UUID
    materials_checked: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    dry_run: bool = False


class StockAlertService:
    """
    Current, predicted and recorded low-stock alerts for a tenant.

    Usage:
        service = StockAlertService(db)
        report = service.get_active_alerts(tenant_id)
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.repo = BomRepository(db)
        self.batch = BatchProductionService(db, self.settings)

    @property
    def critical_ratio(self) -> Decimal:
        return Decimal(str(self.settings.CRITICAL_STOCK_RATIO))

    def classify(self, material: MaterialSnapshot) -> StockStatus:
        return classify_stock_status(material.stock_quantity, material.reorder_level, self.critical_ratio)

    # ============ Current state ============

    def get_active_alerts(self, tenant_id: UUID) -> ActiveAlertsReport:
        """Every active material that is currently low, critical or out of stock."""
        usage = self.repo.active_recipe_usage(tenant_id)
        alerts = []

        for material in self.repo.material_snapshots(tenant_id):
            status = self.classify(material)
            severity = alert_severity_for(status)
            if severity is None:
                continue
            alerts.append(MaterialAlert(
                material_id=material.id,
                material_name=material.name,
                sku=material.sku,
                unit=material.unit,
                category=material.category,
                current_stock=material.stock_quantity,
                reorder_level=material.reorder_level,
                stock_status=status,
                severity=severity,
                shortage_to_reorder=max(ZERO, material.reorder_level - material.stock_quantity),
                used_in_active_recipes=material.id in usage,
                affected_products=usage.get(material.id, []),
            ))

        alerts.sort(key=lambda a: (-SEVERITY_RANK[a.severity], a.current_stock, a.material_name))
        counts = {severity.value: 0 for severity in AlertSeverity}
        for alert in alerts:
            counts[alert.severity.value] += 1

        return ActiveAlertsReport(total_alerts=len(alerts), counts=counts, alerts=alerts)

    # ============ Usage-based predictions ============

    def average_daily_usage(self, tenant_id: UUID) -> dict[UUID, Decimal]:
        """Average daily consumption per material over the lookback window."""
        lookback = self.settings.USAGE_LOOKBACK_DAYS
        since = utcnow() - timedelta(days=lookback)
        consumed = self.repo.consumption_since(tenant_id, since)
        return {material_id: total / lookback for material_id, total in consumed.items()}

    def get_predictive_alerts(self, tenant_id: UUID, horizon_days: Optional[int] = None) -> list[PredictiveAlert]:
        """Materials whose current consumption rate empties them within the horizon."""
        horizon = horizon_days if horizon_days is not None else self.settings.PREDICTIVE_HORIZON_DAYS
        require_positive_int(horizon, "horizon_days")

        usage = self.average_daily_usage(tenant_id)
        today = date.today()
        alerts = []

        for material in self.repo.material_snapshots(tenant_id):
            avg = usage.get(material.id, ZERO)
            if avg <= 0:
                continue
            days_left = max(ZERO, material.stock_quantity) / avg
            if days_left > horizon:
                continue

            critical = days_left <= self.settings.PREDICTIVE_CRITICAL_DAYS
            alerts.append(PredictiveAlert(
                material_id=material.id,
                material_name=material.name,
                unit=material.unit,
                current_stock=material.stock_quantity,
                reorder_level=material.reorder_level,
                avg_daily_usage=round_quantity(avg),
                days_until_stockout=days_left.quantize(Decimal("0.1")),
                predicted_stockout_date=today + timedelta(days=int(days_left)),
                severity=AlertSeverity.CRITICAL if critical else AlertSeverity.LOW,
                recommended_reorder_quantity=round_quantity(avg * self.settings.REORDER_TARGET_DAYS),
            ))

        alerts.sort(key=lambda a: (a.days_until_stockout, a.material_name))
        return alerts

    def get_reorder_recommendations(self, tenant_id: UUID, target_days: Optional[int] = None) -> ReorderReport:
        """
        Reorder quantities for materials below their reorder level.

        recommended = max(reorder_level - stock, avg_daily_usage × target_days)
        """
        target = target_days if target_days is not None else self.settings.REORDER_TARGET_DAYS
        require_positive_int(target, "target_days")

        usage = self.average_daily_usage(tenant_id)
        recommendations = []

        for material in self.repo.material_snapshots(tenant_id):
            if not is_below_reorder_level(material):
                continue
            avg = usage.get(material.id, ZERO)
            quantity = round_quantity(max(material.reorder_level - material.stock_quantity, avg * target))
            if quantity <= 0:
                continue
            status = self.classify(material)
            recommendations.append(ReorderRecommendation(
                material_id=material.id,
                material_name=material.name,
                sku=material.sku,
                unit=material.unit,
                supplier=material.supplier,
                current_stock=material.stock_quantity,
                reorder_level=material.reorder_level,
                avg_daily_usage=round_quantity(avg),
                recommended_quantity=quantity,
                unit_cost=material.unit_cost,
                estimated_cost=round_money(quantity * material.unit_cost),
                priority=REORDER_PRIORITY.get(status, "medium"),
            ))

        recommendations.sort(key=lambda r: (_PRIORITY_ORDER[r.priority], r.material_name))
        return ReorderReport(
            target_days=target,
            recommendations=recommendations,
            total_estimated_cost=round_money(sum((r.estimated_cost for r in recommendations), ZERO)),
        )

    def check_stock_sufficiency_for_orders(
        self,
        tenant_id: UUID,
        production_plan: Mapping[UUID, int],
    ) -> MultiProductPlan:
        """Shortages for a set of orders, via the multi-product planner."""
        return self.batch.calculate_multi_product_batch(production_plan, tenant_id)

    def get_alert_dashboard(self, tenant_id: UUID) -> AlertDashboard:
        limit = self.settings.DASHBOARD_LIMIT
        active = self.get_active_alerts(tenant_id)
        reorder = self.get_reorder_recommendations(tenant_id)

        open_records = {AlertStatus.PENDING.value: 0, AlertStatus.ACKNOWLEDGED.value: 0}
        for status in (AlertStatus.PENDING, AlertStatus.ACKNOWLEDGED):
            open_records[status.value] = len(self.repo.list_alerts(tenant_id, status=status))

        return AlertDashboard(
            counts=active.counts,
            open_alert_records=open_records,
            top_alerts=active.alerts[:limit],
            predictive_alerts=self.get_predictive_alerts(tenant_id)[:limit],
            reorder_items=len(reorder.recommendations),
            reorder_estimated_cost=reorder.total_estimated_cost,
        )

    # ============ Alert records ============

    def sync_material_alert(
        self,
        material: MaterialSnapshot,
        tenant_id: UUID,
        affected_products: Optional[list[ProductUsage]] = None,
    ) -> str:
        """
        Record the material's current condition.

        Returns "created", "updated" or "skipped". An open (pending or
        acknowledged) alert gets its snapshot refreshed instead of being
        duplicated; after a resolved or dismissed alert a new one is created.
        Nothing is committed here.
        """
        severity = alert_severity_for(self.classify(material))
        if severity is None:
            return "skipped"

        existing = self.repo.get_actionable_alert(material.id, tenant_id)
        if existing:
            changed = (
                existing.severity != severity
                or Decimal(str(existing.current_stock)) != material.stock_quantity
                or Decimal(str(existing.reorder_level)) != material.reorder_level
            )
            if not changed:
                return "skipped"
            existing.severity = severity
            existing.current_stock = material.stock_quantity
            existing.reorder_level = material.reorder_level
            return "updated"

        products = affected_products or []
        self.db.add(StockAlert(
            tenant_id=tenant_id,
            material_id=material.id,
            product_id=products[0].product_id if products else None,
            current_stock=material.stock_quantity,
            reorder_level=material.reorder_level,
            severity=severity,
            status=AlertStatus.PENDING,
        ))
        return "created"

    def scan_tenant(self, tenant_id: UUID, dry_run: bool = False) -> ScanResult:
        """Create or refresh alert records for every active material of a tenant."""
        self.repo.get_tenant(tenant_id)
        usage = self.repo.active_recipe_usage(tenant_id)
        result = ScanResult(tenant_id=tenant_id, dry_run=dry_run)

        try:
            for material in self.repo.material_snapshots(tenant_id):
                result.materials_checked += 1
                outcome = self.sync_material_alert(material, tenant_id, usage.get(material.id))
                setattr(result, outcome, getattr(result, outcome) + 1)

            if dry_run:
                self.db.rollback()
            else:
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Alert scan for tenant {tenant_id}: created={result.created} updated={result.updated} "
            f"skipped={result.skipped}{' (dry run)' if dry_run else ''}"
        )
        return result

    def acknowledge(self, alert_id: UUID, tenant_id: UUID, user_id: Optional[UUID] = None,
                    notes: Optional[str] = None) -> StockAlert:
        return self._transition(alert_id, tenant_id, AlertStatus.ACKNOWLEDGED, user_id, notes)

    def resolve(self, alert_id: UUID, tenant_id: UUID, user_id: Optional[UUID] = None,
                notes: Optional[str] = None) -> StockAlert:
        return self._transition(alert_id, tenant_id, AlertStatus.RESOLVED, user_id, notes)

    def dismiss(self, alert_id: UUID, tenant_id: UUID, user_id: Optional[UUID] = None,
                notes: Optional[str] = None) -> StockAlert:
        return self._transition(alert_id, tenant_id, AlertStatus.DISMISSED, user_id, notes)

    def list_alerts(
        self,
        tenant_id: UUID,
        status: Optional[AlertStatus] = None,
        severity: Optional[AlertSeverity] = None,
        material_id: Optional[UUID] = None,
    ) -> list[StockAlert]:
        return self.repo.list_alerts(tenant_id, status=status, severity=severity, material_id=material_id)

    def _transition(
        self,
        alert_id: UUID,
        tenant_id: UUID,
        target: AlertStatus,
        user_id: Optional[UUID],
        notes: Optional[str],
    ) -> StockAlert:
        alert = self.repo.get_alert(alert_id, tenant_id)
        current = AlertStatus(alert.status)

        # Repeating the current status is a no-op
        if current == target:
            return alert
        if current not in ALERT_TRANSITIONS[target]:
            raise InvalidStateTransition("stock alert", current.value, target.value)

        prefix = target.value
        alert.status = target
        setattr(alert, f"{prefix}_by", user_id)
        setattr(alert, f"{prefix}_at", utcnow())
        setattr(alert, f"{prefix}_notes", notes)
        self.db.commit()
        self.db.refresh(alert)

        logger.info(f"Stock alert {alert_id} (tenant {tenant_id}) {current.value} -> {target.value}")
        return alert
