"""
Stock alerts router.

Live classification (active, predictive, reorder) plus the recorded alert
workflow: acknowledge, resolve, dismiss.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from bomkit.core.deps import get_tenant_id, get_user_id
from bomkit.db.session import get_db
from bomkit.models.enums import AlertSeverity, AlertStatus
from bomkit.schemas.alerts import AlertTransitionRequest, StockAlertResponse
from bomkit.schemas.inventory import ProductionPlanRequest
from bomkit.services.stock_alerts import StockAlertService


router = APIRouter(prefix="/alerts", tags=["alerts"])


# ============ Live classification ============

@router.get("/active")
def get_active_alerts(
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return StockAlertService(db).get_active_alerts(tenant_id)


@router.get("/predictive")
def get_predictive_alerts(
    horizon_days: Optional[int] = Query(None, ge=1, le=365),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    alerts = StockAlertService(db).get_predictive_alerts(tenant_id, horizon_days)
    return {"alerts": alerts, "total": len(alerts)}


@router.get("/reorder-recommendations")
def get_reorder_recommendations(
    target_days: Optional[int] = Query(None, ge=1, le=365),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return StockAlertService(db).get_reorder_recommendations(tenant_id, target_days)


@router.post("/order-sufficiency")
def check_order_sufficiency(
    payload: ProductionPlanRequest,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return StockAlertService(db).check_stock_sufficiency_for_orders(tenant_id, payload.as_plan())


@router.get("/dashboard")
def get_dashboard(
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return StockAlertService(db).get_alert_dashboard(tenant_id)


# ============ Recorded alerts ============

@router.get("", response_model=List[StockAlertResponse])
def list_alerts(
    status: Optional[AlertStatus] = None,
    severity: Optional[AlertSeverity] = None,
    material_id: Optional[UUID] = None,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return StockAlertService(db).list_alerts(tenant_id, status=status, severity=severity, material_id=material_id)


@router.post("/scan")
def scan_alerts(
    dry_run: bool = False,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """Record alerts for this tenant's current stock state."""
    return StockAlertService(db).scan_tenant(tenant_id, dry_run=dry_run)


@router.post("/{alert_id}/acknowledge", response_model=StockAlertResponse)
def acknowledge_alert(
    alert_id: UUID,
    payload: Optional[AlertTransitionRequest] = None,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
    user_id: Optional[UUID] = Depends(get_user_id),
):
    notes = payload.notes if payload else None
    return StockAlertService(db).acknowledge(alert_id, tenant_id, user_id, notes)


@router.post("/{alert_id}/resolve", response_model=StockAlertResponse)
def resolve_alert(
    alert_id: UUID,
    payload: Optional[AlertTransitionRequest] = None,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
    user_id: Optional[UUID] = Depends(get_user_id),
):
    notes = payload.notes if payload else None
    return StockAlertService(db).resolve(alert_id, tenant_id, user_id, notes)


@router.post("/{alert_id}/dismiss", response_model=StockAlertResponse)
def dismiss_alert(
    alert_id: UUID,
    payload: Optional[AlertTransitionRequest] = None,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
    user_id: Optional[UUID] = Depends(get_user_id),
):
    notes = payload.notes if payload else None
    return StockAlertService(db).dismiss(alert_id, tenant_id, user_id, notes)
