"""
Stock alert schemas.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from bomkit.models.enums import AlertSeverity, AlertStatus


class AlertTransitionRequest(BaseModel):
    notes: Optional[str] = None


class StockAlertResponse(BaseModel):
    id: UUID
    material_id: UUID
    product_id: Optional[UUID] = None
    current_stock: Decimal
    reorder_level: Decimal
    severity: AlertSeverity
    status: AlertStatus
    notified: bool = False
    acknowledged_by: Optional[UUID] = None
    acknowledged_at: Optional[datetime] = None
    acknowledged_notes: Optional[str] = None
    resolved_by: Optional[UUID] = None
    resolved_at: Optional[datetime] = None
    resolved_notes: Optional[str] = None
    dismissed_by: Optional[UUID] = None
    dismissed_at: Optional[datetime] = None
    dismissed_notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
