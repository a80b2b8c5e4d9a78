"""
Ledger and production planning schemas.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from bomkit.models.enums import TransactionReason, TransactionType


class StockAdjustmentRequest(BaseModel):
    """
    One stock movement.

    restock and deduction use the absolute value of `quantity`; adjustment
    applies it as a signed delta.
    """
    transaction_type: TransactionType
    quantity: Decimal
    reason: TransactionReason
    notes: Optional[str] = None
    reference_type: Optional[str] = Field(None, max_length=100)
    reference_id: Optional[str] = Field(None, max_length=100)


class InventoryTransactionResponse(BaseModel):
    id: UUID
    material_id: UUID
    transaction_type: TransactionType
    reason: TransactionReason
    quantity_before: Decimal
    quantity_change: Decimal
    quantity_after: Decimal
    notes: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    user_id: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductionCommitRequest(BaseModel):
    product_id: UUID
    quantity: int = Field(..., gt=0)
    reference_type: Optional[str] = Field("production_run", max_length=100)
    reference_id: Optional[str] = Field(None, max_length=100)


class PlanItem(BaseModel):
    product_id: UUID
    quantity: int = Field(..., gt=0)


class ProductionPlanRequest(BaseModel):
    items: List[PlanItem] = Field(..., min_length=1)

    def as_plan(self) -> dict[UUID, int]:
        """Collapse repeated products into one quantity each."""
        plan: dict[UUID, int] = {}
        for item in self.items:
            plan[item.product_id] = plan.get(item.product_id, 0) + item.quantity
        return plan


class BulkAvailabilityRequest(BaseModel):
    product_ids: List[UUID] = Field(..., min_length=1)
