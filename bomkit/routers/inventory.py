"""
Inventory router: stock movements and the ledger.

Every stock change in the system goes through these endpoints (or the
StockLedger they call).
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from bomkit.core.deps import get_tenant_id, get_user_id
from bomkit.db.session import get_db
from bomkit.schemas.inventory import (
    InventoryTransactionResponse, ProductionCommitRequest, StockAdjustmentRequest,
)
from bomkit.services.stock_ledger import StockLedger


router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.post(
    "/materials/{material_id}/adjust",
    response_model=InventoryTransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
def adjust_stock(
    material_id: UUID,
    payload: StockAdjustmentRequest,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
    user_id: Optional[UUID] = Depends(get_user_id),
):
    """
    Restock, deduct or adjust a material.

    Returns 409 with error "insufficient_stock" when the movement would
    leave negative stock; nothing is written in that case.
    """
    return StockLedger(db).adjust_stock(
        material_id,
        tenant_id,
        payload.transaction_type,
        payload.quantity,
        payload.reason,
        notes=payload.notes,
        user_id=user_id,
        reference_type=payload.reference_type,
        reference_id=payload.reference_id,
    )


@router.get("/materials/{material_id}/history", response_model=List[InventoryTransactionResponse])
def get_history(
    material_id: UUID,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return StockLedger(db).get_history(material_id, tenant_id, limit=limit)


@router.get("/materials/{material_id}/summary")
def get_summary(
    material_id: UUID,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return StockLedger(db).get_summary(material_id, tenant_id, start=start, end=end)


@router.post(
    "/production",
    response_model=List[InventoryTransactionResponse],
    status_code=status.HTTP_201_CREATED,
)
def commit_production(
    payload: ProductionCommitRequest,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
    user_id: Optional[UUID] = Depends(get_user_id),
):
    """Deduct all materials for a production run, all or nothing."""
    return StockLedger(db).commit_production(
        payload.product_id,
        tenant_id,
        payload.quantity,
        user_id=user_id,
        reference_type=payload.reference_type,
        reference_id=payload.reference_id,
    )
