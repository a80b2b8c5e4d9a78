"""
Materials router: CRUD, lifecycle and categories.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from bomkit.core.deps import get_tenant_id, get_user_id
from bomkit.db.session import get_db
from bomkit.models.enums import Lifecycle, MaterialUnit
from bomkit.schemas.materials import (
    MaterialCreate, MaterialListResponse, MaterialResponse, MaterialUpdate,
)
from bomkit.services.materials import MaterialService
from bomkit.services.stock_ledger import StockLedger


router = APIRouter(prefix="/materials", tags=["materials"])


@router.post("", response_model=MaterialResponse, status_code=status.HTTP_201_CREATED)
def create_material(
    payload: MaterialCreate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
    user_id: Optional[UUID] = Depends(get_user_id),
):
    """Create a material. A non-zero stock_quantity is booked as an opening restock."""
    return MaterialService(db).create(tenant_id, user_id=user_id, **payload.model_dump())


@router.get("", response_model=MaterialListResponse)
def list_materials(
    category: Optional[str] = None,
    unit: Optional[MaterialUnit] = None,
    low_stock: bool = False,
    lifecycle: Lifecycle = Lifecycle.ACTIVE,
    search: Optional[str] = Query(None, max_length=100),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    items = MaterialService(db).list_materials(
        tenant_id,
        category=category,
        unit=unit,
        low_stock=low_stock,
        lifecycle=lifecycle,
        search=search,
    )
    return MaterialListResponse(items=items, total=len(items))


@router.get("/categories")
def list_categories(
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return {"categories": MaterialService(db).categories(tenant_id)}


@router.get("/{material_id}", response_model=MaterialResponse)
def get_material(
    material_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return MaterialService(db).get(material_id, tenant_id)


@router.patch("/{material_id}", response_model=MaterialResponse)
def update_material(
    material_id: UUID,
    payload: MaterialUpdate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return MaterialService(db).update(material_id, tenant_id, **payload.model_dump(exclude_unset=True))


@router.get("/{material_id}/can-delete")
def can_delete_material(
    material_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """Whether the material is free of active recipes."""
    return {"material_id": material_id, "can_be_deleted": StockLedger(db).can_be_deleted(material_id, tenant_id)}


@router.post("/{material_id}/archive", response_model=MaterialResponse)
def archive_material(
    material_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return MaterialService(db).archive(material_id, tenant_id)


@router.post("/{material_id}/restore", response_model=MaterialResponse)
def restore_material(
    material_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return MaterialService(db).restore(material_id, tenant_id)
