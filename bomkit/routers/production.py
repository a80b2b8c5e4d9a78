"""
Production planning router.

Read-only calculations over the current stock snapshot:
- Availability, feasibility and material requirements per product
- Batch sizing, multi-product plans and production previews
- Capacity forecast

Committing a production run lives in the inventory router, since it
mutates stock.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from bomkit.core.deps import get_tenant_id
from bomkit.db.session import get_db
from bomkit.schemas.inventory import BulkAvailabilityRequest, ProductionPlanRequest
from bomkit.services.batch_production import BatchProductionService
from bomkit.services.inventory_calculation import InventoryCalculationService


router = APIRouter(prefix="/production", tags=["production"])


# ============ Single product ============

@router.get("/products/{product_id}/availability")
def get_availability(
    product_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """
    Maximum producible quantity for a product.

    Returns:
    - available_quantity and can_produce
    - bottleneck_material (the component limiting production)
    - component_details with per-component capacity
    """
    return InventoryCalculationService(db).calculate_available_quantity(product_id, tenant_id)


@router.get("/products/{product_id}/feasibility")
def check_feasibility(
    product_id: UUID,
    quantity: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return InventoryCalculationService(db).check_production_feasibility(product_id, tenant_id, quantity)


@router.get("/products/{product_id}/requirements")
def get_requirements(
    product_id: UUID,
    quantity: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return InventoryCalculationService(db).get_material_requirements(product_id, tenant_id, quantity)


@router.get("/products/{product_id}/cost")
def estimate_cost(
    product_id: UUID,
    quantity: int = Query(1, gt=0),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return InventoryCalculationService(db).estimate_production_cost(product_id, tenant_id, quantity)


@router.get("/products/{product_id}/batch")
def get_batch_requirements(
    product_id: UUID,
    quantity: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return BatchProductionService(db).calculate_batch_requirements(product_id, tenant_id, quantity)


@router.get("/products/{product_id}/optimal-batch")
def get_optimal_batch(
    product_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return BatchProductionService(db).calculate_optimal_batch_size(product_id, tenant_id)


@router.get("/products/{product_id}/simulate")
def simulate(
    product_id: UUID,
    quantity: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """Preview stock after producing `quantity` units. Nothing is written."""
    return BatchProductionService(db).simulate_production(product_id, tenant_id, quantity)


@router.get("/products/{product_id}/capacity-forecast")
def capacity_forecast(
    product_id: UUID,
    days: int = Query(7, ge=1, le=365),
    avg_daily_usage: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return BatchProductionService(db).get_production_capacity_forecast(
        product_id, tenant_id, days=days, avg_daily_usage=avg_daily_usage,
    )


# ============ Multi product ============

@router.post("/availability/bulk")
def bulk_availability(
    payload: BulkAvailabilityRequest,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """Independent availability per product (shared materials counted for each)."""
    entries = InventoryCalculationService(db).bulk_calculate_availability(payload.product_ids, tenant_id)
    return {"results": entries}


@router.post("/plan")
def plan_production(
    payload: ProductionPlanRequest,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """Aggregate material requirements of several products produced together."""
    return BatchProductionService(db).calculate_multi_product_batch(payload.as_plan(), tenant_id)


@router.get("/low-stock-materials")
def low_stock_materials(
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """Materials below reorder level that active recipes depend on."""
    materials = InventoryCalculationService(db).get_low_stock_materials_in_active_recipes(tenant_id)
    return {"materials": materials, "total": len(materials)}
