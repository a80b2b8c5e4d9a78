"""
Recipes router.

Provides API endpoints for:
- Recipe CRUD and archive/restore
- Activation (one active recipe per product)
- Component management
- Cost breakdown
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from bomkit.core.deps import get_tenant_id
from bomkit.db.session import get_db
from bomkit.schemas.recipes import (
    ComponentCreate, ComponentResponse, ComponentUpdate, RecipeCreate, RecipeResponse, RecipeUpdate,
)
from bomkit.services.recipes import RecipeService


router = APIRouter(prefix="/recipes", tags=["recipes"])


# ============ Recipes ============

@router.post("", response_model=RecipeResponse, status_code=status.HTTP_201_CREATED)
def create_recipe(
    payload: RecipeCreate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    data = payload.model_dump()
    return RecipeService(db).create(
        tenant_id,
        data["product_id"],
        data["name"],
        yield_quantity=data["yield_quantity"],
        yield_unit=data["yield_unit"],
        description=data["description"],
        components=data["components"],
        activate=data["activate"],
    )


@router.get("/product/{product_id}", response_model=List[RecipeResponse])
def list_product_recipes(
    product_id: UUID,
    include_archived: bool = False,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return RecipeService(db).list_for_product(product_id, tenant_id, include_archived=include_archived)


@router.get("/product/{product_id}/active")
def get_active_recipe(
    product_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """The product's active recipe, or null when it has none."""
    recipe = RecipeService(db).get_active_for_product(product_id, tenant_id)
    return {"recipe": RecipeResponse.model_validate(recipe) if recipe else None}


@router.get("/{recipe_id}", response_model=RecipeResponse)
def get_recipe(
    recipe_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return RecipeService(db).get(recipe_id, tenant_id)


@router.patch("/{recipe_id}", response_model=RecipeResponse)
def update_recipe(
    recipe_id: UUID,
    payload: RecipeUpdate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return RecipeService(db).update(recipe_id, tenant_id, **payload.model_dump(exclude_unset=True))


@router.post("/{recipe_id}/activate", response_model=RecipeResponse)
def activate_recipe(
    recipe_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return RecipeService(db).activate(recipe_id, tenant_id)


@router.post("/{recipe_id}/deactivate", response_model=RecipeResponse)
def deactivate_recipe(
    recipe_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return RecipeService(db).deactivate(recipe_id, tenant_id)


@router.post("/{recipe_id}/archive", response_model=RecipeResponse)
def archive_recipe(
    recipe_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return RecipeService(db).archive(recipe_id, tenant_id)


@router.post("/{recipe_id}/restore", response_model=RecipeResponse)
def restore_recipe(
    recipe_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return RecipeService(db).restore(recipe_id, tenant_id)


@router.get("/{recipe_id}/cost")
def get_recipe_cost(
    recipe_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """Cost per recipe run and per yield unit, with a per-component breakdown."""
    return RecipeService(db).cost_breakdown(recipe_id, tenant_id)


# ============ Components ============

@router.post("/{recipe_id}/components", response_model=ComponentResponse, status_code=status.HTTP_201_CREATED)
def add_component(
    recipe_id: UUID,
    payload: ComponentCreate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return RecipeService(db).add_component(recipe_id, tenant_id, **payload.model_dump())


@router.patch("/components/{component_id}", response_model=ComponentResponse)
def update_component(
    component_id: UUID,
    payload: ComponentUpdate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    return RecipeService(db).update_component(component_id, tenant_id, **payload.model_dump(exclude_unset=True))


@router.delete("/components/{component_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_component(
    component_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    RecipeService(db).remove_component(component_id, tenant_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
