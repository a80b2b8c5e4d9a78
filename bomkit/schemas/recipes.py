"""
Recipe Pydantic schemas for API request/response models.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from bomkit.models.enums import Lifecycle, MaterialUnit, YieldUnit


class ComponentCreate(BaseModel):
    material_id: UUID
    quantity_required: Decimal = Field(..., gt=0)
    waste_percentage: Decimal = Field(Decimal("0"), ge=0, lt=100)
    notes: Optional[str] = None


class ComponentUpdate(BaseModel):
    quantity_required: Optional[Decimal] = Field(None, gt=0)
    waste_percentage: Optional[Decimal] = Field(None, ge=0, lt=100)
    notes: Optional[str] = None


class RecipeCreate(BaseModel):
    product_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    yield_quantity: Decimal = Field(Decimal("1"), gt=0)
    yield_unit: YieldUnit = YieldUnit.PCS
    components: List[ComponentCreate] = []
    activate: bool = False


class RecipeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    yield_quantity: Optional[Decimal] = Field(None, gt=0)
    yield_unit: Optional[YieldUnit] = None


class ComponentMaterial(BaseModel):
    id: UUID
    name: str
    unit: MaterialUnit
    stock_quantity: Decimal
    unit_cost: Decimal

    model_config = ConfigDict(from_attributes=True)


class ComponentResponse(BaseModel):
    id: UUID
    material_id: UUID
    quantity_required: Decimal
    waste_percentage: Decimal
    position: int
    notes: Optional[str] = None
    material: Optional[ComponentMaterial] = None

    model_config = ConfigDict(from_attributes=True)


class RecipeResponse(BaseModel):
    id: UUID
    product_id: UUID
    name: str
    description: Optional[str] = None
    yield_quantity: Decimal
    yield_unit: YieldUnit
    is_active: bool
    lifecycle: Lifecycle
    archived_at: Optional[datetime] = None
    components: List[ComponentResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
