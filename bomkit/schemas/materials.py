"""
Material Pydantic schemas for API request/response models.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from bomkit.models.enums import Lifecycle, MaterialUnit


class MaterialCreate(BaseModel):
    """Request model for creating a material. stock_quantity is the opening stock."""
    name: str = Field(..., min_length=1, max_length=255)
    unit: MaterialUnit
    stock_quantity: Decimal = Field(Decimal("0"), ge=0)
    reorder_level: Decimal = Field(Decimal("0"), ge=0)
    unit_cost: Decimal = Field(Decimal("0"), ge=0)
    sku: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    supplier: Optional[str] = None


class MaterialUpdate(BaseModel):
    """Request model for updating a material. Stock changes go through /inventory."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    unit: Optional[MaterialUnit] = None
    reorder_level: Optional[Decimal] = Field(None, ge=0)
    unit_cost: Optional[Decimal] = Field(None, ge=0)
    sku: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    supplier: Optional[str] = None


class MaterialResponse(BaseModel):
    id: UUID
    name: str
    sku: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    supplier: Optional[str] = None
    unit: MaterialUnit
    stock_quantity: Decimal
    reorder_level: Decimal
    unit_cost: Decimal
    lifecycle: Lifecycle
    archived_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MaterialListResponse(BaseModel):
    items: List[MaterialResponse]
    total: int
