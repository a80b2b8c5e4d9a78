"""
Raw materials consumed by recipes.
"""
import uuid
from sqlalchemy import Column, String, Text, Numeric, DateTime, ForeignKey, Uuid, func, Index, CheckConstraint
from sqlalchemy.orm import relationship

from bomkit.db.base import Base
from bomkit.models.enums import Lifecycle, MaterialUnit, db_enum


class Material(Base):
    """
    A stocked material (flour, sauce, packaging...).

    `stock_quantity` is only ever changed through the stock ledger, which
    writes an InventoryTransaction for every mutation. Derived state such as
    stock status is computed by pure functions in `bomkit.services.bom`, not
    by attributes on this model.
    """
    __tablename__ = "materials"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    sku = Column(String(100))
    description = Column(Text)
    category = Column(String(100))
    supplier = Column(String(255))
    unit = Column(db_enum(MaterialUnit), nullable=False)
    stock_quantity = Column(Numeric(12, 3), nullable=False, default=0)
    reorder_level = Column(Numeric(12, 3), nullable=False, default=0)
    unit_cost = Column(Numeric(12, 4), nullable=False, default=0)
    lifecycle = Column(db_enum(Lifecycle), nullable=False, default=Lifecycle.ACTIVE)
    archived_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    tenant = relationship("Tenant", back_populates="materials")
    components = relationship("RecipeComponent", back_populates="material")
    transactions = relationship("InventoryTransaction", back_populates="material")

    __table_args__ = (
        CheckConstraint('stock_quantity >= 0', name='ck_materials_stock_non_negative'),
        CheckConstraint('reorder_level >= 0', name='ck_materials_reorder_non_negative'),
        CheckConstraint('unit_cost >= 0', name='ck_materials_unit_cost_non_negative'),
        Index('idx_materials_tenant', 'tenant_id'),
        Index('idx_materials_tenant_category', 'tenant_id', 'category'),
    )
