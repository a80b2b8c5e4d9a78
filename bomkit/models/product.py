"""
Product record consumed by the BOM engine.

Products are owned by the catalogue side of the system; the engine only
needs identity, tenant ownership and the inventory mode flag.
"""
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid, func, Index
from sqlalchemy.orm import relationship

from bomkit.db.base import Base
from bomkit.models.enums import InventoryMode, db_enum


class Product(Base):
    """A sellable product, either simple-stock or BOM-managed."""
    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    sku = Column(String(100))
    inventory_mode = Column(db_enum(InventoryMode), nullable=False, default=InventoryMode.SIMPLE)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    tenant = relationship("Tenant", back_populates="products")
    recipes = relationship("Recipe", back_populates="product", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_products_tenant', 'tenant_id'),
    )
