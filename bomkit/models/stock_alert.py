"""
Stock alert model.
"""
import uuid
from sqlalchemy import Column, Boolean, Numeric, Text, DateTime, ForeignKey, Uuid, Index, func
from sqlalchemy.orm import relationship

from bomkit.db.base import Base, utcnow
from bomkit.models.enums import AlertSeverity, AlertStatus, db_enum


class StockAlert(Base):
    """
    One low-stock incident for a material.

    Status flow: pending -> acknowledged -> resolved, or pending/acknowledged
    -> dismissed. Resolved and dismissed alerts are closed; if the condition
    comes back a new alert row is created.
    """
    __tablename__ = "stock_alerts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    material_id = Column(Uuid, ForeignKey("materials.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="SET NULL"))  # first affected product

    # Snapshot at detection time
    current_stock = Column(Numeric(12, 3), nullable=False)
    reorder_level = Column(Numeric(12, 3), nullable=False)
    severity = Column(db_enum(AlertSeverity), nullable=False)
    status = Column(db_enum(AlertStatus), nullable=False, default=AlertStatus.PENDING)

    notified = Column(Boolean, nullable=False, default=False)
    notified_at = Column(DateTime)

    acknowledged_by = Column(Uuid)
    acknowledged_at = Column(DateTime)
    acknowledged_notes = Column(Text)
    resolved_by = Column(Uuid)
    resolved_at = Column(DateTime)
    resolved_notes = Column(Text)
    dismissed_by = Column(Uuid)
    dismissed_at = Column(DateTime)
    dismissed_notes = Column(Text)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    material = relationship("Material")
    product = relationship("Product")

    __table_args__ = (
        Index('idx_stock_alerts_tenant_status', 'tenant_id', 'status'),
        Index('idx_stock_alerts_tenant_material', 'tenant_id', 'material_id'),
    )
