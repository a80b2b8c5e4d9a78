"""
Inventory ledger models.
"""
import uuid
from sqlalchemy import Column, String, Text, Numeric, DateTime, ForeignKey, Uuid, Index, event
from sqlalchemy.orm import relationship

from bomkit.db.base import Base, utcnow
from bomkit.models.enums import TransactionType, TransactionReason, db_enum


class InventoryTransaction(Base):
    """
    Append-only audit record of one stock mutation.

    quantity_after = quantity_before + quantity_change. Rows are written by
    the stock ledger and never updated or deleted afterwards (there is no
    updated_at column on purpose).
    """
    __tablename__ = "inventory_transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    material_id = Column(Uuid, ForeignKey("materials.id", ondelete="CASCADE"), nullable=False)
    transaction_type = Column(db_enum(TransactionType), nullable=False)
    reason = Column(db_enum(TransactionReason), nullable=False)
    quantity_before = Column(Numeric(12, 3), nullable=False)
    quantity_change = Column(Numeric(12, 3), nullable=False)  # Positive for in, negative for out
    quantity_after = Column(Numeric(12, 3), nullable=False)
    notes = Column(Text)
    reference_type = Column(String(100))  # "production_run", "order", ...
    reference_id = Column(String(100))
    user_id = Column(Uuid)  # acting user, owned by the identity service
    created_at = Column(DateTime, nullable=False, default=utcnow)

    material = relationship("Material", back_populates="transactions")

    __table_args__ = (
        Index('idx_inventory_transactions_tenant_material_date', 'tenant_id', 'material_id', 'created_at'),
        Index('idx_inventory_transactions_reference', 'reference_type', 'reference_id'),
    )


class LedgerImmutableError(RuntimeError):
    """Raised when code tries to rewrite ledger history."""


@event.listens_for(InventoryTransaction, "before_update")
def _block_update(mapper, connection, target):
    raise LedgerImmutableError(f"InventoryTransaction {target.id} is write-once")


@event.listens_for(InventoryTransaction, "before_delete")
def _block_delete(mapper, connection, target):
    raise LedgerImmutableError(f"InventoryTransaction {target.id} cannot be deleted")
