"""
Stock Ledger: the only code path that changes Material.stock_quantity.

Every mutation locks the material row, validates non-negativity and writes
the new stock together with an InventoryTransaction in a single database
transaction. Nothing is persisted when validation fails.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session

from bomkit.core.exceptions import (
    ConfigurationError, InsufficientStockError, ValidationError,
)
from bomkit.db.repository import BomRepository
from bomkit.models import InventoryTransaction, Material
from bomkit.models.enums import InventoryMode, TransactionReason, TransactionType
from bomkit.services.bom import ZERO, parse_decimal, round_quantity, to_decimal

logger = logging.getLogger(__name__)


def signed_delta(transaction_type: TransactionType, quantity: Decimal) -> Decimal:
    """
    Convert a requested quantity into a signed stock change.

    restock    -> +|q|
    deduction  -> -|q|
    adjustment -> q as given (may be negative)
    """
    if quantity == 0:
        raise ValidationError("Quantity must not be zero", field="quantity")
    if transaction_type == TransactionType.RESTOCK:
        return abs(quantity)
    if transaction_type == TransactionType.DEDUCTION:
        return -abs(quantity)
    return quantity


def _coerce(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            f"Invalid {field_name} '{value}'. Allowed: {allowed}", field=field_name
        )


@dataclass
class LedgerSummary:
    """Aggregated ledger activity for one material over a period."""
    material_id: UUID
    material_name: str
    current_stock: Decimal
    start: Optional[datetime]
    end: Optional[datetime]
    transaction_count: int = 0
    total_increase: Decimal = ZERO
    total_decrease: Decimal = ZERO
    net_change: Decimal = ZERO
    by_type: dict[str, dict] = field(default_factory=dict)
    by_reason: dict[str, dict] = field(default_factory=dict)


class StockLedger:
    """
    Atomic stock mutation plus immutable audit trail.

    Ordering guarantee: the before/after snapshot of a single call is
    linearizable with respect to other calls on the same (tenant, material)
    pair because the row is held FOR UPDATE until commit.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = BomRepository(db)

    def adjust_stock(
        self,
        material_id: UUID,
        tenant_id: UUID,
        transaction_type: Union[TransactionType, str],
        quantity: Union[Decimal, int, str],
        reason: Union[TransactionReason, str],
        notes: Optional[str] = None,
        user_id: Optional[UUID] = None,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> InventoryTransaction:
        """
        Apply one stock movement and return the ledger entry.

        Raises:
            ValidationError: zero quantity, unknown type or reason
            NotFoundError: material missing or owned by another tenant
            InsufficientStockError: the movement would leave stock below zero
        """
        transaction_type = _coerce(TransactionType, transaction_type, "transaction_type")
        reason = _coerce(TransactionReason, reason, "reason")
        delta = signed_delta(transaction_type, round_quantity(parse_decimal(quantity, "quantity")))

        try:
            material = self.repo.lock_material(material_id, tenant_id)
            entry = self.post_entry(
                material,
                transaction_type,
                delta,
                reason,
                notes=notes,
                user_id=user_id,
                reference_type=reference_type,
                reference_id=reference_id,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(entry)
        logger.info(
            f"Stock {transaction_type.value} for material {material_id} (tenant {tenant_id}): "
            f"{entry.quantity_before} -> {entry.quantity_after}"
        )
        return entry

    def post_entry(
        self,
        material: Material,
        transaction_type: TransactionType,
        delta: Decimal,
        reason: TransactionReason,
        notes: Optional[str] = None,
        user_id: Optional[UUID] = None,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> InventoryTransaction:
        """
        Stage a stock change and its ledger row in the current transaction.

        The caller owns the transaction and must hold the row lock (or own a
        row nobody else can see yet). Nothing is committed here.
        """
        before = to_decimal(material.stock_quantity)
        after = before + delta
        if after < 0:
            logger.warning(
                f"Rejected {transaction_type.value} of {abs(delta)} on material {material.id}: "
                f"only {before} in stock"
            )
            raise InsufficientStockError(material.name, required=abs(delta), available=before)

        material.stock_quantity = after
        entry = InventoryTransaction(
            tenant_id=material.tenant_id,
            material_id=material.id,
            transaction_type=transaction_type,
            reason=reason,
            quantity_before=before,
            quantity_change=delta,
            quantity_after=after,
            notes=notes,
            reference_type=reference_type,
            reference_id=str(reference_id) if reference_id is not None else None,
            user_id=user_id,
        )
        self.db.add(entry)
        return entry

    def commit_production(
        self,
        product_id: UUID,
        tenant_id: UUID,
        quantity: int,
        user_id: Optional[UUID] = None,
        reference_type: Optional[str] = "production_run",
        reference_id: Optional[str] = None,
    ) -> list[InventoryTransaction]:
        """
        Deduct the materials for `quantity` units of a product.

        All components are deducted or none is: the first shortage rolls the
        whole production back.
        """
        if quantity is None or int(quantity) != quantity or quantity <= 0:
            raise ValidationError("Production quantity must be a positive integer", field="quantity")

        product = self.repo.get_product(product_id, tenant_id)
        if product.inventory_mode != InventoryMode.BOM:
            raise ConfigurationError(
                f"Product '{product.name}' is not BOM-managed",
                {"product_id": str(product_id)},
            )
        recipe = self.repo.get_active_recipe(product_id, tenant_id)
        if not recipe:
            raise ConfigurationError("No active recipe found for this product", {"product_id": str(product_id)})
        snapshot = self.repo.recipe_snapshot(recipe)
        if not snapshot.components:
            raise ConfigurationError("No materials defined in recipe", {"recipe_id": str(recipe.id)})

        required = {
            c.material.id: round_quantity(c.effective_quantity * quantity)
            for c in snapshot.components
        }
        notes = f"Production deduction for recipe: {snapshot.name} (Qty: {quantity})"

        entries = []
        try:
            locked = self.repo.lock_materials(required.keys(), tenant_id)
            for material_id in sorted(required, key=str):
                entries.append(self.post_entry(
                    locked[material_id],
                    TransactionType.DEDUCTION,
                    -required[material_id],
                    TransactionReason.PRODUCTION,
                    notes=notes,
                    user_id=user_id,
                    reference_type=reference_type,
                    reference_id=reference_id,
                ))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        for entry in entries:
            self.db.refresh(entry)
        logger.info(
            f"Committed production of {quantity} x {product.name} (tenant {tenant_id}), "
            f"{len(entries)} materials deducted"
        )
        return entries

    def can_be_deleted(self, material_id: UUID, tenant_id: UUID) -> bool:
        """False iff a component of a currently active recipe uses the material."""
        self.repo.get_material(material_id, tenant_id)
        return not self.repo.is_material_in_active_recipe(material_id, tenant_id)

    def get_history(
        self,
        material_id: UUID,
        tenant_id: UUID,
        limit: int = 50,
    ) -> list[InventoryTransaction]:
        """Most recent ledger entries first."""
        self.repo.get_material(material_id, tenant_id)
        return self.repo.list_transactions(material_id, tenant_id, limit=limit)

    def get_summary(
        self,
        material_id: UUID,
        tenant_id: UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> LedgerSummary:
        material = self.repo.get_material(material_id, tenant_id)
        entries = self.repo.list_transactions(material_id, tenant_id, start=start, end=end)

        summary = LedgerSummary(
            material_id=material.id,
            material_name=material.name,
            current_stock=to_decimal(material.stock_quantity),
            start=start,
            end=end,
            transaction_count=len(entries),
        )
        by_type = defaultdict(lambda: {"count": 0, "total_change": ZERO})
        by_reason = defaultdict(lambda: {"count": 0, "total_change": ZERO})

        for entry in entries:
            change = to_decimal(entry.quantity_change)
            if change > 0:
                summary.total_increase += change
            else:
                summary.total_decrease += abs(change)

            type_key = getattr(entry.transaction_type, "value", entry.transaction_type)
            reason_key = getattr(entry.reason, "value", entry.reason)
            by_type[type_key]["count"] += 1
            by_type[type_key]["total_change"] += change
            by_reason[reason_key]["count"] += 1
            by_reason[reason_key]["total_change"] += change

        summary.net_change = summary.total_increase - summary.total_decrease
        summary.by_type = dict(by_type)
        summary.by_reason = dict(by_reason)
        return summary
