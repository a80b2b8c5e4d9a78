"""
Material management.

Stock is never edited here: opening stock is posted as a restock entry and
every later change goes through the StockLedger.
"""
import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from bomkit.core.exceptions import ValidationError
from bomkit.db.base import utcnow
from bomkit.db.repository import BomRepository
from bomkit.models import Material
from bomkit.models.enums import Lifecycle, MaterialUnit, TransactionReason, TransactionType
from bomkit.services.bom import ZERO, parse_decimal, round_quantity
from bomkit.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"name", "sku", "description", "category", "supplier", "unit", "reorder_level", "unit_cost"}
NON_NEGATIVE_FIELDS = ("reorder_level", "unit_cost")


def _unit(value) -> MaterialUnit:
    try:
        return MaterialUnit(value)
    except ValueError:
        allowed = ", ".join(u.value for u in MaterialUnit)
        raise ValidationError(f"Invalid unit '{value}'. Allowed: {allowed}", field="unit")


def _non_negative(value, field_name: str) -> Decimal:
    number = parse_decimal(value, field_name)
    if number < 0:
        raise ValidationError(f"{field_name} cannot be negative", field=field_name)
    return number


def _name(value) -> str:
    name = (value or "").strip()
    if not name:
        raise ValidationError("name is required", field="name")
    return name


class MaterialService:
    """CRUD and lifecycle for materials, always scoped to one tenant."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BomRepository(db)
        self.ledger = StockLedger(db)

    def create(
        self,
        tenant_id: UUID,
        name: str,
        unit: str,
        stock_quantity=ZERO,
        reorder_level=ZERO,
        unit_cost=ZERO,
        sku: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        supplier: Optional[str] = None,
        user_id: Optional[UUID] = None,
    ) -> Material:
        self.repo.get_tenant(tenant_id)
        opening_stock = round_quantity(_non_negative(stock_quantity, "stock_quantity"))

        material = Material(
            tenant_id=tenant_id,
            name=_name(name),
            unit=_unit(unit),
            stock_quantity=ZERO,
            reorder_level=_non_negative(reorder_level, "reorder_level"),
            unit_cost=_non_negative(unit_cost, "unit_cost"),
            sku=sku,
            description=description,
            category=category,
            supplier=supplier,
            lifecycle=Lifecycle.ACTIVE,
        )
        try:
            self.db.add(material)
            self.db.flush()
            if opening_stock > 0:
                self.ledger.post_entry(
                    material,
                    TransactionType.RESTOCK,
                    opening_stock,
                    TransactionReason.PURCHASE,
                    notes="Opening stock",
                    user_id=user_id,
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(material)
        logger.info(f"Created material {material.id} '{material.name}' for tenant {tenant_id}")
        return material

    def get(self, material_id: UUID, tenant_id: UUID) -> Material:
        return self.repo.get_material(material_id, tenant_id)

    def list_materials(
        self,
        tenant_id: UUID,
        category: Optional[str] = None,
        unit: Optional[str] = None,
        low_stock: bool = False,
        lifecycle: Optional[Lifecycle] = Lifecycle.ACTIVE,
        search: Optional[str] = None,
    ) -> list[Material]:
        return self.repo.list_materials(
            tenant_id,
            lifecycle=lifecycle,
            category=category,
            unit=_unit(unit) if unit else None,
            low_stock=low_stock,
            search=search,
        )

    def update(self, material_id: UUID, tenant_id: UUID, **changes) -> Material:
        if "stock_quantity" in changes:
            raise ValidationError(
                "stock_quantity can only be changed through stock adjustments",
                field="stock_quantity",
            )
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        material = self.repo.get_material(material_id, tenant_id)
        for key, value in changes.items():
            if key == "name":
                value = _name(value)
            elif key == "unit":
                value = _unit(value)
            elif key in NON_NEGATIVE_FIELDS:
                value = _non_negative(value, key)
            setattr(material, key, value)

        self.db.commit()
        self.db.refresh(material)
        return material

    def archive(self, material_id: UUID, tenant_id: UUID) -> Material:
        """Archive a material that no active recipe depends on."""
        material = self.repo.get_material(material_id, tenant_id)
        if material.lifecycle == Lifecycle.ARCHIVED:
            return material

        if not self.ledger.can_be_deleted(material_id, tenant_id):
            products = [u.product_name for u in self.repo.active_recipes_using(material_id, tenant_id)]
            raise ValidationError(
                f"Material '{material.name}' is used by active recipes and cannot be archived",
                details={"products": products},
            )

        material.lifecycle = Lifecycle.ARCHIVED
        material.archived_at = utcnow()
        self.db.commit()
        self.db.refresh(material)
        logger.info(f"Archived material {material_id} for tenant {tenant_id}")
        return material

    def restore(self, material_id: UUID, tenant_id: UUID) -> Material:
        material = self.repo.get_material(material_id, tenant_id)
        if material.lifecycle == Lifecycle.ACTIVE:
            return material

        material.lifecycle = Lifecycle.ACTIVE
        material.archived_at = None
        self.db.commit()
        self.db.refresh(material)
        logger.info(f"Restored material {material_id} for tenant {tenant_id}")
        return material

    def categories(self, tenant_id: UUID) -> list[str]:
        return self.repo.list_categories(tenant_id)
