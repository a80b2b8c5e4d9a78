"""
Tenant-scoped persistence for the BOM engine.

Every method takes an explicit tenant_id. Rows owned by another tenant are
treated exactly like missing rows.
"""
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session, selectinload

from bomkit.core.exceptions import NotFoundError
from bomkit.models import (
    Tenant, Product, Material, Recipe, RecipeComponent, InventoryTransaction, StockAlert,
)
from bomkit.models.enums import (
    AlertSeverity, AlertStatus, Lifecycle, MaterialUnit, ACTIONABLE_ALERT_STATUSES,
)
from bomkit.services.bom import (
    ComponentSnapshot, MaterialSnapshot, ProductSnapshot, ProductUsage, RecipeSnapshot, to_decimal,
)


class BomRepository:
    """Reads and locked reads over the BOM tables for one session."""

    def __init__(self, db: Session):
        self.db = db

    # ============ Tenants & Products ============

    def get_tenant(self, tenant_id: UUID) -> Tenant:
        tenant = self.db.get(Tenant, tenant_id)
        if not tenant:
            raise NotFoundError("Tenant", tenant_id)
        return tenant

    def list_tenant_ids(self) -> list[UUID]:
        return list(self.db.execute(select(Tenant.id).order_by(Tenant.created_at, Tenant.id)).scalars())

    def get_product(self, product_id: UUID, tenant_id: UUID) -> Product:
        product = self.db.execute(
            select(Product).where(Product.id == product_id, Product.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    # ============ Materials ============

    def get_material(self, material_id: UUID, tenant_id: UUID) -> Material:
        material = self.db.execute(
            select(Material).where(Material.id == material_id, Material.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if not material:
            raise NotFoundError("Material", material_id)
        return material

    def lock_material(self, material_id: UUID, tenant_id: UUID) -> Material:
        """SELECT ... FOR UPDATE on one (tenant, material) row."""
        material = self.db.execute(
            select(Material)
            .where(Material.id == material_id, Material.tenant_id == tenant_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not material:
            raise NotFoundError("Material", material_id)
        return material

    def lock_materials(self, material_ids: Iterable[UUID], tenant_id: UUID) -> dict[UUID, Material]:
        """
        Lock several materials.

        Rows are locked in ascending id order so that two concurrent
        production commits over overlapping materials cannot deadlock.
        """
        locked = {}
        for material_id in sorted(set(material_ids), key=str):
            locked[material_id] = self.lock_material(material_id, tenant_id)
        return locked

    def list_materials(
        self,
        tenant_id: UUID,
        lifecycle: Optional[Lifecycle] = Lifecycle.ACTIVE,
        category: Optional[str] = None,
        unit: Optional[MaterialUnit] = None,
        low_stock: bool = False,
        search: Optional[str] = None,
    ) -> list[Material]:
        query = select(Material).where(Material.tenant_id == tenant_id)
        if lifecycle is not None:
            query = query.where(Material.lifecycle == lifecycle)
        if category:
            query = query.where(Material.category == category)
        if unit is not None:
            query = query.where(Material.unit == unit)
        if low_stock:
            query = query.where(or_(
                Material.stock_quantity < Material.reorder_level,
                Material.stock_quantity <= 0,
            ))
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Material.name.ilike(pattern), Material.sku.ilike(pattern)))
        return list(self.db.execute(query.order_by(Material.name)).scalars())

    def list_categories(self, tenant_id: UUID) -> list[str]:
        rows = self.db.execute(
            select(Material.category)
            .where(Material.tenant_id == tenant_id, Material.category.is_not(None))
            .distinct()
            .order_by(Material.category)
        ).scalars()
        return list(rows)

    # ============ Recipes ============

    def get_recipe(self, recipe_id: UUID, tenant_id: UUID) -> Recipe:
        recipe = self.db.execute(
            select(Recipe)
            .options(selectinload(Recipe.components).selectinload(RecipeComponent.material))
            .where(Recipe.id == recipe_id, Recipe.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if not recipe:
            raise NotFoundError("Recipe", recipe_id)
        return recipe

    def get_active_recipe(self, product_id: UUID, tenant_id: UUID) -> Optional[Recipe]:
        """The product's single active recipe, components and materials loaded eagerly."""
        return self.db.execute(
            select(Recipe)
            .options(selectinload(Recipe.components).selectinload(RecipeComponent.material))
            .where(
                Recipe.tenant_id == tenant_id,
                Recipe.product_id == product_id,
                Recipe.is_active.is_(True),
                Recipe.lifecycle == Lifecycle.ACTIVE,
            )
        ).scalars().first()

    def list_recipes(
        self,
        product_id: UUID,
        tenant_id: UUID,
        include_archived: bool = False,
        for_update: bool = False,
    ) -> list[Recipe]:
        query = select(Recipe).where(Recipe.tenant_id == tenant_id, Recipe.product_id == product_id)
        if not include_archived:
            query = query.where(Recipe.lifecycle == Lifecycle.ACTIVE)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        return list(self.db.execute(query.order_by(Recipe.created_at, Recipe.name)).scalars())

    def get_component(self, component_id: UUID, tenant_id: UUID) -> RecipeComponent:
        component = self.db.execute(
            select(RecipeComponent)
            .where(RecipeComponent.id == component_id, RecipeComponent.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if not component:
            raise NotFoundError("RecipeComponent", component_id)
        return component

    def find_component(self, recipe_id: UUID, material_id: UUID, tenant_id: UUID) -> Optional[RecipeComponent]:
        return self.db.execute(
            select(RecipeComponent).where(
                RecipeComponent.tenant_id == tenant_id,
                RecipeComponent.recipe_id == recipe_id,
                RecipeComponent.material_id == material_id,
            )
        ).scalar_one_or_none()

    def next_component_position(self, recipe_id: UUID) -> int:
        last = self.db.execute(
            select(func.max(RecipeComponent.position)).where(RecipeComponent.recipe_id == recipe_id)
        ).scalar()
        return 0 if last is None else last + 1

    def active_recipe_usage(self, tenant_id: UUID) -> dict[UUID, list[ProductUsage]]:
        """Map material_id -> products whose active recipe uses that material."""
        rows = self.db.execute(
            select(
                RecipeComponent.material_id,
                Product.id,
                Product.name,
                Recipe.id,
                Recipe.name,
            )
            .join(Recipe, RecipeComponent.recipe_id == Recipe.id)
            .join(Product, Recipe.product_id == Product.id)
            .where(
                RecipeComponent.tenant_id == tenant_id,
                Recipe.tenant_id == tenant_id,
                Recipe.is_active.is_(True),
                Recipe.lifecycle == Lifecycle.ACTIVE,
            )
            .order_by(Product.name)
        ).all()

        usage: dict[UUID, list[ProductUsage]] = defaultdict(list)
        for material_id, product_id, product_name, recipe_id, recipe_name in rows:
            usage[material_id].append(ProductUsage(
                product_id=product_id,
                product_name=product_name,
                recipe_id=recipe_id,
                recipe_name=recipe_name,
            ))
        return dict(usage)

    def active_recipes_using(self, material_id: UUID, tenant_id: UUID) -> list[ProductUsage]:
        return self.active_recipe_usage(tenant_id).get(material_id, [])

    def is_material_in_active_recipe(self, material_id: UUID, tenant_id: UUID) -> bool:
        count = self.db.execute(
            select(func.count(RecipeComponent.id))
            .join(Recipe, RecipeComponent.recipe_id == Recipe.id)
            .where(
                RecipeComponent.tenant_id == tenant_id,
                RecipeComponent.material_id == material_id,
                Recipe.is_active.is_(True),
                Recipe.lifecycle == Lifecycle.ACTIVE,
            )
        ).scalar_one()
        return count > 0

    # ============ Ledger ============

    def list_transactions(
        self,
        material_id: UUID,
        tenant_id: UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[InventoryTransaction]:
        query = select(InventoryTransaction).where(
            InventoryTransaction.tenant_id == tenant_id,
            InventoryTransaction.material_id == material_id,
        )
        if start is not None:
            query = query.where(InventoryTransaction.created_at >= start)
        if end is not None:
            query = query.where(InventoryTransaction.created_at <= end)
        query = query.order_by(InventoryTransaction.created_at.desc())
        if limit:
            query = query.limit(limit)
        return list(self.db.execute(query).scalars())

    def consumption_since(self, tenant_id: UUID, since: datetime) -> dict[UUID, Decimal]:
        """Total stock consumed (sum of negative changes, as a positive number) per material."""
        rows = self.db.execute(
            select(InventoryTransaction.material_id, func.sum(InventoryTransaction.quantity_change))
            .where(
                InventoryTransaction.tenant_id == tenant_id,
                InventoryTransaction.quantity_change < 0,
                InventoryTransaction.created_at >= since,
            )
            .group_by(InventoryTransaction.material_id)
        ).all()
        return {material_id: abs(to_decimal(total)) for material_id, total in rows}

    # ============ Alerts ============

    def get_alert(self, alert_id: UUID, tenant_id: UUID) -> StockAlert:
        alert = self.db.execute(
            select(StockAlert).where(StockAlert.id == alert_id, StockAlert.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if not alert:
            raise NotFoundError("StockAlert", alert_id)
        return alert

    def get_actionable_alert(self, material_id: UUID, tenant_id: UUID) -> Optional[StockAlert]:
        return self.db.execute(
            select(StockAlert)
            .where(
                StockAlert.tenant_id == tenant_id,
                StockAlert.material_id == material_id,
                StockAlert.status.in_(ACTIONABLE_ALERT_STATUSES),
            )
            .order_by(StockAlert.created_at.desc())
        ).scalars().first()

    def list_alerts(
        self,
        tenant_id: UUID,
        status: Optional[AlertStatus] = None,
        severity: Optional[AlertSeverity] = None,
        material_id: Optional[UUID] = None,
    ) -> list[StockAlert]:
        query = select(StockAlert).where(StockAlert.tenant_id == tenant_id)
        if status is not None:
            query = query.where(StockAlert.status == status)
        if severity is not None:
            query = query.where(StockAlert.severity == severity)
        if material_id is not None:
            query = query.where(StockAlert.material_id == material_id)
        return list(self.db.execute(query.order_by(StockAlert.created_at.desc())).scalars())

    # ============ Snapshots ============

    @staticmethod
    def material_snapshot(material: Material) -> MaterialSnapshot:
        return MaterialSnapshot(
            id=material.id,
            name=material.name,
            unit=_enum_value(material.unit),
            stock_quantity=to_decimal(material.stock_quantity),
            reorder_level=to_decimal(material.reorder_level),
            unit_cost=to_decimal(material.unit_cost),
            sku=material.sku,
            category=material.category,
            supplier=material.supplier,
        )

    @classmethod
    def recipe_snapshot(cls, recipe: Recipe) -> RecipeSnapshot:
        components = tuple(
            ComponentSnapshot(
                id=component.id,
                material=cls.material_snapshot(component.material),
                quantity_required=to_decimal(component.quantity_required),
                waste_percentage=to_decimal(component.waste_percentage),
            )
            for component in recipe.components
        )
        return RecipeSnapshot(
            id=recipe.id,
            product_id=recipe.product_id,
            name=recipe.name,
            yield_quantity=to_decimal(recipe.yield_quantity),
            yield_unit=_enum_value(recipe.yield_unit),
            components=components,
        )

    @staticmethod
    def product_snapshot(product: Product) -> ProductSnapshot:
        return ProductSnapshot(
            id=product.id,
            name=product.name,
            inventory_mode=product.inventory_mode,
        )

    def material_snapshots(self, tenant_id: UUID) -> list[MaterialSnapshot]:
        """Snapshots of every active material of the tenant."""
        return [self.material_snapshot(m) for m in self.list_materials(tenant_id)]


def _enum_value(value) -> str:
    return getattr(value, "value", value)
