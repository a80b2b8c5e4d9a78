"""
Recipe management.

Enforces at most one active recipe per (tenant, product): activation locks
every recipe of the product and flips the siblings off in the same
transaction.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from bomkit.core.exceptions import InvalidStateTransition, NotFoundError, ValidationError
from bomkit.db.base import utcnow
from bomkit.db.repository import BomRepository
from bomkit.models import Recipe, RecipeComponent
from bomkit.models.enums import Lifecycle, YieldUnit
from bomkit.services.bom import (
    ZERO, HUNDRED,
    effective_quantity, parse_decimal, round_money, to_decimal, waste_amount,
)

logger = logging.getLogger(__name__)

COMPONENT_QUANTITY_SCALE = Decimal("0.0001")
UPDATABLE_FIELDS = {"name", "description", "yield_quantity", "yield_unit"}


@dataclass
class ComponentCost:
    component_id: UUID
    material_id: UUID
    material_name: str
    unit: str
    quantity_required: Decimal
    waste_percentage: Decimal
    waste_amount: Decimal
    effective_quantity: Decimal
    unit_cost: Decimal
    total_cost: Decimal


@dataclass
class RecipeCost:
    recipe_id: UUID
    recipe_name: str
    yield_quantity: Decimal
    yield_unit: str
    components: list[ComponentCost]
    total_cost: Decimal
    cost_per_yield_unit: Decimal


def validate_component_values(quantity_required, waste_percentage) -> tuple[Decimal, Decimal]:
    # stored as Numeric(10, 4)
    quantity = parse_decimal(quantity_required, "quantity_required").quantize(
        COMPONENT_QUANTITY_SCALE, rounding=ROUND_HALF_UP,
    )
    if quantity <= 0:
        raise ValidationError("quantity_required must be greater than zero", field="quantity_required")
    waste = parse_decimal(waste_percentage, "waste_percentage")
    if waste < 0 or waste >= HUNDRED:
        raise ValidationError("waste_percentage must be in [0, 100)", field="waste_percentage")
    return quantity, waste


def _yield_quantity(value) -> Decimal:
    quantity = parse_decimal(value, "yield_quantity")
    if quantity <= 0:
        raise ValidationError("yield_quantity must be greater than zero", field="yield_quantity")
    return quantity


def _yield_unit(value) -> YieldUnit:
    try:
        return YieldUnit(value)
    except ValueError:
        allowed = ", ".join(u.value for u in YieldUnit)
        raise ValidationError(f"Invalid yield_unit '{value}'. Allowed: {allowed}", field="yield_unit")


class RecipeService:
    """Recipes and their components for one tenant."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BomRepository(db)

    # ============ Recipes ============

    def create(
        self,
        tenant_id: UUID,
        product_id: UUID,
        name: str,
        yield_quantity=1,
        yield_unit: str = YieldUnit.PCS.value,
        description: Optional[str] = None,
        components: Optional[list[dict]] = None,
        activate: bool = False,
    ) -> Recipe:
        """
        Create a recipe, optionally with its components.

        Each component dict needs `material_id` and `quantity_required` and
        may carry `waste_percentage` and `notes`.
        """
        self.repo.get_product(product_id, tenant_id)
        if not (name or "").strip():
            raise ValidationError("name is required", field="name")

        recipe = Recipe(
            tenant_id=tenant_id,
            product_id=product_id,
            name=name.strip(),
            description=description,
            yield_quantity=_yield_quantity(yield_quantity),
            yield_unit=_yield_unit(yield_unit),
            is_active=False,
            lifecycle=Lifecycle.ACTIVE,
        )
        try:
            self.db.add(recipe)
            self.db.flush()
            seen = set()
            for item in components or []:
                material_id = item.get("material_id")
                if material_id in seen:
                    raise ValidationError(
                        "A material can appear only once per recipe",
                        field="material_id",
                        details={"material_id": str(material_id)},
                    )
                seen.add(material_id)
                self._stage_component(
                    recipe,
                    material_id,
                    item.get("quantity_required"),
                    item.get("waste_percentage", 0),
                    item.get("notes"),
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Created recipe {recipe.id} '{recipe.name}' for product {product_id}")
        if activate:
            return self.activate(recipe.id, tenant_id)
        return self.repo.get_recipe(recipe.id, tenant_id)

    def get(self, recipe_id: UUID, tenant_id: UUID) -> Recipe:
        return self.repo.get_recipe(recipe_id, tenant_id)

    def list_for_product(self, product_id: UUID, tenant_id: UUID, include_archived: bool = False) -> list[Recipe]:
        self.repo.get_product(product_id, tenant_id)
        return self.repo.list_recipes(product_id, tenant_id, include_archived=include_archived)

    def get_active_for_product(self, product_id: UUID, tenant_id: UUID) -> Optional[Recipe]:
        self.repo.get_product(product_id, tenant_id)
        return self.repo.get_active_recipe(product_id, tenant_id)

    def update(self, recipe_id: UUID, tenant_id: UUID, **changes) -> Recipe:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        recipe = self.repo.get_recipe(recipe_id, tenant_id)
        for key, value in changes.items():
            if key == "name":
                if not (value or "").strip():
                    raise ValidationError("name is required", field="name")
                value = value.strip()
            elif key == "yield_quantity":
                value = _yield_quantity(value)
            elif key == "yield_unit":
                value = _yield_unit(value)
            setattr(recipe, key, value)

        self.db.commit()
        return self.repo.get_recipe(recipe_id, tenant_id)

    # ============ Activation & lifecycle ============

    def activate(self, recipe_id: UUID, tenant_id: UUID) -> Recipe:
        """Make this the product's only active recipe."""
        recipe = self.repo.get_recipe(recipe_id, tenant_id)
        if recipe.lifecycle == Lifecycle.ARCHIVED:
            raise InvalidStateTransition("recipe", Lifecycle.ARCHIVED.value, "active")

        archived = [c.material.name for c in recipe.components if c.material.lifecycle == Lifecycle.ARCHIVED]
        if archived:
            raise ValidationError(
                "Recipe uses archived materials and cannot be activated",
                details={"materials": archived},
            )

        try:
            siblings = self.repo.list_recipes(recipe.product_id, tenant_id, include_archived=True, for_update=True)
            deactivated = 0
            for sibling in siblings:
                if sibling.id != recipe.id and sibling.is_active:
                    sibling.is_active = False
                    deactivated += 1
            # siblings must be off before the partial unique index sees the new active row
            self.db.flush()
            recipe.is_active = True
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Activated recipe {recipe_id} for product {recipe.product_id} "
            f"(tenant {tenant_id}), {deactivated} sibling(s) deactivated"
        )
        return self.repo.get_recipe(recipe_id, tenant_id)

    def deactivate(self, recipe_id: UUID, tenant_id: UUID) -> Recipe:
        recipe = self.repo.get_recipe(recipe_id, tenant_id)
        if recipe.is_active:
            recipe.is_active = False
            self.db.commit()
        return self.repo.get_recipe(recipe_id, tenant_id)

    def archive(self, recipe_id: UUID, tenant_id: UUID) -> Recipe:
        recipe = self.repo.get_recipe(recipe_id, tenant_id)
        if recipe.lifecycle == Lifecycle.ARCHIVED:
            return recipe
        if recipe.is_active:
            raise InvalidStateTransition("recipe", "active", Lifecycle.ARCHIVED.value)

        recipe.lifecycle = Lifecycle.ARCHIVED
        recipe.archived_at = utcnow()
        self.db.commit()
        return self.repo.get_recipe(recipe_id, tenant_id)

    def restore(self, recipe_id: UUID, tenant_id: UUID) -> Recipe:
        """Bring an archived recipe back, inactive."""
        recipe = self.repo.get_recipe(recipe_id, tenant_id)
        if recipe.lifecycle == Lifecycle.ACTIVE:
            return recipe

        recipe.lifecycle = Lifecycle.ACTIVE
        recipe.archived_at = None
        self.db.commit()
        return self.repo.get_recipe(recipe_id, tenant_id)

    # ============ Components ============

    def add_component(
        self,
        recipe_id: UUID,
        tenant_id: UUID,
        material_id: UUID,
        quantity_required,
        waste_percentage=0,
        notes: Optional[str] = None,
    ) -> RecipeComponent:
        recipe = self.repo.get_recipe(recipe_id, tenant_id)
        try:
            component = self._stage_component(recipe, material_id, quantity_required, waste_percentage, notes)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(component)
        return component

    def update_component(
        self,
        component_id: UUID,
        tenant_id: UUID,
        quantity_required=None,
        waste_percentage=None,
        notes: Optional[str] = None,
    ) -> RecipeComponent:
        component = self.repo.get_component(component_id, tenant_id)
        quantity, waste = validate_component_values(
            component.quantity_required if quantity_required is None else quantity_required,
            component.waste_percentage if waste_percentage is None else waste_percentage,
        )
        component.quantity_required = quantity
        component.waste_percentage = waste
        if notes is not None:
            component.notes = notes
        self.db.commit()
        self.db.refresh(component)
        return component

    def remove_component(self, component_id: UUID, tenant_id: UUID) -> None:
        component = self.repo.get_component(component_id, tenant_id)
        self.db.delete(component)
        self.db.commit()

    def cost_breakdown(self, recipe_id: UUID, tenant_id: UUID) -> RecipeCost:
        """Cost of one run of the recipe, and per unit of its yield."""
        recipe = self.repo.get_recipe(recipe_id, tenant_id)
        lines = []
        for component in recipe.components:
            quantity = to_decimal(component.quantity_required)
            waste = to_decimal(component.waste_percentage)
            effective = effective_quantity(quantity, waste)
            unit_cost = to_decimal(component.material.unit_cost)
            lines.append(ComponentCost(
                component_id=component.id,
                material_id=component.material_id,
                material_name=component.material.name,
                unit=getattr(component.material.unit, "value", component.material.unit),
                quantity_required=quantity,
                waste_percentage=waste,
                waste_amount=waste_amount(quantity, waste),
                effective_quantity=effective,
                unit_cost=unit_cost,
                total_cost=round_money(effective * unit_cost),
            ))

        total = sum((line.total_cost for line in lines), ZERO)
        yield_quantity = to_decimal(recipe.yield_quantity)
        return RecipeCost(
            recipe_id=recipe.id,
            recipe_name=recipe.name,
            yield_quantity=yield_quantity,
            yield_unit=getattr(recipe.yield_unit, "value", recipe.yield_unit),
            components=lines,
            total_cost=round_money(total),
            cost_per_yield_unit=round_money(total / yield_quantity),
        )

    def _stage_component(self, recipe: Recipe, material_id, quantity_required, waste_percentage, notes) -> RecipeComponent:
        quantity, waste = validate_component_values(quantity_required, waste_percentage)
        try:
            material = self.repo.get_material(material_id, recipe.tenant_id)
        except NotFoundError:
            raise ValidationError(
                "Material does not exist in this tenant",
                field="material_id",
                details={"material_id": str(material_id)},
            )
        if material.lifecycle == Lifecycle.ARCHIVED:
            raise ValidationError(f"Material '{material.name}' is archived", field="material_id")
        if self.repo.find_component(recipe.id, material.id, recipe.tenant_id):
            raise ValidationError(
                f"Material '{material.name}' is already part of this recipe",
                field="material_id",
            )

        component = RecipeComponent(
            tenant_id=recipe.tenant_id,
            recipe_id=recipe.id,
            material_id=material.id,
            quantity_required=quantity,
            waste_percentage=waste,
            position=self.repo.next_component_position(recipe.id),
            notes=notes,
        )
        self.db.add(component)
        self.db.flush()
        return component
