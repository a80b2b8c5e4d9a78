"""
Inventory Calculation Service.

Single-product answers over the current stock snapshot: how many units can
be produced, which material limits production, and what a given quantity
needs and costs.

Mathematical Model:
available = min_i floor(stock_i / (qty_i × (1 + waste_i / 100)))

Shortages are returned as data. Only structural problems (unknown product,
product owned by another tenant, product not BOM-managed) raise.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from bomkit.core.config import Settings, get_settings
from bomkit.core.exceptions import ConfigurationError, ServiceError
from bomkit.db.repository import BomRepository
from bomkit.models.enums import StockStatus
from bomkit.services.bom import (
    ZERO, HUNDRED,
    BottleneckMaterial, ComponentAvailability, ComponentRequirement, ProductSnapshot,
    ProductUsage, RecipeSnapshot,
    classify_stock_status, component_requirement, explode_recipe, is_below_reorder_level,
    parse_uuid, require_positive_int, round_money, round_quantity,
)

logger = logging.getLogger(__name__)

NO_ACTIVE_RECIPE = "No active recipe found for this product"
EMPTY_RECIPE = "No materials defined in recipe"


@dataclass
class AvailabilityResult:
    """How many units of a product the current stock allows."""
    product_id: UUID
    product_name: str
    available_quantity: int
    can_produce: bool
    bottleneck_material: Optional[BottleneckMaterial]
    component_details: list[ComponentAvailability] = field(default_factory=list)
    recipe_id: Optional[UUID] = None
    recipe_name: Optional[str] = None
    yield_quantity: Optional[Decimal] = None
    yield_unit: Optional[str] = None
    message: Optional[str] = None


@dataclass
class FeasibilityResult:
    product_id: UUID
    product_name: str
    requested_quantity: int
    available_quantity: int
    shortage: int
    is_feasible: bool
    bottleneck_material: Optional[BottleneckMaterial] = None
    message: Optional[str] = None


@dataclass
class MaterialRequirements:
    """Materials (and their cost) needed for `quantity` units of a product."""
    product_id: UUID
    product_name: str
    recipe_id: UUID
    recipe_name: str
    quantity: int
    requirements: list[ComponentRequirement]
    total_cost: Decimal
    cost_per_unit: Decimal

    @property
    def all_sufficient(self) -> bool:
        return all(r.sufficient for r in self.requirements)


@dataclass
class MaterialCostShare:
    material_id: UUID
    material_name: str
    total_cost: Decimal
    percentage: Decimal  # share of the production cost, 0-100


@dataclass
class ProductionCostEstimate:
    product_id: UUID
    product_name: str
    quantity: int
    total_cost: Decimal
    cost_per_unit: Decimal
    cost_per_yield_unit: Decimal
    yield_quantity: Decimal
    yield_unit: str
    material_costs: list[MaterialCostShare]


@dataclass
class BulkAvailabilityEntry:
    """One product of a bulk availability call; either a result or an error."""
    product_id: object  # the id as given when it is not a UUID
    result: Optional[AvailabilityResult] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class LowStockMaterial:
    material_id: UUID
    material_name: str
    sku: Optional[str]
    unit: str
    current_stock: Decimal
    reorder_level: Decimal
    stock_status: StockStatus
    priority: str  # "high" | "medium"
    affected_products: list[ProductUsage]


class InventoryCalculationService:
    """
    Availability, feasibility and requirement calculations for one product.

    Usage:
        service = InventoryCalculationService(db)
        result = service.calculate_available_quantity(product_id, tenant_id)
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.repo = BomRepository(db)
        self.settings = settings or get_settings()

    # ============ Loading ============

    def load_bom_product(self, product_id: UUID, tenant_id: UUID) -> ProductSnapshot:
        """Fetch the product, requiring recipe-based inventory."""
        product = self.repo.product_snapshot(self.repo.get_product(product_id, tenant_id))
        if not product.is_bom_managed:
            raise ConfigurationError(
                f"Product '{product.name}' does not use recipe-based inventory",
                {"product_id": str(product_id), "inventory_mode": product.inventory_mode.value},
            )
        return product

    def load_active_recipe(self, product_id: UUID, tenant_id: UUID) -> Optional[RecipeSnapshot]:
        recipe = self.repo.get_active_recipe(product_id, tenant_id)
        return self.repo.recipe_snapshot(recipe) if recipe else None

    def load_required_recipe(self, product: ProductSnapshot, tenant_id: UUID) -> RecipeSnapshot:
        recipe = self.load_active_recipe(product.id, tenant_id)
        if not recipe:
            raise ConfigurationError(NO_ACTIVE_RECIPE, {"product_id": str(product.id)})
        return recipe

    # ============ Availability ============

    def calculate_available_quantity(self, product_id: UUID, tenant_id: UUID) -> AvailabilityResult:
        """
        Maximum producible quantity and bottleneck material.

        A product without an active recipe, or with an empty one, is a valid
        zero-capacity state and is reported through `message`.
        """
        product = self.load_bom_product(product_id, tenant_id)
        recipe = self.load_active_recipe(product_id, tenant_id)

        if not recipe:
            return AvailabilityResult(
                product_id=product.id,
                product_name=product.name,
                available_quantity=0,
                can_produce=False,
                bottleneck_material=None,
                message=NO_ACTIVE_RECIPE,
            )

        explosion = explode_recipe(recipe)
        return AvailabilityResult(
            product_id=product.id,
            product_name=product.name,
            available_quantity=explosion.max_quantity,
            can_produce=explosion.can_produce,
            bottleneck_material=explosion.bottleneck,
            component_details=explosion.components,
            recipe_id=recipe.id,
            recipe_name=recipe.name,
            yield_quantity=recipe.yield_quantity,
            yield_unit=recipe.yield_unit,
            message=None if recipe.components else EMPTY_RECIPE,
        )

    def check_production_feasibility(
        self,
        product_id: UUID,
        tenant_id: UUID,
        requested_quantity: int,
    ) -> FeasibilityResult:
        require_positive_int(requested_quantity, "requested_quantity")
        availability = self.calculate_available_quantity(product_id, tenant_id)
        shortage = max(0, requested_quantity - availability.available_quantity)

        return FeasibilityResult(
            product_id=availability.product_id,
            product_name=availability.product_name,
            requested_quantity=requested_quantity,
            available_quantity=availability.available_quantity,
            shortage=shortage,
            is_feasible=shortage == 0,
            bottleneck_material=availability.bottleneck_material,
            message=availability.message,
        )

    # ============ Requirements & cost ============

    def get_material_requirements(
        self,
        product_id: UUID,
        tenant_id: UUID,
        quantity: int,
    ) -> MaterialRequirements:
        """
        Expand the active recipe to `quantity` units.

        Raises:
            ValidationError: quantity is not a positive integer
            ConfigurationError: product not BOM-managed or without active recipe
        """
        require_positive_int(quantity, "quantity")
        product = self.load_bom_product(product_id, tenant_id)
        recipe = self.load_required_recipe(product, tenant_id)

        requirements = [component_requirement(c, quantity) for c in recipe.components]
        total_cost = sum((r.total_cost for r in requirements), ZERO)

        return MaterialRequirements(
            product_id=product.id,
            product_name=product.name,
            recipe_id=recipe.id,
            recipe_name=recipe.name,
            quantity=quantity,
            requirements=requirements,
            total_cost=round_money(total_cost),
            cost_per_unit=round_money(total_cost / quantity),
        )

    def estimate_production_cost(
        self,
        product_id: UUID,
        tenant_id: UUID,
        quantity: int = 1,
    ) -> ProductionCostEstimate:
        requirements = self.get_material_requirements(product_id, tenant_id, quantity)
        recipe = self.load_active_recipe(product_id, tenant_id)
        total = requirements.total_cost

        shares = [
            MaterialCostShare(
                material_id=r.material_id,
                material_name=r.material_name,
                total_cost=r.total_cost,
                percentage=round_money(r.total_cost / total * HUNDRED) if total > 0 else ZERO,
            )
            for r in requirements.requirements
        ]
        shares.sort(key=lambda s: s.total_cost, reverse=True)

        produced_units = recipe.yield_quantity * quantity
        return ProductionCostEstimate(
            product_id=requirements.product_id,
            product_name=requirements.product_name,
            quantity=quantity,
            total_cost=total,
            cost_per_unit=requirements.cost_per_unit,
            cost_per_yield_unit=round_money(total / produced_units),
            yield_quantity=recipe.yield_quantity,
            yield_unit=recipe.yield_unit,
            material_costs=shares,
        )

    # ============ Multi-product reads ============

    def bulk_calculate_availability(
        self,
        product_ids: Iterable[UUID],
        tenant_id: UUID,
    ) -> list[BulkAvailabilityEntry]:
        """
        Availability per product, each computed independently.

        Materials shared between the products are counted in full for every
        product; contention is handled by the multi-product batch planner.
        """
        entries = []
        for product_id in dict.fromkeys(product_ids):
            try:
                product_id = parse_uuid(product_id, "product_id")
                result = self.calculate_available_quantity(product_id, tenant_id)
                entries.append(BulkAvailabilityEntry(product_id=product_id, result=result))
            except ServiceError as e:
                logger.warning(f"Availability failed for product {product_id}: {e.message}")
                entries.append(BulkAvailabilityEntry(product_id=product_id, error=e.message, error_code=e.code))
        return entries

    def get_low_stock_materials_in_active_recipes(self, tenant_id: UUID) -> list[LowStockMaterial]:
        """Materials below their reorder level that an active recipe depends on."""
        ratio = Decimal(str(self.settings.CRITICAL_STOCK_RATIO))
        usage = self.repo.active_recipe_usage(tenant_id)

        results = []
        for material in self.repo.material_snapshots(tenant_id):
            if material.id not in usage or not is_below_reorder_level(material):
                continue
            status = classify_stock_status(material.stock_quantity, material.reorder_level, ratio)
            results.append(LowStockMaterial(
                material_id=material.id,
                material_name=material.name,
                sku=material.sku,
                unit=material.unit,
                current_stock=round_quantity(material.stock_quantity),
                reorder_level=material.reorder_level,
                stock_status=status,
                priority="high" if status in (StockStatus.CRITICAL, StockStatus.OUT_OF_STOCK) else "medium",
                affected_products=usage[material.id],
            ))

        results.sort(key=lambda m: (m.priority != "high", m.current_stock, m.material_name))
        return results

