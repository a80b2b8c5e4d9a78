"""
Batch Production Service.

Planning on top of the single-product bottleneck computation: batch
requirements, batch sizing, multi-product plans that compete for shared
materials, and non-persisting production previews.

Multi-product aggregation:
required_m = Σ_p (quantity_p × effective_qty_pm)
feasible   = ∀m: required_m ≤ stock_m  (and every product expanded cleanly)

When a shared material cannot cover every product the plan is reported as
infeasible; no product is preferred over another.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Mapping, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from bomkit.core.config import Settings, get_settings
from bomkit.core.exceptions import ServiceError, ValidationError
from bomkit.models.enums import StockStatus
from bomkit.services.bom import (
    ZERO, HUNDRED,
    BottleneckMaterial, ComponentRequirement,
    classify_stock_status, parse_uuid, require_positive_int, round_money, round_quantity,
)
from bomkit.services.inventory_calculation import InventoryCalculationService, MaterialRequirements

logger = logging.getLogger(__name__)

LIMITED_CAPACITY_THRESHOLD = 10


@dataclass
class MaterialShortage:
    material_id: UUID
    material_name: str
    unit: str
    required: Decimal
    available: Decimal
    shortage: Decimal


@dataclass
class BatchRequirements:
    product_id: UUID
    product_name: str
    recipe_id: UUID
    recipe_name: str
    quantity: int
    requirements: list[ComponentRequirement]
    shortages: list[MaterialShortage]
    can_produce: bool
    total_cost: Decimal
    cost_per_unit: Decimal


@dataclass
class SuggestedBatch:
    batch_size: int
    total_cost: Decimal
    cost_per_unit: Decimal
    utilization_percentage: Decimal  # batch_size / maximum_producible


@dataclass
class BatchPlan:
    product_id: UUID
    product_name: str
    maximum_producible: int
    bottleneck_material: Optional[BottleneckMaterial]
    suggested_batches: list[SuggestedBatch]
    recommendation: str


@dataclass
class ProductPlanEntry:
    product_id: UUID
    product_name: str
    recipe_name: str
    quantity: int
    total_cost: Decimal
    cost_per_unit: Decimal
    can_produce_individually: bool


@dataclass
class ProductPlanError:
    product_id: object  # the key as given when it is not a UUID
    quantity: object
    error: str
    error_code: str


@dataclass
class AggregatedRequirement:
    """One shared material summed over every product of a plan."""
    material_id: UUID
    material_name: str
    unit: str
    total_required: Decimal
    current_stock: Decimal
    sufficient: bool
    shortage: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    used_by: list[UUID] = field(default_factory=list)


@dataclass
class MultiProductPlan:
    total_products: int
    products: list[ProductPlanEntry]
    errors: list[ProductPlanError]
    aggregated_material_requirements: dict[UUID, AggregatedRequirement]
    material_shortages: list[MaterialShortage]
    feasible: bool
    total_production_cost: Decimal


@dataclass
class MaterialChange:
    material_id: UUID
    material_name: str
    unit: str
    stock_before: Decimal
    consumed: Decimal
    stock_after: Decimal
    status_after: StockStatus
    sufficient: bool


@dataclass
class SimulationResult:
    """Would-be effect of a production run. Nothing is written."""
    product_id: UUID
    product_name: str
    quantity: int
    material_changes: list[MaterialChange]
    production_cost: Decimal
    success: bool
    shortages: list[MaterialShortage]


@dataclass
class DailyCapacity:
    day: int
    date: date
    projected_capacity: int


@dataclass
class CapacityForecast:
    product_id: UUID
    product_name: str
    current_capacity: int
    avg_daily_usage: int
    days_until_depletion: Optional[int]
    forecast: list[DailyCapacity]


class BatchProductionService:
    """
    Production planning for one or many products.

    Usage:
        service = BatchProductionService(db)
        plan = service.calculate_multi_product_batch({pizza_id: 10, calzone_id: 5}, tenant_id)
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.inventory = InventoryCalculationService(db, self.settings)

    def calculate_batch_requirements(
        self,
        product_id: UUID,
        tenant_id: UUID,
        quantity: int,
    ) -> BatchRequirements:
        requirements = self.inventory.get_material_requirements(product_id, tenant_id, quantity)
        shortages = _shortages(requirements.requirements)

        return BatchRequirements(
            product_id=requirements.product_id,
            product_name=requirements.product_name,
            recipe_id=requirements.recipe_id,
            recipe_name=requirements.recipe_name,
            quantity=quantity,
            requirements=requirements.requirements,
            shortages=shortages,
            can_produce=not shortages,
            total_cost=requirements.total_cost,
            cost_per_unit=requirements.cost_per_unit,
        )

    def calculate_optimal_batch_size(self, product_id: UUID, tenant_id: UUID) -> BatchPlan:
        """
        Maximum producible quantity plus standard batch sizes that fit in it.

        Among equally cheap batch sizes the largest one is recommended.
        """
        availability = self.inventory.calculate_available_quantity(product_id, tenant_id)
        maximum = availability.available_quantity

        suggested = []
        for batch_size in sorted(self.settings.SUGGESTED_BATCH_SIZES):
            if batch_size > maximum:
                break
            cost = self.inventory.get_material_requirements(product_id, tenant_id, batch_size)
            suggested.append(SuggestedBatch(
                batch_size=batch_size,
                total_cost=cost.total_cost,
                cost_per_unit=cost.cost_per_unit,
                utilization_percentage=round_money(Decimal(batch_size) / Decimal(maximum) * HUNDRED),
            ))

        if availability.message and maximum == 0:
            recommendation = availability.message
        elif maximum == 0:
            recommendation = "Cannot produce. Material shortages detected."
        elif maximum < LIMITED_CAPACITY_THRESHOLD:
            recommendation = "Very limited production capacity. Recommend restocking materials before production."
        elif suggested:
            best = min(suggested, key=lambda b: (b.cost_per_unit, -b.batch_size))
            recommendation = f"Recommended batch size: {best.batch_size} units for optimal cost efficiency."
        else:
            recommendation = f"Maximum capacity: {maximum} units. Plan batch size accordingly."

        return BatchPlan(
            product_id=availability.product_id,
            product_name=availability.product_name,
            maximum_producible=maximum,
            bottleneck_material=availability.bottleneck_material,
            suggested_batches=suggested,
            recommendation=recommendation,
        )

    def calculate_multi_product_batch(
        self,
        production_plan: Mapping[UUID, int],
        tenant_id: UUID,
    ) -> MultiProductPlan:
        """
        Aggregate material needs of several products produced together.

        A product that cannot be expanded (unknown, other tenant, not
        BOM-managed, no active recipe, bad quantity) becomes an entry in
        `errors` and makes the plan infeasible; the other products are still
        planned.
        """
        if not production_plan:
            raise ValidationError("Production plan must contain at least one product", field="production_plan")

        products: list[ProductPlanEntry] = []
        errors: list[ProductPlanError] = []
        aggregated: dict[UUID, AggregatedRequirement] = {}

        for product_id, quantity in production_plan.items():
            try:
                product_id = parse_uuid(product_id, "product_id")
                expanded = self.inventory.get_material_requirements(product_id, tenant_id, quantity)
            except ServiceError as e:
                logger.warning(f"Skipping product {product_id} in multi-product plan: {e.message}")
                errors.append(ProductPlanError(
                    product_id=product_id, quantity=quantity, error=e.message, error_code=e.code,
                ))
                continue

            products.append(_plan_entry(expanded))
            for req in expanded.requirements:
                agg = aggregated.get(req.material_id)
                if agg is None:
                    agg = aggregated[req.material_id] = AggregatedRequirement(
                        material_id=req.material_id,
                        material_name=req.material_name,
                        unit=req.unit,
                        total_required=ZERO,
                        current_stock=req.current_stock,
                        sufficient=True,
                        shortage=ZERO,
                        unit_cost=req.unit_cost,
                        total_cost=ZERO,
                    )
                agg.total_required += req.total_required
                agg.total_cost += req.total_cost
                agg.used_by.append(product_id)

        shortages = []
        for agg in aggregated.values():
            agg.total_required = round_quantity(agg.total_required)
            agg.total_cost = round_money(agg.total_cost)
            agg.sufficient = agg.total_required <= agg.current_stock
            agg.shortage = max(ZERO, agg.total_required - agg.current_stock)
            if not agg.sufficient:
                shortages.append(MaterialShortage(
                    material_id=agg.material_id,
                    material_name=agg.material_name,
                    unit=agg.unit,
                    required=agg.total_required,
                    available=agg.current_stock,
                    shortage=agg.shortage,
                ))

        return MultiProductPlan(
            total_products=len(production_plan),
            products=products,
            errors=errors,
            aggregated_material_requirements=aggregated,
            material_shortages=shortages,
            feasible=not errors and not shortages,
            total_production_cost=round_money(sum((p.total_cost for p in products), ZERO)),
        )

    def simulate_production(self, product_id: UUID, tenant_id: UUID, quantity: int) -> SimulationResult:
        """Preview stock levels after producing `quantity` units, without persisting."""
        requirements = self.inventory.get_material_requirements(product_id, tenant_id, quantity)
        ratio = Decimal(str(self.settings.CRITICAL_STOCK_RATIO))

        changes = []
        for req in requirements.requirements:
            after = req.current_stock - req.total_required
            changes.append(MaterialChange(
                material_id=req.material_id,
                material_name=req.material_name,
                unit=req.unit,
                stock_before=req.current_stock,
                consumed=req.total_required,
                stock_after=round_quantity(after),
                status_after=classify_stock_status(max(ZERO, after), req.reorder_level, ratio),
                sufficient=req.sufficient,
            ))

        shortages = _shortages(requirements.requirements)
        return SimulationResult(
            product_id=requirements.product_id,
            product_name=requirements.product_name,
            quantity=quantity,
            material_changes=changes,
            production_cost=requirements.total_cost,
            success=not shortages,
            shortages=shortages,
        )

    def get_production_capacity_forecast(
        self,
        product_id: UUID,
        tenant_id: UUID,
        days: int = 7,
        avg_daily_usage: int = 0,
    ) -> CapacityForecast:
        """
        Project producible capacity forward assuming `avg_daily_usage` units
        are produced each day and nothing is restocked.
        """
        require_positive_int(days, "days")
        if days > 365:
            raise ValidationError("days must be at most 365", field="days")
        if isinstance(avg_daily_usage, bool) or not isinstance(avg_daily_usage, int) or avg_daily_usage < 0:
            raise ValidationError("avg_daily_usage must be a non-negative integer", field="avg_daily_usage")

        availability = self.inventory.calculate_available_quantity(product_id, tenant_id)
        current = availability.available_quantity
        today = date.today()

        forecast = [
            DailyCapacity(
                day=day,
                date=today + timedelta(days=day),
                projected_capacity=max(0, current - avg_daily_usage * day),
            )
            for day in range(1, days + 1)
        ]

        return CapacityForecast(
            product_id=availability.product_id,
            product_name=availability.product_name,
            current_capacity=current,
            avg_daily_usage=avg_daily_usage,
            days_until_depletion=math.ceil(current / avg_daily_usage) if avg_daily_usage > 0 else None,
            forecast=forecast,
        )


def _shortages(requirements: list[ComponentRequirement]) -> list[MaterialShortage]:
    return [
        MaterialShortage(
            material_id=r.material_id,
            material_name=r.material_name,
            unit=r.unit,
            required=r.total_required,
            available=r.current_stock,
            shortage=r.shortage,
        )
        for r in requirements
        if not r.sufficient
    ]


def _plan_entry(expanded: MaterialRequirements) -> ProductPlanEntry:
    return ProductPlanEntry(
        product_id=expanded.product_id,
        product_name=expanded.product_name,
        recipe_name=expanded.recipe_name,
        quantity=expanded.quantity,
        total_cost=expanded.total_cost,
        cost_per_unit=expanded.cost_per_unit,
        can_produce_individually=expanded.all_sufficient,
    )
