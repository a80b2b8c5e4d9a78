"""
Pure BOM arithmetic over immutable snapshots.

The calculation services never read ORM attributes directly: the repository
copies the rows they need into the frozen dataclasses below once, and every
derived figure (effective quantity, bottleneck, stock status) is computed by
the plain functions in this module.

Mathematical model:
    effective_i   = quantity_required_i * (1 + waste_percentage_i / 100)
    units_i       = floor(stock_i / effective_i)
    available     = min_i(units_i)
    bottleneck    = argmin_i(units_i)  (first component reaching the minimum)
"""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional
from uuid import UUID

from bomkit.core.exceptions import ValidationError
from bomkit.models.enums import AlertSeverity, InventoryMode, StockStatus


ZERO = Decimal("0")
HUNDRED = Decimal("100")
DEFAULT_CRITICAL_RATIO = Decimal("0.5")


# ============ Snapshots ============

@dataclass(frozen=True)
class MaterialSnapshot:
    """Point-in-time copy of a material row."""
    id: UUID
    name: str
    unit: str
    stock_quantity: Decimal
    reorder_level: Decimal
    unit_cost: Decimal
    sku: Optional[str] = None
    category: Optional[str] = None
    supplier: Optional[str] = None


@dataclass(frozen=True)
class ComponentSnapshot:
    """A recipe line with its material."""
    id: UUID
    material: MaterialSnapshot
    quantity_required: Decimal
    waste_percentage: Decimal

    @property
    def effective_quantity(self) -> Decimal:
        return effective_quantity(self.quantity_required, self.waste_percentage)


@dataclass(frozen=True)
class RecipeSnapshot:
    id: UUID
    product_id: UUID
    name: str
    yield_quantity: Decimal
    yield_unit: str
    components: tuple[ComponentSnapshot, ...] = ()


@dataclass(frozen=True)
class ProductUsage:
    """A product whose active recipe consumes a given material."""
    product_id: UUID
    product_name: str
    recipe_id: UUID
    recipe_name: str


@dataclass(frozen=True)
class ProductSnapshot:
    id: UUID
    name: str
    inventory_mode: InventoryMode

    @property
    def is_bom_managed(self) -> bool:
        return self.inventory_mode == InventoryMode.BOM


# ============ Results ============

@dataclass
class ComponentAvailability:
    """How many units one component's stock allows."""
    material_id: UUID
    material_name: str
    material_unit: str
    required_quantity: Decimal
    waste_percentage: Decimal
    effective_quantity: Decimal
    available_stock: Decimal
    sufficient: bool
    max_producible: int


@dataclass
class BottleneckMaterial:
    material_id: UUID
    material_name: str
    required_per_unit: Decimal
    available_stock: Decimal
    max_units: int


@dataclass
class ExplosionResult:
    """Outcome of the bottleneck computation for one recipe."""
    max_quantity: int
    bottleneck: Optional[BottleneckMaterial]
    components: list[ComponentAvailability] = field(default_factory=list)

    @property
    def can_produce(self) -> bool:
        return self.max_quantity > 0


@dataclass
class ComponentRequirement:
    """Material needed to produce a given quantity of a product."""
    material_id: UUID
    material_name: str
    unit: str
    sku: Optional[str]
    quantity_per_unit: Decimal
    waste_percentage: Decimal
    effective_quantity_per_unit: Decimal
    total_required: Decimal
    current_stock: Decimal
    reorder_level: Decimal
    remaining_after_production: Decimal
    sufficient: bool
    shortage: Decimal
    unit_cost: Decimal
    total_cost: Decimal


# ============ Rounding ============

def to_decimal(value: Any) -> Decimal:
    """Normalise a numeric column value (Decimal, int, float or None)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse user input into a Decimal, raising ValidationError on garbage."""
    try:
        result = to_decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field_name} must be a number", field=field_name)
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite number", field=field_name)
    return result


def parse_uuid(value: Any, field_name: str) -> UUID:
    """Accept a UUID or its string form."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(f"{field_name} must be a valid UUID", field=field_name)


def round_quantity(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)


def round_money(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ============ Component math ============

def effective_quantity(quantity_required: Decimal, waste_percentage: Decimal) -> Decimal:
    """Quantity inflated by the expected waste percentage."""
    return quantity_required * (1 + waste_percentage / HUNDRED)


def waste_amount(quantity_required: Decimal, waste_percentage: Decimal) -> Decimal:
    return quantity_required * waste_percentage / HUNDRED


def component_unit_cost(component: ComponentSnapshot) -> Decimal:
    """Cost of one product unit's worth of this component."""
    return component.effective_quantity * component.material.unit_cost


def units_from_stock(stock: Decimal, effective: Decimal) -> int:
    """Whole product units a stock level can cover."""
    if effective <= 0:
        raise ValueError("effective quantity must be positive")
    if stock <= 0:
        return 0
    return int(stock // effective)


def explode_recipe(recipe: RecipeSnapshot) -> ExplosionResult:
    """
    Find the maximum producible quantity and the bottleneck material.

    Components with a non-positive effective quantity do not constrain
    production and are skipped. A recipe with no constraining component
    yields zero.
    """
    max_quantity: Optional[int] = None
    bottleneck: Optional[BottleneckMaterial] = None
    details: list[ComponentAvailability] = []

    for component in recipe.components:
        effective = component.effective_quantity
        if effective <= 0:
            continue

        material = component.material
        units = units_from_stock(material.stock_quantity, effective)

        details.append(ComponentAvailability(
            material_id=material.id,
            material_name=material.name,
            material_unit=material.unit,
            required_quantity=component.quantity_required,
            waste_percentage=component.waste_percentage,
            effective_quantity=effective,
            available_stock=material.stock_quantity,
            sufficient=material.stock_quantity >= effective,
            max_producible=units,
        ))

        if max_quantity is None or units < max_quantity:
            max_quantity = units
            bottleneck = BottleneckMaterial(
                material_id=material.id,
                material_name=material.name,
                required_per_unit=effective,
                available_stock=material.stock_quantity,
                max_units=units,
            )

    return ExplosionResult(
        max_quantity=max_quantity or 0,
        bottleneck=bottleneck,
        components=details,
    )


def component_requirement(component: ComponentSnapshot, quantity: int) -> ComponentRequirement:
    """Expand one component to the material needed for `quantity` units."""
    material = component.material
    effective = component.effective_quantity
    total_required = effective * quantity
    shortage = max(ZERO, total_required - material.stock_quantity)

    return ComponentRequirement(
        material_id=material.id,
        material_name=material.name,
        unit=material.unit,
        sku=material.sku,
        quantity_per_unit=component.quantity_required,
        waste_percentage=component.waste_percentage,
        effective_quantity_per_unit=effective,
        total_required=round_quantity(total_required),
        current_stock=material.stock_quantity,
        reorder_level=material.reorder_level,
        remaining_after_production=round_quantity(material.stock_quantity - total_required),
        sufficient=total_required <= material.stock_quantity,
        shortage=round_quantity(shortage),
        unit_cost=material.unit_cost,
        total_cost=round_money(total_required * material.unit_cost),
    )


# ============ Stock status ============

def classify_stock_status(
    stock_quantity: Decimal,
    reorder_level: Decimal,
    critical_ratio: Decimal = DEFAULT_CRITICAL_RATIO,
) -> StockStatus:
    """
    Classify a stock level against its reorder level.

        out_of_stock : stock == 0
        critical     : 0 < stock <= ratio * reorder_level
        low          : ratio * reorder_level < stock < reorder_level
        normal       : stock >= reorder_level

    The critical bound is inclusive and the low band is open on both ends.
    """
    if stock_quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if stock_quantity <= Decimal(str(critical_ratio)) * reorder_level:
        return StockStatus.CRITICAL
    if stock_quantity < reorder_level:
        return StockStatus.LOW
    return StockStatus.NORMAL


_SEVERITY_BY_STATUS: dict[StockStatus, Optional[AlertSeverity]] = {
    StockStatus.NORMAL: None,
    StockStatus.LOW: AlertSeverity.LOW,
    StockStatus.CRITICAL: AlertSeverity.CRITICAL,
    StockStatus.OUT_OF_STOCK: AlertSeverity.OUT_OF_STOCK,
}

# Higher = more urgent
SEVERITY_RANK: dict[AlertSeverity, int] = {
    AlertSeverity.LOW: 1,
    AlertSeverity.CRITICAL: 2,
    AlertSeverity.OUT_OF_STOCK: 3,
}


def alert_severity_for(status: StockStatus) -> Optional[AlertSeverity]:
    """Alert severity for a stock status; None means no alert."""
    return _SEVERITY_BY_STATUS[status]


def is_below_reorder_level(material: MaterialSnapshot) -> bool:
    return material.stock_quantity < material.reorder_level or material.stock_quantity <= 0


def require_positive_int(value: Any, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field_name} must be a positive integer", field=field_name)
