"""
Closed vocabularies used by the BOM models and services.
"""
from enum import Enum

from sqlalchemy import Enum as SAEnum


class Lifecycle(str, Enum):
    """Lifecycle of materials and recipes (archive instead of delete)."""
    ACTIVE = "active"
    ARCHIVED = "archived"


class InventoryMode(str, Enum):
    """How a product's stock is managed."""
    SIMPLE = "simple"  # own stock counter, no recipe
    BOM = "bom"        # derived from an active recipe


class MaterialUnit(str, Enum):
    KG = "kg"
    G = "g"
    L = "L"
    ML = "ml"
    PCS = "pcs"
    BOX = "box"
    BOTTLE = "bottle"
    CAN = "can"
    BAG = "bag"


class YieldUnit(str, Enum):
    PCS = "pcs"
    KG = "kg"
    L = "L"
    SERVING = "serving"
    BATCH = "batch"


class TransactionType(str, Enum):
    RESTOCK = "restock"
    DEDUCTION = "deduction"
    ADJUSTMENT = "adjustment"


class TransactionReason(str, Enum):
    PURCHASE = "purchase"
    WASTE = "waste"
    DAMAGE = "damage"
    COUNT_ADJUSTMENT = "count_adjustment"
    PRODUCTION = "production"
    SALE = "sale"
    OTHER = "other"


class StockStatus(str, Enum):
    NORMAL = "normal"
    LOW = "low"
    CRITICAL = "critical"
    OUT_OF_STOCK = "out_of_stock"


class AlertSeverity(str, Enum):
    LOW = "low"
    CRITICAL = "critical"
    OUT_OF_STOCK = "out_of_stock"


class AlertStatus(str, Enum):
    PENDING = "pending"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


ACTIONABLE_ALERT_STATUSES = (AlertStatus.PENDING, AlertStatus.ACKNOWLEDGED)


def db_enum(enum_cls):
    """Store an enum by value in a portable VARCHAR column."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=20,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )
