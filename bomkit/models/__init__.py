"""
SQLAlchemy models for bomkit.
"""
# Core entities
from bomkit.models.tenant import Tenant
from bomkit.models.product import Product

# Materials & Recipes
from bomkit.models.material import Material
from bomkit.models.recipe import Recipe, RecipeComponent

# Ledger
from bomkit.models.inventory import InventoryTransaction

# Alerts
from bomkit.models.stock_alert import StockAlert


__all__ = [
    # Core
    "Tenant",
    "Product",
    # Materials & Recipes
    "Material",
    "Recipe",
    "RecipeComponent",
    # Ledger
    "InventoryTransaction",
    # Alerts
    "StockAlert",
]
