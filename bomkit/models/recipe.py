"""
Recipe (bill of materials) models.

Recipe: how one product is made, at most one active per (tenant, product)
RecipeComponent: line item linking a recipe to a material with a quantity
"""
import uuid
from sqlalchemy import (
    Column, String, Text, Boolean, Integer, Numeric, DateTime, ForeignKey, Uuid, func, text,
    Index, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship

from bomkit.db.base import Base
from bomkit.models.enums import Lifecycle, YieldUnit, db_enum


class Recipe(Base):
    """
    A product's bill of materials.

    `yield_quantity` units of the product are produced per run of the
    recipe. Activation is handled by RecipeService.activate, which flips
    every sibling recipe of the same product to inactive in one transaction.
    """
    __tablename__ = "recipes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    yield_quantity = Column(Numeric(10, 3), nullable=False, default=1)
    yield_unit = Column(db_enum(YieldUnit), nullable=False, default=YieldUnit.PCS)
    is_active = Column(Boolean, nullable=False, default=False)
    lifecycle = Column(db_enum(Lifecycle), nullable=False, default=Lifecycle.ACTIVE)
    archived_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    product = relationship("Product", back_populates="recipes")
    components = relationship(
        "RecipeComponent",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeComponent.position",
    )

    __table_args__ = (
        CheckConstraint('yield_quantity > 0', name='ck_recipes_yield_positive'),
        Index('idx_recipes_tenant_product_active', 'tenant_id', 'product_id', 'is_active'),
        Index(
            'uq_recipes_one_active_per_product', 'tenant_id', 'product_id',
            unique=True,
            postgresql_where=text('is_active'),
            sqlite_where=text('is_active'),
        ),
    )


class RecipeComponent(Base):
    """
    One material line of a recipe.

    effective quantity = quantity_required * (1 + waste_percentage / 100)

    `position` is the line order within the recipe; the first of several
    tied materials is reported as the bottleneck.
    """
    __tablename__ = "recipe_components"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    recipe_id = Column(Uuid, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    material_id = Column(Uuid, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False)
    quantity_required = Column(Numeric(10, 4), nullable=False)
    waste_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    position = Column(Integer, nullable=False, default=0)
    notes = Column(Text)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    recipe = relationship("Recipe", back_populates="components")
    material = relationship("Material", back_populates="components")

    __table_args__ = (
        UniqueConstraint('recipe_id', 'material_id', name='uq_recipe_components_recipe_material'),
        CheckConstraint('quantity_required > 0', name='ck_recipe_components_quantity_positive'),
        CheckConstraint(
            'waste_percentage >= 0 AND waste_percentage < 100',
            name='ck_recipe_components_waste_range',
        ),
        Index('idx_recipe_components_tenant_material', 'tenant_id', 'material_id'),
    )
