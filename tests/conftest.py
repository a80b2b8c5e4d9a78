"""
Test configuration and fixtures.
"""
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Set test database URL before importing app
os.environ["DATABASE_URL"] = "sqlite://"

from bomkit.main import app
from bomkit.db.base import Base
from bomkit.db.session import get_db
from bomkit.models import Tenant, Product, Material, Recipe
from bomkit.models.enums import InventoryMode
from bomkit.services.materials import MaterialService
from bomkit.services.recipes import RecipeService


# One in-memory database shared by every session of a test
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def session_factory():
    return TestingSessionLocal


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema and session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create test client with database session override."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# ============ Builders ============

@pytest.fixture
def tenant(db: Session) -> Tenant:
    tenant = Tenant(name="Napoli Kitchen")
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


@pytest.fixture
def other_tenant(db: Session) -> Tenant:
    tenant = Tenant(name="Other Kitchen")
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


@pytest.fixture
def make_product(db: Session):
    def _make(tenant: Tenant, name: str = "Margherita", mode: InventoryMode = InventoryMode.BOM) -> Product:
        product = Product(tenant_id=tenant.id, name=name, inventory_mode=mode)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make


@pytest.fixture
def make_material(db: Session):
    def _make(
        tenant: Tenant,
        name: str,
        stock,
        unit: str = "kg",
        reorder_level="0",
        unit_cost="0",
        **kwargs,
    ) -> Material:
        return MaterialService(db).create(
            tenant.id,
            name=name,
            unit=unit,
            stock_quantity=Decimal(str(stock)),
            reorder_level=Decimal(str(reorder_level)),
            unit_cost=Decimal(str(unit_cost)),
            **kwargs,
        )
    return _make


@pytest.fixture
def make_recipe(db: Session):
    def _make(tenant: Tenant, product: Product, lines, name: str = "Classic", activate: bool = True) -> Recipe:
        components = [
            {
                "material_id": material.id,
                "quantity_required": Decimal(str(quantity)),
                "waste_percentage": Decimal(str(waste)),
            }
            for material, quantity, waste in lines
        ]
        return RecipeService(db).create(
            tenant.id, product.id, name, components=components, activate=activate,
        )
    return _make


@dataclass
class PizzaKitchen:
    tenant: Tenant
    product: Product
    recipe: Recipe
    dough: Material
    sauce: Material
    cheese: Material


@pytest.fixture
def pizza(tenant, make_product, make_material, make_recipe) -> PizzaKitchen:
    """
    Margherita with three components.

    Dough  10 kg, 0.3 kg/unit, 5% waste  -> 0.315 -> 31 units
    Sauce  5 L,   0.1 L/unit,  0% waste  -> 0.1   -> 50 units
    Cheese 3.5 kg, 0.2 kg/unit, 10% waste -> 0.22 -> 15 units (bottleneck)
    """
    product = make_product(tenant, "Margherita")
    dough = make_material(tenant, "Dough", 10, reorder_level=5, unit_cost="2.00", category="Bakery")
    sauce = make_material(tenant, "Sauce", 5, unit="L", reorder_level=2, unit_cost="4.00", category="Sauces")
    cheese = make_material(tenant, "Cheese", "3.5", reorder_level=2, unit_cost="12.00", category="Dairy")
    recipe = make_recipe(tenant, product, [
        (dough, "0.3", 5),
        (sauce, "0.1", 0),
        (cheese, "0.2", 10),
    ])
    return PizzaKitchen(tenant, product, recipe, dough, sauce, cheese)


@pytest.fixture
def headers(tenant) -> dict:
    return {"X-Tenant-ID": str(tenant.id)}
