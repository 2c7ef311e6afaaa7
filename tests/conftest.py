import os

# Must be set before the catalog package reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("REDIS_URL", None)

import pytest
from fastapi.testclient import TestClient

from catalog.main import app
from catalog.application.cache import get_product_cache
from catalog.domain.models import Product, Warehouse, Inventory
from catalog.infrastructure.db import SessionLocal, init_models, drop_models

@pytest.fixture(autouse=True)
def fresh_store():
    init_models()
    get_product_cache().clear()
    yield
    drop_models()

@pytest.fixture
def client():
    return TestClient(app)

@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()

@pytest.fixture
def stocked_product(db):
    """A product held in two warehouses, plus an unrelated product with stock."""
    pump = Product(name="Pump", description="Water pump", price=49.5)
    hose = Product(name="Hose", description="Garden hose", price=12.0)
    north = Warehouse(name="North", location="Oslo")
    south = Warehouse(name="South", location=None)
    db.add_all([pump, hose, north, south])
    db.flush()
    db.add_all([
        Inventory(product_id=pump.id, warehouse_id=north.id, quantity=7),
        Inventory(product_id=pump.id, warehouse_id=south.id, quantity=3),
        Inventory(product_id=hose.id, warehouse_id=north.id, quantity=20),
    ])
    db.commit()
    return pump
