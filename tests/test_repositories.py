import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from catalog.domain.models import Product, Inventory
from catalog.infrastructure.db import engine
from catalog.infrastructure.repositories import (
    ProductRepository,
    WarehouseRepository,
    InventoryRepository,
)

def test_save_assigns_id_and_find_by_id(db):
    repo = ProductRepository(db)
    product = repo.save(Product(name="Widget", description="d", price=9.99))
    assert product.id is not None
    assert repo.find_by_id(product.id).name == "Widget"

def test_find_by_id_missing_returns_none(db):
    assert ProductRepository(db).find_by_id(404) is None
    assert WarehouseRepository(db).find_by_id(404) is None

def test_delete_removes_row(db):
    repo = ProductRepository(db)
    product = repo.save(Product(name="Widget"))
    repo.delete(product)
    assert repo.find_by_id(product.id) is None

def test_find_by_product_id(db, stocked_product):
    rows = InventoryRepository(db).find_by_product_id(stocked_product.id)
    assert len(rows) == 2
    assert all(r.product_id == stocked_product.id for r in rows)
    assert {r.warehouse.name for r in rows} == {"North", "South"}

def test_find_by_product_id_unknown_is_empty(db, stocked_product):
    assert InventoryRepository(db).find_by_product_id(9999) == []

def test_product_id_is_indexed():
    indexed = {
        col
        for index in inspect(engine).get_indexes("inventory")
        for col in index["column_names"]
    }
    assert "product_id" in indexed

def test_storage_rejects_dangling_foreign_key(db):
    db.add(Inventory(product_id=9999, warehouse_id=9999, quantity=1))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()

def test_storage_rejects_deleting_stocked_product(db, stocked_product):
    with pytest.raises(IntegrityError):
        ProductRepository(db).delete(stocked_product)
    db.rollback()
