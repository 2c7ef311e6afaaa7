"""
Repository layer - per-entity data access over a SQLAlchemy session.
"""
from typing import Generic, List, Optional, Type, TypeVar
from sqlalchemy.orm import Session
from catalog.domain.models import Base, Product, Warehouse, Inventory

ModelT = TypeVar("ModelT", bound=Base)

class SqlAlchemyRepository(Generic[ModelT]):
    """CRUD access for one mapped entity type."""

    model: Type[ModelT]

    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, entity_id: int) -> Optional[ModelT]:
        """Return the entity with this id, or None when it does not exist."""
        return self.db.get(self.model, entity_id)

    def save(self, entity: ModelT) -> ModelT:
        """Persist the entity and return it with its generated id populated."""
        self.db.add(entity)
        self.db.commit()
        self.db.refresh(entity)
        return entity

    def delete(self, entity: ModelT) -> None:
        self.db.delete(entity)
        self.db.commit()

class ProductRepository(SqlAlchemyRepository[Product]):
    model = Product

class WarehouseRepository(SqlAlchemyRepository[Warehouse]):
    model = Warehouse

class InventoryRepository(SqlAlchemyRepository[Inventory]):
    model = Inventory

    def find_by_product_id(self, product_id: int) -> List[Inventory]:
        """All inventory rows referencing the product; empty when there are none."""
        return (
            self.db.query(Inventory)
            .filter(Inventory.product_id == product_id)
            .order_by(Inventory.id)
            .all()
        )
