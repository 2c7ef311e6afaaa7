from sqlalchemy.orm import Session
from typing import List, Optional
from catalog.domain.models import Product, Inventory
from catalog.infrastructure.repositories import ProductRepository, InventoryRepository
from .cache import ProductCache, get_product_cache
from .exceptions import NotFoundError
from .schemas import ProductCreate, ProductRead
from shared.core import get_logger

logger = get_logger(__name__)

PRODUCT_NOT_FOUND = "Product not found"

class ProductService:
    def __init__(self, db: Session, cache: Optional[ProductCache] = None):
        self.db = db
        self.repo = ProductRepository(db)
        self.cache = cache if cache is not None else get_product_cache()

    def _load(self, product_id: int) -> Product:
        product = self.repo.find_by_id(product_id)
        if product is None:
            raise NotFoundError(PRODUCT_NOT_FOUND)
        return product

    def get_product(self, product_id: int) -> ProductRead:
        """Read-through lookup: served from cache when present, else from storage."""
        cached = self.cache.get(product_id)
        if cached is not None:
            return ProductRead(**cached)
        # Taken before the load so a write landing in between is not cached over
        generation = self.cache.generation(product_id)
        product = ProductRead.model_validate(self._load(product_id))
        self.cache.set_if_unchanged(product_id, generation, product.model_dump())
        return product

    def create(self, data: ProductCreate) -> Product:
        product = Product(name=data.name, description=data.description, price=data.price)
        product = self.repo.save(product)
        logger.info(
            "Product created",
            extra={'extra_fields': {'product_id': product.id}}
        )
        return product

    def update(self, product_id: int, data: ProductCreate) -> Product:
        product = self._load(product_id)
        # Full overwrite, no partial patch
        product.name = data.name
        product.description = data.description
        product.price = data.price
        product = self.repo.save(product)
        self.cache.evict(product_id)
        logger.info(
            "Product updated",
            extra={'extra_fields': {'product_id': product_id}}
        )
        return product

    def delete(self, product_id: int) -> None:
        product = self._load(product_id)
        self.repo.delete(product)
        self.cache.evict(product_id)
        logger.info(
            "Product deleted",
            extra={'extra_fields': {'product_id': product_id}}
        )

class InventoryService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = InventoryRepository(db)

    def inventories_for_product(self, product_id: int) -> List[Inventory]:
        return self.repo.find_by_product_id(product_id)
