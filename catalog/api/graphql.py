"""GraphQL surface over the product and inventory services.

Queries: product, inventories. Mutations: createProduct.
Update and delete stay REST-only.
"""
from typing import List, Optional
from decimal import Decimal
from fastapi import Depends, Request
from sqlalchemy.orm import Session
import strawberry
from strawberry.fastapi import GraphQLRouter
from strawberry.types import Info

from catalog.infrastructure.db import get_db
from catalog.application.service import ProductService, InventoryService
from catalog.application.schemas import ProductCreate
from catalog.core_settings import get_settings

def _as_float(value) -> Optional[float]:
    if value is None:
        return None
    return float(value) if isinstance(value, Decimal) else value

@strawberry.type
class Product:
    id: int
    name: Optional[str]
    description: Optional[str]
    price: Optional[float]

    @classmethod
    def from_record(cls, record) -> "Product":
        return cls(
            id=record.id,
            name=record.name,
            description=record.description,
            price=_as_float(record.price),
        )

@strawberry.type
class Warehouse:
    id: int
    name: str
    location: Optional[str]

@strawberry.type
class Inventory:
    id: int
    quantity: int
    product: Product
    warehouse: Warehouse

    @classmethod
    def from_record(cls, record) -> "Inventory":
        return cls(
            id=record.id,
            quantity=record.quantity,
            product=Product.from_record(record.product),
            warehouse=Warehouse(
                id=record.warehouse.id,
                name=record.warehouse.name,
                location=record.warehouse.location,
            ),
        )

def _db(info: Info) -> Session:
    return info.context["db"]

@strawberry.type
class Query:
    @strawberry.field
    def product(self, info: Info, id: int) -> Optional[Product]:
        # NotFoundError surfaces as a field error with a null value
        return Product.from_record(ProductService(_db(info)).get_product(id))

    @strawberry.field
    def inventories(self, info: Info, product_id: int) -> List[Inventory]:
        records = InventoryService(_db(info)).inventories_for_product(product_id)
        return [Inventory.from_record(r) for r in records]

@strawberry.type
class Mutation:
    @strawberry.mutation
    def create_product(
        self,
        info: Info,
        name: str,
        description: Optional[str] = None,
        price: Optional[float] = None,
    ) -> Product:
        payload = ProductCreate(name=name, description=description, price=price)
        return Product.from_record(ProductService(_db(info)).create(payload))

schema = strawberry.Schema(query=Query, mutation=Mutation)

def _gql_context_getter(request: Request, db: Session = Depends(get_db)):
    return {"request": request, "db": db}

def create_graphql_router() -> GraphQLRouter:
    return GraphQLRouter(
        schema,
        graphql_ide="graphiql" if get_settings().GRAPHIQL_ENABLED else None,
        context_getter=_gql_context_getter,
    )
