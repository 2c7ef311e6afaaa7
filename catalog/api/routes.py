from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session
from catalog.infrastructure.db import get_db
from catalog.application.service import ProductService
from catalog.application.schemas import ProductCreate, ProductRead
from catalog.application.exceptions import NotFoundError

router = APIRouter(prefix="/api/products", tags=["products"])

def get_product_service(db: Session = Depends(get_db)) -> ProductService:
    return ProductService(db)

@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: int, service: ProductService = Depends(get_product_service)):
    try:
        return service.get_product(product_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.detail)

@router.post("", response_model=ProductRead, status_code=201)
def create_product(payload: ProductCreate, service: ProductService = Depends(get_product_service)):
    return service.create(payload)

@router.put("/{product_id}", response_model=ProductRead)
def update_product(product_id: int, payload: ProductCreate, service: ProductService = Depends(get_product_service)):
    try:
        return service.update(product_id, payload)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.detail)

@router.delete("/{product_id}", status_code=204)
def delete_product(product_id: int, service: ProductService = Depends(get_product_service)):
    try:
        service.delete(product_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.detail)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
