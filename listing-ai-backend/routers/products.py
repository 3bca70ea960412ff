"""
Router for finished product listings.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from dependencies import get_product_service
from schemas import ProductListResponse, ProductResponse, ProductUpdateRequest

router = APIRouter(prefix="/products", tags=["products"])


@router.get("/", response_model=ProductListResponse)
def list_products(user_id: Optional[str] = None, offset: int = 0, products=Depends(get_product_service)):
    """One page of a user's products, newest first."""
    return products.list_products(user_id, offset)


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(product_id: str, products=Depends(get_product_service)):
    return products.get_product(product_id)


@router.put("/{product_id}", response_model=ProductResponse)
def update_product(product_id: str, update: ProductUpdateRequest, products=Depends(get_product_service)):
    return products.update_product(product_id, update)
