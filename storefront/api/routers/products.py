# storefront/api/routers/products.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.errors import ProductNotFoundError
from storefront.domain.schemas import CatalogueOut, ProductDetailOut, ProductListOut, ProductOut
from storefront.services.catalogue_service import CatalogueService

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=ProductListOut)
def list_products(
    category: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
):
    products, total = CatalogueService(db).get_products(category, page, page_size)
    return ProductListOut(products=products, total=total, page=page, page_size=page_size)


@router.get("/catalogue", response_model=CatalogueOut)
def get_catalogue(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return CatalogueService(db).get_catalogue(page, page_size)


@router.get("/search", response_model=List[ProductOut])
def search_products(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return CatalogueService(db).search_products(q, limit)


@router.get("/{slug}", response_model=ProductDetailOut)
def get_product(slug: str, db: Session = Depends(get_db)):
    try:
        return CatalogueService(db).get_product(slug)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
