# storefront/services/catalogue_service.py
import math
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel, stock_status
from storefront.domain.errors import ProductNotFoundError
from storefront.domain.schemas import (
    CatalogueOut,
    ProductDetailOut,
    ProductGroupOut,
    ProductImageOut,
    ProductOut,
    ProductVariantOut,
)
from storefront.repos.product_repo import ProductRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

CATEGORY_PRIORITY = {"keyboard": 0, "switch": 1, "keycap": 2, "case": 3}
MAX_PAGE_SIZE = 100


def category_sort_key(category: str):
    return (CATEGORY_PRIORITY.get(category, len(CATEGORY_PRIORITY)), category)


class CatalogueService:
    def __init__(self, db: Session):
        self.repo = ProductRepo(db)

    def get_products(
        self, category: Optional[str] = None, page: int = 1, page_size: int = 50
    ) -> Tuple[List[ProductOut], int]:
        page = max(1, page)
        page_size = max(1, min(page_size, MAX_PAGE_SIZE))

        products, total = self.repo.get_products(category, offset=(page - 1) * page_size, limit=page_size)
        return self._to_view(products), total

    def get_catalogue(self, page: int = 1, page_size: int = 50) -> CatalogueOut:
        page = max(1, page)
        page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        products, total = self.get_products(page=page, page_size=page_size)

        grouped: Dict[str, List[ProductOut]] = {}
        for product in products:
            grouped.setdefault(product.category, []).append(product)

        groups = [
            ProductGroupOut(category=category, products=grouped[category])
            for category in sorted(grouped, key=category_sort_key)
        ]
        return CatalogueOut(
            groups=groups,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size) if total else 0,
        )

    def get_product(self, slug: str) -> ProductDetailOut:
        product = self.repo.get_product_by_slug(slug)
        if not product:
            raise ProductNotFoundError(slug)

        view = self._to_view([product])[0]
        #domyslny wariant - pierwszy dostepny, inaczej pierwszy w ogole
        default = next((v for v in view.variants if v.stock_quantity > 0), None)
        if default is None and view.variants:
            default = view.variants[0]
        return ProductDetailOut(product=view, default_variant_id=default.id if default else None)

    def search_products(self, query: str, limit: int = 20) -> List[ProductOut]:
        query = (query or "").strip()
        if not query:
            return []
        products = self.repo.search_products(query, max(1, min(limit, MAX_PAGE_SIZE)))
        logger.info(f"Search '{query}' matched {len(products)} products")
        return self._to_view(products)

    def _to_view(self, products: List[ProductModel]) -> List[ProductOut]:
        ids = [p.id for p in products]
        # dwa zapytania IN, jedno po drugim na tej samej sesji
        variants = self.repo.get_variants_for_products(ids)
        images = self.repo.get_images_for_products(ids)

        return [
            ProductOut(
                id=p.id,
                slug=p.slug,
                name=p.name,
                description=p.description or "",
                category=p.category,
                features=p.features or [],
                specifications=p.specifications or {},
                is_accessory=p.is_accessory,
                images=[ProductImageOut.model_validate(i) for i in images.get(p.id, [])],
                variants=[
                    ProductVariantOut(
                        id=v.id,
                        product_id=v.product_id,
                        sku=v.sku,
                        name=v.name,
                        price=v.price,
                        stock_quantity=v.stock_quantity,
                        stock_status=stock_status(v.stock_quantity),
                        attributes=v.attributes or {},
                    )
                    for v in variants.get(p.id, [])
                ],
            )
            for p in products
        ]
