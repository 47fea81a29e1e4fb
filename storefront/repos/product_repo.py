# storefront/repos/product_repo.py
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductImageModel, ProductModel, ProductVariantModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_products(
        self,
        category: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> Tuple[List[ProductModel], int]:
        query = self.db.query(ProductModel)
        if category:
            query = query.filter(ProductModel.category == category)

        total = query.count()
        products = query.order_by(ProductModel.name, ProductModel.id).offset(offset).limit(limit).all()
        return products, total

    def get_product_by_slug(self, slug: str) -> Optional[ProductModel]:
        return self.db.query(ProductModel).filter(ProductModel.slug == slug).first()

    def search_products(self, query: str, limit: int) -> List[ProductModel]:
        pattern = f"%{query}%"
        return (
            self.db.query(ProductModel)
            .filter(or_(ProductModel.name.ilike(pattern), ProductModel.description.ilike(pattern)))
            .order_by(ProductModel.name)
            .limit(limit)
            .all()
        )

    #jedno zapytanie IN dla calej strony, nie per produkt
    def get_variants_for_products(self, product_ids: List[str]) -> Dict[str, List[ProductVariantModel]]:
        grouped: Dict[str, List[ProductVariantModel]] = {pid: [] for pid in product_ids}
        if not product_ids:
            return grouped
        variants = (
            self.db.query(ProductVariantModel)
            .filter(ProductVariantModel.product_id.in_(product_ids))
            .order_by(ProductVariantModel.price, ProductVariantModel.name)
            .all()
        )
        for variant in variants:
            grouped[variant.product_id].append(variant)
        return grouped

    def get_images_for_products(self, product_ids: List[str]) -> Dict[str, List[ProductImageModel]]:
        grouped: Dict[str, List[ProductImageModel]] = {pid: [] for pid in product_ids}
        if not product_ids:
            return grouped
        images = (
            self.db.query(ProductImageModel)
            .filter(ProductImageModel.product_id.in_(product_ids))
            .order_by(ProductImageModel.position)
            .all()
        )
        for image in images:
            grouped[image.product_id].append(image)
        return grouped

    def decrement_stock(self, variant_id: str, quantity: int) -> int:
        """Warunkowy update - 0 gdy stan za maly."""
        return (
            self.db.query(ProductVariantModel)
            .filter(
                ProductVariantModel.id == variant_id,
                ProductVariantModel.stock_quantity >= quantity,
            )
            .update(
                {ProductVariantModel.stock_quantity: ProductVariantModel.stock_quantity - quantity},
                synchronize_session=False,
            )
        )
