# storefront/repos/cart_repo.py
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session, joinedload

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.discount import DiscountModel
from storefront.data.models.product import ProductImageModel, ProductVariantModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    # koszyki
    def get_cart(self, cart_id: str) -> Optional[CartModel]:
        return self.db.get(CartModel, cart_id)

    def get_user_cart(self, user_id: str) -> Optional[CartModel]:
        return (
            self.db.query(CartModel)
            .filter(CartModel.user_id == user_id)
            .order_by(CartModel.created_at)
            .first()
        )

    def get_anonymous_cart(self, session_id: str) -> Optional[CartModel]:
        return (
            self.db.query(CartModel)
            .filter(CartModel.session_id == session_id, CartModel.user_id.is_(None))
            .first()
        )

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.commit()
        self.db.refresh(cart)
        return cart

    def delete_cart(self, cart: CartModel) -> None:
        self.db.delete(cart)

    def delete_stale_anonymous_carts(self, before: datetime) -> int:
        stale_ids = [
            row[0]
            for row in self.db.query(CartModel.id)
            .filter(CartModel.user_id.is_(None), CartModel.updated_at < before)
            .all()
        ]
        if not stale_ids:
            return 0
        self.db.execute(delete(CartItemModel).where(CartItemModel.cart_id.in_(stale_ids)))
        self.db.execute(delete(CartModel).where(CartModel.id.in_(stale_ids)))
        return len(stale_ids)

    def update_cart_version(self, cart_id: str, old_version: int, new_data: dict) -> int:
        """UPDATE carts SET ... WHERE id = :id AND version = :old_version"""
        return (
            self.db.query(CartModel)
            .filter(CartModel.id == cart_id, CartModel.version == old_version)
            .update(new_data, synchronize_session="evaluate")
        )

    # pozycje
    def get_cart_items(self, cart_id: str) -> List[CartItemModel]:
        return (
            self.db.query(CartItemModel)
            .filter(CartItemModel.cart_id == cart_id)
            .order_by(CartItemModel.created_at)
            .all()
        )

    def get_cart_item(self, cart_item_id: str) -> Optional[CartItemModel]:
        return self.db.get(CartItemModel, cart_item_id)

    def get_variant_items(self, cart_id: str, variant_id: str) -> List[CartItemModel]:
        return (
            self.db.query(CartItemModel)
            .filter(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_variant_id == variant_id,
            )
            .all()
        )

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_cart_item(self, item: CartItemModel) -> None:
        self.db.delete(item)
        self.db.flush()

    def delete_cart_items(self, cart_id: str) -> int:
        result = self.db.execute(delete(CartItemModel).where(CartItemModel.cart_id == cart_id))
        return result.rowcount

    # produkty / rabaty
    def get_variant(self, variant_id: str) -> Optional[ProductVariantModel]:
        return self.db.get(ProductVariantModel, variant_id)

    def get_variants(self, variant_ids: List[str]) -> Dict[str, ProductVariantModel]:
        if not variant_ids:
            return {}
        variants = (
            self.db.query(ProductVariantModel)
            .options(joinedload(ProductVariantModel.product))
            .filter(ProductVariantModel.id.in_(set(variant_ids)))
            .all()
        )
        return {v.id: v for v in variants}

    def get_first_images(self, product_ids: List[str]) -> Dict[str, ProductImageModel]:
        if not product_ids:
            return {}
        images = (
            self.db.query(ProductImageModel)
            .filter(ProductImageModel.product_id.in_(set(product_ids)))
            .order_by(ProductImageModel.position)
            .all()
        )
        first: Dict[str, ProductImageModel] = {}
        for image in images:
            first.setdefault(image.product_id, image)
        return first

    def get_discount_by_code(self, code: str) -> Optional[DiscountModel]:
        return self.db.query(DiscountModel).filter(DiscountModel.code == code).first()

    def increment_discount_usage(self, discount: DiscountModel) -> None:
        discount.used_count = (discount.used_count or 0) + 1

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
