# storefront/services/cart_service.py
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.discount import DiscountModel
from storefront.data.models.product import stock_status
from storefront.data.types import utcnow
from storefront.domain.errors import (
    CartError,
    CartItemNotFoundError,
    CartNotFoundError,
    DiscountError,
    StockError,
    VariantNotFoundError,
)
from storefront.domain.schemas import CartCompositeOut, CartItemOut, CartOut
from storefront.repos.cart_repo import CartRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

CART_SESSION_COOKIE_NAME = "cart-session"


def normalize_composites(composites) -> List[Dict[str, Any]]:
    """Lista {variant_id, name, quantity} posortowana - kolejnosc nie ma znaczenia."""
    normalized = []
    for c in composites or []:
        data = c if isinstance(c, dict) else c.model_dump()
        variant_id = data.get("variant_id")
        name = data.get("name")
        quantity = data.get("quantity")
        if not variant_id or not name or not isinstance(quantity, int):
            raise CartError("Invalid composite item structure")
        if quantity < 1:
            raise CartError("Invalid composite quantity")
        normalized.append({"variant_id": variant_id, "name": name, "quantity": quantity})
    return sorted(normalized, key=lambda c: (c["variant_id"], c["name"], c["quantity"]))


def composite_key(composites) -> Tuple:
    return tuple((c["variant_id"], c["name"], c["quantity"]) for c in normalize_composites(composites))


def discount_amount_for(discount: DiscountModel, subtotal: int) -> int:
    if discount.type == "percentage":
        amount = (subtotal * discount.value + 50) // 100
    elif discount.type == "fixed":
        amount = discount.value
    else:
        # shipping - rozliczane przy checkout
        amount = 0
    return max(0, min(amount, subtotal))


class CartService:
    """
    Use case'y dla koszyka (anonimowego i usera)
    commands (add, update, remove, clear, discount, merge) modyfikuja stan i podbijaja version
    query (view model) tylko odczyt
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepo(db)

    # query

    def get_or_create_cart(self, session_id: Optional[str], user_id: Optional[str] = None) -> CartModel:
        if user_id:
            cart = self.repo.get_user_cart(user_id)
            if cart:
                return cart
            created = self.repo.create_cart(CartModel(user_id=user_id, session_id=None))
            logger.info(f"Created cart {created.id} for user {user_id}")
            return created

        if not session_id:
            raise CartError("Cart session is required")

        cart = self.repo.get_anonymous_cart(session_id)
        if cart:
            return cart
        created = self.repo.create_cart(CartModel(user_id=None, session_id=session_id))
        logger.info(f"Created anonymous cart {created.id}")
        return created

    def get_cart_view_model(self, session_id: Optional[str], user_id: Optional[str] = None) -> CartOut:
        cart = self.get_or_create_cart(session_id, user_id)
        return self.build_view_model(cart)

    def build_view_model(self, cart: CartModel) -> CartOut:
        items = self.repo.get_cart_items(cart.id)
        variants = self.repo.get_variants([i.product_variant_id for i in items])
        images = self.repo.get_first_images([v.product_id for v in variants.values()])

        out_items = []
        for item in items:
            variant = variants.get(item.product_variant_id)
            if variant is None:
                logger.warning(f"Cart item {item.id} points to missing variant {item.product_variant_id}")
                continue
            image = images.get(variant.product_id)
            out_items.append(
                CartItemOut(
                    id=item.id,
                    product_variant_id=variant.id,
                    quantity=item.quantity,
                    price=item.price,
                    name=variant.name,
                    product_id=variant.product_id,
                    product_name=variant.product.name,
                    product_slug=variant.product.slug,
                    image_url=image.url if image else "",
                    stock_quantity=variant.stock_quantity,
                    stock_status=stock_status(variant.stock_quantity),
                    composites=[CartCompositeOut(**c) for c in (item.composites or [])],
                )
            )

        subtotal = sum(i.price * i.quantity for i in out_items)
        discount_amount = cart.discount_amount or 0
        return CartOut(
            id=cart.id,
            items=out_items,
            discount_code=cart.discount_code,
            discount_amount=discount_amount,
            subtotal=subtotal,
            total=max(0, subtotal - discount_amount),
            item_count=sum(i.quantity for i in out_items),
        )

    # commands

    def add_item(
        self,
        cart_id: str,
        variant_id: str,
        quantity: int,
        composites=None,
    ) -> CartItemModel:
        if not isinstance(quantity, int) or quantity < 1:
            raise CartError("Quantity must be at least 1")

        cart = self._get_cart(cart_id)
        variant = self.repo.get_variant(variant_id)
        if not variant:
            raise VariantNotFoundError(variant_id)

        composites = normalize_composites(composites)
        key = composite_key(composites)

        existing = None
        for item in self.repo.get_variant_items(cart_id, variant_id):
            if composite_key(item.composites) == key:
                existing = item
                break

        resulting = quantity + (existing.quantity if existing else 0)
        # sprawdzenie stanu przed jakimkolwiek zapisem
        self._check_stock(variant, resulting, composites)

        if existing:
            logger.info(
                f"Variant {variant_id} already in cart {cart_id}, "
                f"quantity {existing.quantity} -> {resulting}"
            )
            existing.quantity = resulting
            existing.updated_at = utcnow()
            item = existing
        else:
            logger.info(f"Adding variant {variant_id} x{quantity} to cart {cart_id}")
            item = self.repo.add_cart_item(
                CartItemModel(
                    cart_id=cart_id,
                    product_variant_id=variant_id,
                    quantity=quantity,
                    price=variant.price,
                    composites=composites,
                )
            )

        self._commit_mutation(cart)
        return item

    def update_item_quantity(
        self, cart_item_id: str, quantity: int, cart_id: Optional[str] = None
    ) -> Optional[CartItemModel]:
        """quantity <= 0 usuwa pozycje (zwraca None)."""
        item = self._get_item(cart_item_id, cart_id)
        cart = self._get_cart(item.cart_id)

        if quantity <= 0:
            self.repo.delete_cart_item(item)
            logger.info(f"Removed item {cart_item_id} from cart {cart.id} (quantity {quantity})")
            self._commit_mutation(cart)
            return None

        variant = self.repo.get_variant(item.product_variant_id)
        if not variant:
            raise VariantNotFoundError(item.product_variant_id)
        self._check_stock(variant, quantity, normalize_composites(item.composites))

        item.quantity = quantity
        item.updated_at = utcnow()
        self._commit_mutation(cart)
        logger.info(f"Item {cart_item_id} in cart {cart.id} set to quantity {quantity}")
        return item

    def remove_item(self, cart_item_id: str, cart_id: Optional[str] = None) -> None:
        item = self._get_item(cart_item_id, cart_id)
        cart = self._get_cart(item.cart_id)
        self.repo.delete_cart_item(item)
        self._commit_mutation(cart)
        logger.info(f"Removed item {cart_item_id} from cart {cart.id}")

    def clear_cart(self, cart_id: str) -> None:
        cart = self._get_cart(cart_id)
        self.repo.delete_cart_items(cart_id)
        self._bump_version(cart, {"discount_code": None, "discount_amount": 0})
        self.repo.commit()
        logger.info(f"Cleared cart {cart_id}")

    def apply_discount(self, cart_id: str, code: str) -> CartModel:
        cart = self._get_cart(cart_id)
        code = (code or "").strip().upper()
        discount = self.repo.get_discount_by_code(code)
        if not discount or not discount.active:
            raise DiscountError("Invalid discount code")

        now = utcnow()
        if discount.valid_from and now < discount.valid_from:
            raise DiscountError("Discount code is not valid yet")
        if discount.valid_until and now > discount.valid_until:
            raise DiscountError("Discount code has expired")

        reapply = cart.discount_code == discount.code
        if not reapply and discount.max_uses is not None and discount.used_count >= discount.max_uses:
            raise DiscountError("Discount code usage limit reached")

        if not self.repo.get_cart_items(cart.id):
            raise CartError("Cart is empty, cannot apply discount")

        subtotal = self._subtotal(cart.id)
        if discount.min_spend and subtotal < discount.min_spend:
            raise DiscountError(f"Minimum spend of {discount.min_spend} required for this code")

        amount = discount_amount_for(discount, subtotal)
        if not reapply:
            self.repo.increment_discount_usage(discount)
        self._bump_version(cart, {"discount_code": discount.code, "discount_amount": amount})
        self.repo.commit()
        logger.info(f"Applied discount {discount.code} ({amount}) to cart {cart_id}")
        return cart

    def remove_discount(self, cart_id: str) -> CartModel:
        cart = self._get_cart(cart_id)
        self._bump_version(cart, {"discount_code": None, "discount_amount": 0})
        self.repo.commit()
        logger.info(f"Removed discount from cart {cart_id}")
        return cart

    def handle_user_login_merge(self, session_id: Optional[str], user_id: str) -> CartModel:
        """
        Laczenie koszyka goscia z koszykiem usera po zalogowaniu.
        Idempotentne - po pierwszym wywolaniu koszyk anonimowy juz nie istnieje.
        """
        anon = self.repo.get_anonymous_cart(session_id) if session_id else None
        user_cart = self.repo.get_user_cart(user_id)

        if anon is None:
            return user_cart or self.get_or_create_cart(None, user_id)

        if user_cart is None:
            # przejecie koszyka goscia
            self._bump_version(anon, {"user_id": user_id, "session_id": None})
            self.repo.commit()
            logger.info(f"Cart {anon.id} adopted by user {user_id}")
            return anon

        user_items = self.repo.get_cart_items(user_cart.id)
        by_key = {(i.product_variant_id, composite_key(i.composites)): i for i in user_items}
        moved = 0
        for item in self.repo.get_cart_items(anon.id):
            key = (item.product_variant_id, composite_key(item.composites))
            match = by_key.get(key)
            if match:
                match.quantity += item.quantity
                match.updated_at = utcnow()
            else:
                by_key[key] = self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=user_cart.id,
                        product_variant_id=item.product_variant_id,
                        quantity=item.quantity,
                        price=item.price,
                        composites=normalize_composites(item.composites),
                    )
                )
            moved += 1

        extra = {}
        if not user_cart.discount_code and anon.discount_code:
            extra = {"discount_code": anon.discount_code, "discount_amount": anon.discount_amount}

        self.repo.delete_cart(anon)
        self.db.flush()
        self._bump_version(user_cart, extra)
        self._reevaluate_discount(user_cart)
        self.repo.commit()
        logger.info(f"Merged {moved} items from anonymous cart into cart {user_cart.id} of user {user_id}")
        return user_cart

    # helpers

    def _get_cart(self, cart_id: str) -> CartModel:
        cart = self.repo.get_cart(cart_id)
        if not cart:
            raise CartNotFoundError(cart_id)
        return cart

    def _get_item(self, cart_item_id: str, cart_id: Optional[str]) -> CartItemModel:
        item = self.repo.get_cart_item(cart_item_id)
        #pozycja z cudzego koszyka traktowana jak nieistniejaca
        if not item or (cart_id is not None and item.cart_id != cart_id):
            raise CartItemNotFoundError(cart_item_id)
        return item

    def _check_stock(self, variant, quantity: int, composites: List[Dict[str, Any]]) -> None:
        if quantity > variant.stock_quantity:
            raise StockError(
                f"Not enough stock for {variant.name}: requested {quantity}, available {variant.stock_quantity}"
            )
        for composite in composites:
            part = self.repo.get_variant(composite["variant_id"])
            if not part:
                raise VariantNotFoundError(composite["variant_id"])
            needed = composite["quantity"] * quantity
            if needed > part.stock_quantity:
                raise StockError(
                    f"Not enough stock for {composite['name']}: requested {needed}, available {part.stock_quantity}"
                )

    def _subtotal(self, cart_id: str) -> int:
        return sum(i.price * i.quantity for i in self.repo.get_cart_items(cart_id))

    def _bump_version(self, cart: CartModel, extra: Optional[dict] = None) -> None:
        new_data = {"version": cart.version + 1, "updated_at": utcnow()}
        new_data.update(extra or {})
        rowcount = self.repo.update_cart_version(cart_id=cart.id, old_version=cart.version, new_data=new_data)
        if rowcount == 0:
            self.repo.rollback()
            raise CartError("Cart was modified by another request, please retry")

    def _reevaluate_discount(self, cart: CartModel) -> None:
        """Po zmianie pozycji przelicza rabat, usuwa gdy juz nie obowiazuje."""
        if not cart.discount_code:
            return
        discount = self.repo.get_discount_by_code(cart.discount_code)
        subtotal = self._subtotal(cart.id)
        now = utcnow()

        still_valid = (
            discount is not None
            and discount.active
            and (not discount.valid_until or now <= discount.valid_until)
            and (not discount.min_spend or subtotal >= discount.min_spend)
        )
        if not still_valid:
            logger.info(f"Discount {cart.discount_code} no longer applies to cart {cart.id}, dropping it")
            cart.discount_code = None
            cart.discount_amount = 0
            return

        cart.discount_amount = discount_amount_for(discount, subtotal)

    def _commit_mutation(self, cart: CartModel) -> None:
        self.db.flush()
        self._bump_version(cart)
        self._reevaluate_discount(cart)
        self.repo.commit()
