# storefront/services/order_service.py
from typing import List, Optional

from sqlalchemy.orm import Session

from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.discount import DiscountModel
from storefront.data.models.order import (
    ORDER_STATUSES,
    OrderAddressModel,
    OrderItemModel,
    OrderModel,
    format_order_number,
)
from storefront.data.models.user import UserModel
from storefront.domain.errors import CartError, CartNotFoundError, OrderError, OrderNotFoundError, StockError
from storefront.domain.schemas import (
    CartCompositeOut,
    OrderCreate,
    OrderItemOut,
    OrderOut,
    ShippingAddressOut,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.notification_service import NotificationService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

SHIPPING_RATES = {"standard": 0, "express": 1500}
TAX_AMOUNT = 0

# dozwolone przejscia statusow
STATUS_TRANSITIONS = {
    "pending_payment": {"processing", "payment_failed", "cancelled"},
    "payment_failed": {"pending_payment", "cancelled"},
    "processing": {"shipped", "cancelled", "refunded"},
    "shipped": {"delivered", "cancelled", "refunded"},
    "delivered": {"refunded"},
    "cancelled": set(),
    "refunded": set(),
}

REQUIRED_ADDRESS_FIELDS = ("first_name", "last_name", "address1", "city", "postal_code", "country", "email")


def shipping_after_discount(rate: int, discount: Optional[DiscountModel]) -> int:
    """Rabat typu shipping: value 0 = darmowa dostawa, inaczej odejmuje value od stawki."""
    if discount is None or discount.type != "shipping" or not discount.active:
        return rate
    if discount.value <= 0:
        return 0
    return max(0, rate - discount.value)


def order_to_out(order: OrderModel) -> OrderOut:
    address = next((a for a in order.addresses if a.type == "shipping"), None)
    if address is None:
        raise OrderError(f"Order {order.id} has no shipping address")
    return OrderOut(
        id=order.id,
        order_number=format_order_number(order.id, order.created_at),
        status=order.status,
        subtotal=order.subtotal,
        discount_amount=order.discount_amount,
        shipping_amount=order.shipping_amount,
        tax_amount=order.tax_amount,
        total=order.total,
        currency=order.currency,
        shipping_method=order.shipping_method,
        payment_method="card",
        created_at=order.created_at,
        items=[
            OrderItemOut(
                id=i.id,
                product_id=i.product_id,
                variant_id=i.variant_id,
                name=i.name,
                variant_name=i.variant_name,
                quantity=i.quantity,
                unit_price=i.unit_price,
                total_price=i.unit_price * i.quantity,
                composites=[CartCompositeOut(**c) for c in (i.composites or [])],
            )
            for i in order.items
        ],
        shipping_address=ShippingAddressOut.model_validate(address),
    )


class OrderService:
    """
    Serwis odpowiedzialny za domene zamowien.
    Sprawdzenie wlasciciela zamowienia jest tylko tutaj.
    """

    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.cart_repo = CartRepo(db)
        self.product_repo = ProductRepo(db)
        self.notification_service = notification_service or NotificationService()

    def create_order(self, data: OrderCreate) -> OrderModel:
        """
        Use Case: zamowienie z koszyka.

        1. waliduje adres i koszyk
        2. kopiuje pozycje z zamrozona cena
        3. zdejmuje stan magazynowy, zapisuje zamowienie, czysci koszyk (jedna transakcja)
        4. kolejkuje maila z potwierdzeniem
        """
        address = data.shipping_address
        missing = [f for f in REQUIRED_ADDRESS_FIELDS if not (getattr(address, f) or "").strip()]
        if missing:
            raise OrderError(f"Shipping address is incomplete: missing {', '.join(missing)}")
        if len(address.country.strip()) != 2:
            raise OrderError("Country must be a 2-letter code")

        if data.shipping_method not in SHIPPING_RATES:
            raise OrderError(f"Unknown shipping method: {data.shipping_method}")

        cart = self.cart_repo.get_cart(data.cart_id)
        if not cart:
            raise CartNotFoundError(data.cart_id)

        items: List[CartItemModel] = self.cart_repo.get_cart_items(cart.id)
        if not items:
            raise OrderError("Cart is empty")

        variants = self.cart_repo.get_variants([i.product_variant_id for i in items])

        subtotal = sum(i.price * i.quantity for i in items)
        discount_amount = min(cart.discount_amount or 0, subtotal)
        shipping_amount = SHIPPING_RATES[data.shipping_method]
        if cart.discount_code:
            shipping_amount = shipping_after_discount(
                shipping_amount, self.cart_repo.get_discount_by_code(cart.discount_code)
            )
        total = subtotal + TAX_AMOUNT + shipping_amount - discount_amount

        order = OrderModel(
            user_id=data.user_id,
            cart_id=cart.id,
            status="pending_payment",
            email=address.email.strip().lower(),
            subtotal=subtotal,
            discount_amount=discount_amount,
            shipping_amount=shipping_amount,
            tax_amount=TAX_AMOUNT,
            total=total,
            shipping_method=data.shipping_method,
            payment_intent_id=data.payment_intent_id,
        )

        try:
            for item in items:
                variant = variants.get(item.product_variant_id)
                if not variant:
                    raise OrderError(f"Product variant {item.product_variant_id} is no longer available")

                if self.product_repo.decrement_stock(variant.id, item.quantity) == 0:
                    raise StockError(f"Not enough stock for {variant.product.name} {variant.name}")
                for composite in item.composites or []:
                    needed = composite["quantity"] * item.quantity
                    if self.product_repo.decrement_stock(composite["variant_id"], needed) == 0:
                        raise StockError(f"Not enough stock for {composite['name']}")

                order.items.append(
                    OrderItemModel(
                        product_id=variant.product_id,
                        variant_id=variant.id,
                        name=variant.product.name,
                        variant_name=variant.name,
                        quantity=item.quantity,
                        unit_price=item.price,
                        composites=list(item.composites or []),
                    )
                )

            order.addresses.append(
                OrderAddressModel(
                    type="shipping",
                    first_name=address.first_name.strip(),
                    last_name=address.last_name.strip(),
                    address1=address.address1.strip(),
                    address2=address.address2,
                    city=address.city.strip(),
                    state=address.state or "",
                    postal_code=address.postal_code.strip(),
                    country=address.country.strip().upper(),
                    email=address.email.strip().lower(),
                    phone=address.phone,
                )
            )
            self.repo.add_status_history(order, "pending_payment", "Order created")
            self.repo.add_order(order)

            # czyszczenie koszyka
            self.cart_repo.delete_cart_items(cart.id)
            cleared = self.cart_repo.update_cart_version(
                cart_id=cart.id,
                old_version=cart.version,
                new_data={"version": cart.version + 1, "discount_code": None, "discount_amount": 0},
            )
            if cleared == 0:
                raise CartError("Cart was modified by another request, please retry")
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(
            f"Order {format_order_number(order.id, order.created_at)} created from cart {cart.id}, total {total}"
        )

        try:
            self.notification_service.send_order_confirmation(order.id)
        except Exception as e:
            # zamowienie zostaje, mail nie jest krytyczny
            logger.error(f"Failed to enqueue confirmation for order {order.id}: {e}")

        return order

    def get_order_by_id(self, order_id: str, requester: Optional[UserModel]) -> OrderOut:
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFoundError(order_id)

        if not self._can_view(order, requester):
            raise PermissionError("Brak dostepu do zamowienia")
        return order_to_out(order)

    def get_orders_by_user_id(self, user_id: str, limit: Optional[int] = None) -> List[OrderOut]:
        return [order_to_out(o) for o in self.repo.get_orders_by_user(user_id, limit)]

    def update_order_status(self, order_id: str, status: str, note: Optional[str] = None) -> OrderOut:
        if status not in ORDER_STATUSES:
            raise OrderError(f"Unknown order status: {status}")

        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFoundError(order_id)

        if status not in STATUS_TRANSITIONS.get(order.status, set()):
            raise OrderError(f"Cannot change order status from {order.status} to {status}")

        previous = order.status
        self.repo.update_order_status(order, status, note)
        logger.info(f"Order {order_id} status {previous} -> {status}")
        return order_to_out(order)

    @staticmethod
    def _can_view(order: OrderModel, requester: Optional[UserModel]) -> bool:
        if requester is None:
            return False
        if requester.is_admin:
            return True
        if order.user_id and order.user_id == requester.id:
            return True
        return bool(requester.email) and requester.email.lower() == order.email.lower()
