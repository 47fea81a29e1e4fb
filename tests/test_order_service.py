import re

import pytest

from storefront.data.models.order import OrderModel
from storefront.data.models.product import ProductVariantModel
from storefront.domain.errors import CartError, OrderError, OrderNotFoundError, StockError
from storefront.domain.schemas import OrderCreate, ShippingAddressIn
from storefront.services.cart_service import CartService
from storefront.services.order_service import OrderService, shipping_after_discount


@pytest.fixture
def cart_svc(db):
    return CartService(db)


@pytest.fixture
def order_svc(db, notifications):
    return OrderService(db, notifications)


def order_input(cart_id, address, **kwargs):
    data = {
        "cart_id": cart_id,
        "shipping_address": ShippingAddressIn(**address),
        "shipping_method": "standard",
        "payment_intent_id": "pi_test_123",
    }
    data.update(kwargs)
    return OrderCreate(**data)


def test_create_order_computes_totals(cart_svc, order_svc, make_variant, address):
    variant = make_variant(price=1000, stock=10)
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, variant.id, 2)

    order = order_svc.create_order(order_input(cart.id, address, shipping_method="express"))

    assert order.subtotal == 2000
    assert order.shipping_amount == 1500
    assert order.tax_amount == 0
    assert order.total == 3500
    assert order.status == "pending_payment"
    assert order.items[0].unit_price == 1000


def test_order_number_format(cart_svc, order_svc, make_variant, make_user, address):
    variant = make_variant()
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, variant.id, 1)

    order = order_svc.create_order(order_input(cart.id, address))
    out = order_svc.get_order_by_id(order.id, make_user(email="admin@example.com", is_admin=True))

    assert re.match(r"^ON-\d{8}-[0-9A-F]{4}$", out.order_number)


def test_create_order_applies_discount(cart_svc, order_svc, make_variant, make_discount, address):
    variant = make_variant(price=1000)
    make_discount(value=500)
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, variant.id, 2)
    cart_svc.apply_discount(cart.id, "FIVEOFF")

    order = order_svc.create_order(order_input(cart.id, address))

    assert order.discount_amount == 500
    assert order.total == 1500


def test_free_shipping_code_waives_express(cart_svc, order_svc, make_variant, make_discount, address):
    variant = make_variant(price=1000)
    make_discount(code="FREESHIP", type="shipping", value=0)
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, variant.id, 2)
    cart_svc.apply_discount(cart.id, "freeship")

    order = order_svc.create_order(order_input(cart.id, address, shipping_method="express"))

    assert order.shipping_amount == 0
    assert order.discount_amount == 0
    assert order.total == 2000


def test_shipping_discount_with_value_reduces_rate(make_discount):
    assert shipping_after_discount(1500, make_discount(code="SHIP5", type="shipping", value=500)) == 1000
    assert shipping_after_discount(1500, make_discount(code="SHIP20", type="shipping", value=2000)) == 0
    assert shipping_after_discount(1500, make_discount(code="FIVEOFF", type="fixed", value=500)) == 1500
    assert shipping_after_discount(1500, None) == 1500



def test_create_order_decrements_stock_and_clears_cart(db, cart_svc, order_svc, make_variant, make_discount, address):
    variant = make_variant(stock=5)
    make_discount()
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, variant.id, 2)
    cart_svc.apply_discount(cart.id, "FIVEOFF")

    order_svc.create_order(order_input(cart.id, address))

    assert db.get(ProductVariantModel, variant.id).stock_quantity == 3
    view = cart_svc.get_cart_view_model("session_a")
    assert view.items == []
    assert view.discount_code is None


def test_create_order_decrements_composite_stock(db, cart_svc, order_svc, make_variant, address):
    board = make_variant(stock=5, name="Board")
    switch = make_variant(price=60, stock=200, name="Red Switch", category="switch")
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, board.id, 2, [{"variant_id": switch.id, "name": "Red", "quantity": 70}])

    order = order_svc.create_order(order_input(cart.id, address))

    assert db.get(ProductVariantModel, switch.id).stock_quantity == 60
    assert order.items[0].composites == [{"variant_id": switch.id, "name": "Red", "quantity": 70}]


def test_create_order_records_history(cart_svc, order_svc, make_variant, address):
    variant = make_variant()
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, variant.id, 1)

    order = order_svc.create_order(order_input(cart.id, address))

    assert [(h.status, h.note) for h in order.status_history] == [("pending_payment", "Order created")]


def test_create_order_enqueues_confirmation(cart_svc, order_svc, notifications, make_variant, address):
    variant = make_variant()
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, variant.id, 1)

    order = order_svc.create_order(order_input(cart.id, address))

    assert notifications.orders == [order.id]


def test_empty_cart_rejected(cart_svc, order_svc, address):
    cart = cart_svc.get_or_create_cart("session_a")
    with pytest.raises(OrderError):
        order_svc.create_order(order_input(cart.id, address))


@pytest.mark.parametrize("field", ["first_name", "address1", "city", "postal_code", "country", "email"])
def test_incomplete_address_rejected(cart_svc, order_svc, make_variant, address, field):
    variant = make_variant()
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, variant.id, 1)
    address[field] = "  "

    with pytest.raises(OrderError):
        order_svc.create_order(order_input(cart.id, address))


def test_country_must_be_two_letters(cart_svc, order_svc, make_variant, address):
    variant = make_variant()
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, variant.id, 1)
    address["country"] = "Poland"

    with pytest.raises(OrderError):
        order_svc.create_order(order_input(cart.id, address))


def test_short_stock_rolls_back_everything(db, cart_svc, order_svc, make_variant, address):
    board = make_variant(stock=5, name="Board")
    keycaps = make_variant(stock=5, name="Keycaps", category="keycap")
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, board.id, 2)
    cart_svc.add_item(cart.id, keycaps.id, 2)
    # ktos wykupil w miedzyczasie
    db.get(ProductVariantModel, keycaps.id).stock_quantity = 1
    db.commit()

    with pytest.raises(StockError):
        order_svc.create_order(order_input(cart.id, address))

    assert db.get(ProductVariantModel, board.id).stock_quantity == 5
    assert cart_svc.get_cart_view_model("session_a").item_count == 4
    assert order_svc.get_orders_by_user_id("nobody") == []


def test_concurrent_cart_change_rolls_back_order(db, cart_svc, order_svc, make_variant, address, monkeypatch):
    variant = make_variant(stock=5)
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, variant.id, 2)
    # wersja koszyka zmieniona przez inny request
    monkeypatch.setattr(order_svc.cart_repo, "update_cart_version", lambda **kwargs: 0)

    with pytest.raises(CartError):
        order_svc.create_order(order_input(cart.id, address))

    assert db.get(ProductVariantModel, variant.id).stock_quantity == 5
    assert db.query(OrderModel).count() == 0
    assert cart_svc.get_cart_view_model("session_a").item_count == 2



def test_notification_failure_keeps_order(db, cart_svc, make_variant, address):
    class Broken:
        def send_order_confirmation(self, order_id):
            raise ConnectionError("broker down")

    variant = make_variant()
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, variant.id, 1)

    order = OrderService(db, Broken()).create_order(order_input(cart.id, address))

    assert order.id
    assert db.get(ProductVariantModel, variant.id).stock_quantity == 9


def test_owner_can_view_order(cart_svc, order_svc, make_variant, make_user, address):
    user = make_user()
    variant = make_variant()
    cart = cart_svc.get_or_create_cart(None, user.id)
    cart_svc.add_item(cart.id, variant.id, 1)
    order = order_svc.create_order(order_input(cart.id, address, user_id=user.id))

    out = order_svc.get_order_by_id(order.id, user)

    assert out.id == order.id
    assert out.shipping_address.city == "Warszawa"
    assert [o.id for o in order_svc.get_orders_by_user_id(user.id)] == [order.id]


def test_stranger_cannot_view_order(cart_svc, order_svc, make_variant, make_user, address):
    owner = make_user()
    stranger = make_user(email="obcy@example.com")
    variant = make_variant()
    cart = cart_svc.get_or_create_cart(None, owner.id)
    cart_svc.add_item(cart.id, variant.id, 1)
    order = order_svc.create_order(order_input(cart.id, address, user_id=owner.id))

    with pytest.raises(PermissionError):
        order_svc.get_order_by_id(order.id, stranger)
    with pytest.raises(PermissionError):
        order_svc.get_order_by_id(order.id, None)


def test_guest_order_visible_to_matching_email(cart_svc, order_svc, make_variant, make_user, address):
    variant = make_variant()
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, variant.id, 1)
    order = order_svc.create_order(order_input(cart.id, address))
    user = make_user(email="JAN@example.com")

    assert order_svc.get_order_by_id(order.id, user).id == order.id


def test_unknown_order(order_svc, make_user):
    with pytest.raises(OrderNotFoundError):
        order_svc.get_order_by_id("missing", make_user())


def test_status_transition_recorded(cart_svc, order_svc, make_variant, address):
    variant = make_variant()
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, variant.id, 1)
    order = order_svc.create_order(order_input(cart.id, address))

    out = order_svc.update_order_status(order.id, "processing", "Payment captured")

    assert out.status == "processing"
    assert [h.status for h in order.status_history] == ["pending_payment", "processing"]
    assert order.status_history[-1].note == "Payment captured"


def test_invalid_status_transition(cart_svc, order_svc, make_variant, address):
    variant = make_variant()
    cart = cart_svc.get_or_create_cart("session_a")
    cart_svc.add_item(cart.id, variant.id, 1)
    order = order_svc.create_order(order_input(cart.id, address))

    with pytest.raises(OrderError):
        order_svc.update_order_status(order.id, "delivered")
    with pytest.raises(OrderError):
        order_svc.update_order_status(order.id, "lost")
