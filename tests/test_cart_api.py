def test_get_cart_sets_cart_cookie(client):
    resp = client.get("/cart")

    assert resp.status_code == 200
    assert resp.json()["items"] == []
    assert resp.cookies["cart-session"].startswith("session_")


def test_cart_cookie_is_reused(client):
    first = client.get("/cart").json()
    second = client.get("/cart")

    assert second.json()["id"] == first["id"]
    assert "cart-session" not in second.cookies


def test_add_and_update_item(client, make_variant):
    variant = make_variant(price=12900, stock=10)

    resp = client.post("/cart/items", json={"product_variant_id": variant.id, "quantity": 2})
    assert resp.status_code == 200
    cart = resp.json()
    assert cart["subtotal"] == 25800
    assert cart["item_count"] == 2
    item_id = cart["items"][0]["id"]

    resp = client.patch(f"/cart/items/{item_id}", json={"quantity": 3})
    assert resp.json()["items"][0]["quantity"] == 3

    resp = client.patch(f"/cart/items/{item_id}", json={"quantity": 0})
    assert resp.json()["items"] == []


def test_remove_item(client, make_variant):
    variant = make_variant()
    item_id = client.post("/cart/items", json={"product_variant_id": variant.id}).json()["items"][0]["id"]

    resp = client.delete(f"/cart/items/{item_id}")

    assert resp.status_code == 200
    assert resp.json()["item_count"] == 0


def test_add_item_over_stock(client, make_variant):
    variant = make_variant(stock=1)

    resp = client.post("/cart/items", json={"product_variant_id": variant.id, "quantity": 2})

    assert resp.status_code == 400
    assert "stock" in resp.json()["detail"]


def test_add_unknown_variant(client):
    resp = client.post("/cart/items", json={"product_variant_id": "missing", "quantity": 1})
    assert resp.status_code == 404


def test_add_item_invalid_quantity(client, make_variant):
    variant = make_variant()
    resp = client.post("/cart/items", json={"product_variant_id": variant.id, "quantity": 0})
    assert resp.status_code == 400
    assert "quantity" in resp.json()["errors"]


def test_unknown_item(client):
    assert client.delete("/cart/items/missing").status_code == 404


def test_discount_endpoints(client, make_variant, make_discount):
    variant = make_variant(price=1000)
    make_discount()
    client.post("/cart/items", json={"product_variant_id": variant.id, "quantity": 2})

    resp = client.post("/cart/discount", json={"code": "fiveoff"})
    assert resp.status_code == 200
    assert resp.json()["total"] == 1500

    assert client.post("/cart/discount", json={"code": "BOGUS"}).status_code == 400

    resp = client.delete("/cart/discount")
    assert resp.json()["discount_code"] is None
    assert resp.json()["total"] == 2000


def test_clear_cart(client, make_variant):
    variant = make_variant()
    client.post("/cart/items", json={"product_variant_id": variant.id, "quantity": 2})

    resp = client.delete("/cart")

    assert resp.json()["items"] == []


def test_guest_cart_merged_on_register(client, make_variant):
    variant = make_variant()
    client.post("/cart/items", json={"product_variant_id": variant.id, "quantity": 2})

    client.post(
        "/auth/register",
        json={"first_name": "Jan", "last_name": "Kowalski", "email": "jan@example.com", "password": "CorrectHorse9"},
    )
    cart = client.get("/cart").json()

    assert cart["item_count"] == 2


def test_guest_cart_merged_into_existing_user_cart_on_login(client, make_variant, make_user):
    make_user()
    variant = make_variant()
    client.post("/auth/login", json={"email": "jan@example.com", "password": "CorrectHorse9"})
    client.post("/cart/items", json={"product_variant_id": variant.id, "quantity": 1})
    client.post("/auth/logout")

    client.post("/cart/items", json={"product_variant_id": variant.id, "quantity": 2})
    client.post("/auth/login", json={"email": "jan@example.com", "password": "CorrectHorse9"})

    cart = client.get("/cart").json()
    assert len(cart["items"]) == 1
    assert cart["item_count"] == 3
