import json

import pytest

from conftest import add_delivery_option, add_product, auth_headers
from storefront.models.log import Log
from storefront.models.order import Order
from storefront.services.cart_sync import CART_PATH
from storefront.services.coupons import APPLY_PATH
from storefront.services.orders import ORDERS_PATH, OrderGateway
from storefront.utils.deps import get_order_gateway

GUEST = {"X-Cart-Session": "guest-123"}

ADDRESS = {
    "full_name": "Ama Mensah",
    "email": "ama@example.com",
    "phone": "0240000000",
    "street_address": "12 Ring Road",
    "city": "Accra",
    "region": "Greater Accra",
}


async def no_sleep(_delay):
    return None


@pytest.fixture(autouse=True)
def instant_retries(app, client):
    app.dependency_overrides[get_order_gateway] = lambda: OrderGateway(client, sleep=no_sleep)


@pytest.fixture
def phone(db):
    return add_product(db, attributes=[("Storage", [("128GB", 0, 0), ("256GB", 200, 4), ("512GB", 400, 2)])])


def option_id(product, value):
    for attribute in product.attributes:
        for option in attribute.options:
            if option.value == value:
                return attribute.id, option.id
    raise KeyError(value)


def test_anonymous_cart_needs_session_header(api):
    assert api.get("/cart").status_code == 400


def test_add_defaults_to_first_available_variant(api, phone):
    response = api.post("/cart/items", json={"product_id": phone.id, "quantity": 2}, headers=GUEST)
    assert response.status_code == 200
    body = response.json()
    [line] = body["lines"]
    assert line["variants"] == {"Storage": "256GB"}
    assert line["unit_price"] == 1200.0
    assert body["totals"]["subtotal"] == 2400.0
    assert body["item_count"] == 2


def test_add_with_explicit_variant_and_merge(api, phone):
    attr, opt = option_id(phone, "512GB")
    payload = {"product_id": phone.id, "quantity": 1, "variants": {str(attr): opt}}
    api.post("/cart/items", json=payload, headers=GUEST)
    body = api.post("/cart/items", json=payload, headers=GUEST).json()

    assert len(body["lines"]) == 1
    assert body["lines"][0]["quantity"] == 2
    assert body["lines"][0]["unit_price"] == 1400.0


def test_out_of_stock_variant_is_refused(api, phone):
    attr, opt = option_id(phone, "128GB")
    response = api.post(
        "/cart/items",
        json={"product_id": phone.id, "variants": {str(attr): opt}},
        headers=GUEST,
    )
    assert response.status_code == 400
    assert "out of stock" in response.json()["detail"]


def test_out_of_stock_product_is_refused_without_backorders(api, db):
    product = add_product(db, slug="gone", stock_quantity=0)
    response = api.post("/cart/items", json={"product_id": product.id}, headers=GUEST)
    assert response.status_code == 400


def test_update_and_remove_lines(api, phone):
    line_id = api.post("/cart/items", json={"product_id": phone.id}, headers=GUEST).json()["lines"][0]["line_id"]

    updated = api.put(f"/cart/items/{line_id}", json={"quantity": 5}, headers=GUEST).json()
    assert updated["item_count"] == 5

    removed = api.delete(f"/cart/items/{line_id}", headers=GUEST).json()
    assert removed["lines"] == []
    assert api.delete(f"/cart/items/{line_id}", headers=GUEST).status_code == 404


def test_cart_actions_are_audited(api, phone, db):
    api.post("/cart/items", json={"product_id": phone.id}, headers=GUEST)
    entry = db.query(Log).filter(Log.action == "CART_ADD").one()
    assert entry.resource == "cart"
    assert entry.meta["product_id"] == phone.id


def test_coupon_apply_and_remove(api, backend, phone, db):
    delivery = add_delivery_option(db, price=20.0)
    backend.on("POST", APPLY_PATH, (200, {"success": True, "data": {
        "code": "SAVE50", "type": "fixed_amount", "appliesTo": "total", "discountAmount": 50,
    }}))
    api.post("/cart/items", json={"product_id": phone.id}, headers=GUEST)

    applied = api.post("/cart/coupon", json={"code": "save50", "delivery_option_id": delivery.id}, headers=GUEST)
    assert applied.status_code == 200
    body = applied.json()
    assert body["coupon"]["code"] == "SAVE50"
    assert body["totals"]["total"] == 1200.0 + 20.0 - 50.0
    assert body["discount_text"] == "GHS 50.00 discount applied"

    removed = api.delete(f"/cart/coupon?delivery_option_id={delivery.id}", headers=GUEST).json()
    assert removed["coupon"] is None
    assert removed["totals"]["total"] == 1220.0


def test_rejected_coupon_returns_400(api, backend, phone):
    backend.on("POST", APPLY_PATH, (404, {"message": "Invalid coupon code"}))
    api.post("/cart/items", json={"product_id": phone.id}, headers=GUEST)

    response = api.post("/cart/coupon", json={"code": "NOPE"}, headers=GUEST)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid coupon code"


def test_signed_in_mutations_push_server_cart(api, backend, phone):
    backend.on("PUT", CART_PATH, (200, {"success": True}))
    api.post("/cart/items", json={"product_id": phone.id}, headers=auth_headers("user-9"))

    [call] = backend.calls_to("PUT", CART_PATH)
    sent = json.loads(call.content)
    assert sent["items"][0]["product_id"] == phone.id
    assert "unit_price" not in sent["items"][0]


def test_sync_on_login_replaces_guest_cart(api, backend, phone, app):
    api.post("/cart/items", json={"product_id": phone.id}, headers=GUEST)
    backend.on("GET", CART_PATH, (200, {"success": True, "data": [
        {"product": {"id": 77, "name": "Tablet", "original_price": 500}, "quantity": 3},
    ]}))

    response = api.post("/cart/sync", headers={**GUEST, **auth_headers("user-9")})

    assert response.status_code == 200
    assert [l["product_id"] for l in response.json()["lines"]] == [77]
    assert "anon:guest-123" not in app.state.carts


def test_checkout_falls_back_to_database_and_clears_cart(api, backend, phone, db):
    delivery = add_delivery_option(db, price=20.0)
    backend.on("POST", ORDERS_PATH, (503, {"message": "unavailable"}))
    api.post("/cart/items", json={"product_id": phone.id}, headers=GUEST)

    response = api.post(
        "/checkout",
        json={"delivery_address": ADDRESS, "delivery_option_id": delivery.id, "payment_method": "paystack"},
        headers=GUEST,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["source"] == "database"
    assert body["order"]["total"] == 1220.0
    assert body["payment"]["amount"] == 122000
    assert body["payment"]["ref"] == body["order"]["order_number"]
    assert db.query(Order).count() == 1
    assert api.get("/cart", headers=GUEST).json()["lines"] == []


def test_checkout_rejected_by_backend(api, backend, phone, db):
    delivery = add_delivery_option(db)
    backend.on("POST", ORDERS_PATH, (422, {"message": "Product out of stock"}))
    api.post("/cart/items", json={"product_id": phone.id}, headers=GUEST)

    response = api.post(
        "/checkout",
        json={"delivery_address": ADDRESS, "delivery_option_id": delivery.id},
        headers=GUEST,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Product out of stock"
    # Cart survives a failed checkout
    assert len(api.get("/cart", headers=GUEST).json()["lines"]) == 1


def test_checkout_with_empty_cart(api, db):
    delivery = add_delivery_option(db)
    response = api.post(
        "/checkout",
        json={"delivery_address": ADDRESS, "delivery_option_id": delivery.id},
        headers=GUEST,
    )
    assert response.status_code == 400


def test_changing_delivery_option_after_coupon_uses_the_new_fee(api, backend, phone, db):
    standard = add_delivery_option(db, name="Standard", price=20.0)
    express = add_delivery_option(db, name="Express", price=50.0)
    backend.on("POST", APPLY_PATH, (200, {"success": True, "data": {
        "code": "SHIP50", "type": "fixed_amount", "appliesTo": "total", "discountAmount": 50, "adjustedDeliveryFee": 0,
    }}))
    backend.on("POST", ORDERS_PATH, (503, {"message": "unavailable"}))
    api.post("/cart/items", json={"product_id": phone.id}, headers=GUEST)
    applied = api.post("/cart/coupon", json={"code": "SHIP50", "delivery_option_id": standard.id}, headers=GUEST)
    assert applied.json()["totals"]["delivery_fee"] == 0.0

    with_express = api.get(f"/cart?delivery_option_id={express.id}", headers=GUEST).json()
    assert with_express["totals"]["delivery_fee"] == 50.0
    assert with_express["totals"]["total"] == 1200.0 + 50.0 - 50.0
    assert with_express["coupon"]["free_delivery"] is False

    no_option = api.get("/cart", headers=GUEST).json()
    assert no_option["totals"]["delivery_fee"] == 0.0
    assert no_option["totals"]["total"] == 1150.0

    response = api.post(
        "/checkout",
        json={"delivery_address": ADDRESS, "delivery_option_id": express.id},
        headers=GUEST,
    )
    assert response.status_code == 201
    order = db.query(Order).one()
    assert order.delivery_fee == 50.0
    assert order.total == 1200.0


def test_checkout_succeeds_when_backend_record_has_other_item_shape(api, backend, phone, db):
    delivery = add_delivery_option(db)
    backend.on("POST", ORDERS_PATH, (201, {"success": True, "data": {
        "id": "ord-1", "order_number": "VT-1", "order_items": [{"id": 1, "product_id": phone.id, "quantity": 1}],
    }}))
    api.post("/cart/items", json={"product_id": phone.id}, headers=GUEST)

    response = api.post(
        "/checkout",
        json={"delivery_address": ADDRESS, "delivery_option_id": delivery.id},
        headers=GUEST,
    )

    assert response.status_code == 201
    assert response.json()["source"] == "api"
    assert response.json()["order"]["order_number"] == "VT-1"
    assert len(backend.calls_to("POST", ORDERS_PATH)) == 1
    assert db.query(Log).filter(Log.action == "CHECKOUT", Log.status == "SUCCESS").count() == 1
    assert api.get("/cart", headers=GUEST).json()["lines"] == []


def test_cleared_and_checked_out_guest_carts_are_forgotten(api, backend, phone, db, app):
    delivery = add_delivery_option(db)
    backend.on("POST", ORDERS_PATH, (201, {"success": True, "data": {"id": "ord-2"}}))

    api.post("/cart/items", json={"product_id": phone.id}, headers={"X-Cart-Session": "tab-1"})
    api.delete("/cart", headers={"X-Cart-Session": "tab-1"})
    assert "anon:tab-1" not in app.state.carts

    api.post("/cart/items", json={"product_id": phone.id}, headers=GUEST)
    api.post(
        "/checkout",
        json={"delivery_address": ADDRESS, "delivery_option_id": delivery.id},
        headers=GUEST,
    )
    assert "anon:guest-123" not in app.state.carts


def test_audit_rows_record_forwarded_client_ip(api, phone, db):
    api.post("/cart/items", json={"product_id": phone.id},
             headers={**GUEST, "X-Forwarded-For": "41.66.10.2, 10.0.0.1"})
    entry = db.query(Log).filter(Log.action == "CART_ADD").one()
    assert entry.ip == "41.66.10.2"
    assert entry.user_id is None
