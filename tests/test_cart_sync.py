import json
import logging

import pytest

from storefront.services.cart import Cart, CartLine, ProductSnapshot
from storefront.services.cart_sync import CART_PATH, CartSyncBridge, serialize_cart_lines, transform_server_entry
from storefront.services.variants import VariantOption
from storefront.utils.tokenJWT import AuthSession


@pytest.fixture
def session():
    return AuthSession(user_id="user-1", access_token="token-abc")


def server_entry(product_id=5, quantity=2, **prices):
    product = {"id": product_id, "name": "Laptop", "slug": "laptop", "thumbnail": "laptop.webp"}
    product.update(prices)
    return {
        "product": product,
        "quantity": quantity,
        "selected_variants": {"3": {"id": 31, "label": "16GB", "price_modifier": "250"}},
    }


def test_server_entry_uses_fresh_discount_price_first():
    line = transform_server_entry(server_entry(discount_price=900, price=950, original_price=1000))
    assert line.base_price == 900.0
    assert line.unit_price == 1150.0
    assert line.quantity == 2
    assert line.selected_variants["3"].id == 31


def test_server_entry_price_fallback_chain():
    assert transform_server_entry(server_entry(price="950.50", original_price=1000)).base_price == 950.5
    assert transform_server_entry(server_entry(original_price=1000)).base_price == 1000.0
    assert transform_server_entry(server_entry()).base_price == 0.0


def test_server_entry_quantity_defaults_to_one():
    entry = server_entry(original_price=10)
    del entry["quantity"]
    assert transform_server_entry(entry).quantity == 1


def test_entries_without_product_are_dropped():
    assert transform_server_entry({"quantity": 1}) is None
    assert transform_server_entry({"product": {"name": "ghost"}, "quantity": 1}) is None


def test_serialize_sends_only_inputs_and_drops_unresolvable_lines(caplog):
    option = VariantOption(id=31, attribute_id=3, label="16GB", price_modifier=250, stock_quantity=2)
    lines = [
        CartLine(line_id="5:3:31", product_id=5, name="Laptop", base_price=1000, quantity=1,
                 selected_variants={"3": option}),
        CartLine(line_id="legacy", product_id=None, name="Old item", base_price=10, quantity=1),
        CartLine(line_id="6", product_id=6, name="Mouse", base_price=20, quantity=3),
    ]

    with caplog.at_level(logging.WARNING, logger="storefront.services.cart_sync"):
        payload = serialize_cart_lines(lines)

    assert [p["product_id"] for p in payload] == [5, 6]
    assert set(payload[0]) == {"product_id", "quantity", "selected_variants"}
    assert payload[0]["selected_variants"]["3"]["id"] == 31
    assert "legacy" in caplog.text


@pytest.mark.asyncio
async def test_fetch_without_session_makes_no_call(backend, client):
    assert await CartSyncBridge(client).fetch(None) == []
    assert backend.calls == []


@pytest.mark.asyncio
async def test_fetch_failure_yields_empty_cart(backend, client, session):
    backend.on("GET", CART_PATH, (500, {"message": "boom"}))
    assert await CartSyncBridge(client).fetch(session) == []


@pytest.mark.asyncio
async def test_fetch_requires_success_flag_and_list(backend, client, session):
    backend.on("GET", CART_PATH, (200, {"success": False, "data": [server_entry(original_price=1)]}))
    assert await CartSyncBridge(client).fetch(session) == []


@pytest.mark.asyncio
async def test_push_replaces_server_cart_with_bearer_token(backend, client, session):
    backend.on("PUT", CART_PATH, (200, {"success": True}))
    cart = Cart()
    cart.add(ProductSnapshot(id=5, name="Laptop", base_price=1000), 2)

    await CartSyncBridge(client).push(session, cart)

    call = backend.calls_to("PUT", CART_PATH)[0]
    assert call.headers["Authorization"] == "Bearer token-abc"
    assert json.loads(call.content) == {"items": [{"product_id": 5, "quantity": 2, "selected_variants": {}}]}


@pytest.mark.asyncio
async def test_push_failure_is_not_raised(backend, client, session):
    backend.on("PUT", CART_PATH, (503, {"message": "down"}))
    cart = Cart()
    cart.add(ProductSnapshot(id=5, name="Laptop", base_price=1000), 1)
    await CartSyncBridge(client).push(session, cart)


@pytest.mark.asyncio
async def test_login_replaces_local_cart_with_server_cart(backend, client, session):
    backend.on("GET", CART_PATH, (200, {"success": True, "data": [server_entry(original_price=1000)]}))
    cart = Cart()
    cart.add(ProductSnapshot(id=99, name="Local only", base_price=5), 4)

    await CartSyncBridge(client).on_login(session, cart)

    assert [line.product_id for line in cart.lines] == [5]
    assert cart.item_count == 2


def test_logout_clears_local_cart():
    cart = Cart()
    cart.add(ProductSnapshot(id=1, name="Phone", base_price=5), 1)
    CartSyncBridge(client=None).on_logout(cart)
    assert cart.is_empty
