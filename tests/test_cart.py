import pytest

from storefront.services.cart import Cart, CartRegistry, ProductSnapshot
from storefront.services.variants import VariantOption
from storefront.utils.errors import ActionInProgress


@pytest.fixture
def phone():
    return ProductSnapshot(id=1, name="Phone X", slug="phone-x", base_price=1000.0)


@pytest.fixture
def storage_256():
    return VariantOption(id=11, attribute_id=1, attribute_name="Storage", label="256GB", price_modifier=200, stock_quantity=3)


@pytest.fixture
def storage_128():
    return VariantOption(id=10, attribute_id=1, attribute_name="Storage", label="128GB", price_modifier=0, stock_quantity=3)


def test_same_product_and_variants_merge_into_one_line(phone, storage_256):
    cart = Cart()
    cart.add(phone, 1, {"1": storage_256})
    cart.add(phone, 2, {"1": storage_256})

    assert len(cart.lines) == 1
    assert cart.lines[0].quantity == 3
    assert cart.item_count == 3


def test_different_variants_are_separate_lines(phone, storage_128, storage_256):
    cart = Cart()
    cart.add(phone, 1, {"1": storage_128})
    cart.add(phone, 1, {"1": storage_256})

    assert len(cart.lines) == 2
    assert cart.subtotal == 1000.0 + 1200.0


def test_line_prices_include_modifiers(phone, storage_256):
    cart = Cart()
    line = cart.add(phone, 2, {"1": storage_256})
    assert line.unit_price == 1200.0
    assert line.subtotal == 2400.0


def test_subtotal_is_rounded_to_cents():
    cart = Cart()
    cart.add(ProductSnapshot(id=2, name="Cable", base_price=0.1), 3)
    assert cart.subtotal == 0.3


def test_update_quantity_to_zero_removes_line(phone):
    cart = Cart()
    line = cart.add(phone, 1)
    assert cart.update_quantity(line.line_id, 0) is None
    assert cart.is_empty


def test_update_and_remove_unknown_line_raise(phone):
    cart = Cart()
    with pytest.raises(KeyError):
        cart.update_quantity("nope", 2)
    with pytest.raises(KeyError):
        cart.remove("nope")


def test_add_rejects_non_positive_quantity(phone):
    with pytest.raises(ValueError):
        Cart().add(phone, 0)


def test_clear_drops_lines_and_coupon(phone):
    cart = Cart()
    cart.add(phone, 1)
    cart.applied_coupon = object()
    cart.clear()
    assert cart.is_empty
    assert cart.applied_coupon is None


def test_pending_guard_rejects_duplicate_action():
    cart = Cart()
    with cart.pending("checkout"):
        with pytest.raises(ActionInProgress):
            with cart.pending("checkout"):
                pass
        # Other actions are not blocked
        with cart.pending("coupon"):
            pass
    # Released afterwards
    with cart.pending("checkout"):
        pass


def test_pending_guard_released_on_error():
    cart = Cart()
    with pytest.raises(RuntimeError):
        with cart.pending("checkout"):
            raise RuntimeError("boom")
    with cart.pending("checkout"):
        pass


def test_registry_keeps_one_cart_per_key(phone):
    registry = CartRegistry()
    registry.get("anon:abc").add(phone, 1)

    assert registry.get("anon:abc").item_count == 1
    assert registry.get("user:1").is_empty
    assert len(registry) == 2


def test_registry_move_and_drop(phone):
    registry = CartRegistry()
    registry.get("anon:abc").add(phone, 2)

    moved = registry.move("anon:abc", "user:1")
    assert moved.item_count == 2
    assert "anon:abc" not in registry

    registry.drop("user:1")
    assert "user:1" not in registry


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def test_registry_forgets_idle_carts(phone):
    clock = FakeClock()
    registry = CartRegistry(idle_ttl=100, clock=clock, sweep_interval=10)
    registry.get("anon:a").add(phone, 1)
    registry.get("anon:b")

    clock.now = 60
    assert registry.get("anon:a").item_count == 1

    # b has been idle past the ttl and is swept; a was touched at 60
    clock.now = 130
    registry.get("anon:c")
    assert "anon:b" not in registry
    assert "anon:a" in registry

    clock.now = 170
    assert registry.get("anon:a").is_empty


def test_registry_without_ttl_keeps_carts(phone):
    clock = FakeClock()
    registry = CartRegistry(clock=clock)
    registry.get("anon:a").add(phone, 1)
    clock.now = 10 ** 9
    assert registry.get("anon:a").item_count == 1
