from datetime import datetime, timedelta

import pytest

from conftest import add_product
from storefront.config import settings
from storefront.models.category import Category
from storefront.models.flash_deal import FlashDeal, FlashDealProduct
from storefront.services import catalog
from storefront.services.pricing import compute_totals, flash_price
from storefront.utils.helpers import image_url
from storefront.utils.paystack import build_widget_config

NOW = datetime(2025, 6, 1, 12, 0, 0)


def add_deal(db, product, start, end, pct=0, fixed=None, active=True):
    deal = FlashDeal(title="Weekend deal", start_time=start, end_time=end, is_active=active)
    deal.products = [FlashDealProduct(product_id=product.id, discount_percentage=pct, flash_price=fixed)]
    db.add(deal)
    db.commit()
    return deal


def test_image_url_rules():
    assert image_url(None) == settings.PLACEHOLDER_IMAGE
    assert image_url("") == settings.PLACEHOLDER_IMAGE
    assert image_url("https://cdn.example.com/a.webp") == "https://cdn.example.com/a.webp"
    assert image_url("/local/a.webp") == "/local/a.webp"
    assert image_url("products/a.webp") == f"{settings.IMAGE_CDN_URL.rstrip('/')}/products/a.webp"


def test_flash_price_rules():
    assert flash_price(200, 25) == 150.0
    assert flash_price(200, 25, fixed_price=99.99) == 99.99
    assert flash_price(200, 150) == 0.0
    assert flash_price(200, None) == 200.0


def test_totals_include_tax_rate():
    totals = compute_totals(100, 10, discount=5, tax_rate=0.125)
    assert totals.tax == 12.5
    assert totals.total == 117.5


def test_only_running_active_deals_are_listed(db):
    product = add_product(db)
    running = add_deal(db, product, NOW - timedelta(hours=1), NOW + timedelta(hours=1), pct=10)
    add_deal(db, product, NOW + timedelta(hours=1), NOW + timedelta(hours=2), pct=50)
    add_deal(db, product, NOW - timedelta(hours=2), NOW - timedelta(hours=1), pct=50)
    add_deal(db, product, NOW - timedelta(hours=1), NOW + timedelta(hours=1), pct=50, active=False)

    deals = catalog.active_flash_deals(db, NOW)
    assert [d.id for d in deals] == [running.id]


def test_snapshot_uses_flash_price_during_deal(db):
    product = add_product(db, original_price=1000, discount_price=900)
    add_deal(db, product, NOW - timedelta(hours=1), NOW + timedelta(hours=1), pct=10)

    assert catalog.snapshot(db, product, NOW).base_price == 810.0
    # After the deal the regular discount price applies again
    assert catalog.snapshot(db, product, NOW + timedelta(hours=2)).base_price == 900.0


def test_lowest_flash_price_wins(db):
    product = add_product(db, original_price=1000)
    add_deal(db, product, NOW - timedelta(hours=1), NOW + timedelta(hours=1), pct=10)
    add_deal(db, product, NOW - timedelta(hours=1), NOW + timedelta(hours=3), fixed=700)
    assert catalog.flash_prices(db, NOW) == {product.id: 700.0}


def test_categories_carry_product_count(db):
    phones = Category(name="Phones", slug="phones", display_order=1)
    laptops = Category(name="Laptops", slug="laptops", display_order=2)
    db.add_all([phones, laptops])
    db.commit()
    for i in range(2):
        p = add_product(db, name=f"Phone {i}", slug=f"phone-{i}")
        p.category_id = phones.id
    db.commit()

    result = catalog.list_categories(db)
    assert [(c["slug"], c["product_count"]) for c in result] == [("phones", 2), ("laptops", 0)]


def test_product_filters_and_sorting(db):
    add_product(db, name="Budget Phone", slug="budget", original_price=300)
    add_product(db, name="Flagship", slug="flagship", original_price=1500, discount_price=1200)
    add_product(db, name="Sold Out", slug="sold-out", original_price=800, stock_quantity=0)

    by_price = catalog.list_products(db, sort_by="price", order="desc")
    assert [p.slug for p in by_price["items"]] == ["flagship", "sold-out", "budget"]

    in_range = catalog.list_products(db, min_price=500, max_price=1250)
    assert sorted(p.slug for p in in_range["items"]) == ["flagship", "sold-out"]

    available = catalog.list_products(db, in_stock=True)
    assert available["total"] == 2

    search = catalog.list_products(db, q="phone")
    assert [p.slug for p in search["items"]] == ["budget"]


def test_variant_attributes_are_converted(db):
    product = add_product(db, attributes=[("Storage", [("128GB", 0, 5), ("256GB", 200, 0)])])
    [attribute] = catalog.variant_attributes(product)
    assert attribute.name == "Storage"
    assert [o.price_modifier for o in attribute.options] == [0.0, 200.0]
    assert attribute.options[1].stock_quantity == 0


@pytest.mark.parametrize("total,expected", [(1320.0, 132000), (19.99, 1999), (0.1, 10)])
def test_widget_amount_in_minor_units(total, expected):
    config = build_widget_config("VT-1", "ama@example.com", total)
    assert config["amount"] == expected
    assert config["ref"] == "VT-1"
    assert config["metadata"]["order_number"] == "VT-1"
    assert config["currency"] == settings.CURRENCY
