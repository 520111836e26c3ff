# storefront/services/catalog.py
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models.brand import Brand
from storefront.models.category import Category
from storefront.models.delivery import DeliveryOption
from storefront.models.flash_deal import FlashDeal
from storefront.models.product import Product
from storefront.services.cart import ProductSnapshot
from storefront.services.pricing import flash_price
from storefront.services.variants import VariantAttribute, VariantOption
from storefront.utils.helpers import image_url, money

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "name": Product.name,
    "price": Product.original_price,
    "newest": Product.created_at,
}


def utcnow() -> datetime:
    # Deal windows are stored as naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def effective_price(product: Product) -> float:
    if product.discount_price is not None and product.discount_price >= 0:
        return money(product.discount_price)
    return money(product.original_price)


def list_categories(db: Session) -> List[dict]:
    try:
        counts = dict(
            db.query(Product.category_id, func.count(Product.id))
            .group_by(Product.category_id)
            .all()
        )
        categories = db.query(Category).order_by(Category.display_order.asc(), Category.name.asc()).all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to read categories: {e}")
        return []

    return [
        {
            "id": c.id,
            "name": c.name,
            "slug": c.slug,
            "description": c.description,
            "icon": c.icon,
            "thumbnail": image_url(c.thumbnail) if c.thumbnail else None,
            "parent_id": c.parent_id,
            "product_count": counts.get(c.id, 0),
        }
        for c in categories
    ]


def list_brands(db: Session, mega_menu_only: bool = False) -> List[Brand]:
    try:
        query = db.query(Brand)
        if mega_menu_only:
            query = query.filter(Brand.show_in_mega_menu.is_(True))
        return query.order_by(Brand.display_order.asc(), Brand.name.asc()).all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to read brands: {e}")
        return []


def list_products(
    db: Session,
    *,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    in_stock: Optional[bool] = None,
    featured: Optional[bool] = None,
    q: Optional[str] = None,
    sort_by: str = "name",
    order: str = "asc",
    page: int = 1,
    page_size: int = 12,
):
    try:
        query = db.query(Product)

        # Category and brand are addressed by slug in storefront URLs
        if category:
            query = query.join(Category, Product.category_id == Category.id).filter(Category.slug == category)
        if brand:
            query = query.join(Brand, Product.brand_id == Brand.id).filter(Brand.slug == brand)

        price = func.coalesce(Product.discount_price, Product.original_price)
        if min_price is not None:
            query = query.filter(price >= min_price)
        if max_price is not None:
            query = query.filter(price <= max_price)

        if in_stock is not None:
            query = query.filter(Product.in_stock.is_(in_stock))
        if featured is not None:
            query = query.filter(Product.featured.is_(featured))

        if q:
            like = f"%{q}%"
            query = query.filter(or_(Product.name.ilike(like), Product.description.ilike(like)))

        sort_col = price if sort_by == "price" else SORT_FIELDS.get(sort_by, Product.name)
        query = query.order_by(sort_col.desc() if order == "desc" else sort_col.asc())

        total = query.count()
        items = query.offset((page - 1) * page_size).limit(page_size).all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to read products: {e}")
        return {"items": [], "total": 0, "page": page, "page_size": page_size}

    return {"items": items, "total": total, "page": page, "page_size": page_size}


def get_product(db: Session, slug: str) -> Optional[Product]:
    try:
        return db.query(Product).filter(Product.slug == slug).first()
    except SQLAlchemyError as e:
        logger.error(f"Failed to read product {slug}: {e}")
        return None


def variant_attributes(product: Product) -> List[VariantAttribute]:
    attributes = []
    for attribute in product.attributes:
        options = [
            VariantOption(
                id=o.id,
                attribute_id=attribute.id,
                attribute_name=attribute.name,
                label=o.label,
                value=o.value,
                price_modifier=o.price_modifier,
                stock_quantity=o.stock_quantity,
                sku_suffix=o.sku_suffix,
            )
            for o in attribute.options
        ]
        attributes.append(VariantAttribute(
            id=attribute.id,
            name=attribute.name,
            slug=attribute.slug,
            type=attribute.type or "select",
            is_required=bool(attribute.is_required),
            options=options,
        ))
    return attributes


def active_flash_deals(db: Session, now: Optional[datetime] = None) -> List[FlashDeal]:
    now = now or utcnow()
    try:
        return (
            db.query(FlashDeal)
            .filter(FlashDeal.is_active.is_(True), FlashDeal.start_time <= now, FlashDeal.end_time >= now)
            .order_by(FlashDeal.end_time.asc())
            .all()
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to read flash deals: {e}")
        return []


def flash_prices(db: Session, now: Optional[datetime] = None) -> Dict[int, float]:
    # product id -> lowest flash price across running deals
    prices: Dict[int, float] = {}
    for deal in active_flash_deals(db, now):
        for entry in deal.products:
            if entry.product is None:
                continue
            price = flash_price(effective_price(entry.product), entry.discount_percentage, entry.flash_price)
            current = prices.get(entry.product_id)
            if current is None or price < current:
                prices[entry.product_id] = price
    return prices


def flash_deal_out(deal: FlashDeal) -> dict:
    products = []
    for entry in deal.products:
        product = entry.product
        if product is None:
            continue
        base = effective_price(product)
        products.append({
            "product_id": entry.product_id,
            "name": product.name,
            "slug": product.slug,
            "thumbnail": image_url(product.thumbnail),
            "original_price": base,
            "flash_price": flash_price(base, entry.discount_percentage, entry.flash_price),
            "discount_percentage": entry.discount_percentage,
        })
    return {
        "id": deal.id,
        "title": deal.title,
        "description": deal.description,
        "banner_image_url": deal.banner_image_url,
        "start_time": deal.start_time,
        "end_time": deal.end_time,
        "products": products,
    }


def snapshot(db: Session, product: Product, now: Optional[datetime] = None) -> ProductSnapshot:
    base = flash_prices(db, now).get(product.id, effective_price(product))
    return ProductSnapshot(
        id=product.id,
        name=product.name,
        slug=product.slug,
        thumbnail=image_url(product.thumbnail),
        base_price=base,
    )


def list_delivery_options(db: Session) -> List[DeliveryOption]:
    try:
        return (
            db.query(DeliveryOption)
            .filter(DeliveryOption.is_active.is_(True))
            .order_by(DeliveryOption.display_order.asc(), DeliveryOption.price.asc())
            .all()
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to read delivery options: {e}")
        return []
