# storefront/routes/shop.py
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.models.product import Product
from storefront.schemas.product import (
    BrandOut,
    CategoryOut,
    DeliveryOptionOut,
    FlashDealOut,
    ProductDetail,
    ProductPage,
)
from storefront.services import catalog
from storefront.services.settings import SettingsService
from storefront.utils.deps import get_settings_service
from storefront.utils.helpers import calculate_discount_percentage, image_url

router = APIRouter(
    prefix="/shop",
    tags=["Shop"]
)


def _card(product: Product, flash_prices: dict) -> dict:
    original = float(product.original_price)
    price = flash_prices.get(product.id, catalog.effective_price(product))
    return {
        "id": product.id,
        "name": product.name,
        "slug": product.slug,
        "thumbnail": image_url(product.thumbnail),
        "original_price": original,
        "price": price,
        "discount_percentage": calculate_discount_percentage(original, price),
        "in_stock": bool(product.in_stock) and (product.stock_quantity or 0) > 0,
        "stock_quantity": product.stock_quantity or 0,
        "featured": bool(product.featured),
    }


# Categories with the number of products in each
@router.get("/categories", response_model=List[CategoryOut])
def get_categories(db: Session = Depends(get_db)):
    return catalog.list_categories(db)


@router.get("/brands", response_model=List[BrandOut])
def get_brands(
    mega_menu: bool = Query(False, description="Only brands shown in the mega menu"),
    db: Session = Depends(get_db),
):
    return catalog.list_brands(db, mega_menu_only=mega_menu)


@router.get("/products", response_model=ProductPage)
def list_products_for_shop(
    q: Optional[str] = Query(None, description="Search by name or description"),
    category: Optional[str] = Query(None, description="Category slug"),
    brand: Optional[str] = Query(None, description="Brand slug"),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    in_stock: Optional[bool] = None,
    featured: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(12, ge=1, le=100),
    sort_by: Literal["name", "price", "newest"] = "name",
    order: Literal["asc", "desc"] = "asc",
    db: Session = Depends(get_db),
):
    result = catalog.list_products(
        db,
        category=category,
        brand=brand,
        min_price=min_price,
        max_price=max_price,
        in_stock=in_stock,
        featured=featured,
        q=q,
        sort_by=sort_by,
        order=order,
        page=page,
        page_size=page_size,
    )
    flash = catalog.flash_prices(db)
    return {**result, "items": [_card(p, flash) for p in result["items"]]}


@router.get("/products/{slug}", response_model=ProductDetail)
async def get_product_detail(
    slug: str,
    db: Session = Depends(get_db),
    settings_service: SettingsService = Depends(get_settings_service),
):
    product = catalog.get_product(db, slug)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    threshold = await settings_service.low_stock_threshold()
    card = _card(product, catalog.flash_prices(db))
    return {
        **card,
        "description": product.description,
        "images": [image_url(i) for i in (product.images or [])],
        "category": product.category.name if product.category else None,
        "brand": product.brand.name if product.brand else None,
        "low_stock": 0 < card["stock_quantity"] <= threshold,
        "attributes": catalog.variant_attributes(product),
    }


@router.get("/flash-deals", response_model=List[FlashDealOut])
def get_flash_deals(db: Session = Depends(get_db)):
    return [catalog.flash_deal_out(deal) for deal in catalog.active_flash_deals(db)]


@router.get("/delivery-options", response_model=List[DeliveryOptionOut])
def get_delivery_options(db: Session = Depends(get_db)):
    return catalog.list_delivery_options(db)
