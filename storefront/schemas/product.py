# storefront/schemas/product.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from storefront.services.variants import VariantAttribute


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class CategoryOut(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None
    thumbnail: Optional[str] = None
    parent_id: Optional[int] = None
    product_count: int = 0


class BrandOut(ORMBase):
    id: int
    name: str
    slug: str
    logo_url: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None


# Product card shown in listings
class ProductCard(BaseModel):
    id: int
    name: str
    slug: str
    thumbnail: str
    original_price: float
    price: float
    discount_percentage: int = 0
    in_stock: bool
    stock_quantity: int
    featured: bool = False


class ProductPage(BaseModel):
    items: List[ProductCard]
    total: int
    page: int
    page_size: int


class ProductDetail(ProductCard):
    description: Optional[str] = None
    images: List[str] = []
    category: Optional[str] = None
    brand: Optional[str] = None
    low_stock: bool = False
    attributes: List[VariantAttribute] = []


class FlashDealProductOut(BaseModel):
    product_id: int
    name: str
    slug: str
    thumbnail: str
    original_price: float
    flash_price: float
    discount_percentage: float


class FlashDealOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    banner_image_url: Optional[str] = None
    start_time: datetime
    end_time: datetime
    products: List[FlashDealProductOut] = []


class DeliveryOptionOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    type: str
    estimated_days: Optional[int] = None
