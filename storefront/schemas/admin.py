# storefront/schemas/admin.py
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- Categories / brands ---

class CategoryIn(BaseModel):
    name: str = Field(min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    thumbnail: Optional[str] = None
    parent_id: Optional[int] = None
    display_order: int = 0


class CategoryAdminOut(ORMBase):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None
    thumbnail: Optional[str] = None
    parent_id: Optional[int] = None
    display_order: int = 0


class BrandIn(BaseModel):
    name: str = Field(min_length=1)
    slug: Optional[str] = None
    logo_url: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    show_in_mega_menu: bool = False
    display_order: int = 0


class BrandAdminOut(ORMBase):
    id: int
    name: str
    slug: str
    logo_url: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    show_in_mega_menu: bool = False
    display_order: int = 0


# --- Products with attributes and options ---

class AttributeOptionIn(BaseModel):
    value: str = Field(min_length=1)
    label: Optional[str] = None
    price_modifier: float = 0.0
    stock_quantity: int = Field(0, ge=0)
    sku_suffix: Optional[str] = None
    display_order: int = 0


class AttributeIn(BaseModel):
    name: str = Field(min_length=1)
    slug: Optional[str] = None
    type: Literal["select", "radio", "color", "size"] = "select"
    is_required: bool = False
    display_order: int = 0
    options: List[AttributeOptionIn] = []


class ProductIn(BaseModel):
    name: str = Field(min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    brand_id: Optional[int] = None
    original_price: float = Field(ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    stock_quantity: int = Field(0, ge=0)
    thumbnail: Optional[str] = None
    images: List[str] = []
    featured: bool = False
    attributes: List[AttributeIn] = []

    @model_validator(mode="after")
    def _discount_below_original(self):
        if self.discount_price is not None and self.discount_price > self.original_price:
            raise ValueError("Discount price cannot exceed the original price")
        return self


# Schema for partial product updates
class ProductPatch(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    brand_id: Optional[int] = None
    original_price: Optional[float] = Field(None, ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    stock_quantity: Optional[int] = Field(None, ge=0)
    thumbnail: Optional[str] = None
    images: Optional[List[str]] = None
    featured: Optional[bool] = None


class AttributeOptionOut(ORMBase):
    id: int
    value: str
    label: str
    price_modifier: Optional[float] = 0
    stock_quantity: int
    sku_suffix: Optional[str] = None
    display_order: int = 0


class AttributeOut(ORMBase):
    id: int
    name: str
    slug: str
    type: str
    is_required: bool
    display_order: int = 0
    options: List[AttributeOptionOut] = []


class ProductAdminOut(ORMBase):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    category_id: Optional[int] = None
    brand_id: Optional[int] = None
    original_price: float
    discount_price: Optional[float] = None
    stock_quantity: int
    in_stock: bool
    thumbnail: Optional[str] = None
    images: Optional[List[str]] = None
    featured: bool = False
    attributes: List[AttributeOut] = []


class ProductAdminPage(BaseModel):
    items: List[ProductAdminOut]
    total: int
    page: int
    page_size: int


# --- Promotions ---

class CouponIn(BaseModel):
    code: Optional[str] = Field(None, max_length=32)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    type: Literal["percentage", "fixed_amount", "free_delivery"]
    value: float = Field(0, ge=0)
    minimum_amount: float = Field(0, ge=0)
    maximum_discount: Optional[float] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    is_active: bool = True
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def _upper(cls, v):
        return v.strip().upper() if v else None

    @model_validator(mode="after")
    def _check_value(self):
        if self.type == "percentage" and self.value > 100:
            raise ValueError("Percentage must be between 0 and 100")
        if self.valid_from and self.valid_until and self.valid_until < self.valid_from:
            raise ValueError("valid_until must be after valid_from")
        return self


class CouponOut(ORMBase):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    type: str
    value: float
    minimum_amount: float
    maximum_discount: Optional[float] = None
    usage_limit: Optional[int] = None
    used_count: int
    is_active: bool
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    created_by: Optional[str] = None


class DiscountIn(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    type: Literal["percentage", "fixed_amount", "free_shipping"]
    value: float = Field(0, ge=0)
    minimum_amount: float = Field(0, ge=0)
    maximum_discount: Optional[float] = Field(None, ge=0)
    is_active: bool = True
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    usage_limit: Optional[int] = Field(None, ge=1)
    applies_to: Literal["all", "products", "shipping", "total"] = "all"

    @model_validator(mode="after")
    def _check_percentage(self):
        if self.type == "percentage":
            if not 0 <= self.value <= 100:
                raise ValueError("Percentage must be between 0 and 100")
            # Percentage discounts only ever apply to products
            self.applies_to = "products"
        return self


class DiscountOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    type: str
    value: float
    minimum_amount: float
    maximum_discount: Optional[float] = None
    is_active: bool
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    usage_limit: Optional[int] = None
    used_count: int
    applies_to: str


class FlashDealIn(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    banner_image_url: Optional[str] = None
    start_time: datetime
    end_time: datetime
    is_active: bool = True

    @model_validator(mode="after")
    def _window(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class FlashDealProductIn(BaseModel):
    product_id: int
    discount_percentage: float = Field(0, ge=0, le=100)
    flash_price: Optional[float] = Field(None, ge=0)
    sort_order: int = 0


class FlashDealProductAdminOut(ORMBase):
    id: int
    product_id: int
    discount_percentage: float
    flash_price: Optional[float] = None
    sort_order: int = 0


class FlashDealAdminOut(ORMBase):
    id: int
    title: str
    description: Optional[str] = None
    banner_image_url: Optional[str] = None
    start_time: datetime
    end_time: datetime
    is_active: bool
    products: List[FlashDealProductAdminOut] = []


# --- Store settings / delivery ---

class DeliveryOptionIn(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    price: float = Field(0, ge=0)
    type: str = "delivery"
    estimated_days: Optional[int] = Field(None, ge=0)
    is_active: bool = True
    display_order: int = 0

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v):
        # Anything that is not pickup is shipped
        return "pickup" if str(v or "").strip().lower() == "pickup" else "delivery"


class DeliveryOptionAdminOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    type: str
    estimated_days: Optional[int] = None
    is_active: bool
    display_order: int = 0


class SettingUpdate(BaseModel):
    key: str = Field(min_length=1)
    value: Optional[Any] = None
    category: Optional[str] = None
    description: Optional[str] = None


class SettingsBulkUpdate(BaseModel):
    settings: List[SettingUpdate]
