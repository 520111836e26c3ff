from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from storefront.services.pricing import CartTotals


# Request schema for adding a product to the cart
# variants maps attribute id -> option id
class CartAddItem(BaseModel):
    product_id: int
    quantity: int = Field(1, gt=0)
    variants: Dict[str, int] = {}


# Request schema for changing a line quantity (0 removes the line)
class CartUpdateItem(BaseModel):
    quantity: int = Field(ge=0)


class CouponApply(BaseModel):
    code: str
    delivery_option_id: Optional[int] = None


class CartLineOut(BaseModel):
    line_id: str
    product_id: Optional[int] = None
    name: str
    slug: Optional[str] = None
    thumbnail: Optional[str] = None
    base_price: float
    unit_price: float
    quantity: int
    subtotal: float
    variants: Dict[str, str] = {}
    variant_text: str = ""


class AppliedCouponOut(BaseModel):
    code: str
    type: str
    discount_amount: float
    free_delivery: bool


# Response schema for the entire cart summary
class CartOut(BaseModel):
    lines: List[CartLineOut]
    item_count: int
    totals: CartTotals
    coupon: Optional[AppliedCouponOut] = None
    discount_text: str
