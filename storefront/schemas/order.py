from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime


PaymentMethod = Literal["cash_on_delivery", "mobile_money", "card", "paystack"]


# Address the order is delivered to (or contact details for pickup)
class DeliveryAddress(BaseModel):
    full_name: str = Field(min_length=1)
    email: str = Field(pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    phone: str = Field(min_length=5)
    street_address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    region: str = Field(min_length=1)
    postal_code: Optional[str] = None
    country: str = "Ghana"


# Snapshot of the delivery option the customer picked
class DeliveryChoice(BaseModel):
    id: Optional[int] = None
    name: str
    description: Optional[str] = ""
    price: float = Field(ge=0)
    type: Literal["delivery", "pickup"] = "delivery"
    estimated_days: Optional[int] = None


# Input schema for checkout; items come from the session cart
class CheckoutPayload(BaseModel):
    delivery_address: DeliveryAddress
    delivery_option_id: int
    payment_method: PaymentMethod = "cash_on_delivery"
    notes: Optional[str] = None


class OrderItemOut(BaseModel):
    product_id: Optional[int] = None
    product_name: str
    product_image: Optional[str] = None
    quantity: int
    unit_price: float
    subtotal: float
    selected_variants: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: Optional[Any] = None
    order_number: str
    user_id: Optional[str] = None
    status: str
    payment_status: str
    payment_method: str
    subtotal: float
    discount: float
    delivery_fee: float
    tax: float
    total: float
    discount_code: Optional[str] = None
    delivery_address: Dict[str, Any]
    delivery_option: Dict[str, Any]
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemOut] = []

    class Config:
        from_attributes = True


class CheckoutResponse(BaseModel):
    order: OrderOut
    source: Literal["api", "database"]
    payment: Optional[Dict[str, Any]] = None


# Schema for paginated order lists
class OrdersPage(BaseModel):
    items: List[OrderOut]
    total: int
    page: int
    page_size: int


# Schema for updating order status
class OrderStatusPatch(BaseModel):
    status: Optional[str] = None
    payment_status: Optional[str] = None
