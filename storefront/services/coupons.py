"""
Coupon / discount application.

The backend decides whether a code applies and how much it takes off; we send
a snapshot of the cart, keep the decision on the cart and fold it into the
displayed totals. Removing a coupon never calls the server.
"""

import logging
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from storefront.services.cart import Cart
from storefront.services.pricing import CartTotals, compute_totals
from storefront.utils.api_client import BackendClient
from storefront.utils.errors import BackendError, CouponError
from storefront.utils.helpers import format_currency, money

logger = logging.getLogger(__name__)

APPLY_PATH = "/api/discounts/apply"


class DiscountDecision(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    discount_id: Optional[Union[str, int]] = Field(None, alias="discountId")
    code: str
    type: Literal["percentage", "fixed_amount", "free_shipping"]
    applies_to: Literal["all", "products", "shipping", "total"] = Field("all", alias="appliesTo")
    discount_amount: float = Field(0.0, alias="discountAmount", ge=0)
    adjusted_delivery_fee: Optional[float] = Field(None, alias="adjustedDeliveryFee", ge=0)


class AppliedCoupon(BaseModel):
    decision: DiscountDecision
    original_delivery_fee: float

    @property
    def code(self) -> str:
        return self.decision.code

    @property
    def discount_amount(self) -> float:
        return money(self.decision.discount_amount)

    def covers_fee(self, current_fee: float) -> bool:
        # The adjustment was decided for one delivery fee only
        return self.decision.adjusted_delivery_fee is not None and money(current_fee) == self.original_delivery_fee

    def delivery_fee(self, current_fee: float) -> float:
        if not self.covers_fee(current_fee):
            return money(current_fee)
        return money(self.decision.adjusted_delivery_fee)

    @property
    def frees_delivery(self) -> bool:
        adjusted = self.decision.adjusted_delivery_fee
        return self.original_delivery_fee > 0 and adjusted is not None and adjusted == 0

    def frees_delivery_at(self, current_fee: float) -> bool:
        return self.frees_delivery and self.covers_fee(current_fee)


def normalize_code(code: Optional[str]) -> str:
    normalized = (code or "").strip().upper()
    if not normalized:
        raise CouponError("Please enter a coupon code")
    return normalized


def cart_snapshot(cart: Cart, code: str, delivery_fee: float) -> dict:
    return {
        "code": code,
        "subtotal": cart.subtotal,
        "deliveryFee": money(delivery_fee),
        "items": [
            {
                "product_id": line.product_id,
                "product_name": line.name,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "subtotal": line.subtotal,
            }
            for line in cart.lines
        ],
    }


def describe_discount(applied: Optional[AppliedCoupon], delivery_fee: Optional[float] = None) -> str:
    if applied is None:
        return "No discount"
    free = applied.frees_delivery if delivery_fee is None else applied.frees_delivery_at(delivery_fee)
    if applied.discount_amount == 0:
        return "Free delivery applied" if free else "No discount"
    text = f"{format_currency(applied.discount_amount)} discount applied"
    if free:
        text += " + free delivery"
    return text


def summarize(cart: Cart, delivery_fee: float, tax_rate: Optional[float] = None) -> CartTotals:
    # Without a coupon the original fee applies, so removal restores the old total
    applied = cart.applied_coupon
    fee = applied.delivery_fee(delivery_fee) if applied else delivery_fee
    discount = applied.discount_amount if applied else 0.0
    return compute_totals(cart.subtotal, fee, discount, tax_rate)


class CouponApplier:
    def __init__(self, client: BackendClient):
        self.client = client

    async def apply(self, cart: Cart, code: str, delivery_fee: float) -> AppliedCoupon:
        normalized = normalize_code(code)
        if cart.is_empty:
            raise CouponError("Your cart is empty")

        with cart.pending("coupon"):
            payload = cart_snapshot(cart, normalized, delivery_fee)
            try:
                result = await self.client.post(APPLY_PATH, json=payload)
            except BackendError as e:
                raise CouponError(e.message or "Failed to apply coupon. Please try again.") from e

            data = result.get("data") if isinstance(result, dict) else None
            if not isinstance(data, dict):
                logger.error(f"Discount endpoint returned unexpected body for {normalized}")
                raise CouponError("Failed to apply coupon. Please try again.")
            try:
                decision = DiscountDecision.model_validate(data)
            except ValidationError as e:
                logger.error(f"Invalid discount decision for {normalized}: {e}")
                raise CouponError("Failed to apply coupon. Please try again.") from e

        applied = AppliedCoupon(decision=decision, original_delivery_fee=money(delivery_fee))
        # One coupon per cart: the new one replaces the previous
        cart.applied_coupon = applied
        logger.info(f"Coupon {decision.code} applied: discount={applied.discount_amount}")
        return applied

    def remove(self, cart: Cart) -> None:
        cart.applied_coupon = None
