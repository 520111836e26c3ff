"""
Order placement.

Orders are created by the backend API. Transport failures and 5xx answers are
retried with exponential backoff under a single idempotency key, so a retry
cannot create a second order. Only when every attempt failed do we write the
order ourselves, header and items in one transaction.
"""

import asyncio
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.models.order import Order, OrderItem, OrderStatus, PaymentStatus
from storefront.schemas.order import DeliveryAddress, DeliveryChoice, OrderOut, PaymentMethod
from storefront.services.cart import CartLine
from storefront.services.coupons import AppliedCoupon
from storefront.services.pricing import CartTotals, compute_totals
from storefront.utils.api_client import BackendClient
from storefront.utils.errors import (
    BackendResponseError,
    BackendUnavailable,
    MalformedResponse,
    OrderPlacementError,
    is_unique_violation,
)
from storefront.utils.helpers import money
from storefront.utils.tokenJWT import AuthSession

logger = logging.getLogger(__name__)

ORDERS_PATH = "/api/orders"

ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.REFUNDED},
    PaymentStatus.PAID: set(),
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}


def can_transition(current: str, new: str) -> bool:
    try:
        return OrderStatus(new) in ORDER_TRANSITIONS[OrderStatus(current)]
    except ValueError:
        return False


def can_transition_payment(current: str, new: str) -> bool:
    try:
        return PaymentStatus(new) in PAYMENT_TRANSITIONS[PaymentStatus(current)]
    except ValueError:
        return False


def generate_order_number(now: Optional[datetime] = None, prefix: Optional[str] = None) -> str:
    # Last six digits of the ms timestamp + day/month; collisions are possible
    now = now or datetime.now(timezone.utc)
    millis = str(int(now.timestamp() * 1000))
    return f"{prefix if prefix is not None else settings.ORDER_NUMBER_PREFIX}-{millis[-6:]}{now:%d%m}"


class Checkout(BaseModel):
    lines: List[CartLine]
    delivery_address: DeliveryAddress
    delivery_option: DeliveryChoice
    payment_method: PaymentMethod = "cash_on_delivery"
    notes: Optional[str] = None
    coupon: Optional[AppliedCoupon] = None


def checkout_totals(checkout: Checkout, tax_rate: Optional[float] = None) -> CartTotals:
    subtotal = sum(line.subtotal for line in checkout.lines)
    fee = checkout.delivery_option.price
    discount = 0.0
    if checkout.coupon is not None:
        fee = checkout.coupon.delivery_fee(fee)
        discount = checkout.coupon.discount_amount
    return compute_totals(subtotal, fee, discount, tax_rate)


def build_order_payload(checkout: Checkout, totals: CartTotals, order_number: str,
                        user_id: Optional[str]) -> Dict[str, Any]:
    return {
        "order_number": order_number,
        "user_id": user_id,
        "status": OrderStatus.PENDING.value,
        "payment_status": PaymentStatus.PENDING.value,
        "payment_method": checkout.payment_method,
        "subtotal": totals.subtotal,
        "discount": totals.discount,
        "delivery_fee": totals.delivery_fee,
        "tax": totals.tax,
        "total": totals.total,
        "discount_code": checkout.coupon.code if checkout.coupon else None,
        "delivery_address": checkout.delivery_address.model_dump(),
        "delivery_option": checkout.delivery_option.model_dump(),
        "notes": checkout.notes,
        "order_items": [
            {
                "product_id": line.product_id,
                "product_name": line.name,
                "product_image": line.thumbnail,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "subtotal": line.subtotal,
                "selected_variants": {
                    attr: option.model_dump() for attr, option in line.selected_variants.items()
                },
            }
            for line in checkout.lines
        ],
    }


@dataclass
class PlacedOrder:
    order_number: str
    totals: CartTotals
    source: str # "api" or "database"
    record: OrderOut


class OrderGateway:
    def __init__(
        self,
        client: BackendClient,
        max_attempts: Optional[int] = None,
        backoff: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.client = client
        self.max_attempts = max(1, max_attempts if max_attempts is not None else settings.ORDER_MAX_ATTEMPTS)
        self.backoff = backoff if backoff is not None else settings.ORDER_RETRY_BACKOFF
        self.sleep = sleep
        self.clock = clock

    async def place_order(self, db: Session, checkout: Checkout, session: Optional[AuthSession]) -> PlacedOrder:
        if not checkout.lines:
            raise OrderPlacementError("Cart is empty")

        totals = checkout_totals(checkout)
        user_id = session.user_id if session else None
        payload = build_order_payload(checkout, totals, generate_order_number(self.clock()), user_id)
        idempotency_key = str(uuid.uuid4())

        try:
            created = await self._submit(payload, session, idempotency_key)
            record = _merge_record(payload, created)
            return PlacedOrder(order_number=record.order_number, totals=totals, source="api", record=record)
        except (BackendUnavailable, BackendResponseError) as e:
            logger.warning(
                f"Order API failed after {self.max_attempts} attempts ({e.message}), "
                f"writing order {payload['order_number']} to the database"
            )

        order = self._write_to_database(db, payload)
        return PlacedOrder(
            order_number=order.order_number, totals=totals, source="database", record=OrderOut.model_validate(order)
        )

    async def _submit(self, payload: Dict[str, Any], session: Optional[AuthSession], idempotency_key: str):
        token = session.access_token if session else None
        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await self.client.post(
                    ORDERS_PATH, json=payload, token=token, headers={"Idempotency-Key": idempotency_key}
                )
                if isinstance(result, dict) and isinstance(result.get("data"), dict):
                    return result["data"]
                return result if isinstance(result, dict) else {}
            except MalformedResponse:
                # Accepted by the backend, only the answer is unreadable; retrying would order twice
                logger.warning(f"Order {payload['order_number']} accepted with an unreadable response")
                return {}
            except BackendResponseError as e:
                # 4xx: the server looked at the order and refused it
                if e.status_code is not None and 400 <= e.status_code < 500:
                    raise OrderPlacementError(e.message) from e
                last_error = e
            except BackendUnavailable as e:
                last_error = e

            if attempt < self.max_attempts:
                delay = self.backoff * (2 ** (attempt - 1))
                logger.warning(f"Order attempt {attempt} failed: {last_error.message}; retrying in {delay:.2f}s")
                await self.sleep(delay)
        raise last_error

    def _write_to_database(self, db: Session, payload: Dict[str, Any]) -> Order:
        for attempt in range(2):
            order = Order(**{k: v for k, v in payload.items() if k != "order_items"})
            order.items = [OrderItem(**item) for item in payload["order_items"]]
            db.add(order)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                if attempt == 0 and is_unique_violation(e):
                    # Order number taken; add a random suffix and try once more
                    payload["order_number"] = f"{payload['order_number']}-{secrets.token_hex(2).upper()}"
                    continue
                logger.error(f"Fallback order write failed: {e}")
                raise OrderPlacementError("Failed to place order") from e
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Fallback order write failed: {e}")
                raise OrderPlacementError("Failed to place order") from e
            db.refresh(order)
            return order
        raise OrderPlacementError("Failed to place order")


MONEY_FIELDS = ("subtotal", "discount", "delivery_fee", "tax", "total")


def _rounded(record: Dict[str, Any]) -> Dict[str, Any]:
    rounded = dict(record)
    for key in MONEY_FIELDS:
        if isinstance(rounded.get(key), (int, float)):
            rounded[key] = money(rounded[key])
    return rounded


def _merge_record(payload: Dict[str, Any], created: Dict[str, Any]) -> OrderOut:
    """
    Order record for the response, built after the backend accepted the order.
    Fields the backend sent back win; when they do not fit the response shape
    the payload we sent is used instead, so an accepted order is never reported
    as failed.
    """
    sent = {k: v for k, v in payload.items() if k != "order_items"}
    sent["items"] = payload["order_items"]

    returned = {k: v for k, v in created.items() if v is not None and k not in ("items", "order_items")}
    returned_items = created.get("items") or created.get("order_items")
    merged = {**sent, **returned}

    candidates = []
    if returned_items:
        candidates.append({**merged, "items": returned_items})
    candidates.append(merged)
    for candidate in candidates:
        try:
            return OrderOut.model_validate(_rounded(candidate))
        except ValidationError as e:
            logger.warning(f"Order {payload['order_number']} created, response did not match: {e.error_count()} errors")

    # Only the backend's id and order number are kept from its answer
    fallback = dict(sent)
    if created.get("id") is not None:
        fallback["id"] = created["id"]
    if isinstance(created.get("order_number"), str) and created["order_number"]:
        fallback["order_number"] = created["order_number"]
    return OrderOut.model_validate(_rounded(fallback))
