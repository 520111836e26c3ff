# storefront/routes/checkout.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.models.delivery import DeliveryOption
from storefront.schemas.order import CheckoutPayload, CheckoutResponse, DeliveryChoice
from storefront.services.cart import Cart, CartRegistry
from storefront.services.cart_sync import CartSyncBridge
from storefront.services.orders import Checkout, OrderGateway
from storefront.utils.audit import write_log
from storefront.utils.deps import get_cart, get_cart_key, get_cart_registry, get_cart_sync, get_order_gateway
from storefront.utils.errors import ActionInProgress, BackendResponseError, OrderPlacementError
from storefront.utils.paystack import build_widget_config
from storefront.utils.tokenJWT import AuthSession, get_optional_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["Checkout"])

# Paid through the inline widget in the browser
WIDGET_PAYMENT_METHODS = ("paystack", "card", "mobile_money")


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def place_order(
    payload: CheckoutPayload,
    request: Request,
    db: Session = Depends(get_db),
    cart: Cart = Depends(get_cart),
    key: str = Depends(get_cart_key),
    registry: CartRegistry = Depends(get_cart_registry),
    session: Optional[AuthSession] = Depends(get_optional_session),
    gateway: OrderGateway = Depends(get_order_gateway),
    sync: CartSyncBridge = Depends(get_cart_sync),
):
    if cart.is_empty:
        raise HTTPException(status_code=400, detail="Cart is empty")

    option = db.query(DeliveryOption).filter(
        DeliveryOption.id == payload.delivery_option_id, DeliveryOption.is_active.is_(True)
    ).first()
    if not option:
        raise HTTPException(status_code=404, detail="Delivery option not found")

    checkout = Checkout(
        lines=cart.lines,
        delivery_address=payload.delivery_address,
        delivery_option=DeliveryChoice.model_validate(option, from_attributes=True),
        payment_method=payload.payment_method,
        notes=payload.notes,
        coupon=cart.applied_coupon,
    )
    user_id = session.user_id if session else None

    try:
        with cart.pending("checkout"):
            placed = await gateway.place_order(db, checkout, session)
    except ActionInProgress as e:
        raise HTTPException(status_code=409, detail=e.message)
    except OrderPlacementError as e:
        # A 4xx from the backend means the order itself was refused
        rejected = isinstance(e.__cause__, BackendResponseError)
        write_log(
            db,
            user_id=user_id,
            action="CHECKOUT",
            resource="orders",
            status="FAIL",
            request=request,
            meta={"error": e.message, "items": len(checkout.lines)},
        )
        raise HTTPException(status_code=400 if rejected else 503, detail=e.message)

    cart.clear()
    registry.drop(key)
    await sync.clear(session)

    payment = None
    if payload.payment_method in WIDGET_PAYMENT_METHODS:
        payment = build_widget_config(
            placed.order_number,
            payload.delivery_address.email,
            placed.totals.total,
            metadata={"user_id": user_id} if user_id else None,
        )

    write_log(
        db,
        user_id=user_id,
        action="CHECKOUT",
        resource="orders",
        status="SUCCESS",
        request=request,
        meta={"order_number": placed.order_number, "total": placed.totals.total, "source": placed.source},
    )
    logger.info(f"Order {placed.order_number} placed via {placed.source}")
    return {"order": placed.record, "source": placed.source, "payment": payment}
