# storefront/utils/deps.py
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from storefront.services.cart import Cart, CartRegistry
from storefront.services.cart_sync import CartSyncBridge
from storefront.services.coupons import CouponApplier
from storefront.services.orders import OrderGateway
from storefront.services.settings import SettingsService
from storefront.utils.api_client import BackendClient, get_backend_client
from storefront.utils.tokenJWT import AuthSession, get_optional_session

CART_SESSION_HEADER = "X-Cart-Session"


# Long-lived state lives on app.state, set up in main.py
def get_cart_registry(request: Request) -> CartRegistry:
    return request.app.state.carts


def get_settings_service(request: Request) -> SettingsService:
    return request.app.state.settings_service


def get_coupon_applier(client: BackendClient = Depends(get_backend_client)) -> CouponApplier:
    return CouponApplier(client)


def get_cart_sync(client: BackendClient = Depends(get_backend_client)) -> CartSyncBridge:
    return CartSyncBridge(client)


def get_order_gateway(client: BackendClient = Depends(get_backend_client)) -> OrderGateway:
    return OrderGateway(client)


def cart_key(session: Optional[AuthSession], cart_session: Optional[str]) -> str:
    if session is not None:
        return f"user:{session.user_id}"
    if cart_session and cart_session.strip():
        return f"anon:{cart_session.strip()}"
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Missing {CART_SESSION_HEADER} header",
    )


def get_cart_key(
    session: Optional[AuthSession] = Depends(get_optional_session),
    x_cart_session: Optional[str] = Header(None),
) -> str:
    return cart_key(session, x_cart_session)


def get_cart(
    registry: CartRegistry = Depends(get_cart_registry),
    key: str = Depends(get_cart_key),
) -> Cart:
    return registry.get(key)
