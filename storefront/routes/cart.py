# storefront/routes/cart.py
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.models.delivery import DeliveryOption
from storefront.models.product import Product
from storefront.schemas.cart import AppliedCouponOut, CartAddItem, CartLineOut, CartOut, CartUpdateItem, CouponApply
from storefront.services import catalog
from storefront.services.cart import Cart, CartRegistry
from storefront.services.cart_sync import CartSyncBridge
from storefront.services.coupons import CouponApplier, describe_discount, summarize
from storefront.services.settings import SettingsService
from storefront.services.variants import Selection, default_selection, describe_selection, select_option
from storefront.utils.audit import write_log
from storefront.utils.deps import (
    cart_key,
    get_cart,
    get_cart_key,
    get_cart_registry,
    get_cart_sync,
    get_coupon_applier,
    get_settings_service,
)
from storefront.utils.errors import ActionInProgress, CouponError
from storefront.utils.tokenJWT import AuthSession, get_current_session, get_optional_session

router = APIRouter(prefix="/cart", tags=["Cart"])


def _user_id(session: Optional[AuthSession]) -> Optional[str]:
    return session.user_id if session else None


def _delivery_fee(db: Session, delivery_option_id: Optional[int]) -> float:
    # No option picked yet: totals are shown without delivery
    if delivery_option_id is None:
        return 0.0
    option = db.query(DeliveryOption).filter(
        DeliveryOption.id == delivery_option_id, DeliveryOption.is_active.is_(True)
    ).first()
    if not option:
        raise HTTPException(status_code=404, detail="Delivery option not found")
    return float(option.price)


def cart_to_out(cart: Cart, delivery_fee: float = 0.0) -> CartOut:
    lines = [
        CartLineOut(
            line_id=line.line_id,
            product_id=line.product_id,
            name=line.name,
            slug=line.slug,
            thumbnail=line.thumbnail,
            base_price=line.base_price,
            unit_price=line.unit_price,
            quantity=line.quantity,
            subtotal=line.subtotal,
            variants={
                option.attribute_name or attr: option.label or option.value
                for attr, option in line.selected_variants.items()
            },
            variant_text=describe_selection(line.selected_variants),
        )
        for line in cart.lines
    ]

    applied = cart.applied_coupon
    coupon = None
    if applied is not None:
        coupon = AppliedCouponOut(
            code=applied.code,
            type=applied.decision.type,
            discount_amount=applied.discount_amount,
            free_delivery=applied.frees_delivery_at(delivery_fee),
        )

    return CartOut(
        lines=lines,
        item_count=cart.item_count,
        totals=summarize(cart, delivery_fee),
        coupon=coupon,
        discount_text=describe_discount(applied, delivery_fee),
    )


def _resolve_selection(product: Product, requested: dict) -> Selection:
    attributes = catalog.variant_attributes(product)
    # First in-stock option of every attribute, then the customer's choices on top
    selection = default_selection(attributes)
    by_id = {str(a.id): a for a in attributes}

    for attribute_id, option_id in requested.items():
        attribute = by_id.get(str(attribute_id))
        if attribute is None:
            raise HTTPException(status_code=400, detail=f"Unknown attribute {attribute_id}")
        option = next((o for o in attribute.options if o.id == option_id), None)
        if option is None:
            raise HTTPException(status_code=400, detail=f"Unknown option {option_id} for {attribute.name}")
        try:
            selection = select_option(selection, attribute.id, option)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    for attribute in attributes:
        if attribute.is_required and str(attribute.id) not in selection:
            raise HTTPException(status_code=400, detail=f"{attribute.name} is out of stock")
    return selection


@router.get("", response_model=CartOut)
def get_cart_view(
    delivery_option_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    cart: Cart = Depends(get_cart),
):
    return cart_to_out(cart, _delivery_fee(db, delivery_option_id))


@router.post("/items", response_model=CartOut, status_code=status.HTTP_200_OK)
async def add_to_cart(
    payload: CartAddItem,
    request: Request,
    db: Session = Depends(get_db),
    cart: Cart = Depends(get_cart),
    session: Optional[AuthSession] = Depends(get_optional_session),
    sync: CartSyncBridge = Depends(get_cart_sync),
    settings_service: SettingsService = Depends(get_settings_service),
):
    product = db.query(Product).filter(Product.id == payload.product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    # Out-of-stock products can only be ordered when backorders are allowed
    available = bool(product.in_stock) and (product.stock_quantity or 0) > 0
    if not available and not await settings_service.allow_backorders():
        raise HTTPException(status_code=400, detail="Product is out of stock")

    selection = _resolve_selection(product, payload.variants)
    line = cart.add(catalog.snapshot(db, product), payload.quantity, selection)
    await sync.push(session, cart)

    out = cart_to_out(cart)
    write_log(
        db,
        user_id=_user_id(session),
        action="CART_ADD",
        resource="cart",
        status="SUCCESS",
        request=request,
        meta={"product_id": product.id, "line_id": line.line_id, "qty": payload.quantity, "total": out.totals.total},
    )
    return out


@router.put("/items/{line_id}", response_model=CartOut)
async def update_cart_item(
    line_id: str,
    payload: CartUpdateItem,
    request: Request,
    db: Session = Depends(get_db),
    cart: Cart = Depends(get_cart),
    session: Optional[AuthSession] = Depends(get_optional_session),
    sync: CartSyncBridge = Depends(get_cart_sync),
):
    try:
        cart.update_quantity(line_id, payload.quantity)
    except KeyError:
        raise HTTPException(status_code=404, detail="Cart item not found")
    await sync.push(session, cart)

    out = cart_to_out(cart)
    write_log(
        db,
        user_id=_user_id(session),
        action="CART_UPDATE",
        resource="cart",
        status="SUCCESS",
        request=request,
        meta={"line_id": line_id, "qty": payload.quantity, "total": out.totals.total},
    )
    return out


@router.delete("/items/{line_id}", response_model=CartOut)
async def delete_cart_item(
    line_id: str,
    request: Request,
    db: Session = Depends(get_db),
    cart: Cart = Depends(get_cart),
    session: Optional[AuthSession] = Depends(get_optional_session),
    sync: CartSyncBridge = Depends(get_cart_sync),
):
    try:
        cart.remove(line_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Cart item not found")
    await sync.push(session, cart)

    out = cart_to_out(cart)
    write_log(
        db,
        user_id=_user_id(session),
        action="CART_DELETE",
        resource="cart",
        status="SUCCESS",
        request=request,
        meta={"line_id": line_id, "cart_items": len(out.lines), "total": out.totals.total},
    )
    return out


@router.delete("", response_model=CartOut)
async def clear_cart(
    cart: Cart = Depends(get_cart),
    key: str = Depends(get_cart_key),
    registry: CartRegistry = Depends(get_cart_registry),
    session: Optional[AuthSession] = Depends(get_optional_session),
    sync: CartSyncBridge = Depends(get_cart_sync),
):
    cart.clear()
    await sync.clear(session)
    # An empty cart is not worth keeping in memory
    registry.drop(key)
    return cart_to_out(cart)


@router.post("/coupon", response_model=CartOut)
async def apply_coupon(
    payload: CouponApply,
    request: Request,
    db: Session = Depends(get_db),
    cart: Cart = Depends(get_cart),
    session: Optional[AuthSession] = Depends(get_optional_session),
    applier: CouponApplier = Depends(get_coupon_applier),
):
    fee = _delivery_fee(db, payload.delivery_option_id)
    try:
        applied = await applier.apply(cart, payload.code, fee)
    except ActionInProgress as e:
        raise HTTPException(status_code=409, detail=e.message)
    except CouponError as e:
        write_log(
            db,
            user_id=_user_id(session),
            action="COUPON_APPLY",
            resource="cart",
            status="FAIL",
            request=request,
            meta={"code": payload.code, "error": e.message},
        )
        raise HTTPException(status_code=400, detail=e.message)

    write_log(
        db,
        user_id=_user_id(session),
        action="COUPON_APPLY",
        resource="cart",
        status="SUCCESS",
        request=request,
        meta={"code": applied.code, "discount": applied.discount_amount},
    )
    return cart_to_out(cart, fee)


@router.delete("/coupon", response_model=CartOut)
def remove_coupon(
    delivery_option_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    cart: Cart = Depends(get_cart),
    applier: CouponApplier = Depends(get_coupon_applier),
):
    applier.remove(cart)
    return cart_to_out(cart, _delivery_fee(db, delivery_option_id))


# Called by the client right after sign-in: the server cart replaces the local one
@router.post("/sync", response_model=CartOut)
async def sync_cart(
    request: Request,
    db: Session = Depends(get_db),
    cart: Cart = Depends(get_cart),
    registry: CartRegistry = Depends(get_cart_registry),
    session: AuthSession = Depends(get_current_session),
    sync: CartSyncBridge = Depends(get_cart_sync),
    x_cart_session: Optional[str] = Header(None),
):
    await sync.on_login(session, cart)
    # The guest cart of this browser is superseded
    if x_cart_session:
        registry.drop(cart_key(None, x_cart_session))
    out = cart_to_out(cart)
    write_log(
        db,
        user_id=session.user_id,
        action="CART_SYNC",
        resource="cart",
        status="SUCCESS",
        request=request,
        meta={"cart_items": len(out.lines)},
    )
    return out
