# storefront/routes/admin_promotions.py
import logging
import secrets
import string
from datetime import timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.models.discount import Coupon, Discount
from storefront.models.flash_deal import FlashDeal, FlashDealProduct
from storefront.models.product import Product
from storefront.schemas.admin import (
    CouponIn,
    CouponOut,
    DiscountIn,
    DiscountOut,
    FlashDealAdminOut,
    FlashDealIn,
    FlashDealProductIn,
)
from storefront.utils.audit import write_log
from storefront.utils.tokenJWT import AuthSession, admin_required

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin Promotions"])

COUPON_ALPHABET = string.ascii_uppercase + string.digits
COUPON_LENGTH = 8


def generate_coupon_code(length: int = COUPON_LENGTH) -> str:
    return "".join(secrets.choice(COUPON_ALPHABET) for _ in range(length))


def _unused_coupon_code(db: Session, attempts: int = 10) -> str:
    for _ in range(attempts):
        code = generate_coupon_code()
        if not db.query(Coupon.id).filter(Coupon.code == code).first():
            return code
    raise HTTPException(status_code=500, detail="Could not generate a unique coupon code")


# --- Coupons ---

@router.get("/coupons", response_model=List[CouponOut])
def list_coupons(
    active_only: bool = False,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    query = db.query(Coupon)
    if active_only:
        query = query.filter(Coupon.is_active.is_(True))
    return query.order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()


@router.get("/coupons/generate-code")
def new_coupon_code(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    return {"code": _unused_coupon_code(db)}


@router.post("/coupons", response_model=CouponOut, status_code=status.HTTP_201_CREATED)
def create_coupon(
    payload: CouponIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    code = payload.code or _unused_coupon_code(db)
    if db.query(Coupon.id).filter(Coupon.code == code).first():
        raise HTTPException(status_code=400, detail=f"Coupon code {code} already exists")

    data = payload.model_dump(exclude={"code"}, exclude_none=True)
    coupon = Coupon(**data, code=code, created_by=session.user_id)
    db.add(coupon)
    db.commit()
    db.refresh(coupon)

    write_log(db, user_id=session.user_id, action="COUPON_CREATE", resource="coupons",
              request=request, meta={"coupon_id": coupon.id, "code": code})
    logger.info(f"Coupon {code} created by {session.user_id}")
    return coupon


@router.put("/coupons/{coupon_id}", response_model=CouponOut)
def update_coupon(
    coupon_id: int,
    payload: CouponIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    coupon = db.get(Coupon, coupon_id)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")

    if payload.code and payload.code != coupon.code:
        if db.query(Coupon.id).filter(Coupon.code == payload.code).first():
            raise HTTPException(status_code=400, detail=f"Coupon code {payload.code} already exists")
        coupon.code = payload.code

    for field, value in payload.model_dump(exclude={"code"}, exclude_none=True).items():
        setattr(coupon, field, value)
    db.commit()
    db.refresh(coupon)

    write_log(db, user_id=session.user_id, action="COUPON_UPDATE", resource="coupons",
              request=request, meta={"coupon_id": coupon_id})
    return coupon


@router.delete("/coupons/{coupon_id}")
def delete_coupon(
    coupon_id: int,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    coupon = db.get(Coupon, coupon_id)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    db.delete(coupon)
    db.commit()

    write_log(db, user_id=session.user_id, action="COUPON_DELETE", resource="coupons",
              request=request, meta={"coupon_id": coupon_id})
    return {"message": "Coupon deleted", "id": coupon_id}


# --- Automatic discounts ---

@router.get("/discounts", response_model=List[DiscountOut])
def list_discounts(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    return db.query(Discount).order_by(Discount.created_at.desc(), Discount.id.desc()).all()


@router.post("/discounts", response_model=DiscountOut, status_code=status.HTTP_201_CREATED)
def create_discount(
    payload: DiscountIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    discount = Discount(**payload.model_dump(exclude_none=True))
    db.add(discount)
    db.commit()
    db.refresh(discount)

    write_log(db, user_id=session.user_id, action="DISCOUNT_CREATE", resource="discounts",
              request=request, meta={"discount_id": discount.id, "type": discount.type})
    return discount


@router.put("/discounts/{discount_id}", response_model=DiscountOut)
def update_discount(
    discount_id: int,
    payload: DiscountIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    discount = db.get(Discount, discount_id)
    if not discount:
        raise HTTPException(status_code=404, detail="Discount not found")
    for field, value in payload.model_dump(exclude_none=True).items():
        setattr(discount, field, value)
    db.commit()
    db.refresh(discount)

    write_log(db, user_id=session.user_id, action="DISCOUNT_UPDATE", resource="discounts",
              request=request, meta={"discount_id": discount_id})
    return discount


@router.patch("/discounts/{discount_id}/toggle", response_model=DiscountOut)
def toggle_discount(
    discount_id: int,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    discount = db.get(Discount, discount_id)
    if not discount:
        raise HTTPException(status_code=404, detail="Discount not found")
    discount.is_active = not discount.is_active
    db.commit()
    db.refresh(discount)

    write_log(db, user_id=session.user_id, action="DISCOUNT_TOGGLE", resource="discounts",
              request=request, meta={"discount_id": discount_id, "is_active": discount.is_active})
    return discount


@router.delete("/discounts/{discount_id}")
def delete_discount(
    discount_id: int,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    discount = db.get(Discount, discount_id)
    if not discount:
        raise HTTPException(status_code=404, detail="Discount not found")
    db.delete(discount)
    db.commit()

    write_log(db, user_id=session.user_id, action="DISCOUNT_DELETE", resource="discounts",
              request=request, meta={"discount_id": discount_id})
    return {"message": "Discount deleted", "id": discount_id}


# --- Flash deals ---

def _naive_utc(value):
    # Deal windows are compared against naive UTC timestamps
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@router.get("/flash-deals", response_model=List[FlashDealAdminOut])
def list_flash_deals(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    return db.query(FlashDeal).order_by(FlashDeal.start_time.desc()).all()


@router.post("/flash-deals", response_model=FlashDealAdminOut, status_code=status.HTTP_201_CREATED)
def create_flash_deal(
    payload: FlashDealIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    data = payload.model_dump()
    data["start_time"] = _naive_utc(payload.start_time)
    data["end_time"] = _naive_utc(payload.end_time)
    deal = FlashDeal(**data)
    db.add(deal)
    db.commit()
    db.refresh(deal)

    write_log(db, user_id=session.user_id, action="FLASH_DEAL_CREATE", resource="flash_deals",
              request=request, meta={"flash_deal_id": deal.id})
    return deal


@router.put("/flash-deals/{deal_id}", response_model=FlashDealAdminOut)
def update_flash_deal(
    deal_id: int,
    payload: FlashDealIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    deal = db.get(FlashDeal, deal_id)
    if not deal:
        raise HTTPException(status_code=404, detail="Flash deal not found")
    data = payload.model_dump()
    data["start_time"] = _naive_utc(payload.start_time)
    data["end_time"] = _naive_utc(payload.end_time)
    for field, value in data.items():
        setattr(deal, field, value)
    db.commit()
    db.refresh(deal)

    write_log(db, user_id=session.user_id, action="FLASH_DEAL_UPDATE", resource="flash_deals",
              request=request, meta={"flash_deal_id": deal_id})
    return deal


@router.delete("/flash-deals/{deal_id}")
def delete_flash_deal(
    deal_id: int,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    deal = db.get(FlashDeal, deal_id)
    if not deal:
        raise HTTPException(status_code=404, detail="Flash deal not found")
    db.delete(deal)
    db.commit()

    write_log(db, user_id=session.user_id, action="FLASH_DEAL_DELETE", resource="flash_deals",
              request=request, meta={"flash_deal_id": deal_id})
    return {"message": "Flash deal deleted", "id": deal_id}


@router.post("/flash-deals/{deal_id}/products", response_model=FlashDealAdminOut)
def add_flash_deal_product(
    deal_id: int,
    payload: FlashDealProductIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    deal = db.get(FlashDeal, deal_id)
    if not deal:
        raise HTTPException(status_code=404, detail="Flash deal not found")
    if not db.get(Product, payload.product_id):
        raise HTTPException(status_code=404, detail="Product not found")

    # A product appears at most once per deal; adding again updates its pricing
    entry = next((p for p in deal.products if p.product_id == payload.product_id), None)
    if entry is None:
        entry = FlashDealProduct(product_id=payload.product_id)
        deal.products.append(entry)
    entry.discount_percentage = payload.discount_percentage
    entry.flash_price = payload.flash_price
    entry.sort_order = payload.sort_order
    db.commit()
    db.refresh(deal)

    write_log(db, user_id=session.user_id, action="FLASH_DEAL_ADD_PRODUCT", resource="flash_deals",
              request=request, meta={"flash_deal_id": deal_id, "product_id": payload.product_id})
    return deal


@router.delete("/flash-deals/{deal_id}/products/{product_id}", response_model=FlashDealAdminOut)
def remove_flash_deal_product(
    deal_id: int,
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    deal = db.get(FlashDeal, deal_id)
    if not deal:
        raise HTTPException(status_code=404, detail="Flash deal not found")
    entry = next((p for p in deal.products if p.product_id == product_id), None)
    if entry is None:
        raise HTTPException(status_code=404, detail="Product not in flash deal")

    deal.products.remove(entry)
    db.commit()
    db.refresh(deal)

    write_log(db, user_id=session.user_id, action="FLASH_DEAL_REMOVE_PRODUCT", resource="flash_deals",
              request=request, meta={"flash_deal_id": deal_id, "product_id": product_id})
    return deal
