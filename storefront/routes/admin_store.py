# storefront/routes/admin_store.py
import logging
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.models.delivery import DeliveryOption
from storefront.models.order import Order
from storefront.schemas.admin import DeliveryOptionAdminOut, DeliveryOptionIn, SettingsBulkUpdate
from storefront.schemas.order import OrderOut, OrdersPage, OrderStatusPatch
from storefront.services.orders import can_transition, can_transition_payment
from storefront.services.settings import SettingsService
from storefront.utils.audit import write_log
from storefront.utils.deps import get_settings_service
from storefront.utils.tokenJWT import AuthSession, admin_required

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin Store"])


# --- Delivery options ---

@router.get("/delivery-options", response_model=List[DeliveryOptionAdminOut])
def list_delivery_options(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    return db.query(DeliveryOption).order_by(DeliveryOption.display_order.asc(), DeliveryOption.id.asc()).all()


@router.post("/delivery-options", response_model=DeliveryOptionAdminOut, status_code=status.HTTP_201_CREATED)
def create_delivery_option(
    payload: DeliveryOptionIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    option = DeliveryOption(**payload.model_dump())
    db.add(option)
    db.commit()
    db.refresh(option)

    write_log(db, user_id=session.user_id, action="DELIVERY_OPTION_CREATE", resource="delivery_options",
              request=request, meta={"delivery_option_id": option.id, "type": option.type})
    return option


@router.put("/delivery-options/{option_id}", response_model=DeliveryOptionAdminOut)
def update_delivery_option(
    option_id: int,
    payload: DeliveryOptionIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    option = db.get(DeliveryOption, option_id)
    if not option:
        raise HTTPException(status_code=404, detail="Delivery option not found")
    for field, value in payload.model_dump().items():
        setattr(option, field, value)
    db.commit()
    db.refresh(option)

    write_log(db, user_id=session.user_id, action="DELIVERY_OPTION_UPDATE", resource="delivery_options",
              request=request, meta={"delivery_option_id": option_id})
    return option


@router.delete("/delivery-options/{option_id}")
def delete_delivery_option(
    option_id: int,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    option = db.get(DeliveryOption, option_id)
    if not option:
        raise HTTPException(status_code=404, detail="Delivery option not found")
    db.delete(option)
    db.commit()

    write_log(db, user_id=session.user_id, action="DELIVERY_OPTION_DELETE", resource="delivery_options",
              request=request, meta={"delivery_option_id": option_id})
    return {"message": "Delivery option deleted", "id": option_id}


# --- Settings ---

@router.get("/settings")
async def get_all_settings(
    category: Optional[str] = None,
    service: SettingsService = Depends(get_settings_service),
    session: AuthSession = Depends(admin_required),
):
    return {"success": True, "data": await service.get_settings(category=category)}


# Bulk upsert; cached flags are dropped so the change shows up immediately
@router.put("/settings")
def update_settings(
    payload: SettingsBulkUpdate,
    request: Request,
    db: Session = Depends(get_db),
    service: SettingsService = Depends(get_settings_service),
    session: AuthSession = Depends(admin_required),
):
    changed = service.update_settings(db, [s.model_dump() for s in payload.settings])

    write_log(db, user_id=session.user_id, action="SETTINGS_UPDATE", resource="settings",
              request=request, meta={"keys": sorted(changed)})
    logger.info(f"Settings {sorted(changed)} updated by {session.user_id}")
    return {"success": True, "data": changed}


# --- Orders ---

@router.get("/orders", response_model=OrdersPage)
def list_orders(
    q: Optional[str] = Query(None, description="Search by order number or customer id"),
    status_filter: Optional[str] = Query(None, alias="status"),
    payment_status: Optional[str] = None,
    date_from: Optional[str] = Query(None, description="YYYY-MM-DD"),
    date_to: Optional[str] = Query(None, description="YYYY-MM-DD"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: Literal["created_at", "total", "order_number"] = "created_at",
    order: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    query = db.query(Order)

    if q:
        like = f"%{q}%"
        query = query.filter(or_(Order.order_number.ilike(like), Order.user_id.ilike(like)))
    if status_filter:
        query = query.filter(Order.status == status_filter)
    if payment_status:
        query = query.filter(Order.payment_status == payment_status)

    if date_from:
        try:
            query = query.filter(Order.created_at >= datetime.fromisoformat(date_from))
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid date_from format")
    if date_to:
        try:
            # Whole end day is included
            dt_to = date_to + " 23:59:59" if len(date_to) == 10 else date_to
            query = query.filter(Order.created_at <= datetime.fromisoformat(dt_to))
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid date_to format")

    sort_map = {
        "created_at": Order.created_at,
        "total": Order.total,
        "order_number": Order.order_number,
    }
    col = sort_map.get(sort_by, Order.created_at)
    query = query.order_by(col.asc() if order == "asc" else col.desc(), Order.id.desc())

    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.patch("/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: OrderStatusPatch,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if payload.status is None and payload.payment_status is None:
        raise HTTPException(status_code=400, detail="Nothing to update")

    old_status, old_payment = order.status, order.payment_status
    if payload.status is not None and payload.status != order.status:
        if not can_transition(order.status, payload.status):
            raise HTTPException(
                status_code=400,
                detail=f"Cannot change order status from {order.status} to {payload.status}",
            )
        order.status = payload.status
    if payload.payment_status is not None and payload.payment_status != order.payment_status:
        if not can_transition_payment(order.payment_status, payload.payment_status):
            raise HTTPException(
                status_code=400,
                detail=f"Cannot change payment status from {order.payment_status} to {payload.payment_status}",
            )
        order.payment_status = payload.payment_status

    db.commit()
    db.refresh(order)

    write_log(
        db,
        user_id=session.user_id,
        action="ORDER_STATUS_UPDATE",
        resource="orders",
        request=request,
        meta={
            "order_id": order_id,
            "order_number": order.order_number,
            "status": [old_status, order.status],
            "payment_status": [old_payment, order.payment_status],
        },
    )
    return order
