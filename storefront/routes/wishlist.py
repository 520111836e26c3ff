# storefront/routes/wishlist.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.models.product import Product
from storefront.services import wishlist
from storefront.utils.helpers import image_url
from storefront.utils.tokenJWT import AuthSession, get_current_session

router = APIRouter(prefix="/wishlist", tags=["Wishlist"])


class WishlistItemOut(BaseModel):
    product_id: int
    name: str
    slug: str
    thumbnail: str
    price: float
    in_stock: bool
    added_at: Optional[datetime] = None


class WishlistAdd(BaseModel):
    product_id: int


@router.get("", response_model=List[WishlistItemOut])
def get_wishlist(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_current_session),
):
    items = []
    for entry in wishlist.list_items(db, session.user_id):
        product = entry.product
        if product is None:
            continue
        price = product.discount_price if product.discount_price is not None else product.original_price
        items.append({
            "product_id": product.id,
            "name": product.name,
            "slug": product.slug,
            "thumbnail": image_url(product.thumbnail),
            "price": price,
            "in_stock": bool(product.in_stock),
            "added_at": entry.created_at,
        })
    return items


@router.post("", status_code=status.HTTP_201_CREATED)
def add_to_wishlist(
    payload: WishlistAdd,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_current_session),
):
    if not db.query(Product.id).filter(Product.id == payload.product_id).first():
        raise HTTPException(status_code=404, detail="Product not found")
    added = wishlist.add_item(db, session.user_id, payload.product_id)
    return {"product_id": payload.product_id, "added": added}


@router.delete("/{product_id}")
def remove_from_wishlist(
    product_id: int,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_current_session),
):
    removed = wishlist.remove_item(db, session.user_id, product_id)
    if not removed:
        raise HTTPException(status_code=404, detail="Product not in wishlist")
    return {"product_id": product_id, "removed": True}
