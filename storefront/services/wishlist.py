"""
Wishlist persistence. The wishlists table may not exist on every deployment;
a missing table means the feature is unavailable, not an error.
"""

import logging
from typing import List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models.wishlist import Wishlist
from storefront.utils.errors import is_missing_table, is_unique_violation

logger = logging.getLogger(__name__)


def list_items(db: Session, user_id: str) -> List[Wishlist]:
    try:
        return (
            db.query(Wishlist)
            .filter(Wishlist.user_id == user_id)
            .order_by(Wishlist.created_at.desc(), Wishlist.id.desc())
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        if is_missing_table(e):
            logger.warning("Wishlist table not available")
        else:
            logger.error(f"Failed to read wishlist for {user_id}: {e}")
        return []


def add_item(db: Session, user_id: str, product_id: int) -> bool:
    db.add(Wishlist(user_id=user_id, product_id=product_id))
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if is_unique_violation(e):
            return False
        raise
    except SQLAlchemyError as e:
        db.rollback()
        if is_missing_table(e):
            logger.warning("Wishlist table not available")
            return False
        raise
    return True


def remove_item(db: Session, user_id: str, product_id: int) -> bool:
    try:
        deleted = (
            db.query(Wishlist)
            .filter(Wishlist.user_id == user_id, Wishlist.product_id == product_id)
            .delete(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        if is_missing_table(e):
            logger.warning("Wishlist table not available")
            return False
        raise
    return deleted > 0


def contains(db: Session, user_id: str, product_id: int) -> bool:
    try:
        return db.query(Wishlist.id).filter(
            Wishlist.user_id == user_id, Wishlist.product_id == product_id
        ).first() is not None
    except SQLAlchemyError as e:
        db.rollback()
        if is_missing_table(e):
            return False
        raise
