# Overview: Saved products per user.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Favorite, Product, Profile
from .products_service import get_visible_product


def list_favorites(user: Profile) -> list[Favorite]:
    """Favorites whose product is still buyer-visible, newest first."""
    rows = (
        db.session.query(Favorite)
        .join(Product, Favorite.product_id == Product.id)
        .filter(Favorite.user_id == user.id)
        .order_by(Favorite.created_at.desc(), Favorite.id.desc())
        .all()
    )
    return [f for f in rows if f.product.is_visible]


def is_favorite(user: Profile, product_id: int) -> bool:
    return db.session.query(Favorite).filter_by(user_id=user.id, product_id=product_id).first() is not None


def add_favorite(user: Profile, product_id: int) -> Favorite:
    existing = db.session.query(Favorite).filter_by(user_id=user.id, product_id=product_id).first()
    if existing:
        return existing

    get_visible_product(product_id)
    favorite = Favorite(user_id=user.id, product_id=product_id)
    db.session.add(favorite)
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent add for the same pair; the unique constraint kept one row.
        db.session.rollback()
        return db.session.query(Favorite).filter_by(user_id=user.id, product_id=product_id).one()
    return favorite


def remove_favorite(user: Profile, product_id: int) -> bool:
    deleted = db.session.query(Favorite).filter_by(user_id=user.id, product_id=product_id).delete()
    db.session.commit()
    return bool(deleted)


def toggle_favorite(user: Profile, product_id: int) -> bool:
    """Returns True if the product is now a favorite."""
    if is_favorite(user, product_id):
        remove_favorite(user, product_id)
        return False
    add_favorite(user, product_id)
    return True
