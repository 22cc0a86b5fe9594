# Overview: Catalog browsing and seller listing management.

"""
Products Service

Buyer-facing reads only ever return visible products
(review_status == approved AND is_active). Search and tag filters are
applied in-process over the visible rows: text search matches the title
or any tag case-insensitively, and a tag filter requires every selected
tag to be present.

Seller writes:
- new listings start as pending review and active
- editing a rejected listing sends it back to pending review
- delete is a hard delete; order items keep their snapshot
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Favorite, OrderItem, Product, Profile
from ..models.accounts import ROLE_ADMIN, ROLE_SELLER
from ..models.catalog import (
    CONDITION_NEW,
    MAX_PRODUCT_IMAGES,
    REVIEW_APPROVED,
    REVIEW_PENDING,
    REVIEW_REJECTED,
)
from ..validation import ValidationError, enforce_rules_product
from . import storage_service


CONDITION_FILTERS = {"all", "new", "used"}
DEFAULT_PER_PAGE = 24
MAX_PER_PAGE = 100


class ProductNotFoundError(LookupError):
    """Missing, or not visible to the caller."""


class ProductAccessError(PermissionError):
    """Caller may not modify this product."""


def visible_products_query():
    return db.session.query(Product).filter(
        Product.review_status == REVIEW_APPROVED,
        Product.is_active.is_(True),
    )


def matches_search(product: Product, query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    if needle in (product.title or "").lower():
        return True
    return any(needle in tag.lower() for tag in (product.tags or []))


def matches_tags(product: Product, tags: list[str]) -> bool:
    product_tags = set(product.tags or [])
    return all(tag in product_tags for tag in tags)


def list_catalog(
    *,
    q: str | None = None,
    tags: list[str] | None = None,
    condition: str | None = None,
    seller_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Visible products, newest first, with optional filters.

    condition: "new" -> condition == new; "used" -> anything else; "all"/None -> no filter.
    """
    condition = (condition or "all").lower()
    if condition not in CONDITION_FILTERS:
        raise ValidationError(f"condition must be one of: {', '.join(sorted(CONDITION_FILTERS))}")

    query = visible_products_query()
    if seller_id is not None:
        query = query.filter(Product.seller_id == seller_id)
    if condition == "new":
        query = query.filter(Product.condition == CONDITION_NEW)
    elif condition == "used":
        query = query.filter(Product.condition != CONDITION_NEW)

    rows = query.order_by(Product.created_at.desc(), Product.id.desc()).all()

    tags = [t for t in (tags or []) if t]
    rows = [p for p in rows if matches_search(p, q or "") and matches_tags(p, tags)]

    total = len(rows)
    if page is not None:
        page = max(page, 1)
        per_page = min(max(per_page or DEFAULT_PER_PAGE, 1), MAX_PER_PAGE)
        start = (page - 1) * per_page
        rows = rows[start:start + per_page]
        pages = (total + per_page - 1) // per_page if total else 0
    else:
        per_page = total
        pages = 1 if total else 0

    return {
        "items": [p.to_dict() for p in rows],
        "total": total,
        "page": page or 1,
        "per_page": per_page,
        "pages": pages,
    }


def can_view(product: Product, viewer: Profile | None) -> bool:
    if product.is_visible:
        return True
    if viewer is None:
        return False
    return viewer.role == ROLE_ADMIN or viewer.id == product.seller_id


def get_product_for_viewer(product_id: int, viewer: Profile | None) -> Product:
    product = db.session.get(Product, product_id)
    if product is None or not can_view(product, viewer):
        raise ProductNotFoundError("Product not found")
    return product


def get_visible_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None or not product.is_visible:
        raise ProductNotFoundError("Product not found")
    return product


def _owned_product(product_id: int, seller: Profile) -> Product:
    product = db.session.get(Product, product_id)
    if product is None or product.seller_id != seller.id:
        raise ProductNotFoundError("Product not found")
    return product


def list_seller_products(seller: Profile) -> list[Product]:
    """All of a seller's listings, any review state, newest first."""
    return (
        db.session.query(Product)
        .filter(Product.seller_id == seller.id)
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    )


def create_product(*, seller: Profile, patch: dict, image_files: list | None = None) -> Product:
    """
    Create a listing from a validated patch.

    Uploaded images are stored first; their URLs follow any image URLs
    already in the patch.
    """
    if seller.role != ROLE_SELLER:
        raise ProductAccessError("Only sellers can create products")

    image_files = [f for f in (image_files or []) if f and f.filename]
    images = list(patch.get("images") or [])
    if len(images) + len(image_files) > MAX_PRODUCT_IMAGES:
        raise ValidationError(f"A product can have at most {MAX_PRODUCT_IMAGES} images")
    if not images and not image_files:
        raise ValidationError("At least one product image is required")

    patch = dict(patch)
    patch.setdefault("quantity_available", 1)
    enforce_rules_product(patch, creating=True)

    images += storage_service.save_uploads(storage_service.BUCKET_PRODUCT_IMAGES, image_files, owner_id=seller.id)
    patch["images"] = images

    product = Product(
        seller_id=seller.id,
        review_status=REVIEW_PENDING,
        is_active=True,
        **patch,
    )
    db.session.add(product)
    db.session.commit()

    current_app.logger.info("Seller %s created product %s (pending review)", seller.id, product.id)
    return product


def update_product(*, product_id: int, seller: Profile, patch: dict, image_files: list | None = None) -> Product:
    """
    Apply a seller edit.

    If "images" is in the patch it replaces the kept image list; new uploads
    are appended. A rejected listing goes back to pending review and is
    switched back on (when in stock) unless the edit sets is_active itself.
    """
    product = _owned_product(product_id, seller)

    image_files = [f for f in (image_files or []) if f and f.filename]
    patch = dict(patch)
    enforce_rules_product(patch)

    images = list(patch.pop("images")) if "images" in patch else list(product.images or [])
    if len(images) + len(image_files) > MAX_PRODUCT_IMAGES:
        raise ValidationError(f"A product can have at most {MAX_PRODUCT_IMAGES} images")
    if image_files:
        images += storage_service.save_uploads(storage_service.BUCKET_PRODUCT_IMAGES, image_files, owner_id=seller.id)
    if not images:
        raise ValidationError("At least one product image is required")

    for key, value in patch.items():
        setattr(product, key, value)
    product.images = images

    if product.review_status == REVIEW_REJECTED:
        product.review_status = REVIEW_PENDING
        product.rejection_reason = None
        if "is_active" not in patch:
            product.is_active = product.quantity_available > 0
        current_app.logger.info("Rejected product %s resubmitted for review", product.id)

    db.session.commit()
    return product


def delete_product(*, product_id: int, seller: Profile) -> None:
    """Hard delete. Order history keeps its snapshot with product_id cleared."""
    product = _owned_product(product_id, seller)

    db.session.query(OrderItem).filter(OrderItem.product_id == product.id).update(
        {OrderItem.product_id: None}, synchronize_session=False
    )
    db.session.query(Favorite).filter(Favorite.product_id == product.id).delete(synchronize_session=False)
    db.session.delete(product)
    db.session.commit()

    current_app.logger.info("Seller %s deleted product %s", seller.id, product_id)


# ---------------------------------------------------------------------------
# Designers
# ---------------------------------------------------------------------------

def designer_suggestions(prefix: str | None = None, *, limit: int = 10) -> list[str]:
    """Distinct designer names for the listing form's autocomplete."""
    query = db.session.query(Product.designer).filter(Product.designer.isnot(None), Product.designer != "")
    if prefix and prefix.strip():
        query = query.filter(func.lower(Product.designer).like(f"%{prefix.strip().lower()}%"))
    names = sorted({row[0] for row in query.all()}, key=str.lower)
    return names[:limit]


def list_designers() -> list[dict]:
    """Every designer name with its product count, most used first."""
    rows = (
        db.session.query(Product.designer, Product.id)
        .filter(Product.designer.isnot(None), Product.designer != "")
        .order_by(Product.id)
        .all()
    )
    grouped: dict[str, list[int]] = {}
    for name, product_id in rows:
        grouped.setdefault(name, []).append(product_id)

    designers = [
        {"name": name, "count": len(ids), "product_ids": ids}
        for name, ids in grouped.items()
    ]
    designers.sort(key=lambda d: (-d["count"], d["name"].lower()))
    return designers


def rename_designer(old_name: str, new_name: str) -> int:
    """Rename a designer across all products. Returns the number of products changed."""
    old_name = (old_name or "").strip()
    new_name = (new_name or "").strip()
    if not old_name or not new_name:
        raise ValidationError("old_name and new_name are required")
    if len(new_name) > Product.__table__.c.designer.type.length:
        raise ValidationError("new_name is too long")

    products = db.session.query(Product).filter(Product.designer == old_name).all()
    for product in products:
        product.designer = new_name
    db.session.commit()

    current_app.logger.info("Renamed designer %r to %r on %d products", old_name, new_name, len(products))
    return len(products)


def remove_designer(name: str) -> int:
    """Clear a designer name from all products. Returns the number of products changed."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")

    products = db.session.query(Product).filter(Product.designer == name).all()
    for product in products:
        product.designer = None
    db.session.commit()

    current_app.logger.info("Removed designer %r from %d products", name, len(products))
    return len(products)
