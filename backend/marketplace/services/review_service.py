# Overview: Admin approval gate for new and edited listings.

"""
Product Review Workflow

    pending -> approved
    pending -> rejected   (reason required, listing deactivated)
    rejected -> pending   (only via seller edit, see products_service)

Approved listings can be rejected later (e.g. after a complaint); a
rejected listing cannot be approved until the seller resubmits it.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, Profile
from ..models.catalog import REVIEW_APPROVED, REVIEW_PENDING, REVIEW_REJECTED, VALID_REVIEW_STATUSES
from ..time_utils import utcnow
from ..validation import ValidationError, require_text
from . import notification_service


class ReviewError(ValueError):
    """Raised when a review action does not apply to the product's state."""


def list_products_for_review(review_status: str | None = REVIEW_PENDING) -> list[Product]:
    """Products in a review state (or all of them), newest first."""
    query = db.session.query(Product)
    if review_status and review_status != "all":
        if review_status not in VALID_REVIEW_STATUSES:
            raise ValidationError(
                f"review_status must be one of: all, {', '.join(sorted(VALID_REVIEW_STATUSES))}"
            )
        query = query.filter(Product.review_status == review_status)
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def pending_review_count() -> int:
    return db.session.query(Product).filter(Product.review_status == REVIEW_PENDING).count()


def _get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise LookupError("Product not found")
    return product


def approve_product(product_id: int, *, reviewer: Profile) -> Product:
    product = _get_product(product_id)
    if product.review_status != REVIEW_PENDING:
        raise ReviewError(f"Cannot approve a product that is {product.review_status}")

    product.review_status = REVIEW_APPROVED
    product.rejection_reason = None
    product.reviewed_at = utcnow()
    product.reviewed_by_id = reviewer.id
    db.session.commit()

    current_app.logger.info("Product %s approved by admin %s", product.id, reviewer.id)
    notification_service.notify_product_approved(product)
    return product


def reject_product(product_id: int, *, reviewer: Profile, reason: str) -> Product:
    reason = require_text(reason, "reason")
    product = _get_product(product_id)
    if product.review_status == REVIEW_REJECTED:
        raise ReviewError("Product is already rejected")

    product.review_status = REVIEW_REJECTED
    product.rejection_reason = reason
    product.is_active = False
    product.reviewed_at = utcnow()
    product.reviewed_by_id = reviewer.id
    db.session.commit()

    current_app.logger.info("Product %s rejected by admin %s", product.id, reviewer.id)
    notification_service.notify_product_rejected(product)
    return product
