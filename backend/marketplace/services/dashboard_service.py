# Overview: Navigation badge counts per role.

"""
The badge shows work waiting for the signed-in user:

- seller: paid orders not yet shipped (payment verified, status
  payment_verified or processing)
- admin: orders with a pending payment plus products pending review

The client keeps a per-role "last visit" timestamp and passes it as
`since`; only items created after it are counted.
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Order, Product, Profile
from ..models.accounts import ROLE_ADMIN, ROLE_SELLER
from ..models.catalog import REVIEW_PENDING
from ..models.orders import PAYMENT_PENDING, PAYMENT_VERIFIED, STATUS_PAYMENT_VERIFIED, STATUS_PROCESSING


def _since(query, column, since: datetime | None):
    return query.filter(column > since) if since is not None else query


def badge_counts(user: Profile, *, since: datetime | None = None) -> dict:
    counts = {"role": user.role, "total": 0}

    if user.role == ROLE_SELLER:
        query = db.session.query(Order).filter(
            Order.seller_id == user.id,
            Order.payment_status == PAYMENT_VERIFIED,
            Order.status.in_([STATUS_PAYMENT_VERIFIED, STATUS_PROCESSING]),
        )
        counts["orders_to_ship"] = _since(query, Order.created_at, since).count()
        counts["total"] = counts["orders_to_ship"]

    elif user.role == ROLE_ADMIN:
        payments = db.session.query(Order).filter(Order.payment_status == PAYMENT_PENDING)
        reviews = db.session.query(Product).filter(Product.review_status == REVIEW_PENDING)
        counts["pending_payments"] = _since(payments, Order.created_at, since).count()
        counts["pending_reviews"] = _since(reviews, Product.created_at, since).count()
        counts["total"] = counts["pending_payments"] + counts["pending_reviews"]

    return counts
