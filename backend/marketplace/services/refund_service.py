# Overview: Buyer refund requests and admin refund bookkeeping.

"""
Refunds never change an order's status.

- A buyer may request a refund once, on a delivered order, for one of
  REFUND_REASONS, with a description and a payout contact.
- An admin records that money was returned (refunded_at) on a cancelled
  order, or on a delivered order that has a refund request. Only once.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Order, Profile
from ..models.orders import STATUS_CANCELLED, STATUS_DELIVERED
from ..time_utils import utcnow
from ..validation import ValidationError, is_valid_email
from .concurrency import run_with_retry
from .order_service import OrderNotFoundError, OrderTransitionError, get_order_for


REFUND_REASONS = {
    "item_destroyed": "Item was destroyed or damaged in transit",
    "severe_misrepresentation": "Item was severely misrepresented",
}
MIN_DESCRIPTION_LENGTH = 20


class RefundRequestError(ValidationError):
    """The refund request payload is invalid."""


def _clean(value) -> str | None:
    text = str(value).strip() if value is not None else ""
    return text or None


def validate_refund_request(payload: dict) -> dict:
    """Check a refund request before anything is read or written."""
    reason = _clean(payload.get("reason"))
    if reason not in REFUND_REASONS:
        raise RefundRequestError(f"reason must be one of: {', '.join(sorted(REFUND_REASONS))}")

    description = _clean(payload.get("description")) or ""
    if len(description) < MIN_DESCRIPTION_LENGTH:
        raise RefundRequestError(f"description must be at least {MIN_DESCRIPTION_LENGTH} characters")

    payout_name = _clean(payload.get("payout_name"))
    payout_email = _clean(payload.get("payout_email"))
    payout_phone = _clean(payload.get("payout_phone"))
    if not payout_name:
        raise RefundRequestError("payout_name is required")
    if not payout_email and not payout_phone:
        raise RefundRequestError("payout_email or payout_phone is required")
    if payout_email and not is_valid_email(payout_email):
        raise RefundRequestError("payout_email is not a valid email")

    return {
        "reason": reason,
        "description": description,
        "payout_name": payout_name,
        "payout_email": payout_email,
        "payout_phone": payout_phone,
    }


def can_request_refund(order: Order) -> bool:
    return order.status == STATUS_DELIVERED and not order.refund_requested


def can_mark_refunded(order: Order) -> bool:
    if order.refunded_at is not None:
        return False
    return order.status == STATUS_CANCELLED or (order.status == STATUS_DELIVERED and order.refund_requested)


def request_refund(order_id: int, *, buyer: Profile, payload: dict) -> Order:
    data = validate_refund_request(payload or {})

    def _op():
        order = get_order_for(order_id, buyer, lock=True)
        if order.buyer_id != buyer.id:
            raise OrderNotFoundError("Order not found")
        if order.refund_requested:
            raise OrderTransitionError("A refund has already been requested for this order")
        if not can_request_refund(order):
            raise OrderTransitionError("Refunds can only be requested for delivered orders")

        order.refund_requested = True
        order.refund_request_reason = data["reason"]
        order.refund_request_description = data["description"]
        order.refund_requested_at = utcnow()
        order.refund_payout_name = data["payout_name"]
        order.refund_payout_email = data["payout_email"]
        order.refund_payout_phone = data["payout_phone"]
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Refund requested on order %s by buyer %s (%s)", order.id, buyer.id, data["reason"])
    return order


def mark_refunded(order_id: int, *, admin: Profile, notes: str | None = None) -> Order:
    def _op():
        order = get_order_for(order_id, admin, lock=True)
        if order.refunded_at is not None:
            raise OrderTransitionError("Order is already marked as refunded")
        if not can_mark_refunded(order):
            raise OrderTransitionError(
                "Only cancelled orders, or delivered orders with a refund request, can be marked refunded"
            )
        order.refunded_at = utcnow()
        order.refund_notes = _clean(notes)
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s marked refunded by admin %s", order.id, admin.id)
    return order


def list_refund_requests(*, include_refunded: bool = False) -> list[Order]:
    query = db.session.query(Order).filter(Order.refund_requested.is_(True))
    if not include_refunded:
        query = query.filter(Order.refunded_at.is_(None))
    return query.order_by(Order.refund_requested_at.desc(), Order.id.desc()).all()
