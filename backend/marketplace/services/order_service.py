# Overview: Order lifecycle state machine and order queries per role.

"""
Order Lifecycle

Every status change goes through one table, TRANSITIONS. An action is
allowed only for its actor (admin, or the order's own buyer or seller),
from the listed (status, payment_status) pairs. Anything else raises
OrderTransitionError and writes nothing.

    action            actor          from status                    payment   -> status            payment
    verify_payment    admin          pending_payment                pending   -> payment_verified  verified
    reject_payment    admin          pending_payment                pending   -> cancelled         rejected
    start_processing  seller         payment_verified               verified  -> processing
    ship              seller         payment_verified, processing   verified  -> shipped
    decline           seller         payment_verified, processing   verified  -> cancelled         rejected
    mark_delivered    buyer, admin   shipped                        verified  -> delivered

Refund bookkeeping (request / mark refunded) does not move the status;
see refund_service.

Buyers and sellers only reach their own orders. Someone else's order is
reported as not found.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Order, Product, Profile
from ..models.accounts import ROLE_ADMIN, ROLE_BUYER, ROLE_SELLER
from ..models.orders import (
    PAYMENT_PENDING,
    PAYMENT_REJECTED,
    PAYMENT_VERIFIED,
    STATUS_CANCELLED,
    STATUS_DELIVERED,
    STATUS_PAYMENT_VERIFIED,
    STATUS_PENDING_PAYMENT,
    STATUS_PROCESSING,
    STATUS_SHIPPED,
    VALID_ORDER_STATUSES,
    VALID_PAYMENT_STATUSES,
)
from ..time_utils import utcnow
from ..validation import ValidationError, require_text
from . import notification_service
from .concurrency import lock_for_update, run_with_retry


class OrderNotFoundError(LookupError):
    pass


class OrderTransitionError(ValueError):
    """The requested action is not allowed from the order's current state."""


@dataclass(frozen=True)
class Transition:
    action: str
    actors: frozenset
    from_statuses: frozenset
    from_payment_statuses: frozenset
    to_status: str
    to_payment_status: str | None = None


def _t(action, actors, from_statuses, from_payments, to_status, to_payment=None) -> Transition:
    return Transition(action, frozenset(actors), frozenset(from_statuses), frozenset(from_payments), to_status, to_payment)


TRANSITIONS = {
    t.action: t for t in (
        _t("verify_payment", {ROLE_ADMIN}, {STATUS_PENDING_PAYMENT}, {PAYMENT_PENDING},
           STATUS_PAYMENT_VERIFIED, PAYMENT_VERIFIED),
        _t("reject_payment", {ROLE_ADMIN}, {STATUS_PENDING_PAYMENT}, {PAYMENT_PENDING},
           STATUS_CANCELLED, PAYMENT_REJECTED),
        _t("start_processing", {ROLE_SELLER}, {STATUS_PAYMENT_VERIFIED}, {PAYMENT_VERIFIED},
           STATUS_PROCESSING),
        _t("ship", {ROLE_SELLER}, {STATUS_PAYMENT_VERIFIED, STATUS_PROCESSING}, {PAYMENT_VERIFIED},
           STATUS_SHIPPED),
        _t("decline", {ROLE_SELLER}, {STATUS_PAYMENT_VERIFIED, STATUS_PROCESSING}, {PAYMENT_VERIFIED},
           STATUS_CANCELLED, PAYMENT_REJECTED),
        _t("mark_delivered", {ROLE_BUYER, ROLE_ADMIN}, {STATUS_SHIPPED}, {PAYMENT_VERIFIED},
           STATUS_DELIVERED),
    )
}


def party_for(order: Order, profile: Profile) -> str | None:
    """The side of the order a profile acts on: admin, buyer, seller or None."""
    if profile.role == ROLE_ADMIN:
        return ROLE_ADMIN
    if profile.id == order.buyer_id:
        return ROLE_BUYER
    if profile.id == order.seller_id:
        return ROLE_SELLER
    return None


def allowed_actions(order: Order, profile: Profile) -> list[str]:
    """Actions this profile could take on the order right now."""
    party = party_for(order, profile)
    return sorted(
        t.action for t in TRANSITIONS.values()
        if party in t.actors
        and order.status in t.from_statuses
        and order.payment_status in t.from_payment_statuses
    )


def check_transition(order: Order, action: str, actor: Profile) -> Transition:
    transition = TRANSITIONS.get(action)
    if transition is None:
        raise OrderTransitionError(f"Unknown order action: {action}")
    party = party_for(order, actor)
    if party not in transition.actors:
        raise OrderTransitionError(f"The order's {party or 'viewer'} cannot {action.replace('_', ' ')} it")
    if order.status not in transition.from_statuses or order.payment_status not in transition.from_payment_statuses:
        raise OrderTransitionError(
            f"Cannot {action.replace('_', ' ')} an order with status {order.status} "
            f"and payment status {order.payment_status}"
        )
    return transition


# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------

def can_access(order: Order, viewer: Profile) -> bool:
    if viewer.role == ROLE_ADMIN:
        return True
    return viewer.id in (order.buyer_id, order.seller_id)


def get_order_for(order_id: int, viewer: Profile, *, lock: bool = False) -> Order:
    query = db.session.query(Order).filter(Order.id == order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None or not can_access(order, viewer):
        raise OrderNotFoundError("Order not found")
    return order


def list_orders(
    *,
    viewer: Profile,
    as_seller: bool = False,
    status: str | None = None,
    payment_status: str | None = None,
) -> list[Order]:
    """
    Buyer: own purchases. Seller (as_seller): own sales. Admin: everything.
    Newest first.
    """
    query = db.session.query(Order)
    if viewer.role != ROLE_ADMIN:
        if as_seller:
            query = query.filter(Order.seller_id == viewer.id)
        else:
            query = query.filter(Order.buyer_id == viewer.id)

    if status:
        if status not in VALID_ORDER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(sorted(VALID_ORDER_STATUSES))}")
        query = query.filter(Order.status == status)
    if payment_status:
        if payment_status not in VALID_PAYMENT_STATUSES:
            raise ValidationError(f"payment_status must be one of: {', '.join(sorted(VALID_PAYMENT_STATUSES))}")
        query = query.filter(Order.payment_status == payment_status)

    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def _set_products_active(order: Order, is_active: bool) -> None:
    product_ids = order.product_ids
    if not product_ids:
        return
    db.session.query(Product).filter(Product.id.in_(product_ids)).update(
        {Product.is_active: is_active, Product.version_id: Product.version_id + 1},
        synchronize_session=False,
    )


def _restock_products(order: Order) -> None:
    """Put each item back on sale with its quantity returned to stock."""
    for item in order.items:
        if item.product_id is None:
            continue
        db.session.query(Product).filter(Product.id == item.product_id).update(
            {
                Product.quantity_available: Product.quantity_available + item.quantity,
                Product.is_active: True,
                Product.version_id: Product.version_id + 1,
            },
            synchronize_session=False,
        )


def _apply(order_id: int, action: str, actor: Profile, mutate=None) -> Order:
    """Lock, check, set the new state, run the action's side effects, commit."""
    def _op():
        order = get_order_for(order_id, actor, lock=True)
        transition = check_transition(order, action, actor)

        order.status = transition.to_status
        if transition.to_payment_status:
            order.payment_status = transition.to_payment_status
        if mutate is not None:
            mutate(order)

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Order %s: %s by %s %s -> %s/%s",
        order.id, action, actor.role, actor.id, order.status, order.payment_status,
    )
    return order


# ---------------------------------------------------------------------------
# Admin actions
# ---------------------------------------------------------------------------

def verify_payment(order_id: int, *, admin: Profile) -> Order:
    """Payment confirmed: the dresses are sold, take them off the catalog."""
    def _mutate(order: Order):
        order.payment_verified_at = utcnow()
        _set_products_active(order, False)

    order = _apply(order_id, "verify_payment", admin, _mutate)
    notification_service.notify_payment_verified(order)
    return order


def reject_payment(order_id: int, *, admin: Profile, reason: str | None = None) -> Order:
    def _mutate(order: Order):
        order.cancelled_at = utcnow()
        order.cancellation_reason = (reason or "").strip() or "Payment could not be verified"

    order = _apply(order_id, "reject_payment", admin, _mutate)
    notification_service.notify_order_cancelled(order)
    return order


# ---------------------------------------------------------------------------
# Seller actions
# ---------------------------------------------------------------------------

def start_processing(order_id: int, *, seller: Profile) -> Order:
    return _apply(order_id, "start_processing", seller)


def ship_order(order_id: int, *, seller: Profile, tracking_number: str) -> Order:
    tracking_number = require_text(tracking_number, "tracking_number")

    def _mutate(order: Order):
        order.tracking_number = tracking_number
        order.shipped_at = utcnow()

    order = _apply(order_id, "ship", seller, _mutate)
    notification_service.notify_order_shipped(order)
    return order


def decline_order(order_id: int, *, seller: Profile, reason: str, make_products_available: bool = True) -> Order:
    """Seller cannot fulfil. Listings go back on sale, restocked, unless the seller says otherwise."""
    reason = require_text(reason, "reason")

    def _mutate(order: Order):
        order.cancellation_reason = reason
        order.cancelled_at = utcnow()
        if make_products_available:
            _restock_products(order)
        else:
            _set_products_active(order, False)

    order = _apply(order_id, "decline", seller, _mutate)
    notification_service.notify_order_cancelled(order)
    return order


# ---------------------------------------------------------------------------
# Buyer / admin
# ---------------------------------------------------------------------------

def mark_delivered(order_id: int, *, actor: Profile) -> Order:
    def _mutate(order: Order):
        order.delivered_at = utcnow()

    return _apply(order_id, "mark_delivered", actor, _mutate)


def pending_payment_count() -> int:
    return db.session.query(Order).filter(Order.payment_status == PAYMENT_PENDING).count()
