# Overview: Turns a session cart into an Order with a payment screenshot.

"""
Checkout

Sequence:
    1. store the payment screenshot             (failure aborts)
    2-3. insert Order + OrderItems, one commit  (failure aborts)
    4. decrement stock per line                 (best effort, logged)
    5. order-placed email to the buyer          (best effort)
    6. admin notification if enabled            (best effort)

Clearing the session cart and redirecting are left to the route.

Cart contents are re-checked against the database before anything is
written: every product must exist, be buyer-visible, belong to the cart's
seller and have stock. Item snapshots are taken from the current rows,
never from the client's cart blob.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Order, OrderItem, Product, Profile
from ..models.accounts import ROLE_ADMIN
from ..models.orders import (
    DEFAULT_SHIPPING_COUNTRY,
    PAYMENT_METHOD_ZELLE,
    PAYMENT_PENDING,
    STATUS_PENDING_PAYMENT,
)
from ..validation import ValidationError, is_valid_email
from . import notification_service, storage_service
from .cart_service import Cart, platform_fee_cents


REQUIRED_SHIPPING_FIELDS = ("line1", "city", "state", "zip")


class CheckoutError(ValueError):
    """The cart cannot be checked out as it stands."""


@dataclass
class ShippingAddress:
    line1: str
    city: str
    state: str
    zip: str
    line2: str | None = None
    country: str = DEFAULT_SHIPPING_COUNTRY

    @classmethod
    def from_form(cls, form) -> "ShippingAddress":
        values = {k: (form.get(k) or "").strip() for k in REQUIRED_SHIPPING_FIELDS + ("line2",)}
        missing = [k for k in REQUIRED_SHIPPING_FIELDS if not values[k]]
        if missing:
            raise ValidationError(f"Missing shipping fields: {', '.join(missing)}")
        return cls(
            line1=values["line1"],
            line2=values["line2"] or None,
            city=values["city"],
            state=values["state"],
            zip=values["zip"],
        )


def payment_instructions() -> dict:
    """Public payment details shown on the checkout page."""
    config = current_app.config
    return {
        "payment_method": PAYMENT_METHOD_ZELLE,
        "zelle_email": config.get("ZELLE_EMAIL") or None,
        "zelle_phone": config.get("ZELLE_PHONE") or None,
        "shipping_flat_rate_cents": config["SHIPPING_FLAT_RATE_CENTS"],
        "platform_fee_percentage": config["PLATFORM_FEE_PERCENTAGE"],
    }


def _load_cart_products(cart: Cart) -> dict[int, Product]:
    ids = [line.product_id for line in cart.items]
    rows = db.session.query(Product).filter(Product.id.in_(ids)).all()
    return {p.id: p for p in rows}


def validate_cart_for_checkout(cart: Cart) -> dict[int, Product]:
    if cart.is_empty:
        raise CheckoutError("Your cart is empty")

    products = _load_cart_products(cart)
    for line in cart.items:
        product = products.get(line.product_id)
        title = line.product.get("title") or f"Product {line.product_id}"
        if product is None or not product.is_visible:
            raise CheckoutError(f"{title} is no longer available")
        if product.seller_id != cart.seller_id:
            raise CheckoutError("All items in a cart must come from the same seller")
        if product.quantity_available < 1:
            raise CheckoutError(f"{title} is sold out")
        if line.quantity > product.quantity_available:
            raise CheckoutError(f"Only {product.quantity_available} of {title} available")
    return products


def decrement_stock(product_id: int, quantity: int) -> None:
    """
    One conditional UPDATE: quantity_available = max(0, qty - n), and the
    product is deactivated when that reaches zero.
    """
    remaining = Product.quantity_available - quantity
    db.session.query(Product).filter(Product.id == product_id).update(
        {
            Product.quantity_available: case((remaining > 0, remaining), else_=0),
            Product.is_active: case((remaining > 0, Product.is_active), else_=False),
            Product.version_id: Product.version_id + 1,
        },
        synchronize_session=False,
    )
    db.session.commit()


def place_order(
    *,
    buyer: Profile,
    cart: Cart,
    shipping: ShippingAddress,
    payment_screenshot,
    buyer_payment_email: str | None = None,
    buyer_payment_phone: str | None = None,
) -> Order:
    if buyer.role == ROLE_ADMIN:
        raise CheckoutError("Admin accounts cannot place orders")

    buyer_payment_email = (buyer_payment_email or "").strip() or None
    buyer_payment_phone = (buyer_payment_phone or "").strip() or None
    if buyer_payment_email and not is_valid_email(buyer_payment_email):
        raise ValidationError("buyer_payment_email is not a valid email")

    products = validate_cart_for_checkout(cart)
    if cart.seller_id == buyer.id:
        raise CheckoutError("You cannot buy your own listing")

    screenshot_url = storage_service.save_upload(
        storage_service.BUCKET_PAYMENT_SCREENSHOTS,
        payment_screenshot,
        owner_id=buyer.id,
    )

    config = current_app.config
    subtotal = sum(products[line.product_id].price_cents * line.quantity for line in cart.items)
    shipping_cents = config["SHIPPING_FLAT_RATE_CENTS"]

    order = Order(
        buyer_id=buyer.id,
        seller_id=cart.seller_id,
        subtotal_cents=subtotal,
        shipping_cost_cents=shipping_cents,
        platform_fee_cents=platform_fee_cents(subtotal, config["PLATFORM_FEE_PERCENTAGE"]),
        total_cents=subtotal + shipping_cents,
        payment_method=PAYMENT_METHOD_ZELLE,
        payment_status=PAYMENT_PENDING,
        payment_screenshot_url=screenshot_url,
        buyer_payment_email=buyer_payment_email,
        buyer_payment_phone=buyer_payment_phone,
        shipping_address_line1=shipping.line1,
        shipping_address_line2=shipping.line2,
        shipping_city=shipping.city,
        shipping_state=shipping.state,
        shipping_zip=shipping.zip,
        shipping_country=shipping.country,
        status=STATUS_PENDING_PAYMENT,
    )
    for line in cart.items:
        product = products[line.product_id]
        order.items.append(OrderItem(
            product_id=product.id,
            product_title=product.title,
            product_price_cents=product.price_cents,
            product_image=product.cover_image,
            quantity=1,
        ))

    db.session.add(order)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to create order for buyer %s (screenshot %s)", buyer.id, screenshot_url)
        raise

    current_app.logger.info("Order %s placed by buyer %s, total %s cents", order.id, buyer.id, order.total_cents)

    for line in cart.items:
        try:
            decrement_stock(line.product_id, line.quantity)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(
                "Failed to update stock for product %s on order %s", line.product_id, order.id
            )

    notification_service.notify_order_placed(order)
    notification_service.notify_admin_new_order(order)

    return order
