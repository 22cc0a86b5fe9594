# Overview: Best-effort emails fired by checkout, order transitions and product review.

"""
Builds email params from Order / Product rows and sends them through
email_service. Nothing here raises: a failed email is logged and the
business operation that triggered it stands.
"""

from __future__ import annotations

from flask import current_app

from ..models import Order, Product
from . import email_service, settings_service


def format_cents(cents: int | None) -> str:
    return f"${(cents or 0) / 100:,.2f}"


def order_product_title(order: Order) -> str:
    """First item's title, plus " and N more" for multi-item orders."""
    items = list(order.items)
    if not items:
        return "your order"
    title = items[0].product_title
    if len(items) > 1:
        title = f"{title} and {len(items) - 1} more"
    return title


def _first_image(order: Order) -> str | None:
    items = list(order.items)
    return items[0].product_image if items else None


def _site_url(path: str) -> str:
    return f"{current_app.config.get('BASE_URL', '').rstrip('/')}{path}"


def notify(email_type: str, params: dict) -> bool:
    """Send one email; log and return False on any failure."""
    try:
        result = email_service.dispatch(email_type, params)
    except Exception:
        current_app.logger.exception("Failed to send %s email", email_type)
        return False

    if not result.get("success"):
        current_app.logger.warning("%s email was not delivered: %s", email_type, result.get("error"))
        return False
    return True


def notify_order_placed(order: Order) -> bool:
    buyer = order.buyer
    return notify("order-placed", {
        "to": buyer.email,
        "buyerName": buyer.display_name,
        "orderNumber": order.order_number,
        "orderTotal": format_cents(order.total_cents),
        "productTitle": order_product_title(order),
        "productImage": _first_image(order),
        "productPrice": format_cents(order.subtotal_cents),
        "shippingCost": format_cents(order.shipping_cost_cents),
        "shippingAddress": order.shipping_address_text,
    })


def notify_admin_new_order(order: Order) -> bool:
    """Only sent while AdminSettings.email_notifications_enabled is on."""
    if not settings_service.admin_notifications_enabled():
        current_app.logger.info("Admin order notification disabled; skipping order %s", order.id)
        return False

    buyer = order.buyer
    return notify("admin-order-notification", {
        "to": current_app.config["ADMIN_EMAIL"],
        "orderNumber": order.order_number,
        "orderTotal": format_cents(order.total_cents),
        "buyerName": buyer.display_name,
        "buyerEmail": buyer.email,
        "productTitle": order_product_title(order),
        "productImage": _first_image(order),
        "productPrice": format_cents(order.subtotal_cents),
        "shippingCost": format_cents(order.shipping_cost_cents),
        "shippingAddress": order.shipping_address_text,
        "paymentScreenshotUrl": order.payment_screenshot_url,
        "buyerZelleName": buyer.full_name,
        "buyerZelleEmail": order.buyer_payment_email,
        "buyerZellePhone": order.buyer_payment_phone,
        "orderUrl": _site_url(f"/dashboard/admin/orders/{order.id}"),
    })


def notify_payment_verified(order: Order) -> bool:
    buyer = order.buyer
    return notify("payment-verified", {
        "to": buyer.email,
        "buyerName": buyer.display_name,
        "orderNumber": order.order_number,
        "productTitle": order_product_title(order),
        "productImage": _first_image(order),
    })


def notify_order_shipped(order: Order) -> bool:
    buyer = order.buyer
    return notify("order-shipped", {
        "to": buyer.email,
        "buyerName": buyer.display_name,
        "orderNumber": order.order_number,
        "productTitle": order_product_title(order),
        "productImage": _first_image(order),
        "trackingNumber": order.tracking_number,
    })


def notify_order_cancelled(order: Order) -> bool:
    buyer = order.buyer
    return notify("order-cancelled", {
        "to": buyer.email,
        "buyerName": buyer.display_name,
        "orderNumber": order.order_number,
        "productTitle": order_product_title(order),
        "refundAmount": format_cents(order.total_cents),
        "reason": order.cancellation_reason,
    })


def notify_product_approved(product: Product) -> bool:
    seller = product.seller
    return notify("product-approved", {
        "to": seller.email,
        "sellerName": seller.display_name,
        "productTitle": product.title,
        "productImage": product.cover_image,
        "productUrl": _site_url(f"/products/{product.id}"),
    })


def notify_product_rejected(product: Product) -> bool:
    seller = product.seller
    return notify("product-rejected", {
        "to": seller.email,
        "sellerName": seller.display_name,
        "productTitle": product.title,
        "rejectionReason": product.rejection_reason,
        "editUrl": _site_url(f"/dashboard/seller/products/{product.id}/edit"),
    })
