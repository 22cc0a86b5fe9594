# Overview: Transactional email senders and the type -> sender dispatch table.

"""
Email Service

Each email type has a sender that checks its params, picks a subject line
and renders templates/emails/<type>.html with Jinja2. Delivery goes through
the Resend HTTP API.

Senders never raise on delivery problems. They return a result dict:

    {"success": True, "data": {...}}
    {"success": False, "error": {"name": ..., "message": ...}}

dispatch() is the entry point for POST /api/send-email. It raises
UnknownEmailTypeError for an unrecognised type and EmailParamsError for
missing params; everything else is reported in the result.
"""

from __future__ import annotations

import httpx
from flask import current_app, render_template
from jinja2 import TemplateError


BRAND = "MakHil"


class EmailError(ValueError):
    """Base class for caller errors in an email request."""


class UnknownEmailTypeError(EmailError):
    pass


class EmailParamsError(EmailError):
    pass


def _failure(name: str, message: str) -> dict:
    return {"success": False, "error": {"name": name, "message": message}}


def _post_to_provider(payload: dict, api_key: str) -> httpx.Response:
    return httpx.post(
        current_app.config["EMAIL_API_URL"],
        json=payload,
        headers={"Authorization": f"Bearer {api_key}"},
        timeout=current_app.config.get("EMAIL_TIMEOUT_SECONDS", 10.0),
    )


def send_email(to: str, subject: str, template: str, params: dict) -> dict:
    """Render one template and hand it to the provider."""
    logger = current_app.logger

    if not current_app.config.get("EMAIL_NOTIFICATIONS_ENABLED", True):
        logger.info("Email notifications disabled; skipped %r to %s", subject, to)
        return {"success": True, "data": {"id": None, "skipped": True}}

    api_key = current_app.config.get("RESEND_API_KEY")
    if not api_key:
        message = "RESEND_API_KEY environment variable is not set. Please configure it to send emails."
        logger.error(message)
        return _failure("MissingAPIKeyError", message)

    try:
        html = render_template(f"emails/{template}.html", brand=BRAND, **params)
    except TemplateError as exc:
        logger.exception("Failed to render email template %s", template)
        return _failure(type(exc).__name__, str(exc))

    payload = {
        "from": current_app.config["EMAIL_FROM"],
        "to": [to],
        "subject": subject,
        "html": html,
    }

    try:
        response = _post_to_provider(payload, api_key)
    except httpx.HTTPError as exc:
        logger.exception("Unexpected error sending email to %s", to)
        return _failure(type(exc).__name__, str(exc) or "Email transport error")

    if response.status_code >= 400:
        try:
            body = response.json()
        except ValueError:
            body = {}
        message = body.get("message") or response.text or f"HTTP {response.status_code}"
        logger.error("Email provider rejected %r to %s: %s", subject, to, message)
        return _failure(body.get("name") or "ProviderError", message)

    try:
        data = response.json()
    except ValueError:
        data = {}

    logger.info("Email sent to %s (%s) id=%s", to, subject, data.get("id"))
    return {"success": True, "data": data}


def _require(params: dict, *keys: str) -> None:
    if not isinstance(params, dict):
        raise EmailParamsError("params must be an object")
    missing = [k for k in keys if params.get(k) in (None, "")]
    if missing:
        raise EmailParamsError(f"Missing email params: {', '.join(missing)}")


# ---------------------------------------------------------------------------
# Buyer emails
# ---------------------------------------------------------------------------

def send_order_placed_email(params: dict) -> dict:
    _require(params, "to", "buyerName", "orderNumber", "orderTotal", "productTitle",
             "productPrice", "shippingCost", "shippingAddress")
    return send_email(
        params["to"],
        f"Order Confirmation {params['orderNumber']} - {BRAND}",
        "order-placed",
        params,
    )


def send_payment_verified_email(params: dict) -> dict:
    _require(params, "to", "buyerName", "orderNumber", "productTitle")
    return send_email(
        params["to"],
        f"Payment Verified {params['orderNumber']} - {BRAND}",
        "payment-verified",
        params,
    )


def send_order_shipped_email(params: dict) -> dict:
    _require(params, "to", "buyerName", "orderNumber", "productTitle", "trackingNumber")
    return send_email(
        params["to"],
        f"Your Order Has Shipped {params['orderNumber']} - {BRAND}",
        "order-shipped",
        params,
    )


def send_order_cancelled_email(params: dict) -> dict:
    _require(params, "to", "buyerName", "orderNumber", "productTitle", "refundAmount")
    return send_email(
        params["to"],
        f"Order Cancelled {params['orderNumber']} - {BRAND}",
        "order-cancelled",
        params,
    )


# ---------------------------------------------------------------------------
# Seller emails
# ---------------------------------------------------------------------------

def send_product_approved_email(params: dict) -> dict:
    _require(params, "to", "sellerName", "productTitle", "productUrl")
    return send_email(
        params["to"],
        f'Product Approved: "{params["productTitle"]}" - {BRAND}',
        "product-approved",
        params,
    )


def send_product_rejected_email(params: dict) -> dict:
    _require(params, "to", "sellerName", "productTitle", "rejectionReason", "editUrl")
    return send_email(
        params["to"],
        f'Product Needs Revision: "{params["productTitle"]}" - {BRAND}',
        "product-rejected",
        params,
    )


# ---------------------------------------------------------------------------
# Admin emails
# ---------------------------------------------------------------------------

def send_admin_order_notification(params: dict) -> dict:
    _require(params, "to", "orderNumber", "orderTotal", "buyerName", "buyerEmail", "productTitle",
             "productPrice", "shippingCost", "shippingAddress", "paymentScreenshotUrl", "orderUrl")
    return send_email(
        params["to"],
        f"New Order {params['orderNumber']} - Payment Verification Required",
        "admin-order-notification",
        params,
    )


SENDERS = {
    "order-placed": send_order_placed_email,
    "payment-verified": send_payment_verified_email,
    "order-shipped": send_order_shipped_email,
    "order-cancelled": send_order_cancelled_email,
    "product-approved": send_product_approved_email,
    "product-rejected": send_product_rejected_email,
    "admin-order-notification": send_admin_order_notification,
}
EMAIL_TYPES = frozenset(SENDERS)


def dispatch(email_type: str, params: dict) -> dict:
    sender = SENDERS.get(email_type)
    if sender is None:
        raise UnknownEmailTypeError("Invalid email type")
    return sender(params or {})
