# Overview: Flask API routes for checkout and order actions; parses input and returns JSON responses.

"""
Order routes

Checkout:
- POST /api/checkout                       multipart: line1, line2, city, state, zip,
                                           buyer_payment_email, buyer_payment_phone,
                                           payment_screenshot (file)
- GET  /api/checkout/payment-info          payment instructions and fees
- GET  /api/config/payment                (same)

Orders (buyer sees purchases, seller sees sales with ?as=seller, admin sees all):
- GET  /api/orders
- GET  /api/orders/<id>

Actions:
- POST /api/orders/<id>/verify-payment     admin
- POST /api/orders/<id>/reject-payment     admin   {"reason": "..."}
- POST /api/orders/<id>/mark-refunded      admin   {"notes": "..."}
- POST /api/orders/<id>/process            seller
- POST /api/orders/<id>/ship               seller  {"tracking_number": "..."}
- POST /api/orders/<id>/decline            seller  {"reason": "...", "make_products_available": true}
- POST /api/orders/<id>/mark-delivered     buyer or admin
- POST /api/orders/<id>/refund-request     buyer   {"reason", "description", "payout_name",
                                                    "payout_email", "payout_phone"}
"""

from flask import Blueprint, request, jsonify, g, session, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..models.accounts import ROLE_ADMIN, ROLE_BUYER, ROLE_SELLER
from ..services import cart_service, checkout_service, order_service, refund_service
from ..services.checkout_service import CheckoutError, ShippingAddress
from ..services.order_service import OrderNotFoundError, OrderTransitionError
from ..services.storage_service import StorageError
from ..validation import ValidationError, parse_flag
from ..decorators import require_auth, require_role


orders_bp = Blueprint("orders", __name__, url_prefix="/api")


def _order_body(order, viewer) -> dict:
    data = order.to_dict()
    data["allowed_actions"] = order_service.allowed_actions(order, viewer)
    data["can_request_refund"] = viewer.id == order.buyer_id and refund_service.can_request_refund(order)
    data["can_mark_refunded"] = viewer.role == ROLE_ADMIN and refund_service.can_mark_refunded(order)
    return data


def _run_action(func, order_id: int, **kwargs):
    """Shared error mapping for lifecycle actions."""
    try:
        order = func(order_id, **kwargs)
    except OrderNotFoundError:
        return jsonify({"error": "Order not found"}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderTransitionError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Order action %s failed for order %s", func.__name__, order_id)
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"order": _order_body(order, g.current_user)}), 200


# =============================================================================
# CHECKOUT
# =============================================================================

@orders_bp.get("/checkout/payment-info")
@orders_bp.get("/config/payment")
def payment_info_route():
    return jsonify(checkout_service.payment_instructions()), 200


@orders_bp.post("/checkout")
@require_auth
@require_role(ROLE_BUYER, ROLE_SELLER)
def checkout_route():
    cart = cart_service.load_cart(session)

    try:
        shipping = ShippingAddress.from_form(request.form)
        order = checkout_service.place_order(
            buyer=g.current_user,
            cart=cart,
            shipping=shipping,
            payment_screenshot=request.files.get("payment_screenshot"),
            buyer_payment_email=request.form.get("buyer_payment_email"),
            buyer_payment_phone=request.form.get("buyer_payment_phone"),
        )
    except (ValidationError, CheckoutError, StorageError) as e:
        return jsonify({"error": str(e)}), 400
    except SQLAlchemyError:
        return jsonify({"error": "Could not create order"}), 500
    except Exception:
        current_app.logger.exception("Checkout failed")
        return jsonify({"error": "Internal server error"}), 500

    cart_service.save_cart(session, cart_service.clear())

    return jsonify({
        "order": _order_body(order, g.current_user),
        "redirect": f"/orders/{order.id}",
    }), 201


# =============================================================================
# QUERIES
# =============================================================================

@orders_bp.get("/orders")
@require_auth
def list_orders_route():
    as_seller = request.args.get("as") == "seller"
    if as_seller and g.current_user.role not in (ROLE_SELLER, ROLE_ADMIN):
        return jsonify({"error": "Permission denied"}), 403

    try:
        orders = order_service.list_orders(
            viewer=g.current_user,
            as_seller=as_seller,
            status=request.args.get("status"),
            payment_status=request.args.get("payment_status"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"items": [o.to_dict(include_items=True) for o in orders]}), 200


@orders_bp.get("/orders/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order_for(order_id, g.current_user)
    except OrderNotFoundError:
        return jsonify({"error": "Order not found"}), 404
    return jsonify({"order": _order_body(order, g.current_user)}), 200


# =============================================================================
# ADMIN ACTIONS
# =============================================================================

@orders_bp.post("/orders/<int:order_id>/verify-payment")
@require_auth
@require_role(ROLE_ADMIN)
def verify_payment_route(order_id: int):
    return _run_action(order_service.verify_payment, order_id, admin=g.current_user)


@orders_bp.post("/orders/<int:order_id>/reject-payment")
@require_auth
@require_role(ROLE_ADMIN)
def reject_payment_route(order_id: int):
    data = request.get_json(silent=True) or {}
    return _run_action(order_service.reject_payment, order_id, admin=g.current_user, reason=data.get("reason"))


@orders_bp.post("/orders/<int:order_id>/mark-refunded")
@require_auth
@require_role(ROLE_ADMIN)
def mark_refunded_route(order_id: int):
    data = request.get_json(silent=True) or {}
    return _run_action(refund_service.mark_refunded, order_id, admin=g.current_user, notes=data.get("notes"))


# =============================================================================
# SELLER ACTIONS
# =============================================================================

@orders_bp.post("/orders/<int:order_id>/process")
@require_auth
@require_role(ROLE_SELLER)
def start_processing_route(order_id: int):
    return _run_action(order_service.start_processing, order_id, seller=g.current_user)


@orders_bp.post("/orders/<int:order_id>/ship")
@require_auth
@require_role(ROLE_SELLER)
def ship_order_route(order_id: int):
    data = request.get_json(silent=True) or {}
    return _run_action(
        order_service.ship_order, order_id, seller=g.current_user, tracking_number=data.get("tracking_number")
    )


@orders_bp.post("/orders/<int:order_id>/decline")
@require_auth
@require_role(ROLE_SELLER)
def decline_order_route(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        relist = parse_flag(data.get("make_products_available"), "make_products_available", default=True)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return _run_action(
        order_service.decline_order,
        order_id,
        seller=g.current_user,
        reason=data.get("reason"),
        make_products_available=relist,
    )


# =============================================================================
# BUYER ACTIONS
# =============================================================================

@orders_bp.post("/orders/<int:order_id>/mark-delivered")
@require_auth
def mark_delivered_route(order_id: int):
    return _run_action(order_service.mark_delivered, order_id, actor=g.current_user)


@orders_bp.post("/orders/<int:order_id>/refund-request")
@require_auth
def refund_request_route(order_id: int):
    data = request.get_json(silent=True) or {}
    return _run_action(refund_service.request_refund, order_id, buyer=g.current_user, payload=data)
