# Overview: Flask API routes for admin review, designers, settings and order queues.

"""
Admin API routes (all require an admin session)

Product review:
- GET  /api/admin/products?review_status=pending|approved|rejected|all
- POST /api/admin/products/<id>/approve
- POST /api/admin/products/<id>/reject          {"reason": "..."}

Designers:
- GET    /api/admin/designers
- PUT    /api/admin/designers                   {"old_name": "...", "new_name": "..."}
- DELETE /api/admin/designers                   {"name": "..."}

Orders:
- GET /api/admin/orders?payment_status=&status=
- GET /api/admin/refund-requests?include_refunded=1

Settings:
- GET /api/admin/settings
- PUT /api/admin/settings                       {"email_notifications_enabled": true}
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models.accounts import ROLE_ADMIN
from ..services import order_service, products_service, refund_service, review_service, settings_service
from ..services.review_service import ReviewError
from ..validation import ValidationError
from ..decorators import require_auth, require_role


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.before_request
@require_auth
@require_role(ROLE_ADMIN)
def _require_admin():
    return None


# =============================================================================
# PRODUCT REVIEW
# =============================================================================

@admin_bp.get("/products")
def list_review_products_route():
    try:
        products = review_service.list_products_for_review(request.args.get("review_status", "pending"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    items = []
    for product in products:
        data = product.to_dict()
        data["seller"] = product.seller.to_dict() if product.seller else None
        items.append(data)
    return jsonify({"items": items}), 200


@admin_bp.post("/products/<int:product_id>/approve")
def approve_product_route(product_id: int):
    try:
        product = review_service.approve_product(product_id, reviewer=g.current_user)
    except LookupError:
        return jsonify({"error": "Product not found"}), 404
    except ReviewError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify({"product": product.to_dict()}), 200


@admin_bp.post("/products/<int:product_id>/reject")
def reject_product_route(product_id: int):
    data = request.get_json(silent=True) or {}

    try:
        product = review_service.reject_product(product_id, reviewer=g.current_user, reason=data.get("reason"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except LookupError:
        return jsonify({"error": "Product not found"}), 404
    except ReviewError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify({"product": product.to_dict()}), 200


# =============================================================================
# DESIGNERS
# =============================================================================

@admin_bp.get("/designers")
def list_designers_route():
    return jsonify({"designers": products_service.list_designers()}), 200


@admin_bp.put("/designers")
def rename_designer_route():
    data = request.get_json(silent=True) or {}
    try:
        updated = products_service.rename_designer(data.get("old_name"), data.get("new_name"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"updated": updated}), 200


@admin_bp.delete("/designers")
def remove_designer_route():
    data = request.get_json(silent=True) or {}
    try:
        updated = products_service.remove_designer(data.get("name"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"updated": updated}), 200


# =============================================================================
# ORDERS
# =============================================================================

@admin_bp.get("/orders")
def list_all_orders_route():
    try:
        orders = order_service.list_orders(
            viewer=g.current_user,
            status=request.args.get("status"),
            payment_status=request.args.get("payment_status"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    items = []
    for order in orders:
        data = order.to_dict()
        data["buyer"] = order.buyer.to_dict() if order.buyer else None
        data["seller"] = order.seller.to_dict() if order.seller else None
        items.append(data)
    return jsonify({"items": items}), 200


@admin_bp.get("/refund-requests")
def list_refund_requests_route():
    include_refunded = request.args.get("include_refunded") in {"1", "true", "yes"}
    orders = refund_service.list_refund_requests(include_refunded=include_refunded)
    return jsonify({"items": [o.to_dict() for o in orders]}), 200


# =============================================================================
# SETTINGS
# =============================================================================

@admin_bp.get("/settings")
def get_settings_route():
    return jsonify(settings_service.get_admin_settings().to_dict()), 200


@admin_bp.put("/settings")
def update_settings_route():
    data = request.get_json(silent=True) or {}
    enabled = data.get("email_notifications_enabled")
    if not isinstance(enabled, bool):
        return jsonify({"error": "email_notifications_enabled must be a boolean"}), 400

    try:
        settings = settings_service.update_admin_settings(
            email_notifications_enabled=enabled,
            updated_by_id=g.current_user.id,
        )
    except Exception:
        current_app.logger.exception("Failed to update admin settings")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(settings.to_dict()), 200
