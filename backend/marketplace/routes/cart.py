# Overview: Flask API routes for the session cart.

"""
Cart routes. The cart lives in the signed session cookie; no login needed
to build one.

- GET    /api/cart                       cart + totals (stale lines dropped)
- POST   /api/cart/items                 {"product_id": 1, "confirm_replace": false}
- PATCH  /api/cart/items/<product_id>    {"quantity": 2}
- DELETE /api/cart/items/<product_id>
- DELETE /api/cart
"""

from flask import Blueprint, request, jsonify, session, current_app

from ..extensions import db
from ..models import Product
from ..services import cart_service
from ..services.cart_service import CartError, SellerConflictError
from ..services.products_service import ProductNotFoundError, get_visible_product


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


def _cart_response(cart, *, warning: str | None = None, status: int = 200):
    config = current_app.config
    body = {
        "cart": cart.to_dict(),
        "totals": cart_service.cart_totals(
            cart,
            shipping_cents=config["SHIPPING_FLAT_RATE_CENTS"],
            fee_percentage=config["PLATFORM_FEE_PERCENTAGE"],
        ),
    }
    if warning:
        body["warning"] = warning
    return jsonify(body), status


@cart_bp.get("")
def get_cart_route():
    cart = cart_service.load_cart(session)
    if not cart.is_empty:
        ids = [line.product_id for line in cart.items]
        products = {p.id: p for p in db.session.query(Product).filter(Product.id.in_(ids)).all()}
        cart = cart_service.refresh_snapshots(cart, products)
        cart_service.save_cart(session, cart)
    return _cart_response(cart)


@cart_bp.post("/items")
def add_item_route():
    data = request.get_json(silent=True) or {}
    product_id = data.get("product_id")
    if not isinstance(product_id, int) or isinstance(product_id, bool):
        return jsonify({"error": "product_id must be an integer"}), 400

    try:
        product = get_visible_product(product_id)
    except ProductNotFoundError:
        return jsonify({"error": "Product not found"}), 404

    cart = cart_service.load_cart(session)
    try:
        cart, warning = cart_service.add_item(
            cart,
            cart_service.product_snapshot(product),
            confirm_replace=bool(data.get("confirm_replace")),
        )
    except SellerConflictError as e:
        return jsonify({
            "error": str(e),
            "requires_confirmation": True,
            "current_seller_id": e.current_seller_id,
        }), 409
    except CartError as e:
        return jsonify({"error": str(e)}), 400

    cart_service.save_cart(session, cart)
    return _cart_response(cart, warning=warning)


@cart_bp.patch("/items/<int:product_id>")
def update_item_route(product_id: int):
    data = request.get_json(silent=True) or {}
    quantity = data.get("quantity")
    if not isinstance(quantity, int) or isinstance(quantity, bool):
        return jsonify({"error": "quantity must be an integer"}), 400

    cart = cart_service.load_cart(session)
    try:
        cart = cart_service.update_quantity(cart, product_id, quantity)
    except CartError as e:
        return jsonify({"error": str(e)}), 404

    cart_service.save_cart(session, cart)
    return _cart_response(cart)


@cart_bp.delete("/items/<int:product_id>")
def remove_item_route(product_id: int):
    cart = cart_service.remove_item(cart_service.load_cart(session), product_id)
    cart_service.save_cart(session, cart)
    return _cart_response(cart)


@cart_bp.delete("")
def clear_cart_route():
    cart = cart_service.clear()
    cart_service.save_cart(session, cart)
    return _cart_response(cart)
