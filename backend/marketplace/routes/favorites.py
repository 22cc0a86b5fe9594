# Overview: Flask API routes for saved products.

from flask import Blueprint, jsonify, g

from ..services import favorites_service
from ..services.products_service import ProductNotFoundError
from ..decorators import require_auth


favorites_bp = Blueprint("favorites", __name__, url_prefix="/api/favorites")


@favorites_bp.get("")
@require_auth
def list_favorites_route():
    favorites = favorites_service.list_favorites(g.current_user)
    return jsonify({"items": [f.to_dict() for f in favorites]}), 200


@favorites_bp.post("/<int:product_id>")
@require_auth
def toggle_favorite_route(product_id: int):
    """Toggle; responds with the new state."""
    try:
        favorited = favorites_service.toggle_favorite(g.current_user, product_id)
    except ProductNotFoundError:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product_id": product_id, "favorited": favorited}), 200


@favorites_bp.delete("/<int:product_id>")
@require_auth
def remove_favorite_route(product_id: int):
    favorites_service.remove_favorite(g.current_user, product_id)
    return jsonify({"product_id": product_id, "favorited": False}), 200
