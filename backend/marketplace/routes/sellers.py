# Overview: Public seller storefront route.

from flask import Blueprint

from ..extensions import db
from ..models import Profile
from ..models.accounts import ROLE_SELLER
from ..services import products_service


sellers_bp = Blueprint("sellers", __name__, url_prefix="/api/sellers")


@sellers_bp.get("/<int:seller_id>")
def seller_page_route(seller_id: int):
    """A seller's public profile and their visible listings."""
    seller = db.session.get(Profile, seller_id)
    if seller is None or seller.role != ROLE_SELLER or not seller.is_active:
        return {"error": "Seller not found"}, 404

    catalog = products_service.list_catalog(seller_id=seller.id)
    return {
        "seller": seller.to_public_dict(),
        "products": catalog["items"],
        "total": catalog["total"],
    }
