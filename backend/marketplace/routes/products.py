# Overview: Flask API routes for the catalog and seller listings; parses input and returns JSON responses.

"""
Product routes

Public:
- GET /api/products                 visible catalog (q, tags, condition, seller_id, page, per_page)
- GET /api/products/<id>            visible product (owner and admins see any state)
- GET /api/products/designers       designer name autocomplete
- GET /api/products/tags            tag vocabularies and conditions

Seller:
- GET    /api/products/mine         own listings, any review state
- POST   /api/products              create (JSON or multipart with image files under "images")
- PUT    /api/products/<id>         edit
- DELETE /api/products/<id>         hard delete
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import Product
from ..models.accounts import ROLE_SELLER
from ..models.catalog import COLOR_TAGS, STYLE_TAGS, OCCASION_TAGS, VALID_CONDITIONS
from ..services import products_service
from ..services.products_service import ProductAccessError, ProductNotFoundError
from ..services.storage_service import StorageError
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from ..decorators import require_auth, optional_auth, require_role


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "title", "description", "price_cents", "condition", "size", "measurements",
        "designer", "images", "tags", "quantity_available", "is_active",
    },
    required_on_create={"title", "price_cents", "condition"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _read_product_payload() -> tuple[dict, list]:
    """
    JSON body, or multipart form fields plus uploaded files.

    In a multipart edit, "existing_images" lists the image URLs to keep.
    """
    if request.is_json:
        return request.get_json(silent=True) or {}, []

    form = request.form
    payload = {}
    for key in PRODUCT_POLICY.writable_fields - {"images", "tags"}:
        if key in form:
            payload[key] = form.get(key)
    if "tags" in form:
        payload["tags"] = form.getlist("tags")
    if "existing_images" in form:
        payload["images"] = [url for url in form.getlist("existing_images") if url]
    return payload, request.files.getlist("images")


@products_bp.get("")
def list_catalog_route():
    try:
        result = products_service.list_catalog(
            q=request.args.get("q"),
            tags=request.args.getlist("tags") or [t for t in (request.args.get("tag") or "").split(",") if t],
            condition=request.args.get("condition"),
            seller_id=request.args.get("seller_id", type=int),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return result


@products_bp.get("/tags")
def tag_vocabulary_route():
    return {
        "colors": list(COLOR_TAGS),
        "styles": list(STYLE_TAGS),
        "occasions": list(OCCASION_TAGS),
        "conditions": list(VALID_CONDITIONS),
    }


@products_bp.get("/designers")
def designer_suggestions_route():
    return {"designers": products_service.designer_suggestions(request.args.get("q"))}


@products_bp.get("/mine")
@require_auth
@require_role(ROLE_SELLER)
def my_products_route():
    products = products_service.list_seller_products(g.current_user)
    return {"items": [p.to_dict() for p in products]}


@products_bp.get("/<int:product_id>")
@optional_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product_for_viewer(product_id, g.current_user)
    except ProductNotFoundError:
        return {"error": "Product not found"}, 404

    data = product.to_dict()
    data["seller"] = product.seller.to_public_dict() if product.seller else None
    return data


@products_bp.post("")
@require_auth
@require_role(ROLE_SELLER)
def create_product_route():
    payload, files = _read_product_payload()

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        created = products_service.create_product(seller=g.current_user, patch=patch, image_files=files)
    except (ValidationError, StorageError) as e:
        return {"error": str(e)}, 400
    except ProductAccessError as e:
        return {"error": str(e)}, 403
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return created.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(ROLE_SELLER)
def update_product_route(product_id: int):
    payload, files = _read_product_payload()

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        updated = products_service.update_product(
            product_id=product_id, seller=g.current_user, patch=patch, image_files=files
        )
    except ProductNotFoundError:
        return {"error": "Product not found"}, 404
    except (ValidationError, StorageError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return {"error": "Internal server error"}, 500

    return updated.to_dict(), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_SELLER)
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id=product_id, seller=g.current_user)
    except ProductNotFoundError:
        return {"error": "Product not found"}, 404

    return {"ok": True}, 200
