# Overview: Single-seller cart held in the client session.

"""
Cart Aggregation

The cart never touches the database. It is a list of
{product snapshot, quantity} lines plus the seller_id they all share,
serialized as JSON into the signed session cookie under CART_SESSION_KEY.

All operations are pure: they take a Cart and return a new Cart. The
input is never modified.

Rules:
- every line belongs to cart.seller_id (one seller per cart)
- adding a product from another seller needs confirm_replace=True and
  then replaces the whole cart with that one product
- a line's quantity never exceeds the product's quantity_available
- quantity < 1 removes the line; removing the last line clears seller_id
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any

from ..models import Product


CART_SESSION_KEY = "cart"

SNAPSHOT_FIELDS = ("id", "seller_id", "title", "price_cents", "image", "quantity_available", "condition", "size")


class CartError(ValueError):
    """Raised for invalid cart operations."""


class SellerConflictError(CartError):
    """Adding this product would mix two sellers; the caller must confirm a replace."""

    def __init__(self, current_seller_id: int, new_seller_id: int):
        super().__init__(
            "Your cart contains items from another seller. "
            "Adding this item will clear your current cart."
        )
        self.current_seller_id = current_seller_id
        self.new_seller_id = new_seller_id


@dataclass
class CartLine:
    product: dict
    quantity: int

    @property
    def product_id(self) -> int:
        return self.product["id"]

    @property
    def line_total_cents(self) -> int:
        return int(self.product["price_cents"]) * self.quantity

    def to_dict(self) -> dict:
        return {"product": dict(self.product), "quantity": self.quantity}


@dataclass
class Cart:
    items: list[CartLine] = field(default_factory=list)
    seller_id: int | None = None

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)

    @property
    def subtotal_cents(self) -> int:
        return sum(line.line_total_cents for line in self.items)

    def find(self, product_id: int) -> CartLine | None:
        for line in self.items:
            if line.product_id == product_id:
                return line
        return None

    def to_dict(self) -> dict:
        return {
            "items": [line.to_dict() for line in self.items],
            "seller_id": self.seller_id,
        }


def product_snapshot(product: Product) -> dict:
    """The subset of a product a cart line carries."""
    return {
        "id": product.id,
        "seller_id": product.seller_id,
        "title": product.title,
        "price_cents": product.price_cents,
        "image": product.cover_image,
        "quantity_available": product.quantity_available,
        "condition": product.condition,
        "size": product.size,
    }


def _copy(cart: Cart) -> Cart:
    return copy.deepcopy(cart)


def add_item(cart: Cart, product: dict, *, confirm_replace: bool = False) -> tuple[Cart, str | None]:
    """
    Add one unit of product. Returns (new_cart, warning).

    warning is set (and the cart unchanged) when the line is already at
    the product's available quantity.
    """
    available = int(product.get("quantity_available") or 0)
    if available < 1:
        raise CartError("This item is out of stock")

    if cart.seller_id is not None and cart.items and product["seller_id"] != cart.seller_id:
        if not confirm_replace:
            raise SellerConflictError(cart.seller_id, product["seller_id"])
        return Cart(items=[CartLine(product=dict(product), quantity=1)], seller_id=product["seller_id"]), None

    new_cart = _copy(cart)
    existing = new_cart.find(product["id"])

    if existing is not None:
        if existing.quantity >= available:
            return _copy(cart), f"Only {available} available"
        existing.quantity += 1
        existing.product = dict(product)
    else:
        new_cart.items.append(CartLine(product=dict(product), quantity=1))

    new_cart.seller_id = product["seller_id"]
    return new_cart, None


def update_quantity(cart: Cart, product_id: int, quantity: int) -> Cart:
    """Set a line's quantity; < 1 removes it, above stock is capped."""
    if quantity < 1:
        return remove_item(cart, product_id)

    new_cart = _copy(cart)
    line = new_cart.find(product_id)
    if line is None:
        raise CartError("Item is not in the cart")

    available = int(line.product.get("quantity_available") or 0)
    line.quantity = min(quantity, max(available, 1))
    return new_cart


def remove_item(cart: Cart, product_id: int) -> Cart:
    items = [copy.deepcopy(line) for line in cart.items if line.product_id != product_id]
    return Cart(items=items, seller_id=cart.seller_id if items else None)


def clear() -> Cart:
    return Cart()


def refresh_snapshots(cart: Cart, products: dict[int, Product]) -> Cart:
    """
    Re-take snapshots from current rows and drop lines whose product is gone
    or no longer buyer-visible. Quantities are re-capped to current stock.
    """
    lines = []
    for line in cart.items:
        product = products.get(line.product_id)
        if product is None or not product.is_visible or product.quantity_available < 1:
            continue
        lines.append(CartLine(
            product=product_snapshot(product),
            quantity=min(line.quantity, product.quantity_available),
        ))
    return Cart(items=lines, seller_id=cart.seller_id if lines else None)


def cart_totals(cart: Cart, *, shipping_cents: int, fee_percentage: int) -> dict:
    """subtotal + flat shipping; the platform fee is informational."""
    subtotal = cart.subtotal_cents
    return {
        "subtotal_cents": subtotal,
        "shipping_cost_cents": shipping_cents,
        "platform_fee_cents": platform_fee_cents(subtotal, fee_percentage),
        "total_cents": subtotal + shipping_cents,
        "item_count": cart.item_count,
    }


def platform_fee_cents(subtotal_cents: int, fee_percentage: int) -> int:
    """round(subtotal * fee%), half up, in whole cents."""
    return (subtotal_cents * fee_percentage + 50) // 100


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def serialize(cart: Cart) -> str:
    return json.dumps(cart.to_dict(), separators=(",", ":"), sort_keys=True)


def deserialize(blob: str | None) -> Cart:
    """Parse a stored blob. Anything unreadable yields an empty cart."""
    if not blob:
        return Cart()
    try:
        data: Any = json.loads(blob)
    except (TypeError, ValueError):
        return Cart()
    if not isinstance(data, dict):
        return Cart()

    lines = []
    for raw in data.get("items") or []:
        if not isinstance(raw, dict) or not isinstance(raw.get("product"), dict):
            continue
        product = {k: raw["product"].get(k) for k in SNAPSHOT_FIELDS}
        if product["id"] is None or product["seller_id"] is None:
            continue
        try:
            quantity = int(raw.get("quantity", 0))
        except (TypeError, ValueError):
            continue
        if quantity < 1:
            continue
        lines.append(CartLine(product=product, quantity=quantity))

    return Cart(items=lines, seller_id=data.get("seller_id") if lines else None)


def load_cart(session) -> Cart:
    return deserialize(session.get(CART_SESSION_KEY))


def save_cart(session, cart: Cart) -> None:
    if cart.is_empty:
        session.pop(CART_SESSION_KEY, None)
    else:
        session[CART_SESSION_KEY] = serialize(cart)
