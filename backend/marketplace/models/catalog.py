from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


REVIEW_PENDING = "pending"
REVIEW_APPROVED = "approved"
REVIEW_REJECTED = "rejected"
VALID_REVIEW_STATUSES = {REVIEW_PENDING, REVIEW_APPROVED, REVIEW_REJECTED}

CONDITION_NEW = "new"
VALID_CONDITIONS = ("new", "like_new", "excellent", "good", "fair")

COLOR_TAGS = (
    "White", "Ivory", "Red", "Gold", "Silver", "Yellow",
    "Pink", "Green", "Blue", "Purple", "Black", "Multicolor",
)
STYLE_TAGS = ("Traditional", "Modern", "Embroidered", "Beaded", "Sequined", "Handwoven")
OCCASION_TAGS = ("Wedding", "Engagement", "Baptism", "Holiday", "Casual", "Festival")
ALL_TAGS = frozenset(COLOR_TAGS + STYLE_TAGS + OCCASION_TAGS)

MAX_PRODUCT_IMAGES = 5


class Product(db.Model):
    """
    A dress listed by a seller.

    A product is visible to buyers only when it has been approved by an
    admin AND is active. Sellers always see their own listings; admins see
    everything.

    images is an ordered list of public URLs (first one is the cover).
    tags is a list drawn from COLOR_TAGS / STYLE_TAGS / OCCASION_TAGS.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_visibility", "review_status", "is_active"),
        db.Index("ix_products_seller_created", "seller_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)

    condition = db.Column(db.String(16), nullable=False, default=CONDITION_NEW)
    size = db.Column(db.String(32), nullable=True)
    measurements = db.Column(db.Text, nullable=True)
    designer = db.Column(db.String(255), nullable=True, index=True)

    images = db.Column(db.JSON, nullable=False, default=list)
    tags = db.Column(db.JSON, nullable=False, default=list)

    quantity_available = db.Column(db.Integer, nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    review_status = db.Column(db.String(16), nullable=False, default=REVIEW_PENDING)
    rejection_reason = db.Column(db.Text, nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewed_by_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    seller = db.relationship("Profile", foreign_keys=[seller_id], backref=db.backref("products", lazy=True))
    reviewed_by = db.relationship("Profile", foreign_keys=[reviewed_by_id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} title={self.title!r} seller_id={self.seller_id} review={self.review_status}>"

    @property
    def is_visible(self) -> bool:
        return self.review_status == REVIEW_APPROVED and bool(self.is_active)

    @property
    def cover_image(self) -> str | None:
        return self.images[0] if self.images else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "title": self.title,
            "description": self.description,
            "price_cents": self.price_cents,
            "condition": self.condition,
            "size": self.size,
            "measurements": self.measurements,
            "designer": self.designer,
            "images": list(self.images or []),
            "tags": list(self.tags or []),
            "quantity_available": self.quantity_available,
            "is_active": self.is_active,
            "review_status": self.review_status,
            "rejection_reason": self.rejection_reason,
            "reviewed_at": to_utc_z(self.reviewed_at),
            "reviewed_by_id": self.reviewed_by_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Favorite(db.Model):
    """A buyer's saved product. One row per (user, product)."""
    __tablename__ = "favorites"
    __table_args__ = (
        db.UniqueConstraint("user_id", "product_id", name="uq_favorites_user_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "created_at": to_utc_z(self.created_at),
            "product": self.product.to_dict() if self.product else None,
        }
