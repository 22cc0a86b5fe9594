from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


# Order.status values
STATUS_PENDING_PAYMENT = "pending_payment"
STATUS_PAYMENT_VERIFIED = "payment_verified"
STATUS_PROCESSING = "processing"
STATUS_SHIPPED = "shipped"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"
# Accepted for compatibility with stored data; refunds are recorded via refunded_at.
STATUS_REFUNDED = "refunded"
VALID_ORDER_STATUSES = {
    STATUS_PENDING_PAYMENT,
    STATUS_PAYMENT_VERIFIED,
    STATUS_PROCESSING,
    STATUS_SHIPPED,
    STATUS_DELIVERED,
    STATUS_CANCELLED,
    STATUS_REFUNDED,
}

# Order.payment_status values
PAYMENT_PENDING = "pending"
PAYMENT_VERIFIED = "verified"
PAYMENT_REJECTED = "rejected"
VALID_PAYMENT_STATUSES = {PAYMENT_PENDING, PAYMENT_VERIFIED, PAYMENT_REJECTED}

PAYMENT_METHOD_ZELLE = "zelle"
DEFAULT_SHIPPING_COUNTRY = "USA"


class Order(db.Model):
    """
    A checkout of one seller's items by one buyer.

    total_cents = subtotal_cents + shipping_cost_cents.
    platform_fee_cents is informational (the seller's payout is subtotal minus fee).

    Refund bookkeeping is an overlay on the status: refunded_at is set by an
    admin once the money has been returned, the status itself is left alone.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_buyer_created", "buyer_id", "created_at"),
        db.Index("ix_orders_seller_status", "seller_id", "status"),
        db.Index("ix_orders_payment_status", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    shipping_cost_cents = db.Column(db.Integer, nullable=False)
    platform_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, default=PAYMENT_METHOD_ZELLE)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_PENDING)
    payment_screenshot_url = db.Column(db.String(1024), nullable=True)
    payment_verified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    buyer_payment_email = db.Column(db.String(255), nullable=True)
    buyer_payment_phone = db.Column(db.String(32), nullable=True)

    # Shipping address snapshot
    shipping_address_line1 = db.Column(db.String(255), nullable=False)
    shipping_address_line2 = db.Column(db.String(255), nullable=True)
    shipping_city = db.Column(db.String(128), nullable=False)
    shipping_state = db.Column(db.String(64), nullable=False)
    shipping_zip = db.Column(db.String(16), nullable=False)
    shipping_country = db.Column(db.String(64), nullable=False, default=DEFAULT_SHIPPING_COUNTRY)

    status = db.Column(db.String(32), nullable=False, default=STATUS_PENDING_PAYMENT)
    tracking_number = db.Column(db.String(128), nullable=True)
    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancellation_reason = db.Column(db.Text, nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    refund_requested = db.Column(db.Boolean, nullable=False, default=False)
    refund_request_reason = db.Column(db.String(64), nullable=True)
    refund_request_description = db.Column(db.Text, nullable=True)
    refund_requested_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refund_payout_name = db.Column(db.String(255), nullable=True)
    refund_payout_email = db.Column(db.String(255), nullable=True)
    refund_payout_phone = db.Column(db.String(32), nullable=True)
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refund_notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    buyer = db.relationship("Profile", foreign_keys=[buyer_id], backref=db.backref("purchases", lazy=True))
    seller = db.relationship("Profile", foreign_keys=[seller_id], backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status} payment={self.payment_status}>"

    @property
    def order_number(self) -> str:
        return f"#{self.id:08d}" if self.id is not None else "#PENDING"

    @property
    def is_refunded(self) -> bool:
        return self.refunded_at is not None

    @property
    def shipping_address_text(self) -> str:
        parts = [self.shipping_address_line1]
        if self.shipping_address_line2:
            parts.append(self.shipping_address_line2)
        parts.append(f"{self.shipping_city}, {self.shipping_state} {self.shipping_zip}")
        parts.append(self.shipping_country)
        return ", ".join(parts)

    @property
    def product_ids(self) -> list[int]:
        return [item.product_id for item in self.items if item.product_id is not None]

    def to_dict(self, *, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "buyer_id": self.buyer_id,
            "seller_id": self.seller_id,
            "subtotal_cents": self.subtotal_cents,
            "shipping_cost_cents": self.shipping_cost_cents,
            "platform_fee_cents": self.platform_fee_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "payment_screenshot_url": self.payment_screenshot_url,
            "payment_verified_at": to_utc_z(self.payment_verified_at),
            "buyer_payment_email": self.buyer_payment_email,
            "buyer_payment_phone": self.buyer_payment_phone,
            "shipping_address": {
                "line1": self.shipping_address_line1,
                "line2": self.shipping_address_line2,
                "city": self.shipping_city,
                "state": self.shipping_state,
                "zip": self.shipping_zip,
                "country": self.shipping_country,
            },
            "status": self.status,
            "tracking_number": self.tracking_number,
            "shipped_at": to_utc_z(self.shipped_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "cancellation_reason": self.cancellation_reason,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "refund_requested": self.refund_requested,
            "refund_request_reason": self.refund_request_reason,
            "refund_request_description": self.refund_request_description,
            "refund_requested_at": to_utc_z(self.refund_requested_at),
            "refund_payout_name": self.refund_payout_name,
            "refund_payout_email": self.refund_payout_email,
            "refund_payout_phone": self.refund_payout_phone,
            "refunded_at": to_utc_z(self.refunded_at),
            "refund_notes": self.refund_notes,
            "is_refunded": self.is_refunded,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """
    Immutable snapshot of a purchased product.

    product_id is cleared if the seller later deletes the listing; the
    title, price and image stay as they were at checkout.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    product_title = db.Column(db.String(255), nullable=False)
    product_price_cents = db.Column(db.Integer, nullable=False)
    product_image = db.Column(db.String(1024), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_title": self.product_title,
            "product_price_cents": self.product_price_cents,
            "product_image": self.product_image,
            "quantity": self.quantity,
            "created_at": to_utc_z(self.created_at),
        }
