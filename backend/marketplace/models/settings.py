from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ADMIN_SETTINGS_ID = 1


class AdminSettings(db.Model):
    """
    Marketplace-wide admin preferences. Exactly one row (id=1).

    email_notifications_enabled controls the "new order" email sent to the
    admin inbox at checkout. Buyer and seller emails are not affected.
    """
    __tablename__ = "admin_settings"

    id = db.Column(db.Integer, primary_key=True)
    email_notifications_enabled = db.Column(db.Boolean, nullable=False, default=True)

    updated_by_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "email_notifications_enabled": self.email_notifications_enabled,
            "updated_by_id": self.updated_by_id,
            "updated_at": to_utc_z(self.updated_at),
        }
