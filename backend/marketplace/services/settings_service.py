# Overview: AdminSettings singleton access.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import AdminSettings
from ..models.settings import ADMIN_SETTINGS_ID


def get_admin_settings() -> AdminSettings:
    """Return the settings row, creating it with defaults on first access."""
    settings = db.session.get(AdminSettings, ADMIN_SETTINGS_ID)
    if settings is None:
        settings = AdminSettings(
            id=ADMIN_SETTINGS_ID,
            email_notifications_enabled=bool(current_app.config.get("EMAIL_NOTIFICATIONS_ENABLED", True)),
        )
        db.session.add(settings)
        db.session.commit()
    return settings


def admin_notifications_enabled() -> bool:
    return bool(get_admin_settings().email_notifications_enabled)


def update_admin_settings(*, email_notifications_enabled: bool, updated_by_id: int | None = None) -> AdminSettings:
    """Upsert the singleton (id=1)."""
    settings = get_admin_settings()
    settings.email_notifications_enabled = bool(email_notifications_enabled)
    settings.updated_by_id = updated_by_id
    db.session.commit()

    current_app.logger.info(
        "Admin email notifications %s by profile %s",
        "enabled" if settings.email_notifications_enabled else "disabled",
        updated_by_id,
    )
    return settings
