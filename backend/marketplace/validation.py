from __future__ import annotations
from datetime import datetime
import re

from dataclasses import dataclass
from typing import Any

from sqlalchemy import JSON, Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_iso_datetime
from .models.catalog import (
    ALL_TAGS,
    COLOR_TAGS,
    MAX_PRODUCT_IMAGES,
    VALID_CONDITIONS,
)


# Maximum price: $99,999.99 (9,999,999 cents)
MAX_PRICE_CENTS = 9_999_999
MAX_QUANTITY = 999

EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Form posts send booleans as strings
TRUE_STRINGS = {"1", "true", "yes", "on"}
FALSE_STRINGS = {"0", "false", "no", "off", ""}


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    # Booleans (form posts send "true"/"false")
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in TRUE_STRINGS
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # JSON list columns (images, tags)
    if isinstance(coltype, JSON):
        if isinstance(value, (list, tuple)):
            return [str(v).strip() for v in value if str(v).strip()]
        raise ValidationError(f"{col.key} must be a list")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and isinstance(val, str) and val == "":
            if not col.nullable:
                raise ValidationError(f"{k} cannot be blank")
            val = None

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict, *, creating: bool = False) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "price_cents" in patch:
        price = patch["price_cents"]
        if price is None or price <= 0:
            raise ValidationError("price_cents must be > 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")

    if "condition" in patch and patch["condition"] not in VALID_CONDITIONS:
        raise ValidationError(f"condition must be one of: {', '.join(VALID_CONDITIONS)}")

    if "quantity_available" in patch:
        qty = patch["quantity_available"]
        minimum = 1 if creating else 0
        if qty is None or qty < minimum or qty > MAX_QUANTITY:
            raise ValidationError(f"quantity_available must be between {minimum} and {MAX_QUANTITY}")

    if "tags" in patch:
        tags = patch["tags"] or []
        unknown = sorted(set(tags) - ALL_TAGS)
        if unknown:
            raise ValidationError(f"Unknown tags: {', '.join(unknown)}")
        if not any(tag in COLOR_TAGS for tag in tags):
            raise ValidationError("At least one color tag is required")
        # de-duplicate, keep first-seen order
        patch["tags"] = list(dict.fromkeys(tags))
    elif creating:
        raise ValidationError("At least one color tag is required")

    if "images" in patch and len(patch["images"] or []) > MAX_PRODUCT_IMAGES:
        raise ValidationError(f"A product can have at most {MAX_PRODUCT_IMAGES} images")


def require_text(value: Any, field: str, *, min_length: int = 1) -> str:
    """Strip and require a non-empty string (used for reasons / tracking numbers)."""
    text = str(value).strip() if value is not None else ""
    if len(text) < min_length:
        if min_length > 1:
            raise ValidationError(f"{field} must be at least {min_length} characters")
        raise ValidationError(f"{field} is required")
    return text


def parse_flag(value: Any, field: str, *, default: bool) -> bool:
    """JSON bool or a form-style string. Anything else is a 400."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise ValidationError(f"{field} must be true or false")


def is_valid_email(value: str | None) -> bool:
    return bool(value) and EMAIL_REGEX.match(value) is not None
