# Overview: Service-layer operations for accounts; signup, login and profile updates.

"""
Account Service

Passwords are hashed with bcrypt (cost factor from BCRYPT_LOG_ROUNDS,
12 by default) after a strength check. Public signup creates buyers and
sellers only; admins are created from the CLI.

Sellers must give a phone number and a US return address at signup,
since the address is needed to ship orders.
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import Profile
from ..models.accounts import ROLE_ADMIN, ROLE_BUYER, ROLE_SELLER, VALID_ROLES
from ..time_utils import utcnow
from ..validation import ValidationError, ConflictError, is_valid_email


SIGNUP_ROLES = {ROLE_BUYER, ROLE_SELLER}
SELLER_COUNTRY = "USA"
ADDRESS_FIELDS = ("address_line1", "address_line2", "city", "state", "zip_code")
REQUIRED_ADDRESS_FIELDS = ("address_line1", "city", "state", "zip_code")
PROFILE_UPDATE_FIELDS = ("full_name", "phone") + ADDRESS_FIELDS


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AuthenticationError(Exception):
    """Raised when credentials do not match an active account."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _clean(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def create_profile(
    *,
    email: str,
    password: str,
    full_name: str | None = None,
    role: str = ROLE_BUYER,
    phone: str | None = None,
    address: dict | None = None,
    allow_admin: bool = False,
) -> Profile:
    """
    Create a new account.

    Raises ValidationError for bad input, ConflictError for a taken email,
    PasswordValidationError for a weak password.
    """
    email = (_clean(email) or "").lower()
    if not is_valid_email(email):
        raise ValidationError("A valid email is required")

    if role not in VALID_ROLES or (role == ROLE_ADMIN and not allow_admin):
        raise ValidationError(f"role must be one of: {', '.join(sorted(SIGNUP_ROLES))}")

    address = {k: _clean((address or {}).get(k)) for k in ADDRESS_FIELDS}
    phone = _clean(phone)

    if role == ROLE_SELLER:
        if not phone:
            raise ValidationError("Phone number is required for sellers")
        missing = [k for k in REQUIRED_ADDRESS_FIELDS if not address[k]]
        if missing:
            raise ValidationError(f"Seller address is incomplete: {', '.join(missing)}")

    if db.session.query(Profile).filter_by(email=email).first():
        raise ConflictError("An account with this email already exists")

    profile = Profile(
        email=email,
        password_hash=hash_password(password),
        full_name=_clean(full_name),
        role=role,
        phone=phone,
        country=SELLER_COUNTRY if role == ROLE_SELLER else None,
        is_active=True,
        **address,
    )
    db.session.add(profile)
    db.session.commit()

    current_app.logger.info("Created %s profile id=%s", role, profile.id)
    return profile


def authenticate(email: str, password: str) -> Profile:
    """Return the active profile for these credentials or raise AuthenticationError."""
    email = (_clean(email) or "").lower()
    profile = db.session.query(Profile).filter_by(email=email).first()

    if not profile or not verify_password(password or "", profile.password_hash):
        raise AuthenticationError("Invalid email or password")
    if not profile.is_active:
        raise AuthenticationError("Account is disabled")

    profile.last_login_at = utcnow()
    db.session.commit()
    return profile


def update_profile(profile: Profile, patch: dict) -> Profile:
    """
    Self-service profile edit (name, phone, address).

    Sellers cannot clear the phone or the required address fields.
    """
    unknown = sorted(set(patch) - set(PROFILE_UPDATE_FIELDS))
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    cleaned = {k: _clean(v) for k, v in patch.items()}

    if profile.role == ROLE_SELLER:
        if "phone" in cleaned and not cleaned["phone"]:
            raise ValidationError("Phone number is required for sellers")
        for field in REQUIRED_ADDRESS_FIELDS:
            if field in cleaned and not cleaned[field]:
                raise ValidationError(f"{field} is required for sellers")

    for field, value in cleaned.items():
        setattr(profile, field, value)

    if profile.role == ROLE_SELLER:
        profile.country = SELLER_COUNTRY

    db.session.commit()
    return profile
