# Overview: Flask API routes for accounts; parses input and returns JSON responses.

"""
Account API routes

- POST /api/auth/signup   buyer or seller self-registration
- POST /api/auth/login    email + password -> bearer token
- POST /api/auth/logout   revoke the current token
- GET  /api/auth/me       current profile
- PATCH /api/auth/me      name, phone and address updates
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import AuthenticationError, PasswordValidationError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth
from ..time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(profile, token, session) -> dict:
    return {
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "user": profile.to_dict(),
    }


@auth_bp.post("/signup")
def signup_route():
    """
    Create a buyer or seller account and sign it in.

    Request body:
    {
        "email": "...", "password": "...", "full_name": "...",
        "role": "buyer" | "seller",
        "phone": "...",                       (required for sellers)
        "address": {"address_line1": ..., "address_line2": ...,
                    "city": ..., "state": ..., "zip_code": ...}   (required for sellers)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        profile = auth_service.create_profile(
            email=data.get("email"),
            password=data.get("password") or "",
            full_name=data.get("full_name"),
            role=data.get("role") or "buyer",
            phone=data.get("phone"),
            address=data.get("address") if isinstance(data.get("address"), dict) else None,
        )
        session, token = session_service.create_session(
            profile_id=profile.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Signup failed")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(_session_payload(profile, token, session)), 201


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    try:
        profile = auth_service.authenticate(email, password)
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401

    session, token = session_service.create_session(
        profile_id=profile.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify(_session_payload(profile, token, session)), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    token = request.headers.get("Authorization", "").split(" ", 1)[1]
    session_service.revoke_session(token)
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.patch("/me")
@require_auth
def update_me_route():
    """Self-service profile update; sellers use this to complete their return address."""
    data = request.get_json(silent=True) or {}

    try:
        profile = auth_service.update_profile(g.current_user, data)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"user": profile.to_dict()}), 200
