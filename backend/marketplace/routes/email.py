# Overview: Flask API route for typed transactional email dispatch.

from flask import Blueprint, request, jsonify, current_app

from ..models.accounts import ROLE_ADMIN
from ..services import email_service
from ..services.email_service import EmailParamsError, UnknownEmailTypeError
from ..decorators import require_auth, require_role


email_bp = Blueprint("email", __name__, url_prefix="/api")


@email_bp.post("/send-email")
@require_auth
@require_role(ROLE_ADMIN)
def send_email_route():
    """
    Send one transactional email.

    Request body: {"type": "order-placed", "params": {"to": "...", ...}}

    Returns:
        200: {"success": true, "data": {...}}
        400: unknown type or missing params
        500: delivery failed ({"success": false, "error": {...}})
    """
    data = request.get_json(silent=True) or {}

    try:
        result = email_service.dispatch(data.get("type"), data.get("params") or {})
    except UnknownEmailTypeError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except EmailParamsError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        current_app.logger.exception("Email API error")
        return jsonify({"success": False, "error": str(e)}), 500

    if not result.get("success"):
        return jsonify(result), 500
    return jsonify(result), 200
