# Overview: Navigation badge counts for the signed-in seller or admin.

from flask import Blueprint, request, jsonify, g

from ..services import dashboard_service
from ..time_utils import parse_iso_datetime
from ..decorators import require_auth


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/badges")
@require_auth
def badges_route():
    """?since=<ISO-8601> limits counts to items created after the last dashboard visit."""
    try:
        since = parse_iso_datetime(request.args.get("since"))
    except ValueError:
        return jsonify({"error": "since must be an ISO-8601 datetime"}), 400

    return jsonify(dashboard_service.badge_counts(g.current_user, since=since)), 200
