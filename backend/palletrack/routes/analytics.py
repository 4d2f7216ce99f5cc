# Overview: Flask API routes for analytics; parses input and returns JSON responses.

"""
Analytics Routes

Stock totals, leaf utilization, daily activity, 30-day stock history,
top movers, staff activity and category breakdown, recomputed per request.
"""

from flask import Blueprint, jsonify, current_app

from ..decorators import require_auth
from ..errors import PalletTrackError, error_response
from ..services import analytics_service


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("")
@require_auth
def analytics_route():
    try:
        return jsonify(analytics_service.build_analytics())
    except PalletTrackError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build analytics")
        return jsonify({"error": "Failed to fetch analytics"}), 500
