# Overview: Admin Flask routes for dashboard statistics; parses input and returns JSON responses.

"""
Statistics API

GET /api/stats/dashboard
    Filtered dashboard aggregation. Query params: dateRange
    (all|week|month|quarter|year), platform, capacity, source,
    warrantyStatus (registered|not_registered|pending|active|expired|void).
    Always 200 unless the filter is invalid; a failed computation is served
    as degraded totals.

GET /api/stats/summary
    Unfiltered totals and warranty breakdown.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..errors import ServiceError, error_body
from ..services import analytics_service
from ..services.analytics_service import StatsFilter

stats_bp = Blueprint("stats", __name__, url_prefix="/api/stats")


@stats_bp.get("/dashboard")
@require_auth
def dashboard_route():
    try:
        flt = StatsFilter.from_args(request.args)
        stats = analytics_service.dashboard_stats(flt)
        message = stats.get("notice") or "Dashboard statistics retrieved"
        return jsonify({"success": True, "message": message, "stats": stats}), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        current_app.logger.exception("Failed to build dashboard statistics")
        return jsonify({"success": False, "error": "InternalError", "message": "Internal server error"}), 500


@stats_bp.get("/summary")
@require_auth
def summary_route():
    try:
        return jsonify({
            "success": True,
            "message": "Statistics retrieved",
            "stats": analytics_service.basic_stats(),
        }), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        current_app.logger.exception("Failed to build summary statistics")
        return jsonify({"success": False, "error": "InternalError", "message": "Internal server error"}), 500
