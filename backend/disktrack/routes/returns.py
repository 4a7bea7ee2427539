# Overview: Admin Flask routes for the return archive; parses input and returns JSON responses.

# backend/disktrack/routes/returns.py
"""
Return Archive API Routes

Return records are created only by POST /api/units/<id>/return. Here they
are browsed, and the only permitted change is appending a note.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_actor, require_auth
from ..errors import ServiceError, error_body
from ..services import return_service


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.get("")
@require_auth
def list_returns_route():
    """
    Query params: q, capacity, platform, source, reason,
    date_range (today|week|month|quarter), page, limit
    """
    try:
        result = return_service.list_returns(
            q=request.args.get("q"),
            capacity=request.args.get("capacity"),
            platform=request.args.get("platform"),
            source=request.args.get("source"),
            reason=request.args.get("reason"),
            date_range=request.args.get("date_range") or None,
            page=request.args.get("page", 1, type=int),
            limit=request.args.get("limit", 10, type=int),
        )
        return jsonify({"success": True, "message": "Returns retrieved", **result}), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        current_app.logger.exception("Failed to list returns")
        return jsonify({"success": False, "error": "InternalError", "message": "Internal server error"}), 500


@returns_bp.get("/<int:return_id>")
@require_auth
def get_return_route(return_id: int):
    try:
        record = return_service.get_return(return_id)
        return jsonify({"success": True, "message": "Return retrieved", "return": record}), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        current_app.logger.exception("Failed to get return")
        return jsonify({"success": False, "error": "InternalError", "message": "Internal server error"}), 500


@returns_bp.post("/<int:return_id>/notes")
@require_auth
def append_note_route(return_id: int):
    """Request body: {"note": "..."}"""
    try:
        data = request.get_json(silent=True) or {}
        record = return_service.append_return_note(return_id, data.get("note"), actor=current_actor())
        return jsonify({"success": True, "message": "Note added", "return": record.to_dict()}), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        current_app.logger.exception("Failed to append return note")
        return jsonify({"success": False, "error": "InternalError", "message": "Internal server error"}), 500
