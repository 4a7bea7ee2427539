# Overview: Admin Flask routes for customer inquiry triage; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_actor, require_auth
from ..errors import ServiceError, error_body
from ..services import inquiry_service

inquiries_bp = Blueprint("inquiries", __name__, url_prefix="/api/inquiries")


def _internal_error(log_message: str):
    current_app.logger.exception(log_message)
    return jsonify({"success": False, "error": "InternalError", "message": "Internal server error"}), 500


@inquiries_bp.get("")
@require_auth
def list_inquiries_route():
    """Query params: search, page, limit (default 20)"""
    try:
        result = inquiry_service.list_inquiries(
            search=request.args.get("search"),
            page=request.args.get("page", 1, type=int),
            limit=request.args.get("limit", 20, type=int),
        )
        return jsonify({"success": True, "message": "Queries retrieved", **result}), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        return _internal_error("Failed to list inquiries")


@inquiries_bp.get("/<int:inquiry_id>")
@require_auth
def get_inquiry_route(inquiry_id: int):
    try:
        inquiry = inquiry_service.get_inquiry(inquiry_id)
        return jsonify({"success": True, "message": "Query retrieved", "query": inquiry}), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        return _internal_error("Failed to get inquiry")


@inquiries_bp.post("/<int:inquiry_id>/toggle-status")
@require_auth
def toggle_status_route(inquiry_id: int):
    try:
        inquiry = inquiry_service.toggle_resolved(inquiry_id, actor=current_actor())
        state = "resolved" if inquiry.is_resolved else "reopened"
        return jsonify({"success": True, "message": f"Query {state}", "query": inquiry.to_dict()}), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        return _internal_error("Failed to toggle inquiry status")


@inquiries_bp.put("/<int:inquiry_id>/notes")
@require_auth
def update_notes_route(inquiry_id: int):
    """Request body: {"admin_notes": "..."}"""
    try:
        data = request.get_json(silent=True) or {}
        inquiry = inquiry_service.update_admin_notes(inquiry_id, data.get("admin_notes"))
        return jsonify({"success": True, "message": "Notes updated", "query": inquiry.to_dict()}), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        return _internal_error("Failed to update inquiry notes")


@inquiries_bp.delete("/<int:inquiry_id>")
@require_auth
def delete_inquiry_route(inquiry_id: int):
    try:
        inquiry_service.delete_inquiry(inquiry_id)
        return jsonify({"success": True, "message": "Query deleted"}), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        return _internal_error("Failed to delete inquiry")
