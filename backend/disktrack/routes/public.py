# Overview: Public Flask route for the contact form; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import rate_limited
from ..errors import ServiceError, error_body
from ..services import inquiry_service
from ..validation import InquiryInput

public_bp = Blueprint("public", __name__, url_prefix="/api")


@public_bp.post("/queries")
@rate_limited("public-queries")
def create_query_route():
    """
    Submit a customer inquiry.

    Request body:
    {
        "name": "...", "email": "...", "subject": "...", "description": "...",
        "productSerialNumber": "SN-100"  (optional)
    }
    """
    try:
        data = InquiryInput.from_json(request.get_json(silent=True))
        inquiry = inquiry_service.create_inquiry(data)
        return jsonify({
            "success": True,
            "message": "Query submitted successfully. We will get back to you soon.",
            "query_id": inquiry.id,
        }), 201
    except ServiceError as e:
        return error_body(e)
    except Exception:
        current_app.logger.exception("Failed to submit query")
        return jsonify({"success": False, "error": "InternalError", "message": "Internal server error"}), 500
