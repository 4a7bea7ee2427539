# Overview: Public Flask routes for warranty registration and status checks.

"""
Public Warranty API

No authentication. Both endpoints are rate limited per caller address
(admin bearer tokens are exempt). The workflows never raise; they return
structured results and the route only picks the HTTP status.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import rate_limited
from ..errors import ServiceError, error_body
from ..services import registration_service
from ..validation import RegistrationInput

warranty_bp = Blueprint("warranty", __name__, url_prefix="/warranty")

PUBLIC_WARRANTY_BUCKET = "public-warranty"


def _respond(result: dict, success_status: int = 200):
    status = result.pop("status_code", None) or (success_status if result.get("success") else 500)
    return jsonify(result), status


@warranty_bp.post("/register")
@rate_limited(PUBLIC_WARRANTY_BUCKET)
def register_route():
    """
    Submit a warranty registration (multipart form).

    Fields: serialNumber, platform, buyerName, buyerPhone, buyerEmail,
    buyerAddress?, buyerPaymentMethod?, durationMonths?, file billFile.

    Returns:
        201: pending warranty created
        400: validation error or warranty already registered
        409: concurrent registration for the same serial
        429: rate limited
    """
    try:
        data = RegistrationInput.from_form(
            request.form,
            platforms=current_app.config["SUPPORTED_PLATFORMS"],
            max_months=current_app.config["MAX_WARRANTY_MONTHS"],
        )
    except ServiceError as e:
        return error_body(e)

    result = registration_service.register_warranty(
        data,
        request.files.get("billFile"),
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return _respond(result, success_status=201)


@warranty_bp.get("/check/<path:serial_number>")
@rate_limited(PUBLIC_WARRANTY_BUCKET)
def check_route(serial_number: str):
    """Warranty status view for a serial. 404 when no unit has it."""
    return _respond(registration_service.check_warranty(serial_number))
