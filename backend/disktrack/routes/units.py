# Overview: Admin Flask routes for units, their warranties and returns; parses input and returns JSON responses.

"""
Unit Administration API

DESIGN:
- Unit CRUD (serial numbers immutable)
- Warranty registration/update by admin (multipart, optional bill)
- Warranty status changes through the state machine
- Bill download (the only place a bill artifact is ever served)
- Mark as return (moves the unit to the return archive)

All routes require an admin bearer token. Changes are attributed to the
authenticated admin's email.
"""

from flask import Blueprint, current_app, jsonify, request, send_file

from ..decorators import current_actor, require_auth
from ..errors import NotFoundError, ServiceError, error_body
from ..services import bill_store, registration_service, return_service, units_service, warranty_service
from ..validation import AdminWarrantyInput, ReturnInput, WarrantyStatusInput

units_bp = Blueprint("units", __name__, url_prefix="/api/units")


def _internal_error(log_message: str):
    current_app.logger.exception(log_message)
    return jsonify({"success": False, "error": "InternalError", "message": "Internal server error"}), 500


# =============================================================================
# UNITS
# =============================================================================

@units_bp.get("")
@require_auth
def list_units_route():
    """
    Query params: q, capacity, platform, buyer, page (default 1), limit (default 10, max 100)
    """
    try:
        result = units_service.list_units(
            q=request.args.get("q"),
            capacity=request.args.get("capacity"),
            platform=request.args.get("platform"),
            buyer=request.args.get("buyer"),
            page=request.args.get("page", 1, type=int),
            limit=request.args.get("limit", 10, type=int),
        )
        return jsonify({"success": True, "message": "Products retrieved", **result}), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        return _internal_error("Failed to list units")


@units_bp.post("")
@require_auth
def create_unit_route():
    """
    Request body:
    {
        "serial_number": "SN-100",
        "name": "Portable SSD",
        "type_capacity": "512",
        "platform": "amazon",   (optional)
        "source": "Vendor A",   (optional)
        "description": "..."    (optional)
    }

    Returns:
        201: created
        400: invalid input
        409: serial number already exists
    """
    try:
        unit = units_service.create_unit(request.get_json(silent=True) or {})
        return jsonify({"success": True, "message": "Product created successfully", "product": unit.to_dict()}), 201
    except ServiceError as e:
        return error_body(e)
    except Exception:
        return _internal_error("Failed to create unit")


@units_bp.get("/<int:unit_id>")
@require_auth
def get_unit_route(unit_id: int):
    try:
        unit = units_service.get_unit(unit_id)
        return jsonify({"success": True, "message": "Product retrieved", "product": unit.to_dict()}), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        return _internal_error("Failed to get unit")


@units_bp.put("/<int:unit_id>")
@require_auth
def update_unit_route(unit_id: int):
    try:
        unit = units_service.update_unit(unit_id, request.get_json(silent=True) or {})
        return jsonify({"success": True, "message": "Product updated successfully", "product": unit.to_dict()}), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        return _internal_error("Failed to update unit")


# =============================================================================
# WARRANTY
# =============================================================================

@units_bp.get("/warranty-requests")
@require_auth
def warranty_requests_route():
    """Query params: status (pending|active|expired|void), limit (default 200)"""
    try:
        result = warranty_service.list_warranty_requests(
            request.args.get("status") or None,
            limit=min(max(request.args.get("limit", 200, type=int), 1), 500),
        )
        return jsonify({"success": True, "message": "Warranty requests retrieved", **result}), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        return _internal_error("Failed to list warranty requests")


@units_bp.post("/<int:unit_id>/warranty")
@require_auth
def register_warranty_route(unit_id: int):
    """
    Admin warranty registration or update (multipart form).

    Fields: status (default active), duration_months (default 12), notes,
    file billFile (optional).
    """
    try:
        data = AdminWarrantyInput.from_form(
            request.form,
            default_months=current_app.config["DEFAULT_WARRANTY_MONTHS"],
            max_months=current_app.config["MAX_WARRANTY_MONTHS"],
        )
        warranty, is_update = registration_service.admin_register_warranty(
            unit_id,
            data,
            request.files.get("billFile"),
            actor=current_actor(),
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        message = "Warranty updated successfully" if is_update else "Warranty registered successfully"
        return jsonify({"success": True, "message": message, "warranty": warranty.to_dict()}), 200 if is_update else 201
    except ServiceError as e:
        return error_body(e)
    except Exception:
        return _internal_error("Failed to register warranty")


@units_bp.patch("/<int:unit_id>/warranty/status")
@require_auth
def set_warranty_status_route(unit_id: int):
    """
    Request body:
    {
        "status": "active",          (active|expired|void)
        "duration_months": 24,       (optional, 1..60, applied when activating)
        "notes": "Approved"          (optional, appended)
    }
    """
    try:
        data = WarrantyStatusInput.from_json(
            request.get_json(silent=True),
            max_months=current_app.config["MAX_WARRANTY_MONTHS"],
        )
        unit = units_service.get_unit(unit_id)
        warranty = warranty_service.approve_or_set(
            unit,
            data.status,
            actor=current_actor(),
            duration_months=data.duration_months,
            notes=data.notes,
        )
        return jsonify({
            "success": True,
            "message": f"Warranty status updated to {warranty.status}",
            "product": unit.to_dict(),
        }), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        return _internal_error("Failed to update warranty status")


@units_bp.get("/<int:unit_id>/warranty/bill")
@require_auth
def download_bill_route(unit_id: int):
    try:
        unit = units_service.get_unit(unit_id)
        if unit.warranty is None or unit.warranty.bill_file_id is None:
            raise NotFoundError("No bill file on record for this product")

        bill, fileobj = bill_store.open_bill(unit.warranty.bill_file_id)
        if fileobj is None:
            raise NotFoundError("Bill file not found")

        return send_file(
            fileobj,
            mimetype=bill.mimetype,
            as_attachment=True,
            download_name=bill.original_name or bill.filename,
        )
    except ServiceError as e:
        return error_body(e)
    except Exception:
        return _internal_error("Failed to download bill")


# =============================================================================
# RETURN
# =============================================================================

@units_bp.post("/<int:unit_id>/return")
@require_auth
def mark_as_return_route(unit_id: int):
    """
    Move the unit into the return archive.

    Request body: {"return_reason": "defective", "return_notes": "..."}

    Returns:
        201: return record (the unit no longer exists in active inventory)
        400: missing reason
        404: unit not found
    """
    try:
        data = ReturnInput.from_json(request.get_json(silent=True))
        record = return_service.mark_as_return(
            unit_id,
            return_reason=data.return_reason,
            return_notes=data.return_notes,
            returned_by=current_actor(),
        )
        return jsonify({
            "success": True,
            "message": "Product moved to returns successfully",
            "return": record.to_dict(),
        }), 201
    except ServiceError as e:
        return error_body(e)
    except Exception:
        return _internal_error("Failed to mark unit as returned")
