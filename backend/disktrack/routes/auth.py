# Overview: Flask API routes for admin auth; parses input and returns JSON responses.

"""
Admin Authentication API routes

Self-registration does not exist; admin accounts are created with
`flask users create-admin` or `flask system init`.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import ServiceError, error_body
from ..services import auth_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    Request body: {"email": "...", "password": "..."}
    Token must be sent as `Authorization: Bearer <token>` on admin routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"success": False, "error": "ValidationError", "message": "Email and password are required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.warning("Failed admin login for %s from %s", email, request.remote_addr)
            return jsonify({"success": False, "error": "Unauthorized", "message": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "success": True,
            "message": "Login successful",
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
        }), 200

    except ServiceError as e:
        return error_body(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"success": False, "error": "InternalError", "message": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        token = request.headers["Authorization"].split(" ", 1)[1].strip()
        session_service.revoke_session(token)
        return jsonify({"success": True, "message": "Logout successful"}), 200
    except ServiceError as e:
        return error_body(e)
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"success": False, "error": "InternalError", "message": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"success": True, "message": "Authenticated", "user": g.current_user.to_dict()}), 200
