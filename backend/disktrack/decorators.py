# Overview: Request decorators for API routes (admin auth, public rate limiting).

from functools import wraps

from flask import current_app, g, jsonify, request

from .errors import InternalError, RateLimitedError, error_body
from .services import session_service
from .services.rate_limit_service import get_rate_limiter


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def current_actor() -> str:
    """Email of the authenticated admin, or SYSTEM_ACTOR outside an admin request."""
    user = getattr(g, "current_user", None)
    return user.email if user else current_app.config["SYSTEM_ACTOR"]


def require_auth(f):
    """
    Require a valid admin bearer token.

    Sets:
    - g.current_user: the authenticated User
    - g.session_context: the full SessionContext

    Returns 401 when the header is missing or the token is invalid, expired,
    idle too long or belongs to a deactivated account.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"success": False, "error": "Unauthorized", "message": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"success": False, "error": "Unauthorized", "message": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context
        return f(*args, **kwargs)

    return decorated_function


def rate_limited(bucket: str):
    """
    Count the call against the caller address in `bucket`.

    Callers presenting a valid admin token are exempt. Over the cap the
    endpoint answers 429 with a Retry-After header and never runs.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            token = _bearer_token()
            if token and session_service.validate_session(token):
                return f(*args, **kwargs)

            key = request.remote_addr or "unknown"
            try:
                get_rate_limiter().hit(bucket, key)
            except RateLimitedError as e:
                current_app.logger.warning("Rate limit exceeded bucket=%s key=%s", bucket, key)
                body, status = error_body(e)
                response = jsonify(body)
                response.headers["Retry-After"] = str(e.retry_after)
                return response, status
            except InternalError as e:
                return jsonify(e.to_dict()), e.status_code

            return f(*args, **kwargs)

        return decorated_function

    return decorator
