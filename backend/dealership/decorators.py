# Overview: Request decorators for API routes; bearer auth, role checks and error mapping.

from functools import wraps
from flask import request, jsonify, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from .errors import DealershipError, ServiceUnavailable
from .extensions import db
from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object
    - g.token: The plaintext bearer token (used by logout)

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required", "code": "NOT_AUTHORIZED"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token", "code": "NOT_AUTHORIZED"}), 401

        g.current_user = context.user
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(role: str):
    """Require the authenticated user to hold a role. Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required", "code": "NOT_AUTHORIZED"}), 401
            if user.role != role:
                return jsonify({
                    "error": "Permission denied",
                    "code": "FORBIDDEN",
                    "required_role": role,
                }), 403
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def json_errors(f):
    """
    Map service-layer failures to JSON responses.

    - DealershipError -> its own status and {"error", "code", "details"}
    - SQLAlchemyError -> 503, logged with traceback
    - anything else   -> 500, logged with traceback
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except DealershipError as e:
            return jsonify(e.to_dict()), e.status_code
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Storage failure on %s %s", request.method, request.path)
            err = ServiceUnavailable()
            return jsonify(err.to_dict()), err.status_code
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
            return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500

    return decorated_function
