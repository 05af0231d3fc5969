# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request

from .errors import AuthenticationError, PermissionDeniedError, PosError
from .extensions import db
from .permissions import role_has_permission
from .services import session_service


def _deny(error: PosError, **extra):
    body = error.to_dict()
    body.update(extra)
    return jsonify(body), error.status_code


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'claims')


def require_auth(f):
    """
    Require a valid session token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.claims: {id, email, role, name}
    - g.session_context: The full SessionContext object
    - g.token: The bearer token (logout revokes it)

    Returns 401 if the header is missing, or the token is unknown, expired,
    idle too long, revoked, or belongs to a deactivated account.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return _deny(AuthenticationError("Access denied. No token provided."))

        context = session_service.validate_session(db.session, token)
        if not context:
            return _deny(AuthenticationError("Invalid or expired token."))

        g.current_user = context.user
        g.claims = context.claims
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a permission held by the caller's role. Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return _deny(AuthenticationError("Authentication required"))

            role = g.claims.get("role")
            if not role_has_permission(role, permission_code):
                current_app.logger.warning(
                    "Permission denied: user=%s role=%s permission=%s path=%s",
                    g.claims.get("id"), role, permission_code, request.path,
                )
                return _deny(
                    PermissionDeniedError("Access denied. Insufficient permissions."),
                    required_permission=permission_code,
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator
