# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/boutique_pos/routes/auth.py
"""
Authentication API routes

- Login issues an opaque bearer token (see services/session_service.py)
- Staff accounts are created by admins and managers only
- Logout revokes the presented token
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import InternalError, PosError
from ..extensions import db
from ..services import auth_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.authenticate(db.session, data.get("email"), data.get("password"))

        session, token = session_service.create_session(
            db.session,
            user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "message": "Login successful.",
            "token": token,
            "session": session.to_dict(),
            "user": user.to_dict(),
        }), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to login user")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code


@auth_bp.post("/register")
@require_auth
@require_permission("CREATE_USER")
def register_route():
    """
    Create a staff account.

    Requires: CREATE_USER permission
    Available to: admin, manager
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.create_user(
            db.session,
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role"),
        )
        _, token = session_service.create_session(db.session, user.id)
        current_app.logger.info("User %s registered %s (%s)", g.current_user.id, user.email, user.role)
        return jsonify({"message": "User registered successfully.", "token": token, "user": user.to_dict()}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register user")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the presented session token."""
    try:
        session_service.revoke_session(db.session, g.token, reason="User logout")
        return jsonify({"message": "Logout successful."}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict(), "claims": g.claims}), 200


@auth_bp.get("/users")
@require_auth
@require_permission("VIEW_USERS")
def list_users_route():
    users = auth_service.list_users(db.session)
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@auth_bp.put("/users/<int:user_id>")
@require_auth
@require_permission("EDIT_USER")
def update_user_route(user_id: int):
    """
    Update a staff account's name, role or active flag.

    Deactivating an account revokes all of its sessions.

    Requires: EDIT_USER permission
    Available to: admin
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.update_user(
            db.session,
            user_id,
            name=data.get("name"),
            role=data.get("role"),
            is_active=data.get("is_active"),
        )
        if not user.is_active:
            session_service.revoke_all_user_sessions(db.session, user.id, reason="User account deactivated")
        return jsonify({"message": "User updated.", "user": user.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update user")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code
