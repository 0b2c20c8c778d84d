# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/inventario/routes/auth.py
"""Authentication API routes: login, logout, current user, own password change."""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..services import auth_service, session_service
from ..validation import ValidationError
from ..decorators import require_auth, json_object


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    The token goes in the Authorization header (Bearer) of every protected
    request. The organizations list tells the client which X-Organization-Id /
    X-Inventory-Id values it may send.
    """
    try:
        data = json_object()
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not username or not password:
            return jsonify({"error": "username and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            current_app.logger.info("Failed login for %r from %s", username, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        _, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "token": token,
            "user": user.to_dict(),
            "organizations": auth_service.list_memberships(user),
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to log in")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "organizations": auth_service.list_memberships(user),
    }), 200


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """
    Change the caller's own password.

    Body: {current_password, new_password}. Other sessions of the user are
    revoked; the one making this request stays valid.
    """
    try:
        data = json_object()
        current_password = data.get("current_password")
        new_password = data.get("new_password")
        if not current_password or not new_password:
            return jsonify({"error": "current_password and new_password required"}), 400

        revoked = auth_service.change_password(
            g.current_user,
            current_password,
            new_password,
            keep_token=g.session_token,
            rounds=current_app.config["BCRYPT_ROUNDS"],
        )
        return jsonify({"message": "Password updated", "sessions_revoked": revoked}), 200

    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500
