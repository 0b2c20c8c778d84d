# Overview: Flask API routes for organization members; parses input and returns JSON responses.

# backend/inventario/routes/users.py
"""
User management for the organization named by X-Organization-Id
(or the organization of X-Inventory-Id).

Provides endpoints for:
- listing members with their role
- adding a member (creates the account)
- changing a member's role or removing them from the organization
- deactivating / reactivating an account and resetting its password

Every endpoint requires MANAGE_USERS. Owners (and superusers) are the only
ones who may create, promote to, or touch an owner. Nobody manages their own
account here; self-service password changes live at /api/auth/change-password.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..services import auth_service
from ..services.permission_service import PermissionDeniedError
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_organization, require_capability, json_object


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _error(e: Exception):
    if isinstance(e, PermissionDeniedError):
        return jsonify({"error": "Permission denied", "message": str(e)}), 403
    if isinstance(e, NotFoundError):
        return jsonify({"error": str(e)}), 404
    if isinstance(e, ConflictError):
        return jsonify({"error": str(e)}), 409
    return jsonify({"error": str(e)}), 400


@users_bp.get("")
@require_auth
@require_organization
@require_capability("MANAGE_USERS")
def list_users_route():
    """Query params: include_inactive (default false)."""
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    users = auth_service.list_organization_users(g.org_id, include_inactive=include_inactive)
    return jsonify({"users": users, "count": len(users)}), 200


@users_bp.post("")
@require_auth
@require_organization
@require_capability("MANAGE_USERS")
def create_user_route():
    """Body: {username, email, password, role}."""
    try:
        data = json_object()
        membership = auth_service.add_organization_user(
            g.org_id,
            data.get("username"),
            data.get("email"),
            data.get("password"),
            data.get("role") or "employee",
            actor=g.current_user,
            actor_role=g.role,
            rounds=current_app.config["BCRYPT_ROUNDS"],
        )
        current_app.logger.info(
            "User %s added %s to organization %s as %s",
            g.current_user.id, membership.user_id, g.org_id, membership.role,
        )
        return jsonify({
            "user": auth_service.organization_user_to_dict(membership),
            "message": "User created",
        }), 201

    except (ValidationError, ConflictError, PermissionDeniedError) as e:
        db.session.rollback()
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/<int:user_id>/role")
@require_auth
@require_organization
@require_capability("MANAGE_USERS")
def change_role_route(user_id: int):
    """Body: {role}."""
    try:
        data = json_object()
        membership = auth_service.change_role(
            g.org_id, user_id, data.get("role"), actor=g.current_user, actor_role=g.role,
        )
        return jsonify({
            "user": auth_service.organization_user_to_dict(membership),
            "message": "Role updated",
        }), 200

    except (ValidationError, NotFoundError, PermissionDeniedError) as e:
        db.session.rollback()
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to change role")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/<int:user_id>")
@require_auth
@require_organization
@require_capability("MANAGE_USERS")
def remove_user_route(user_id: int):
    """Unlink the user from this organization; the account is kept."""
    try:
        auth_service.remove_from_organization(g.org_id, user_id, actor=g.current_user, actor_role=g.role)
        return jsonify({"message": "User removed from organization"}), 200

    except (ValidationError, NotFoundError, PermissionDeniedError) as e:
        db.session.rollback()
        return _error(e)


@users_bp.post("/<int:user_id>/deactivate")
@require_auth
@require_organization
@require_capability("MANAGE_USERS")
def deactivate_user_route(user_id: int):
    """
    Deactivate an account.

    The user is logged out everywhere and cannot log back in.
    """
    try:
        revoked = auth_service.deactivate_user(g.org_id, user_id, actor=g.current_user, actor_role=g.role)
        current_app.logger.info("User %s deactivated user %s", g.current_user.id, user_id)
        return jsonify({"message": "User deactivated", "sessions_revoked": revoked}), 200

    except (ValidationError, NotFoundError, PermissionDeniedError) as e:
        db.session.rollback()
        return _error(e)


@users_bp.post("/<int:user_id>/reactivate")
@require_auth
@require_organization
@require_capability("MANAGE_USERS")
def reactivate_user_route(user_id: int):
    try:
        user = auth_service.reactivate_user(g.org_id, user_id, actor=g.current_user, actor_role=g.role)
        return jsonify({"message": "User reactivated", "user": user.to_dict()}), 200

    except (ValidationError, NotFoundError, PermissionDeniedError) as e:
        db.session.rollback()
        return _error(e)


@users_bp.post("/<int:user_id>/reset-password")
@require_auth
@require_organization
@require_capability("MANAGE_USERS")
def reset_password_route(user_id: int):
    """Body: {new_password}. Revokes every session of the user."""
    try:
        data = json_object()
        if not data.get("new_password"):
            return jsonify({"error": "new_password required"}), 400
        revoked = auth_service.reset_password(
            g.org_id,
            user_id,
            data["new_password"],
            actor=g.current_user,
            actor_role=g.role,
            rounds=current_app.config["BCRYPT_ROUNDS"],
        )
        return jsonify({"message": "Password reset", "sessions_revoked": revoked}), 200

    except (ValidationError, NotFoundError, PermissionDeniedError) as e:
        db.session.rollback()
        return _error(e)
