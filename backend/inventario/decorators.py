# Overview: Request and permission decorators for API routes.

"""
Request decorators for API routes.

Order on a route is always:

    @require_auth
    @require_inventory  (or @require_organization)
    @require_capability("CODE")
"""

from functools import wraps

from flask import request, jsonify, g

from .services import session_service, permission_service, tenant_service
from .services.permission_service import PermissionDeniedError
from .validation import ValidationError, NotFoundError


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def json_object() -> dict:
    """The request's JSON body as a dict. No body gives {}; any other JSON value is a ValidationError."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def require_auth(f):
    """
    Require a valid session token.

    Sets g.current_user and g.session_token. Returns 401 when the header is
    missing or the token is invalid, expired, revoked or idle.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.session_token = token
        return f(*args, **kwargs)

    return decorated_function


def _tenant_decorator(resolve):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({"error": "Authentication required"}), 401
            try:
                context = resolve()
            except ValidationError as e:
                return jsonify({"error": str(e)}), 400
            except PermissionDeniedError as e:
                return jsonify({"error": "Permission denied", "message": str(e)}), 403
            except NotFoundError as e:
                return jsonify({"error": str(e)}), 404

            g.org_id = context.organization_id
            g.inventory_id = context.inventory_id
            g.role = context.role
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def _resolve_inventory():
    inventory_id = tenant_service.parse_tenant_id(
        request.headers.get(tenant_service.INVENTORY_HEADER), tenant_service.INVENTORY_HEADER
    )
    return tenant_service.resolve_inventory(g.current_user, inventory_id)


def _resolve_organization():
    """X-Organization-Id, or the organization of X-Inventory-Id when only that is sent."""
    raw_org = request.headers.get(tenant_service.ORGANIZATION_HEADER)
    if not raw_org and request.headers.get(tenant_service.INVENTORY_HEADER):
        return _resolve_inventory()
    org_id = tenant_service.parse_tenant_id(raw_org, tenant_service.ORGANIZATION_HEADER)
    return tenant_service.resolve_organization(g.current_user, org_id)


# MULTI-TENANT: sets g.inventory_id, g.org_id and g.role
require_inventory = _tenant_decorator(_resolve_inventory)

# MULTI-TENANT: sets g.org_id and g.role (g.inventory_id may be None)
require_organization = _tenant_decorator(_resolve_organization)


def require_capability(capability: str):
    """403 unless the caller's role (or superuser flag) grants the capability."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require(g.current_user, getattr(g, "role", None), capability)
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": capability,
                    "message": str(e),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
