# Overview: Service-layer operations for permissions; resolves roles and checks capabilities.

"""
Capability checks.

Fail closed: a user without a role in the organization gets nothing, an
unknown capability is never granted. Superusers bypass the role table.
"""

from flask import current_app

from ..extensions import db
from ..models import User, UserOrganization
from ..permissions import Role, ROLE_CAPABILITIES, CAPABILITIES


class PermissionDeniedError(Exception):
    """Raised when user lacks required capability."""
    pass


def get_role(user: User, organization_id: int) -> Role | None:
    """The user's role in the organization, or None for non-members."""
    if user is None or organization_id is None:
        return None
    membership = db.session.query(UserOrganization).filter_by(
        user_id=user.id,
        organization_id=organization_id,
    ).first()
    if not membership:
        return None
    try:
        return Role(membership.role)
    except ValueError:
        current_app.logger.warning(
            "Ignoring unknown role %r for user %s in organization %s",
            membership.role, user.id, organization_id,
        )
        return None


def can(user: User, role: Role | None, capability: str) -> bool:
    if capability not in CAPABILITIES:
        return False
    if user is not None and user.is_superuser:
        return True
    if role is None:
        return False
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def require(user: User, role: Role | None, capability: str) -> None:
    if not can(user, role, capability):
        current_app.logger.info(
            "Permission denied: user=%s role=%s capability=%s",
            getattr(user, "id", None), role.value if role else None, capability,
        )
        raise PermissionDeniedError(f"Missing capability {capability}")
