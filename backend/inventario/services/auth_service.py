# Overview: Service-layer operations for auth and organization users; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every sale, count and journal entry is attributed to a user. Passwords
are hashed with bcrypt and must pass a strength check.

MULTI-TENANT: Users are global (unique username/email). Access to an
organization comes from a UserOrganization membership carrying a role.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special character
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..models import User, Organization, UserOrganization
from ..permissions import Role
from ..validation import ValidationError, ConflictError, NotFoundError
from .permission_service import PermissionDeniedError
from . import session_service
from inventario.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when a password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter, one lowercase letter and one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """Validate strength, then hash with bcrypt. Returned as str for storage."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    *,
    is_superuser: bool = False,
    rounds: int = 12,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError: blank username/email
        PasswordValidationError: weak password
        ConflictError: username or email already taken
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username:
        raise ValidationError("username is required")
    if not email:
        raise ValidationError("email is required")

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password, rounds=rounds),
        is_superuser=is_superuser,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Return the active user matching username (or email) and password, else None.

    Updates last_login_at on success.
    """
    if not username or not password:
        return None

    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username.lower()),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def grant_membership(user_id: int, organization_id: int, role: str) -> UserOrganization:
    """
    Give a user a role in an organization (insert or update the membership).

    Raises NotFoundError for unknown user/organization, ValidationError for a bad role.
    """
    try:
        role_value = Role.parse(role).value
    except ValueError as e:
        raise ValidationError(str(e))

    if not db.session.get(User, user_id):
        raise NotFoundError("User not found")
    if not db.session.get(Organization, organization_id):
        raise NotFoundError("Organization not found")

    membership = db.session.query(UserOrganization).filter_by(
        user_id=user_id,
        organization_id=organization_id,
    ).first()
    if membership:
        membership.role = role_value
    else:
        membership = UserOrganization(user_id=user_id, organization_id=organization_id, role=role_value)
        db.session.add(membership)

    db.session.commit()
    return membership


def list_memberships(user: User) -> list[dict]:
    """Organizations the user can act in, with role and inventories."""
    if user.is_superuser:
        orgs = db.session.query(Organization).filter_by(is_active=True).order_by(Organization.name).all()
        pairs = [(org, Role.OWNER.value) for org in orgs]
    else:
        rows = (
            db.session.query(UserOrganization, Organization)
            .join(Organization, Organization.id == UserOrganization.organization_id)
            .filter(UserOrganization.user_id == user.id, Organization.is_active.is_(True))
            .order_by(Organization.name)
            .all()
        )
        pairs = [(org, membership.role) for membership, org in rows]

    return [
        {
            "organization_id": org.id,
            "organization_name": org.name,
            "role": role,
            "inventories": [
                {"id": inv.id, "name": inv.name}
                for inv in sorted(org.inventories, key=lambda i: i.name)
            ],
        }
        for org, role in pairs
    ]


# =============================================================================
# ORGANIZATION USER MANAGEMENT
# =============================================================================

def change_password(
    user: User,
    current_password: str,
    new_password: str,
    *,
    keep_token: str | None = None,
    rounds: int = 12,
) -> int:
    """
    Self-service password change. The current password must match.

    Every other session of the user is revoked; the one holding keep_token
    survives. Returns the number of sessions revoked.
    """
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    if current_password == new_password:
        raise ValidationError("New password must differ from the current one")

    user.password_hash = hash_password(new_password, rounds=rounds)
    db.session.commit()
    return session_service.revoke_user_sessions(user.id, "Password changed", keep_token=keep_token)


def _is_owner(actor: User, actor_role: Role | None) -> bool:
    return actor.is_superuser or actor_role == Role.OWNER


def _parse_role(role: str) -> Role:
    try:
        return Role.parse(role)
    except ValueError as e:
        raise ValidationError(str(e))


def _member(organization_id: int, user_id: int) -> UserOrganization:
    membership = db.session.query(UserOrganization).filter_by(
        user_id=user_id,
        organization_id=organization_id,
    ).first()
    if membership is None:
        raise NotFoundError("User not found")
    return membership


def _check_target(membership: UserOrganization, actor: User, actor_role: Role | None) -> None:
    """Owners and superusers can only be managed by an owner (or superuser), and never by themselves."""
    if membership.user_id == actor.id:
        raise ValidationError("Cannot change your own account here")
    if membership.user.is_superuser and not actor.is_superuser:
        raise PermissionDeniedError("Only a superuser can manage a superuser")
    if membership.role == Role.OWNER.value and not _is_owner(actor, actor_role):
        raise PermissionDeniedError("Only an owner can manage another owner")


def organization_user_to_dict(membership: UserOrganization) -> dict:
    data = membership.user.to_dict()
    data["role"] = membership.role
    return data


def list_organization_users(organization_id: int, include_inactive: bool = False) -> list[dict]:
    query = (
        db.session.query(UserOrganization)
        .join(User, User.id == UserOrganization.user_id)
        .filter(UserOrganization.organization_id == organization_id)
    )
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return [organization_user_to_dict(m) for m in query.order_by(User.username).all()]


def add_organization_user(
    organization_id: int,
    username: str,
    email: str,
    password: str,
    role: str,
    *,
    actor: User,
    actor_role: Role | None,
    rounds: int = 12,
) -> UserOrganization:
    """
    Create a user and make them a member of the organization.

    Only an owner may create another owner.

    Raises:
        ValidationError / PasswordValidationError: bad role, blank fields, weak password
        ConflictError: username or email taken
        PermissionDeniedError: an admin tried to create an owner
    """
    new_role = _parse_role(role)
    if new_role == Role.OWNER and not _is_owner(actor, actor_role):
        raise PermissionDeniedError("Only an owner can create another owner")

    user = create_user(username, email, password, rounds=rounds)
    return grant_membership(user.id, organization_id, new_role.value)


def change_role(
    organization_id: int,
    user_id: int,
    role: str,
    *,
    actor: User,
    actor_role: Role | None,
) -> UserOrganization:
    new_role = _parse_role(role)
    membership = _member(organization_id, user_id)
    _check_target(membership, actor, actor_role)
    if new_role == Role.OWNER and not _is_owner(actor, actor_role):
        raise PermissionDeniedError("Only an owner can grant the owner role")

    membership.role = new_role.value
    db.session.commit()
    return membership


def remove_from_organization(
    organization_id: int,
    user_id: int,
    *,
    actor: User,
    actor_role: Role | None,
) -> None:
    """Unlink the user from the organization. The account itself survives."""
    membership = _member(organization_id, user_id)
    _check_target(membership, actor, actor_role)
    db.session.delete(membership)
    db.session.commit()


def deactivate_user(
    organization_id: int,
    user_id: int,
    *,
    actor: User,
    actor_role: Role | None,
) -> int:
    """
    Disable login for a member and revoke all their sessions.

    Accounts are global, so a user who also belongs to another organization
    can only be deactivated by a superuser. Returns the number of sessions
    revoked.
    """
    membership = _member(organization_id, user_id)
    _check_target(membership, actor, actor_role)
    user = membership.user
    if not user.is_active:
        raise ValidationError("User is already deactivated")

    elsewhere = db.session.query(UserOrganization).filter(
        UserOrganization.user_id == user.id,
        UserOrganization.organization_id != organization_id,
    ).count()
    if elsewhere and not actor.is_superuser:
        raise PermissionDeniedError(
            "User belongs to other organizations; remove them from this one instead"
        )

    user.is_active = False
    db.session.commit()
    return session_service.revoke_user_sessions(user.id, "Account deactivated")


def reactivate_user(
    organization_id: int,
    user_id: int,
    *,
    actor: User,
    actor_role: Role | None,
) -> User:
    membership = _member(organization_id, user_id)
    _check_target(membership, actor, actor_role)
    user = membership.user
    if user.is_active:
        raise ValidationError("User is already active")
    user.is_active = True
    db.session.commit()
    return user


def reset_password(
    organization_id: int,
    user_id: int,
    new_password: str,
    *,
    actor: User,
    actor_role: Role | None,
    rounds: int = 12,
) -> int:
    """Set a member's password without the current one and revoke their sessions."""
    membership = _member(organization_id, user_id)
    _check_target(membership, actor, actor_role)
    membership.user.password_hash = hash_password(new_password, rounds=rounds)
    db.session.commit()
    return session_service.revoke_user_sessions(user_id, "Password reset by admin")
