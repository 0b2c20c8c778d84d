# Overview: Service-layer operations for tenancy; resolves organization and inventory context.

"""
Tenant resolution for inventory- and organization-scoped requests.

WHY: Every query must be scoped to the caller's tenant. The client names
its tenant with a header; this module turns the header into a validated
Inventory/Organization plus the caller's role there.

SECURITY INVARIANTS:
1. Inventory ids come from the client and are always checked against membership
2. Non-members (other than superusers) are denied, even for existing ids
3. Unknown ids are reported as not found only to members or superusers
"""

from dataclasses import dataclass

from ..extensions import db
from ..models import Inventory, Organization, User
from ..permissions import Role
from ..validation import ValidationError, NotFoundError
from .permission_service import get_role, PermissionDeniedError


INVENTORY_HEADER = "X-Inventory-Id"
ORGANIZATION_HEADER = "X-Organization-Id"


@dataclass
class TenantContext:
    organization_id: int
    inventory_id: int | None
    role: Role | None


def parse_tenant_id(raw: str | None, header: str) -> int:
    if raw is None or not str(raw).strip():
        raise ValidationError(f"{header} header is required")
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise ValidationError(f"{header} must be an integer")
    if value <= 0:
        raise ValidationError(f"{header} must be a positive integer")
    return value


def _active_organization(organization_id: int) -> Organization:
    org = db.session.get(Organization, organization_id)
    if not org or not org.is_active:
        raise NotFoundError("Organization not found")
    return org


def resolve_organization(user: User, organization_id: int) -> TenantContext:
    role = get_role(user, organization_id)
    if role is None and not user.is_superuser:
        raise PermissionDeniedError("Not a member of this organization")
    _active_organization(organization_id)
    return TenantContext(organization_id=organization_id, inventory_id=None, role=role)


def resolve_inventory(user: User, inventory_id: int) -> TenantContext:
    inventory = db.session.get(Inventory, inventory_id)
    if inventory is None:
        if user.is_superuser:
            raise NotFoundError("Inventory not found")
        raise PermissionDeniedError("No access to this inventory")

    role = get_role(user, inventory.organization_id)
    if role is None and not user.is_superuser:
        raise PermissionDeniedError("No access to this inventory")
    _active_organization(inventory.organization_id)

    return TenantContext(
        organization_id=inventory.organization_id,
        inventory_id=inventory.id,
        role=role,
    )
