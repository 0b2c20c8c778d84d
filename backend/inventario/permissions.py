"""
Role and capability definitions.

WHY: One table decides who may do what. Routes ask for a capability, never
for a role, so changing who can cancel a sale is a one-line edit here.

DESIGN PRINCIPLES:
- Roles are a closed set assigned per organization (UserOrganization.role)
- Capabilities are granular (one action per capability)
- is_superuser is orthogonal to roles and grants every capability
"""

from enum import Enum


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    EMPLOYEE = "employee"

    @classmethod
    def parse(cls, value: str) -> "Role":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Invalid role: {value}. Must be one of {', '.join(r.value for r in cls)}")


# =============================================================================
# CAPABILITY DEFINITIONS
# =============================================================================

# Each capability is defined as: (code, description)
CAPABILITY_DEFINITIONS = [
    # Everyday operations (any member)
    ("VIEW_INVENTORY", "View products and stock levels"),
    ("MANAGE_PRODUCTS", "Create and edit products"),
    ("RECORD_SALE", "Record point-of-sale sales"),
    ("VIEW_SALES", "View sales and sale details"),
    ("VIEW_LEDGER", "View accounts and journal entries"),
    ("POST_TRANSACTION", "Post balanced journal entries"),
    ("VIEW_CASH_CLOSE", "View cash close products, history and details"),
    ("MANAGE_SHIFTS", "Open, close and view shifts"),
    ("VIEW_SETTINGS", "Read organization settings (exchange rate)"),

    # Elevated operations (admin / owner)
    ("DELETE_PRODUCT", "Delete products"),
    ("CANCEL_SALE", "Cancel a sale and restore its stock"),
    ("VIEW_DAILY_REPORT", "View and export the daily sales report"),
    ("DELETE_TRANSACTION", "Delete a journal entry and reverse its balances"),
    ("MANAGE_ACCOUNTS", "Create chart-of-accounts entries"),
    ("COMMIT_CASH_CLOSE", "Commit a physical count as the new stock"),
    ("MANAGE_SETTINGS", "Change organization settings (exchange rate)"),
    ("MANAGE_USERS", "Add members, change their role, deactivate them or reset their password"),
]

CAPABILITIES = frozenset(code for code, _ in CAPABILITY_DEFINITIONS)

EMPLOYEE_CAPABILITIES = frozenset({
    "VIEW_INVENTORY",
    "MANAGE_PRODUCTS",
    "RECORD_SALE",
    "VIEW_SALES",
    "VIEW_LEDGER",
    "POST_TRANSACTION",
    "VIEW_CASH_CLOSE",
    "MANAGE_SHIFTS",
    "VIEW_SETTINGS",
})

ELEVATED_CAPABILITIES = frozenset({
    "DELETE_PRODUCT",
    "CANCEL_SALE",
    "VIEW_DAILY_REPORT",
    "DELETE_TRANSACTION",
    "MANAGE_ACCOUNTS",
    "COMMIT_CASH_CLOSE",
    "MANAGE_SETTINGS",
    "MANAGE_USERS",
})

ROLE_CAPABILITIES = {
    Role.EMPLOYEE: EMPLOYEE_CAPABILITIES,
    Role.ADMIN: EMPLOYEE_CAPABILITIES | ELEVATED_CAPABILITIES,
    Role.OWNER: EMPLOYEE_CAPABILITIES | ELEVATED_CAPABILITIES,
}
