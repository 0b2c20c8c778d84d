from .tenancy import Organization, Inventory, UserOrganization
from .auth import User, SessionToken
from .inventory import Product
from .accounting import Account, Transaction, TransactionEntry, ACCOUNT_TYPES, CREDIT_NORMAL_TYPES
from .sales import Sale, SaleItem, SaleSequence, PAYMENT_METHODS
from .counts import CashClose
from .shifts import Shift, ShiftInventory, SHIFT_STATUSES
from .settings import Setting

__all__ = [
    "Organization",
    "Inventory",
    "UserOrganization",
    "User",
    "SessionToken",
    "Product",
    "Account",
    "Transaction",
    "TransactionEntry",
    "ACCOUNT_TYPES",
    "CREDIT_NORMAL_TYPES",
    "Sale",
    "SaleItem",
    "SaleSequence",
    "PAYMENT_METHODS",
    "CashClose",
    "Shift",
    "ShiftInventory",
    "SHIFT_STATUSES",
    "Setting",
]
