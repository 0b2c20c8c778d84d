# Overview: Service-layer operations for ledger; encapsulates business logic and database work.

"""
Double-entry ledger (libro diario) with running account balances.

INVARIANTS:
- A posted transaction balances: |sum(debit) - sum(credit)| <= 0.01
- Account.balance equals the signed sum of its posted entries
- Balances move only here, through atomic SQL (balance = balance + :delta),
  in the same DB transaction that inserts or deletes the entries
- Deleting a transaction applies the exact inverse of every entry first
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, update
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Account, Transaction, TransactionEntry, ACCOUNT_TYPES, CREDIT_NORMAL_TYPES
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    CENTS,
    parse_money,
    parse_int,
    parse_date_field,
)
from inventario.time_utils import today
from .concurrency import lock_for_update, run_with_retry


BALANCE_TOLERANCE = Decimal("0.01")

DEFAULT_ACCOUNTS = [
    ("1000", "Caja", "asset"),
    ("1100", "Bancos", "asset"),
    ("1200", "Inventario", "asset"),
    ("2000", "Cuentas por Pagar", "liability"),
    ("3000", "Capital", "equity"),
    ("4000", "Ventas", "revenue"),
    ("5000", "Costo de Ventas", "expense"),
    ("6000", "Gastos Administrativos", "expense"),
]


class UnbalancedEntryError(ValidationError):
    """Raised when debits and credits of a journal entry differ by more than 0.01."""

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        super().__init__(
            f"Debits ({total_debit}) and credits ({total_credit}) must balance"
        )
        self.total_debit = total_debit
        self.total_credit = total_credit


@dataclass(frozen=True)
class EntryInput:
    account_id: int
    debit: Decimal
    credit: Decimal


def signed_delta(account_type: str, debit: Decimal, credit: Decimal) -> Decimal:
    """
    Balance change caused by one entry line.

    Debit-normal accounts (asset, expense) grow with debits; credit-normal
    accounts (liability, equity, revenue) grow with credits.
    """
    delta = Decimal(debit) - Decimal(credit)
    if account_type in CREDIT_NORMAL_TYPES:
        return -delta
    return delta


def parse_entries(raw_entries) -> list[EntryInput]:
    if not isinstance(raw_entries, list) or not raw_entries:
        raise ValidationError("entries must be a non-empty list")

    entries: list[EntryInput] = []
    for idx, raw in enumerate(raw_entries):
        if not isinstance(raw, dict):
            raise ValidationError(f"entries[{idx}] must be an object")
        if raw.get("account_id") is None:
            raise ValidationError(f"entries[{idx}].account_id is required")
        entries.append(EntryInput(
            account_id=parse_int(raw.get("account_id"), f"entries[{idx}].account_id"),
            debit=parse_money(raw.get("debit", 0) or 0, f"entries[{idx}].debit"),
            credit=parse_money(raw.get("credit", 0) or 0, f"entries[{idx}].credit"),
        ))
    return entries


def check_balanced(entries: list[EntryInput]) -> tuple[Decimal, Decimal]:
    total_debit = sum((e.debit for e in entries), Decimal("0"))
    total_credit = sum((e.credit for e in entries), Decimal("0"))
    if abs(total_debit - total_credit) > BALANCE_TOLERANCE:
        raise UnbalancedEntryError(total_debit, total_credit)
    return total_debit, total_credit


def _apply_delta(account_id: int, delta: Decimal) -> None:
    if not delta:
        return
    db.session.execute(
        update(Account)
        .where(Account.id == account_id)
        .values(balance=Account.balance + delta)
        .execution_options(synchronize_session=False)
    )


# =============================================================================
# Chart of accounts
# =============================================================================

def list_accounts(org_id: int) -> list[Account]:
    return (
        db.session.query(Account)
        .filter(Account.organization_id == org_id)
        .order_by(Account.code.asc())
        .all()
    )


def create_account(org_id: int, code: str, name: str, account_type: str) -> Account:
    code = (code or "").strip() if isinstance(code, str) else code
    name = (name or "").strip() if isinstance(name, str) else name
    if not code or not isinstance(code, str):
        raise ValidationError("code is required")
    if not name or not isinstance(name, str):
        raise ValidationError("name is required")
    if len(code) > 50:
        raise ValidationError("code exceeds max length 50")
    if account_type not in ACCOUNT_TYPES:
        raise ValidationError(f"type must be one of {', '.join(ACCOUNT_TYPES)}")

    existing = db.session.query(Account).filter_by(organization_id=org_id, code=code).first()
    if existing:
        raise ConflictError(f"Account code {code} already exists")

    account = Account(
        organization_id=org_id,
        code=code,
        name=name,
        type=account_type,
        balance=Decimal("0.00"),
    )
    db.session.add(account)
    db.session.commit()
    return account


def ensure_default_accounts(org_id: int) -> int:
    """Seed the default chart for an organization. Returns the number of accounts created."""
    existing = {
        code for (code,) in db.session.query(Account.code).filter(Account.organization_id == org_id)
    }
    created = 0
    for code, name, account_type in DEFAULT_ACCOUNTS:
        if code in existing:
            continue
        db.session.add(Account(
            organization_id=org_id,
            code=code,
            name=name,
            type=account_type,
            balance=Decimal("0.00"),
        ))
        created += 1
    db.session.commit()
    return created


# =============================================================================
# Journal entries
# =============================================================================

def post_transaction(
    org_id: int,
    *,
    entries,
    description: str,
    txn_date: date | str | None = None,
    reference: str | None = None,
    user_id: int | None = None,
) -> Transaction:
    """
    Post a balanced journal entry and move account balances.

    Raises:
        ValidationError: empty/invalid entries, blank description, unknown account
        UnbalancedEntryError: debits and credits differ by more than 0.01
    """
    parsed = parse_entries(entries)
    check_balanced(parsed)

    if not isinstance(description, str) or not description.strip():
        raise ValidationError("description is required")
    description = description.strip()
    if reference is not None:
        reference = str(reference).strip() or None
        if reference and len(reference) > 255:
            raise ValidationError("reference exceeds max length 255")
    posted_on = today() if txn_date in (None, "") else parse_date_field(txn_date, "date")

    def _op() -> Transaction:
        account_ids = {e.account_id for e in parsed}
        accounts = {
            a.id: a
            for a in lock_for_update(
                db.session.query(Account).filter(
                    Account.organization_id == org_id,
                    Account.id.in_(account_ids),
                )
            ).all()
        }
        missing = sorted(account_ids - accounts.keys())
        if missing:
            raise ValidationError(f"Account not found: {', '.join(str(m) for m in missing)}")

        txn = Transaction(
            organization_id=org_id,
            date=posted_on,
            description=description,
            reference=reference,
            created_by_user_id=user_id,
        )
        db.session.add(txn)
        db.session.flush()

        for entry in parsed:
            db.session.add(TransactionEntry(
                transaction_id=txn.id,
                account_id=entry.account_id,
                debit=entry.debit,
                credit=entry.credit,
            ))
            _apply_delta(entry.account_id, signed_delta(accounts[entry.account_id].type, entry.debit, entry.credit))

        db.session.commit()
        return txn

    try:
        return run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def delete_transaction(org_id: int, transaction_id: int) -> None:
    """
    Reverse every entry's balance effect, then delete the entries and the transaction.

    Raises NotFoundError if the transaction is not in the organization.
    """
    def _op() -> None:
        txn = lock_for_update(
            db.session.query(Transaction).filter_by(id=transaction_id, organization_id=org_id)
        ).first()
        if not txn:
            raise NotFoundError("Transaction not found")

        for entry in txn.entries:
            # Inverse of posting: credit - debit, same sign normalization
            _apply_delta(entry.account_id, signed_delta(entry.account.type, entry.credit, entry.debit))

        db.session.delete(txn)
        db.session.commit()

    try:
        run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def list_transactions(org_id: int, limit: int | None = None) -> list[Transaction]:
    query = (
        db.session.query(Transaction)
        .options(joinedload(Transaction.entries).joinedload(TransactionEntry.account))
        .filter(Transaction.organization_id == org_id)
        .order_by(Transaction.date.desc(), Transaction.id.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def get_transaction(org_id: int, transaction_id: int) -> Transaction:
    txn = db.session.query(Transaction).filter_by(id=transaction_id, organization_id=org_id).first()
    if not txn:
        raise NotFoundError("Transaction not found")
    return txn


# =============================================================================
# Integrity check
# =============================================================================

def find_balance_drift(org_id: int) -> list[dict]:
    """
    Recompute every account's balance from its posted entries.

    Returns one dict per account whose stored balance disagrees.
    """
    sums = dict(
        (account_id, (debit or Decimal("0"), credit or Decimal("0")))
        for account_id, debit, credit in (
            db.session.query(
                TransactionEntry.account_id,
                func.sum(TransactionEntry.debit),
                func.sum(TransactionEntry.credit),
            )
            .join(Account, Account.id == TransactionEntry.account_id)
            .filter(Account.organization_id == org_id)
            .group_by(TransactionEntry.account_id)
            .all()
        )
    )

    drift = []
    for account in list_accounts(org_id):
        debit, credit = sums.get(account.id, (Decimal("0"), Decimal("0")))
        expected = signed_delta(account.type, Decimal(debit), Decimal(credit)).quantize(CENTS)
        stored = Decimal(account.balance or 0).quantize(CENTS)
        if expected != stored:
            drift.append({
                "account_id": account.id,
                "code": account.code,
                "name": account.name,
                "stored_balance": str(stored),
                "expected_balance": str(expected),
            })
    return drift
