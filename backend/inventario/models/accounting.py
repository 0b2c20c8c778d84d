from __future__ import annotations

from ..extensions import db
from ..validation import format_money
from inventario.time_utils import to_utc_z, to_iso_date


ACCOUNT_TYPES = ("asset", "liability", "equity", "revenue", "expense")

# Credit-normal accounts: a credit increases the balance
CREDIT_NORMAL_TYPES = frozenset({"liability", "equity", "revenue"})


class Account(db.Model):
    """
    Chart-of-accounts entry with a running balance.

    INVARIANT: balance equals the signed sum of the entries currently posted
    against the account. It is only changed by ledger_service while posting
    or deleting a journal entry, inside the same DB transaction.
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "code", name="uq_accounts_org_code"),
        db.CheckConstraint(
            "type IN ('asset', 'liability', 'equity', 'revenue', 'expense')",
            name="ck_accounts_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(16), nullable=False)
    balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Account id={self.id} code={self.code!r} type={self.type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "code": self.code,
            "name": self.name,
            "type": self.type,
            "balance": format_money(self.balance),
            "created_at": to_utc_z(self.created_at),
        }


class Transaction(db.Model):
    """Journal entry header (libro diario). Entries are in TransactionEntry."""
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_org_date", "organization_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date = db.Column(db.Date, nullable=False)
    description = db.Column(db.Text, nullable=False)
    reference = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    entries = db.relationship(
        "TransactionEntry",
        backref="transaction",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="TransactionEntry.id",
    )

    def to_dict(self, include_entries: bool = True) -> dict:
        data = {
            "id": self.id,
            "organization_id": self.organization_id,
            "date": to_iso_date(self.date),
            "description": self.description,
            "reference": self.reference,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_entries:
            data["entries"] = [entry.to_dict() for entry in self.entries]
        return data


class TransactionEntry(db.Model):
    """Debit/credit line of a journal entry (debe/haber)."""
    __tablename__ = "transaction_entries"
    __table_args__ = (
        db.CheckConstraint("debit >= 0 AND credit >= 0", name="ck_transaction_entries_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(
        db.Integer, db.ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    debit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    credit = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    account = db.relationship("Account")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "account_id": self.account_id,
            "account_code": self.account.code if self.account else None,
            "account_name": self.account.name if self.account else None,
            "debit": format_money(self.debit),
            "credit": format_money(self.credit),
        }
