"""
Ledger tests: balanced posting, running balances and exact reversal on delete.
"""

from datetime import date
from decimal import Decimal

import pytest

from inventario.extensions import db
from inventario.models import Account, Transaction, TransactionEntry
from inventario.services import ledger_service
from inventario.services.ledger_service import UnbalancedEntryError, signed_delta
from inventario.validation import ValidationError, ConflictError, NotFoundError


@pytest.fixture
def accounts(org_a):
    return {a.code: a for a in ledger_service.list_accounts(org_a.id)}


def _balance(account_id: int) -> Decimal:
    db.session.expire_all()
    return db.session.get(Account, account_id).balance


def _cash_sale(accounts, amount="100.00"):
    return [
        {"account_id": accounts["1000"].id, "debit": amount, "credit": 0},
        {"account_id": accounts["4000"].id, "debit": 0, "credit": amount},
    ]


class TestSignedDelta:
    @pytest.mark.parametrize("account_type,debit,credit,expected", [
        ("asset", "10", "0", "10"),
        ("asset", "0", "10", "-10"),
        ("expense", "5", "0", "5"),
        ("liability", "0", "10", "10"),
        ("equity", "0", "7", "7"),
        ("revenue", "3", "0", "-3"),
    ])
    def test_normal_side(self, account_type, debit, credit, expected):
        assert signed_delta(account_type, Decimal(debit), Decimal(credit)) == Decimal(expected)


class TestChartOfAccounts:
    def test_default_chart_seeded(self, accounts):
        assert set(accounts) == {code for code, _, _ in ledger_service.DEFAULT_ACCOUNTS}
        assert all(a.balance == 0 for a in accounts.values())

    def test_seeding_twice_creates_nothing(self, org_a, accounts):
        assert ledger_service.ensure_default_accounts(org_a.id) == 0

    def test_create_account(self, org_a):
        account = ledger_service.create_account(org_a.id, "1300", "Cuentas por Cobrar", "asset")
        assert account.id is not None
        assert account.balance == 0

    def test_duplicate_code_conflicts(self, org_a, accounts):
        with pytest.raises(ConflictError):
            ledger_service.create_account(org_a.id, "1000", "Caja 2", "asset")

    def test_same_code_allowed_in_other_org(self, org_b, accounts):
        account = ledger_service.create_account(org_b.id, "9000", "Otros", "expense")
        assert account.organization_id == org_b.id

    @pytest.mark.parametrize("code,name,account_type", [
        ("", "Sin codigo", "asset"),
        ("1400", "", "asset"),
        ("1400", "Tipo malo", "income"),
    ])
    def test_invalid_account(self, org_a, code, name, account_type):
        with pytest.raises(ValidationError):
            ledger_service.create_account(org_a.id, code, name, account_type)


class TestPostTransaction:
    def test_balanced_entry_moves_balances(self, org_a, accounts, owner_a):
        txn = ledger_service.post_transaction(
            org_a.id,
            entries=_cash_sale(accounts),
            description="Venta de contado",
            txn_date="2026-10-01",
            user_id=owner_a.id,
        )

        assert txn.date == date(2026, 10, 1)
        assert len(txn.entries) == 2
        assert _balance(accounts["1000"].id) == Decimal("100.00")
        assert _balance(accounts["4000"].id) == Decimal("100.00")

    def test_expense_paid_from_bank(self, org_a, accounts):
        ledger_service.post_transaction(
            org_a.id,
            entries=[
                {"account_id": accounts["6000"].id, "debit": "40.00"},
                {"account_id": accounts["1100"].id, "credit": "40.00"},
            ],
            description="Pago de alquiler",
        )
        assert _balance(accounts["6000"].id) == Decimal("40.00")
        assert _balance(accounts["1100"].id) == Decimal("-40.00")

    def test_date_defaults_to_today(self, org_a, accounts):
        from inventario.time_utils import today
        txn = ledger_service.post_transaction(org_a.id, entries=_cash_sale(accounts), description="Hoy")
        assert txn.date == today()

    def test_one_cent_difference_is_tolerated(self, org_a, accounts):
        ledger_service.post_transaction(
            org_a.id,
            entries=[
                {"account_id": accounts["1000"].id, "debit": "100.00"},
                {"account_id": accounts["4000"].id, "credit": "99.99"},
            ],
            description="Redondeo",
        )
        assert _balance(accounts["1000"].id) == Decimal("100.00")
        assert _balance(accounts["4000"].id) == Decimal("99.99")

    def test_unbalanced_entry_rejected(self, org_a, accounts):
        with pytest.raises(UnbalancedEntryError) as exc:
            ledger_service.post_transaction(
                org_a.id,
                entries=[
                    {"account_id": accounts["1000"].id, "debit": "100.00"},
                    {"account_id": accounts["4000"].id, "credit": "90.00"},
                ],
                description="Descuadrado",
            )

        assert exc.value.total_debit == Decimal("100.00")
        assert exc.value.total_credit == Decimal("90.00")
        assert db.session.query(Transaction).count() == 0
        assert _balance(accounts["1000"].id) == 0

    @pytest.mark.parametrize("entries", [None, [], "x", [{"debit": "1"}]])
    def test_malformed_entries(self, org_a, entries):
        with pytest.raises(ValidationError):
            ledger_service.post_transaction(org_a.id, entries=entries, description="Malo")

    def test_negative_amount_rejected(self, org_a, accounts):
        with pytest.raises(ValidationError):
            ledger_service.post_transaction(
                org_a.id,
                entries=[
                    {"account_id": accounts["1000"].id, "debit": "-5"},
                    {"account_id": accounts["4000"].id, "credit": "-5"},
                ],
                description="Negativo",
            )

    def test_description_required(self, org_a, accounts):
        with pytest.raises(ValidationError):
            ledger_service.post_transaction(org_a.id, entries=_cash_sale(accounts), description="  ")

    def test_account_of_other_org_rejected(self, org_a, org_b, accounts):
        foreign = ledger_service.list_accounts(org_b.id)[0]
        with pytest.raises(ValidationError):
            ledger_service.post_transaction(
                org_a.id,
                entries=[
                    {"account_id": accounts["1000"].id, "debit": "10"},
                    {"account_id": foreign.id, "credit": "10"},
                ],
                description="Cruzado",
            )

        assert db.session.query(TransactionEntry).count() == 0
        assert _balance(accounts["1000"].id) == 0
        assert _balance(foreign.id) == 0


class TestDeleteTransaction:
    def test_delete_reverses_balances(self, org_a, accounts):
        txn = ledger_service.post_transaction(org_a.id, entries=_cash_sale(accounts, "55.25"), description="Venta")
        ledger_service.post_transaction(org_a.id, entries=_cash_sale(accounts, "10.00"), description="Otra")

        ledger_service.delete_transaction(org_a.id, txn.id)

        assert _balance(accounts["1000"].id) == Decimal("10.00")
        assert _balance(accounts["4000"].id) == Decimal("10.00")
        assert db.session.query(Transaction).count() == 1
        assert db.session.query(TransactionEntry).count() == 2

    def test_delete_unknown_transaction(self, org_a):
        with pytest.raises(NotFoundError):
            ledger_service.delete_transaction(org_a.id, 9999)

    def test_delete_from_other_org_is_not_found(self, org_a, org_b, accounts):
        txn = ledger_service.post_transaction(org_a.id, entries=_cash_sale(accounts), description="Venta")

        with pytest.raises(NotFoundError):
            ledger_service.delete_transaction(org_b.id, txn.id)

        assert _balance(accounts["1000"].id) == Decimal("100.00")


class TestListingAndDrift:
    def test_transactions_newest_first(self, org_a, accounts):
        older = ledger_service.post_transaction(
            org_a.id, entries=_cash_sale(accounts), description="Vieja", txn_date="2026-09-01"
        )
        newer = ledger_service.post_transaction(
            org_a.id, entries=_cash_sale(accounts), description="Nueva", txn_date="2026-09-02"
        )

        ids = [t.id for t in ledger_service.list_transactions(org_a.id)]
        assert ids == [newer.id, older.id]

    def test_no_drift_after_posting_and_deleting(self, org_a, accounts):
        txn = ledger_service.post_transaction(org_a.id, entries=_cash_sale(accounts), description="Venta")
        ledger_service.post_transaction(org_a.id, entries=_cash_sale(accounts, "3.10"), description="Venta 2")
        ledger_service.delete_transaction(org_a.id, txn.id)

        assert ledger_service.find_balance_drift(org_a.id) == []

    def test_drift_reported_for_tampered_balance(self, org_a, accounts):
        ledger_service.post_transaction(org_a.id, entries=_cash_sale(accounts), description="Venta")
        caja = db.session.get(Account, accounts["1000"].id)
        caja.balance = Decimal("1.00")
        db.session.commit()

        drift = ledger_service.find_balance_drift(org_a.id)
        assert [d["code"] for d in drift] == ["1000"]
        assert drift[0]["stored_balance"] == "1.00"
        assert drift[0]["expected_balance"] == "100.00"
