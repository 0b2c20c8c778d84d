# Overview: Flask API routes for accounting operations; parses input and returns JSON responses.

# backend/inventario/routes/accounting.py
"""
Accounting API: chart of accounts and journal entries.

MULTI-TENANT: scoped to the organization named by X-Organization-Id.
"""

from flask import Blueprint, jsonify, g, current_app

from ..extensions import db
from ..services import ledger_service
from ..services.ledger_service import UnbalancedEntryError
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_organization, require_capability, json_object


accounting_bp = Blueprint("accounting", __name__, url_prefix="/api/accounting")


@accounting_bp.get("/accounts")
@require_auth
@require_organization
@require_capability("VIEW_LEDGER")
def list_accounts_route():
    accounts = ledger_service.list_accounts(g.org_id)
    return jsonify([a.to_dict() for a in accounts]), 200


@accounting_bp.post("/accounts")
@require_auth
@require_organization
@require_capability("MANAGE_ACCOUNTS")
def create_account_route():
    try:
        data = json_object()
        account = ledger_service.create_account(
            g.org_id,
            data.get("code"),
            data.get("name"),
            data.get("type"),
        )
        return jsonify(account.to_dict()), 201

    except ConflictError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create account")
        return jsonify({"error": "Internal server error"}), 500


@accounting_bp.get("/transactions")
@require_auth
@require_organization
@require_capability("VIEW_LEDGER")
def list_transactions_route():
    transactions = ledger_service.list_transactions(g.org_id)
    return jsonify([t.to_dict() for t in transactions]), 200


@accounting_bp.post("/transactions")
@require_auth
@require_organization
@require_capability("POST_TRANSACTION")
def post_transaction_route():
    """
    Post a balanced journal entry.

    Body: {date, description, reference?, entries: [{account_id, debit, credit}]}
    """
    try:
        data = json_object()
        txn = ledger_service.post_transaction(
            g.org_id,
            entries=data.get("entries"),
            description=data.get("description"),
            txn_date=data.get("date"),
            reference=data.get("reference"),
            user_id=g.current_user.id,
        )
        return jsonify({"id": txn.id, "transaction": txn.to_dict()}), 201

    except UnbalancedEntryError as e:
        return jsonify({
            "error": str(e),
            "total_debit": str(e.total_debit),
            "total_credit": str(e.total_credit),
        }), 400
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to post transaction")
        return jsonify({"error": "Internal server error"}), 500


@accounting_bp.delete("/transactions/<int:transaction_id>")
@require_auth
@require_organization
@require_capability("DELETE_TRANSACTION")
def delete_transaction_route(transaction_id: int):
    try:
        ledger_service.delete_transaction(g.org_id, transaction_id)
        return jsonify({"message": "Transaction deleted"}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete transaction")
        return jsonify({"error": "Internal server error"}), 500
