# Overview: Flask API routes for ledger postings and transfers.

# backend/salon_finance/routes/transactions.py
"""
Transaction and Transfer API Routes

POST /api/transactions records an income or expense on one account.
POST /api/transfers moves money between two accounts as two linked postings.
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import ledger_service
from ..services.errors import FinanceError
from salon_finance.time_utils import parse_iso_datetime
from .common import error_response, get_actor_id, get_company_id, json_body


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")
transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transactions_bp.post("")
def post_transaction_route():
    """
    Post an income or expense.

    Request body:
    {
        "account_id": 1,
        "type": "expense",
        "category": "supplies",
        "amount_cents": 2500,
        "tax_cents": 0,                 (optional)
        "payment_method": "cash",       (optional)
        "expense_category_id": 3,       (optional, expense only)
        "vendor_id": 7,                 (optional, expense only)
        "description": "Towels"
    }
    """
    try:
        data = json_body()
        txn = ledger_service.post_transaction(
            company_id=get_company_id(),
            account_id=data.get("account_id"),
            type=data.get("type"),
            category=data.get("category"),
            amount_cents=data.get("amount_cents"),
            description=data.get("description") or "",
            created_by=get_actor_id(),
            tax_cents=data.get("tax_cents", 0),
            payment_method=data.get("payment_method") or "other",
            branch_id=data.get("branch_id"),
            reference_type=data.get("reference_type"),
            reference_id=data.get("reference_id"),
            notes=data.get("notes"),
            occurred_at=parse_iso_datetime(data.get("occurred_at")),
            expense_category_id=data.get("expense_category_id"),
            vendor_id=data.get("vendor_id"),
        )
        return jsonify({"transaction": txn.to_dict()}), 201
    except FinanceError as e:
        return error_response(e)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to post transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("")
def list_transactions_route():
    """
    List postings, newest first.

    Query: account_id, branch_id, type, category, reference_type,
    reference_id, start, end, limit, before_id
    """
    try:
        transactions = ledger_service.list_transactions(
            get_company_id(),
            account_id=request.args.get("account_id", type=int),
            branch_id=request.args.get("branch_id", type=int),
            type=request.args.get("type"),
            category=request.args.get("category"),
            reference_type=request.args.get("reference_type"),
            reference_id=request.args.get("reference_id"),
            start=parse_iso_datetime(request.args.get("start")),
            end=parse_iso_datetime(request.args.get("end")),
            limit=request.args.get("limit", 50, type=int),
            before_id=request.args.get("before_id", type=int),
        )
        next_before_id = transactions[-1].id if transactions else None
        return jsonify({
            "transactions": [t.to_dict() for t in transactions],
            "next_before_id": next_before_id,
        }), 200
    except FinanceError as e:
        return error_response(e)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@transfers_bp.post("")
def post_transfer_route():
    """
    Transfer between accounts.

    Request body:
    {
        "from_account_id": 1,
        "to_account_id": 2,
        "amount_cents": 50000,
        "description": "Bank deposit"
    }
    """
    try:
        data = json_body()
        from_txn, to_txn = ledger_service.post_transfer(
            company_id=get_company_id(),
            from_account_id=data.get("from_account_id"),
            to_account_id=data.get("to_account_id"),
            amount_cents=data.get("amount_cents"),
            description=data.get("description") or "Transfer",
            created_by=get_actor_id(),
            branch_id=data.get("branch_id"),
            notes=data.get("notes"),
        )
        return jsonify({
            "from_transaction": from_txn.to_dict(),
            "to_transaction": to_txn.to_dict(),
        }), 201
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to post transfer")
        return jsonify({"error": "Internal server error"}), 500
