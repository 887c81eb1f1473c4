# Overview: Flask API routes for financial accounts; parses input and returns JSON responses.

# backend/salon_finance/routes/accounts.py
"""
Account API Routes

WHY: Manage the money containers (cash drawers, bank, card settlement,
wallets) and read their history.

DESIGN:
- Balances are never edited directly; they move only through postings
- Closing is a separate action with its own guards
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import ledger_service, notification_service
from ..services.errors import FinanceError
from salon_finance.time_utils import parse_iso_datetime
from .common import error_response, get_actor_id, get_company_id, json_body


accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/accounts")


@accounts_bp.post("")
def create_account_route():
    """
    Create an account.

    Request body:
    {
        "name": "Front Desk Cash",
        "type": "cash",
        "branch_id": 1,                    (optional, null = company-wide)
        "opening_balance_cents": 100000,   (optional)
        "allow_negative_balance": false,   (optional)
        "low_balance_threshold_cents": 5000,
        "is_default": true
    }
    """
    try:
        data = json_body()
        account = ledger_service.create_account(
            company_id=get_company_id(),
            name=data.get("name"),
            type=data.get("type"),
            created_by=get_actor_id(),
            branch_id=data.get("branch_id"),
            opening_balance_cents=data.get("opening_balance_cents", 0),
            opening_date=parse_iso_datetime(data.get("opening_date")),
            allow_negative_balance=bool(data.get("allow_negative_balance", False)),
            low_balance_threshold_cents=data.get("low_balance_threshold_cents"),
            is_default=bool(data.get("is_default", False)),
            notes=data.get("notes"),
        )
        return jsonify({"account": account.to_dict()}), 201
    except FinanceError as e:
        return error_response(e)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create account")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.get("")
def list_accounts_route():
    try:
        accounts = ledger_service.list_accounts(
            get_company_id(),
            branch_id=request.args.get("branch_id", type=int),
            type=request.args.get("type"),
            status=request.args.get("status"),
        )
        return jsonify({"accounts": [a.to_dict() for a in accounts]}), 200
    except FinanceError as e:
        return error_response(e)


@accounts_bp.get("/<int:account_id>")
def get_account_route(account_id: int):
    try:
        account = ledger_service.get_account(get_company_id(), account_id)
        return jsonify({"account": account.to_dict()}), 200
    except FinanceError as e:
        return error_response(e)


@accounts_bp.patch("/<int:account_id>")
def update_account_route(account_id: int):
    """Update name, notes, threshold or flags."""
    try:
        data = json_body()
        changes = {k: v for k, v in data.items() if k not in ("company_id", "actor_id")}
        account = ledger_service.update_account(
            company_id=get_company_id(),
            account_id=account_id,
            updated_by=get_actor_id(),
            **changes,
        )
        return jsonify({"account": account.to_dict()}), 200
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update account")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.post("/<int:account_id>/status")
def set_account_status_route(account_id: int):
    try:
        data = json_body()
        account = ledger_service.set_account_status(
            company_id=get_company_id(),
            account_id=account_id,
            status=data.get("status"),
            updated_by=get_actor_id(),
        )
        return jsonify({"account": account.to_dict()}), 200
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to change account status")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.post("/<int:account_id>/close")
def close_account_route(account_id: int):
    """
    Close an account.

    Fails with 409 when the balance is not zero or when this is the last
    active account of its type.
    """
    try:
        account = ledger_service.close_account(
            company_id=get_company_id(),
            account_id=account_id,
            closed_by=get_actor_id(),
        )
        return jsonify({"account": account.to_dict()}), 200
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close account")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.get("/<int:account_id>/summary")
def account_summary_route(account_id: int):
    """Period income/expense/net. Query: start, end (ISO-8601)."""
    try:
        summary = ledger_service.get_account_summary(
            get_company_id(),
            account_id,
            start=parse_iso_datetime(request.args.get("start")),
            end=parse_iso_datetime(request.args.get("end")),
        )
        return jsonify(summary), 200
    except FinanceError as e:
        return error_response(e)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@accounts_bp.get("/<int:account_id>/transactions")
def account_transactions_route(account_id: int):
    try:
        company_id = get_company_id()
        ledger_service.get_account(company_id, account_id)
        transactions = ledger_service.list_transactions(
            company_id,
            account_id=account_id,
            limit=request.args.get("limit", 50, type=int),
            before_id=request.args.get("before_id", type=int),
        )
        return jsonify({"transactions": [t.to_dict() for t in transactions]}), 200
    except FinanceError as e:
        return error_response(e)


@accounts_bp.get("/alerts")
def list_alerts_route():
    """Query: account_id, include_acknowledged (true/false)"""
    try:
        alerts = notification_service.list_alerts(
            get_company_id(),
            account_id=request.args.get("account_id", type=int),
            include_acknowledged=request.args.get("include_acknowledged", "false").lower() == "true",
        )
        return jsonify({"alerts": [a.to_dict() for a in alerts]}), 200
    except FinanceError as e:
        return error_response(e)


@accounts_bp.post("/alerts/<int:alert_id>/acknowledge")
def acknowledge_alert_route(alert_id: int):
    try:
        alert = notification_service.acknowledge_alert(
            company_id=get_company_id(),
            alert_id=alert_id,
            acknowledged_by=get_actor_id(),
        )
        return jsonify({"alert": alert.to_dict()}), 200
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to acknowledge alert")
        return jsonify({"error": "Internal server error"}), 500
