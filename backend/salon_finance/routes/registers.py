# Overview: Flask API routes for register sessions; parses input and returns JSON responses.

# backend/salon_finance/routes/registers.py
"""
Register Session API Routes

WHY: Cashier accountability. Open a drawer with counted amounts, record
money movements during the shift, close against counted balances.

DESIGN:
- Shift lifecycle: open -> (suspended -> open)* -> closed
- Closing returns the reconciliation summary
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import register_service
from ..services.errors import FinanceError
from .common import error_response, get_actor_id, get_company_id, json_body


sessions_bp = Blueprint("register_sessions", __name__, url_prefix="/api/register-sessions")


@sessions_bp.post("")
def open_session_route():
    """
    Open a register session.

    Request body:
    {
        "branch_id": 1,
        "register_id": "REG-01",
        "account_mappings": {"cash": 1, "card": 2, "over_short": 5},
        "opening_amounts": {"cash": 20000},
        "notes": "Morning shift"
    }
    """
    try:
        data = json_body()
        session = register_service.open_session(
            company_id=get_company_id(),
            branch_id=data.get("branch_id"),
            register_id=data.get("register_id"),
            account_mappings=data.get("account_mappings") or {},
            opening_amounts=data.get("opening_amounts") or {},
            opened_by=get_actor_id(),
            notes=data.get("notes"),
        )
        return jsonify({"session": session.to_dict()}), 201
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to open register session")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.get("")
def list_sessions_route():
    """Query: branch_id, register_id, status, opened_by, limit, before_id"""
    try:
        sessions = register_service.list_sessions(
            get_company_id(),
            branch_id=request.args.get("branch_id", type=int),
            register_id=request.args.get("register_id"),
            status=request.args.get("status"),
            opened_by=request.args.get("opened_by"),
            limit=request.args.get("limit", 50, type=int),
            before_id=request.args.get("before_id", type=int),
        )
        return jsonify({"sessions": [s.to_dict(include_movements=False) for s in sessions]}), 200
    except FinanceError as e:
        return error_response(e)


@sessions_bp.get("/current")
def current_session_route():
    """Live session for a register. Query: branch_id, register_id"""
    try:
        session = register_service.get_open_session(
            get_company_id(),
            request.args.get("branch_id", type=int),
            request.args.get("register_id"),
        )
        return jsonify({"session": session.to_dict() if session else None}), 200
    except FinanceError as e:
        return error_response(e)


@sessions_bp.get("/<int:session_id>")
def get_session_route(session_id: int):
    try:
        session = register_service.get_session(get_company_id(), session_id)
        result = session.to_dict()
        result["movements"] = [m.to_dict() for m in session.cash_movements]
        return jsonify({"session": result}), 200
    except FinanceError as e:
        return error_response(e)


@sessions_bp.post("/<int:session_id>/movements")
def record_movement_route(session_id: int):
    """
    Record a deposit, withdrawal, transfer or expense.

    Request body:
    {
        "type": "withdrawal",
        "amount_cents": 5000,
        "from_account_id": 1,
        "to_account_id": null,
        "payment_method": "cash",
        "description": "Safe drop"
    }

    Withdrawals and expenses may also carry expense_category_id and vendor_id.
    """
    try:
        data = json_body()
        movement = register_service.record_movement(
            company_id=get_company_id(),
            session_id=session_id,
            movement=data,
            performed_by=get_actor_id(),
        )
        return jsonify({"movement": movement.to_dict()}), 201
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record register movement")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.post("/<int:session_id>/movements/<int:movement_id>/void")
def void_movement_route(session_id: int, movement_id: int):
    """
    Void a manual movement; its reverse is posted.

    Request body:
    {
        "reason": "Entered twice"
    }
    """
    try:
        data = json_body()
        movement = register_service.void_movement(
            company_id=get_company_id(),
            session_id=session_id,
            movement_id=movement_id,
            voided_by=get_actor_id(),
            reason=data.get("reason"),
        )
        return jsonify({"movement": movement.to_dict()}), 200
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to void register movement")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.post("/<int:session_id>/close")
def close_session_route(session_id: int):
    """
    Close a session against counted balances.

    Request body:
    {
        "actual_balances": {"1": 134000, "2": 56000},
        "discrepancy_notes": "Short 10 in cash"
    }
    """
    try:
        data = json_body()
        summary = register_service.close_session(
            company_id=get_company_id(),
            session_id=session_id,
            actual_balances=data.get("actual_balances") or {},
            closed_by=get_actor_id(),
            discrepancy_notes=data.get("discrepancy_notes"),
        )
        return jsonify({"summary": summary}), 200
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close register session")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.get("/<int:session_id>/summary")
def session_summary_route(session_id: int):
    try:
        session = register_service.get_session(get_company_id(), session_id)
        return jsonify({"summary": register_service.build_closing_summary(session)}), 200
    except FinanceError as e:
        return error_response(e)


@sessions_bp.post("/<int:session_id>/suspend")
def suspend_session_route(session_id: int):
    try:
        data = json_body()
        session = register_service.suspend_session(
            company_id=get_company_id(),
            session_id=session_id,
            actor_id=get_actor_id(),
            reason=data.get("reason"),
        )
        return jsonify({"session": session.to_dict()}), 200
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to suspend register session")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.post("/<int:session_id>/resume")
def resume_session_route(session_id: int):
    try:
        session = register_service.resume_session(
            company_id=get_company_id(),
            session_id=session_id,
            actor_id=get_actor_id(),
        )
        return jsonify({"session": session.to_dict()}), 200
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to resume register session")
        return jsonify({"error": "Internal server error"}), 500
