# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/salon_finance/routes/sales.py
"""Sales API routes: draft, complete, void, and daily reporting."""

from datetime import date

from flask import Blueprint, current_app, jsonify, request

from ..services import sales_service
from ..services.errors import FinanceError
from salon_finance.time_utils import parse_iso_datetime
from .common import error_response, get_actor_id, get_company_id, json_body


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def create_sale_route():
    """
    Create a draft sale.

    Request body:
    {
        "branch_id": 1,
        "items": [{"product_id": 3, "quantity": 2}],
        "payments": [{"method": "cash", "amount_cents": 10000}],
        "customer": {"id": "c-9", "name": "Mona"},
        "source": "pos"
    }
    """
    try:
        data = json_body()
        sale = sales_service.create_sale(
            company_id=get_company_id(),
            branch_id=data.get("branch_id"),
            items=data.get("items") or [],
            payments=data.get("payments") or [],
            staff_id=data.get("staff_id") or get_actor_id(),
            customer=data.get("customer"),
            source=data.get("source") or "pos",
            notes=data.get("notes"),
        )
        return jsonify({"sale": sale.to_dict()}), 201
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
def list_sales_route():
    try:
        sales = sales_service.list_sales(
            get_company_id(),
            branch_id=request.args.get("branch_id", type=int),
            status=request.args.get("status"),
            staff_id=request.args.get("staff_id"),
            customer_id=request.args.get("customer_id"),
            register_session_id=request.args.get("register_session_id", type=int),
            start=parse_iso_datetime(request.args.get("start")),
            end=parse_iso_datetime(request.args.get("end")),
            limit=request.args.get("limit", 50, type=int),
            before_id=request.args.get("before_id", type=int),
        )
        return jsonify({"sales": [s.to_dict(include_lines=False) for s in sales]}), 200
    except FinanceError as e:
        return error_response(e)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@sales_bp.get("/daily-summary")
def daily_summary_route():
    """Query: date (YYYY-MM-DD, default today UTC), branch_id"""
    try:
        raw = request.args.get("date")
        day = date.fromisoformat(raw) if raw else None
        summary = sales_service.get_daily_summary(
            get_company_id(),
            day,
            branch_id=request.args.get("branch_id", type=int),
        )
        return jsonify(summary), 200
    except FinanceError as e:
        return error_response(e)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(get_company_id(), sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except FinanceError as e:
        return error_response(e)


@sales_bp.post("/<int:sale_id>/complete")
def complete_sale_route(sale_id: int):
    """
    Complete a draft sale.

    Optional body replaces the cart before completion:
    {"items": [...], "payments": [...], "register_session_id": 4}
    """
    try:
        data = json_body()
        sale = sales_service.complete_sale(
            company_id=get_company_id(),
            sale_id=sale_id,
            actor_id=get_actor_id(),
            items=data.get("items"),
            payments=data.get("payments"),
            register_session_id=data.get("register_session_id"),
        )
        return jsonify({"sale": sale.to_dict()}), 200
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to complete sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/void")
def void_sale_route(sale_id: int):
    """
    Void a sale.

    Request body:
    {"reason": "Customer changed mind"}
    """
    try:
        data = json_body()
        sale = sales_service.void_sale(
            company_id=get_company_id(),
            sale_id=sale_id,
            actor_id=get_actor_id(),
            reason=data.get("reason"),
        )
        return jsonify({"sale": sale.to_dict()}), 200
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to void sale")
        return jsonify({"error": "Internal server error"}), 500
