# Overview: Flask API routes for expense categories and vendors.

# backend/salon_finance/routes/expenses.py
"""
Expense Reference Data API Routes

Expense postings (POST /api/transactions with type "expense", or a
register expense/withdrawal movement) may point at one of these rows.
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import expense_service
from ..services.errors import FinanceError
from .common import error_response, get_actor_id, get_company_id, json_body


expense_categories_bp = Blueprint("expense_categories", __name__, url_prefix="/api/expense-categories")
vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/vendors")


@expense_categories_bp.post("")
def create_expense_category_route():
    """
    Create an expense category.

    Request body:
    {
        "name": "Supplies",
        "parent_id": null,               (optional)
        "monthly_budget_cents": 200000,  (optional)
        "requires_receipt": true,        (optional)
        "sort_order": 1                  (optional)
    }
    """
    try:
        data = json_body()
        category = expense_service.create_expense_category(
            company_id=get_company_id(),
            name=data.get("name"),
            created_by=get_actor_id(),
            description=data.get("description"),
            parent_id=data.get("parent_id"),
            monthly_budget_cents=data.get("monthly_budget_cents"),
            requires_receipt=bool(data.get("requires_receipt", False)),
            sort_order=data.get("sort_order"),
        )
        return jsonify({"expense_category": category.to_dict()}), 201
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create expense category")
        return jsonify({"error": "Internal server error"}), 500


@expense_categories_bp.get("")
def list_expense_categories_route():
    """Query: include_inactive"""
    try:
        include_inactive = request.args.get("include_inactive", "false").lower() in ("1", "true", "yes")
        categories = expense_service.list_expense_categories(
            get_company_id(),
            include_inactive=include_inactive,
        )
        return jsonify({"expense_categories": [c.to_dict() for c in categories]}), 200
    except FinanceError as e:
        return error_response(e)


@expense_categories_bp.post("/<int:category_id>/deactivate")
def deactivate_expense_category_route(category_id: int):
    try:
        category = expense_service.deactivate_expense_category(
            company_id=get_company_id(),
            category_id=category_id,
        )
        return jsonify({"expense_category": category.to_dict()}), 200
    except FinanceError as e:
        return error_response(e)


@vendors_bp.post("")
def create_vendor_route():
    """
    Create a vendor.

    Request body:
    {
        "name": "Nile Beauty Supplies",
        "code": "NBS",                   (optional, unique per company)
        "contact_person": "Mona",
        "phone": "+20 100 000 0000",
        "payment_terms": "net 30"
    }
    """
    try:
        data = json_body()
        vendor = expense_service.create_vendor(
            company_id=get_company_id(),
            name=data.get("name"),
            created_by=get_actor_id(),
            code=data.get("code"),
            contact_person=data.get("contact_person"),
            phone=data.get("phone"),
            email=data.get("email"),
            tax_number=data.get("tax_number"),
            payment_terms=data.get("payment_terms"),
        )
        return jsonify({"vendor": vendor.to_dict()}), 201
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create vendor")
        return jsonify({"error": "Internal server error"}), 500


@vendors_bp.get("")
def list_vendors_route():
    """Query: status, search"""
    try:
        vendors = expense_service.list_vendors(
            get_company_id(),
            status=request.args.get("status"),
            search=request.args.get("search"),
        )
        return jsonify({"vendors": [v.to_dict() for v in vendors]}), 200
    except FinanceError as e:
        return error_response(e)


@vendors_bp.get("/<int:vendor_id>")
def get_vendor_route(vendor_id: int):
    try:
        vendor = expense_service.get_vendor(get_company_id(), vendor_id)
        return jsonify({"vendor": vendor.to_dict()}), 200
    except FinanceError as e:
        return error_response(e)


@vendors_bp.patch("/<int:vendor_id>")
def update_vendor_route(vendor_id: int):
    """Editable: name, code, contact_person, phone, email, tax_number, payment_terms, status"""
    try:
        data = json_body()
        changes = {k: v for k, v in data.items() if k not in ("company_id", "actor_id")}
        vendor = expense_service.update_vendor(
            company_id=get_company_id(),
            vendor_id=vendor_id,
            **changes,
        )
        return jsonify({"vendor": vendor.to_dict()}), 200
    except FinanceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update vendor %s", vendor_id)
        return jsonify({"error": "Internal server error"}), 500
