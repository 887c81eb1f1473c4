# Overview: Expense categories and vendors that expense postings point at; vendor spend counters.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Company, ExpenseCategory, Vendor
from salon_finance.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .errors import ExpenseCategoryNotFound, ValidationError, VendorNotFound


VENDOR_STATUSES = ("active", "inactive", "blocked")

UPDATABLE_VENDOR_FIELDS = (
    "name",
    "code",
    "contact_person",
    "phone",
    "email",
    "tax_number",
    "payment_terms",
    "status",
)


def _require_company(company_id: int) -> None:
    if not db.session.get(Company, company_id):
        raise ValidationError("Company not found", {"company_id": company_id})


def _optional_non_negative(value, field: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer", {field: value})
    return value


# =============================================================================
# CATEGORIES
# =============================================================================

def create_expense_category(
    *,
    company_id: int,
    name: str,
    created_by: str | None,
    description: str | None = None,
    parent_id: int | None = None,
    monthly_budget_cents: int | None = None,
    requires_receipt: bool = False,
    sort_order: int | None = None,
    is_system: bool = False,
) -> ExpenseCategory:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    _require_company(company_id)
    _optional_non_negative(monthly_budget_cents, "monthly_budget_cents")

    if parent_id is not None:
        get_expense_category(company_id, parent_id)

    existing = db.session.query(ExpenseCategory).filter_by(company_id=company_id, name=name).first()
    if existing:
        raise ValidationError(
            f"Expense category '{name}' already exists",
            {"expense_category_id": existing.id},
        )

    category = ExpenseCategory(
        company_id=company_id,
        parent_id=parent_id,
        name=name,
        description=description,
        monthly_budget_cents=monthly_budget_cents,
        requires_receipt=bool(requires_receipt),
        sort_order=sort_order,
        is_system=bool(is_system),
        is_active=True,
        created_by=created_by,
    )
    db.session.add(category)
    db.session.commit()
    return category


def get_expense_category(company_id: int, category_id: int) -> ExpenseCategory:
    category = db.session.query(ExpenseCategory).filter_by(id=category_id, company_id=company_id).first()
    if not category:
        raise ExpenseCategoryNotFound("Expense category not found", {"expense_category_id": category_id})
    return category


def list_expense_categories(company_id: int, *, include_inactive: bool = False) -> list[ExpenseCategory]:
    query = db.session.query(ExpenseCategory).filter(ExpenseCategory.company_id == company_id)
    if not include_inactive:
        query = query.filter(ExpenseCategory.is_active.is_(True))
    # Unordered categories sort after ordered ones
    return query.order_by(
        ExpenseCategory.sort_order.is_(None),
        ExpenseCategory.sort_order,
        ExpenseCategory.name,
    ).all()


def deactivate_expense_category(*, company_id: int, category_id: int) -> ExpenseCategory:
    """Hide a category from new postings. System categories stay active."""
    category = get_expense_category(company_id, category_id)
    if category.is_system:
        raise ValidationError(
            "System expense categories cannot be deactivated",
            {"expense_category_id": category.id},
        )
    category.is_active = False
    category.updated_at = utcnow()
    db.session.commit()
    return category


# =============================================================================
# VENDORS
# =============================================================================

def _validate_status(status: str) -> None:
    if status not in VENDOR_STATUSES:
        raise ValidationError(f"Invalid vendor status: {status}", {"status": status})


def _ensure_code_free(company_id: int, code: str | None, vendor_id: int | None = None) -> None:
    if not code:
        return
    query = db.session.query(Vendor).filter(Vendor.company_id == company_id, Vendor.code == code)
    if vendor_id is not None:
        query = query.filter(Vendor.id != vendor_id)
    existing = query.first()
    if existing:
        raise ValidationError(f"Vendor code '{code}' already in use", {"vendor_id": existing.id})


def create_vendor(
    *,
    company_id: int,
    name: str,
    created_by: str | None,
    code: str | None = None,
    contact_person: str | None = None,
    phone: str | None = None,
    email: str | None = None,
    tax_number: str | None = None,
    payment_terms: str | None = None,
) -> Vendor:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    _require_company(company_id)
    code = (code or "").strip() or None
    _ensure_code_free(company_id, code)

    vendor = Vendor(
        company_id=company_id,
        name=name,
        code=code,
        contact_person=contact_person,
        phone=phone,
        email=email,
        tax_number=tax_number,
        payment_terms=payment_terms,
        status="active",
        total_transactions=0,
        total_amount_cents=0,
        created_by=created_by,
    )
    db.session.add(vendor)
    db.session.commit()
    return vendor


def get_vendor(company_id: int, vendor_id: int) -> Vendor:
    vendor = db.session.query(Vendor).filter_by(id=vendor_id, company_id=company_id).first()
    if not vendor:
        raise VendorNotFound("Vendor not found", {"vendor_id": vendor_id})
    return vendor


def list_vendors(company_id: int, *, status: str | None = None, search: str | None = None) -> list[Vendor]:
    query = db.session.query(Vendor).filter(Vendor.company_id == company_id)
    if status:
        query = query.filter(Vendor.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Vendor.name.ilike(pattern), Vendor.code.ilike(pattern)))
    return query.order_by(Vendor.name, Vendor.id).all()


def update_vendor(*, company_id: int, vendor_id: int, **changes) -> Vendor:
    """Edit contact details or status. Spend counters are not editable."""
    unknown = set(changes) - set(UPDATABLE_VENDOR_FIELDS)
    if unknown:
        raise ValidationError(
            "Fields cannot be updated: " + ", ".join(sorted(unknown)),
            {"fields": sorted(unknown)},
        )
    if "name" in changes and not (changes["name"] or "").strip():
        raise ValidationError("name cannot be empty")
    if "status" in changes:
        _validate_status(changes["status"])

    def _op():
        vendor = get_vendor_locked(company_id, vendor_id)
        if "code" in changes:
            changes["code"] = (changes["code"] or "").strip() or None
            _ensure_code_free(company_id, changes["code"], vendor.id)
        for field, value in changes.items():
            setattr(vendor, field, value.strip() if field == "name" else value)
        vendor.updated_at = utcnow()
        db.session.commit()
        return vendor

    return run_with_retry(_op)


# =============================================================================
# POSTING HELPERS (no commit)
# =============================================================================

def get_vendor_locked(company_id: int, vendor_id: int) -> Vendor:
    vendor = (
        lock_for_update(db.session.query(Vendor).filter_by(id=vendor_id, company_id=company_id))
        .execution_options(populate_existing=True)
        .first()
    )
    if not vendor:
        raise VendorNotFound("Vendor not found", {"vendor_id": vendor_id})
    return vendor


def resolve_expense_refs_locked(
    company_id: int,
    expense_category_id: int | None,
    vendor_id: int | None,
) -> tuple[ExpenseCategory | None, Vendor | None]:
    """
    Load the category and vendor an expense posting points at.

    Both must belong to the company and be usable: inactive categories and
    vendors that are not active are refused. The vendor row is locked so
    its counters can be updated in the same unit.
    """
    category = None
    vendor = None
    if expense_category_id is not None:
        category = get_expense_category(company_id, expense_category_id)
        if not category.is_active:
            raise ValidationError(
                f"Expense category '{category.name}' is inactive",
                {"expense_category_id": category.id},
            )
    if vendor_id is not None:
        vendor = get_vendor_locked(company_id, vendor_id)
        if vendor.status != "active":
            raise ValidationError(
                f"Vendor '{vendor.name}' is {vendor.status}",
                {"vendor_id": vendor.id, "status": vendor.status},
            )
    return category, vendor


def record_vendor_spend_locked(vendor: Vendor, amount_cents: int) -> None:
    """Count one payment to the vendor. A negative amount undoes one."""
    step = 1 if amount_cents >= 0 else -1
    vendor.total_transactions = Vendor.total_transactions + step
    vendor.total_amount_cents = Vendor.total_amount_cents + amount_cents
    vendor.updated_at = utcnow()
    db.session.flush()
