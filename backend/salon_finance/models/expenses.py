from __future__ import annotations

from ..extensions import db
from salon_finance.time_utils import to_utc_z

class ExpenseCategory(db.Model):
    """
    Expense classification (rent, supplies, salaries, utilities, ...).

    WHY: Expense postings reference a category row so reports group spend
    consistently instead of relying on free text.

    DESIGN:
    - Company-scoped, names unique per company
    - Optional parent for sub-categories (one level is typical)
    - System categories cannot be deactivated
    - Deactivated categories are refused for new postings; history keeps them
    """
    __tablename__ = "expense_categories"
    __table_args__ = (
        db.UniqueConstraint("company_id", "name", name="uq_expense_categories_company_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("expense_categories.id"), nullable=True, index=True)

    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(255), nullable=True)

    monthly_budget_cents = db.Column(db.Integer, nullable=True)
    requires_receipt = db.Column(db.Boolean, nullable=False, default=False)

    is_system = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    sort_order = db.Column(db.Integer, nullable=True)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    parent = db.relationship("ExpenseCategory", remote_side=[id], backref=db.backref("children", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "parent_id": self.parent_id,
            "name": self.name,
            "description": self.description,
            "monthly_budget_cents": self.monthly_budget_cents,
            "requires_receipt": self.requires_receipt,
            "is_system": self.is_system,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class Vendor(db.Model):
    """
    Supplier the salon pays (product distributors, landlords, utilities).

    total_transactions / total_amount_cents are running spend counters kept
    in step with expense postings that reference the vendor. Only active
    vendors can be paid.
    """
    __tablename__ = "vendors"
    __table_args__ = (
        db.UniqueConstraint("company_id", "code", name="uq_vendors_company_code"),
        db.Index("ix_vendors_company_name", "company_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True)

    contact_person = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    tax_number = db.Column(db.String(64), nullable=True)
    payment_terms = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="active", index=True)  # active, inactive, blocked

    total_transactions = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by = db.Column(db.String(64), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "code": self.code,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "email": self.email,
            "tax_number": self.tax_number,
            "payment_terms": self.payment_terms,
            "status": self.status,
            "total_transactions": self.total_transactions,
            "total_amount_cents": self.total_amount_cents,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
