from __future__ import annotations

from ..extensions import db
from salon_finance.time_utils import to_utc_z

class Sale(db.Model):
    """
    Point-of-sale document.

    WHY: A sale is drafted with its cart and chosen payments, then completed
    in one atomic unit that moves stock, posts income per payment and flips
    the status.

    LIFECYCLE: draft -> completed, draft -> voided, completed -> voided
    (voiding a completed sale posts reversing entries).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "sale_number", name="uq_sales_branch_sale_number"),
        db.Index("ix_sales_company_status_created", "company_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    # Human-readable numbers (e.g., "POS-202610-0001", "RCP-20261019-001")
    sale_number = db.Column(db.String(64), nullable=False)
    receipt_number = db.Column(db.String(64), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    source = db.Column(db.String(16), nullable=False, default="pos")

    customer_id = db.Column(db.String(64), nullable=True, index=True)
    customer_name = db.Column(db.String(128), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    staff_id = db.Column(db.String(64), nullable=False, index=True)

    # Totals (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    total_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    change_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    # Register session the sale was logged against (best-effort)
    register_session_id = db.Column(db.Integer, db.ForeignKey("cash_register_sessions.id"), nullable=True, index=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_by = db.Column(db.String(64), nullable=True)

    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_by = db.Column(db.String(64), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "branch_id": self.branch_id,
            "sale_number": self.sale_number,
            "receipt_number": self.receipt_number,
            "status": self.status,
            "source": self.source,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "staff_id": self.staff_id,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "total_paid_cents": self.total_paid_cents,
            "change_cents": self.change_cents,
            "total_cost_cents": self.total_cost_cents,
            "register_session_id": self.register_session_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at),
            "completed_by": self.completed_by,
            "voided_at": to_utc_z(self.voided_at),
            "voided_by": self.voided_by,
            "void_reason": self.void_reason,
            "version_id": self.version_id,
        }
        if include_lines:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data

class SaleItem(db.Model):
    """Individual cart line on a sale."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    # fixed: discount_value is cents per line; percentage: discount_value is basis points
    discount_type = db.Column(db.String(16), nullable=False, default="fixed")
    discount_value = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=True)

    # Stock movement written at completion
    inventory_movement_id = db.Column(db.Integer, db.ForeignKey("inventory_movements.id"), nullable=True)

    sale = db.relationship("Sale", backref=db.backref("items", lazy=True, order_by="SaleItem.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "discount_cents": self.discount_cents,
            "subtotal_cents": self.subtotal_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "inventory_movement_id": self.inventory_movement_id,
        }

class SalePayment(db.Model):
    """
    Tender chosen for a sale.

    DESIGN: Split payments are separate rows. posted_amount_cents is what hit
    the ledger (cash change is netted out), transaction_id links the income
    posting and reversal_transaction_id the void reversal.
    """
    __tablename__ = "sale_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    method = db.Column(db.String(32), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=True)

    posted_amount_cents = db.Column(db.Integer, nullable=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("financial_transactions.id"), nullable=True)
    reversal_transaction_id = db.Column(db.Integer, db.ForeignKey("financial_transactions.id"), nullable=True)

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True, order_by="SalePayment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "reference": self.reference,
            "account_id": self.account_id,
            "posted_amount_cents": self.posted_amount_cents,
            "transaction_id": self.transaction_id,
            "reversal_transaction_id": self.reversal_transaction_id,
        }
