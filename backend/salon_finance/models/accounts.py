from __future__ import annotations

from ..extensions import db
from salon_finance.time_utils import to_utc_z

class FinancialAccount(db.Model):
    """
    Money container (cash drawer, bank, card settlement, wallet, petty cash).

    WHY: Every income, expense and transfer lands on exactly one account.
    current_balance_cents is the authoritative running total.

    INVARIANTS:
    - current_balance_cents is only changed inside an atomic unit that also
      enforces allow_negative_balance (see services/ledger_service.py)
    - Closed accounts accept no postings
    - Closing requires a zero balance and another active account of the type
    """
    __tablename__ = "financial_accounts"
    __table_args__ = (
        db.Index("ix_accounts_company_type_status", "company_id", "type", "status"),
        db.Index("ix_accounts_branch_system_code", "branch_id", "system_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    # Null for company-wide accounts
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    name = db.Column(db.String(128), nullable=False)
    type = db.Column(db.String(32), nullable=False)  # cash, bank, credit_card, digital_wallet, petty_cash

    # Balances in cents
    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    opening_date = db.Column(db.DateTime(timezone=True), nullable=True)
    current_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    allow_negative_balance = db.Column(db.Boolean, nullable=False, default=False)
    low_balance_threshold_cents = db.Column(db.Integer, nullable=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    status = db.Column(db.String(16), nullable=False, default="active", index=True)  # active, inactive, closed

    # Marks accounts the system creates for itself (e.g. "over_short")
    system_code = db.Column(db.String(32), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.String(64), nullable=True)
    updated_by = db.Column(db.String(64), nullable=True)
    closed_by = db.Column(db.String(64), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<FinancialAccount id={self.id} name={self.name!r} type={self.type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "branch_id": self.branch_id,
            "name": self.name,
            "type": self.type,
            "opening_balance_cents": self.opening_balance_cents,
            "opening_date": to_utc_z(self.opening_date),
            "current_balance_cents": self.current_balance_cents,
            "allow_negative_balance": self.allow_negative_balance,
            "low_balance_threshold_cents": self.low_balance_threshold_cents,
            "is_default": self.is_default,
            "status": self.status,
            "system_code": self.system_code,
            "notes": self.notes,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "closed_by": self.closed_by,
            "closed_at": to_utc_z(self.closed_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class FinancialTransaction(db.Model):
    """
    Ledger posting against one account.

    WHY: Audit trail for every balance change. A completed income/expense
    row always has its delta applied to exactly one account.

    TRANSFERS: Represented as two linked rows (expense leg on the source with
    transfer_direction="from", income leg on the destination with "to").

    account_name is a snapshot taken at posting time. Renaming an account
    does not rewrite history.
    """
    __tablename__ = "financial_transactions"
    __table_args__ = (
        db.Index("ix_fin_txns_company_occurred", "company_id", "occurred_at"),
        db.Index("ix_fin_txns_account_occurred", "account_id", "occurred_at"),
        db.Index("ix_fin_txns_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=False, index=True)
    account_name = db.Column(db.String(128), nullable=True)

    type = db.Column(db.String(16), nullable=False, index=True)  # income, expense
    category = db.Column(db.String(64), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(32), nullable=False, default="other")

    # Transfer linkage
    is_transfer = db.Column(db.Boolean, nullable=False, default=False)
    transfer_account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=True)
    transfer_direction = db.Column(db.String(8), nullable=True)  # from, to
    linked_transaction_id = db.Column(db.Integer, db.ForeignKey("financial_transactions.id"), nullable=True)

    # Expense classification and payee (expense postings only)
    expense_category_id = db.Column(db.Integer, db.ForeignKey("expense_categories.id"), nullable=True, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    description = db.Column(db.String(255), nullable=False, default="")
    notes = db.Column(db.Text, nullable=True)

    # What caused the posting (sale, register_session, account, ...)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True)

    created_by = db.Column(db.String(64), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    account = db.relationship("FinancialAccount", foreign_keys=[account_id], backref=db.backref("transactions", lazy=True))

    def signed_total_cents(self) -> int:
        return self.total_amount_cents if self.type == "income" else -self.total_amount_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "branch_id": self.branch_id,
            "account_id": self.account_id,
            "account_name": self.account_name,
            "type": self.type,
            "category": self.category,
            "amount_cents": self.amount_cents,
            "tax_cents": self.tax_cents,
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "is_transfer": self.is_transfer,
            "transfer_account_id": self.transfer_account_id,
            "transfer_direction": self.transfer_direction,
            "linked_transaction_id": self.linked_transaction_id,
            "expense_category_id": self.expense_category_id,
            "vendor_id": self.vendor_id,
            "status": self.status,
            "description": self.description,
            "notes": self.notes,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "created_by": self.created_by,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
        }

class BalanceAlert(db.Model):
    """Low-balance signal raised after a posting crosses the account threshold."""
    __tablename__ = "balance_alerts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=False, index=True)

    balance_cents = db.Column(db.Integer, nullable=False)
    threshold_cents = db.Column(db.Integer, nullable=False)
    acknowledged = db.Column(db.Boolean, nullable=False, default=False)
    acknowledged_by = db.Column(db.String(64), nullable=True)
    acknowledged_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "account_id": self.account_id,
            "balance_cents": self.balance_cents,
            "threshold_cents": self.threshold_cents,
            "acknowledged": self.acknowledged,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": to_utc_z(self.acknowledged_at),
            "created_at": to_utc_z(self.created_at),
        }
