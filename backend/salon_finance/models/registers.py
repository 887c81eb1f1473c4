from __future__ import annotations

from ..extensions import db
from salon_finance.time_utils import to_utc_z

class CashRegisterSession(db.Model):
    """
    Register shift/session tracking.

    WHY: Cashier accountability. Each session knows which ledger accounts play
    the cash/card/bank/wallet roles, tracks the expected balance of each one
    and reconciles it against counted amounts at close.

    LIFECYCLE:
    - open: shift is active, movements and sales can be recorded
    - suspended: temporarily paused, still blocks a second session
    - closed: counts entered, discrepancies posted to over/short

    reconciled is a label set on close when no account had a discrepancy.
    IMMUTABLE: Once closed, a session cannot be reopened or modified.
    """
    __tablename__ = "cash_register_sessions"
    __table_args__ = (
        # At most one live session per (branch, register)
        db.Index(
            "uq_register_sessions_live",
            "branch_id",
            "register_id",
            unique=True,
            sqlite_where=db.text("status IN ('open', 'suspended')"),
            postgresql_where=db.text("status IN ('open', 'suspended')"),
        ),
        db.Index("ix_register_sessions_branch_status", "branch_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    # Drawer key ("REG-01") or the id of the account the drawer is bound to
    register_id = db.Column(db.String(64), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="open", index=True)
    reconciled = db.Column(db.Boolean, nullable=False, default=False)

    # Account role mappings
    cash_account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=False)
    card_account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=True)
    bank_account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=True)
    digital_wallet_account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=True)
    over_short_account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=True)

    opened_by = db.Column(db.String(64), nullable=False, index=True)
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closed_by = db.Column(db.String(64), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    suspended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    suspend_reason = db.Column(db.String(255), nullable=True)

    transaction_count = db.Column(db.Integer, nullable=False, default=0)

    # Final amounts (set when closing)
    total_expected_cents = db.Column(db.Integer, nullable=True)
    total_actual_cents = db.Column(db.Integer, nullable=True)
    total_discrepancy_cents = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    discrepancy_notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def account_mappings(self) -> dict:
        return {
            "cash_account_id": self.cash_account_id,
            "card_account_id": self.card_account_id,
            "bank_account_id": self.bank_account_id,
            "digital_wallet_account_id": self.digital_wallet_account_id,
            "over_short_account_id": self.over_short_account_id,
        }

    def to_dict(self, include_movements: bool = True) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "branch_id": self.branch_id,
            "register_id": self.register_id,
            "status": self.status,
            "reconciled": self.reconciled,
            "account_mappings": self.account_mappings(),
            "opened_by": self.opened_by,
            "opened_at": to_utc_z(self.opened_at),
            "closed_by": self.closed_by,
            "closed_at": to_utc_z(self.closed_at),
            "suspended_at": to_utc_z(self.suspended_at),
            "suspend_reason": self.suspend_reason,
            "transaction_count": self.transaction_count,
            "total_expected_cents": self.total_expected_cents,
            "total_actual_cents": self.total_actual_cents,
            "total_discrepancy_cents": self.total_discrepancy_cents,
            "notes": self.notes,
            "discrepancy_notes": self.discrepancy_notes,
            "version_id": self.version_id,
        }
        if include_movements:
            data["account_movements"] = {
                str(m.account_id): m.to_dict() for m in self.account_movements
            }
        return data

class SessionAccountMovement(db.Model):
    """
    Running expectation for one account inside one session.

    expected_balance_cents = opening_balance_cents + transaction_total_cents
    + adjustments_cents. Sales attributed to the session move
    transaction_total; movements and opening counts move adjustments.
    """
    __tablename__ = "session_account_movements"
    __table_args__ = (
        db.UniqueConstraint("session_id", "account_id", name="uq_session_account_movements"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("cash_register_sessions.id"), nullable=False, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=False, index=True)
    role = db.Column(db.String(32), nullable=False)  # cash, card, bank, digital_wallet

    account_name = db.Column(db.String(128), nullable=True)
    account_type = db.Column(db.String(32), nullable=True)

    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    transaction_total_cents = db.Column(db.Integer, nullable=False, default=0)
    adjustments_cents = db.Column(db.Integer, nullable=False, default=0)
    expected_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    actual_balance_cents = db.Column(db.Integer, nullable=True)
    discrepancy_cents = db.Column(db.Integer, nullable=True)
    discrepancy_transaction_id = db.Column(db.Integer, db.ForeignKey("financial_transactions.id"), nullable=True)

    session = db.relationship(
        "CashRegisterSession",
        backref=db.backref("account_movements", lazy=True, order_by="SessionAccountMovement.id"),
    )

    def to_dict(self) -> dict:
        return {
            "account_id": self.account_id,
            "role": self.role,
            "account_name": self.account_name,
            "account_type": self.account_type,
            "opening_balance_cents": self.opening_balance_cents,
            "transaction_total_cents": self.transaction_total_cents,
            "adjustments_cents": self.adjustments_cents,
            "expected_balance_cents": self.expected_balance_cents,
            "actual_balance_cents": self.actual_balance_cents,
            "discrepancy_cents": self.discrepancy_cents,
            "discrepancy_transaction_id": self.discrepancy_transaction_id,
        }

class CashMovement(db.Model):
    """
    Money movement log for a session.

    MOVEMENT TYPES:
    - opening_count: declared amount at session open
    - deposit / withdrawal / expense / transfer: manual movements
    - sale / sale_void: sale payments attributed to the session
    - over_short: automatic discrepancy adjustment at close
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_session_occurred", "session_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("cash_register_sessions.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    from_account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=True)
    to_account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=True)
    payment_method = db.Column(db.String(32), nullable=True)

    description = db.Column(db.String(255), nullable=True)

    transaction_id = db.Column(db.Integer, db.ForeignKey("financial_transactions.id"), nullable=True)
    linked_transaction_id = db.Column(db.Integer, db.ForeignKey("financial_transactions.id"), nullable=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    performed_by = db.Column(db.String(64), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Set when a manual movement is voided; the reversal posting undoes it
    reversal_transaction_id = db.Column(db.Integer, db.ForeignKey("financial_transactions.id"), nullable=True)
    voided_by = db.Column(db.String(64), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    session = db.relationship(
        "CashRegisterSession",
        backref=db.backref("cash_movements", lazy=True, order_by="CashMovement.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "from_account_id": self.from_account_id,
            "to_account_id": self.to_account_id,
            "payment_method": self.payment_method,
            "description": self.description,
            "transaction_id": self.transaction_id,
            "linked_transaction_id": self.linked_transaction_id,
            "sale_id": self.sale_id,
            "performed_by": self.performed_by,
            "occurred_at": to_utc_z(self.occurred_at),
            "reversal_transaction_id": self.reversal_transaction_id,
            "voided_by": self.voided_by,
            "voided_at": to_utc_z(self.voided_at),
            "void_reason": self.void_reason,
        }
