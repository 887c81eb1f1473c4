"""
Account Ledger Service

WHY: Every movement of money in the salon lands on a FinancialAccount
through a FinancialTransaction. The account's running balance is the
authoritative figure and must never drift from its postings.

DESIGN PRINCIPLES:
- One posting = one atomic unit (record + balance delta commit together)
- Balances change only through an in-database increment, never a
  read-modify-write in Python
- Negative balances are refused unless the account allows them
- Transfers are two linked postings (expense "from", income "to")
- Low-balance alerts run after commit and never fail the posting

The *_locked helpers flush without committing so other services (register
sessions, sales) can compose them into their own atomic unit.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import Branch, Company, FinancialAccount, FinancialTransaction
from salon_finance.time_utils import to_utc_z, utcnow
from .concurrency import lock_for_update, run_with_retry
from .errors import (
    AccountClosed,
    AccountNotFound,
    InsufficientBalance,
    LastAccountOfType,
    NonZeroBalance,
    ValidationError,
)
from .expense_service import record_vendor_spend_locked, resolve_expense_refs_locked
from .notification_service import BalanceChange, notify_low_balance


# =============================================================================
# CONSTANTS
# =============================================================================

ACCOUNT_TYPES = ("cash", "bank", "credit_card", "digital_wallet", "petty_cash")
ACCOUNT_STATUSES = ("active", "inactive", "closed")

TRANSACTION_TYPES = ("income", "expense")
TRANSACTION_STATUSES = ("completed", "pending", "cancelled")
PAYMENT_METHODS = ("cash", "card", "bank_transfer", "digital_wallet", "check", "other")

CATEGORY_OPENING_BALANCE = "opening_balance"
CATEGORY_TRANSFER = "transfer"

# Fields update_account may touch. Balances are never edited directly.
UPDATABLE_ACCOUNT_FIELDS = (
    "name",
    "notes",
    "low_balance_threshold_cents",
    "allow_negative_balance",
    "is_default",
)


def _require_positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer amount in cents", {"field": field})
    if value <= 0:
        raise ValidationError(f"{field} must be positive", {"field": field, "value": value})
    return value


# =============================================================================
# LOCKED HELPERS (no commit)
# =============================================================================

def get_account_locked(company_id: int, account_id: int) -> FinancialAccount:
    """Load and lock an account, refreshing any stale in-session copy."""
    account = (
        lock_for_update(
            db.session.query(FinancialAccount).filter_by(id=account_id, company_id=company_id)
        )
        .execution_options(populate_existing=True)
        .first()
    )
    if not account:
        raise AccountNotFound("Account not found", {"account_id": account_id})
    return account


def lock_accounts(company_id: int, account_ids) -> dict[int, FinancialAccount]:
    """Lock several accounts in ascending id order to avoid lock-order deadlocks."""
    locked = {}
    for account_id in sorted(set(account_ids)):
        locked[account_id] = get_account_locked(company_id, account_id)
    return locked


def _apply_delta(account: FinancialAccount, delta_cents: int) -> BalanceChange:
    before = account.current_balance_cents
    after = before + delta_cents

    if after < 0 and not account.allow_negative_balance:
        raise InsufficientBalance(
            f"Insufficient balance in account '{account.name}'",
            {
                "account_id": account.id,
                "balance_cents": before,
                "requested_cents": -delta_cents,
            },
        )

    change = BalanceChange(
        company_id=account.company_id,
        account_id=account.id,
        account_name=account.name,
        before_cents=before,
        after_cents=after,
        threshold_cents=account.low_balance_threshold_cents,
    )

    # In-database increment; the attribute is expired by the flush and
    # reloads with the committed value on next access.
    account.current_balance_cents = FinancialAccount.current_balance_cents + delta_cents
    account.updated_at = utcnow()
    db.session.flush()
    return change


def post_transaction_locked(
    account: FinancialAccount,
    *,
    type: str,
    category: str,
    amount_cents: int,
    description: str,
    created_by: str | None,
    tax_cents: int = 0,
    payment_method: str = "other",
    branch_id: int | None = None,
    reference_type: str | None = None,
    reference_id=None,
    notes: str | None = None,
    occurred_at: datetime | None = None,
    is_transfer: bool = False,
    transfer_account_id: int | None = None,
    transfer_direction: str | None = None,
    expense_category_id: int | None = None,
    vendor_id: int | None = None,
) -> tuple[FinancialTransaction, BalanceChange]:
    """
    Write one posting and apply its delta inside the caller's atomic unit.

    The caller must hold the account lock (see get_account_locked).
    Expense postings may name an expense category (its name becomes the
    category text when none is given) and a vendor, whose spend counters
    move with the posting.
    """
    if account.status == "closed":
        raise AccountClosed(
            f"Account '{account.name}' is closed",
            {"account_id": account.id},
        )
    if type not in TRANSACTION_TYPES:
        raise ValidationError(f"Invalid transaction type: {type}", {"type": type})
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {payment_method}",
            {"payment_method": payment_method},
        )
    if (expense_category_id is not None or vendor_id is not None) and type != "expense":
        raise ValidationError(
            "Expense category and vendor apply to expense postings only",
            {"type": type},
        )
    expense_category, vendor = resolve_expense_refs_locked(account.company_id, expense_category_id, vendor_id)
    if not category and expense_category is not None:
        category = expense_category.name
    if not category:
        raise ValidationError("category is required")
    _require_positive_int(amount_cents, "amount_cents")
    if isinstance(tax_cents, bool) or not isinstance(tax_cents, int) or tax_cents < 0:
        raise ValidationError("tax_cents must be a non-negative integer", {"tax_cents": tax_cents})

    total = amount_cents + tax_cents
    delta = total if type == "income" else -total

    change = _apply_delta(account, delta)

    txn = FinancialTransaction(
        company_id=account.company_id,
        branch_id=branch_id if branch_id is not None else account.branch_id,
        account_id=account.id,
        account_name=account.name,
        type=type,
        category=category,
        amount_cents=amount_cents,
        tax_cents=tax_cents,
        total_amount_cents=total,
        payment_method=payment_method,
        is_transfer=is_transfer,
        transfer_account_id=transfer_account_id,
        transfer_direction=transfer_direction,
        expense_category_id=expense_category.id if expense_category is not None else None,
        vendor_id=vendor.id if vendor is not None else None,
        status="completed",
        description=description or "",
        notes=notes,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        created_by=created_by,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(txn)
    db.session.flush()

    if vendor is not None:
        record_vendor_spend_locked(vendor, total)

    return txn, change


def post_transfer_locked(
    from_account: FinancialAccount,
    to_account: FinancialAccount,
    *,
    amount_cents: int,
    description: str,
    created_by: str | None,
    branch_id: int | None = None,
    category: str = CATEGORY_TRANSFER,
    payment_method: str = "other",
    reference_type: str | None = None,
    reference_id=None,
    notes: str | None = None,
) -> tuple[FinancialTransaction, FinancialTransaction, list[BalanceChange]]:
    """
    Write both legs of a transfer inside the caller's atomic unit.

    Source sufficiency is checked before either leg is written.
    """
    if from_account.id == to_account.id:
        raise ValidationError("Cannot transfer to the same account", {"account_id": from_account.id})
    _require_positive_int(amount_cents, "amount_cents")

    for account in (from_account, to_account):
        if account.status == "closed":
            raise AccountClosed(f"Account '{account.name}' is closed", {"account_id": account.id})

    if from_account.current_balance_cents - amount_cents < 0 and not from_account.allow_negative_balance:
        raise InsufficientBalance(
            f"Insufficient balance in account '{from_account.name}'",
            {
                "account_id": from_account.id,
                "balance_cents": from_account.current_balance_cents,
                "requested_cents": amount_cents,
            },
        )

    now = utcnow()
    common = dict(
        category=category,
        amount_cents=amount_cents,
        description=description,
        created_by=created_by,
        payment_method=payment_method,
        branch_id=branch_id,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
        occurred_at=now,
        is_transfer=True,
    )

    from_txn, from_change = post_transaction_locked(
        from_account,
        type="expense",
        transfer_account_id=to_account.id,
        transfer_direction="from",
        **common,
    )
    to_txn, to_change = post_transaction_locked(
        to_account,
        type="income",
        transfer_account_id=from_account.id,
        transfer_direction="to",
        **common,
    )

    from_txn.linked_transaction_id = to_txn.id
    to_txn.linked_transaction_id = from_txn.id
    db.session.flush()

    return from_txn, to_txn, [from_change, to_change]


def _clear_other_defaults(account: FinancialAccount) -> None:
    query = db.session.query(FinancialAccount).filter(
        FinancialAccount.company_id == account.company_id,
        FinancialAccount.type == account.type,
        FinancialAccount.id != account.id,
        FinancialAccount.is_default.is_(True),
    )
    if account.branch_id is None:
        query = query.filter(FinancialAccount.branch_id.is_(None))
    else:
        query = query.filter(FinancialAccount.branch_id == account.branch_id)
    for other in query.all():
        other.is_default = False


def create_account_locked(
    *,
    company_id: int,
    name: str,
    type: str,
    created_by: str | None,
    branch_id: int | None = None,
    opening_balance_cents: int = 0,
    opening_date: datetime | None = None,
    allow_negative_balance: bool = False,
    low_balance_threshold_cents: int | None = None,
    is_default: bool = False,
    notes: str | None = None,
    system_code: str | None = None,
) -> tuple[FinancialAccount, list[BalanceChange]]:
    """Create an account (and its opening posting) inside the caller's unit."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Account name is required")
    if type not in ACCOUNT_TYPES:
        raise ValidationError(f"Invalid account type: {type}", {"type": type, "allowed": list(ACCOUNT_TYPES)})
    if isinstance(opening_balance_cents, bool) or not isinstance(opening_balance_cents, int):
        raise ValidationError("opening_balance_cents must be an integer amount in cents")

    company = db.session.get(Company, company_id)
    if not company:
        raise ValidationError("Company not found", {"company_id": company_id})
    if branch_id is not None:
        branch = db.session.get(Branch, branch_id)
        if not branch or branch.company_id != company_id:
            raise ValidationError("Branch not found for company", {"branch_id": branch_id})

    account = FinancialAccount(
        company_id=company_id,
        branch_id=branch_id,
        name=name,
        type=type,
        opening_balance_cents=opening_balance_cents,
        opening_date=opening_date or utcnow(),
        current_balance_cents=0,
        allow_negative_balance=bool(allow_negative_balance),
        low_balance_threshold_cents=low_balance_threshold_cents,
        is_default=bool(is_default),
        status="active",
        system_code=system_code,
        notes=notes,
        created_by=created_by,
        updated_by=created_by,
    )
    db.session.add(account)
    db.session.flush()

    if account.is_default:
        _clear_other_defaults(account)

    changes = []
    if opening_balance_cents != 0:
        # The account starts at zero; the opening posting brings it to the
        # declared opening balance so the audit trail explains every cent.
        _, change = post_transaction_locked(
            account,
            type="income" if opening_balance_cents > 0 else "expense",
            category=CATEGORY_OPENING_BALANCE,
            amount_cents=abs(opening_balance_cents),
            description=f"Opening balance for {name}",
            created_by=created_by,
            reference_type="account",
            reference_id=account.id,
            occurred_at=account.opening_date,
        )
        changes.append(change)

    return account, changes


# =============================================================================
# PUBLIC OPERATIONS
# =============================================================================

def create_account(
    *,
    company_id: int,
    name: str,
    type: str,
    created_by: str | None,
    branch_id: int | None = None,
    opening_balance_cents: int = 0,
    opening_date: datetime | None = None,
    allow_negative_balance: bool = False,
    low_balance_threshold_cents: int | None = None,
    is_default: bool = False,
    notes: str | None = None,
) -> FinancialAccount:
    """
    Create a financial account.

    A non-zero opening balance is recorded as an "opening_balance" posting in
    the same atomic unit, so current balance == opening balance afterwards.
    """
    def _op():
        account, changes = create_account_locked(
            company_id=company_id,
            name=name,
            type=type,
            created_by=created_by,
            branch_id=branch_id,
            opening_balance_cents=opening_balance_cents,
            opening_date=opening_date,
            allow_negative_balance=allow_negative_balance,
            low_balance_threshold_cents=low_balance_threshold_cents,
            is_default=is_default,
            notes=notes,
        )
        db.session.commit()
        return account, changes

    account, changes = run_with_retry(_op)
    current_app.logger.info("Created account %s (%s, %s)", account.id, account.name, account.type)
    notify_low_balance(changes)
    return account


def post_transaction(
    *,
    company_id: int,
    account_id: int,
    type: str,
    category: str,
    amount_cents: int,
    description: str,
    created_by: str | None,
    tax_cents: int = 0,
    payment_method: str = "other",
    branch_id: int | None = None,
    reference_type: str | None = None,
    reference_id=None,
    notes: str | None = None,
    occurred_at: datetime | None = None,
    expense_category_id: int | None = None,
    vendor_id: int | None = None,
) -> FinancialTransaction:
    """
    Record an income or expense against one account.

    Transfers are refused here; use post_transfer so both legs exist.
    """
    if type == "transfer":
        raise ValidationError("Use post_transfer for transfers", {"type": type})

    def _op():
        account = get_account_locked(company_id, account_id)
        txn, change = post_transaction_locked(
            account,
            type=type,
            category=category,
            amount_cents=amount_cents,
            description=description,
            created_by=created_by,
            tax_cents=tax_cents,
            payment_method=payment_method,
            branch_id=branch_id,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            occurred_at=occurred_at,
            expense_category_id=expense_category_id,
            vendor_id=vendor_id,
        )
        db.session.commit()
        return txn, change

    txn, change = run_with_retry(_op)
    notify_low_balance([change])
    return txn


def post_transfer(
    *,
    company_id: int,
    from_account_id: int,
    to_account_id: int,
    amount_cents: int,
    description: str,
    created_by: str | None,
    branch_id: int | None = None,
    notes: str | None = None,
) -> tuple[FinancialTransaction, FinancialTransaction]:
    """Move money between two accounts. Returns (from_leg, to_leg)."""
    if from_account_id == to_account_id:
        raise ValidationError("Cannot transfer to the same account", {"account_id": from_account_id})
    _require_positive_int(amount_cents, "amount_cents")

    def _op():
        locked = lock_accounts(company_id, [from_account_id, to_account_id])
        from_txn, to_txn, changes = post_transfer_locked(
            locked[from_account_id],
            locked[to_account_id],
            amount_cents=amount_cents,
            description=description,
            created_by=created_by,
            branch_id=branch_id,
            notes=notes,
        )
        db.session.commit()
        return from_txn, to_txn, changes

    from_txn, to_txn, changes = run_with_retry(_op)
    notify_low_balance(changes)
    return from_txn, to_txn


def close_account(*, company_id: int, account_id: int, closed_by: str | None) -> FinancialAccount:
    """
    Close an account permanently.

    Refused while the balance is non-zero or when no other active account of
    the same type would remain in the company. System accounts (over/short)
    do not count as the remaining account.
    """
    def _op():
        account = get_account_locked(company_id, account_id)
        if account.status == "closed":
            raise AccountClosed("Account is already closed", {"account_id": account.id})

        if account.current_balance_cents != 0:
            raise NonZeroBalance(
                "Cannot close an account with a non-zero balance",
                {"account_id": account.id, "balance_cents": account.current_balance_cents},
            )

        others = (
            db.session.query(func.count(FinancialAccount.id))
            .filter(
                FinancialAccount.company_id == company_id,
                FinancialAccount.type == account.type,
                FinancialAccount.status == "active",
                FinancialAccount.id != account.id,
                FinancialAccount.system_code.is_(None),
            )
            .scalar()
        )
        if not others:
            raise LastAccountOfType(
                f"Cannot close the only active {account.type} account",
                {"account_id": account.id, "type": account.type},
            )

        account.status = "closed"
        account.is_default = False
        account.closed_at = utcnow()
        account.closed_by = closed_by
        account.updated_by = closed_by
        db.session.commit()
        return account

    account = run_with_retry(_op)
    current_app.logger.info("Closed account %s by %s", account.id, closed_by)
    return account


# =============================================================================
# QUERIES AND MAINTENANCE
# =============================================================================

def get_account(company_id: int, account_id: int) -> FinancialAccount:
    account = db.session.query(FinancialAccount).filter_by(id=account_id, company_id=company_id).first()
    if not account:
        raise AccountNotFound("Account not found", {"account_id": account_id})
    return account


def list_accounts(
    company_id: int,
    *,
    branch_id: int | None = None,
    type: str | None = None,
    status: str | None = None,
) -> list[FinancialAccount]:
    """List accounts sorted by name. A branch filter also returns company-wide accounts."""
    query = db.session.query(FinancialAccount).filter(FinancialAccount.company_id == company_id)
    if branch_id is not None:
        query = query.filter(
            or_(FinancialAccount.branch_id == branch_id, FinancialAccount.branch_id.is_(None))
        )
    if type:
        query = query.filter(FinancialAccount.type == type)
    if status:
        query = query.filter(FinancialAccount.status == status)
    return query.order_by(FinancialAccount.name, FinancialAccount.id).all()


def get_default_account(company_id: int, branch_id: int | None, account_type: str) -> FinancialAccount | None:
    """
    Resolve the account a payment method settles into.

    Preference: the branch's is_default account of the type, then a
    company-wide default, then the oldest active account of the type in the
    branch.
    """
    base = db.session.query(FinancialAccount).filter(
        FinancialAccount.company_id == company_id,
        FinancialAccount.type == account_type,
        FinancialAccount.status == "active",
    )
    candidates = []
    if branch_id is not None:
        candidates.append(base.filter(FinancialAccount.branch_id == branch_id, FinancialAccount.is_default.is_(True)))
    candidates.append(base.filter(FinancialAccount.branch_id.is_(None), FinancialAccount.is_default.is_(True)))
    if branch_id is not None:
        candidates.append(base.filter(
            FinancialAccount.branch_id == branch_id,
            FinancialAccount.system_code.is_(None),
        ))

    for query in candidates:
        account = query.order_by(FinancialAccount.id).first()
        if account:
            return account
    return None


def update_account(*, company_id: int, account_id: int, updated_by: str | None, **changes) -> FinancialAccount:
    """Update descriptive fields and flags. Balances cannot be edited."""
    unknown = sorted(set(changes) - set(UPDATABLE_ACCOUNT_FIELDS))
    if unknown:
        raise ValidationError("Fields cannot be updated", {"fields": unknown})

    def _op():
        account = get_account_locked(company_id, account_id)
        if account.status == "closed":
            raise AccountClosed("Cannot update a closed account", {"account_id": account.id})

        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name:
                raise ValidationError("Account name is required")
            account.name = name
        if "notes" in changes:
            account.notes = changes["notes"]
        if "low_balance_threshold_cents" in changes:
            account.low_balance_threshold_cents = changes["low_balance_threshold_cents"]
        if "allow_negative_balance" in changes:
            allow = bool(changes["allow_negative_balance"])
            if not allow and account.current_balance_cents < 0:
                raise ValidationError(
                    "Account balance is negative",
                    {"balance_cents": account.current_balance_cents},
                )
            account.allow_negative_balance = allow
        if "is_default" in changes:
            account.is_default = bool(changes["is_default"])
            if account.is_default:
                _clear_other_defaults(account)

        account.updated_by = updated_by
        db.session.commit()
        return account

    return run_with_retry(_op)


def set_account_status(*, company_id: int, account_id: int, status: str, updated_by: str | None) -> FinancialAccount:
    """Toggle active/inactive. Closing goes through close_account."""
    if status not in ("active", "inactive"):
        raise ValidationError("Status must be 'active' or 'inactive'", {"status": status})

    def _op():
        account = get_account_locked(company_id, account_id)
        if account.status == "closed":
            raise AccountClosed("Closed accounts cannot be reactivated", {"account_id": account.id})
        account.status = status
        account.updated_by = updated_by
        db.session.commit()
        return account

    return run_with_retry(_op)


def list_transactions(
    company_id: int,
    *,
    account_id: int | None = None,
    branch_id: int | None = None,
    type: str | None = None,
    category: str | None = None,
    reference_type: str | None = None,
    reference_id=None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 50,
    before_id: int | None = None,
) -> list[FinancialTransaction]:
    """Newest first. Pass the last id of a page as before_id to get the next one."""
    query = db.session.query(FinancialTransaction).filter(FinancialTransaction.company_id == company_id)
    if account_id is not None:
        query = query.filter(FinancialTransaction.account_id == account_id)
    if branch_id is not None:
        query = query.filter(FinancialTransaction.branch_id == branch_id)
    if type:
        query = query.filter(FinancialTransaction.type == type)
    if category:
        query = query.filter(FinancialTransaction.category == category)
    if reference_type:
        query = query.filter(FinancialTransaction.reference_type == reference_type)
    if reference_id is not None:
        query = query.filter(FinancialTransaction.reference_id == str(reference_id))
    if start:
        query = query.filter(FinancialTransaction.occurred_at >= start)
    if end:
        query = query.filter(FinancialTransaction.occurred_at < end)
    if before_id:
        query = query.filter(FinancialTransaction.id < before_id)

    limit = max(1, min(int(limit), 500))
    return query.order_by(FinancialTransaction.id.desc()).limit(limit).all()


def get_account_summary(
    company_id: int,
    account_id: int,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    """Income, expense and net for an account over [start, end)."""
    account = get_account(company_id, account_id)

    query = db.session.query(
        FinancialTransaction.type,
        func.coalesce(func.sum(FinancialTransaction.total_amount_cents), 0),
        func.count(FinancialTransaction.id),
    ).filter(
        FinancialTransaction.account_id == account.id,
        FinancialTransaction.status == "completed",
    )
    if start:
        query = query.filter(FinancialTransaction.occurred_at >= start)
    if end:
        query = query.filter(FinancialTransaction.occurred_at < end)

    totals = {"income": (0, 0), "expense": (0, 0)}
    for txn_type, total, count in query.group_by(FinancialTransaction.type).all():
        totals[txn_type] = (int(total), int(count))

    last = (
        db.session.query(FinancialTransaction)
        .filter_by(account_id=account.id)
        .order_by(FinancialTransaction.id.desc())
        .first()
    )

    income_cents, income_count = totals["income"]
    expense_cents, expense_count = totals["expense"]
    return {
        "account": account.to_dict(),
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "income_cents": income_cents,
        "expense_cents": expense_cents,
        "net_cents": income_cents - expense_cents,
        "income_count": income_count,
        "expense_count": expense_count,
        "transaction_count": income_count + expense_count,
        "current_balance_cents": account.current_balance_cents,
        "last_transaction": last.to_dict() if last else None,
    }
