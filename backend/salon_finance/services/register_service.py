"""
Cash Register Session Service

WHY: Cashier accountability. A session is the period a drawer (and the
card/bank/wallet accounts that settle alongside it) is open for business.
It tracks what each account should hold and reconciles that against the
amounts counted at close.

DESIGN PRINCIPLES:
- One live (open or suspended) session per (branch, register)
- Every ledger posting made through a session updates the session's
  expected balance for that account by the same amount
- Closing posts one over/short transfer per account with a discrepancy,
  sized so the ledger ends at exactly the counted amount
- Sessions are immutable once closed
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Branch,
    CashMovement,
    CashRegisterSession,
    FinancialAccount,
    FinancialTransaction,
    Sale,
    SessionAccountMovement,
)
from salon_finance.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .errors import (
    InvalidStateError,
    MovementNotFound,
    SessionAlreadyOpen,
    SessionNotFound,
    SessionNotOpen,
    ValidationError,
)
from .expense_service import get_vendor_locked, record_vendor_spend_locked
from .ledger_service import (
    create_account_locked,
    get_account_locked,
    lock_accounts,
    post_transaction_locked,
    post_transfer_locked,
)
from .notification_service import notify_low_balance


# =============================================================================
# CONSTANTS
# =============================================================================

LIVE_STATUSES = ("open", "suspended")

# Roles whose accounts are tracked and counted at close
TRACKED_ROLES = ("cash", "card", "bank", "digital_wallet")
MAPPING_ROLES = TRACKED_ROLES + ("over_short",)

ROLE_PAYMENT_METHODS = {
    "cash": "cash",
    "card": "card",
    "bank": "bank_transfer",
    "digital_wallet": "digital_wallet",
}

MOVEMENT_TYPES = ("deposit", "withdrawal", "transfer", "expense")
# Which ends each movement type needs: (from, to)
MOVEMENT_ENDS = {
    "deposit": (False, True),
    "withdrawal": (True, False),
    "expense": (True, False),
    "transfer": (True, True),
}
MOVEMENT_CATEGORIES = {
    "deposit": "cash_deposit",
    "withdrawal": "cash_withdrawal",
    "expense": "cash_expense",
    "transfer": "transfer",
}

CATEGORY_OPENING_COUNT = "cash_count_opening"
CATEGORY_OVER_SHORT = "cash_over_short"
CATEGORY_MOVEMENT_VOID = "cash_movement_void"

OVER_SHORT_SYSTEM_CODE = "over_short"
OVER_SHORT_ACCOUNT_NAME = "Cash Over/Short"


def _tolerance() -> int:
    return int(current_app.config.get("RECONCILIATION_TOLERANCE_CENTS", 0))


def _non_negative_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer amount in cents", {"field": field})
    if value < 0:
        raise ValidationError(f"{field} cannot be negative", {"field": field, "value": value})
    return value


def _optional_id(value, field: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer id", {"field": field, "value": value})
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer id", {"field": field, "value": value}) from exc


def _get_session_locked(company_id: int, session_id: int) -> CashRegisterSession:
    session = (
        lock_for_update(
            db.session.query(CashRegisterSession).filter_by(id=session_id, company_id=company_id)
        )
        .execution_options(populate_existing=True)
        .first()
    )
    if not session:
        raise SessionNotFound("Register session not found", {"session_id": session_id})
    return session


def _require_open(session: CashRegisterSession) -> None:
    if session.status != "open":
        raise SessionNotOpen(
            f"Register session is {session.status}",
            {"session_id": session.id, "status": session.status},
        )


def _tracked_movement(session: CashRegisterSession, account_id: int | None) -> SessionAccountMovement | None:
    if account_id is None:
        return None
    for movement in session.account_movements:
        if movement.account_id == account_id:
            return movement
    return None


def _adjust_expected(movement: SessionAccountMovement | None, delta_cents: int, *, from_sales: bool = False) -> None:
    if movement is None:
        return
    if from_sales:
        movement.transaction_total_cents += delta_cents
    else:
        movement.adjustments_cents += delta_cents
    movement.expected_balance_cents += delta_cents


# =============================================================================
# OPEN
# =============================================================================

def open_session(
    *,
    company_id: int,
    branch_id: int,
    register_id: str,
    account_mappings: dict,
    opening_amounts: dict | None,
    opened_by: str,
    notes: str | None = None,
) -> CashRegisterSession:
    """
    Open a register session.

    account_mappings maps a role (cash, card, bank, digital_wallet,
    over_short) to an account id; cash is required. opening_amounts maps a
    role to the counted amount in cents. Each role with a positive amount
    gets a "cash_count_opening" income posting, and every tracked account is
    seeded with expected = ledger balance + opening amount.
    """
    register_id = str(register_id or "").strip()
    if not register_id:
        raise ValidationError("register_id is required")
    if not opened_by:
        raise ValidationError("opened_by is required")

    mappings = {
        role: _optional_id(acc_id, f"account_mappings.{role}")
        for role, acc_id in (account_mappings or {}).items()
        if acc_id is not None
    }
    unknown_roles = sorted(set(mappings) - set(MAPPING_ROLES))
    if unknown_roles:
        raise ValidationError("Unknown account roles", {"roles": unknown_roles})
    if not mappings.get("cash"):
        raise ValidationError("A cash account mapping is required")

    tracked = [(role, mappings[role]) for role in TRACKED_ROLES if role in mappings]
    tracked_ids = [acc_id for _, acc_id in tracked]
    if len(set(tracked_ids)) != len(tracked_ids):
        raise ValidationError("An account can only play one role in a session", {"account_mappings": mappings})
    if mappings.get("over_short") in tracked_ids:
        raise ValidationError("The over/short account cannot also be a tracked account")

    amounts = {}
    for role, amount in (opening_amounts or {}).items():
        if role not in TRACKED_ROLES:
            raise ValidationError("Unknown opening amount role", {"role": role})
        if role not in mappings and amount:
            raise ValidationError(f"No account mapped for role '{role}'", {"role": role})
        amounts[role] = _non_negative_int(amount or 0, f"opening_amounts.{role}")

    def _op():
        branch = db.session.get(Branch, branch_id)
        if not branch or branch.company_id != company_id:
            raise ValidationError("Branch not found for company", {"branch_id": branch_id})

        existing = db.session.query(CashRegisterSession).filter(
            CashRegisterSession.branch_id == branch_id,
            CashRegisterSession.register_id == register_id,
            CashRegisterSession.status.in_(LIVE_STATUSES),
        ).first()
        if existing:
            raise SessionAlreadyOpen(
                f"Register {register_id} already has a {existing.status} session",
                {"session_id": existing.id, "register_id": register_id},
            )

        locked = lock_accounts(company_id, mappings.values())
        for account in locked.values():
            if account.status != "active":
                raise ValidationError(
                    f"Account '{account.name}' is {account.status}",
                    {"account_id": account.id, "status": account.status},
                )

        now = utcnow()
        session = CashRegisterSession(
            company_id=company_id,
            branch_id=branch_id,
            register_id=register_id,
            status="open",
            reconciled=False,
            cash_account_id=mappings["cash"],
            card_account_id=mappings.get("card"),
            bank_account_id=mappings.get("bank"),
            digital_wallet_account_id=mappings.get("digital_wallet"),
            over_short_account_id=mappings.get("over_short"),
            opened_by=opened_by,
            opened_at=now,
            notes=notes,
        )
        db.session.add(session)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise SessionAlreadyOpen(
                f"Register {register_id} already has a live session",
                {"register_id": register_id},
            ) from exc

        changes = []
        for role, account_id in tracked:
            account = locked[account_id]
            ledger_before = account.current_balance_cents
            amount = amounts.get(role, 0)

            db.session.add(SessionAccountMovement(
                session=session,
                account_id=account.id,
                role=role,
                account_name=account.name,
                account_type=account.type,
                opening_balance_cents=ledger_before,
                transaction_total_cents=0,
                adjustments_cents=amount,
                expected_balance_cents=ledger_before + amount,
            ))

            if amount > 0:
                txn, change = post_transaction_locked(
                    account,
                    type="income",
                    category=CATEGORY_OPENING_COUNT,
                    amount_cents=amount,
                    description=f"Opening count for register {register_id}",
                    created_by=opened_by,
                    payment_method=ROLE_PAYMENT_METHODS[role],
                    branch_id=branch_id,
                    reference_type="register_session",
                    reference_id=session.id,
                    occurred_at=now,
                )
                changes.append(change)
                db.session.add(CashMovement(
                    session=session,
                    type="opening_count",
                    amount_cents=amount,
                    to_account_id=account.id,
                    payment_method=ROLE_PAYMENT_METHODS[role],
                    description=f"Opening count ({role})",
                    transaction_id=txn.id,
                    performed_by=opened_by,
                    occurred_at=now,
                ))

        db.session.commit()
        return session, changes

    session, changes = run_with_retry(_op)
    current_app.logger.info(
        "Opened register session %s on %s (branch %s) by %s",
        session.id, register_id, branch_id, opened_by,
    )
    notify_low_balance(changes)
    return session


# =============================================================================
# MOVEMENTS
# =============================================================================

def record_movement(
    *,
    company_id: int,
    session_id: int,
    movement: dict,
    performed_by: str,
) -> CashMovement:
    """
    Record a manual money movement during an open session.

    deposit takes only a to account (income), withdrawal and expense take
    only a from account (expense), transfer takes both. The
    session's expected balance for each tracked account moves by the same
    amount as the ledger.
    """
    movement_type = movement.get("type")
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(
            f"Invalid movement type: {movement_type}",
            {"type": movement_type, "allowed": list(MOVEMENT_TYPES)},
        )
    amount = movement.get("amount_cents")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("amount_cents must be a positive integer", {"amount_cents": amount})

    from_account_id = _optional_id(movement.get("from_account_id"), "from_account_id")
    to_account_id = _optional_id(movement.get("to_account_id"), "to_account_id")
    needs_from, needs_to = MOVEMENT_ENDS[movement_type]
    if (from_account_id is not None) != needs_from or (to_account_id is not None) != needs_to:
        ends = " and ".join(name for name, needed in (("from", needs_from), ("to", needs_to)) if needed)
        raise ValidationError(
            f"A {movement_type} needs exactly a {ends} account",
            {"type": movement_type, "from_account_id": from_account_id, "to_account_id": to_account_id},
        )
    if from_account_id is not None and from_account_id == to_account_id:
        raise ValidationError("Cannot move money to the same account")

    expense_category_id = _optional_id(movement.get("expense_category_id"), "expense_category_id")
    vendor_id = _optional_id(movement.get("vendor_id"), "vendor_id")
    if (expense_category_id is not None or vendor_id is not None) and movement_type not in ("expense", "withdrawal"):
        raise ValidationError(
            f"A {movement_type} cannot carry an expense category or vendor",
            {"type": movement_type},
        )

    payment_method = movement.get("payment_method") or "cash"
    description = movement.get("description") or movement_type.replace("_", " ").title()
    category = MOVEMENT_CATEGORIES[movement_type]

    def _op():
        session = _get_session_locked(company_id, session_id)
        _require_open(session)

        ids = [i for i in (from_account_id, to_account_id) if i is not None]
        locked = lock_accounts(company_id, ids)

        changes = []
        transaction_id = None
        linked_transaction_id = None
        if from_account_id is not None and to_account_id is not None:
            from_txn, to_txn, changes = post_transfer_locked(
                locked[from_account_id],
                locked[to_account_id],
                amount_cents=amount,
                description=description,
                created_by=performed_by,
                branch_id=session.branch_id,
                category=category,
                payment_method=payment_method,
                reference_type="register_session",
                reference_id=session.id,
            )
            transaction_id, linked_transaction_id = from_txn.id, to_txn.id
        else:
            account_id = from_account_id if from_account_id is not None else to_account_id
            txn, change = post_transaction_locked(
                locked[account_id],
                type="expense" if from_account_id is not None else "income",
                category=category,
                amount_cents=amount,
                description=description,
                created_by=performed_by,
                payment_method=payment_method,
                branch_id=session.branch_id,
                reference_type="register_session",
                reference_id=session.id,
                expense_category_id=expense_category_id,
                vendor_id=vendor_id,
            )
            changes = [change]
            transaction_id = txn.id

        _adjust_expected(_tracked_movement(session, from_account_id), -amount)
        _adjust_expected(_tracked_movement(session, to_account_id), amount)

        cash_movement = CashMovement(
            session=session,
            type=movement_type,
            amount_cents=amount,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            payment_method=payment_method,
            description=description,
            transaction_id=transaction_id,
            linked_transaction_id=linked_transaction_id,
            performed_by=performed_by,
            occurred_at=utcnow(),
        )
        db.session.add(cash_movement)
        session.updated_at = utcnow()

        db.session.commit()
        return cash_movement, changes

    cash_movement, changes = run_with_retry(_op)
    notify_low_balance(changes)
    return cash_movement


def void_movement(
    *,
    company_id: int,
    session_id: int,
    movement_id: int,
    voided_by: str,
    reason: str,
) -> CashMovement:
    """
    Void a manual movement by posting its reverse.

    The original postings stay in the ledger. The reversal moves the same
    amount back, the session's expected balances return to where they were
    and any vendor spend counted for the movement is taken off again. Only
    movements of an open session can be voided, and only once.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("reason is required")

    def _op():
        session = _get_session_locked(company_id, session_id)
        _require_open(session)

        cash_movement = (
            lock_for_update(
                db.session.query(CashMovement).filter_by(id=movement_id, session_id=session.id)
            )
            .execution_options(populate_existing=True)
            .first()
        )
        if not cash_movement:
            raise MovementNotFound("Movement not found", {"movement_id": movement_id})
        if cash_movement.type not in MOVEMENT_TYPES:
            raise ValidationError(
                f"Only manual movements can be voided, not {cash_movement.type}",
                {"movement_id": cash_movement.id, "type": cash_movement.type},
            )
        if cash_movement.voided_at is not None:
            raise InvalidStateError(
                "Movement is already voided",
                {"movement_id": cash_movement.id, "reversal_transaction_id": cash_movement.reversal_transaction_id},
            )

        from_account_id = cash_movement.from_account_id
        to_account_id = cash_movement.to_account_id
        amount = cash_movement.amount_cents
        description = f"Void: {cash_movement.description or cash_movement.type}"
        payment_method = cash_movement.payment_method or "cash"

        ids = [i for i in (from_account_id, to_account_id) if i is not None]
        locked = lock_accounts(company_id, ids)

        if from_account_id is not None and to_account_id is not None:
            back_txn, _, changes = post_transfer_locked(
                locked[to_account_id],
                locked[from_account_id],
                amount_cents=amount,
                description=description,
                created_by=voided_by,
                branch_id=session.branch_id,
                category=CATEGORY_MOVEMENT_VOID,
                payment_method=payment_method,
                reference_type="cash_movement",
                reference_id=cash_movement.id,
            )
            reversal_id = back_txn.id
        else:
            account_id = from_account_id if from_account_id is not None else to_account_id
            txn, change = post_transaction_locked(
                locked[account_id],
                type="income" if from_account_id is not None else "expense",
                category=CATEGORY_MOVEMENT_VOID,
                amount_cents=amount,
                description=description,
                created_by=voided_by,
                payment_method=payment_method,
                branch_id=session.branch_id,
                reference_type="cash_movement",
                reference_id=cash_movement.id,
            )
            changes = [change]
            reversal_id = txn.id

            original = db.session.get(FinancialTransaction, cash_movement.transaction_id)
            if original is not None and original.vendor_id is not None:
                vendor = get_vendor_locked(company_id, original.vendor_id)
                record_vendor_spend_locked(vendor, -original.total_amount_cents)

        _adjust_expected(_tracked_movement(session, from_account_id), amount)
        _adjust_expected(_tracked_movement(session, to_account_id), -amount)

        now = utcnow()
        cash_movement.reversal_transaction_id = reversal_id
        cash_movement.voided_by = voided_by
        cash_movement.voided_at = now
        cash_movement.void_reason = reason
        session.updated_at = now

        db.session.commit()
        return cash_movement, changes

    cash_movement, changes = run_with_retry(_op)
    current_app.logger.info(
        "Voided %s movement %s on session %s", cash_movement.type, cash_movement.id, session_id
    )
    notify_low_balance(changes)
    return cash_movement


# =============================================================================
# CLOSE
# =============================================================================

def _resolve_over_short_account(session: CashRegisterSession, actor_id: str) -> FinancialAccount:
    """Mapped account, else the branch's system over/short account, else a new one."""
    if session.over_short_account_id:
        return get_account_locked(session.company_id, session.over_short_account_id)

    existing = (
        db.session.query(FinancialAccount)
        .filter(
            FinancialAccount.company_id == session.company_id,
            FinancialAccount.branch_id == session.branch_id,
            FinancialAccount.system_code == OVER_SHORT_SYSTEM_CODE,
            FinancialAccount.status != "closed",
        )
        .order_by(FinancialAccount.id)
        .first()
    )
    if existing:
        account = get_account_locked(session.company_id, existing.id)
    else:
        account, _ = create_account_locked(
            company_id=session.company_id,
            branch_id=session.branch_id,
            name=OVER_SHORT_ACCOUNT_NAME,
            type="cash",
            created_by=actor_id,
            allow_negative_balance=True,
            system_code=OVER_SHORT_SYSTEM_CODE,
            notes="Created automatically for register discrepancies",
        )
        current_app.logger.info(
            "Created over/short account %s for branch %s", account.id, session.branch_id
        )

    session.over_short_account_id = account.id
    return account


def close_session(
    *,
    company_id: int,
    session_id: int,
    actual_balances: dict,
    closed_by: str,
    discrepancy_notes: str | None = None,
) -> dict:
    """
    Close a session against counted balances and return the closing summary.

    actual_balances maps account id to the counted amount in cents and must
    cover every tracked account. For each account whose discrepancy exceeds
    the tolerance, exactly one over/short transfer of |discrepancy| is posted
    so the account's ledger balance lands on the counted amount.
    """
    if not closed_by:
        raise ValidationError("closed_by is required")

    counted = {}
    for key, value in (actual_balances or {}).items():
        try:
            account_id = int(key)
        except (TypeError, ValueError) as exc:
            raise ValidationError("actual_balances keys must be account ids", {"key": key}) from exc
        counted[account_id] = _non_negative_int(value, f"actual_balances.{account_id}")

    tolerance = _tolerance()

    def _op():
        session = _get_session_locked(company_id, session_id)
        _require_open(session)

        movements = list(session.account_movements)
        missing = [m.account_id for m in movements if m.account_id not in counted]
        if missing:
            raise ValidationError("Counted balance missing for tracked accounts", {"account_ids": missing})

        lock_ids = [m.account_id for m in movements]
        if session.over_short_account_id:
            lock_ids.append(session.over_short_account_id)
        locked = lock_accounts(company_id, lock_ids)

        over_short = None
        changes = []
        adjustment_ids = []
        now = utcnow()

        for movement in movements:
            account = locked[movement.account_id]
            actual = counted[movement.account_id]
            discrepancy = actual - movement.expected_balance_cents

            movement.actual_balance_cents = actual
            movement.discrepancy_cents = discrepancy

            if abs(discrepancy) <= tolerance:
                continue

            if over_short is None:
                over_short = _resolve_over_short_account(session, closed_by)

            if discrepancy > 0:
                source, target = over_short, account
                label = "over"
            else:
                source, target = account, over_short
                label = "short"

            from_txn, to_txn, leg_changes = post_transfer_locked(
                source,
                target,
                amount_cents=abs(discrepancy),
                description=f"Register {session.register_id} {label} {abs(discrepancy)} on {account.name}",
                created_by=closed_by,
                branch_id=session.branch_id,
                category=CATEGORY_OVER_SHORT,
                payment_method=ROLE_PAYMENT_METHODS.get(movement.role, "other"),
                reference_type="register_session",
                reference_id=session.id,
                notes=discrepancy_notes,
            )
            changes.extend(leg_changes)

            account_leg = to_txn if discrepancy > 0 else from_txn
            movement.discrepancy_transaction_id = account_leg.id
            adjustment_ids.append(account_leg.id)

            db.session.add(CashMovement(
                session=session,
                type="over_short",
                amount_cents=abs(discrepancy),
                from_account_id=source.id,
                to_account_id=target.id,
                payment_method=ROLE_PAYMENT_METHODS.get(movement.role, "other"),
                description=f"Automatic {label} adjustment",
                transaction_id=from_txn.id,
                linked_transaction_id=to_txn.id,
                performed_by=closed_by,
                occurred_at=now,
            ))

        total_expected = sum(m.expected_balance_cents for m in movements)
        total_actual = sum(m.actual_balance_cents for m in movements)
        has_discrepancies = bool(adjustment_ids)

        session.status = "closed"
        session.reconciled = not has_discrepancies
        session.closed_by = closed_by
        session.closed_at = now
        session.total_expected_cents = total_expected
        session.total_actual_cents = total_actual
        session.total_discrepancy_cents = total_actual - total_expected
        session.discrepancy_notes = discrepancy_notes

        db.session.commit()
        return session, changes, adjustment_ids

    session, changes, adjustment_ids = run_with_retry(_op)

    if adjustment_ids:
        current_app.logger.warning(
            "Register session %s closed with discrepancy %s cents",
            session.id, session.total_discrepancy_cents,
        )
    else:
        current_app.logger.info("Register session %s closed and reconciled", session.id)

    notify_low_balance(changes)
    return build_closing_summary(session, adjustment_ids)


def build_closing_summary(session: CashRegisterSession, adjustment_ids: list[int] | None = None) -> dict:
    accounts = [m.to_dict() for m in session.account_movements]
    if adjustment_ids is None:
        adjustment_ids = [m.discrepancy_transaction_id for m in session.account_movements if m.discrepancy_transaction_id]
    return {
        "session_id": session.id,
        "register_id": session.register_id,
        "status": session.status,
        "reconciled": session.reconciled,
        "total_expected_cents": session.total_expected_cents,
        "total_actual_cents": session.total_actual_cents,
        "total_discrepancy_cents": session.total_discrepancy_cents,
        "has_discrepancies": bool(adjustment_ids),
        "adjustment_transaction_ids": adjustment_ids,
        "accounts": accounts,
        "movements": [m.to_dict() for m in session.cash_movements],
    }


# =============================================================================
# SUSPEND / RESUME
# =============================================================================

def suspend_session(*, company_id: int, session_id: int, actor_id: str, reason: str | None = None) -> CashRegisterSession:
    """Pause an open session. A suspended session still blocks a new one on the register."""
    def _op():
        session = _get_session_locked(company_id, session_id)
        _require_open(session)
        session.status = "suspended"
        session.suspended_at = utcnow()
        session.suspend_reason = reason
        db.session.commit()
        return session

    session = run_with_retry(_op)
    current_app.logger.info("Register session %s suspended by %s", session.id, actor_id)
    return session


def resume_session(*, company_id: int, session_id: int, actor_id: str) -> CashRegisterSession:
    def _op():
        session = _get_session_locked(company_id, session_id)
        if session.status != "suspended":
            raise InvalidStateError(
                "Only suspended sessions can be resumed",
                {"session_id": session.id, "status": session.status},
            )
        session.status = "open"
        session.suspended_at = None
        session.suspend_reason = None
        db.session.commit()
        return session

    session = run_with_retry(_op)
    current_app.logger.info("Register session %s resumed by %s", session.id, actor_id)
    return session


# =============================================================================
# QUERIES
# =============================================================================

def get_session(company_id: int, session_id: int) -> CashRegisterSession:
    session = db.session.query(CashRegisterSession).filter_by(id=session_id, company_id=company_id).first()
    if not session:
        raise SessionNotFound("Register session not found", {"session_id": session_id})
    return session


def get_open_session(company_id: int, branch_id: int, register_id: str) -> CashRegisterSession | None:
    """The live (open or suspended) session for a register, if any."""
    return db.session.query(CashRegisterSession).filter(
        CashRegisterSession.company_id == company_id,
        CashRegisterSession.branch_id == branch_id,
        CashRegisterSession.register_id == str(register_id),
        CashRegisterSession.status.in_(LIVE_STATUSES),
    ).first()


def get_active_session_for_staff(
    company_id: int,
    staff_id: str,
    branch_id: int | None = None,
) -> CashRegisterSession | None:
    """Most recently opened session this staff member has open."""
    query = db.session.query(CashRegisterSession).filter(
        CashRegisterSession.company_id == company_id,
        CashRegisterSession.opened_by == staff_id,
        CashRegisterSession.status == "open",
    )
    if branch_id is not None:
        query = query.filter(CashRegisterSession.branch_id == branch_id)
    return query.order_by(CashRegisterSession.opened_at.desc(), CashRegisterSession.id.desc()).first()


def list_sessions(
    company_id: int,
    *,
    branch_id: int | None = None,
    register_id: str | None = None,
    status: str | None = None,
    opened_by: str | None = None,
    limit: int = 50,
    before_id: int | None = None,
) -> list[CashRegisterSession]:
    query = db.session.query(CashRegisterSession).filter(CashRegisterSession.company_id == company_id)
    if branch_id is not None:
        query = query.filter(CashRegisterSession.branch_id == branch_id)
    if register_id:
        query = query.filter(CashRegisterSession.register_id == str(register_id))
    if status:
        query = query.filter(CashRegisterSession.status == status)
    if opened_by:
        query = query.filter(CashRegisterSession.opened_by == opened_by)
    if before_id:
        query = query.filter(CashRegisterSession.id < before_id)
    limit = max(1, min(int(limit), 500))
    return query.order_by(CashRegisterSession.id.desc()).limit(limit).all()


# =============================================================================
# SALE LOGGING (called after a sale commits)
# =============================================================================

def log_sale_to_session(*, company_id: int, session_id: int, sale_id: int, actor_id: str) -> CashRegisterSession:
    """
    Attribute a completed sale's posted payments to an open session.

    Expected balances of tracked accounts move by the posted amounts so the
    session keeps mirroring the ledger.
    """
    def _op():
        session = _get_session_locked(company_id, session_id)
        _require_open(session)

        sale = db.session.query(Sale).filter_by(id=sale_id, company_id=company_id).first()
        if not sale or sale.status != "completed":
            raise ValidationError("Only completed sales can be logged to a session", {"sale_id": sale_id})
        if sale.register_session_id is not None:
            return session

        now = utcnow()
        for payment in sale.payments:
            if not payment.transaction_id or not payment.posted_amount_cents:
                continue
            _adjust_expected(
                _tracked_movement(session, payment.account_id),
                payment.posted_amount_cents,
                from_sales=True,
            )
            db.session.add(CashMovement(
                session=session,
                type="sale",
                amount_cents=payment.posted_amount_cents,
                to_account_id=payment.account_id,
                payment_method=payment.method,
                description=f"Sale {sale.sale_number}",
                transaction_id=payment.transaction_id,
                sale_id=sale.id,
                performed_by=actor_id,
                occurred_at=now,
            ))

        session.transaction_count += 1
        session.updated_at = now
        sale.register_session_id = session.id
        db.session.commit()
        return session

    return run_with_retry(_op)


def log_sale_void_to_session(*, company_id: int, sale_id: int, actor_id: str) -> CashRegisterSession | None:
    """Reverse a voided sale inside its session, if that session is still open."""
    def _op():
        sale = db.session.query(Sale).filter_by(id=sale_id, company_id=company_id).first()
        if not sale or sale.register_session_id is None:
            return None

        session = _get_session_locked(company_id, sale.register_session_id)
        if session.status != "open":
            return None

        now = utcnow()
        for payment in sale.payments:
            if not payment.reversal_transaction_id or not payment.posted_amount_cents:
                continue
            _adjust_expected(
                _tracked_movement(session, payment.account_id),
                -payment.posted_amount_cents,
                from_sales=True,
            )
            db.session.add(CashMovement(
                session=session,
                type="sale_void",
                amount_cents=payment.posted_amount_cents,
                from_account_id=payment.account_id,
                payment_method=payment.method,
                description=f"Void sale {sale.sale_number}",
                transaction_id=payment.reversal_transaction_id,
                linked_transaction_id=payment.transaction_id,
                sale_id=sale.id,
                performed_by=actor_id,
                occurred_at=now,
            ))

        session.updated_at = now
        db.session.commit()
        return session

    return run_with_retry(_op)
