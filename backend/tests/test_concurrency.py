# Overview: Pytest coverage for retry and optimistic locking on account balances.

"""
Concurrency Tests

Verifies:
- A balance write against a row another writer already changed is detected
  through the account version and retried on a fresh read
- The retried posting re-validates the balance, so the later writer cannot
  overdraw the account
- Non-conflict errors are not retried
"""

import pytest
from sqlalchemy import event, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from salon_finance import create_app
from salon_finance.extensions import db
from salon_finance.models import Branch, Company, FinancialAccount, FinancialTransaction
from salon_finance.services import ledger_service
from salon_finance.services.concurrency import run_with_retry
from salon_finance.services.errors import InsufficientBalance, ValidationError


@pytest.fixture
def file_app(tmp_path):
    """App on a file database so a second connection can commit in between."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'finance.db'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RETRY_ATTEMPTS': 3,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def drawer(file_app):
    company = Company(name="Glow Salon", code="GLOW", currency="EGP", is_active=True)
    db.session.add(company)
    db.session.commit()
    branch = Branch(company_id=company.id, name="Downtown", code="DT", tax_rate_bps=0)
    db.session.add(branch)
    db.session.commit()
    return ledger_service.create_account(
        company_id=company.id,
        branch_id=branch.id,
        name="Front Desk Cash",
        type="cash",
        created_by="owner",
        opening_balance_cents=1000,
    )


def _rival_expense_before_first_flush(account_id: int, amount_cents: int):
    """
    Commit a competing balance change on its own connection right before the
    session's first flush, i.e. after the posting has read the balance.
    """
    session = db.session()
    fired = []

    def _before_flush(sess, flush_context, instances):
        if fired:
            return
        fired.append(True)
        table = FinancialAccount.__table__
        with db.engine.begin() as conn:
            conn.execute(
                update(table)
                .where(table.c.id == account_id)
                .values(
                    current_balance_cents=table.c.current_balance_cents - amount_cents,
                    version_id=table.c.version_id + 1,
                )
            )

    event.listen(session, "before_flush", _before_flush)
    return session, _before_flush, fired


# =============================================================================
# OPTIMISTIC LOCKING
# =============================================================================


class TestBalanceRaces:

    def test_stale_balance_write_is_retried(self, file_app, drawer):
        session, listener, fired = _rival_expense_before_first_flush(drawer.id, 300)
        try:
            txn = ledger_service.post_transaction(
                company_id=drawer.company_id,
                account_id=drawer.id,
                type="expense",
                category="supplies",
                amount_cents=200,
                description="Foils",
                created_by="cashier-1",
            )
        finally:
            event.remove(session, "before_flush", listener)

        assert fired == [True]
        account = ledger_service.get_account(drawer.company_id, drawer.id)
        # 1000 opening, 300 taken by the other writer, 200 by the retried posting
        assert account.current_balance_cents == 500
        assert db.session.query(FinancialTransaction).filter_by(
            account_id=drawer.id, category="supplies"
        ).all() == [txn]

    def test_loser_cannot_overdraw_after_retry(self, file_app, drawer):
        session, listener, fired = _rival_expense_before_first_flush(drawer.id, 900)
        try:
            with pytest.raises(InsufficientBalance):
                ledger_service.post_transaction(
                    company_id=drawer.company_id,
                    account_id=drawer.id,
                    type="expense",
                    category="supplies",
                    amount_cents=200,
                    description="Foils",
                    created_by="cashier-2",
                )
        finally:
            event.remove(session, "before_flush", listener)

        assert fired == [True]
        account = ledger_service.get_account(drawer.company_id, drawer.id)
        assert account.current_balance_cents == 100
        assert db.session.query(FinancialTransaction).filter_by(
            account_id=drawer.id, category="supplies"
        ).count() == 0


# =============================================================================
# RETRY HELPER
# =============================================================================


class TestRunWithRetry:

    def test_conflicts_are_retried_until_success(self, file_app):
        calls = []

        def _op():
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("version mismatch")
            if len(calls) == 2:
                raise OperationalError("UPDATE", {}, Exception("database is locked"))
            return "done"

        assert run_with_retry(_op, attempts=3, backoff_base=0) == "done"
        assert len(calls) == 3

    def test_conflict_reraised_when_attempts_run_out(self, file_app):
        calls = []

        def _op():
            calls.append(1)
            raise StaleDataError("version mismatch")

        with pytest.raises(StaleDataError):
            run_with_retry(_op, attempts=2, backoff_base=0)
        assert len(calls) == 2

    def test_business_errors_are_not_retried(self, file_app):
        calls = []

        def _op():
            calls.append(1)
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            run_with_retry(_op, attempts=3, backoff_base=0)
        assert len(calls) == 1
