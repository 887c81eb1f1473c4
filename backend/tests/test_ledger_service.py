# Overview: Pytest coverage for the account ledger (accounts, postings, transfers, closing).

"""
Account Ledger Tests

Verifies:
- Opening balances are explained by an opening_balance posting
- Postings move the running balance by exactly amount + tax
- Negative balances are refused unless the account allows them
- Transfers write two linked legs or nothing at all
- Closing guards (non-zero balance, last account of a type)
- Low-balance alerts fire once when the threshold is crossed
"""

import pytest

from salon_finance.models import BalanceAlert, FinancialTransaction
from salon_finance.services import ledger_service, register_service
from salon_finance.services.errors import (
    AccountClosed,
    AccountNotFound,
    AlertNotFound,
    InsufficientBalance,
    LastAccountOfType,
    NonZeroBalance,
    ValidationError,
)
from salon_finance.services.notification_service import acknowledge_alert, list_alerts


def _balance(company_id, account_id):
    return ledger_service.get_account(company_id, account_id).current_balance_cents


def _txn_count(db_session, account_id):
    return db_session.query(FinancialTransaction).filter_by(account_id=account_id).count()


# =============================================================================
# CREATE ACCOUNT
# =============================================================================


class TestCreateAccount:

    def test_opening_balance_is_posted(self, db_session, company, cash_account):
        assert cash_account.current_balance_cents == 1000
        assert cash_account.opening_balance_cents == 1000

        txns = db_session.query(FinancialTransaction).filter_by(account_id=cash_account.id).all()
        assert len(txns) == 1
        assert txns[0].type == "income"
        assert txns[0].category == ledger_service.CATEGORY_OPENING_BALANCE
        assert txns[0].total_amount_cents == 1000

    def test_zero_opening_balance_writes_no_posting(self, db_session, company, card_account):
        assert card_account.current_balance_cents == 0
        assert _txn_count(db_session, card_account.id) == 0

    def test_invalid_type_rejected(self, db_session, company):
        with pytest.raises(ValidationError):
            ledger_service.create_account(
                company_id=company.id, name="Safe", type="vault", created_by="owner"
            )

    def test_blank_name_rejected(self, db_session, company):
        with pytest.raises(ValidationError):
            ledger_service.create_account(
                company_id=company.id, name="   ", type="cash", created_by="owner"
            )

    def test_branch_from_other_company_rejected(self, db_session, company, other_company, branch):
        with pytest.raises(ValidationError):
            ledger_service.create_account(
                company_id=other_company.id,
                branch_id=branch.id,
                name="Cash",
                type="cash",
                created_by="owner",
            )

    def test_new_default_clears_previous_default(self, db_session, company, branch, cash_account):
        second = ledger_service.create_account(
            company_id=company.id,
            branch_id=branch.id,
            name="Back Office Cash",
            type="cash",
            created_by="owner",
            is_default=True,
        )
        assert second.is_default is True
        assert ledger_service.get_account(company.id, cash_account.id).is_default is False


# =============================================================================
# POST TRANSACTION
# =============================================================================


class TestPostTransaction:

    def test_income_with_tax_moves_balance_by_total(self, db_session, company, cash_account):
        txn = ledger_service.post_transaction(
            company_id=company.id,
            account_id=cash_account.id,
            type="income",
            category="services",
            amount_cents=500,
            tax_cents=70,
            description="Haircut",
            created_by="cashier-1",
            payment_method="cash",
        )
        assert txn.total_amount_cents == 570
        assert txn.account_name == "Front Desk Cash"
        assert _balance(company.id, cash_account.id) == 1570

    def test_expense_reduces_balance(self, db_session, company, cash_account):
        ledger_service.post_transaction(
            company_id=company.id,
            account_id=cash_account.id,
            type="expense",
            category="supplies",
            amount_cents=250,
            description="Towels",
            created_by="cashier-1",
        )
        assert _balance(company.id, cash_account.id) == 750

    def test_overdraw_refused_and_nothing_written(self, db_session, company, cash_account):
        with pytest.raises(InsufficientBalance) as exc_info:
            ledger_service.post_transaction(
                company_id=company.id,
                account_id=cash_account.id,
                type="expense",
                category="rent",
                amount_cents=1001,
                description="Rent",
                created_by="owner",
            )
        assert exc_info.value.details["balance_cents"] == 1000
        assert _balance(company.id, cash_account.id) == 1000
        assert _txn_count(db_session, cash_account.id) == 1

    def test_overdraw_allowed_when_account_permits(self, db_session, company, branch):
        account = ledger_service.create_account(
            company_id=company.id,
            branch_id=branch.id,
            name="Supplier Credit",
            type="credit_card",
            created_by="owner",
            allow_negative_balance=True,
        )
        ledger_service.post_transaction(
            company_id=company.id,
            account_id=account.id,
            type="expense",
            category="supplies",
            amount_cents=400,
            description="Color stock",
            created_by="owner",
        )
        assert _balance(company.id, account.id) == -400

    def test_transfer_type_refused(self, db_session, company, cash_account):
        with pytest.raises(ValidationError):
            ledger_service.post_transaction(
                company_id=company.id,
                account_id=cash_account.id,
                type="transfer",
                category="transfer",
                amount_cents=100,
                description="x",
                created_by="owner",
            )

    @pytest.mark.parametrize("amount", [0, -5, 10.5, True, "100"])
    def test_non_positive_or_non_integer_amount_refused(self, db_session, company, cash_account, amount):
        with pytest.raises(ValidationError):
            ledger_service.post_transaction(
                company_id=company.id,
                account_id=cash_account.id,
                type="income",
                category="services",
                amount_cents=amount,
                description="x",
                created_by="owner",
            )
        assert _balance(company.id, cash_account.id) == 1000

    def test_unknown_account(self, db_session, company):
        with pytest.raises(AccountNotFound):
            ledger_service.post_transaction(
                company_id=company.id,
                account_id=9999,
                type="income",
                category="services",
                amount_cents=100,
                description="x",
                created_by="owner",
            )

    def test_account_of_other_company_not_found(self, db_session, company, other_company, cash_account):
        with pytest.raises(AccountNotFound):
            ledger_service.post_transaction(
                company_id=other_company.id,
                account_id=cash_account.id,
                type="income",
                category="services",
                amount_cents=100,
                description="x",
                created_by="owner",
            )

    def test_inactive_account_still_accepts_postings(self, db_session, company, cash_account):
        ledger_service.set_account_status(
            company_id=company.id, account_id=cash_account.id, status="inactive", updated_by="owner"
        )
        ledger_service.post_transaction(
            company_id=company.id,
            account_id=cash_account.id,
            type="income",
            category="services",
            amount_cents=100,
            description="Late entry",
            created_by="owner",
        )
        assert _balance(company.id, cash_account.id) == 1100


# =============================================================================
# TRANSFERS
# =============================================================================


class TestPostTransfer:

    def test_transfer_moves_money_with_linked_legs(self, db_session, company, cash_account, bank_account):
        from_txn, to_txn = ledger_service.post_transfer(
            company_id=company.id,
            from_account_id=cash_account.id,
            to_account_id=bank_account.id,
            amount_cents=600,
            description="Bank deposit",
            created_by="owner",
        )

        assert _balance(company.id, cash_account.id) == 400
        assert _balance(company.id, bank_account.id) == 50600

        assert from_txn.type == "expense"
        assert from_txn.transfer_direction == "from"
        assert to_txn.type == "income"
        assert to_txn.transfer_direction == "to"
        assert from_txn.is_transfer and to_txn.is_transfer
        assert from_txn.linked_transaction_id == to_txn.id
        assert to_txn.linked_transaction_id == from_txn.id
        assert from_txn.transfer_account_id == bank_account.id
        assert to_txn.transfer_account_id == cash_account.id

    def test_insufficient_source_writes_neither_leg(self, db_session, company, cash_account, bank_account):
        with pytest.raises(InsufficientBalance):
            ledger_service.post_transfer(
                company_id=company.id,
                from_account_id=cash_account.id,
                to_account_id=bank_account.id,
                amount_cents=5000,
                description="Too much",
                created_by="owner",
            )
        assert _balance(company.id, cash_account.id) == 1000
        assert _balance(company.id, bank_account.id) == 50000
        assert _txn_count(db_session, cash_account.id) == 1
        assert _txn_count(db_session, bank_account.id) == 1

    def test_same_account_refused(self, db_session, company, cash_account):
        with pytest.raises(ValidationError):
            ledger_service.post_transfer(
                company_id=company.id,
                from_account_id=cash_account.id,
                to_account_id=cash_account.id,
                amount_cents=100,
                description="Loop",
                created_by="owner",
            )

    def test_closed_destination_refused(self, db_session, company, branch, cash_account, bank_account):
        spare = ledger_service.create_account(
            company_id=company.id, branch_id=branch.id, name="Old Bank", type="bank", created_by="owner"
        )
        ledger_service.close_account(company_id=company.id, account_id=spare.id, closed_by="owner")

        with pytest.raises(AccountClosed):
            ledger_service.post_transfer(
                company_id=company.id,
                from_account_id=cash_account.id,
                to_account_id=spare.id,
                amount_cents=100,
                description="Deposit",
                created_by="owner",
            )
        assert _balance(company.id, cash_account.id) == 1000


# =============================================================================
# CLOSE ACCOUNT
# =============================================================================


class TestCloseAccount:

    def test_non_zero_balance_refused(self, db_session, company, branch, cash_account):
        ledger_service.create_account(
            company_id=company.id, branch_id=branch.id, name="Spare Cash", type="cash", created_by="owner"
        )
        with pytest.raises(NonZeroBalance):
            ledger_service.close_account(company_id=company.id, account_id=cash_account.id, closed_by="owner")

    def test_last_account_of_type_refused(self, db_session, company, card_account):
        with pytest.raises(LastAccountOfType):
            ledger_service.close_account(company_id=company.id, account_id=card_account.id, closed_by="owner")

    def test_over_short_account_does_not_count_as_remaining(self, db_session, company, branch, cash_account):
        session = register_service.open_session(
            company_id=company.id,
            branch_id=branch.id,
            register_id="REG-01",
            account_mappings={"cash": cash_account.id},
            opening_amounts={},
            opened_by="cashier-1",
        )
        register_service.close_session(
            company_id=company.id,
            session_id=session.id,
            actual_balances={cash_account.id: 1005},
            closed_by="cashier-1",
        )
        ledger_service.post_transaction(
            company_id=company.id,
            account_id=cash_account.id,
            type="expense",
            category="bank_deposit",
            amount_cents=1005,
            description="Empty drawer",
            created_by="owner",
        )
        assert ledger_service.get_account(company.id, cash_account.id).current_balance_cents == 0

        with pytest.raises(LastAccountOfType):
            ledger_service.close_account(company_id=company.id, account_id=cash_account.id, closed_by="owner")
        assert ledger_service.get_account(company.id, cash_account.id).status == "active"

    def test_close_succeeds_and_blocks_postings(self, db_session, company, branch, cash_account):
        spare = ledger_service.create_account(
            company_id=company.id, branch_id=branch.id, name="Spare Cash", type="cash", created_by="owner"
        )
        closed = ledger_service.close_account(company_id=company.id, account_id=spare.id, closed_by="owner")

        assert closed.status == "closed"
        assert closed.closed_by == "owner"
        assert closed.closed_at is not None

        with pytest.raises(AccountClosed):
            ledger_service.post_transaction(
                company_id=company.id,
                account_id=spare.id,
                type="income",
                category="services",
                amount_cents=100,
                description="x",
                created_by="owner",
            )

    def test_close_twice_refused(self, db_session, company, branch, cash_account):
        spare = ledger_service.create_account(
            company_id=company.id, branch_id=branch.id, name="Spare Cash", type="cash", created_by="owner"
        )
        ledger_service.close_account(company_id=company.id, account_id=spare.id, closed_by="owner")
        with pytest.raises(AccountClosed):
            ledger_service.close_account(company_id=company.id, account_id=spare.id, closed_by="owner")

    def test_closed_account_cannot_be_reactivated(self, db_session, company, branch, cash_account):
        spare = ledger_service.create_account(
            company_id=company.id, branch_id=branch.id, name="Spare Cash", type="cash", created_by="owner"
        )
        ledger_service.close_account(company_id=company.id, account_id=spare.id, closed_by="owner")
        with pytest.raises(AccountClosed):
            ledger_service.set_account_status(
                company_id=company.id, account_id=spare.id, status="active", updated_by="owner"
            )


# =============================================================================
# LOW BALANCE ALERTS
# =============================================================================


class TestLowBalanceAlerts:

    def test_alert_raised_once_on_crossing(self, db_session, company, branch):
        account = ledger_service.create_account(
            company_id=company.id,
            branch_id=branch.id,
            name="Petty Cash",
            type="petty_cash",
            created_by="owner",
            opening_balance_cents=1000,
            low_balance_threshold_cents=500,
        )
        assert list_alerts(company.id) == []

        ledger_service.post_transaction(
            company_id=company.id,
            account_id=account.id,
            type="expense",
            category="supplies",
            amount_cents=600,
            description="Coffee",
            created_by="owner",
        )
        alerts = list_alerts(company.id)
        assert len(alerts) == 1
        assert alerts[0].account_id == account.id
        assert alerts[0].balance_cents == 400
        assert alerts[0].threshold_cents == 500

        # Already below the threshold: no new alert
        ledger_service.post_transaction(
            company_id=company.id,
            account_id=account.id,
            type="expense",
            category="supplies",
            amount_cents=100,
            description="Milk",
            created_by="owner",
        )
        assert db_session.query(BalanceAlert).count() == 1

    def test_acknowledged_alerts_leave_the_open_list(self, db_session, company, other_company, branch):
        account = ledger_service.create_account(
            company_id=company.id,
            branch_id=branch.id,
            name="Petty Cash",
            type="petty_cash",
            created_by="owner",
            opening_balance_cents=1000,
            low_balance_threshold_cents=500,
        )
        ledger_service.post_transaction(
            company_id=company.id,
            account_id=account.id,
            type="expense",
            category="supplies",
            amount_cents=600,
            description="Coffee",
            created_by="owner",
        )
        alert = list_alerts(company.id, account_id=account.id)[0]

        with pytest.raises(AlertNotFound):
            acknowledge_alert(company_id=other_company.id, alert_id=alert.id, acknowledged_by="intruder")

        acked = acknowledge_alert(company_id=company.id, alert_id=alert.id, acknowledged_by="manager")
        assert acked.acknowledged is True
        assert acked.acknowledged_by == "manager"
        assert acked.acknowledged_at is not None

        again = acknowledge_alert(company_id=company.id, alert_id=alert.id, acknowledged_by="owner")
        assert again.acknowledged_by == "manager"

        assert list_alerts(company.id) == []
        assert [a.id for a in list_alerts(company.id, include_acknowledged=True)] == [alert.id]

    def test_alerts_disabled_by_config(self, app, db_session, company, branch):
        account = ledger_service.create_account(
            company_id=company.id,
            branch_id=branch.id,
            name="Petty Cash",
            type="petty_cash",
            created_by="owner",
            opening_balance_cents=1000,
            low_balance_threshold_cents=500,
        )
        app.config["LOW_BALANCE_ALERTS_ENABLED"] = False
        try:
            ledger_service.post_transaction(
                company_id=company.id,
                account_id=account.id,
                type="expense",
                category="supplies",
                amount_cents=900,
                description="Coffee",
                created_by="owner",
            )
        finally:
            app.config["LOW_BALANCE_ALERTS_ENABLED"] = True
        assert db_session.query(BalanceAlert).count() == 0


# =============================================================================
# QUERIES
# =============================================================================


class TestLedgerQueries:

    def test_list_accounts_includes_company_wide(self, db_session, company, branch, cash_account):
        ledger_service.create_account(
            company_id=company.id, name="HQ Bank", type="bank", created_by="owner"
        )
        names = [a.name for a in ledger_service.list_accounts(company.id, branch_id=branch.id)]
        assert names == ["Front Desk Cash", "HQ Bank"]

    def test_default_account_resolution(self, db_session, company, branch, cash_account):
        assert ledger_service.get_default_account(company.id, branch.id, "cash").id == cash_account.id

        hq = ledger_service.create_account(
            company_id=company.id, name="HQ Bank", type="bank", created_by="owner", is_default=True
        )
        assert ledger_service.get_default_account(company.id, branch.id, "bank").id == hq.id
        assert ledger_service.get_default_account(company.id, branch.id, "digital_wallet") is None

    def test_list_transactions_paginates_newest_first(self, db_session, company, cash_account):
        for amount in (10, 20, 30):
            ledger_service.post_transaction(
                company_id=company.id,
                account_id=cash_account.id,
                type="income",
                category="services",
                amount_cents=amount,
                description=f"Tip {amount}",
                created_by="owner",
            )

        first_page = ledger_service.list_transactions(company.id, account_id=cash_account.id, limit=2)
        assert [t.amount_cents for t in first_page] == [30, 20]

        second_page = ledger_service.list_transactions(
            company.id, account_id=cash_account.id, limit=2, before_id=first_page[-1].id
        )
        assert [t.amount_cents for t in second_page] == [10, 1000]

    def test_account_summary(self, db_session, company, cash_account):
        ledger_service.post_transaction(
            company_id=company.id,
            account_id=cash_account.id,
            type="expense",
            category="supplies",
            amount_cents=300,
            description="Foils",
            created_by="owner",
        )
        summary = ledger_service.get_account_summary(company.id, cash_account.id)
        assert summary["income_cents"] == 1000
        assert summary["expense_cents"] == 300
        assert summary["net_cents"] == 700
        assert summary["transaction_count"] == 2
        assert summary["current_balance_cents"] == 700
        assert summary["last_transaction"]["category"] == "supplies"

    def test_update_account_refuses_balance_edit(self, db_session, company, cash_account):
        with pytest.raises(ValidationError):
            ledger_service.update_account(
                company_id=company.id,
                account_id=cash_account.id,
                updated_by="owner",
                current_balance_cents=5,
            )

    def test_update_account_name(self, db_session, company, cash_account):
        account = ledger_service.update_account(
            company_id=company.id,
            account_id=cash_account.id,
            updated_by="owner",
            name="Reception Drawer",
            low_balance_threshold_cents=200,
        )
        assert account.name == "Reception Drawer"
        assert account.low_balance_threshold_cents == 200
        assert account.current_balance_cents == 1000
