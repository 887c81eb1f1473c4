# Overview: Pytest coverage for sale drafts, completion, voids and daily reporting.

"""
Sale Completion Tests

Verifies:
- Draft totals (line discounts, tax on the discounted amount, numbering)
- Payment sufficiency is checked before anything is posted
- Completion decrements stock (floored at zero) and posts one income per
  settled payment, with cash change netted out
- Register logging is best-effort and never fails a completed sale
- Voiding a completed sale posts reversing entries and restocks
"""

from datetime import date, datetime

import pytest

from salon_finance.extensions import db
from salon_finance.models import Branch, FinancialTransaction, InventoryMovement
from salon_finance.services import (
    inventory_service,
    ledger_service,
    register_service,
    sales_service,
)
from salon_finance.services.errors import (
    InsufficientPayment,
    InvalidStateError,
    ProductNotFound,
    SaleNotDraft,
    ValidationError,
)
from salon_finance.time_utils import utcnow


def _balance(company_id, account_id):
    return ledger_service.get_account(company_id, account_id).current_balance_cents


def _draft(company, branch, items, payments=None, staff_id="cashier-1"):
    return sales_service.create_sale(
        company_id=company.id,
        branch_id=branch.id,
        items=items,
        payments=payments,
        staff_id=staff_id,
    )


def _service_line(price=300, quantity=1, **extra):
    return {"product_name": "Blow-dry", "quantity": quantity, "unit_price_cents": price, **extra}


@pytest.fixture(scope='function')
def taxed_branch(db_session, company):
    """Branch charging 14% sales tax."""
    branch = Branch(company_id=company.id, name="Mall Kiosk", code="MK", tax_rate_bps=1400)
    db_session.add(branch)
    db_session.commit()
    return branch


# =============================================================================
# CREATE
# =============================================================================


class TestCreateSale:

    def test_totals_with_discount_and_tax(self, db_session, company, taxed_branch):
        sale = _draft(company, taxed_branch, [
            _service_line(price=300, quantity=2, discount_type="percentage", discount_value=1000),
        ])

        assert sale.status == "draft"
        assert sale.subtotal_cents == 600
        assert sale.discount_cents == 60
        # 14% of 540 = 75.6, rounded half up
        assert sale.tax_cents == 76
        assert sale.total_cents == 616
        assert sale.items[0].subtotal_cents == 540

    def test_fixed_discount(self, db_session, company, branch):
        sale = _draft(company, branch, [_service_line(price=500, discount_value=120)])
        assert sale.discount_cents == 120
        assert sale.total_cents == 380

    def test_product_price_and_cost_snapshot(self, db_session, company, branch, shampoo):
        sale = _draft(company, branch, [{"product_id": shampoo.id, "quantity": 2}])
        item = sale.items[0]
        assert item.product_name == "Argan Shampoo 250ml"
        assert item.unit_price_cents == 300
        assert item.unit_cost_cents == 120
        assert sale.total_cost_cents == 240

    def test_numbers_are_sequential_per_branch(self, db_session, company, branch):
        first = _draft(company, branch, [_service_line()])
        second = _draft(company, branch, [_service_line()])

        period = utcnow().strftime("%Y%m")
        assert first.sale_number == f"POS-{period}-0001"
        assert second.sale_number == f"POS-{period}-0002"
        assert first.receipt_number.startswith("RCP-")
        assert first.receipt_number.endswith("-001")
        assert second.receipt_number.endswith("-002")

    def test_draft_posts_nothing(self, db_session, company, branch, cash_account):
        _draft(company, branch, [_service_line()], payments=[{"method": "cash", "amount_cents": 300}])
        assert _balance(company.id, cash_account.id) == 1000

    def test_no_items_refused(self, db_session, company, branch):
        with pytest.raises(ValidationError):
            _draft(company, branch, [])

    def test_discount_over_line_amount_refused(self, db_session, company, branch):
        with pytest.raises(ValidationError):
            _draft(company, branch, [_service_line(price=100, discount_value=101)])

    def test_percentage_over_hundred_refused(self, db_session, company, branch):
        with pytest.raises(ValidationError):
            _draft(company, branch, [_service_line(discount_type="percentage", discount_value=10001)])

    def test_unknown_payment_method_refused(self, db_session, company, branch):
        with pytest.raises(ValidationError):
            _draft(company, branch, [_service_line()], payments=[{"method": "barter", "amount_cents": 300}])

    def test_product_of_other_company_refused(self, db_session, company, other_company, branch):
        foreign = inventory_service.create_product(
            company_id=other_company.id, sku="X-1", name="Foreign Serum", price_cents=900
        )
        with pytest.raises(ProductNotFound):
            _draft(company, branch, [{"product_id": foreign.id, "quantity": 1}])


# =============================================================================
# COMPLETE
# =============================================================================


class TestCompleteSale:

    def test_insufficient_payment_changes_nothing(self, db_session, company, branch, cash_account, shampoo):
        sale = _draft(
            company, branch,
            [{"product_id": shampoo.id, "quantity": 2}],
            payments=[{"method": "cash", "amount_cents": 599}],
        )
        txn_count = db_session.query(FinancialTransaction).count()

        with pytest.raises(InsufficientPayment) as exc_info:
            sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")

        assert exc_info.value.details == {"total_cents": 600, "total_paid_cents": 599}
        assert sales_service.get_sale(company.id, sale.id).status == "draft"
        assert db_session.query(FinancialTransaction).count() == txn_count
        assert inventory_service.get_quantity_on_hand(branch.id, shampoo.id) == 5

    def test_cash_sale_posts_income_and_decrements_stock(self, db_session, company, branch, cash_account, shampoo):
        sale = _draft(
            company, branch,
            [{"product_id": shampoo.id, "quantity": 2}],
            payments=[{"method": "cash", "amount_cents": 600}],
        )
        completed = sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")

        assert completed.status == "completed"
        assert completed.completed_by == "cashier-1"
        assert completed.completed_at is not None
        assert _balance(company.id, cash_account.id) == 1600
        assert inventory_service.get_quantity_on_hand(branch.id, shampoo.id) == 3

        payment = completed.payments[0]
        assert payment.account_id == cash_account.id
        assert payment.posted_amount_cents == 600
        txn = db.session.get(FinancialTransaction, payment.transaction_id)
        assert txn.category == sales_service.CATEGORY_SALE
        assert txn.reference_type == "sale"
        assert txn.reference_id == str(sale.id)

    def test_cash_change_is_netted(self, db_session, company, branch, cash_account):
        sale = _draft(company, branch, [_service_line(price=300)], payments=[{"method": "cash", "amount_cents": 500}])
        completed = sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")

        assert completed.change_cents == 200
        assert completed.total_paid_cents == 500
        assert completed.payments[0].posted_amount_cents == 300
        assert _balance(company.id, cash_account.id) == 1300

    def test_split_payment_takes_change_from_cash(self, db_session, company, branch, cash_account, card_account):
        sale = _draft(
            company, branch,
            [_service_line(price=600)],
            payments=[
                {"method": "card", "amount_cents": 200, "reference": "AUTH-77"},
                {"method": "cash", "amount_cents": 500},
            ],
        )
        completed = sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")

        card, cash = completed.payments
        assert card.posted_amount_cents == 200
        assert card.account_id == card_account.id
        assert cash.posted_amount_cents == 400
        assert _balance(company.id, card_account.id) == 200
        assert _balance(company.id, cash_account.id) == 1400

    def test_change_without_cash_refused(self, db_session, company, branch, card_account):
        sale = _draft(company, branch, [_service_line(price=600)], payments=[{"method": "card", "amount_cents": 700}])
        with pytest.raises(ValidationError):
            sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")
        assert sales_service.get_sale(company.id, sale.id).status == "draft"

    def test_stock_floors_at_zero(self, db_session, company, branch, cash_account, shampoo):
        sale = _draft(
            company, branch,
            [{"product_id": shampoo.id, "quantity": 7}],
            payments=[{"method": "cash", "amount_cents": 2100}],
        )
        completed = sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")

        assert completed.status == "completed"
        assert inventory_service.get_quantity_on_hand(branch.id, shampoo.id) == 0
        movement = db.session.get(InventoryMovement, completed.items[0].inventory_movement_id)
        assert movement.quantity_requested == 7
        assert movement.quantity_delta == -5

    def test_payment_without_account_is_not_posted(self, db_session, company, branch, cash_account):
        sale = _draft(company, branch, [_service_line(price=300)], payments=[{"method": "other", "amount_cents": 300}])
        completed = sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")

        assert completed.status == "completed"
        assert completed.payments[0].transaction_id is None
        assert _balance(company.id, cash_account.id) == 1000

    def test_cart_replaced_at_completion(self, db_session, company, branch, cash_account):
        sale = _draft(company, branch, [_service_line(price=300)])
        completed = sales_service.complete_sale(
            company_id=company.id,
            sale_id=sale.id,
            actor_id="cashier-1",
            items=[_service_line(price=450, quantity=2)],
            payments=[{"method": "cash", "amount_cents": 900}],
        )

        assert len(completed.items) == 1
        assert completed.items[0].quantity == 2
        assert completed.total_cents == 900
        assert _balance(company.id, cash_account.id) == 1900

    def test_completed_sale_cannot_complete_again(self, db_session, company, branch, cash_account):
        sale = _draft(company, branch, [_service_line()], payments=[{"method": "cash", "amount_cents": 300}])
        sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")

        with pytest.raises(SaleNotDraft):
            sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")
        assert _balance(company.id, cash_account.id) == 1300


# =============================================================================
# REGISTER LOGGING
# =============================================================================


class TestRegisterLogging:

    def _open_session(self, company, branch, cash_account):
        return register_service.open_session(
            company_id=company.id,
            branch_id=branch.id,
            register_id="REG-01",
            account_mappings={"cash": cash_account.id},
            opening_amounts={},
            opened_by="cashier-1",
        )

    def test_sale_logged_to_explicit_session(self, db_session, company, branch, cash_account):
        session = register_service.open_session(
            company_id=company.id,
            branch_id=branch.id,
            register_id="REG-02",
            account_mappings={"cash": cash_account.id},
            opening_amounts={},
            opened_by="manager",
        )
        sale = _draft(company, branch, [_service_line()], payments=[{"method": "cash", "amount_cents": 300}])
        completed = sales_service.complete_sale(
            company_id=company.id, sale_id=sale.id, actor_id="cashier-1", register_session_id=session.id
        )

        assert completed.register_session_id == session.id
        session = register_service.get_session(company.id, session.id)
        assert session.account_movements[0].expected_balance_cents == 1300
        assert [m.type for m in session.cash_movements] == ["sale"]

    def test_no_open_session_still_completes(self, db_session, company, branch, cash_account):
        sale = _draft(company, branch, [_service_line()], payments=[{"method": "cash", "amount_cents": 300}])
        completed = sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")

        assert completed.status == "completed"
        assert completed.register_session_id is None

    def test_logging_failure_does_not_fail_sale(self, db_session, company, branch, cash_account, monkeypatch):
        self._open_session(company, branch, cash_account)

        def boom(**kwargs):
            raise RuntimeError("register offline")

        monkeypatch.setattr(sales_service, "log_sale_to_session", boom)

        sale = _draft(company, branch, [_service_line()], payments=[{"method": "cash", "amount_cents": 300}])
        completed = sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")

        assert completed.status == "completed"
        assert completed.register_session_id is None
        assert _balance(company.id, cash_account.id) == 1300

    def test_closed_session_is_not_logged_to(self, db_session, company, branch, cash_account):
        session = self._open_session(company, branch, cash_account)
        register_service.close_session(
            company_id=company.id,
            session_id=session.id,
            actual_balances={cash_account.id: 1000},
            closed_by="cashier-1",
        )

        sale = _draft(company, branch, [_service_line()], payments=[{"method": "cash", "amount_cents": 300}])
        completed = sales_service.complete_sale(
            company_id=company.id, sale_id=sale.id, actor_id="cashier-1", register_session_id=session.id
        )

        assert completed.status == "completed"
        assert completed.register_session_id is None


# =============================================================================
# VOID
# =============================================================================


class TestVoidSale:

    def test_void_completed_sale_reverses_ledger_and_stock(self, db_session, company, branch, cash_account, shampoo):
        sale = _draft(
            company, branch,
            [{"product_id": shampoo.id, "quantity": 7}],
            payments=[{"method": "cash", "amount_cents": 2100}],
        )
        sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")
        assert _balance(company.id, cash_account.id) == 3100

        voided = sales_service.void_sale(
            company_id=company.id, sale_id=sale.id, actor_id="manager", reason="Customer returned"
        )

        assert voided.status == "voided"
        assert voided.voided_by == "manager"
        assert voided.void_reason == "Customer returned"
        assert _balance(company.id, cash_account.id) == 1000

        payment = voided.payments[0]
        reversal = db.session.get(FinancialTransaction, payment.reversal_transaction_id)
        assert reversal.type == "expense"
        assert reversal.category == sales_service.CATEGORY_SALE_VOID
        assert reversal.amount_cents == 2100
        assert reversal.notes == "Customer returned"

        # Only the 5 units actually taken come back
        assert inventory_service.get_quantity_on_hand(branch.id, shampoo.id) == 5
        movements = inventory_service.list_movements(company.id, product_id=shampoo.id)
        assert [(m.type, m.quantity_delta) for m in movements] == [
            ("sale_void", 5),
            ("sale", -5),
            ("receive", 5),
        ]

    def test_void_draft_posts_nothing(self, db_session, company, branch, cash_account):
        sale = _draft(company, branch, [_service_line()], payments=[{"method": "cash", "amount_cents": 300}])
        txn_count = db_session.query(FinancialTransaction).count()

        voided = sales_service.void_sale(company_id=company.id, sale_id=sale.id, actor_id="manager", reason="Mistake")

        assert voided.status == "voided"
        assert db_session.query(FinancialTransaction).count() == txn_count

    def test_reason_required(self, db_session, company, branch):
        sale = _draft(company, branch, [_service_line()])
        with pytest.raises(ValidationError):
            sales_service.void_sale(company_id=company.id, sale_id=sale.id, actor_id="manager", reason="  ")

    def test_void_twice_refused(self, db_session, company, branch, cash_account):
        sale = _draft(company, branch, [_service_line()], payments=[{"method": "cash", "amount_cents": 300}])
        sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")
        sales_service.void_sale(company_id=company.id, sale_id=sale.id, actor_id="manager", reason="Refund")

        with pytest.raises(InvalidStateError):
            sales_service.void_sale(company_id=company.id, sale_id=sale.id, actor_id="manager", reason="Refund")
        assert _balance(company.id, cash_account.id) == 1000

    def test_voided_sale_cannot_complete(self, db_session, company, branch):
        sale = _draft(company, branch, [_service_line()])
        sales_service.void_sale(company_id=company.id, sale_id=sale.id, actor_id="manager", reason="Mistake")
        with pytest.raises(SaleNotDraft):
            sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")

    def test_void_updates_open_session(self, db_session, company, branch, cash_account):
        session = register_service.open_session(
            company_id=company.id,
            branch_id=branch.id,
            register_id="REG-01",
            account_mappings={"cash": cash_account.id},
            opening_amounts={},
            opened_by="cashier-1",
        )
        sale = _draft(company, branch, [_service_line()], payments=[{"method": "cash", "amount_cents": 300}])
        sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")
        sales_service.void_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1", reason="Refund")

        session = register_service.get_session(company.id, session.id)
        tracked = session.account_movements[0]
        assert tracked.transaction_total_cents == 0
        assert tracked.expected_balance_cents == 1000
        assert [m.type for m in session.cash_movements] == ["sale", "sale_void"]

        # The drawer still reconciles after the refund
        summary = register_service.close_session(
            company_id=company.id,
            session_id=session.id,
            actual_balances={cash_account.id: 1000},
            closed_by="cashier-1",
        )
        assert summary["reconciled"] is True


# =============================================================================
# REPORTING
# =============================================================================


class TestDailySummary:

    def test_summary_counts_completed_sales(self, db_session, company, branch, cash_account, card_account, shampoo):
        first = _draft(
            company, branch,
            [{"product_id": shampoo.id, "quantity": 1}, _service_line(price=500)],
            payments=[{"method": "cash", "amount_cents": 800}],
        )
        sales_service.complete_sale(company_id=company.id, sale_id=first.id, actor_id="cashier-1")

        second = _draft(company, branch, [_service_line(price=200)], payments=[{"method": "card", "amount_cents": 200}])
        sales_service.complete_sale(company_id=company.id, sale_id=second.id, actor_id="cashier-1")

        third = _draft(company, branch, [_service_line(price=999)])
        sales_service.void_sale(company_id=company.id, sale_id=third.id, actor_id="manager", reason="Test")

        summary = sales_service.get_daily_summary(company.id, utcnow().date(), branch_id=branch.id)

        assert summary["sale_count"] == 2
        assert summary["voided_count"] == 1
        assert summary["total_cents"] == 1000
        assert summary["cost_cents"] == 120
        assert summary["average_sale_cents"] == 500
        assert summary["payments"] == [
            {"method": "card", "count": 1, "amount_cents": 200},
            {"method": "cash", "count": 1, "amount_cents": 800},
        ]
        assert summary["top_products"][0]["product_name"] == "Blow-dry"
        assert summary["top_products"][0]["revenue_cents"] == 700

    def test_branch_day_follows_branch_timezone(self, db_session, company):
        tokyo = Branch(company_id=company.id, name="Ginza", code="GZ", tax_rate_bps=0, timezone="Asia/Tokyo")
        db_session.add(tokyo)
        db_session.commit()

        sale = _draft(company, tokyo, [_service_line(price=400)], payments=[{"method": "cash", "amount_cents": 400}])
        sales_service.complete_sale(company_id=company.id, sale_id=sale.id, actor_id="cashier-1")
        # 20:00 UTC on March 1st is 05:00 on March 2nd in Tokyo
        sale.completed_at = datetime(2026, 3, 1, 20, 0)
        db_session.commit()

        local = sales_service.get_daily_summary(company.id, date(2026, 3, 2), branch_id=tokyo.id)
        assert local["timezone"] == "Asia/Tokyo"
        assert local["sale_count"] == 1
        assert local["total_cents"] == 400

        assert sales_service.get_daily_summary(company.id, date(2026, 3, 1), branch_id=tokyo.id)["sale_count"] == 0

        company_wide = sales_service.get_daily_summary(company.id, date(2026, 3, 1))
        assert company_wide["timezone"] == "UTC"
        assert company_wide["sale_count"] == 1

    def test_unknown_branch_timezone_refused(self, db_session, company, branch):
        branch.timezone = "Mars/Olympus_Mons"
        db_session.commit()
        with pytest.raises(ValidationError):
            sales_service.get_daily_summary(company.id, date(2026, 3, 1), branch_id=branch.id)
