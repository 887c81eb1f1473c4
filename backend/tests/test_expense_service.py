# Overview: Pytest coverage for expense categories, vendors and expense postings that reference them.

"""
Expense Reference Tests

Verifies:
- Category names and vendor codes are unique per company
- Expense postings validate their category and vendor before money moves
- Vendor spend counters follow the postings that name the vendor
"""

import pytest

from salon_finance.models import FinancialTransaction
from salon_finance.services import expense_service, ledger_service
from salon_finance.services.errors import ExpenseCategoryNotFound, ValidationError, VendorNotFound


def _category(company, name="Supplies", **kwargs):
    return expense_service.create_expense_category(company_id=company.id, name=name, created_by="owner", **kwargs)


def _vendor(company, name="Nile Beauty", **kwargs):
    return expense_service.create_vendor(company_id=company.id, name=name, created_by="owner", **kwargs)


def _expense(company, account, amount=200, **kwargs):
    kwargs.setdefault("category", "supplies")
    return ledger_service.post_transaction(
        company_id=company.id,
        account_id=account.id,
        type="expense",
        amount_cents=amount,
        description="Foils",
        created_by="cashier-1",
        **kwargs,
    )


# =============================================================================
# CATEGORIES
# =============================================================================


class TestExpenseCategories:

    def test_duplicate_name_refused(self, db_session, company):
        _category(company, "Rent")
        with pytest.raises(ValidationError):
            _category(company, "Rent")

    def test_same_name_in_other_company(self, db_session, company, other_company):
        _category(company, "Rent")
        assert _category(other_company, "Rent").company_id == other_company.id

    def test_listing_order_and_inactive(self, db_session, company):
        _category(company, "Utilities")
        _category(company, "Rent", sort_order=2)
        _category(company, "Salaries", sort_order=1)
        old = _category(company, "Magazines")
        expense_service.deactivate_expense_category(company_id=company.id, category_id=old.id)

        names = [c.name for c in expense_service.list_expense_categories(company.id)]
        assert names == ["Salaries", "Rent", "Utilities"]
        everything = expense_service.list_expense_categories(company.id, include_inactive=True)
        assert "Magazines" in [c.name for c in everything]

    def test_system_category_stays_active(self, db_session, company):
        system = _category(company, "Cash Over/Short", is_system=True)
        with pytest.raises(ValidationError):
            expense_service.deactivate_expense_category(company_id=company.id, category_id=system.id)
        assert expense_service.get_expense_category(company.id, system.id).is_active is True

    def test_parent_must_exist(self, db_session, company, other_company):
        foreign = _category(other_company, "Rent")
        with pytest.raises(ExpenseCategoryNotFound):
            _category(company, "Shop Rent", parent_id=foreign.id)

        parent = _category(company, "Rent")
        child = _category(company, "Shop Rent", parent_id=parent.id)
        assert child.parent.id == parent.id
        assert [c.name for c in parent.children] == ["Shop Rent"]

    def test_negative_budget_refused(self, db_session, company):
        with pytest.raises(ValidationError):
            _category(company, "Rent", monthly_budget_cents=-1)


# =============================================================================
# VENDORS
# =============================================================================


class TestVendors:

    def test_code_unique_per_company(self, db_session, company, other_company):
        _vendor(company, code="NBS")
        with pytest.raises(ValidationError):
            _vendor(company, "Nile Beauty Two", code="NBS")
        assert _vendor(other_company, code="NBS").code == "NBS"

    def test_search_and_status_filter(self, db_session, company):
        nile = _vendor(company, code="NBS")
        _vendor(company, "Cairo Towels", code="CT")
        expense_service.update_vendor(company_id=company.id, vendor_id=nile.id, status="inactive")

        assert [v.name for v in expense_service.list_vendors(company.id, search="towel")] == ["Cairo Towels"]
        assert [v.name for v in expense_service.list_vendors(company.id, search="nbs")] == ["Nile Beauty"]
        assert [v.name for v in expense_service.list_vendors(company.id, status="active")] == ["Cairo Towels"]

    def test_update_rules(self, db_session, company):
        vendor = _vendor(company, code="NBS")
        other = _vendor(company, "Cairo Towels", code="CT")

        with pytest.raises(ValidationError):
            expense_service.update_vendor(company_id=company.id, vendor_id=vendor.id, total_amount_cents=0)
        with pytest.raises(ValidationError):
            expense_service.update_vendor(company_id=company.id, vendor_id=vendor.id, status="retired")
        with pytest.raises(ValidationError):
            expense_service.update_vendor(company_id=company.id, vendor_id=other.id, code="NBS")

        updated = expense_service.update_vendor(
            company_id=company.id, vendor_id=vendor.id, phone="+20 100 000 0000", payment_terms="net 30"
        )
        assert updated.phone == "+20 100 000 0000"
        assert updated.payment_terms == "net 30"

    def test_other_company_vendor_not_found(self, db_session, company, other_company):
        vendor = _vendor(other_company)
        with pytest.raises(VendorNotFound):
            expense_service.get_vendor(company.id, vendor.id)


# =============================================================================
# EXPENSE POSTINGS
# =============================================================================


class TestExpensePostings:

    def test_vendor_counters_follow_postings(self, db_session, company, cash_account):
        vendor = _vendor(company)
        _expense(company, cash_account, 200, vendor_id=vendor.id)
        txn = _expense(company, cash_account, 100, tax_cents=14, vendor_id=vendor.id)

        assert txn.vendor_id == vendor.id
        vendor = expense_service.get_vendor(company.id, vendor.id)
        assert vendor.total_transactions == 2
        assert vendor.total_amount_cents == 314
        assert ledger_service.get_account(company.id, cash_account.id).current_balance_cents == 686

    def test_category_name_fills_missing_category(self, db_session, company, cash_account):
        supplies = _category(company, "Supplies")
        txn = _expense(company, cash_account, category=None, expense_category_id=supplies.id)
        assert txn.category == "Supplies"
        assert txn.expense_category_id == supplies.id

    def test_unknown_vendor_moves_no_money(self, db_session, company, cash_account):
        with pytest.raises(VendorNotFound):
            _expense(company, cash_account, vendor_id=9999)
        assert ledger_service.get_account(company.id, cash_account.id).current_balance_cents == 1000
        assert db_session.query(FinancialTransaction).filter_by(category="supplies").count() == 0

    def test_other_company_category_not_found(self, db_session, company, other_company, cash_account):
        foreign = _category(other_company, "Supplies")
        with pytest.raises(ExpenseCategoryNotFound):
            _expense(company, cash_account, expense_category_id=foreign.id)
        assert ledger_service.get_account(company.id, cash_account.id).current_balance_cents == 1000

    def test_inactive_references_refused(self, db_session, company, cash_account):
        old = _category(company, "Magazines")
        expense_service.deactivate_expense_category(company_id=company.id, category_id=old.id)
        blocked = _vendor(company)
        expense_service.update_vendor(company_id=company.id, vendor_id=blocked.id, status="blocked")

        with pytest.raises(ValidationError):
            _expense(company, cash_account, expense_category_id=old.id)
        with pytest.raises(ValidationError):
            _expense(company, cash_account, vendor_id=blocked.id)
        assert expense_service.get_vendor(company.id, blocked.id).total_transactions == 0

    def test_income_cannot_name_vendor(self, db_session, company, cash_account):
        vendor = _vendor(company)
        with pytest.raises(ValidationError):
            ledger_service.post_transaction(
                company_id=company.id,
                account_id=cash_account.id,
                type="income",
                category="refund",
                amount_cents=50,
                description="Supplier refund",
                created_by="cashier-1",
                vendor_id=vendor.id,
            )
        assert ledger_service.get_account(company.id, cash_account.id).current_balance_cents == 1000
