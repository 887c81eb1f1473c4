"""
Pytest fixtures for salon finance backend tests.

Provides test database setup, tenant fixtures (company, branch), accounts,
products, and a test client.
"""

import pytest
from salon_finance import create_app
from salon_finance.extensions import db
from salon_finance.models import Branch, Company
from salon_finance.services import inventory_service, ledger_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RETRY_ATTEMPTS': 1,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def company(db_session):
    """Create the salon company."""
    company = Company(name="Glow Salon", code="GLOW", currency="EGP", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def other_company(db_session):
    """Create a second, unrelated company."""
    company = Company(name="Other Salon", code="OTHER", currency="EGP", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def branch(db_session, company):
    """Create the company's main branch (no sales tax)."""
    branch = Branch(company_id=company.id, name="Downtown", code="DT", tax_rate_bps=0)
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def cash_account(db_session, company, branch):
    """Front desk cash drawer holding 1000 cents."""
    return ledger_service.create_account(
        company_id=company.id,
        branch_id=branch.id,
        name="Front Desk Cash",
        type="cash",
        created_by="owner",
        opening_balance_cents=1000,
        is_default=True,
    )


@pytest.fixture(scope='function')
def bank_account(db_session, company, branch):
    """Bank account holding 50000 cents."""
    return ledger_service.create_account(
        company_id=company.id,
        branch_id=branch.id,
        name="Main Bank",
        type="bank",
        created_by="owner",
        opening_balance_cents=50000,
        is_default=True,
    )


@pytest.fixture(scope='function')
def card_account(db_session, company, branch):
    """Card settlement account starting empty."""
    return ledger_service.create_account(
        company_id=company.id,
        branch_id=branch.id,
        name="Card Settlement",
        type="credit_card",
        created_by="owner",
        is_default=True,
    )


@pytest.fixture(scope='function')
def shampoo(db_session, company, branch):
    """Retail product with 5 units on hand."""
    product = inventory_service.create_product(
        company_id=company.id,
        sku="SHAMPOO-250",
        name="Argan Shampoo 250ml",
        price_cents=300,
        cost_cents=120,
    )
    inventory_service.receive_stock(
        company_id=company.id,
        branch_id=branch.id,
        product_id=product.id,
        quantity=5,
        actor_id="owner",
    )
    return product


@pytest.fixture(scope='function')
def cashier_headers(company):
    """Tenant and actor headers for the front desk cashier."""
    return {'X-Company-Id': str(company.id), 'X-Actor-Id': 'cashier-1'}
