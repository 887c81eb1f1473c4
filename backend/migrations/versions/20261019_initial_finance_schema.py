"""Initial finance schema: tenancy, ledger, register sessions, sales, stock

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


NOW = sa.text("(CURRENT_TIMESTAMP)")


def upgrade():
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(32), nullable=True),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("companies", schema=None) as batch_op:
        batch_op.create_index("ix_companies_code", ["code"], unique=True)
        batch_op.create_index("ix_companies_is_active", ["is_active"], unique=False)

    op.create_table(
        "branches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("code", sa.String(32), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("tax_rate_bps", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "name", name="uq_branches_company_name"),
        sa.UniqueConstraint("company_id", "code", name="uq_branches_company_code"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("branches", schema=None) as batch_op:
        batch_op.create_index("ix_branches_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_branches_code", ["code"], unique=False)

    op.create_table(
        "financial_accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("branch_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("opening_balance_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("opening_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_balance_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("allow_negative_balance", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("low_balance_threshold_cents", sa.Integer(), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("system_code", sa.String(32), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("updated_by", sa.String(64), nullable=True),
        sa.Column("closed_by", sa.String(64), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["branch_id"], ["branches.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("financial_accounts", schema=None) as batch_op:
        batch_op.create_index("ix_financial_accounts_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_financial_accounts_branch_id", ["branch_id"], unique=False)
        batch_op.create_index("ix_financial_accounts_status", ["status"], unique=False)
        batch_op.create_index("ix_accounts_company_type_status", ["company_id", "type", "status"], unique=False)
        batch_op.create_index("ix_accounts_branch_system_code", ["branch_id", "system_code"], unique=False)

    op.create_table(
        "financial_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("branch_id", sa.Integer(), nullable=True),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("account_name", sa.String(128), nullable=True),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("tax_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False),
        sa.Column("payment_method", sa.String(32), nullable=False, server_default="other"),
        sa.Column("is_transfer", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("transfer_account_id", sa.Integer(), nullable=True),
        sa.Column("transfer_direction", sa.String(8), nullable=True),
        sa.Column("linked_transaction_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="completed"),
        sa.Column("description", sa.String(255), nullable=False, server_default=""),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("reference_type", sa.String(32), nullable=True),
        sa.Column("reference_id", sa.String(64), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["branch_id"], ["branches.id"]),
        sa.ForeignKeyConstraint(["account_id"], ["financial_accounts.id"]),
        sa.ForeignKeyConstraint(["transfer_account_id"], ["financial_accounts.id"]),
        sa.ForeignKeyConstraint(["linked_transaction_id"], ["financial_transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("financial_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_financial_transactions_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_financial_transactions_branch_id", ["branch_id"], unique=False)
        batch_op.create_index("ix_financial_transactions_account_id", ["account_id"], unique=False)
        batch_op.create_index("ix_financial_transactions_type", ["type"], unique=False)
        batch_op.create_index("ix_financial_transactions_category", ["category"], unique=False)
        batch_op.create_index("ix_financial_transactions_status", ["status"], unique=False)
        batch_op.create_index("ix_financial_transactions_occurred_at", ["occurred_at"], unique=False)
        batch_op.create_index("ix_fin_txns_company_occurred", ["company_id", "occurred_at"], unique=False)
        batch_op.create_index("ix_fin_txns_account_occurred", ["account_id", "occurred_at"], unique=False)
        batch_op.create_index("ix_fin_txns_reference", ["reference_type", "reference_id"], unique=False)

    op.create_table(
        "balance_alerts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("balance_cents", sa.Integer(), nullable=False),
        sa.Column("threshold_cents", sa.Integer(), nullable=False),
        sa.Column("acknowledged", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["account_id"], ["financial_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("balance_alerts", schema=None) as batch_op:
        batch_op.create_index("ix_balance_alerts_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_balance_alerts_account_id", ["account_id"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=True),
        sa.Column("cost_cents", sa.Integer(), nullable=True),
        sa.Column("track_inventory", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "sku", name="uq_products_company_sku"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_products_company_name", ["company_id", "name"], unique=False)

    op.create_table(
        "branch_stock",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("branch_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["branch_id"], ["branches.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", "branch_id", name="uq_branch_stock_product_branch"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("branch_stock", schema=None) as batch_op:
        batch_op.create_index("ix_branch_stock_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_branch_stock_branch_id", ["branch_id"], unique=False)

    op.create_table(
        "inventory_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("branch_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("quantity_requested", sa.Integer(), nullable=False),
        sa.Column("quantity_delta", sa.Integer(), nullable=False),
        sa.Column("reference", sa.String(64), nullable=True),
        sa.Column("reference_id", sa.String(64), nullable=True),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["branch_id"], ["branches.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("inventory_movements", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_movements_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_inventory_movements_branch_id", ["branch_id"], unique=False)
        batch_op.create_index("ix_inventory_movements_type", ["type"], unique=False)
        batch_op.create_index("ix_inventory_movements_product_branch", ["product_id", "branch_id"], unique=False)

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("branch_id", sa.Integer(), nullable=False),
        sa.Column("sequence_key", sa.String(32), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["branch_id"], ["branches.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("branch_id", "sequence_key", name="uq_doc_sequences_branch_key"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("document_sequences", schema=None) as batch_op:
        batch_op.create_index("ix_document_sequences_branch_id", ["branch_id"], unique=False)

    op.create_table(
        "cash_register_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("branch_id", sa.Integer(), nullable=False),
        sa.Column("register_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="open"),
        sa.Column("reconciled", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("cash_account_id", sa.Integer(), nullable=False),
        sa.Column("card_account_id", sa.Integer(), nullable=True),
        sa.Column("bank_account_id", sa.Integer(), nullable=True),
        sa.Column("digital_wallet_account_id", sa.Integer(), nullable=True),
        sa.Column("over_short_account_id", sa.Integer(), nullable=True),
        sa.Column("opened_by", sa.String(64), nullable=False),
        sa.Column("opened_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("closed_by", sa.String(64), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("suspended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("suspend_reason", sa.String(255), nullable=True),
        sa.Column("transaction_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_expected_cents", sa.Integer(), nullable=True),
        sa.Column("total_actual_cents", sa.Integer(), nullable=True),
        sa.Column("total_discrepancy_cents", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("discrepancy_notes", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["branch_id"], ["branches.id"]),
        sa.ForeignKeyConstraint(["cash_account_id"], ["financial_accounts.id"]),
        sa.ForeignKeyConstraint(["card_account_id"], ["financial_accounts.id"]),
        sa.ForeignKeyConstraint(["bank_account_id"], ["financial_accounts.id"]),
        sa.ForeignKeyConstraint(["digital_wallet_account_id"], ["financial_accounts.id"]),
        sa.ForeignKeyConstraint(["over_short_account_id"], ["financial_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("cash_register_sessions", schema=None) as batch_op:
        batch_op.create_index("ix_cash_register_sessions_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_cash_register_sessions_branch_id", ["branch_id"], unique=False)
        batch_op.create_index("ix_cash_register_sessions_status", ["status"], unique=False)
        batch_op.create_index("ix_cash_register_sessions_opened_by", ["opened_by"], unique=False)
        batch_op.create_index("ix_cash_register_sessions_opened_at", ["opened_at"], unique=False)
        batch_op.create_index("ix_register_sessions_branch_status", ["branch_id", "status"], unique=False)

    live = sa.text("status IN ('open', 'suspended')")
    op.create_index(
        "uq_register_sessions_live",
        "cash_register_sessions",
        ["branch_id", "register_id"],
        unique=True,
        sqlite_where=live,
        postgresql_where=live,
    )

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("branch_id", sa.Integer(), nullable=False),
        sa.Column("sale_number", sa.String(64), nullable=False),
        sa.Column("receipt_number", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("source", sa.String(16), nullable=False, server_default="pos"),
        sa.Column("customer_id", sa.String(64), nullable=True),
        sa.Column("customer_name", sa.String(128), nullable=True),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("staff_id", sa.String(64), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_paid_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("change_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_cost_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("register_session_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", sa.String(64), nullable=True),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voided_by", sa.String(64), nullable=True),
        sa.Column("void_reason", sa.String(255), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["branch_id"], ["branches.id"]),
        sa.ForeignKeyConstraint(["register_session_id"], ["cash_register_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("branch_id", "sale_number", name="uq_sales_branch_sale_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index("ix_sales_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_sales_branch_id", ["branch_id"], unique=False)
        batch_op.create_index("ix_sales_receipt_number", ["receipt_number"], unique=False)
        batch_op.create_index("ix_sales_status", ["status"], unique=False)
        batch_op.create_index("ix_sales_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_sales_staff_id", ["staff_id"], unique=False)
        batch_op.create_index("ix_sales_register_session_id", ["register_session_id"], unique=False)
        batch_op.create_index("ix_sales_company_status_created", ["company_id", "status", "created_at"], unique=False)

    op.create_table(
        "sale_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("discount_type", sa.String(16), nullable=False, server_default="fixed"),
        sa.Column("discount_value", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("unit_cost_cents", sa.Integer(), nullable=True),
        sa.Column("inventory_movement_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["inventory_movement_id"], ["inventory_movements.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_items", schema=None) as batch_op:
        batch_op.create_index("ix_sale_items_sale_id", ["sale_id"], unique=False)

    op.create_table(
        "sale_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("method", sa.String(32), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("reference", sa.String(128), nullable=True),
        sa.Column("account_id", sa.Integer(), nullable=True),
        sa.Column("posted_amount_cents", sa.Integer(), nullable=True),
        sa.Column("transaction_id", sa.Integer(), nullable=True),
        sa.Column("reversal_transaction_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["account_id"], ["financial_accounts.id"]),
        sa.ForeignKeyConstraint(["transaction_id"], ["financial_transactions.id"]),
        sa.ForeignKeyConstraint(["reversal_transaction_id"], ["financial_transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_payments", schema=None) as batch_op:
        batch_op.create_index("ix_sale_payments_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_sale_payments_method", ["method"], unique=False)

    op.create_table(
        "session_account_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("account_name", sa.String(128), nullable=True),
        sa.Column("account_type", sa.String(32), nullable=True),
        sa.Column("opening_balance_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("transaction_total_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("adjustments_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("expected_balance_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("actual_balance_cents", sa.Integer(), nullable=True),
        sa.Column("discrepancy_cents", sa.Integer(), nullable=True),
        sa.Column("discrepancy_transaction_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["session_id"], ["cash_register_sessions.id"]),
        sa.ForeignKeyConstraint(["account_id"], ["financial_accounts.id"]),
        sa.ForeignKeyConstraint(["discrepancy_transaction_id"], ["financial_transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "account_id", name="uq_session_account_movements"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("session_account_movements", schema=None) as batch_op:
        batch_op.create_index("ix_session_account_movements_session_id", ["session_id"], unique=False)
        batch_op.create_index("ix_session_account_movements_account_id", ["account_id"], unique=False)

    op.create_table(
        "cash_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("from_account_id", sa.Integer(), nullable=True),
        sa.Column("to_account_id", sa.Integer(), nullable=True),
        sa.Column("payment_method", sa.String(32), nullable=True),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("transaction_id", sa.Integer(), nullable=True),
        sa.Column("linked_transaction_id", sa.Integer(), nullable=True),
        sa.Column("sale_id", sa.Integer(), nullable=True),
        sa.Column("performed_by", sa.String(64), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["session_id"], ["cash_register_sessions.id"]),
        sa.ForeignKeyConstraint(["from_account_id"], ["financial_accounts.id"]),
        sa.ForeignKeyConstraint(["to_account_id"], ["financial_accounts.id"]),
        sa.ForeignKeyConstraint(["transaction_id"], ["financial_transactions.id"]),
        sa.ForeignKeyConstraint(["linked_transaction_id"], ["financial_transactions.id"]),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("cash_movements", schema=None) as batch_op:
        batch_op.create_index("ix_cash_movements_session_id", ["session_id"], unique=False)
        batch_op.create_index("ix_cash_movements_type", ["type"], unique=False)
        batch_op.create_index("ix_cash_movements_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_cash_movements_session_occurred", ["session_id", "occurred_at"], unique=False)


def downgrade():
    op.drop_table("cash_movements")
    op.drop_table("session_account_movements")
    op.drop_table("sale_payments")
    op.drop_table("sale_items")
    op.drop_table("sales")
    op.drop_index("uq_register_sessions_live", table_name="cash_register_sessions")
    op.drop_table("cash_register_sessions")
    op.drop_table("document_sequences")
    op.drop_table("inventory_movements")
    op.drop_table("branch_stock")
    op.drop_table("products")
    op.drop_table("balance_alerts")
    op.drop_table("financial_transactions")
    op.drop_table("financial_accounts")
    op.drop_table("branches")
    op.drop_table("companies")
