"""Expense categories, vendors, movement voids, alert acknowledgement

Revision ID: 20261019_expenses
Revises: 20261019_initial
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_expenses"
down_revision = "20261019_initial"
branch_labels = None
depends_on = None


NOW = sa.text("(CURRENT_TIMESTAMP)")


def upgrade():
    op.create_table(
        "expense_categories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("monthly_budget_cents", sa.Integer(), nullable=True),
        sa.Column("requires_receipt", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("sort_order", sa.Integer(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["parent_id"], ["expense_categories.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "name", name="uq_expense_categories_company_name"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("expense_categories", schema=None) as batch_op:
        batch_op.create_index("ix_expense_categories_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_expense_categories_parent_id", ["parent_id"], unique=False)
        batch_op.create_index("ix_expense_categories_is_active", ["is_active"], unique=False)

    op.create_table(
        "vendors",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(32), nullable=True),
        sa.Column("contact_person", sa.String(120), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("tax_number", sa.String(64), nullable=True),
        sa.Column("payment_terms", sa.String(64), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("total_transactions", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "code", name="uq_vendors_company_code"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("vendors", schema=None) as batch_op:
        batch_op.create_index("ix_vendors_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_vendors_status", ["status"], unique=False)
        batch_op.create_index("ix_vendors_company_name", ["company_id", "name"], unique=False)

    with op.batch_alter_table("financial_transactions", schema=None) as batch_op:
        batch_op.add_column(sa.Column("expense_category_id", sa.Integer(), nullable=True))
        batch_op.add_column(sa.Column("vendor_id", sa.Integer(), nullable=True))
        batch_op.create_foreign_key(
            "fk_financial_transactions_expense_category_id", "expense_categories", ["expense_category_id"], ["id"]
        )
        batch_op.create_foreign_key("fk_financial_transactions_vendor_id", "vendors", ["vendor_id"], ["id"])
        batch_op.create_index("ix_financial_transactions_expense_category_id", ["expense_category_id"], unique=False)
        batch_op.create_index("ix_financial_transactions_vendor_id", ["vendor_id"], unique=False)

    with op.batch_alter_table("balance_alerts", schema=None) as batch_op:
        batch_op.add_column(sa.Column("acknowledged_by", sa.String(64), nullable=True))
        batch_op.add_column(sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True))

    with op.batch_alter_table("cash_movements", schema=None) as batch_op:
        batch_op.add_column(sa.Column("reversal_transaction_id", sa.Integer(), nullable=True))
        batch_op.add_column(sa.Column("voided_by", sa.String(64), nullable=True))
        batch_op.add_column(sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True))
        batch_op.add_column(sa.Column("void_reason", sa.String(255), nullable=True))
        batch_op.create_foreign_key(
            "fk_cash_movements_reversal_transaction_id", "financial_transactions", ["reversal_transaction_id"], ["id"]
        )


def downgrade():
    with op.batch_alter_table("cash_movements", schema=None) as batch_op:
        batch_op.drop_constraint("fk_cash_movements_reversal_transaction_id", type_="foreignkey")
        batch_op.drop_column("void_reason")
        batch_op.drop_column("voided_at")
        batch_op.drop_column("voided_by")
        batch_op.drop_column("reversal_transaction_id")

    with op.batch_alter_table("balance_alerts", schema=None) as batch_op:
        batch_op.drop_column("acknowledged_at")
        batch_op.drop_column("acknowledged_by")

    with op.batch_alter_table("financial_transactions", schema=None) as batch_op:
        batch_op.drop_index("ix_financial_transactions_vendor_id")
        batch_op.drop_index("ix_financial_transactions_expense_category_id")
        batch_op.drop_constraint("fk_financial_transactions_vendor_id", type_="foreignkey")
        batch_op.drop_constraint("fk_financial_transactions_expense_category_id", type_="foreignkey")
        batch_op.drop_column("vendor_id")
        batch_op.drop_column("expense_category_id")

    op.drop_table("vendors")
    op.drop_table("expense_categories")
