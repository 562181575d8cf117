"""initial budget schema

Revision ID: 202610180900
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610180900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column("color", sa.String(length=9), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "pages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("color", sa.String(length=9), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
        ),
        sa.Column(
            "page_id", sa.Integer(), sa.ForeignKey("pages.id", ondelete="SET NULL")
        ),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("occurred_on", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_occurred_on", "transactions", ["occurred_on"])
    op.create_index(
        "ix_transactions_type_occurred_on", "transactions", ["type", "occurred_on"]
    )

    op.create_table(
        "fixed_expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("amount_per_month", sa.Float(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("owners", sa.JSON(), nullable=False),
        sa.Column(
            "level",
            sa.Enum("Må-ha", "Kjekt å ha", "Luksus", name="fixedexpenselevel"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date()),
        sa.Column("binding_end_date", sa.Date()),
        sa.Column("notice_period_months", sa.Integer()),
        sa.Column("note", sa.Text(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "amount_per_month >= 0", name="ck_fixed_expense_amount_positive"
        ),
    )

    op.create_table(
        "fixed_expense_prices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "fixed_expense_id",
            sa.Integer(),
            sa.ForeignKey("fixed_expenses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("changed_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_fixed_expense_prices_expense_at",
        "fixed_expense_prices",
        ["fixed_expense_id", "changed_at"],
    )

    op.create_table(
        "owner_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("monthly_net_income", sa.Float(), nullable=False),
        sa.Column("shared_contribution", sa.Float(), nullable=False),
        sa.Column("bank_contributions", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("name", name="uq_owner_profile_name"),
        sa.CheckConstraint("monthly_net_income >= 0", name="ck_owner_income_positive"),
        sa.CheckConstraint(
            "shared_contribution >= 0", name="ck_owner_contribution_positive"
        ),
    )

    op.create_table(
        "app_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("monthly_net_income", sa.Float(), nullable=False),
        sa.Column("default_owners", sa.JSON(), nullable=False),
        sa.Column(
            "bank_mode_enabled", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("bank_accounts", sa.JSON(), nullable=False),
        *_timestamps(),
    )


def downgrade():
    op.drop_table("app_settings")
    op.drop_table("owner_profiles")
    op.drop_index("ix_fixed_expense_prices_expense_at", table_name="fixed_expense_prices")
    op.drop_table("fixed_expense_prices")
    op.drop_table("fixed_expenses")
    op.drop_index("ix_transactions_type_occurred_on", table_name="transactions")
    op.drop_index("ix_transactions_occurred_on", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("pages")
    op.drop_table("categories")
