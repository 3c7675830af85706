"""initial finance schema

Revision ID: a3f1c9e2b7d4
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "a3f1c9e2b7d4"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _money() -> sa.Numeric:
    return sa.Numeric(precision=12, scale=2, asdecimal=True)


def _owner() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("onboarding_stage", sa.String(length=32), server_default=sa.text("'new'"), nullable=False),
        sa.Column("onboarding_completed", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("login_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("last_transaction_at", sa.DateTime(), nullable=True),
        sa.Column("last_goal_update_at", sa.DateTime(), nullable=True),
        sa.Column("last_budget_update_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("amount", _money(), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("merchant", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=120), nullable=False),
        sa.Column("subcategory", sa.String(length=120), nullable=True),
        sa.Column("icon", sa.String(length=16), nullable=True),
        sa.Column("color", sa.String(length=16), nullable=True),
        sa.Column("account", sa.String(length=120), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("external_id", sa.String(length=120), nullable=True),
        sa.Column("is_duplicate", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        _owner(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_transactions_user_id_date", "transactions", ["user_id", "date"], unique=False)
    op.create_index("ix_transactions_user_id_category", "transactions", ["user_id", "category"], unique=False)
    op.create_index("ix_transactions_user_id_external_id", "transactions", ["user_id", "external_id"], unique=False)

    op.create_table(
        "budget_categories",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("name_key", sa.String(length=120), nullable=False),
        sa.Column("budget_amount", _money(), nullable=False),
        sa.Column("spent_amount", _money(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        _owner(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "name_key", name="uq_budget_categories_user_name_key"),
    )
    op.create_index("ix_budget_categories_user_id", "budget_categories", ["user_id"], unique=False)

    op.create_table(
        "savings_goals",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("target_amount", _money(), nullable=False),
        sa.Column("target_date", sa.DateTime(), nullable=True),
        sa.Column("current_amount", _money(), nullable=False),
        sa.Column("progress_percentage", sa.Numeric(precision=5, scale=2, asdecimal=True), nullable=False),
        sa.Column("monthly_savings", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        _owner(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_savings_goals_user_id", "savings_goals", ["user_id"], unique=False)

    op.create_table(
        "score_records",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("budget_adherence", sa.Integer(), nullable=False),
        sa.Column("savings_progress", sa.Integer(), nullable=False),
        sa.Column("weekly_activity", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        _owner(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )

    op.create_table(
        "score_history",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("previous_score", sa.Integer(), nullable=True),
        sa.Column("change", sa.Integer(), nullable=True),
        sa.Column("reason", sa.String(length=200), nullable=True),
        sa.Column("change_factors", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        _owner(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_score_history_user_id_created_at", "score_history", ["user_id", "created_at"], unique=False
    )

    op.create_table(
        "nudges",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("condition_key", sa.String(length=120), nullable=False),
        sa.Column("trigger_condition", sa.Text(), nullable=False),
        sa.Column("due_date", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("dismissed_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        _owner(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_nudges_user_id_status", "nudges", ["user_id", "status"], unique=False)
    op.create_index("ix_nudges_user_id_condition_key", "nudges", ["user_id", "condition_key"], unique=False)

    op.create_table(
        "linked_accounts",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("type", sa.String(length=30), nullable=False),
        sa.Column("institution_name", sa.String(length=200), nullable=True),
        sa.Column("last_four", sa.String(length=4), nullable=True),
        sa.Column("provider_item_id", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        _owner(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_linked_accounts_user_id", "linked_accounts", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_linked_accounts_user_id", table_name="linked_accounts")
    op.drop_table("linked_accounts")
    op.drop_index("ix_nudges_user_id_condition_key", table_name="nudges")
    op.drop_index("ix_nudges_user_id_status", table_name="nudges")
    op.drop_table("nudges")
    op.drop_index("ix_score_history_user_id_created_at", table_name="score_history")
    op.drop_table("score_history")
    op.drop_table("score_records")
    op.drop_index("ix_savings_goals_user_id", table_name="savings_goals")
    op.drop_table("savings_goals")
    op.drop_index("ix_budget_categories_user_id", table_name="budget_categories")
    op.drop_table("budget_categories")
    op.drop_index("ix_transactions_user_id_external_id", table_name="transactions")
    op.drop_index("ix_transactions_user_id_category", table_name="transactions")
    op.drop_index("ix_transactions_user_id_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("users")
