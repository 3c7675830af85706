from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.db import Base


# -------------------------
# Helpers
# -------------------------

# Stored datetimes are naive UTC; SQLite drops tzinfo on the way back anyway.
def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def uuid_str() -> str:
    return str(uuid.uuid4())


Money = Numeric(12, 2, asdecimal=True)

ONBOARDING_STAGES = ("new", "budget_created", "transaction_added", "goal_created", "completed")
TRANSACTION_TYPES = ("income", "expense")
TRANSACTION_SOURCES = ("manual", "batch-import", "provider-sync")
NUDGE_STATUSES = ("active", "dismissed", "completed")


# -------------------------
# Core models
# -------------------------

class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    onboarding_stage: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="new",
        server_default=text("'new'"),
    )
    onboarding_completed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    login_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_transaction_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_goal_update_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_budget_update_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Transaction(Base):
    """
    Canonical transaction: unsigned amount + explicit type, date pinned to noon.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_user_id_date", "user_id", "date"),
        Index("ix_transactions_user_id_category", "user_id", "category"),
        Index("ix_transactions_user_id_external_id", "user_id", "external_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)  # income | expense
    merchant: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(120), nullable=False, default="Uncategorized")
    subcategory: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    icon: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    account: Mapped[str] = mapped_column(String(120), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    source: Mapped[str] = mapped_column(String(20), nullable=False, default="manual")
    external_id: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)  # provider transaction id
    is_duplicate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class BudgetCategory(Base):
    __tablename__ = "budget_categories"
    __table_args__ = (
        UniqueConstraint("user_id", "name_key", name="uq_budget_categories_user_name_key"),
        Index("ix_budget_categories_user_id", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    name_key: Mapped[str] = mapped_column(String(120), nullable=False)  # lower(strip(name))
    budget_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    # Written only by ledger_service.
    spent_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class SavingsGoal(Base):
    __tablename__ = "savings_goals"
    __table_args__ = (
        Index("ix_savings_goals_user_id", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    target_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    target_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Written only by ledger_service.
    current_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    progress_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2, asdecimal=True),
        nullable=False,
        default=Decimal("0.00"),
    )
    # [{"month": "YYYY-MM", "amount": "12.34"}, ...]
    monthly_savings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class ScoreRecord(Base):
    """
    The single live health score row per user (upserted).
    """
    __tablename__ = "score_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    budget_adherence: Mapped[int] = mapped_column(Integer, nullable=False)
    savings_progress: Mapped[int] = mapped_column(Integer, nullable=False)
    weekly_activity: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class ScoreHistory(Base):
    """
    Append-only trail of score changes.
    """
    __tablename__ = "score_history"
    __table_args__ = (
        Index("ix_score_history_user_id_created_at", "user_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    change: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    change_factors: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Nudge(Base):
    __tablename__ = "nudges"
    __table_args__ = (
        Index("ix_nudges_user_id_status", "user_id", "status"),
        Index("ix_nudges_user_id_condition_key", "user_id", "condition_key"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)  # onboarding | transaction | goal | budget
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    condition_key: Mapped[str] = mapped_column(String(120), nullable=False)
    trigger_condition: Mapped[str] = mapped_column(Text, nullable=False)  # serialized JSON snapshot
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    # Completed by the user while the condition still held; blocks a new
    # nudge for the same key until the condition has been false once.
    held: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    dismissed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class LinkedAccount(Base):
    """
    A funding account the user tracks (bank, credit card, cash, provider item).
    """
    __tablename__ = "linked_accounts"
    __table_args__ = (
        Index("ix_linked_accounts_user_id", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False, default="bank")
    institution_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    last_four: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    provider_item_id: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


# Every table holding rows owned by a user, children before parent.
OWNED_MODELS = (
    Nudge,
    ScoreHistory,
    ScoreRecord,
    Transaction,
    BudgetCategory,
    SavingsGoal,
    LinkedAccount,
)
