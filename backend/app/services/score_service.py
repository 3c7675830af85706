from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.config import get_settings
from backend.app.models import BudgetCategory, ScoreHistory, ScoreRecord, Transaction, User, utcnow
from backend.app.services import store

logger = logging.getLogger(__name__)


WEIGHTS: Dict[str, Decimal] = {
    "budget_adherence": Decimal("0.5"),
    "savings_progress": Decimal("0.3"),
    "weekly_activity": Decimal("0.2"),
}

ACTIVITY_POINTS_PER_TXN = 10


@dataclass(frozen=True)
class ScoreBreakdown:
    score: int
    budget_adherence: int
    savings_progress: int
    weekly_activity: int


def _round(value: Decimal) -> int:
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _clamp(value: int) -> int:
    return max(0, min(100, int(value)))


def budget_adherence(budgets: Sequence[Any]) -> int:
    if not budgets:
        return 0
    under = sum(
        1 for b in budgets if Decimal(b.spent_amount or 0) <= Decimal(b.budget_amount or 0)
    )
    return _clamp(_round(Decimal(100) * under / len(budgets)))


def savings_progress(transactions: Iterable[Any]) -> int:
    income = Decimal(0)
    expenses = Decimal(0)
    for txn in transactions:
        amount = abs(Decimal(txn.amount or 0))
        if txn.type == "income":
            income += amount
        elif txn.type == "expense":
            expenses += amount
    if income <= 0:
        return 0
    rate = max(Decimal(0), (income - expenses) / income)
    return _clamp(_round(Decimal(100) * rate))


def weekly_activity(transactions: Iterable[Any], *, today: date, days: int) -> int:
    start = today - timedelta(days=days)
    recent = sum(1 for txn in transactions if start < txn.date.date() <= today)
    return _clamp(recent * ACTIVITY_POINTS_PER_TXN)


def compute_breakdown(
    budgets: Sequence[Any],
    transactions: Sequence[Any],
    *,
    login_count: int,
    today: date,
    activity_days: int = 7,
    floor: int = 10,
) -> ScoreBreakdown:
    """
    Pure score computation. Every value is clamped to [0, 100].
    """
    adherence = budget_adherence(budgets)
    savings = savings_progress(transactions)
    activity = weekly_activity(transactions, today=today, days=activity_days)

    if budgets or transactions:
        weighted = (
            WEIGHTS["budget_adherence"] * adherence
            + WEIGHTS["savings_progress"] * savings
            + WEIGHTS["weekly_activity"] * activity
        )
        score = _clamp(_round(weighted))
    elif (login_count or 0) > 0:
        score = _clamp(floor)
    else:
        score = 0

    return ScoreBreakdown(
        score=score,
        budget_adherence=adherence,
        savings_progress=savings,
        weekly_activity=activity,
    )


def recompute_score(
    db: Session,
    user_id: str,
    *,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ScoreRecord:
    """
    Recompute from current state and upsert the live ScoreRecord.
    A history row is appended when the score moves (or on the first record).
    Runs inside the caller's unit of work.
    """
    settings = get_settings()
    now = now or utcnow()
    db.flush()

    user = db.get(User, user_id)
    budgets = store.list_owned(db, BudgetCategory, user_id)
    transactions = store.list_owned(db, Transaction, user_id)

    breakdown = compute_breakdown(
        budgets,
        transactions,
        login_count=user.login_count if user else 0,
        today=now.date(),
        activity_days=settings.weekly_activity_days,
        floor=settings.score_floor,
    )

    record = db.execute(select(ScoreRecord).where(ScoreRecord.user_id == user_id)).scalar_one_or_none()
    previous = record.score if record else None
    if record is None:
        record = ScoreRecord(user_id=user_id, **asdict(breakdown))
        db.add(record)
    else:
        record.score = breakdown.score
        record.budget_adherence = breakdown.budget_adherence
        record.savings_progress = breakdown.savings_progress
        record.weekly_activity = breakdown.weekly_activity
        record.updated_at = now

    if previous is None or previous != breakdown.score:
        db.add(
            ScoreHistory(
                user_id=user_id,
                score=breakdown.score,
                previous_score=previous,
                change=None if previous is None else breakdown.score - previous,
                reason=reason,
                change_factors={
                    "budget_adherence": breakdown.budget_adherence,
                    "savings_progress": breakdown.savings_progress,
                    "weekly_activity": breakdown.weekly_activity,
                },
                created_at=now,
            )
        )
        logger.info(
            "Score for user_id=%s moved %s -> %s (%s)",
            user_id,
            previous,
            breakdown.score,
            reason or "recompute",
        )

    db.flush()
    return record


def get_score(db: Session, user_id: str) -> ScoreRecord:
    record = db.execute(select(ScoreRecord).where(ScoreRecord.user_id == user_id)).scalar_one_or_none()
    if record is not None:
        return record
    with store.atomic(db):
        store.lock_user(db, user_id)
        record = recompute_score(db, user_id, reason="initial score")
    return record


def refresh_score(db: Session, user_id: str, *, reason: str = "manual recompute") -> ScoreRecord:
    with store.atomic(db):
        store.lock_user(db, user_id)
        record = recompute_score(db, user_id, reason=reason)
    return record


def list_score_history(db: Session, user_id: str, *, limit: int = 30) -> List[ScoreHistory]:
    return store.list_owned(
        db,
        ScoreHistory,
        user_id,
        order_by=ScoreHistory.created_at.desc(),
        limit=max(1, min(limit, 365)),
    )


def serialize_score(record: ScoreRecord) -> Dict[str, Any]:
    return {
        "score": record.score,
        "budget_adherence": record.budget_adherence,
        "savings_progress": record.savings_progress,
        "weekly_activity": record.weekly_activity,
        "updated_at": record.updated_at,
        "meta": {
            "model_version": "health_score_v1",
            "weights": {key: float(value) for key, value in WEIGHTS.items()},
        },
    }
