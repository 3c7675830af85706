from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backend.app.config import Settings, get_settings
from backend.app.errors import NudgeStateError, ValidationError
from backend.app.models import (
    NUDGE_STATUSES,
    ONBOARDING_STAGES,
    BudgetCategory,
    Nudge,
    SavingsGoal,
    Transaction,
    User,
    utcnow,
)
from backend.app.services import store

logger = logging.getLogger(__name__)

STAGE_RANK: Dict[str, int] = {stage: rank for rank, stage in enumerate(ONBOARDING_STAGES)}

ONBOARDING_MESSAGES: Dict[str, tuple] = {
    "new": ("onboarding:create_budget", "Create your first budget category to start tracking spending."),
    "budget_created": ("onboarding:add_transaction", "Add your first transaction to see where your money goes."),
    "transaction_added": ("onboarding:create_goal", "Set a savings goal to give your budget a purpose."),
}


@dataclass(frozen=True)
class NudgeCondition:
    key: str
    type: str
    message: str
    snapshot: Dict[str, Any] = field(default_factory=dict)
    due_date: Optional[datetime] = None


@dataclass
class NudgeEvaluation:
    created: List[Nudge] = field(default_factory=list)
    completed: List[Nudge] = field(default_factory=list)

    @property
    def changed(self) -> List[Nudge]:
        return self.created + self.completed


# -------------------------
# Onboarding
# -------------------------

def advance_onboarding(db: Session, user: User, stage: str) -> bool:
    """
    Move the user's onboarding stage forward to `stage`; never backwards.
    Once a budget, a transaction and a goal all exist the stage is `completed`.
    """
    if stage not in STAGE_RANK:
        raise ValidationError("stage", f"unknown onboarding stage {stage!r}")
    before = user.onboarding_stage or "new"
    target = stage if STAGE_RANK[stage] > STAGE_RANK.get(before, 0) else before

    if STAGE_RANK[target] < STAGE_RANK["completed"] and _has_all_milestones(db, user.id):
        target = "completed"

    if target == before:
        return False
    user.onboarding_stage = target
    user.onboarding_completed = target == "completed"
    db.flush()
    logger.info("Onboarding for user_id=%s advanced %s -> %s", user.id, before, target)
    return True


def _count(db: Session, model, user_id: str) -> int:
    return db.execute(
        select(func.count()).select_from(model).where(model.user_id == user_id)
    ).scalar_one()


def _has_all_milestones(db: Session, user_id: str) -> bool:
    db.flush()
    return all(_count(db, model, user_id) > 0 for model in (BudgetCategory, Transaction, SavingsGoal))


# -------------------------
# Conditions
# -------------------------

def _older_than(ts: Optional[datetime], now: datetime, days: int) -> bool:
    return ts is not None and now - ts > timedelta(days=days)


def evaluate_conditions(
    user: User,
    budgets: Sequence[BudgetCategory],
    goals: Sequence[SavingsGoal],
    transaction_count: int,
    *,
    now: datetime,
    settings: Settings,
) -> List[NudgeCondition]:
    """
    Pure: the nudge conditions currently true for this user, in catalog order.
    """
    conditions: List[NudgeCondition] = []

    stage = user.onboarding_stage or "new"
    if stage in ONBOARDING_MESSAGES:
        key, message = ONBOARDING_MESSAGES[stage]
        conditions.append(
            NudgeCondition(key=key, type="onboarding", message=message, snapshot={"onboarding_stage": stage})
        )

    if transaction_count > 0 and _older_than(
        user.last_transaction_at, now, settings.nudge_transaction_inactive_days
    ):
        conditions.append(
            NudgeCondition(
                key="transaction:inactive",
                type="transaction",
                message="You haven't logged a transaction in a while. Add recent spending to keep your score current.",
                snapshot={
                    "last_transaction_at": user.last_transaction_at.isoformat(),
                    "threshold_days": settings.nudge_transaction_inactive_days,
                },
            )
        )

    for goal in goals:
        progress = Decimal(goal.progress_percentage or 0)
        if progress >= 100:
            conditions.append(
                NudgeCondition(
                    key=f"goal:reached:{goal.id}",
                    type="goal",
                    message=f"You reached your '{goal.name}' goal. Time to set the next one!",
                    snapshot={"goal_id": goal.id, "progress_percentage": str(progress)},
                )
            )
        elif _older_than(goal.updated_at, now, settings.nudge_goal_stale_days):
            conditions.append(
                NudgeCondition(
                    key=f"goal:stale:{goal.id}",
                    type="goal",
                    message=f"Your '{goal.name}' goal is at {progress:.0f}%. Add a contribution to keep it moving.",
                    snapshot={
                        "goal_id": goal.id,
                        "progress_percentage": str(progress),
                        "last_update": goal.updated_at.isoformat(),
                    },
                    due_date=goal.target_date,
                )
            )

    for budget in budgets:
        spent = Decimal(budget.spent_amount or 0)
        limit = Decimal(budget.budget_amount or 0)
        if spent > limit:
            conditions.append(
                NudgeCondition(
                    key=f"budget:exceeded:{budget.id}",
                    type="budget",
                    message=f"You're over budget on {budget.name} by ${spent - limit:.2f}.",
                    snapshot={"budget_id": budget.id, "spent": str(spent), "budget": str(limit)},
                )
            )

    if budgets and _older_than(user.last_budget_update_at, now, settings.nudge_budget_review_days):
        conditions.append(
            NudgeCondition(
                key="budget:review",
                type="budget",
                message="It's been a month since you reviewed your budget. Check that your limits still fit.",
                snapshot={"last_budget_update_at": user.last_budget_update_at.isoformat()},
            )
        )

    return conditions


def evaluate_nudges(db: Session, user_id: str, *, now: Optional[datetime] = None) -> NudgeEvaluation:
    """
    Create one active nudge per newly true condition and complete active
    nudges whose condition no longer holds. Runs inside the caller's unit of work.

    Keys are not re-nudged while dismissed within the cooldown, or after the
    user completed the nudge until the condition has been false once.
    """
    settings = get_settings()
    now = now or utcnow()
    db.flush()

    user = db.get(User, user_id)
    if user is None:
        return NudgeEvaluation()

    budgets = store.list_owned(db, BudgetCategory, user_id)
    goals = store.list_owned(db, SavingsGoal, user_id)
    conditions = evaluate_conditions(
        user,
        budgets,
        goals,
        _count(db, Transaction, user_id),
        now=now,
        settings=settings,
    )
    true_keys = {condition.key for condition in conditions}

    result = NudgeEvaluation()
    active = store.list_owned(db, Nudge, user_id, Nudge.status == "active")
    active_by_key = {nudge.condition_key: nudge for nudge in active}

    for nudge in active:
        if nudge.condition_key not in true_keys:
            nudge.status = "completed"
            nudge.completed_at = now
            result.completed.append(nudge)

    cooldown_start = now - timedelta(days=settings.nudge_dismiss_cooldown_days)
    recently_dismissed = {
        nudge.condition_key
        for nudge in store.list_owned(
            db,
            Nudge,
            user_id,
            Nudge.status == "dismissed",
            Nudge.dismissed_at >= cooldown_start,
        )
    }

    held = set()
    for nudge in store.list_owned(db, Nudge, user_id, Nudge.held.is_(True)):
        if nudge.condition_key in true_keys:
            held.add(nudge.condition_key)
        else:
            nudge.held = False

    for condition in conditions:
        key = condition.key
        if key in active_by_key or key in recently_dismissed or key in held:
            continue
        snapshot = {"condition": condition.key, "evaluated_at": now.isoformat(), **condition.snapshot}
        nudge = Nudge(
            user_id=user_id,
            type=condition.type,
            message=condition.message,
            status="active",
            condition_key=condition.key,
            trigger_condition=json.dumps(snapshot, sort_keys=True),
            due_date=condition.due_date,
            created_at=now,
        )
        store.insert(db, nudge)
        active_by_key[condition.key] = nudge
        result.created.append(nudge)

    db.flush()
    if result.created or result.completed:
        logger.info(
            "Nudges for user_id=%s: %d created, %d completed",
            user_id,
            len(result.created),
            len(result.completed),
        )
    return result


# -------------------------
# Use cases
# -------------------------

def list_nudges(db: Session, user_id: str, *, status: Optional[str] = None) -> List[Nudge]:
    criteria = []
    if status is not None:
        if status not in NUDGE_STATUSES:
            raise ValidationError("status", f"unknown nudge status {status!r}")
        criteria.append(Nudge.status == status)
    return store.list_owned(db, Nudge, user_id, *criteria, order_by=Nudge.created_at.desc())


def check_nudges(db: Session, user_id: str) -> NudgeEvaluation:
    with store.atomic(db):
        store.lock_user(db, user_id)
        result = evaluate_nudges(db, user_id)
    return result


def _transition(db: Session, user_id: str, nudge_id: str, status: str) -> Nudge:
    with store.atomic(db):
        store.lock_user(db, user_id)
        nudge = store.get_owned(db, Nudge, nudge_id, user_id)
        if nudge.status != "active":
            raise NudgeStateError(nudge.id, nudge.status)
        now = utcnow()
        nudge.status = status
        if status == "dismissed":
            nudge.dismissed_at = now
        else:
            nudge.completed_at = now
            nudge.held = True
        db.flush()
    return nudge


def dismiss_nudge(db: Session, user_id: str, nudge_id: str) -> Nudge:
    return _transition(db, user_id, nudge_id, "dismissed")


def complete_nudge(db: Session, user_id: str, nudge_id: str) -> Nudge:
    return _transition(db, user_id, nudge_id, "completed")


def serialize_nudge(nudge: Nudge) -> Dict[str, Any]:
    try:
        trigger = json.loads(nudge.trigger_condition or "{}")
    except ValueError:
        trigger = {}
    return {
        "id": nudge.id,
        "type": nudge.type,
        "message": nudge.message,
        "status": nudge.status,
        "condition_key": nudge.condition_key,
        "trigger_condition": trigger,
        "due_date": nudge.due_date,
        "created_at": nudge.created_at,
        "dismissed_at": nudge.dismissed_at,
        "completed_at": nudge.completed_at,
    }
