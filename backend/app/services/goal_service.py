from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from backend.app.errors import ValidationError
from backend.app.intake.amounts import parse_opening_amount, parse_positive_amount
from backend.app.intake.dates import at_noon, parse_date
from backend.app.models import SavingsGoal
from backend.app.services import ledger_service, store
from backend.app.services.activity_service import MutationResult, settle_user, settled, touch
from backend.app.services.nudge_service import advance_onboarding

logger = logging.getLogger(__name__)

GOAL_FIELDS = {"name", "target_amount", "target_date"}


def _clean_name(raw: Any) -> str:
    name = str(raw or "").strip()
    if not name:
        raise ValidationError("name", "goal name is required")
    if len(name) > 200:
        raise ValidationError("name", "goal name is too long")
    return name


def _target_date(raw: Any) -> Optional[datetime]:
    if raw in (None, ""):
        return None
    # Unlike transaction dates, an unreadable target date is an input error.
    parsed = parse_date(raw)
    if parsed is None:
        raise ValidationError("target_date", f"not a date: {raw!r}")
    return at_noon(parsed)


def create_goal(db: Session, user_id: str, payload: Mapping[str, Any]) -> MutationResult:
    name = _clean_name(payload.get("name"))
    target = parse_positive_amount(payload.get("target_amount"), field="target_amount")
    target_date = _target_date(payload.get("target_date"))
    initial = parse_opening_amount(payload.get("current_amount"), field="current_amount")

    with store.atomic(db):
        user = store.lock_user(db, user_id)
        goal = store.insert(
            db,
            SavingsGoal(
                user_id=user.id,
                name=name,
                target_amount=target,
                target_date=target_date,
                current_amount=ledger_service.ZERO,
                progress_percentage=ledger_service.ZERO,
                monthly_savings=[],
            ),
        )
        if initial is not None:
            # Starting balances are recorded as the first contribution.
            ledger_service.add_to_goal(db, goal, initial)
        touch(user, "goal")
        advance_onboarding(db, user, "goal_created")
        settlement = settle_user(db, user.id, reason="goal created")
    logger.info("Created goal id=%s for user_id=%s", goal.id, user_id)
    return settled(goal, settlement)


def update_goal(db: Session, user_id: str, goal_id: str, changes: Mapping[str, Any]) -> MutationResult:
    for key in changes:
        if key not in GOAL_FIELDS:
            raise ValidationError(key, "field cannot be changed")

    with store.atomic(db):
        user = store.lock_user(db, user_id)
        goal = store.get_owned(db, SavingsGoal, goal_id, user.id)
        fields: Dict[str, Any] = {}
        if "name" in changes:
            fields["name"] = _clean_name(changes["name"])
        if "target_amount" in changes:
            fields["target_amount"] = parse_positive_amount(changes["target_amount"], field="target_amount")
        if "target_date" in changes:
            fields["target_date"] = _target_date(changes["target_date"])
        store.update_fields(db, goal, **fields)
        if "target_amount" in fields:
            ledger_service.recompute_goal_progress(goal)
        touch(user, "goal")
        settlement = settle_user(db, user.id, reason="goal updated")
    return settled(goal, settlement)


def contribute(
    db: Session,
    user_id: str,
    goal_id: str,
    amount: Any,
    *,
    today: Optional[date] = None,
) -> MutationResult:
    """Add money to a goal; a negative amount withdraws."""
    with store.atomic(db):
        user = store.lock_user(db, user_id)
        goal = store.get_owned(db, SavingsGoal, goal_id, user.id)
        ledger_service.add_to_goal(db, goal, amount, today=today)
        touch(user, "goal")
        settlement = settle_user(db, user.id, reason="goal contribution")
    return settled(goal, settlement)


def delete_goal(db: Session, user_id: str, goal_id: str) -> MutationResult:
    with store.atomic(db):
        user = store.lock_user(db, user_id)
        goal = store.get_owned(db, SavingsGoal, goal_id, user.id)
        store.delete(db, goal)
        touch(user, "goal")
        settlement = settle_user(db, user.id, reason="goal deleted")
    return settled(goal_id, settlement)


def get_goal(db: Session, user_id: str, goal_id: str) -> SavingsGoal:
    return store.get_owned(db, SavingsGoal, goal_id, user_id)


def list_goals(db: Session, user_id: str) -> List[SavingsGoal]:
    return store.list_owned(db, SavingsGoal, user_id, order_by=SavingsGoal.created_at)


def serialize_goal(goal: SavingsGoal) -> Dict[str, Any]:
    return {
        "id": goal.id,
        "name": goal.name,
        "target_amount": goal.target_amount,
        "current_amount": goal.current_amount,
        "progress_percentage": goal.progress_percentage,
        "target_date": goal.target_date.date() if goal.target_date else None,
        "monthly_savings": list(goal.monthly_savings or []),
        "created_at": goal.created_at,
        "updated_at": goal.updated_at,
    }
