from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from backend.app.errors import ValidationError
from backend.app.intake.amounts import parse_positive_amount
from backend.app.models import BudgetCategory
from backend.app.services import ledger_service, store
from backend.app.services.activity_service import MutationResult, settle_user, settled, touch
from backend.app.services.ledger_service import name_key
from backend.app.services.nudge_service import advance_onboarding

logger = logging.getLogger(__name__)


def _clean_name(raw: Any) -> str:
    name = str(raw or "").strip()
    if not name:
        raise ValidationError("name", "budget name is required")
    if len(name) > 120:
        raise ValidationError("name", "budget name is too long")
    return name


def _ensure_unique(db: Session, user_id: str, name: str, *, exclude_id: Optional[str] = None) -> None:
    existing = ledger_service.find_budget(db, user_id, name)
    if existing is not None and existing.id != exclude_id:
        raise ValidationError("name", f"a budget named {existing.name!r} already exists")


def create_budget(db: Session, user_id: str, payload: Mapping[str, Any]) -> MutationResult:
    name = _clean_name(payload.get("name"))
    amount = parse_positive_amount(payload.get("budget_amount", payload.get("amount")), field="budget_amount")

    with store.atomic(db):
        user = store.lock_user(db, user_id)
        _ensure_unique(db, user.id, name)
        budget = store.insert(
            db,
            BudgetCategory(user_id=user.id, name=name, name_key=name_key(name), budget_amount=amount),
        )
        # Spending already logged under this category counts from day one.
        ledger_service.recompute_category(db, budget)
        touch(user, "budget")
        advance_onboarding(db, user, "budget_created")
        settlement = settle_user(db, user.id, reason="budget created")
    logger.info("Created budget id=%s (%s) for user_id=%s", budget.id, budget.name, user_id)
    return settled(budget, settlement)


def update_budget(
    db: Session,
    user_id: str,
    budget_id: str,
    changes: Mapping[str, Any],
) -> MutationResult:
    allowed = {"name", "budget_amount"}
    for key in changes:
        if key not in allowed:
            raise ValidationError(key, "field cannot be changed")

    with store.atomic(db):
        user = store.lock_user(db, user_id)
        budget = store.get_owned(db, BudgetCategory, budget_id, user.id)
        fields: Dict[str, Any] = {}
        renamed = False
        if "name" in changes:
            name = _clean_name(changes["name"])
            if name_key(name) != budget.name_key:
                _ensure_unique(db, user.id, name, exclude_id=budget.id)
                renamed = True
            fields["name"] = name
            fields["name_key"] = name_key(name)
        if "budget_amount" in changes:
            fields["budget_amount"] = parse_positive_amount(changes["budget_amount"], field="budget_amount")
        store.update_fields(db, budget, **fields)
        if renamed:
            ledger_service.recompute_category(db, budget)
        touch(user, "budget")
        settlement = settle_user(db, user.id, reason="budget updated")
    return settled(budget, settlement)


def delete_budget(db: Session, user_id: str, budget_id: str) -> MutationResult:
    with store.atomic(db):
        user = store.lock_user(db, user_id)
        budget = store.get_owned(db, BudgetCategory, budget_id, user.id)
        store.delete(db, budget)
        touch(user, "budget")
        settlement = settle_user(db, user.id, reason="budget deleted")
    return settled(budget_id, settlement)


def get_budget(db: Session, user_id: str, budget_id: str) -> BudgetCategory:
    return store.get_owned(db, BudgetCategory, budget_id, user_id)


def list_budgets(db: Session, user_id: str) -> List[BudgetCategory]:
    return store.list_owned(db, BudgetCategory, user_id, order_by=BudgetCategory.name_key)


def serialize_budget(budget: BudgetCategory) -> Dict[str, Any]:
    remaining = budget.budget_amount - budget.spent_amount
    return {
        "id": budget.id,
        "name": budget.name,
        "budget_amount": budget.budget_amount,
        "spent_amount": budget.spent_amount,
        "remaining_amount": remaining,
        "over_budget": budget.spent_amount > budget.budget_amount,
        "created_at": budget.created_at,
        "updated_at": budget.updated_at,
    }
