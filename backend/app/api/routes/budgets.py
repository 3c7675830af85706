from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user
from backend.app.api.routes.nudges import NudgeOut
from backend.app.api.routes.score import ScoreOut
from backend.app.db import get_db
from backend.app.models import User
from backend.app.services import budget_service
from backend.app.services.activity_service import MutationResult
from backend.app.services.nudge_service import serialize_nudge
from backend.app.services.score_service import serialize_score

router = APIRouter(prefix="/api/budgets", tags=["budgets"])


class BudgetIn(BaseModel):
    name: str
    budget_amount: Any


class BudgetPatch(BaseModel):
    name: Optional[str] = None
    budget_amount: Optional[Any] = None


class BudgetOut(BaseModel):
    id: str
    name: str
    budget_amount: float
    spent_amount: float
    remaining_amount: float
    over_budget: bool
    created_at: datetime
    updated_at: datetime


class BudgetMutationOut(BaseModel):
    budget: Optional[BudgetOut] = None
    deleted_id: Optional[str] = None
    score: ScoreOut
    nudges_created: List[NudgeOut]
    nudges_completed: List[NudgeOut]


def _mutation_out(result: MutationResult) -> BudgetMutationOut:
    deleted = isinstance(result.entity, str)
    return BudgetMutationOut(
        budget=None if deleted else budget_service.serialize_budget(result.entity),
        deleted_id=result.entity if deleted else None,
        score=serialize_score(result.score),
        nudges_created=[serialize_nudge(n) for n in result.nudges.created],
        nudges_completed=[serialize_nudge(n) for n in result.nudges.completed],
    )


@router.get("", response_model=List[BudgetOut])
def list_budgets(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return [budget_service.serialize_budget(b) for b in budget_service.list_budgets(db, user.id)]


@router.post("", response_model=BudgetMutationOut, status_code=201)
def create_budget(
    req: BudgetIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _mutation_out(budget_service.create_budget(db, user.id, req.model_dump()))


@router.get("/{budget_id}", response_model=BudgetOut)
def get_budget(
    budget_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return budget_service.serialize_budget(budget_service.get_budget(db, user.id, budget_id))


@router.patch("/{budget_id}", response_model=BudgetMutationOut)
def update_budget(
    budget_id: str,
    req: BudgetPatch,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    changes = req.model_dump(exclude_unset=True)
    return _mutation_out(budget_service.update_budget(db, user.id, budget_id, changes))


@router.delete("/{budget_id}", response_model=BudgetMutationOut)
def delete_budget(
    budget_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _mutation_out(budget_service.delete_budget(db, user.id, budget_id))
