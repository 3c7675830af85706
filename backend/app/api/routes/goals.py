from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user
from backend.app.api.routes.nudges import NudgeOut
from backend.app.api.routes.score import ScoreOut
from backend.app.db import get_db
from backend.app.models import User
from backend.app.services import goal_service
from backend.app.services.activity_service import MutationResult
from backend.app.services.nudge_service import serialize_nudge
from backend.app.services.score_service import serialize_score

router = APIRouter(prefix="/api/goals", tags=["goals"])


class GoalIn(BaseModel):
    name: str
    target_amount: Any
    target_date: Optional[Any] = None
    current_amount: Optional[Any] = None


class GoalPatch(BaseModel):
    name: Optional[str] = None
    target_amount: Optional[Any] = None
    target_date: Optional[Any] = None


class ContributionIn(BaseModel):
    amount: Any


class MonthlySavingOut(BaseModel):
    month: str
    amount: float


class GoalOut(BaseModel):
    id: str
    name: str
    target_amount: float
    current_amount: float
    progress_percentage: float
    target_date: Optional[date] = None
    monthly_savings: List[MonthlySavingOut]
    created_at: datetime
    updated_at: datetime


class GoalMutationOut(BaseModel):
    goal: Optional[GoalOut] = None
    deleted_id: Optional[str] = None
    score: ScoreOut
    nudges_created: List[NudgeOut]
    nudges_completed: List[NudgeOut]


def _mutation_out(result: MutationResult) -> GoalMutationOut:
    deleted = isinstance(result.entity, str)
    return GoalMutationOut(
        goal=None if deleted else goal_service.serialize_goal(result.entity),
        deleted_id=result.entity if deleted else None,
        score=serialize_score(result.score),
        nudges_created=[serialize_nudge(n) for n in result.nudges.created],
        nudges_completed=[serialize_nudge(n) for n in result.nudges.completed],
    )


@router.get("", response_model=List[GoalOut])
def list_goals(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return [goal_service.serialize_goal(g) for g in goal_service.list_goals(db, user.id)]


@router.post("", response_model=GoalMutationOut, status_code=201)
def create_goal(
    req: GoalIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _mutation_out(goal_service.create_goal(db, user.id, req.model_dump(exclude_none=True)))


@router.get("/{goal_id}", response_model=GoalOut)
def get_goal(
    goal_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return goal_service.serialize_goal(goal_service.get_goal(db, user.id, goal_id))


@router.patch("/{goal_id}", response_model=GoalMutationOut)
def update_goal(
    goal_id: str,
    req: GoalPatch,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    changes: Dict[str, Any] = req.model_dump(exclude_unset=True)
    return _mutation_out(goal_service.update_goal(db, user.id, goal_id, changes))


@router.post("/{goal_id}/contributions", response_model=GoalMutationOut)
def add_contribution(
    goal_id: str,
    req: ContributionIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _mutation_out(goal_service.contribute(db, user.id, goal_id, req.amount))


@router.delete("/{goal_id}", response_model=GoalMutationOut)
def delete_goal(
    goal_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _mutation_out(goal_service.delete_goal(db, user.id, goal_id))
