from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user
from backend.app.db import get_db
from backend.app.models import User
from backend.app.services import nudge_service

router = APIRouter(prefix="/api/nudges", tags=["nudges"])


class NudgeOut(BaseModel):
    id: str
    type: str
    message: str
    status: Literal["active", "dismissed", "completed"]
    condition_key: str
    trigger_condition: Dict[str, Any]
    due_date: Optional[datetime] = None
    created_at: datetime
    dismissed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class NudgeEvaluationOut(BaseModel):
    created: List[NudgeOut]
    completed: List[NudgeOut]


@router.get("", response_model=List[NudgeOut])
def list_nudges(
    status: Optional[Literal["active", "dismissed", "completed"]] = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return [nudge_service.serialize_nudge(n) for n in nudge_service.list_nudges(db, user.id, status=status)]


@router.post("/evaluate", response_model=NudgeEvaluationOut)
def evaluate_nudges(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = nudge_service.check_nudges(db, user.id)
    return NudgeEvaluationOut(
        created=[nudge_service.serialize_nudge(n) for n in result.created],
        completed=[nudge_service.serialize_nudge(n) for n in result.completed],
    )


@router.post("/{nudge_id}/dismiss", response_model=NudgeOut)
def dismiss_nudge(
    nudge_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return nudge_service.serialize_nudge(nudge_service.dismiss_nudge(db, user.id, nudge_id))


@router.post("/{nudge_id}/complete", response_model=NudgeOut)
def complete_nudge(
    nudge_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return nudge_service.serialize_nudge(nudge_service.complete_nudge(db, user.id, nudge_id))
