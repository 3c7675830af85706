from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user
from backend.app.db import get_db
from backend.app.models import User
from backend.app.services import score_service

router = APIRouter(prefix="/api/score", tags=["score"])


class ScoreMetaOut(BaseModel):
    model_version: str
    weights: Dict[str, Any]


class ScoreOut(BaseModel):
    score: int
    budget_adherence: int
    savings_progress: int
    weekly_activity: int
    updated_at: datetime
    meta: ScoreMetaOut


class ScoreHistoryOut(BaseModel):
    id: str
    score: int
    previous_score: Optional[int] = None
    change: Optional[int] = None
    reason: Optional[str] = None
    change_factors: Optional[Dict[str, Any]] = None
    created_at: datetime


@router.get("", response_model=ScoreOut)
def get_score(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return score_service.serialize_score(score_service.get_score(db, user.id))


@router.post("/recompute", response_model=ScoreOut)
def recompute_score(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return score_service.serialize_score(score_service.refresh_score(db, user.id))


@router.get("/history", response_model=List[ScoreHistoryOut])
def score_history(
    limit: int = Query(default=30, ge=1, le=365),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = score_service.list_score_history(db, user.id, limit=limit)
    return [
        ScoreHistoryOut(
            id=row.id,
            score=row.score,
            previous_score=row.previous_score,
            change=row.change,
            reason=row.reason,
            change_factors=row.change_factors,
            created_at=row.created_at,
        )
        for row in rows
    ]
