from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user
from backend.app.api.routes.score import ScoreOut
from backend.app.db import get_db
from backend.app.models import User
from backend.app.services import user_service
from backend.app.services.score_service import serialize_score


router = APIRouter(prefix="/api", tags=["users"])


class MeOut(BaseModel):
    id: str
    email: str
    name: Optional[str]
    onboarding_stage: str
    onboarding_completed: bool
    login_count: int
    last_login_at: Optional[datetime] = None
    created_at: datetime


class LoginOut(BaseModel):
    user: MeOut
    score: ScoreOut
    nudges_created: int


class AccountExportOut(BaseModel):
    exported_at: datetime
    user: Dict[str, Any]
    tables: Dict[str, List[Dict[str, Any]]]


class AccountDeletedOut(BaseModel):
    deleted: bool
    rows: Dict[str, int]


@router.get("/me", response_model=MeOut)
def get_me(
    user: User = Depends(get_current_user),
):
    return user_service.serialize_user(user)


@router.post("/me/login", response_model=LoginOut)
def record_login(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = user_service.record_login(db, user.id)
    return LoginOut(
        user=user_service.serialize_user(result.entity),
        score=serialize_score(result.score),
        nudges_created=len(result.nudges.created),
    )


@router.delete("/me", response_model=AccountDeletedOut)
def delete_me(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    counts = user_service.delete_account(db, user.id)
    return AccountDeletedOut(deleted=True, rows=counts)


@router.get("/me/export", response_model=AccountExportOut)
def export_me(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return user_service.export_account(db, user.id)
