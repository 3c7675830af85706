from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from backend.app.errors import NotFoundError, ValidationError
from backend.app.models import OWNED_MODELS, User, utcnow
from backend.app.services import store
from backend.app.services.activity_service import MutationResult, settle_user, settled, touch

logger = logging.getLogger(__name__)


def _normalize_email(email: Optional[str]) -> str:
    normalized = (email or "").strip().lower()
    if not normalized or "@" not in normalized:
        raise ValidationError("email", "a valid email address is required")
    return normalized


def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("user", user_id)
    return user


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.execute(select(User).where(User.email == _normalize_email(email))).scalars().first()


def create_user(db: Session, email: str, name: Optional[str] = None) -> User:
    normalized = _normalize_email(email)
    with store.atomic(db):
        if db.execute(select(User.id).where(User.email == normalized)).first() is not None:
            raise ValidationError("email", "a user with this email already exists")
        user = store.insert(
            db,
            User(email=normalized, name=(name or "").strip() or normalized.split("@")[0]),
        )
    logger.info("Created user id=%s", user.id)
    return user


def get_or_create_user_by_email(db: Session, email: str) -> User:
    user = find_user_by_email(db, email)
    if user is not None:
        return user
    return create_user(db, email)


def record_login(db: Session, user_id: str) -> MutationResult:
    with store.atomic(db):
        user = store.lock_user(db, user_id)
        user.login_count = (user.login_count or 0) + 1
        touch(user, "login")
        settlement = settle_user(db, user.id, reason="login")
    return settled(user, settlement)


def delete_account(db: Session, user_id: str) -> Dict[str, Any]:
    """
    Remove the user and every row they own in one unit of work.
    Returns the number of rows deleted per table.
    """
    counts: Dict[str, int] = {}
    with store.atomic(db):
        user = store.lock_user(db, user_id)
        for model in OWNED_MODELS:
            result = db.execute(delete(model).where(model.user_id == user.id))
            counts[model.__tablename__] = result.rowcount or 0
        db.delete(user)
        db.flush()
        counts[User.__tablename__] = 1
    db.expunge_all()
    logger.info("Deleted account user_id=%s: %s", user_id, counts)
    return counts

def _row_dict(row: Any) -> Dict[str, Any]:
    return {column.key: getattr(row, column.key) for column in row.__table__.columns}


def export_account(db: Session, user_id: str) -> Dict[str, Any]:
    """
    Everything stored for the user: the user row plus every owned table,
    keyed by table name. The counterpart of delete_account.
    """
    user = get_user(db, user_id)
    tables: Dict[str, List[Dict[str, Any]]] = {}
    for model in reversed(OWNED_MODELS):
        rows = store.list_owned(db, model, user.id, order_by=model.created_at)
        tables[model.__tablename__] = [_row_dict(row) for row in rows]
    logger.info(
        "Exported account user_id=%s: %s",
        user_id,
        {name: len(rows) for name, rows in tables.items()},
    )
    return {"exported_at": utcnow(), "user": _row_dict(user), "tables": tables}



def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "onboarding_stage": user.onboarding_stage,
        "onboarding_completed": user.onboarding_completed,
        "login_count": user.login_count,
        "last_login_at": user.last_login_at,
        "created_at": user.created_at,
    }
