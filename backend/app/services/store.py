"""
User-scoped persistence helpers.

Every read and write of an owned row goes through these functions so the
owning user id is always part of the lookup. `atomic` is the unit of work:
one commit on success, full rollback on any failure.
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.db import Base
from backend.app.errors import NotFoundError, OwnershipError, PersistenceError, ValidationError
from backend.app.models import User

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

IMMUTABLE_FIELDS = {"id", "user_id", "created_at"}


def _entity_name(model: type) -> str:
    # BudgetCategory -> "budget category"
    return re.sub(r"(?<!^)(?=[A-Z])", " ", model.__name__).lower()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Unit of work rolled back after database error")
        raise PersistenceError() from exc
    except Exception:
        db.rollback()
        raise


def lock_user(db: Session, user_id: str) -> User:
    """
    Load the user row FOR UPDATE so same-user units of work serialize.
    (SQLite ignores the lock; the single writer gives the same guarantee.)
    """
    user = db.execute(
        select(User).where(User.id == user_id).with_for_update()
    ).scalar_one_or_none()
    if not user:
        raise NotFoundError("user", user_id)
    return user


def get_owned(db: Session, model: Type[ModelT], entity_id: str, user_id: str) -> ModelT:
    entity = _entity_name(model)
    row = db.get(model, entity_id)
    if row is None:
        raise NotFoundError(entity, entity_id)
    if row.user_id != user_id:
        logger.warning(
            "Cross-user access denied: user_id=%s requested %s id=%s owned by user_id=%s",
            user_id,
            entity,
            entity_id,
            row.user_id,
        )
        raise OwnershipError(entity, entity_id)
    return row


def list_owned(
    db: Session,
    model: Type[ModelT],
    user_id: str,
    *criteria: Any,
    order_by: Optional[Any] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[ModelT]:
    stmt = select(model).where(model.user_id == user_id, *criteria)
    if order_by is not None:
        stmt = stmt.order_by(order_by)
    if offset:
        stmt = stmt.offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(db.execute(stmt).scalars().all())


def insert(db: Session, row: ModelT) -> ModelT:
    db.add(row)
    db.flush()
    return row


def update_fields(db: Session, row: ModelT, **fields: Any) -> ModelT:
    blocked = IMMUTABLE_FIELDS.intersection(fields)
    if blocked:
        raise ValidationError(sorted(blocked)[0], "field cannot be changed")
    for key, value in fields.items():
        if not hasattr(row, key):
            raise ValidationError(key, "unknown field")
        setattr(row, key, value)
    db.flush()
    return row


def delete(db: Session, row: Base) -> None:
    db.delete(row)
    db.flush()
