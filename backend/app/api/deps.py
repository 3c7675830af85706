# backend/app/api/deps.py
from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from backend.app.db import get_db
from backend.app.errors import ValidationError
from backend.app.models import User
from backend.app.services import user_service


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """
    Dev/pilot auth dependency.

    Reads identity from headers:
      - X-User-Id    (preferred; must already exist)
      - X-User-Email (fallback; auto-provisions a user record if missing)

    The resolved user id is the only owner id the services ever see; ids in
    request bodies are ignored.
    """
    user_id = (request.headers.get("X-User-Id") or "").strip()
    email = request.headers.get("X-User-Email")
    if not user_id and not email:
        raise HTTPException(status_code=401, detail="Missing X-User-Id or X-User-Email header")

    if user_id:
        user = db.get(User, user_id)
        if not user:
            raise HTTPException(status_code=401, detail="Unknown X-User-Id")
        return user

    try:
        return user_service.get_or_create_user_by_email(db, email)
    except ValidationError as exc:
        raise HTTPException(status_code=401, detail="Invalid X-User-Email header") from exc
