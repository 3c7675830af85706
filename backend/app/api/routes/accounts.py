from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user
from backend.app.db import get_db
from backend.app.models import User
from backend.app.services import account_service

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


class AccountIn(BaseModel):
    name: str
    type: str = "bank"
    institution_name: Optional[str] = None
    last_four: Optional[str] = None
    provider_item_id: Optional[str] = None


class AccountOut(BaseModel):
    id: str
    name: str
    type: str
    institution_name: Optional[str] = None
    last_four: Optional[str] = None
    provider_item_id: Optional[str] = None
    created_at: datetime


@router.get("", response_model=List[AccountOut])
def list_accounts(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return [account_service.serialize_account(a) for a in account_service.list_accounts(db, user.id)]


@router.post("", response_model=AccountOut, status_code=201)
def create_account(
    req: AccountIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    account = account_service.create_account(db, user.id, req.model_dump())
    return account_service.serialize_account(account)


@router.delete("/{account_id}", status_code=204)
def delete_account(
    account_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    account_service.delete_account_link(db, user.id, account_id)
