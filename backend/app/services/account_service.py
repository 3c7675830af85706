from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from sqlalchemy.orm import Session

from backend.app.errors import ValidationError
from backend.app.models import LinkedAccount
from backend.app.services import store

logger = logging.getLogger(__name__)

ACCOUNT_TYPES = ("bank", "credit", "cash", "investment")


def create_account(db: Session, user_id: str, payload: Mapping[str, Any]) -> LinkedAccount:
    name = str(payload.get("name") or "").strip()
    if not name:
        raise ValidationError("name", "account name is required")
    if len(name) > 200:
        raise ValidationError("name", "account name is too long")
    account_type = str(payload.get("type") or "bank").strip().lower()
    if account_type not in ACCOUNT_TYPES:
        raise ValidationError("type", f"unknown account type {account_type!r}")
    last_four = payload.get("last_four")
    if last_four is not None:
        last_four = str(last_four).strip()
        if not (len(last_four) == 4 and last_four.isdigit()):
            raise ValidationError("last_four", "must be exactly four digits")

    with store.atomic(db):
        user = store.lock_user(db, user_id)
        account = store.insert(
            db,
            LinkedAccount(
                user_id=user.id,
                name=name,
                type=account_type,
                institution_name=(payload.get("institution_name") or None),
                last_four=last_four,
                provider_item_id=(payload.get("provider_item_id") or None),
            ),
        )
    logger.info("Linked account id=%s (%s) for user_id=%s", account.id, account_type, user_id)
    return account


def list_accounts(db: Session, user_id: str) -> List[LinkedAccount]:
    return store.list_owned(db, LinkedAccount, user_id, order_by=LinkedAccount.created_at)


def delete_account_link(db: Session, user_id: str, account_id: str) -> None:
    with store.atomic(db):
        store.lock_user(db, user_id)
        account = store.get_owned(db, LinkedAccount, account_id, user_id)
        store.delete(db, account)


def serialize_account(account: LinkedAccount) -> Dict[str, Any]:
    return {
        "id": account.id,
        "name": account.name,
        "type": account.type,
        "institution_name": account.institution_name,
        "last_four": account.last_four,
        "provider_item_id": account.provider_item_id,
        "created_at": account.created_at,
    }
