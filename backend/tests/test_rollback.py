from decimal import Decimal
import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

sys.path.append(str(Path(__file__).resolve().parents[2]))
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_rollback.db")

from backend.app.db import Base, SessionLocal, engine
from backend.app.errors import PersistenceError
from backend.app.models import OWNED_MODELS, BudgetCategory, Transaction, User
from backend.app.services import (
    budget_service,
    goal_service,
    ledger_service,
    transaction_service,
    user_service,
)


@pytest.fixture()
def db_session():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def funded(db_session):
    user = user_service.create_user(db_session, "rollback@example.com")
    budget = budget_service.create_budget(db_session, user.id, {"name": "Dining", "budget_amount": "100"}).entity
    txn = transaction_service.create_manual_transaction(
        db_session, user.id, {"amount": "9", "merchant": "Starbucks", "date": "2025-05-17"}
    ).entity
    goal_service.create_goal(db_session, user.id, {"name": "Trip", "target_amount": "50", "current_amount": "5"})
    return user.id, budget.id, txn.id


def _state(db_session, budget_id, transaction_id):
    db_session.expire_all()
    budget = db_session.get(BudgetCategory, budget_id)
    txn = db_session.get(Transaction, transaction_id)
    return budget.spent_amount, txn.amount, txn.category


def _owned_counts(db_session, user_id):
    return {
        model.__tablename__: db_session.execute(
            select(func.count()).select_from(model).where(model.user_id == user_id)
        ).scalar_one()
        for model in OWNED_MODELS
    }


def test_failed_apply_after_reverse_restores_the_budget(db_session, funded, monkeypatch):
    user_id, budget_id, transaction_id = funded
    before = _state(db_session, budget_id, transaction_id)
    assert before == (Decimal("9.00"), Decimal("9.00"), "Dining")

    def fail_apply(*args, **kwargs):
        raise RuntimeError("ledger write failed")

    monkeypatch.setattr(ledger_service, "apply_transaction", fail_apply)
    with pytest.raises(RuntimeError):
        transaction_service.update_transaction(db_session, user_id, transaction_id, {"amount": "25"})

    assert _state(db_session, budget_id, transaction_id) == before
    ledger_service.assert_consistent(db_session, user_id)


def test_failed_settlement_rolls_back_the_edit(db_session, funded, monkeypatch):
    user_id, budget_id, transaction_id = funded
    before = _state(db_session, budget_id, transaction_id)

    def fail_settle(*args, **kwargs):
        raise RuntimeError("score write failed")

    monkeypatch.setattr(transaction_service, "settle_user", fail_settle)
    with pytest.raises(RuntimeError):
        transaction_service.update_transaction(
            db_session, user_id, transaction_id, {"amount": "40", "category": "Shopping"}
        )

    assert _state(db_session, budget_id, transaction_id) == before


def test_failed_reverse_keeps_the_deleted_transaction(db_session, funded, monkeypatch):
    user_id, budget_id, transaction_id = funded
    before = _state(db_session, budget_id, transaction_id)

    def fail_reverse(*args, **kwargs):
        raise SQLAlchemyError("connection dropped")

    monkeypatch.setattr(ledger_service, "reverse_transaction", fail_reverse)
    with pytest.raises(PersistenceError):
        transaction_service.delete_transaction(db_session, user_id, transaction_id)

    assert _state(db_session, budget_id, transaction_id) == before


def test_failed_account_deletion_leaves_every_row(db_session, funded, monkeypatch):
    user_id = funded[0]
    before = _owned_counts(db_session, user_id)
    assert before["transactions"] == 1 and before["savings_goals"] == 1

    def fail_delete(instance):
        raise SQLAlchemyError("disk full")

    # The owned tables are already cleared when the user row delete fails.
    monkeypatch.setattr(db_session, "delete", fail_delete)
    with pytest.raises(PersistenceError):
        user_service.delete_account(db_session, user_id)
    monkeypatch.undo()

    db_session.expire_all()
    assert db_session.get(User, user_id) is not None
    assert _owned_counts(db_session, user_id) == before
