from datetime import date, datetime, timedelta
from decimal import Decimal
import os
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.append(str(Path(__file__).resolve().parents[2]))
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_score_engine.db")

from backend.app.db import Base, SessionLocal, engine
from backend.app.models import ScoreHistory, ScoreRecord
from backend.app.services import budget_service, score_service, transaction_service, user_service
from backend.app.services.score_service import compute_breakdown


TODAY = date(2025, 6, 10)


def _txn(amount, type_="expense", days_ago=0):
    return SimpleNamespace(
        amount=Decimal(str(amount)),
        type=type_,
        date=datetime.combine(TODAY - timedelta(days=days_ago), datetime.min.time()).replace(hour=12),
    )


def _budget(spent, limit):
    return SimpleNamespace(spent_amount=Decimal(str(spent)), budget_amount=Decimal(str(limit)))


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


def test_weighted_score():
    budgets = [_budget(50, 100), _budget(150, 100)]
    transactions = [
        _txn(1000, "income", days_ago=1),
        _txn(200, days_ago=2),
        _txn(50, days_ago=3),
        _txn(10, days_ago=30),
    ]
    result = compute_breakdown(budgets, transactions, login_count=3, today=TODAY)
    assert result.budget_adherence == 50
    assert result.savings_progress == 74
    assert result.weekly_activity == 30
    # 0.5*50 + 0.3*74 + 0.2*30 = 53.2
    assert result.score == 53


def test_floor_for_logged_in_users_without_data():
    assert compute_breakdown([], [], login_count=1, today=TODAY).score == 10
    assert compute_breakdown([], [], login_count=0, today=TODAY).score == 0


def test_overspending_bottoms_out_savings_at_zero():
    result = compute_breakdown([], [_txn(100, "income"), _txn(5000)], login_count=0, today=TODAY)
    assert result.savings_progress == 0


def test_heavy_activity_is_capped():
    many = [_txn(1, days_ago=i % 7) for i in range(50)]
    result = compute_breakdown([], many, login_count=0, today=TODAY)
    assert result.weekly_activity == 100


def test_activity_window_excludes_older_and_future_transactions():
    rows = [_txn(1, days_ago=7), _txn(1, days_ago=-1), _txn(1, days_ago=6)]
    assert compute_breakdown([], rows, login_count=0, today=TODAY).weekly_activity == 10


@pytest.mark.parametrize(
    "budgets, transactions",
    [
        ([], []),
        ([_budget(0, 1)], [_txn("0.01")]),
        ([_budget(10 ** 9, 1)] * 5, [_txn(10 ** 9, "income")] * 40),
        ([_budget(1, 10 ** 9)], [_txn(10 ** 9)] + [_txn("0.01", "income")]),
    ],
)
def test_every_value_stays_in_bounds(budgets, transactions):
    result = compute_breakdown(budgets, transactions, login_count=5, today=TODAY)
    for value in (result.score, result.budget_adherence, result.savings_progress, result.weekly_activity):
        assert 0 <= value <= 100


def test_recompute_upserts_one_record_and_appends_history(db_session):
    user = user_service.create_user(db_session, "score@example.com")
    score_service.refresh_score(db_session, user.id)

    budget_service.create_budget(db_session, user.id, {"name": "Dining", "budget_amount": "100"})
    transaction_service.create_manual_transaction(
        db_session, user.id, {"amount": "2000", "merchant": "Payroll", "type": "income"}
    )

    records = db_session.query(ScoreRecord).filter(ScoreRecord.user_id == user.id).all()
    assert len(records) == 1

    history = score_service.list_score_history(db_session, user.id)
    assert len(history) >= 2
    assert all(0 <= row.score <= 100 for row in history)
    changed = [row for row in history if row.previous_score is not None]
    assert all(row.change == row.score - row.previous_score for row in changed)


def test_unchanged_score_adds_no_history(db_session):
    user = user_service.create_user(db_session, "steady@example.com")
    score_service.refresh_score(db_session, user.id)
    score_service.refresh_score(db_session, user.id)
    count = db_session.query(ScoreHistory).filter(ScoreHistory.user_id == user.id).count()
    assert count == 1


def test_get_score_computes_on_first_read(db_session):
    user = user_service.create_user(db_session, "first@example.com")
    record = score_service.get_score(db_session, user.id)
    assert record.score == 0
    payload = score_service.serialize_score(record)
    assert payload["meta"]["model_version"] == "health_score_v1"
