from datetime import date
from decimal import Decimal
import os
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[2]))
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_demo_data.db")

from backend.app.db import Base, SessionLocal, engine
from backend.app.services import budget_service, transaction_service, user_service
from tools.generate_demo_csv import generate, render_csv


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


def test_generator_is_deterministic():
    a = generate(date(2025, 1, 1), date(2025, 1, 31), seed=3)
    b = generate(date(2025, 1, 1), date(2025, 1, 31), seed=3)
    assert a == b
    assert [r[0] for r in a] == sorted(r[0] for r in a)


def test_demo_csv_imports_cleanly(db_session):
    rows = generate(date(2025, 1, 1), date(2025, 1, 31), seed=11)
    user = user_service.create_user(db_session, "demo@example.com")
    budget = budget_service.create_budget(db_session, user.id, {"name": "Housing", "budget_amount": "2000"}).entity

    result = transaction_service.import_csv(db_session, user.id, render_csv(rows))
    assert result.errors == []
    assert result.success == len(rows)

    stored = transaction_service.list_transactions(db_session, user.id, limit=500)
    by_merchant = {t.merchant: t for t in stored}
    assert by_merchant["ACME Corp Payroll"].type == "income"
    assert by_merchant["ACME Corp Payroll"].category == "Income"
    assert by_merchant["Greenway Apartments Rent"].category == "Housing"
    assert by_merchant["Netflix"].category == "Entertainment"
    assert by_merchant["City Electric Utility"].category == "Utilities"

    db_session.refresh(budget)
    assert budget.spent_amount == Decimal("1650")
