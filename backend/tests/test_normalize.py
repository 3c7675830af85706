from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
import os
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[2]))
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_normalize.db")

from backend.app.errors import ValidationError
from backend.app.intake.amounts import parse_positive_amount, parse_signed_amount
from backend.app.intake.categorize import categorize
from backend.app.intake.csv_rows import parse_csv_rows
from backend.app.intake.dates import parse_date, resolve_date
from backend.app.intake.normalize import normalize_transaction
from backend.app.intake.provider import provider_record_to_row


TODAY = date(2025, 6, 1)


def _normalize(raw, **kwargs):
    kwargs.setdefault("user_id", "user-1")
    kwargs.setdefault("source", "manual")
    kwargs.setdefault("today", TODAY)
    return normalize_transaction(raw, **kwargs)


def test_iso_date_is_pinned_to_noon_of_the_same_day():
    resolved = resolve_date("2025-05-17")
    assert resolved == datetime(2025, 5, 17, 12, 0)
    assert resolved.date() == date(2025, 5, 17)


def test_free_form_dates_keep_their_calendar_day():
    assert resolve_date("May 17, 2025") == datetime(2025, 5, 17, 12, 0)
    assert resolve_date("05/17/2025") == datetime(2025, 5, 17, 12, 0)
    # an offset late in the day must not roll the date forward
    assert resolve_date("2025-05-17T23:30:00-07:00").date() == date(2025, 5, 17)


def test_utc_offsets_never_shift_the_written_date():
    # 01:00 at +09:00 is the previous day in UTC
    assert resolve_date("2025-05-17T01:00:00+09:00") == datetime(2025, 5, 17, 12, 0)
    aware = datetime(2025, 5, 17, 23, 30, tzinfo=timezone(timedelta(hours=-7)))
    assert resolve_date(aware) == datetime(2025, 5, 17, 12, 0)
    assert resolve_date(aware).tzinfo is None


def test_date_objects_are_pinned_to_noon():
    assert resolve_date(date(2024, 2, 29)) == datetime(2024, 2, 29, 12, 0)
    assert resolve_date(datetime(2024, 2, 29, 0, 5)) == datetime(2024, 2, 29, 12, 0)


@pytest.mark.parametrize("raw", [None, "", "not a date", "2025-02-30", 12345])
def test_unreadable_dates_fall_back_to_today_at_noon(raw):
    assert resolve_date(raw, today=TODAY) == datetime(2025, 6, 1, 12, 0)


def test_parse_date_reports_unreadable_values_as_none():
    assert parse_date("2025-13-01") is None
    assert parse_date("garbage") is None
    assert parse_date("2025-01-31") == date(2025, 1, 31)


def test_amount_text_is_cleaned():
    assert parse_signed_amount("$1,234.50") == Decimal("1234.50")
    assert parse_signed_amount("-$12.00") == Decimal("-12.00")
    assert parse_signed_amount("(45.10)") == Decimal("-45.10")
    assert parse_signed_amount(19.999) == Decimal("20.00")


@pytest.mark.parametrize("raw", [0, "0.00", "0.001", None, "abc", "", float("nan"), float("inf"), True])
def test_zero_missing_and_non_finite_amounts_are_rejected(raw):
    with pytest.raises(ValidationError) as exc:
        parse_signed_amount(raw)
    assert exc.value.field == "amount"


def test_positive_amount_reports_the_given_field():
    with pytest.raises(ValidationError) as exc:
        parse_positive_amount("-5", field="budget_amount")
    assert exc.value.field == "budget_amount"


def test_negative_amount_becomes_positive_expense():
    draft = _normalize({"amount": "-42.10", "merchant": "Shell", "type": "income"})
    assert draft.amount == Decimal("42.10")
    assert draft.type == "expense"


def test_type_hints_from_bank_exports():
    assert _normalize({"amount": "100", "merchant": "ACME", "type": "Deposit"}).type == "income"
    assert _normalize({"amount": "100", "merchant": "ACME", "type": "debit"}).type == "expense"
    assert _normalize({"amount": "100", "merchant": "ACME"}).type == "expense"


def test_unknown_type_is_rejected():
    with pytest.raises(ValidationError) as exc:
        _normalize({"amount": "100", "merchant": "ACME", "type": "refund-ish"})
    assert exc.value.field == "type"


def test_merchant_is_required():
    with pytest.raises(ValidationError) as exc:
        _normalize({"amount": "10", "merchant": "   "})
    assert exc.value.field == "merchant"


def test_amount_is_validated_before_merchant():
    with pytest.raises(ValidationError) as exc:
        _normalize({"amount": "zero"})
    assert exc.value.field == "amount"


def test_payload_user_id_is_ignored():
    draft = _normalize({"amount": 5, "merchant": "Cafe", "user_id": "intruder", "userId": "intruder"})
    assert draft.user_id == "user-1"


def test_category_defaults_and_supplied_flag():
    plain = _normalize({"amount": 5, "merchant": "Cafe"})
    assert plain.category == "Uncategorized"
    assert plain.category_supplied is False

    typed = _normalize({"amount": 5, "merchant": "Cafe", "category": "Treats"})
    assert typed.category == "Treats"
    assert typed.category_supplied is True


def test_default_account_depends_on_channel():
    assert _normalize({"amount": 5, "merchant": "Cafe"}).account == "Cash"
    assert _normalize({"amount": 5, "merchant": "Cafe"}, source="batch-import").account == "Imported"


def test_csv_rows_map_common_bank_headers():
    text = "\ufeffTransaction Date,Description,Amount,Memo\n2025-05-17,STARBUCKS #1234,-5.75,latte\n,,,\n"
    rows = parse_csv_rows(text)
    assert rows == [
        {
            "date": "2025-05-17",
            "description": "STARBUCKS #1234",
            "amount": "-5.75",
            "notes": "latte",
            "merchant": "STARBUCKS #1234",
        }
    ]


def test_provider_record_sign_convention():
    outflow = provider_record_to_row(
        {"transaction_id": "t-1", "amount": 12.5, "merchant_name": "Uber", "date": "2025-05-01"}
    )
    assert outflow["amount"] == Decimal("-12.5")
    assert "type" not in outflow

    inflow = provider_record_to_row(
        {"transaction_id": "t-2", "amount": -1500, "name": "PAYROLL ACME", "date": "2025-05-01"}
    )
    assert inflow["amount"] == Decimal("1500")
    assert inflow["type"] == "income"
    assert inflow["external_id"] == "t-2"


def test_provider_personal_finance_category_becomes_a_label_path():
    row = provider_record_to_row(
        {
            "transaction_id": "t-3",
            "amount": 18.2,
            "merchant_name": "Joes Place",
            "date": "2025-05-01",
            "personal_finance_category": {"primary": "FOOD_AND_DRINK", "detailed": "FOOD_AND_DRINK_COFFEE"},
        }
    )
    assert row["taxonomy"] == ["FOOD_AND_DRINK", "COFFEE"]
    draft = _normalize(row, source="provider-sync")
    assert categorize(draft.type, draft.taxonomy, draft.merchant).category == "Dining"
