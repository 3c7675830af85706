import os
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[2]))
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_categorize.db")

from backend.app.intake.categorize import (
    INCOME,
    KEYWORD_TABLE,
    UNCATEGORIZED,
    categorize,
    style_for,
)


def test_starbucks_expense_is_dining():
    style = categorize("expense", (), "STARBUCKS #1234 SEATTLE")
    assert style.category == "Dining"
    assert style.icon
    assert style.color.startswith("#")


@pytest.mark.parametrize(
    "merchant, expected",
    [
        ("UBER EATS ORDER", "Dining"),
        ("UBER TRIP 8841", "Transportation"),
        ("SHELL GAS STATION", "Transportation"),
        ("TRADER JOE'S #552", "Groceries"),
        ("NETFLIX.COM", "Entertainment"),
        ("CVS/PHARMACY", "Health"),
        ("ATM FEE", "Fees & Charges"),
        ("VENMO TRANSFER", "Transfers"),
    ],
)
def test_keyword_table_order_decides_the_match(merchant, expected):
    assert categorize("expense", (), merchant).category == expected


def test_income_always_wins():
    assert categorize("income", ("Food and Drink",), "STARBUCKS") == INCOME


def test_taxonomy_beats_keywords():
    style = categorize("expense", ("Shops", "Supermarkets and Groceries"), "STARBUCKS")
    assert style.category == "Groceries"


def test_taxonomy_falls_back_to_its_first_label():
    assert categorize("expense", ("Food and Drink", "Something New"), "XYZ").category == "Dining"


def test_unmatched_merchant_is_uncategorized():
    assert categorize("expense", (), "ZXQW HOLDINGS") == UNCATEGORIZED
    assert categorize("expense", (), "") == UNCATEGORIZED


def test_categorize_is_pure():
    args = ("expense", ("Travel",), "DELTA AIR 0062")
    first = categorize(*args)
    for _ in range(5):
        assert categorize(*args) == first


def test_keyword_table_names_are_unique():
    names = [style.category for style, _ in KEYWORD_TABLE]
    assert len(names) == len(set(names))


def test_style_for_user_categories():
    assert style_for("dining").category == "Dining"
    custom = style_for("Pet Care")
    assert custom.category == "Pet Care"
    assert custom.icon == UNCATEGORIZED.icon
    assert style_for("  ") == UNCATEGORIZED


@pytest.mark.parametrize(
    "taxonomy, expected",
    [
        (("FOOD_AND_DRINK",), "Dining"),
        (("FOOD_AND_DRINK", "GROCERIES"), "Groceries"),
        (("GENERAL_MERCHANDISE", "ONLINE_MARKETPLACES"), "Shopping"),
        (("RENT_AND_UTILITIES", "RENT"), "Housing"),
        (("food and drink", "restaurants"), "Dining"),
    ],
)
def test_taxonomy_lookup_ignores_case_and_underscores(taxonomy, expected):
    assert categorize("expense", taxonomy, "Joes Place").category == expected
