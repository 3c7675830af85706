"""
Categorizer - pure (type, taxonomy, merchant text) -> (category, icon, color).

Order, first match wins:
  1) income is always "Income"
  2) provider taxonomy: full joined path, then the first (most general) label
  3) merchant keyword substring scan over KEYWORD_TABLE, in table order
  4) "Uncategorized" with a neutral icon/color

KEYWORD_TABLE order is part of the contract: "uber eats" matches Dining before
"uber" can match Transportation, "gas" never reaches Utilities, and so on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple


@dataclass(frozen=True)
class CategoryStyle:
    category: str
    icon: str
    color: str


INCOME = CategoryStyle("Income", "💰", "#27AE60")
UNCATEGORIZED = CategoryStyle("Uncategorized", "❓", "#95A5A6")

# (style, keywords) in match order.
KEYWORD_TABLE: Tuple[Tuple[CategoryStyle, Tuple[str, ...]], ...] = (
    (
        CategoryStyle("Dining", "🍽️", "#FF6B6B"),
        ("restaurant", "cafe", "coffee", "starbucks", "mcdonalds", "burger", "pizza", "dining",
         "uber eats", "doordash", "grubhub", "takeout"),
    ),
    (
        CategoryStyle("Groceries", "🛒", "#4ECDC4"),
        ("grocery", "supermarket", "whole foods", "trader joe", "safeway", "kroger", "walmart",
         "costco", "target", "market", "produce", "food"),
    ),
    (
        CategoryStyle("Transportation", "🚗", "#45B7D1"),
        ("gas", "fuel", "uber", "lyft", "taxi", "metro", "train", "parking", "toll",
         "car wash", "automotive", "transit"),
    ),
    (
        CategoryStyle("Housing", "🏠", "#DDA0DD"),
        ("rent", "mortgage", "apartments", "property", "hoa"),
    ),
    (
        CategoryStyle("Utilities", "💡", "#F39C12"),
        ("electric", "water", "internet", "phone", "utility", "power", "energy", "cable", "wifi"),
    ),
    (
        CategoryStyle("Entertainment", "🎬", "#E74C3C"),
        ("netflix", "spotify", "movie", "theater", "cinema", "gaming", "steam", "xbox",
         "playstation", "concert", "museum", "entertainment"),
    ),
    (
        CategoryStyle("Subscriptions", "💳", "#6366F1"),
        ("subscription", "membership", "recurring", "annual plan"),
    ),
    (
        CategoryStyle("Health", "⚕️", "#2ECC71"),
        ("pharmacy", "doctor", "medical", "hospital", "health", "dental", "vision", "cvs",
         "walgreens", "clinic"),
    ),
    (
        CategoryStyle("Shopping", "🛍️", "#96CEB4"),
        ("amazon", "shop", "store", "retail", "clothing", "apparel", "fashion", "electronics"),
    ),
    (
        CategoryStyle("Travel", "✈️", "#3498DB"),
        ("airline", "hotel", "airbnb", "flight", "booking", "travel", "vacation", "expedia", "kayak"),
    ),
    (
        CategoryStyle("Fees & Charges", "🏦", "#E67E22"),
        ("fee", "overdraft", "atm", "interest charge"),
    ),
    (
        CategoryStyle("Transfers", "🔄", "#9B59B6"),
        ("transfer", "venmo", "paypal", "zelle"),
    ),
)

_STYLES_BY_NAME: Dict[str, CategoryStyle] = {
    style.category.lower(): style for style, _ in KEYWORD_TABLE
}
_STYLES_BY_NAME[INCOME.category.lower()] = INCOME
_STYLES_BY_NAME[UNCATEGORIZED.category.lower()] = UNCATEGORIZED


def _style(name: str) -> CategoryStyle:
    return _STYLES_BY_NAME[name.lower()]


# Provider taxonomy -> category. Keys are ", "-joined label paths; lookups
# fold case and underscores, so "FOOD_AND_DRINK" finds "Food and Drink".
TAXONOMY_MAP: Dict[str, CategoryStyle] = {
    "Food and Drink, Groceries": _style("Groceries"),
    "Food and Drink, Restaurants": _style("Dining"),
    "Food and Drink, Coffee Shop": _style("Dining"),
    "Food and Drink": _style("Dining"),
    "Restaurants": _style("Dining"),
    "Shops, Supermarkets and Groceries": _style("Groceries"),
    "Shops, Clothing and Accessories": _style("Shopping"),
    "Shops, General Merchandise": _style("Shopping"),
    "Shops": _style("Shopping"),
    "Transportation, Gas Stations": _style("Transportation"),
    "Transportation": _style("Transportation"),
    "Payment, Rent": _style("Housing"),
    "Service, Utilities": _style("Utilities"),
    "Bills": _style("Utilities"),
    "Recreation": _style("Entertainment"),
    "Arts and Entertainment": _style("Entertainment"),
    "Healthcare": _style("Health"),
    "Travel": _style("Travel"),
    "Bank Fees": _style("Fees & Charges"),
    "Transfer": _style("Transfers"),
    "Food and Drink, Coffee": _style("Dining"),
    "Food and Drink, Fast Food": _style("Dining"),
    "General Merchandise": _style("Shopping"),
    "Rent and Utilities, Rent": _style("Housing"),
    "Rent and Utilities": _style("Utilities"),
    "Entertainment": _style("Entertainment"),
    "Medical": _style("Health"),
    "Personal Care": _style("Health"),
    "Transfer In": _style("Transfers"),
    "Transfer Out": _style("Transfers"),
    "Income": INCOME,
    "Deposit": INCOME,
    "Payroll": INCOME,
}


def _taxonomy_key(path: str) -> str:
    return ", ".join(" ".join(part.replace("_", " ").split()).lower() for part in path.split(","))


_TAXONOMY_BY_KEY: Dict[str, CategoryStyle] = {_taxonomy_key(path): style for path, style in TAXONOMY_MAP.items()}


def style_for(category: Optional[str]) -> CategoryStyle:
    """
    Icon/color for a category chosen elsewhere (e.g. typed by the user).
    Unknown names keep their text and get the neutral icon/color.
    """
    name = (category or "").strip()
    if not name:
        return UNCATEGORIZED
    known = _STYLES_BY_NAME.get(name.lower())
    if known:
        return known
    return CategoryStyle(name, UNCATEGORIZED.icon, UNCATEGORIZED.color)


def categorize_by_taxonomy(taxonomy: Sequence[str]) -> Optional[CategoryStyle]:
    labels = [label.strip() for label in taxonomy if label and label.strip()]
    if not labels:
        return None
    full = _taxonomy_key(", ".join(labels))
    if full in _TAXONOMY_BY_KEY:
        return _TAXONOMY_BY_KEY[full]
    return _TAXONOMY_BY_KEY.get(_taxonomy_key(labels[0]))


def categorize_by_keywords(text: str) -> Optional[CategoryStyle]:
    hay = (text or "").lower()
    if not hay:
        return None
    for style, keywords in KEYWORD_TABLE:
        for keyword in keywords:
            if keyword in hay:
                return style
    return None


def categorize(
    txn_type: str,
    taxonomy: Sequence[str],
    merchant_text: str,
) -> CategoryStyle:
    if txn_type == "income":
        return INCOME
    return (
        categorize_by_taxonomy(taxonomy)
        or categorize_by_keywords(merchant_text)
        or UNCATEGORIZED
    )
