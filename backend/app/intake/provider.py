"""
Bank-data feed records -> raw row dicts for the normalizer.

Provider sign convention: a positive amount is money leaving the account,
a negative amount is money coming in.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping


def _taxonomy(record: Mapping[str, Any]) -> List[str]:
    category = record.get("category")
    if isinstance(category, (list, tuple)) and category:
        return [str(label) for label in category if label]
    pfc = record.get("personal_finance_category")
    if isinstance(pfc, Mapping):
        primary = str(pfc.get("primary") or "")
        detailed = str(pfc.get("detailed") or "")
        # FOOD_AND_DRINK_COFFEE under FOOD_AND_DRINK is the path ["FOOD_AND_DRINK", "COFFEE"]
        if primary and detailed.startswith(primary + "_"):
            detailed = detailed[len(primary) + 1:]
        return [label for label in (primary, detailed) if label]
    return []


def _flip_sign(amount: Any) -> Any:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        # leave malformed amounts for the normalizer to reject
        return amount
    return -value


def provider_record_to_row(record: Mapping[str, Any]) -> Dict[str, Any]:
    amount = record.get("amount")
    flipped = _flip_sign(amount) if amount is not None else None
    row: Dict[str, Any] = {
        "amount": flipped,
        "merchant": record.get("merchant_name") or record.get("name"),
        "description": record.get("name"),
        "date": record.get("date") or record.get("authorized_date"),
        "account": record.get("account_name") or record.get("account_id"),
        "external_id": record.get("transaction_id"),
        "taxonomy": _taxonomy(record),
    }
    if isinstance(flipped, Decimal) and flipped > 0:
        row["type"] = "income"
    return row
