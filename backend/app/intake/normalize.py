"""
Normalizer - turns raw input from any channel into a canonical TransactionDraft.

Responsibility:
- one date policy (noon-pinned calendar dates, see dates.py)
- unsigned amount + explicit type
- non-null category ("Uncategorized" when the channel supplies none)
- the owning user id is always the authenticated caller's id

Design notes:
- This module must be PURE: no DB access, no IO, no global state mutation.
- Raises ValidationError naming the first failing field.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal, Mapping, Optional, Tuple

from backend.app.errors import ValidationError
from backend.app.intake.amounts import parse_signed_amount
from backend.app.intake.dates import resolve_date

TxnType = Literal["income", "expense"]
TxnSource = Literal["manual", "batch-import", "provider-sync"]

UNCATEGORIZED = "Uncategorized"

DEFAULT_ACCOUNTS = {
    "manual": "Cash",
    "batch-import": "Imported",
    "provider-sync": "Linked Account",
}

# Column widths on Transaction; an over-long value fails its own row, not the batch.
MAX_LENGTHS: Mapping[str, int] = {
    "merchant": 255,
    "category": 120,
    "subcategory": 120,
    "account": 120,
    "external_id": 120,
}

# Type hints seen across channels (CSV exports, bank statements).
TYPE_HINTS: Mapping[str, TxnType] = {
    "income": "income",
    "deposit": "income",
    "credit": "income",
    "expense": "expense",
    "debit": "expense",
    "withdrawal": "expense",
    "payment": "expense",
    "purchase": "expense",
}


@dataclass(frozen=True)
class TransactionDraft:
    user_id: str
    amount: Decimal                   # always > 0
    type: TxnType
    merchant: str
    category: str
    date: datetime                    # calendar date at 12:00
    account: str
    source: TxnSource
    category_supplied: bool = False
    subcategory: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    external_id: Optional[str] = None
    taxonomy: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def calendar_date(self) -> date:
        return self.date.date()


def _text(raw: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return None


def _bounded(field_name: str, value: Optional[str]) -> Optional[str]:
    limit = MAX_LENGTHS[field_name]
    if value is not None and len(value) > limit:
        raise ValidationError(field_name, f"must be at most {limit} characters")
    return value


def resolve_type(hint: Optional[str], signed_amount: Decimal) -> TxnType:
    """
    A negative amount is always an expense. Otherwise use the hint, default expense.
    """
    if signed_amount < 0:
        return "expense"
    if hint is None:
        return "expense"
    key = hint.strip().lower()
    if key in TYPE_HINTS:
        return TYPE_HINTS[key]
    raise ValidationError("type", f"unknown transaction type {hint!r}")


def _taxonomy(raw: Mapping[str, Any]) -> Tuple[str, ...]:
    value = raw.get("taxonomy")
    if value is None:
        return ()
    if isinstance(value, str):
        parts = [part.strip() for part in value.split(",")]
    else:
        parts = [str(part).strip() for part in value]
    return tuple(part for part in parts if part)


def normalize_transaction(
    raw: Mapping[str, Any],
    *,
    user_id: str,
    source: TxnSource,
    today: Optional[date] = None,
) -> TransactionDraft:
    """
    Normalize one raw record. `user_id` is the authenticated caller; any
    user id carried by the payload itself is ignored.
    """
    if not user_id:
        raise ValidationError("user_id", "an authenticated user id is required")

    signed = parse_signed_amount(raw.get("amount"))
    txn_type = resolve_type(_text(raw, "type"), signed)

    merchant = _bounded("merchant", _text(raw, "merchant", "merchant_name", "name"))
    if merchant is None:
        raise ValidationError("merchant", "merchant is required")

    category = _bounded("category", _text(raw, "category"))

    return TransactionDraft(
        user_id=user_id,
        amount=abs(signed),
        type=txn_type,
        merchant=merchant,
        category=category or UNCATEGORIZED,
        category_supplied=category is not None and category.lower() != UNCATEGORIZED.lower(),
        subcategory=_bounded("subcategory", _text(raw, "subcategory")),
        description=_text(raw, "description"),
        notes=_text(raw, "notes"),
        date=resolve_date(raw.get("date"), today=today),
        account=_bounded("account", _text(raw, "account")) or DEFAULT_ACCOUNTS[source],
        source=source,
        external_id=_bounded("external_id", _text(raw, "external_id")),
        taxonomy=_taxonomy(raw),
    )
