"""
Duplicate Detector - a soft classifier, never a gate.

A draft looks like a re-import of an existing transaction when the amount and
type are equal, the dates are within a short window (provider posting dates
drift by a day or two), and the merchant text is the same or nearly so.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from rapidfuzz import fuzz

from backend.app.intake.merchant import merchant_key
from backend.app.intake.normalize import TransactionDraft


@dataclass(frozen=True)
class LedgerEntry:
    """The slice of an existing transaction the detector compares against."""
    id: Optional[str]
    amount: Decimal
    type: str
    merchant: str
    date: datetime


def merchants_match(a: str, b: str, *, similarity: float) -> bool:
    key_a = merchant_key(a)
    key_b = merchant_key(b)
    if not key_a or not key_b:
        return (a or "").strip().lower() == (b or "").strip().lower()
    if key_a == key_b:
        return True
    if key_a in key_b or key_b in key_a:
        return True
    return fuzz.ratio(key_a, key_b) / 100 >= similarity


def find_duplicate(
    draft: TransactionDraft,
    recent: Iterable[LedgerEntry],
    *,
    window_days: int = 3,
    similarity: float = 0.85,
) -> Optional[LedgerEntry]:
    """
    `recent` must already be scoped to draft.user_id by the caller.
    """
    for entry in recent:
        if entry.type != draft.type or entry.amount != draft.amount:
            continue
        if abs((entry.date.date() - draft.calendar_date).days) > window_days:
            continue
        if merchants_match(entry.merchant, draft.merchant, similarity=similarity):
            return entry
    return None


def looks_like_duplicate(
    draft: TransactionDraft,
    recent: Iterable[LedgerEntry],
    *,
    window_days: int = 3,
    similarity: float = 0.85,
) -> bool:
    return find_duplicate(draft, recent, window_days=window_days, similarity=similarity) is not None
