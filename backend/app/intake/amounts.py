from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from backend.app.errors import ValidationError

CENT = Decimal("0.01")
# Numeric(12, 2) holds ten integer digits.
MAX_AMOUNT = Decimal("10000000000")

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def _from_text(raw: str) -> Decimal:
    text = raw.strip()
    negative = False
    if text.startswith("(") and text.endswith(")"):
        # accounting notation: (12.50) == -12.50
        negative = True
        text = text[1:-1]
    cleaned = _NON_NUMERIC.sub("", text)
    if cleaned.startswith("-"):
        negative = True
    digits = cleaned.replace("-", "")
    if not digits:
        raise ValidationError("amount", f"not a number: {raw!r}")
    try:
        value = Decimal(digits)
    except InvalidOperation as exc:
        raise ValidationError("amount", f"not a number: {raw!r}") from exc
    return -value if negative else value


def _to_cents(raw: Any) -> Decimal:
    if raw is None or isinstance(raw, bool):
        raise ValidationError("amount", "amount is required")
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, (int, float)):
        try:
            value = Decimal(str(raw))
        except InvalidOperation as exc:
            raise ValidationError("amount", f"not a number: {raw!r}") from exc
    elif isinstance(raw, str):
        value = _from_text(raw)
    else:
        raise ValidationError("amount", f"unsupported amount type {type(raw).__name__}")

    if not value.is_finite():
        raise ValidationError("amount", "amount must be finite")
    if abs(value) >= MAX_AMOUNT:
        raise ValidationError("amount", "amount is too large")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_signed_amount(raw: Any) -> Decimal:
    """
    Parse a raw amount into a signed Decimal rounded to cents.

    Text may carry currency symbols and thousands separators. Non-finite values
    and values that round to zero are rejected.
    """
    value = _to_cents(raw)
    if value == 0:
        raise ValidationError("amount", "amount must be non-zero")
    return value


def parse_positive_amount(raw: Any, *, field: str = "amount") -> Decimal:
    """For budget/goal amounts: must be a finite number greater than zero."""
    try:
        value = parse_signed_amount(raw)
    except ValidationError as exc:
        raise ValidationError(field, exc.message.split(": ", 1)[-1]) from exc
    if value <= 0:
        raise ValidationError(field, "must be greater than zero")
    return value


def parse_opening_amount(raw: Any, *, field: str = "amount") -> Optional[Decimal]:
    """Opening balances: blank or zero means none, negatives are rejected."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    try:
        value = _to_cents(raw)
    except ValidationError as exc:
        raise ValidationError(field, exc.message.split(": ", 1)[-1]) from exc
    if value < 0:
        raise ValidationError(field, "cannot be negative")
    return value or None
