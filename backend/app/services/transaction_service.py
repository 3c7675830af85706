"""
Transaction use cases, one entry point per ingestion channel.

Every channel funnels into the same per-record pipeline:
  normalize -> categorize -> duplicate check -> insert -> ledger apply
and each call is one unit of work that ends by settling the score and nudges.
Batch channels report bad rows by index and keep going.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backend.app.config import get_settings
from backend.app.errors import ValidationError
from backend.app.intake.amounts import CENT
from backend.app.intake.categorize import CategoryStyle, categorize, style_for
from backend.app.intake.csv_rows import parse_csv_rows
from backend.app.intake.dates import resolve_date
from backend.app.intake.duplicates import LedgerEntry, find_duplicate
from backend.app.intake.normalize import TransactionDraft, TxnSource, normalize_transaction
from backend.app.intake.provider import provider_record_to_row
from backend.app.models import TRANSACTION_TYPES, Transaction, User
from backend.app.services import ledger_service, store
from backend.app.services.activity_service import MutationResult, settle_user, settled, touch
from backend.app.services.ledger_service import ZERO, Contribution
from backend.app.services.nudge_service import advance_onboarding

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "amount",
    "type",
    "merchant",
    "category",
    "subcategory",
    "description",
    "notes",
    "date",
    "account",
    "is_duplicate",
}


@dataclass
class BatchResult:
    success: int = 0
    duplicates: int = 0
    skipped: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)

    def as_dict(self, *, include_skipped: bool = False) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "success": self.success,
            "duplicates": self.duplicates,
            "errors": list(self.errors),
        }
        if include_skipped:
            out["skipped"] = self.skipped
        return out


# -------------------------
# Pipeline
# -------------------------

def _style(draft: TransactionDraft) -> CategoryStyle:
    if draft.category_supplied:
        return style_for(draft.category)
    text = " ".join(part for part in (draft.merchant, draft.description) if part)
    return categorize(draft.type, draft.taxonomy, text)


def _recent_entries(db: Session, draft: TransactionDraft, window_days: int) -> List[LedgerEntry]:
    start = draft.date - timedelta(days=window_days + 1)
    end = draft.date + timedelta(days=window_days + 1)
    rows = store.list_owned(
        db,
        Transaction,
        draft.user_id,
        Transaction.type == draft.type,
        Transaction.amount == draft.amount,
        Transaction.date >= start,
        Transaction.date <= end,
    )
    return [
        LedgerEntry(id=row.id, amount=row.amount, type=row.type, merchant=row.merchant, date=row.date)
        for row in rows
    ]


def _ingest(db: Session, user: User, draft: TransactionDraft) -> Transaction:
    """Runs inside the caller's unit of work, with the user row locked."""
    settings = get_settings()
    style = _style(draft)
    duplicate_of = find_duplicate(
        draft,
        _recent_entries(db, draft, settings.duplicate_window_days),
        window_days=settings.duplicate_window_days,
        similarity=settings.duplicate_similarity,
    )

    txn = store.insert(
        db,
        Transaction(
            user_id=user.id,
            amount=draft.amount,
            type=draft.type,
            merchant=draft.merchant,
            description=draft.description,
            category=style.category,
            subcategory=draft.subcategory,
            icon=style.icon,
            color=style.color,
            account=draft.account,
            date=draft.date,
            notes=draft.notes,
            source=draft.source,
            external_id=draft.external_id,
            is_duplicate=duplicate_of is not None,
        ),
    )
    if duplicate_of is not None:
        logger.info(
            "Transaction id=%s for user_id=%s looks like a duplicate of id=%s",
            txn.id,
            user.id,
            duplicate_of.id,
        )

    ledger_service.apply_transaction(db, user.id, Contribution.of(txn))
    touch(user, "transaction")
    advance_onboarding(db, user, "transaction_added")
    return txn


def _run_batch(
    db: Session,
    user: User,
    rows: Sequence[Mapping[str, Any]],
    source: TxnSource,
    result: BatchResult,
    *,
    skip_index: Optional[Set[int]] = None,
) -> BatchResult:
    for index, row in enumerate(rows):
        if skip_index and index in skip_index:
            continue
        try:
            if not isinstance(row, Mapping):
                raise ValidationError("row", "each row must be an object")
            draft = normalize_transaction(row, user_id=user.id, source=source)
            txn = _ingest(db, user, draft)
        except ValidationError as exc:
            logger.warning("Skipping %s row %d for user_id=%s: %s", source, index, user.id, exc.message)
            result.errors.append({"index": index, "message": exc.message})
            continue
        result.success += 1
        if txn.is_duplicate:
            result.duplicates += 1
        result.transactions.append(txn)
    return result


# -------------------------
# Channels
# -------------------------

def create_manual_transaction(db: Session, user_id: str, payload: Mapping[str, Any]) -> MutationResult:
    with store.atomic(db):
        user = store.lock_user(db, user_id)
        draft = normalize_transaction(payload, user_id=user.id, source="manual")
        txn = _ingest(db, user, draft)
        settlement = settle_user(db, user.id, reason="transaction added")
    return settled(txn, settlement)


def import_batch(
    db: Session,
    user_id: str,
    rows: Sequence[Mapping[str, Any]],
    *,
    source: TxnSource = "batch-import",
) -> BatchResult:
    result = BatchResult()
    with store.atomic(db):
        user = store.lock_user(db, user_id)
        _run_batch(db, user, rows, source, result)
        if result.success:
            settle_user(db, user.id, reason=f"{result.success} transactions imported")
    logger.info(
        "Batch import for user_id=%s: %d imported, %d duplicates, %d errors",
        user_id,
        result.success,
        result.duplicates,
        len(result.errors),
    )
    return result


def import_csv(db: Session, user_id: str, text: str) -> BatchResult:
    if not (text or "").strip():
        raise ValidationError("file", "CSV file is empty")
    return import_batch(db, user_id, parse_csv_rows(text))


def _known_external_ids(db: Session, user_id: str, candidates: Iterable[str]) -> Set[str]:
    wanted = {c for c in candidates if c}
    if not wanted:
        return set()
    rows = db.execute(
        select(Transaction.external_id).where(
            Transaction.user_id == user_id,
            Transaction.external_id.in_(wanted),
        )
    ).scalars()
    return set(rows)


def sync_provider_transactions(
    db: Session,
    user_id: str,
    records: Sequence[Mapping[str, Any]],
) -> BatchResult:
    """
    Ingest bank-feed records. Records whose provider id was already ingested
    for this user are counted as skipped.
    """
    rows = [provider_record_to_row(r) if isinstance(r, Mapping) else r for r in records]
    result = BatchResult()
    with store.atomic(db):
        user = store.lock_user(db, user_id)
        known = _known_external_ids(
            db, user.id, [row.get("external_id") for row in rows if isinstance(row, Mapping)]
        )
        skip: Set[int] = set()
        for index, row in enumerate(rows):
            external_id = row.get("external_id") if isinstance(row, Mapping) else None
            if not external_id:
                continue
            if external_id in known:
                skip.add(index)
            known.add(external_id)
        result.skipped = len(skip)
        _run_batch(db, user, rows, "provider-sync", result, skip_index=skip)
        if result.success:
            settle_user(db, user.id, reason="linked account sync")
    logger.info(
        "Provider sync for user_id=%s: %d imported, %d duplicates, %d skipped, %d errors",
        user_id,
        result.success,
        result.duplicates,
        result.skipped,
        len(result.errors),
    )
    return result


# -------------------------
# Edit / delete / read
# -------------------------

def _editable_snapshot(txn: Transaction) -> Dict[str, Any]:
    return {
        "amount": txn.amount,
        "type": txn.type,
        "merchant": txn.merchant,
        "category": txn.category,
        "subcategory": txn.subcategory,
        "description": txn.description,
        "notes": txn.notes,
        "date": txn.date,
        "account": txn.account,
    }


def update_transaction(
    db: Session,
    user_id: str,
    transaction_id: str,
    changes: Mapping[str, Any],
) -> MutationResult:
    for key in changes:
        if key not in UPDATABLE_FIELDS:
            raise ValidationError(key, "field cannot be changed")

    with store.atomic(db):
        user = store.lock_user(db, user_id)
        txn = store.get_owned(db, Transaction, transaction_id, user.id)
        old = Contribution.of(txn)

        merged = _editable_snapshot(txn)
        merged.update({k: v for k, v in changes.items() if k != "is_duplicate"})
        recategorize = {"type", "amount", "merchant", "description"}.intersection(changes)
        if recategorize and "category" not in changes and not _user_categorized(txn):
            merged.pop("category", None)

        draft = normalize_transaction(merged, user_id=user.id, source=txn.source)
        style = _style(draft)

        fields: Dict[str, Any] = {
            "amount": draft.amount,
            "type": draft.type,
            "merchant": draft.merchant,
            "category": style.category,
            "subcategory": draft.subcategory,
            "description": draft.description,
            "notes": draft.notes,
            "date": draft.date,
            "account": draft.account,
            "icon": style.icon,
            "color": style.color,
        }
        if "is_duplicate" in changes:
            fields["is_duplicate"] = bool(changes["is_duplicate"])
        store.update_fields(db, txn, **fields)

        ledger_service.replace_transaction(db, user.id, old, Contribution.of(txn))
        settlement = settle_user(db, user.id, reason="transaction updated")
    return settled(txn, settlement)


def _user_categorized(txn: Transaction) -> bool:
    """
    True when the stored category could not have come from the categorizer
    for this record, i.e. the user typed it.
    """
    text = " ".join(part for part in (txn.merchant, txn.description) if part)
    auto = categorize(txn.type, (), text)
    return auto.category.lower() != (txn.category or "").lower()


def delete_transaction(db: Session, user_id: str, transaction_id: str) -> MutationResult:
    with store.atomic(db):
        user = store.lock_user(db, user_id)
        txn = store.get_owned(db, Transaction, transaction_id, user.id)
        old = Contribution.of(txn)
        store.delete(db, txn)
        ledger_service.reverse_transaction(db, user.id, old)
        settlement = settle_user(db, user.id, reason="transaction deleted")
    return settled(transaction_id, settlement)


def get_transaction(db: Session, user_id: str, transaction_id: str) -> Transaction:
    return store.get_owned(db, Transaction, transaction_id, user_id)


def _date_criteria(start: Optional[date], end: Optional[date]) -> List[Any]:
    criteria: List[Any] = []
    if start is not None:
        criteria.append(Transaction.date >= resolve_date(start).replace(hour=0))
    if end is not None:
        criteria.append(Transaction.date <= resolve_date(end).replace(hour=23, minute=59, second=59))
    return criteria


def list_transactions(
    db: Session,
    user_id: str,
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
    category: Optional[str] = None,
    txn_type: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Transaction]:
    criteria = _date_criteria(start, end)
    if category:
        criteria.append(func.lower(Transaction.category) == category.strip().lower())
    if txn_type is not None:
        if txn_type not in TRANSACTION_TYPES:
            raise ValidationError("type", f"unknown transaction type {txn_type!r}")
        criteria.append(Transaction.type == txn_type)
    return store.list_owned(
        db,
        Transaction,
        user_id,
        *criteria,
        order_by=Transaction.date.desc(),
        limit=max(1, min(limit, 500)),
        offset=max(0, offset),
    )

# -------------------------
# Summary
# -------------------------

SUMMARY_PERIODS = ("month", "year")


def _period_key(day: datetime, period: str) -> str:
    return day.strftime("%Y-%m" if period == "month" else "%Y")


def _totals(income: Decimal, expense: Decimal) -> Dict[str, Any]:
    savings = income - expense
    return {
        "income": income,
        "expense": expense,
        "savings": savings,
        # percent of income kept; None without income
        "savings_rate": (savings / income * 100).quantize(CENT) if income > 0 else None,
    }


def summarize(
    db: Session,
    user_id: str,
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
    period: str = "month",
) -> Dict[str, Any]:
    """
    Income, expense and savings (income minus expense) per calendar period
    and over the whole range. Uses the same date filter as list_transactions;
    flagged duplicates count, as they do in the budget ledger.
    """
    if period not in SUMMARY_PERIODS:
        raise ValidationError("period", f"unknown summary period {period!r}")

    buckets: Dict[str, Dict[str, Decimal]] = {}
    for txn in store.list_owned(db, Transaction, user_id, *_date_criteria(start, end)):
        bucket = buckets.setdefault(_period_key(txn.date, period), {"income": ZERO, "expense": ZERO})
        bucket[txn.type] += Decimal(txn.amount)

    income = sum((b["income"] for b in buckets.values()), ZERO)
    expense = sum((b["expense"] for b in buckets.values()), ZERO)
    return {
        "period": period,
        "start": start,
        "end": end,
        "periods": [
            {"period": key, **_totals(bucket["income"], bucket["expense"])}
            for key, bucket in sorted(buckets.items())
        ],
        "total": _totals(income, expense),
    }



def serialize_transaction(txn: Transaction) -> Dict[str, Any]:
    return {
        "id": txn.id,
        "amount": txn.amount,
        "type": txn.type,
        "merchant": txn.merchant,
        "description": txn.description,
        "category": txn.category,
        "subcategory": txn.subcategory,
        "icon": txn.icon,
        "color": txn.color,
        "account": txn.account,
        "date": txn.date.date(),
        "notes": txn.notes,
        "source": txn.source,
        "external_id": txn.external_id,
        "is_duplicate": txn.is_duplicate,
        "created_at": txn.created_at,
        "updated_at": txn.updated_at,
    }
