from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user
from backend.app.api.routes.score import ScoreOut
from backend.app.api.routes.nudges import NudgeOut
from backend.app.db import get_db
from backend.app.models import User
from backend.app.services import transaction_service
from backend.app.services.activity_service import MutationResult
from backend.app.services.nudge_service import serialize_nudge
from backend.app.services.score_service import serialize_score

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


class TransactionIn(BaseModel):
    amount: Any
    type: Optional[str] = None
    merchant: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    account: Optional[str] = None
    date: Optional[Any] = None
    notes: Optional[str] = None


class TransactionPatch(BaseModel):
    amount: Optional[Any] = None
    type: Optional[str] = None
    merchant: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    account: Optional[str] = None
    date: Optional[Any] = None
    notes: Optional[str] = None
    is_duplicate: Optional[bool] = None


class TransactionOut(BaseModel):
    id: str
    amount: float
    type: str
    merchant: str
    description: Optional[str] = None
    category: str
    subcategory: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    account: str
    date: date
    notes: Optional[str] = None
    source: str
    external_id: Optional[str] = None
    is_duplicate: bool
    created_at: datetime
    updated_at: datetime


class TransactionMutationOut(BaseModel):
    transaction: Optional[TransactionOut] = None
    deleted_id: Optional[str] = None
    score: ScoreOut
    nudges_created: List[NudgeOut]
    nudges_completed: List[NudgeOut]


class BatchIn(BaseModel):
    rows: List[Any]


class CsvImportIn(BaseModel):
    csv: str


class ProviderSyncIn(BaseModel):
    transactions: List[Any]


class BatchErrorOut(BaseModel):
    index: int
    message: str


class BatchOut(BaseModel):
    success: int
    duplicates: int
    errors: List[BatchErrorOut]
    skipped: Optional[int] = None


class PeriodTotalsOut(BaseModel):
    income: float
    expense: float
    savings: float
    savings_rate: Optional[float] = None


class PeriodSummaryOut(PeriodTotalsOut):
    period: str


class SummaryOut(BaseModel):
    period: str
    start: Optional[date] = None
    end: Optional[date] = None
    periods: List[PeriodSummaryOut]
    total: PeriodTotalsOut


def _mutation_out(result: MutationResult) -> TransactionMutationOut:
    out: Dict[str, Any] = {
        "score": serialize_score(result.score),
        "nudges_created": [serialize_nudge(n) for n in result.nudges.created],
        "nudges_completed": [serialize_nudge(n) for n in result.nudges.completed],
    }
    if isinstance(result.entity, str):
        out["deleted_id"] = result.entity
    else:
        out["transaction"] = transaction_service.serialize_transaction(result.entity)
    return TransactionMutationOut(**out)


@router.get("", response_model=List[TransactionOut])
def list_transactions(
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    category: Optional[str] = Query(default=None),
    type: Optional[Literal["income", "expense"]] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = transaction_service.list_transactions(
        db,
        user.id,
        start=start_date,
        end=end_date,
        category=category,
        txn_type=type,
        limit=limit,
        offset=offset,
    )
    return [transaction_service.serialize_transaction(row) for row in rows]


@router.get("/summary", response_model=SummaryOut)
def summarize_transactions(
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    period: Literal["month", "year"] = Query(default="month"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return transaction_service.summarize(db, user.id, start=start_date, end=end_date, period=period)


@router.post("", response_model=TransactionMutationOut, status_code=201)
def create_transaction(
    req: TransactionIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = transaction_service.create_manual_transaction(db, user.id, req.model_dump(exclude_none=True))
    return _mutation_out(result)


@router.post("/import", response_model=BatchOut)
def import_transactions(
    req: BatchIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = transaction_service.import_batch(db, user.id, req.rows)
    return result.as_dict()


@router.post("/import/csv", response_model=BatchOut)
def import_transactions_csv(
    req: CsvImportIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = transaction_service.import_csv(db, user.id, req.csv)
    return result.as_dict()


@router.post("/sync", response_model=BatchOut)
def sync_transactions(
    req: ProviderSyncIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = transaction_service.sync_provider_transactions(db, user.id, req.transactions)
    return result.as_dict(include_skipped=True)


@router.get("/{transaction_id}", response_model=TransactionOut)
def get_transaction(
    transaction_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    txn = transaction_service.get_transaction(db, user.id, transaction_id)
    return transaction_service.serialize_transaction(txn)


@router.patch("/{transaction_id}", response_model=TransactionMutationOut)
def update_transaction(
    transaction_id: str,
    req: TransactionPatch,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    changes = req.model_dump(exclude_unset=True)
    result = transaction_service.update_transaction(db, user.id, transaction_id, changes)
    return _mutation_out(result)


@router.delete("/{transaction_id}", response_model=TransactionMutationOut)
def delete_transaction(
    transaction_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = transaction_service.delete_transaction(db, user.id, transaction_id)
    return _mutation_out(result)
