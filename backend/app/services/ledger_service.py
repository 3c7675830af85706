"""
Ledger consistency: the only writer of BudgetCategory.spent_amount and
SavingsGoal.current_amount / progress_percentage / monthly_savings.

Invariants (at rest, after every unit of work):
- budget.spent_amount == sum of the user's expense transactions whose
  category equals budget.name (case-insensitive)
- goal.current_amount == sum of goal.monthly_savings amounts
- 0 <= goal.progress_percentage <= 100

Callers run these inside store.atomic(), after the transaction row change
has been flushed, so a reverse-then-apply is never observable half done and
the negative-total guard can rebuild from the final ledger state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.errors import ConsistencyError, ValidationError
from backend.app.intake.amounts import CENT, parse_signed_amount
from backend.app.models import BudgetCategory, SavingsGoal, Transaction

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def name_key(name: Optional[str]) -> str:
    return (name or "").strip().lower()


@dataclass(frozen=True)
class Contribution:
    """What one transaction adds to budget totals."""
    type: str
    category: str
    amount: Decimal

    @classmethod
    def of(cls, txn: Transaction) -> "Contribution":
        return cls(type=txn.type, category=txn.category, amount=Decimal(txn.amount))


# -------------------------
# Budgets
# -------------------------

def find_budget(db: Session, user_id: str, category: str) -> Optional[BudgetCategory]:
    key = name_key(category)
    if not key:
        return None
    return db.execute(
        select(BudgetCategory).where(
            BudgetCategory.user_id == user_id,
            BudgetCategory.name_key == key,
        )
    ).scalar_one_or_none()


def expected_spent(db: Session, user_id: str, category: str) -> Decimal:
    key = name_key(category)
    rows = db.execute(
        select(Transaction.category, Transaction.amount).where(
            Transaction.user_id == user_id,
            Transaction.type == "expense",
        )
    ).all()
    total = sum((Decimal(amount) for cat, amount in rows if name_key(cat) == key), ZERO)
    return total.quantize(CENT)


def recompute_category(db: Session, budget: BudgetCategory) -> BudgetCategory:
    """Rebuild spent_amount from the ledger (new or renamed budgets)."""
    budget.spent_amount = expected_spent(db, budget.user_id, budget.name)
    db.flush()
    return budget


def _adjust(db: Session, user_id: str, contribution: Contribution, sign: int) -> Optional[str]:
    """
    Returns the id of a budget that had to be rebuilt from the ledger instead.
    """
    if contribution.type != "expense":
        return None
    budget = find_budget(db, user_id, contribution.category)
    if budget is None:
        logger.debug(
            "No budget category %r for user_id=%s; spent totals unchanged",
            contribution.category,
            user_id,
        )
        return None
    updated = (Decimal(budget.spent_amount or 0) + sign * contribution.amount).quantize(CENT)
    if updated < 0:
        logger.warning(
            "Invariant guard: spent_amount for budget_id=%s went negative (%s); rebuilding from ledger",
            budget.id,
            updated,
        )
        db.flush()
        recompute_category(db, budget)
        return budget.id
    budget.spent_amount = updated
    db.flush()
    return None


def apply_transaction(db: Session, user_id: str, contribution: Contribution) -> None:
    _adjust(db, user_id, contribution, +1)


def reverse_transaction(db: Session, user_id: str, contribution: Contribution) -> None:
    _adjust(db, user_id, contribution, -1)


def replace_transaction(db: Session, user_id: str, old: Contribution, new: Contribution) -> None:
    if old == new:
        return
    rebuilt = _adjust(db, user_id, old, -1)
    if rebuilt is not None and new.type == "expense":
        target = find_budget(db, user_id, new.category)
        if target is not None and target.id == rebuilt:
            # the rebuild already counted the new values
            return
    apply_transaction(db, user_id, new)


# -------------------------
# Savings goals
# -------------------------

def progress_for(current: Decimal, target: Decimal) -> Decimal:
    if target is None or Decimal(target) <= 0:
        return ZERO
    pct = Decimal(current) / Decimal(target) * HUNDRED
    pct = max(ZERO, min(HUNDRED, pct))
    return pct.quantize(CENT, rounding=ROUND_HALF_UP)


def recompute_goal_progress(goal: SavingsGoal) -> SavingsGoal:
    goal.progress_percentage = progress_for(goal.current_amount, goal.target_amount)
    return goal


def month_key(day: date) -> str:
    return day.strftime("%Y-%m")


def _merge_month(entries: List[Dict[str, Any]], month: str, delta: Decimal) -> List[Dict[str, Any]]:
    merged: List[Dict[str, Any]] = []
    found = False
    for entry in entries or []:
        item = dict(entry)
        if item.get("month") == month:
            item["amount"] = str((Decimal(str(item.get("amount") or 0)) + delta).quantize(CENT))
            found = True
        merged.append(item)
    if not found:
        merged.append({"month": month, "amount": str(delta.quantize(CENT))})
    return merged


def add_to_goal(db: Session, goal: SavingsGoal, amount: Any, *, today: Optional[date] = None) -> SavingsGoal:
    """
    Record a contribution (or, with a negative amount, a withdrawal).
    The balance never drops below zero.
    """
    delta = parse_signed_amount(amount)
    current = Decimal(goal.current_amount or 0)
    updated = (current + delta).quantize(CENT)
    if updated < 0:
        raise ValidationError("amount", "withdrawal exceeds the saved amount")

    goal.current_amount = updated
    # Assign a new list so the JSON column is marked dirty.
    goal.monthly_savings = _merge_month(goal.monthly_savings or [], month_key(today or date.today()), delta)
    recompute_goal_progress(goal)
    db.flush()
    return goal


def monthly_total(goal: SavingsGoal) -> Decimal:
    return sum((Decimal(str(entry.get("amount") or 0)) for entry in goal.monthly_savings or []), ZERO)


# -------------------------
# Reconciliation
# -------------------------

def reconcile_user(db: Session, user_id: str, *, repair: bool = False) -> Dict[str, List[Dict[str, Any]]]:
    """
    Compare every stored total with the value derived from the ledger.
    With repair=True the stored totals are rewritten (goals are rebuilt from
    their contribution history).
    """
    drift: Dict[str, List[Dict[str, Any]]] = {"budgets": [], "goals": []}

    budgets = db.execute(select(BudgetCategory).where(BudgetCategory.user_id == user_id)).scalars().all()
    for budget in budgets:
        expected = expected_spent(db, user_id, budget.name)
        stored = Decimal(budget.spent_amount or 0).quantize(CENT)
        if stored != expected:
            drift["budgets"].append(
                {"id": budget.id, "name": budget.name, "stored": str(stored), "expected": str(expected)}
            )
            if repair:
                budget.spent_amount = expected

    goals = db.execute(select(SavingsGoal).where(SavingsGoal.user_id == user_id)).scalars().all()
    for goal in goals:
        expected = monthly_total(goal).quantize(CENT)
        stored = Decimal(goal.current_amount or 0).quantize(CENT)
        expected_progress = progress_for(expected, goal.target_amount)
        stored_progress = Decimal(goal.progress_percentage or 0).quantize(CENT)
        if stored != expected or stored_progress != expected_progress:
            drift["goals"].append(
                {"id": goal.id, "name": goal.name, "stored": str(stored), "expected": str(expected)}
            )
            if repair:
                goal.current_amount = expected
                goal.progress_percentage = expected_progress

    if drift["budgets"] or drift["goals"]:
        logger.warning(
            "Ledger drift for user_id=%s: %d budgets, %d goals (repair=%s)",
            user_id,
            len(drift["budgets"]),
            len(drift["goals"]),
            repair,
        )
    db.flush()
    return drift


def assert_consistent(db: Session, user_id: str) -> None:
    drift = reconcile_user(db, user_id, repair=False)
    if drift["budgets"] or drift["goals"]:
        raise ConsistencyError(f"ledger drift for user {user_id}: {drift}")
