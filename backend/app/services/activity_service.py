from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from backend.app.models import ScoreRecord, User, utcnow
from backend.app.services.nudge_service import NudgeEvaluation, evaluate_nudges
from backend.app.services.score_service import recompute_score

logger = logging.getLogger(__name__)

ACTIVITY_FIELDS = {
    "transaction": "last_transaction_at",
    "goal": "last_goal_update_at",
    "budget": "last_budget_update_at",
    "login": "last_login_at",
}


@dataclass
class Settlement:
    score: ScoreRecord
    nudges: NudgeEvaluation


@dataclass
class MutationResult:
    """What a use case changed, plus the derived state it settled."""
    entity: Any
    score: ScoreRecord
    nudges: NudgeEvaluation


def touch(user: User, kind: str, *, now: Optional[datetime] = None) -> None:
    setattr(user, ACTIVITY_FIELDS[kind], now or utcnow())


def settle_user(db: Session, user_id: str, *, reason: str) -> Settlement:
    """
    Recompute the score and re-evaluate nudges after a mutation.
    Must run inside the mutation's unit of work.
    """
    db.flush()
    score = recompute_score(db, user_id, reason=reason)
    nudges = evaluate_nudges(db, user_id)
    logger.debug("Settled user_id=%s after %s: score=%s", user_id, reason, score.score)
    return Settlement(score=score, nudges=nudges)


def settled(entity: Any, settlement: Settlement) -> MutationResult:
    return MutationResult(entity=entity, score=settlement.score, nudges=settlement.nudges)
