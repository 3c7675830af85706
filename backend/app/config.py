from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


def database_url() -> str:
    url = os.getenv("DATABASE_URL") or os.getenv("SQLALCHEMY_DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL or SQLALCHEMY_DATABASE_URL must be set to create the database engine."
        )
    return url


@dataclass(frozen=True)
class Settings:
    # Duplicate detection
    duplicate_window_days: int = 3
    duplicate_similarity: float = 0.85

    # Score engine
    weekly_activity_days: int = 7
    score_floor: int = 10

    # Nudge engine
    nudge_transaction_inactive_days: int = 7
    nudge_goal_stale_days: int = 14
    nudge_budget_review_days: int = 30
    nudge_dismiss_cooldown_days: int = 7

    log_level: str = "INFO"
    cors_allow_origins: Optional[str] = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        duplicate_window_days=_int_env("DUPLICATE_WINDOW_DAYS", 3),
        duplicate_similarity=_float_env("DUPLICATE_SIMILARITY", 0.85),
        weekly_activity_days=_int_env("WEEKLY_ACTIVITY_DAYS", 7),
        score_floor=_int_env("SCORE_FLOOR", 10),
        nudge_transaction_inactive_days=_int_env("NUDGE_TRANSACTION_INACTIVE_DAYS", 7),
        nudge_goal_stale_days=_int_env("NUDGE_GOAL_STALE_DAYS", 14),
        nudge_budget_review_days=_int_env("NUDGE_BUDGET_REVIEW_DAYS", 30),
        nudge_dismiss_cooldown_days=_int_env("NUDGE_DISMISS_COOLDOWN_DAYS", 7),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
        cors_allow_origins=os.getenv("CORS_ALLOW_ORIGINS"),
    )
