"""
Error taxonomy for the ingestion / ledger / scoring engine.

Services raise these; the HTTP layer maps them to status codes in main.py.
Batch imports catch ValidationError per row and report it instead of raising.
"""

from __future__ import annotations

from typing import Optional


class EngineError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(EngineError):
    status_code = 422

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class NudgeStateError(ValidationError):
    def __init__(self, nudge_id: str, status: str):
        super().__init__("status", f"nudge {nudge_id} is already {status}")
        self.nudge_id = nudge_id
        self.status = status


class NotFoundError(EngineError):
    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class OwnershipError(EngineError):
    status_code = 403

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} does not belong to the current user")
        self.entity = entity
        self.entity_id = entity_id


class ConsistencyError(EngineError):
    """Derived ledger totals drifted from the transactions they summarize."""


class PersistenceError(EngineError):
    status_code = 500

    def __init__(self, message: str = "database error"):
        super().__init__(message)
