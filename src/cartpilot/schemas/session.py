"""Pydantic schemas for coordinator sessions, configuration and results."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from cartpilot.config import get_settings
from cartpilot.core.enums import (
    ErrorSeverity,
    ErrorSource,
    ExecutionStrategy,
    MergeStrategy,
    SessionStatus,
)
from cartpilot.schemas.review import ReviewPack
from cartpilot.schemas.workers import WorkerSlots


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CoordinatorError(BaseModel):
    """Error recorded in a session. Entries are appended, never edited."""

    code: str = Field(..., min_length=1)
    message: str
    severity: ErrorSeverity
    source: ErrorSource
    recovery_attempted: bool = False
    recovery_outcome: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
    context: Optional[Dict[str, Any]] = None


class CoordinatorSession(BaseModel):
    """State of one shopping run, mutated in place by the coordinator."""

    session_id: str = Field(..., min_length=1)
    start_time: datetime = Field(default_factory=_utcnow)
    end_time: Optional[datetime] = None
    username: str
    household_id: str
    status: SessionStatus = SessionStatus.INITIALIZING
    workers: WorkerSlots = Field(default_factory=WorkerSlots)
    review_pack: Optional[ReviewPack] = None
    errors: List[CoordinatorError] = Field(default_factory=list)
    screenshots: List[str] = Field(default_factory=list)

    def warnings(self) -> List[CoordinatorError]:
        """Errors recorded with warning severity."""
        return [e for e in self.errors if e.severity == ErrorSeverity.WARNING]

    def has_fatal_error(self) -> bool:
        return any(e.severity == ErrorSeverity.FATAL for e in self.errors)


class CoordinatorConfig(BaseModel):
    """Per-run coordinator options. Defaults come from Settings."""

    max_orders_to_load: int = Field(default=3, gt=0)
    include_favorites: bool = False
    merge_strategy: MergeStrategy = MergeStrategy.LATEST
    capture_screenshots: bool = True
    session_timeout_ms: int = Field(
        default_factory=lambda: get_settings().WORKER_TIMEOUT_MS, gt=0
    )
    max_retries: int = Field(
        default_factory=lambda: get_settings().WORKER_MAX_RETRIES, ge=0
    )
    clear_existing_cart: bool = False
    enable_substitution: bool = False
    enable_stock_pruning: bool = False
    enable_slot_scouting: bool = False
    optional_worker_strategy: ExecutionStrategy = ExecutionStrategy.SEQUENTIAL


class LoginResult(BaseModel):
    """Outcome reported by the login collaborator."""

    logged_in: bool
    session_restored: bool = False
    user_name: Optional[str] = None
    error: Optional[str] = None


class CoordinatorResult(BaseModel):
    """Result of a coordinator run, successful or not."""

    success: bool
    session: CoordinatorSession
    review_pack: Optional[ReviewPack] = None
    error: Optional[CoordinatorError] = None
    warnings: List[CoordinatorError] = Field(default_factory=list)
    screenshots: List[str] = Field(default_factory=list)
    logs: List[str] = Field(default_factory=list)
    duration_ms: int = Field(default=0, ge=0)


def create_session(session_id: str, username: str, household_id: str) -> CoordinatorSession:
    """Create an empty session in the initializing state."""
    return CoordinatorSession(
        session_id=session_id,
        username=username,
        household_id=household_id,
    )


def create_error(
    code: str,
    message: str,
    severity: ErrorSeverity,
    source: ErrorSource,
    context: Optional[Dict[str, Any]] = None,
    recovery_attempted: bool = False,
    recovery_outcome: Optional[str] = None,
) -> CoordinatorError:
    """Create a coordinator error stamped with the current time."""
    return CoordinatorError(
        code=code,
        message=message,
        severity=severity,
        source=source,
        context=context,
        recovery_attempted=recovery_attempted,
        recovery_outcome=recovery_outcome,
    )
