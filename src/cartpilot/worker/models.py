"""Worker task definitions, execution options and result classes."""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union
from cartpilot.config import get_settings
from cartpilot.core.enums import ExecutionStrategy, RetryPolicy, WorkerTaskState
from cartpilot.worker.events import (
    WORKER_COMPLETED,
    WORKER_STARTED,
    EventHandler,
    WorkerEvent,
    WorkerEventBus,
)


@dataclass
class WorkerContext:
    """
    Shared environment handed to every worker.

    The orchestration core never looks inside ``page``; ``shared`` carries
    values published by the coordinator (cart snapshot, purchase history).
    """

    session_id: str
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("cartpilot.worker"))
    page: Any = None
    shared: Dict[str, Any] = field(default_factory=dict)


@dataclass
class WorkerOutcome:
    """
    What a worker returns from ``execute``.

    Tracks whether the worker succeeded and any data/error it produced.
    """

    success: bool
    data: Any = None
    error: Union[BaseException, str, None] = None

    @classmethod
    def from_value(cls, value: Any) -> "WorkerOutcome":
        """
        Normalize a worker return value.

        Accepts a WorkerOutcome or a mapping with ``success``, ``data`` and
        ``error`` keys.
        """
        if isinstance(value, WorkerOutcome):
            return value
        if isinstance(value, Mapping) and "success" in value:
            return cls(
                success=bool(value["success"]),
                data=value.get("data"),
                error=value.get("error"),
            )
        raise TypeError(f"Worker returned unsupported outcome type: {type(value).__name__}")


WorkerExecute = Callable[[WorkerContext], Awaitable[Any]]


@dataclass
class WorkerTask:
    """
    A named unit of work executable by the engine.

    ``dependencies`` is reserved: the engine does not enforce it.
    """

    name: str
    execute: WorkerExecute
    enabled: bool = True
    config: Any = None
    priority: int = 0
    dependencies: Tuple[str, ...] = ()


@dataclass(frozen=True)
class WorkerResult:
    """Outcome of running one worker task, retries included."""

    name: str
    success: bool
    state: WorkerTaskState
    started_at: datetime
    completed_at: datetime
    data: Any = None
    error: Optional[BaseException] = None
    duration_ms: int = 0
    attempts: int = 0
    logs: Tuple[str, ...] = ()

    @property
    def error_message(self) -> Optional[str]:
        """Error message, if the worker failed."""
        return str(self.error) if self.error is not None else None


@dataclass(frozen=True)
class ExecutionResults:
    """Aggregate over one ``execute_workers`` call."""

    results: Mapping[str, WorkerResult]
    all_succeeded: bool
    partial_success: bool
    total_duration_ms: int
    success_count: int
    failure_count: int
    failed_workers: Tuple[str, ...]
    strategy: ExecutionStrategy

    def get(self, worker_name: str) -> Optional[WorkerResult]:
        """Result for a worker, or None if it was not part of the run."""
        return self.results.get(worker_name)

    def succeeded(self, worker_name: str) -> bool:
        """True if the worker ran and succeeded."""
        result = self.results.get(worker_name)
        return result.success if result is not None else False

    def all_logs(self) -> List[str]:
        """Log lines of every worker, in result order."""
        logs: List[str] = []
        for result in self.results.values():
            logs.extend(result.logs)
        return logs


def _default_timeout_ms() -> int:
    return get_settings().WORKER_TIMEOUT_MS


def _default_max_retries() -> int:
    return get_settings().WORKER_MAX_RETRIES


def _default_max_concurrency() -> int:
    return get_settings().WORKER_MAX_CONCURRENCY


def _default_retry_policy() -> RetryPolicy:
    return get_settings().RETRY_POLICY


@dataclass
class ExecutionOptions:
    """
    Options for one ``execute_workers`` call.

    Defaults come from Settings. ``on_worker_start`` and
    ``on_worker_complete`` are shortcuts subscribed to the event bus;
    start callbacks get the worker name, complete callbacks the WorkerResult.
    """

    max_concurrency: int = field(default_factory=_default_max_concurrency)
    worker_timeout_ms: int = field(default_factory=_default_timeout_ms)
    max_retries: int = field(default_factory=_default_max_retries)
    continue_on_failure: bool = True
    retry_policy: RetryPolicy = field(default_factory=_default_retry_policy)
    events: Optional[WorkerEventBus] = None
    on_worker_start: Optional[Callable[[str], None]] = None
    on_worker_complete: Optional[Callable[[WorkerResult], None]] = None

    def __post_init__(self):
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if self.worker_timeout_ms <= 0:
            raise ValueError("worker_timeout_ms must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")

    def callback_handlers(self) -> List[Tuple[str, EventHandler]]:
        """
        Event handlers wrapping the callback shortcuts.

        Returns:
            List of (event name, handler) pairs to subscribe for one call
        """
        handlers: List[Tuple[str, EventHandler]] = []
        if self.on_worker_start is not None:
            on_start = self.on_worker_start

            def _started(event: WorkerEvent) -> None:
                on_start(event.worker_name)

            handlers.append((WORKER_STARTED, _started))
        if self.on_worker_complete is not None:
            on_complete = self.on_worker_complete

            def _completed(event: WorkerEvent) -> None:
                on_complete(event.payload["result"])

            handlers.append((WORKER_COMPLETED, _completed))
        return handlers
