"""Task executor for running one worker task with timeout and retries."""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional
from cartpilot.core.enums import WorkerTaskState
from cartpilot.core.exceptions import WorkerFailedError, WorkerTimeoutError
from cartpilot.observability import metrics
from cartpilot.services.error_classifier import classify_error
from cartpilot.services.retry_service import RetryService
from cartpilot.worker.events import (
    WORKER_COMPLETED,
    WORKER_RETRYING,
    WORKER_STARTED,
    WorkerEventBus,
)
from cartpilot.worker.models import WorkerContext, WorkerOutcome, WorkerResult, WorkerTask

logger = logging.getLogger(__name__)


class TaskExecutor:
    """
    Executes a single worker task.

    Each attempt races the worker against its timeout. Failed attempts are
    retried while the error is transient and the retry budget allows it.
    """

    def __init__(
        self,
        retry_service: RetryService,
        events: WorkerEventBus,
        worker_timeout_ms: int,
        max_retries: int,
    ):
        """
        Initialize task executor.

        Args:
            retry_service: Retry decisions and backoff
            events: Bus receiving worker lifecycle events
            worker_timeout_ms: Timeout per attempt in milliseconds
            max_retries: Retries allowed after the first attempt
        """
        self.retry_service = retry_service
        self.events = events
        self.worker_timeout_ms = worker_timeout_ms
        self.max_retries = max_retries

    async def execute(self, task: WorkerTask, context: WorkerContext) -> WorkerResult:
        """
        Run a task until it succeeds or fails for good.

        Args:
            task: Worker task to execute
            context: Shared worker context

        Returns:
            WorkerResult: Final result with attempt count and logs
        """
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()
        logs: List[str] = [f"Worker '{task.name}' starting execution"]
        self.events.emit(WORKER_STARTED, task.name)

        attempts = 0
        last_error: Optional[BaseException] = None

        while True:
            attempts += 1
            metrics.record_worker_attempt(task.name)

            try:
                outcome = await self._run_with_timeout(task, context)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
            else:
                if outcome.success:
                    return self._handle_success(task, outcome, attempts, started_at, start, logs)
                last_error = self._outcome_error(task, outcome)

            if not self.retry_service.should_retry(last_error, attempts, self.max_retries):
                break

            classification = classify_error(last_error)
            logs.append(
                f"Worker '{task.name}' failed (attempt {attempts}), retrying: {last_error}"
            )
            logger.warning(
                f"Worker {task.name} attempt {attempts} failed with transient error "
                f"({classification.matched_pattern}): {last_error}"
            )
            metrics.record_worker_retrying(task.name)
            self.events.emit(
                WORKER_RETRYING,
                task.name,
                attempt=attempts,
                max_retries=self.max_retries,
                error=last_error,
            )

            delay = self.retry_service.calculate_delay(attempts)
            if delay > 0:
                await asyncio.sleep(delay)

        return self._handle_failure(task, last_error, attempts, started_at, start, logs)

    async def _run_with_timeout(self, task: WorkerTask, context: WorkerContext) -> WorkerOutcome:
        """
        Run one attempt with timeout.

        Raises:
            WorkerTimeoutError: If the attempt exceeds the timeout
        """
        try:
            value = await asyncio.wait_for(
                task.execute(context),
                timeout=self.worker_timeout_ms / 1000,
            )
        except asyncio.TimeoutError as e:
            raise WorkerTimeoutError(task.name, self.worker_timeout_ms) from e

        return WorkerOutcome.from_value(value)

    def _outcome_error(self, task: WorkerTask, outcome: WorkerOutcome) -> BaseException:
        """Turn a failed outcome into an exception."""
        if isinstance(outcome.error, BaseException):
            return outcome.error
        if outcome.error:
            return WorkerFailedError(str(outcome.error))
        return WorkerFailedError(f"Worker '{task.name}' failed without error")

    def _handle_success(
        self,
        task: WorkerTask,
        outcome: WorkerOutcome,
        attempts: int,
        started_at: datetime,
        start: float,
        logs: List[str],
    ) -> WorkerResult:
        """Build the result of a successful task."""
        duration_ms = int((time.monotonic() - start) * 1000)
        logs.append(f"Worker '{task.name}' completed successfully in {duration_ms}ms")
        metrics.record_worker_succeeded(task.name, duration_ms / 1000)

        result = WorkerResult(
            name=task.name,
            success=True,
            state=WorkerTaskState.SUCCESS,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            data=outcome.data,
            duration_ms=duration_ms,
            attempts=attempts,
            logs=tuple(logs),
        )
        self.events.emit(WORKER_COMPLETED, task.name, result=result)
        return result

    def _handle_failure(
        self,
        task: WorkerTask,
        error: Optional[BaseException],
        attempts: int,
        started_at: datetime,
        start: float,
        logs: List[str],
    ) -> WorkerResult:
        """Build the result of a task that failed for good."""
        duration_ms = int((time.monotonic() - start) * 1000)
        logs.append(f"Worker '{task.name}' failed after {attempts} attempts: {error}")
        logger.error(f"Worker {task.name} failed after {attempts} attempts: {error}")
        metrics.record_worker_failed(task.name, duration_ms / 1000)

        result = WorkerResult(
            name=task.name,
            success=False,
            state=WorkerTaskState.FAILED,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            error=error,
            duration_ms=duration_ms,
            attempts=attempts,
            logs=tuple(logs),
        )
        self.events.emit(WORKER_COMPLETED, task.name, result=result)
        return result
