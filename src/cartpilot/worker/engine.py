"""Execution engine running worker tasks under one of three strategies."""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Union
from cartpilot.config import get_settings
from cartpilot.core.enums import ExecutionStrategy, WorkerTaskState
from cartpilot.core.exceptions import WorkerFailedError
from cartpilot.observability import metrics
from cartpilot.services.retry_service import RetryService
from cartpilot.worker.events import WorkerEventBus
from cartpilot.worker.models import (
    ExecutionOptions,
    ExecutionResults,
    WorkerContext,
    WorkerResult,
    WorkerTask,
)
from cartpilot.worker.task_executor import TaskExecutor

logger = logging.getLogger(__name__)


class _Tally:
    """Collects results in dispatch order and keeps the counters."""

    def __init__(self):
        self.results: Dict[str, WorkerResult] = {}
        self.success_count = 0
        self.failure_count = 0
        self.failed_workers: List[str] = []

    def add(self, result: WorkerResult) -> None:
        self.results[result.name] = result
        if result.success:
            self.success_count += 1
        else:
            self.failure_count += 1
            self.failed_workers.append(result.name)

    def block(self, tasks: Sequence[WorkerTask], reason: str) -> None:
        """Mark tasks that never started as blocked."""
        for task in tasks:
            now = datetime.now(timezone.utc)
            metrics.record_worker_blocked(task.name)
            self.add(
                WorkerResult(
                    name=task.name,
                    success=False,
                    state=WorkerTaskState.BLOCKED,
                    started_at=now,
                    completed_at=now,
                    error=WorkerFailedError(reason),
                    duration_ms=0,
                    attempts=0,
                    logs=(reason,),
                )
            )

    def finish(self, strategy: ExecutionStrategy, start: float) -> ExecutionResults:
        return ExecutionResults(
            results=dict(self.results),
            all_succeeded=self.failure_count == 0,
            partial_success=self.success_count > 0,
            total_duration_ms=int((time.monotonic() - start) * 1000),
            success_count=self.success_count,
            failure_count=self.failure_count,
            failed_workers=tuple(self.failed_workers),
            strategy=strategy,
        )


async def _execute_sequential(
    tasks: List[WorkerTask],
    context: WorkerContext,
    executor: TaskExecutor,
    options: ExecutionOptions,
) -> ExecutionResults:
    """Run tasks one at a time, in the given order."""
    start = time.monotonic()
    tally = _Tally()

    for index, task in enumerate(tasks):
        result = await executor.execute(task, context)
        tally.add(result)

        if not result.success and not options.continue_on_failure:
            remaining = tasks[index + 1:]
            if remaining:
                logger.warning(
                    f"Blocking {len(remaining)} worker(s) after failure of {task.name}"
                )
            tally.block(remaining, f"Blocked by failure of '{task.name}'")
            break

    return tally.finish(ExecutionStrategy.SEQUENTIAL, start)


async def _execute_parallel(
    tasks: List[WorkerTask],
    context: WorkerContext,
    executor: TaskExecutor,
    options: ExecutionOptions,
) -> ExecutionResults:
    """Run every task at once and collect all results."""
    start = time.monotonic()
    tally = _Tally()

    results = await asyncio.gather(*(executor.execute(task, context) for task in tasks))
    for result in results:
        tally.add(result)

    return tally.finish(ExecutionStrategy.PARALLEL, start)


async def _execute_parallel_limited(
    tasks: List[WorkerTask],
    context: WorkerContext,
    executor: TaskExecutor,
    options: ExecutionOptions,
) -> ExecutionResults:
    """Run tasks in batches of max_concurrency; each batch settles before the next."""
    start = time.monotonic()
    tally = _Tally()
    batch_size = options.max_concurrency

    for offset in range(0, len(tasks), batch_size):
        batch = tasks[offset:offset + batch_size]
        results = await asyncio.gather(*(executor.execute(task, context) for task in batch))
        for result in results:
            tally.add(result)

        if not options.continue_on_failure and tally.failure_count > 0:
            remaining = tasks[offset + batch_size:]
            if remaining:
                logger.warning(
                    f"Blocking {len(remaining)} worker(s) after a failed batch"
                )
            tally.block(remaining, "Blocked by previous batch failure")
            break

    return tally.finish(ExecutionStrategy.PARALLEL_LIMITED, start)


_STRATEGIES = {
    ExecutionStrategy.SEQUENTIAL: _execute_sequential,
    ExecutionStrategy.PARALLEL: _execute_parallel,
    ExecutionStrategy.PARALLEL_LIMITED: _execute_parallel_limited,
}


async def execute_workers(
    tasks: Sequence[WorkerTask],
    context: WorkerContext,
    strategy: Union[ExecutionStrategy, str] = ExecutionStrategy.SEQUENTIAL,
    options: Optional[ExecutionOptions] = None,
) -> ExecutionResults:
    """
    Execute worker tasks using the given strategy.

    Args:
        tasks: Tasks to run, usually ``registry.get_enabled_workers()``
        context: Shared worker context
        strategy: sequential, parallel or parallel-limited
        options: Execution options, defaults from Settings

    Returns:
        ExecutionResults: Aggregated results

    Raises:
        ValueError: If the strategy is unknown

    Example:
        >>> results = await execute_workers(
        >>>     registry.get_enabled_workers(),
        >>>     context,
        >>>     ExecutionStrategy.PARALLEL_LIMITED,
        >>>     ExecutionOptions(max_concurrency=2),
        >>> )
    """
    strategy = ExecutionStrategy(strategy)
    options = options or ExecutionOptions()

    # Callers should pass enabled tasks only, filter anyway
    enabled = [task for task in tasks if task.enabled]

    if not enabled:
        return ExecutionResults(
            results={},
            all_succeeded=True,
            partial_success=False,
            total_duration_ms=0,
            success_count=0,
            failure_count=0,
            failed_workers=(),
            strategy=strategy,
        )

    context.logger.info(
        f"Starting worker execution: strategy={strategy}, "
        f"workers={[task.name for task in enabled]}"
    )

    events = options.events or WorkerEventBus()
    handlers = options.callback_handlers()
    for event_name, handler in handlers:
        events.subscribe(event_name, handler)

    settings = get_settings()
    executor = TaskExecutor(
        retry_service=RetryService(
            retry_policy=options.retry_policy,
            base_delay=settings.RETRY_BASE_DELAY,
            max_delay=settings.RETRY_MAX_DELAY,
        ),
        events=events,
        worker_timeout_ms=options.worker_timeout_ms,
        max_retries=options.max_retries,
    )

    try:
        results = await _STRATEGIES[strategy](enabled, context, executor, options)
    finally:
        for event_name, handler in handlers:
            events.unsubscribe(event_name, handler)

    context.logger.info(
        f"Worker execution completed: strategy={strategy}, "
        f"all_succeeded={results.all_succeeded}, success={results.success_count}, "
        f"failed={results.failure_count}, duration_ms={results.total_duration_ms}"
    )
    return results
