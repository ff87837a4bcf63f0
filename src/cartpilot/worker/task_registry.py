"""Registry of named worker tasks."""
from typing import Any, Callable, Dict, List, Optional, Sequence
from cartpilot.core.exceptions import WorkerAlreadyRegisteredError, WorkerNotRegisteredError
from cartpilot.worker.models import WorkerExecute, WorkerTask


def create_worker_task(
    name: str,
    execute: WorkerExecute,
    enabled: bool = True,
    config: Any = None,
    priority: int = 0,
    dependencies: Sequence[str] = (),
) -> WorkerTask:
    """
    Wrap an async callable into a WorkerTask.

    Args:
        name: Unique worker name
        execute: Async callable taking a WorkerContext
        enabled: Whether the worker runs
        config: Worker-specific configuration, opaque to the engine
        priority: Higher runs earlier
        dependencies: Reserved list of worker names

    Returns:
        WorkerTask: The new task
    """
    return WorkerTask(
        name=name,
        execute=execute,
        enabled=enabled,
        config=config,
        priority=priority,
        dependencies=tuple(dependencies),
    )


class WorkerRegistry:
    """
    Registry of worker tasks keyed by name.

    Keeps registration order, which is also the tie-breaker when
    enabled workers share a priority.
    """

    def __init__(self):
        """Initialize empty worker registry."""
        self._workers: Dict[str, WorkerTask] = {}

    def register(self, task: WorkerTask) -> None:
        """
        Register a worker task.

        Args:
            task: Task to register

        Raises:
            WorkerAlreadyRegisteredError: If a task with this name is already registered
        """
        if task.name in self._workers:
            raise WorkerAlreadyRegisteredError(f"Worker '{task.name}' is already registered")

        self._workers[task.name] = task

    def worker(
        self,
        name: str,
        priority: int = 0,
        enabled: bool = True,
        config: Any = None,
    ) -> Callable:
        """
        Decorator for registering an async function as a worker.

        Example:
            >>> registry = WorkerRegistry()
            >>> @registry.worker("slot_scout", priority=10)
            >>> async def scout(context):
            >>>     return WorkerOutcome(success=True, data={})
        """

        def decorator(execute: WorkerExecute) -> WorkerExecute:
            self.register(
                create_worker_task(
                    name, execute, enabled=enabled, config=config, priority=priority
                )
            )
            return execute

        return decorator

    def unregister(self, name: str) -> bool:
        """
        Remove a worker task.

        Returns:
            bool: True if a task was removed, False if none was registered
        """
        return self._workers.pop(name, None) is not None

    def get(self, name: str) -> Optional[WorkerTask]:
        """Get a task by name, or None if not registered."""
        return self._workers.get(name)

    def has(self, name: str) -> bool:
        """Check if a task is registered under this name."""
        return name in self._workers

    def set_enabled(self, name: str, enabled: bool) -> None:
        """
        Enable or disable a registered task.

        Raises:
            WorkerNotRegisteredError: If no task has this name
        """
        task = self._workers.get(name)
        if task is None:
            raise WorkerNotRegisteredError(f"Worker '{name}' is not registered")
        task.enabled = enabled

    def get_all_workers(self) -> List[WorkerTask]:
        """All registered tasks, enabled and disabled, in registration order."""
        return list(self._workers.values())

    def get_enabled_workers(self) -> List[WorkerTask]:
        """
        Enabled tasks, highest priority first.

        Returns:
            List[WorkerTask]: Sorted tasks; equal priorities keep registration order
        """
        enabled = [task for task in self._workers.values() if task.enabled]
        # sorted() is stable
        return sorted(enabled, key=lambda task: task.priority, reverse=True)

    def get_worker_names(self) -> List[str]:
        """Names of all registered tasks."""
        return list(self._workers.keys())

    def clear(self) -> None:
        """Remove every task."""
        self._workers.clear()

    def __len__(self) -> int:
        return len(self._workers)
