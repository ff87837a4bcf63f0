"""Worker lifecycle events and an in-process observer bus."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

WORKER_STARTED = "worker.started"
WORKER_RETRYING = "worker.retrying"
WORKER_COMPLETED = "worker.completed"


@dataclass
class WorkerEvent:
    """Something that happened to a worker during execution."""

    name: str
    worker_name: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


EventHandler = Callable[[WorkerEvent], None]


class WorkerEventBus:
    """
    Publishes worker events to zero or more subscribers.

    Handlers run synchronously in subscription order. A handler that
    raises is logged and skipped so observers never break execution.
    """

    def __init__(self):
        """Initialize bus with no subscribers."""
        self._handlers: Dict[str, List[EventHandler]] = {}

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """
        Subscribe a handler to an event name.

        Args:
            event_name: Event name to subscribe to
            handler: Callable receiving the WorkerEvent
        """
        self._handlers.setdefault(event_name, []).append(handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> bool:
        """
        Remove a handler.

        Returns:
            bool: True if the handler was subscribed
        """
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def handler_count(self, event_name: str) -> int:
        """Number of handlers subscribed to an event name."""
        return len(self._handlers.get(event_name, []))

    def publish(self, event: WorkerEvent) -> None:
        """
        Publish an event to all subscribed handlers.

        Args:
            event: Event to publish
        """
        for handler in list(self._handlers.get(event.name, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Event handler failed for {event.name} ({event.worker_name}): {e}",
                    exc_info=True,
                )

    def emit(self, event_name: str, worker_name: str, **payload: Any) -> None:
        """Build and publish an event in one call."""
        if not self._handlers.get(event_name):
            return
        self.publish(WorkerEvent(name=event_name, worker_name=worker_name, payload=payload))
