"""
Task lifecycle events.

The scheduler publishes one event per lifecycle transition it makes
(started, completed, failed). Subscribers observe; they never control
execution.

Design rules:
- Publishing NEVER raises into the scheduler
- A failing subscriber does not stop other subscribers
- Events carry a detached task snapshot
- No persistence
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from .models import Task

logger = logging.getLogger(__name__)


class TaskEventType(str, Enum):
    """Lifecycle event types."""

    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskEvent(BaseModel):
    """Single lifecycle event."""

    model_config = ConfigDict(extra="forbid")

    event_type: TaskEventType
    task: Task
    timestamp: datetime = Field(default_factory=datetime.now)
    message: Optional[str] = None

    def __str__(self) -> str:
        parts = [
            f"[{self.timestamp.isoformat()}]",
            self.event_type.value,
            f"(task: {self.task.id[:8]}, {self.task.kind})",
        ]
        if self.message:
            parts.append(f"- {self.message}")
        return " ".join(parts)


TaskEventCallback = Callable[[TaskEvent], None]


class TaskEventBus:
    """Multi-subscriber notification channel for task events."""

    def __init__(self):
        self._subscribers: List[TaskEventCallback] = []

    def subscribe(self, callback: TaskEventCallback) -> Callable[[], None]:
        """
        Register a subscriber.

        Returns:
            A callable that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: TaskEvent) -> None:
        """Deliver an event to every subscriber."""
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    f"[Events] Subscriber failed on {event.event_type.value} "
                    f"for task {event.task.id}"
                )
