"""
Task scheduling: lifecycle, admission control, cancellation and events.

A Task wraps one operation request. The TaskScheduler owns every task,
admits them FIFO up to a concurrency limit and publishes lifecycle
events to a TaskEventBus.
"""

from .errors import (
    TaskError,
    TaskNotFoundError,
    InvalidStateTransitionError,
)
from .models import Task, TaskStats, TaskStatus
from .state import (
    TERMINAL_TASK_STATES,
    can_transition_task,
    is_task_terminal,
    validate_task_transition,
)
from .registry import TaskRegistry
from .slots import AdmissionSlots
from .events import TaskEvent, TaskEventBus, TaskEventType
from .scheduler import TaskScheduler

__all__ = [
    # Errors
    "TaskError",
    "TaskNotFoundError",
    "InvalidStateTransitionError",
    # Models
    "Task",
    "TaskStats",
    "TaskStatus",
    # State
    "TERMINAL_TASK_STATES",
    "can_transition_task",
    "is_task_terminal",
    "validate_task_transition",
    # Components
    "TaskRegistry",
    "AdmissionSlots",
    "TaskEvent",
    "TaskEventBus",
    "TaskEventType",
    "TaskScheduler",
]
