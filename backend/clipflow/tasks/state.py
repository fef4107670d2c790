"""
State transition validation for tasks.

Task lifecycle: PENDING -> PROCESSING -> COMPLETED | FAILED
Cancellation before admission: PENDING -> FAILED

INVARIANT: Terminal task states (COMPLETED, FAILED) are immutable.
Once a task is terminal it can only be removed from the registry.
No retry, no requeue: a failed task is resubmitted as a new task.
"""

from typing import FrozenSet, Set, Tuple

from .errors import InvalidStateTransitionError
from .models import TaskStatus


TERMINAL_TASK_STATES: FrozenSet[TaskStatus] = frozenset({
    TaskStatus.COMPLETED,
    TaskStatus.FAILED,
})


_TASK_TRANSITIONS: Set[Tuple[TaskStatus, TaskStatus]] = {
    (TaskStatus.PENDING, TaskStatus.PROCESSING),
    (TaskStatus.PENDING, TaskStatus.FAILED),
    (TaskStatus.PROCESSING, TaskStatus.COMPLETED),
    (TaskStatus.PROCESSING, TaskStatus.FAILED),
}


def is_task_terminal(status: TaskStatus) -> bool:
    """Check if a task status is terminal (immutable)."""
    return status in TERMINAL_TASK_STATES


def can_transition_task(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """
    Check if a task state transition is legal.

    Terminal states cannot transition to anything, including themselves.
    """
    if is_task_terminal(from_status):
        return False

    if from_status == to_status:
        return True

    return (from_status, to_status) in _TASK_TRANSITIONS


def validate_task_transition(from_status: TaskStatus, to_status: TaskStatus) -> None:
    """
    Validate a task state transition, raising an exception if illegal.

    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    if not can_transition_task(from_status, to_status):
        raise InvalidStateTransitionError(from_status.value, to_status.value)
