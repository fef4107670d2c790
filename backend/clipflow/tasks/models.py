"""
Task data models.

A Task wraps one operation request and its lifecycle state. Tasks are
owned by the TaskScheduler; callers only ever receive copies.

State transitions are validated externally (see state.py).
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from ..operations.models import OperationRequest, OperationResult


class TaskStatus(str, Enum):
    """
    Task lifecycle status.

    PENDING -> PROCESSING -> COMPLETED | FAILED
    PENDING -> FAILED (cancelled before admission)
    """

    PENDING = "pending"  # Queued, waiting for a free slot
    PROCESSING = "processing"  # Admitted, operation running
    COMPLETED = "completed"  # Produced output (possibly with errors)
    FAILED = "failed"  # No output, cancelled, or faulted


class Task(BaseModel):
    """
    A scheduled unit of work.

    request is None when the submitted descriptor could not be parsed;
    rejection_reason then explains why and execution fails the task.
    """

    model_config = ConfigDict(extra="forbid")

    # Identity
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: str

    # Operation
    request: Optional[OperationRequest] = None
    rejection_reason: Optional[str] = None

    # State
    status: TaskStatus = TaskStatus.PENDING

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Outcome
    result: Optional[OperationResult] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    def snapshot(self) -> "Task":
        """Detached copy safe to hand to callers."""
        return self.model_copy(deep=True)


class TaskStats(BaseModel):
    """Task counts per status."""

    model_config = ConfigDict(extra="forbid")

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0
