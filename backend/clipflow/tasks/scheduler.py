"""
Task scheduler: bounded-concurrency admission over a FIFO queue.

Runs on a single asyncio event loop. The registry, the queue and the
admission slots are only mutated from loop callbacks (submit, dispatch,
completion, cancel), never from other threads, so no locks are needed.

Lifecycle:
    submit -> PENDING (registry + queue tail)
    dispatch -> PROCESSING (slot taken, execution started)
    completion -> COMPLETED | FAILED (slot returned, dispatch re-run)
    cancel -> FAILED (pending: always; processing: only if abort confirmed)

Design rules:
- dispatch is the ONLY admission point
- Slot return and re-dispatch happen on every exit path of an execution
- One faulting task never stops the queue
- No retries, no timeouts, no persistence
"""

import asyncio
import logging
import time
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, Iterable, List, Optional, Set, Tuple

from ..media.base import CancellationToken, MediaBackend
from ..operations.errors import ValidationError
from ..operations.models import OperationResult, parse_request
from ..operations.orchestrator import OperationOrchestrator
from .events import TaskEvent, TaskEventBus, TaskEventType
from .models import Task, TaskStats, TaskStatus
from .registry import TaskRegistry
from .slots import AdmissionSlots
from .state import validate_task_transition

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 3

CANCELLED_PENDING_MESSAGE = "Task cancelled before execution"
CANCELLED_RUNNING_MESSAGE = "Task cancelled during execution"


def _descriptor_kind(descriptor: Any) -> str:
    kind = getattr(descriptor, "kind", None)
    if kind is None and isinstance(descriptor, dict):
        kind = descriptor.get("kind")
    if kind is None:
        return "unknown"
    return getattr(kind, "value", str(kind))


class TaskScheduler:
    """
    Owns every Task and decides when each one runs.

    Callers submit descriptors and get IDs back immediately; execution
    happens in background asyncio tasks. Everything returned to callers
    is a snapshot.
    """

    def __init__(
        self,
        orchestrator: OperationOrchestrator,
        backend: MediaBackend,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        events: Optional[TaskEventBus] = None,
    ):
        """
        Initialize scheduler.

        Args:
            orchestrator: Runs the operation behind each task
            backend: Media backend asked to abort in-flight work on cancel
            max_concurrent: Admission limit (clamped to at least 1)
            events: Lifecycle event bus (a private one is created if None)
        """
        self.orchestrator = orchestrator
        self.backend = backend
        self.events = events or TaskEventBus()
        self.registry = TaskRegistry()

        self._slots = AdmissionSlots(max_concurrent)
        self._queue: Deque[str] = deque()
        # task_id -> (token, runner) for admitted, unfinished tasks
        self._active: Dict[str, Tuple[CancellationToken, asyncio.Task]] = {}
        # Strong references so aborted runners are not garbage collected
        self._runners: Set[asyncio.Task] = set()
        self._waiters: Dict[str, List[asyncio.Future]] = {}

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def max_concurrent(self) -> int:
        return self._slots.limit

    @property
    def processing_count(self) -> int:
        return self._slots.in_use

    # =========================================================================
    # Submission and admission
    # =========================================================================

    def submit(self, descriptors: Iterable[Any]) -> List[str]:
        """
        Create one PENDING task per descriptor and queue it.

        Never raises for bad descriptors: a descriptor that does not parse
        still becomes a task, which fails when it is executed.

        Must be called from the running event loop.

        Returns:
            Task IDs in submission order
        """
        task_ids: List[str] = []

        for descriptor in descriptors:
            try:
                request = parse_request(descriptor)
                task = Task(kind=request.kind, request=request)
            except ValidationError as e:
                task = Task(kind=_descriptor_kind(descriptor), rejection_reason=str(e))
                logger.warning(f"[Scheduler] Task {task.id} rejected at submission: {e}")
            except Exception as e:
                reason = f"Invalid task descriptor: {e}"
                task = Task(kind=_descriptor_kind(descriptor), rejection_reason=reason)
                logger.warning(f"[Scheduler] Task {task.id} rejected at submission: {reason}")

            self.registry.add(task)
            self._queue.append(task.id)
            task_ids.append(task.id)
            logger.info(f"[Scheduler] Queued task {task.id} ({task.kind})")

        self._dispatch()
        return task_ids

    def _dispatch(self) -> None:
        """Admit queued tasks while slots are free."""
        while self._queue and self._slots.available:
            task_id = self._queue.popleft()
            task = self.registry.get(task_id)

            # Cancelled or cleaned up while queued
            if task is None or task.status != TaskStatus.PENDING:
                logger.debug(f"[Scheduler] Skipping stale queue entry {task_id}")
                continue

            if not self._slots.try_acquire():
                self._queue.appendleft(task_id)
                break

            self._admit(task)

    def _admit(self, task: Task) -> None:
        validate_task_transition(task.status, TaskStatus.PROCESSING)
        task.status = TaskStatus.PROCESSING
        task.started_at = datetime.now()

        token = CancellationToken(task.id)
        runner = asyncio.get_running_loop().create_task(self._execute(task, token))
        self._active[task.id] = (token, runner)
        self._runners.add(runner)
        runner.add_done_callback(self._runners.discard)

        logger.info(
            f"[Scheduler] Started task {task.id} ({task.kind}), "
            f"processing {self._slots.in_use}/{self._slots.limit}"
        )
        self._publish(TaskEventType.STARTED, task)

    # =========================================================================
    # Execution and completion
    # =========================================================================

    async def _execute(self, task: Task, token: CancellationToken) -> None:
        started = time.monotonic()
        result: Optional[OperationResult] = None

        try:
            if task.request is None:
                result = OperationResult.failed(
                    task.rejection_reason or "Invalid task descriptor"
                )
            else:
                result = await self.orchestrator.run(task.request, token)
        except asyncio.CancelledError:
            result = OperationResult.failed(
                "Task execution was interrupted",
                int((time.monotonic() - started) * 1000),
            )
            raise
        except Exception as e:
            logger.exception(f"[Scheduler] Task {task.id} faulted")
            result = OperationResult.failed(
                str(e) or type(e).__name__,
                int((time.monotonic() - started) * 1000),
            )
        finally:
            if result is None:
                result = OperationResult.failed("Task produced no result")
            self._complete(task, result)

    def _complete(self, task: Task, result: OperationResult) -> None:
        """Record a finished execution, return its slot and admit the next task."""
        if self._active.pop(task.id, None) is None:
            # cancel() already finalized the task and returned its slot
            logger.debug(f"[Scheduler] Task {task.id} finished after cancellation")
            return

        self._slots.release()

        if result.output_paths:
            status = TaskStatus.COMPLETED
            if not result.success:
                # Partial output is kept as a usable outcome
                logger.warning(
                    f"[Scheduler] Task {task.id} completed with errors: {result.error}"
                )
        else:
            status = TaskStatus.FAILED

        self._finalize(task, status, result)
        self._dispatch()

    def _finalize(self, task: Task, status: TaskStatus, result: OperationResult) -> None:
        validate_task_transition(task.status, status)
        task.status = status
        task.result = result
        task.completed_at = datetime.now()

        if status == TaskStatus.COMPLETED:
            logger.info(f"[Scheduler] Task {task.id} completed in {result.elapsed_ms} ms")
            self._publish(TaskEventType.COMPLETED, task)
        else:
            logger.info(f"[Scheduler] Task {task.id} failed: {result.error}")
            self._publish(TaskEventType.FAILED, task, result.error)

        snapshot = task.snapshot()
        for waiter in self._waiters.pop(task.id, []):
            if not waiter.done():
                waiter.set_result(snapshot)

    def _publish(
        self,
        event_type: TaskEventType,
        task: Task,
        message: Optional[str] = None,
    ) -> None:
        self.events.publish(
            TaskEvent(event_type=event_type, task=task.snapshot(), message=message)
        )

    # =========================================================================
    # Cancellation
    # =========================================================================

    def cancel(self, task_id: str) -> bool:
        """
        Cancel a task.

        PENDING tasks are always cancelled. PROCESSING tasks are cancelled
        only if the backend confirms the abort; otherwise the task keeps
        running and False is returned. Terminal or unknown tasks: False.
        """
        task = self.registry.get(task_id)
        if task is None or task.is_terminal:
            return False

        if task.status == TaskStatus.PENDING:
            try:
                self._queue.remove(task_id)
            except ValueError:
                pass
            self._finalize(
                task,
                TaskStatus.FAILED,
                OperationResult.failed(CANCELLED_PENDING_MESSAGE, 0),
            )
            return True

        entry = self._active.get(task_id)
        if entry is None:
            return False

        token, _ = entry
        if not self.backend.abort(token):
            logger.info(f"[Scheduler] Abort not confirmed for task {task_id}, still running")
            return False

        self._active.pop(task_id, None)
        elapsed_ms = 0
        if task.started_at is not None:
            elapsed_ms = int((datetime.now() - task.started_at).total_seconds() * 1000)

        self._finalize(
            task,
            TaskStatus.FAILED,
            OperationResult.failed(CANCELLED_RUNNING_MESSAGE, elapsed_ms),
        )
        self._slots.release()
        self._dispatch()
        return True

    # =========================================================================
    # Queries and maintenance
    # =========================================================================

    def status(self, task_id: str) -> Optional[Task]:
        task = self.registry.get(task_id)
        return task.snapshot() if task is not None else None

    def list(self) -> List[Task]:
        return [task.snapshot() for task in self.registry.list()]

    def queued_ids(self) -> List[str]:
        """IDs still waiting for admission, in admission order."""
        return list(self._queue)

    def stats(self) -> TaskStats:
        stats = TaskStats()
        for task in self.registry.list():
            if task.status == TaskStatus.PENDING:
                stats.pending += 1
            elif task.status == TaskStatus.PROCESSING:
                stats.processing += 1
            elif task.status == TaskStatus.COMPLETED:
                stats.completed += 1
            elif task.status == TaskStatus.FAILED:
                stats.failed += 1
            stats.total += 1
        return stats

    def cleanup(self) -> int:
        """
        Remove every COMPLETED or FAILED task from the registry.

        Returns:
            Number of tasks removed
        """
        removed = self.registry.remove_terminal()
        if removed:
            logger.info(f"[Scheduler] Cleaned up {len(removed)} finished tasks")
        return len(removed)

    def set_concurrency_limit(self, limit: int) -> int:
        """
        Change the admission limit (clamped to at least 1).

        Running tasks are never preempted; a lower limit only delays new
        admissions until enough slots are returned.

        Returns:
            The limit applied
        """
        applied = self._slots.resize(limit)
        logger.info(f"[Scheduler] Concurrency limit set to {applied}")
        self._dispatch()
        return applied

    # =========================================================================
    # Waiting
    # =========================================================================

    async def wait(self, task_id: str) -> Task:
        """
        Wait until a task is terminal.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        task = self.registry.get_or_raise(task_id)
        if task.is_terminal:
            return task.snapshot()

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(task_id, []).append(waiter)
        return await waiter

    async def join(self) -> List[Task]:
        """
        Wait until every task in the registry is terminal.

        Tasks submitted while waiting are waited for too.
        """
        while True:
            unfinished = [t.id for t in self.registry.list() if not t.is_terminal]
            if not unfinished:
                return self.list()
            await asyncio.gather(*(self.wait(task_id) for task_id in unfinished))
