"""
Tests for the task state machine, registry and admission slots.
"""

import pytest

from clipflow.tasks.errors import InvalidStateTransitionError, TaskNotFoundError
from clipflow.tasks.models import Task, TaskStatus
from clipflow.tasks.registry import TaskRegistry
from clipflow.tasks.slots import AdmissionSlots
from clipflow.tasks.state import (
    can_transition_task,
    is_task_terminal,
    validate_task_transition,
)


class TestTaskTransitions:
    """PENDING -> PROCESSING -> COMPLETED | FAILED, PENDING -> FAILED."""

    @pytest.mark.parametrize("from_status,to_status", [
        (TaskStatus.PENDING, TaskStatus.PROCESSING),
        (TaskStatus.PENDING, TaskStatus.FAILED),
        (TaskStatus.PROCESSING, TaskStatus.COMPLETED),
        (TaskStatus.PROCESSING, TaskStatus.FAILED),
    ])
    def test_legal(self, from_status, to_status):
        assert can_transition_task(from_status, to_status)
        validate_task_transition(from_status, to_status)

    @pytest.mark.parametrize("from_status,to_status", [
        (TaskStatus.PENDING, TaskStatus.COMPLETED),
        (TaskStatus.PROCESSING, TaskStatus.PENDING),
        (TaskStatus.COMPLETED, TaskStatus.FAILED),
        (TaskStatus.FAILED, TaskStatus.PENDING),
        (TaskStatus.COMPLETED, TaskStatus.COMPLETED),
    ])
    def test_illegal(self, from_status, to_status):
        assert not can_transition_task(from_status, to_status)
        with pytest.raises(InvalidStateTransitionError):
            validate_task_transition(from_status, to_status)

    def test_terminal_states(self):
        assert is_task_terminal(TaskStatus.COMPLETED)
        assert is_task_terminal(TaskStatus.FAILED)
        assert not is_task_terminal(TaskStatus.PENDING)
        assert not is_task_terminal(TaskStatus.PROCESSING)


class TestTaskModel:
    """Task defaults and snapshots."""

    def test_defaults(self):
        task = Task(kind="extract")
        assert task.status == TaskStatus.PENDING
        assert task.id
        assert task.started_at is None
        assert not task.is_terminal

    def test_ids_are_unique(self):
        assert Task(kind="extract").id != Task(kind="extract").id

    def test_snapshot_is_detached(self):
        task = Task(kind="extract")
        snapshot = task.snapshot()
        snapshot.status = TaskStatus.FAILED
        assert task.status == TaskStatus.PENDING


class TestTaskRegistry:
    """In-memory storage in submission order."""

    def test_add_and_get(self):
        registry = TaskRegistry()
        task = Task(kind="extract")
        registry.add(task)

        assert registry.get(task.id) is task
        assert task.id in registry
        assert registry.count() == 1

    def test_duplicate_id(self):
        registry = TaskRegistry()
        task = Task(kind="extract")
        registry.add(task)
        with pytest.raises(ValueError):
            registry.add(task)

    def test_get_or_raise(self):
        with pytest.raises(TaskNotFoundError):
            TaskRegistry().get_or_raise("missing")

    def test_remove_missing(self):
        with pytest.raises(TaskNotFoundError):
            TaskRegistry().remove("missing")

    def test_list_preserves_order(self):
        registry = TaskRegistry()
        tasks = [Task(kind="extract") for _ in range(4)]
        for task in tasks:
            registry.add(task)
        assert [t.id for t in registry.list()] == [t.id for t in tasks]

    def test_remove_terminal(self):
        registry = TaskRegistry()
        statuses = [TaskStatus.PENDING, TaskStatus.PROCESSING, TaskStatus.COMPLETED, TaskStatus.FAILED]
        tasks = [Task(kind="extract", status=s) for s in statuses]
        for task in tasks:
            registry.add(task)

        removed = registry.remove_terminal()

        assert removed == [tasks[2].id, tasks[3].id]
        assert [t.status for t in registry.list()] == [TaskStatus.PENDING, TaskStatus.PROCESSING]


class TestAdmissionSlots:
    """Counting gate."""

    def test_acquire_until_full(self):
        slots = AdmissionSlots(2)
        assert slots.try_acquire()
        assert slots.try_acquire()
        assert not slots.try_acquire()
        assert slots.in_use == 2

    def test_release_frees_a_slot(self):
        slots = AdmissionSlots(1)
        slots.try_acquire()
        slots.release()
        assert slots.available

    def test_release_never_goes_negative(self):
        slots = AdmissionSlots(1)
        slots.release()
        assert slots.in_use == 0

    def test_shrinking_keeps_holders(self):
        slots = AdmissionSlots(3)
        for _ in range(3):
            slots.try_acquire()

        assert slots.resize(1) == 1
        assert slots.in_use == 3
        slots.release()
        slots.release()
        assert not slots.available
        slots.release()
        assert slots.available

    def test_limit_clamped(self):
        assert AdmissionSlots(0).limit == 1
        assert AdmissionSlots(5).resize(-2) == 1
