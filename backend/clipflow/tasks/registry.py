"""
In-memory task registry.

Stores tasks by ID in submission order. Nothing is persisted: the
registry lives only for the process lifetime.
"""

from typing import Dict, List, Optional

from .errors import TaskNotFoundError
from .models import Task
from .state import is_task_terminal


class TaskRegistry:
    """
    In-memory registry for task tracking.

    Only terminal tasks are ever evicted in bulk (see remove_terminal);
    pending and processing tasks stay until they finish.
    """

    def __init__(self):
        # task_id -> Task, insertion ordered
        self._tasks: Dict[str, Task] = {}

    def add(self, task: Task) -> None:
        """
        Add a task to the registry.

        Raises:
            ValueError: If a task with the same ID already exists
        """
        if task.id in self._tasks:
            raise ValueError(f"Task with ID '{task.id}' already exists")
        self._tasks[task.id] = task

    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def get_or_raise(self, task_id: str) -> Task:
        """
        Retrieve a task by ID, raising an exception if not found.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        task = self.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def list(self) -> List[Task]:
        """All tasks in submission order."""
        return list(self._tasks.values())

    def remove(self, task_id: str) -> None:
        """
        Remove a task from the registry.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        if task_id not in self._tasks:
            raise TaskNotFoundError(task_id)
        del self._tasks[task_id]

    def remove_terminal(self) -> List[str]:
        """
        Remove every COMPLETED or FAILED task.

        Returns:
            IDs of the removed tasks
        """
        removed = [
            task_id for task_id, task in self._tasks.items()
            if is_task_terminal(task.status)
        ]
        for task_id in removed:
            del self._tasks[task_id]
        return removed

    def count(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._tasks
