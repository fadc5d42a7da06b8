from typing import Dict, List, Optional, Iterable

from core.types import ResearchTask, TaskStatus


class TaskStore:
    """
    In-memory map of live tasks.

    Not thread-safe by itself; the task registry serializes access. Nothing
    here survives a restart.
    """

    def __init__(self):
        self._tasks: Dict[str, ResearchTask] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._tasks

    def save(self, task: ResearchTask) -> None:
        """Save or replace a task."""
        self._tasks[task.id] = task

    def get(self, task_id: str) -> Optional[ResearchTask]:
        """Get a task by ID."""
        return self._tasks.get(task_id)

    def all(self) -> List[ResearchTask]:
        return list(self._tasks.values())

    def by_status(self, statuses: Iterable[TaskStatus]) -> List[ResearchTask]:
        wanted = set(statuses)
        return [t for t in self._tasks.values() if t.status in wanted]

    def delete(self, task_id: str) -> bool:
        return self._tasks.pop(task_id, None) is not None

    def clear(self) -> None:
        self._tasks.clear()
