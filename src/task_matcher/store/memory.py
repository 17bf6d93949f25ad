from __future__ import annotations

import asyncio
from typing import Dict, Iterable, Optional

from ..models import Task, TaskFilters
from .base import TaskStore


class InMemoryTaskStore(TaskStore):
    """Dict-backed store; iteration follows insertion order."""

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._tasks: Dict[str, Task] = {task.id: task for task in tasks}
        self._lock = asyncio.Lock()

    async def add(self, task: Task) -> None:
        async with self._lock:
            self._tasks[task.id] = task

    async def remove(self, task_id: str) -> Optional[Task]:
        async with self._lock:
            return self._tasks.pop(task_id, None)

    async def find_all(self, filters: Optional[TaskFilters] = None) -> list[Task]:
        async with self._lock:
            tasks = list(self._tasks.values())
        if filters is None:
            return tasks
        return [task for task in tasks if filters.accepts(task)]
