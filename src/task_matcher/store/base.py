"""Read interface the matcher needs from a task store."""
from __future__ import annotations

import abc
from typing import Optional

from ..models import Task, TaskFilters


class TaskStore(abc.ABC):
    @abc.abstractmethod
    async def find_all(self, filters: Optional[TaskFilters] = None) -> list[Task]:
        """Return tasks in the store's iteration order, optionally filtered."""
        ...
