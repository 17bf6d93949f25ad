from datetime import datetime, timezone

import pytest

from task_matcher.matcher import TaskMatcher
from task_matcher.models import Priority, Task, TaskStatus
from task_matcher.store.memory import InMemoryTaskStore


@pytest.fixture
def sample_tasks():
    return [
        Task(
            id="1",
            title="Fix login bug",
            description="Fix the authentication issue in the login form",
            priority=Priority.HIGH,
            status=TaskStatus.PENDING,
            tags=["bug", "frontend", "urgent"],
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        ),
        Task(
            id="2",
            title="Update documentation",
            description="Update the API documentation with new endpoints",
            priority=Priority.MEDIUM,
            status=TaskStatus.IN_PROGRESS,
            tags=["documentation", "api"],
            created_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
            updated_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
        ),
        Task(
            id="3",
            title="Review pull request",
            description="Review the new feature implementation",
            priority=Priority.LOW,
            status=TaskStatus.PENDING,
            tags=["review", "code"],
            created_at=datetime(2024, 1, 3, tzinfo=timezone.utc),
            updated_at=datetime(2024, 1, 3, tzinfo=timezone.utc),
        ),
    ]


@pytest.fixture
def store(sample_tasks):
    return InMemoryTaskStore(sample_tasks)


@pytest.fixture
def matcher(store):
    return TaskMatcher(store)
