"""SQLite-backed task store."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Optional

import aiosqlite
import structlog

from ..models import Task, TaskFilters
from .base import TaskStore

_logger = structlog.get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL,
    priority INTEGER NOT NULL,
    tags TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _row_to_task(row: aiosqlite.Row) -> Task:
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"] or "",
        status=row["status"],
        priority=row["priority"],
        tags=json.loads(row["tags"] or "[]"),
        created_at=_parse_timestamp(row["created_at"]),
        updated_at=_parse_timestamp(row["updated_at"]),
    )


class SqliteTaskStore(TaskStore):
    """Reads tasks from a ``tasks`` table; rows come back in rowid order."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    async def initialize(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(_SCHEMA)
            await db.commit()

    async def upsert(self, tasks: Iterable[Task]) -> None:
        await self.initialize()
        rows = [
            (
                task.id,
                task.title,
                task.description,
                task.status.value,
                int(task.priority),
                json.dumps(task.tags),
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
            )
            for task in tasks
        ]
        async with aiosqlite.connect(self.db_path) as db:
            await db.executemany(
                """
                INSERT INTO tasks (id, title, description, status, priority, tags, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    description = excluded.description,
                    status = excluded.status,
                    priority = excluded.priority,
                    tags = excluded.tags,
                    updated_at = excluded.updated_at
                """,
                rows,
            )
            await db.commit()
        _logger.info("tasks upserted", db_path=str(self.db_path), count=len(rows))

    async def find_all(self, filters: Optional[TaskFilters] = None) -> list[Task]:
        sql = "SELECT * FROM tasks"
        clauses: List[str] = []
        params: List[Any] = []
        if filters is not None and filters.status is not None:
            clauses.append(f"status IN ({', '.join('?' for _ in filters.status)})")
            params.extend(status.value for status in filters.status)
        if filters is not None and filters.priority is not None:
            clauses.append(f"priority IN ({', '.join('?' for _ in filters.priority)})")
            params.extend(int(priority) for priority in filters.priority)
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY rowid"

        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(sql, params) as cursor:
                rows = await cursor.fetchall()

        tasks = [_row_to_task(row) for row in rows]
        if filters is not None and filters.tags is not None:
            tasks = [task for task in tasks if filters.accepts(task)]
        return tasks
