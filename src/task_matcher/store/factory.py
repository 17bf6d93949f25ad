from __future__ import annotations

from pathlib import Path
from typing import Optional

from .base import TaskStore
from .memory import InMemoryTaskStore
from .sqlite import SqliteTaskStore


def create_store(backend: str, sqlite_path: Optional[Path] = None) -> TaskStore:
    if backend == "memory":
        return InMemoryTaskStore()
    if backend == "sqlite":
        if sqlite_path is None:
            raise ValueError("The sqlite task store backend requires a database path")
        return SqliteTaskStore(sqlite_path)
    raise ValueError(f"Unsupported task store backend: {backend}")
