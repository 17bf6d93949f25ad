"""Operation trace records persisted to JSONL and optionally SQLite."""
from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Literal

import aiosqlite
from pydantic import BaseModel, Field


class OperationTrace(BaseModel):
    """Single start/end entry for a monitored matcher operation."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    operation_id: str
    event: Literal["start", "end"]
    payload: Dict[str, Any] = Field(default_factory=dict)


class TraceWriter:
    """Writes trace records to JSONL and optionally SQLite."""

    def __init__(self, log_path: Path, db_path: Path | None = None) -> None:
        self.log_path = log_path
        self.db_path = db_path
        self._lock = asyncio.Lock()

    async def write(self, record: OperationTrace) -> None:
        async with self._lock:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with self.log_path.open("a", encoding="utf-8") as f:
                f.write(record.model_dump_json() + "\n")
        if self.db_path:
            await self._write_sqlite(record)

    async def _write_sqlite(self, record: OperationTrace) -> None:
        db_path = self.db_path
        if db_path is None:
            return
        db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS operation_traces (
                    timestamp TEXT,
                    operation_id TEXT,
                    event TEXT,
                    payload TEXT
                )
                """
            )
            await db.execute(
                "INSERT INTO operation_traces VALUES (?, ?, ?, ?)",
                (
                    record.timestamp.isoformat(),
                    record.operation_id,
                    record.event,
                    json.dumps(record.payload, default=str),
                ),
            )
            await db.commit()

    def read(self, limit: int = 100) -> list[OperationTrace]:
        if not self.log_path.exists():
            return []
        lines = self.log_path.read_text(encoding="utf-8").strip().splitlines()
        return [OperationTrace.model_validate_json(line) for line in lines[-limit:] if line]
