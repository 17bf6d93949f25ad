"""Performance monitors observing matcher operations.

A monitor is purely observational: the matcher behaves identically with the
no-op monitor, and failures raised by a monitor never reach matcher callers.
"""
from __future__ import annotations

import abc
import time
from typing import Any, Dict, Optional

import structlog

from ..models import OperationOutcome
from .metrics import MatcherMetrics
from .tracing import OperationTrace, TraceWriter

_logger = structlog.get_logger(__name__)


class PerformanceMonitor(abc.ABC):
    @abc.abstractmethod
    async def start_operation(self, operation_id: str, metadata: Dict[str, Any]) -> None:
        ...

    @abc.abstractmethod
    async def end_operation(self, operation_id: str, outcome: OperationOutcome) -> None:
        ...


class NullPerformanceMonitor(PerformanceMonitor):
    async def start_operation(self, operation_id: str, metadata: Dict[str, Any]) -> None:
        return None

    async def end_operation(self, operation_id: str, outcome: OperationOutcome) -> None:
        return None


class TracingPerformanceMonitor(PerformanceMonitor):
    """Writes start/end traces and feeds Prometheus metrics."""

    def __init__(self, writer: TraceWriter, metrics: Optional[MatcherMetrics] = None) -> None:
        self.writer = writer
        self.metrics = metrics or MatcherMetrics()
        self._started: Dict[str, tuple[float, str]] = {}

    async def start_operation(self, operation_id: str, metadata: Dict[str, Any]) -> None:
        operation = str(metadata.get("type", "unknown"))
        self._started[operation_id] = (time.perf_counter(), operation)
        await self.writer.write(OperationTrace(operation_id=operation_id, event="start", payload=dict(metadata)))

    async def end_operation(self, operation_id: str, outcome: OperationOutcome) -> None:
        started_at, operation = self._started.pop(operation_id, (time.perf_counter(), "unknown"))
        elapsed = time.perf_counter() - started_at
        self.metrics.observe(
            operation,
            success=outcome.success,
            elapsed_seconds=elapsed,
            matches_found=outcome.metrics.get("matches_found"),
        )
        payload = {"elapsed_seconds": elapsed, **outcome.model_dump()}
        await self.writer.write(OperationTrace(operation_id=operation_id, event="end", payload=payload))
        _logger.debug("operation finished", operation_id=operation_id, operation=operation, success=outcome.success)
