"""Composition root wiring the store, telemetry, matcher and resolution flow."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog

from .config import MatcherSettings, get_settings
from .logging_utils import configure_logging
from .matcher import DiagnosticHandler, TaskMatcher
from .observability.metrics import MatcherMetrics
from .observability.monitor import NullPerformanceMonitor, PerformanceMonitor, TracingPerformanceMonitor
from .observability.tracing import TraceWriter
from .resolution import ResolutionCoordinator
from .store.base import TaskStore
from .store.factory import create_store
from .tools import TaskMatchingTool

_logger = structlog.get_logger(__name__)


@dataclass
class MatchingServices:
    settings: MatcherSettings
    store: TaskStore
    monitor: PerformanceMonitor
    matcher: TaskMatcher
    coordinator: ResolutionCoordinator
    tool: TaskMatchingTool


def build_monitor(settings: MatcherSettings) -> PerformanceMonitor:
    if not settings.telemetry_enabled:
        return NullPerformanceMonitor()
    writer = TraceWriter(settings.trace_log_path, settings.trace_db_path)
    return TracingPerformanceMonitor(writer, MatcherMetrics())


def build_services(
    settings: Optional[MatcherSettings] = None,
    *,
    store: Optional[TaskStore] = None,
    on_diagnostic: Optional[DiagnosticHandler] = None,
) -> MatchingServices:
    """Create a fresh, fully wired set of services; callers own their lifetime."""
    settings = settings or get_settings()
    configure_logging(settings)
    store = store or create_store(settings.store_backend, settings.sqlite_path)
    monitor = build_monitor(settings)
    matcher = TaskMatcher(
        store,
        weights=settings.weights,
        monitor=monitor,
        tie_break=settings.tie_break,
        default_max_results=settings.default_max_results,
        default_min_confidence=settings.default_min_confidence,
        on_diagnostic=on_diagnostic,
    )
    services = MatchingServices(
        settings=settings,
        store=store,
        monitor=monitor,
        matcher=matcher,
        coordinator=ResolutionCoordinator(),
        tool=TaskMatchingTool(matcher),
    )
    _logger.info(
        "task matcher ready",
        store_backend=settings.store_backend,
        telemetry=settings.telemetry_enabled,
        tie_break=settings.tie_break.value,
    )
    return services
