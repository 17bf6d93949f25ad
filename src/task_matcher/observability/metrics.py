"""Prometheus metrics for matcher operations."""
from __future__ import annotations

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest


class MatcherMetrics:
    """Counters and histograms kept on a private registry per monitor."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.operations = Counter(
            "task_match_operations",
            "Matcher operations by type and outcome",
            ["operation", "status"],
            registry=self.registry,
        )
        self.duration = Histogram(
            "task_match_duration_seconds",
            "Time spent in matcher operations",
            ["operation"],
            registry=self.registry,
        )
        self.matches_found = Gauge(
            "task_match_matches_found",
            "Number of matches returned by the last operation",
            ["operation"],
            registry=self.registry,
        )

    def observe(self, operation: str, *, success: bool, elapsed_seconds: float, matches_found: float | None = None) -> None:
        self.operations.labels(operation=operation, status="success" if success else "failure").inc()
        self.duration.labels(operation=operation).observe(elapsed_seconds)
        if matches_found is not None:
            self.matches_found.labels(operation=operation).set(matches_found)

    def export(self) -> str:
        return generate_latest(self.registry).decode("utf-8")
