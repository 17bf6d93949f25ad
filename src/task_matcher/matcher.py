"""Task matching engine.

Each active task is scored independently against the query with a handful of
lexical signals (exact title, fuzzy title, description, tags). The best signal
per task wins, optionally boosted by ambient context, and the per-task winners
are ranked, filtered by the confidence floor and decorated with alternatives
when they are not decisive.
"""
from __future__ import annotations

import asyncio
import math
import threading
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from uuid import uuid4

import structlog

from .context import context_score
from .models import (
    Diagnostic,
    ExtractedReference,
    MatchContext,
    MatchingWeights,
    MatchQuery,
    MatchResult,
    MatchType,
    OperationOutcome,
    Task,
    TaskStatus,
    TieBreak,
)
from .observability.monitor import NullPerformanceMonitor, PerformanceMonitor
from .patterns import extract_task_reference
from .similarity import field_score, fuzzy_score, to_confidence
from .store.base import TaskStore

_logger = structlog.get_logger(__name__)

INACTIVE_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED})

FIELD_THRESHOLD = 0.3
TAG_THRESHOLD = 0.6
CONTEXT_THRESHOLD = 0.5
CONTEXT_BOOST = 30
SETTLED_CONFIDENCE = 80
ALTERNATIVE_FLOOR = 30
MAX_ALTERNATIVES = 3
FOCUSED_MAX_RESULTS = 5
FOCUSED_MIN_CONFIDENCE = 0.4
SUGGESTION_THRESHOLD = 0.2

DiagnosticHandler = Callable[[Diagnostic], None]


def score_task(
    task: Task,
    query: str,
    context: Optional[MatchContext],
    weights: MatchingWeights,
) -> Optional[MatchResult]:
    """Return the single best signal for ``task`` or ``None`` if nothing matched."""
    candidates: List[MatchResult] = []

    if task.title.lower().strip() == query.lower().strip():
        candidates.append(
            MatchResult(task=task, confidence=100, match_reason="Exact title match", match_type=MatchType.EXACT_TITLE)
        )
    else:
        title_score = field_score(task.title, query)
        if title_score > FIELD_THRESHOLD:
            candidates.append(
                MatchResult(
                    task=task,
                    confidence=to_confidence(title_score, weights.fuzzy_title),
                    match_reason=f"Title similarity: {to_confidence(title_score)}%",
                    match_type=MatchType.FUZZY_TITLE,
                )
            )

    if task.description:
        description_score = field_score(task.description, query)
        if description_score > FIELD_THRESHOLD:
            candidates.append(
                MatchResult(
                    task=task,
                    confidence=to_confidence(description_score, weights.description),
                    match_reason=f"Description contains similar text: {to_confidence(description_score)}%",
                    match_type=MatchType.DESCRIPTION_MATCH,
                )
            )

    for tag in task.tags:
        tag_score = fuzzy_score(tag, query)
        if tag_score > TAG_THRESHOLD:
            candidates.append(
                MatchResult(
                    task=task,
                    confidence=to_confidence(tag_score, weights.tags),
                    match_reason=f'Tag match: "{tag}"',
                    match_type=MatchType.TAG_MATCH,
                )
            )

    if not candidates:
        return None

    best = max(candidates, key=lambda candidate: candidate.confidence)
    if context is not None:
        bonus = context_score(task, context)
        if bonus > CONTEXT_THRESHOLD:
            boosted = min(100, math.floor(best.confidence + bonus * CONTEXT_BOOST + 0.5))
            if boosted > best.confidence:
                best = MatchResult(
                    task=task,
                    confidence=boosted,
                    match_reason="Contextually relevant",
                    match_type=MatchType.CONTEXTUAL,
                )
    return best


def rank_results(results: Iterable[MatchResult], tie_break: TieBreak) -> List[MatchResult]:
    """Sort by descending confidence; ``tie_break`` orders equal confidences."""
    if tie_break is TieBreak.STORE_ORDER:
        return sorted(results, key=lambda result: -result.confidence)
    if tie_break is TieBreak.TASK_ID:
        return sorted(results, key=lambda result: (-result.confidence, result.task.id))
    return sorted(
        results,
        key=lambda result: (-result.confidence, -result.task.updated_at.timestamp(), result.task.id),
    )


def attach_alternatives(kept: Iterable[MatchResult], ranked: List[MatchResult]) -> List[MatchResult]:
    """Give every non-decisive result up to three weaker runner-ups from ``ranked``."""
    decorated: List[MatchResult] = []
    for result in kept:
        if result.confidence >= SETTLED_CONFIDENCE:
            decorated.append(result)
            continue
        alternatives = [
            other.task
            for other in ranked
            if other.task.id != result.task.id and ALTERNATIVE_FLOOR <= other.confidence < result.confidence
        ][:MAX_ALTERNATIVES]
        decorated.append(result.model_copy(update={"alternatives": alternatives}) if alternatives else result)
    return decorated


class TaskMatcher:
    """Resolves free-form phrases to stored tasks."""

    def __init__(
        self,
        store: TaskStore,
        *,
        weights: Optional[MatchingWeights] = None,
        monitor: Optional[PerformanceMonitor] = None,
        tie_break: TieBreak = TieBreak.RECENTLY_UPDATED,
        default_max_results: int = 10,
        default_min_confidence: float = 0.3,
        on_diagnostic: Optional[DiagnosticHandler] = None,
    ) -> None:
        self._store = store
        self._weights = weights or MatchingWeights()
        self._weights_lock = threading.Lock()
        self._monitor = monitor or NullPerformanceMonitor()
        self.tie_break = tie_break
        self.default_max_results = default_max_results
        self.default_min_confidence = default_min_confidence
        self._on_diagnostic = on_diagnostic

    async def find_tasks_by_description(self, query: str, context: Optional[MatchContext] = None) -> List[MatchResult]:
        match_query = MatchQuery(
            query=query,
            context=context,
            max_results=self.default_max_results,
            min_confidence=self.default_min_confidence,
        )
        return await self._monitored("task_matching", query, match_query)

    async def search_tasks(self, query: str, context: Optional[MatchContext] = None) -> List[MatchResult]:
        """Intent-aware search: narrow to the extracted reference when a pattern applies."""
        extracted = self.extract_task_reference(query)
        if extracted is None:
            return await self.find_tasks_by_description(query, context)

        focused_context = (context or MatchContext()).model_copy(update={"user_intent": extracted.intent})
        match_query = MatchQuery(
            query=extracted.reference,
            context=focused_context,
            max_results=FOCUSED_MAX_RESULTS,
            min_confidence=FOCUSED_MIN_CONFIDENCE,
        )
        _logger.debug(
            "focused task search",
            reference=extracted.reference,
            intent=extracted.intent.value,
            pattern_confidence=extracted.confidence,
        )
        return await self._monitored("task_search", query, match_query)

    def extract_task_reference(self, utterance: str) -> Optional[ExtractedReference]:
        return extract_task_reference(utterance)

    async def match_tasks(self, query: MatchQuery) -> List[MatchResult]:
        results, _ = await self._match(query)
        return results

    async def suggest_tasks_for_context(self, context: MatchContext, limit: int = 5) -> List[Task]:
        """Active tasks ranked by contextual relevance alone, for empty-query prompts."""
        tasks = await self._store.find_all()
        scored = [
            (context_score(task, context), task) for task in tasks if task.status not in INACTIVE_STATUSES
        ]
        relevant = sorted((item for item in scored if item[0] > SUGGESTION_THRESHOLD), key=lambda item: -item[0])
        return [task for _, task in relevant[:limit]]

    async def find_single_task(
        self,
        query: str,
        context: Optional[MatchContext] = None,
        *,
        auto_resolve: bool = True,
        decisive_confidence: int = SETTLED_CONFIDENCE,
    ) -> Optional[Task]:
        """Return one task when the match is decisive.

        ``decisive_confidence`` is compared against `MatchResult.confidence`, so it
        is on the 0-100 scale, unlike the 0-1 `MatchQuery.min_confidence`.

        Without ``auto_resolve`` an ambiguous result set yields ``None`` so the
        caller can open a resolution request instead.
        """
        matches = await self.search_tasks(query, context)
        if not matches:
            return None
        decisive = [match for match in matches if match.confidence >= decisive_confidence]
        if len(decisive) == 1:
            return decisive[0].task
        if auto_resolve:
            return matches[0].task
        return None

    def update_weights(self, changes: Mapping[str, float]) -> None:
        with self._weights_lock:
            merged = {**self._weights.model_dump(), **dict(changes)}
            self._weights = MatchingWeights.model_validate(merged)
        _logger.info("matching weights updated", changes=dict(changes))

    def get_weights(self) -> MatchingWeights:
        return self._weights.model_copy()

    async def _match(self, query: MatchQuery) -> Tuple[List[MatchResult], int]:
        weights = self._weights
        tasks = await self._store.find_all()
        if query.context is not None:
            self._check_context_references(query.context, tasks)

        active = [task for task in tasks if task.status not in INACTIVE_STATUSES]
        scored = [
            result
            for result in (score_task(task, query.query, query.context, weights) for task in active)
            if result is not None
        ]
        ranked = rank_results(scored, self.tie_break)
        floor = query.confidence_floor
        kept = [result for result in ranked if result.confidence >= floor][: query.max_results]
        results = attach_alternatives(kept, ranked)
        _logger.debug("tasks matched", query=query.query, candidates=len(active), matches=len(results))
        return results, len(active)

    async def _monitored(self, operation: str, utterance: str, query: MatchQuery) -> List[MatchResult]:
        operation_id = f"task-match-{uuid4().hex}"
        metadata: Dict[str, Any] = {
            "type": operation,
            "query_length": len(utterance),
            "has_context": query.context is not None,
        }
        await self._notify(self._monitor.start_operation, operation_id, metadata)
        try:
            results, processed = await self._match(query)
        except (Exception, asyncio.CancelledError) as exc:
            outcome = OperationOutcome(success=False, error=str(exc) or type(exc).__name__)
            await self._notify(self._monitor.end_operation, operation_id, outcome)
            raise
        outcome = OperationOutcome(
            success=True,
            metrics={
                "tasks_processed": processed,
                "matches_found": len(results),
                "highest_confidence": results[0].confidence if results else 0,
            },
        )
        await self._notify(self._monitor.end_operation, operation_id, outcome)
        return results

    async def _notify(self, hook: Callable[[str, Any], Awaitable[None]], operation_id: str, payload: Any) -> None:
        try:
            await hook(operation_id, payload)
        except Exception as exc:
            self._report(
                Diagnostic(
                    code="telemetry_failed",
                    message="Performance monitor raised; the operation continues",
                    details={"operation_id": operation_id, "error": str(exc)},
                )
            )

    def _check_context_references(self, context: MatchContext, tasks: List[Task]) -> None:
        known = {task.id for task in tasks}
        references = []
        if context.current_task is not None:
            references.append(("current", context.current_task.id))
        references.extend(("recent", recent.id) for recent in context.recent_tasks)
        for role, task_id in references:
            if task_id not in known:
                self._report(
                    Diagnostic(
                        code="context_task_missing",
                        message="Context references a task that is not in the store",
                        details={"role": role, "task_id": task_id},
                    )
                )

    def _report(self, diagnostic: Diagnostic) -> None:
        _logger.warning(diagnostic.message, code=diagnostic.code, **diagnostic.details)
        if self._on_diagnostic is not None:
            self._on_diagnostic(diagnostic)
