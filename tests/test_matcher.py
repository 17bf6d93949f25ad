import asyncio
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from task_matcher.matcher import TaskMatcher
from task_matcher.models import (
    MatchContext,
    MatchQuery,
    MatchType,
    OperationOutcome,
    Priority,
    Task,
    TaskFilters,
    TaskStatus,
    TieBreak,
    UserIntent,
)
from task_matcher.observability.monitor import PerformanceMonitor
from task_matcher.store.base import TaskStore
from task_matcher.store.memory import InMemoryTaskStore


class RecordingMonitor(PerformanceMonitor):
    def __init__(self):
        self.started = []
        self.ended = []

    async def start_operation(self, operation_id, metadata):
        self.started.append((operation_id, metadata))

    async def end_operation(self, operation_id, outcome: OperationOutcome):
        self.ended.append((operation_id, outcome))


class BrokenMonitor(PerformanceMonitor):
    async def start_operation(self, operation_id, metadata):
        raise RuntimeError("monitor offline")

    async def end_operation(self, operation_id, outcome):
        raise RuntimeError("monitor offline")


class FailingStore(TaskStore):
    async def find_all(self, filters=None):
        raise RuntimeError("Database connection failed")


class BlockingStore(TaskStore):
    def __init__(self):
        self.entered = asyncio.Event()

    async def find_all(self, filters=None):
        self.entered.set()
        await asyncio.Event().wait()
        return []


def _by_id(results, task_id):
    return next((result for result in results if result.task.id == task_id), None)


def _report_tasks():
    return [
        Task(id="a", title="Quarterly report"),
        Task(id="b", title="Prepare slides", description="Slides for the report meeting"),
        Task(id="c", title="Report"),
    ]


@pytest.mark.asyncio
async def test_exact_title_match(matcher):
    results = await matcher.find_tasks_by_description("Fix login bug")
    assert results[0].task.id == "1"
    assert results[0].confidence == 100
    assert results[0].match_type == MatchType.EXACT_TITLE
    assert results[0].alternatives == []


@pytest.mark.asyncio
async def test_fuzzy_title_match(matcher):
    results = await matcher.find_tasks_by_description("login issue")
    login = _by_id(results, "1")
    assert login is not None
    assert login.match_type == MatchType.FUZZY_TITLE
    assert login.confidence > 30
    assert login.match_reason == "Title similarity: 38%"


@pytest.mark.asyncio
async def test_description_match(matcher):
    results = await matcher.find_tasks_by_description("authentication issue")
    login = _by_id(results, "1")
    assert login is not None
    assert login.match_type == MatchType.DESCRIPTION_MATCH
    assert login.confidence == 36


@pytest.mark.asyncio
async def test_tag_match(matcher):
    results = await matcher.find_tasks_by_description("bug")
    login = _by_id(results, "1")
    assert login is not None
    assert login.match_type == MatchType.TAG_MATCH
    assert login.confidence == 70
    assert login.match_reason == 'Tag match: "bug"'


@pytest.mark.asyncio
async def test_no_match_returns_empty_list(matcher):
    assert await matcher.find_tasks_by_description("nonexistent task xyz") == []


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["fix", "task", "login bug", "update", "report review"])
async def test_results_sorted_and_unique(matcher, query):
    results = await matcher.find_tasks_by_description(query)
    confidences = [result.confidence for result in results]
    assert confidences == sorted(confidences, reverse=True)
    ids = [result.task.id for result in results]
    assert len(ids) == len(set(ids))
    for result in results:
        assert 0 <= result.confidence <= 100
        assert len(result.alternatives) <= 3
        if result.confidence >= 80:
            assert result.alternatives == []


@pytest.mark.asyncio
async def test_completed_and_cancelled_tasks_are_excluded():
    store = InMemoryTaskStore(
        [
            Task(id="done", title="Archive old logs", status=TaskStatus.COMPLETED),
            Task(id="dropped", title="Archive old logs", status=TaskStatus.CANCELLED),
        ]
    )
    assert await TaskMatcher(store).find_tasks_by_description("Archive old logs") == []


@pytest.mark.asyncio
async def test_current_task_context_boosts_match(matcher, sample_tasks):
    plain = await matcher.find_tasks_by_description("bug")
    boosted = await matcher.find_tasks_by_description("bug", MatchContext(current_task=sample_tasks[0]))
    login = _by_id(boosted, "1")
    assert login.match_type == MatchType.CONTEXTUAL
    assert login.confidence == 94
    assert login.confidence >= _by_id(plain, "1").confidence


@pytest.mark.asyncio
async def test_recent_task_context(matcher, sample_tasks):
    results = await matcher.find_tasks_by_description("update", MatchContext(recent_tasks=[sample_tasks[1]]))
    docs = _by_id(results, "2")
    assert docs.match_type == MatchType.CONTEXTUAL
    assert docs.confidence == 66


@pytest.mark.asyncio
async def test_active_filter_context(matcher):
    context = MatchContext(
        active_filters=TaskFilters(status=[TaskStatus.PENDING], priority=[Priority.HIGH], tags=["urgent"])
    )
    results = await matcher.find_tasks_by_description("fix", context)
    login = _by_id(results, "1")
    assert login.match_type == MatchType.CONTEXTUAL
    assert login.confidence == 75


@pytest.mark.asyncio
async def test_context_alone_never_surfaces_a_task(matcher, sample_tasks):
    context = MatchContext(current_task=sample_tasks[2])
    results = await matcher.find_tasks_by_description("bug", context)
    assert _by_id(results, "3") is None


@pytest.mark.asyncio
async def test_low_confidence_results_get_alternatives():
    matcher = TaskMatcher(InMemoryTaskStore(_report_tasks()))
    results = await matcher.find_tasks_by_description("report")

    assert [result.task.id for result in results] == ["c", "a", "b"]
    exact, quarterly, slides = results
    assert exact.confidence == 100 and exact.alternatives == []
    assert quarterly.confidence == 48
    assert [task.id for task in quarterly.alternatives] == ["b"]
    assert slides.confidence == 36
    assert slides.match_type == MatchType.DESCRIPTION_MATCH
    assert slides.alternatives == []


@pytest.mark.asyncio
async def test_alternatives_come_from_the_unfiltered_ranking():
    matcher = TaskMatcher(InMemoryTaskStore(_report_tasks()))
    results = await matcher.match_tasks(MatchQuery(query="report", max_results=2))
    assert [result.task.id for result in results] == ["c", "a"]
    assert [task.id for task in results[1].alternatives] == ["b"]


@pytest.mark.asyncio
async def test_confidence_floor_uses_zero_to_one_scale():
    matcher = TaskMatcher(InMemoryTaskStore(_report_tasks()))
    results = await matcher.match_tasks(MatchQuery(query="report", min_confidence=0.4))
    assert [result.task.id for result in results] == ["c", "a"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "tie_break,expected",
    [
        (TieBreak.STORE_ORDER, ["c", "a", "b"]),
        (TieBreak.RECENTLY_UPDATED, ["b", "c", "a"]),
        (TieBreak.TASK_ID, ["a", "b", "c"]),
    ],
)
async def test_tie_break(tie_break, expected):
    store = InMemoryTaskStore(
        [
            Task(id="c", title="Gamma report", updated_at=datetime(2024, 2, 1, tzinfo=timezone.utc)),
            Task(id="a", title="Alpha report", updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc)),
            Task(id="b", title="Beta report", updated_at=datetime(2024, 3, 1, tzinfo=timezone.utc)),
        ]
    )
    results = await TaskMatcher(store, tie_break=tie_break).find_tasks_by_description("report")
    assert {result.confidence for result in results} == {48}
    assert [result.task.id for result in results] == expected


@pytest.mark.asyncio
async def test_search_uses_extracted_reference(matcher):
    results = await matcher.search_tasks("complete the login bug")
    login = _by_id(results, "1")
    assert login is not None
    assert login.confidence == 55
    assert all(result.confidence >= 40 for result in results)
    assert len(results) <= 5


@pytest.mark.asyncio
async def test_search_falls_back_to_general_matching(matcher):
    results = await matcher.search_tasks("documentation")
    docs = _by_id(results, "2")
    assert docs is not None
    assert docs.match_type == MatchType.TAG_MATCH


@pytest.mark.asyncio
async def test_search_folds_intent_into_context(store):
    monitor = RecordingMonitor()
    matcher = TaskMatcher(store, monitor=monitor)
    await matcher.search_tasks("finish the login bug")
    _, metadata = monitor.started[0]
    assert metadata["type"] == "task_search"
    assert metadata["has_context"] is True


def test_extract_task_reference_delegates_to_pattern_table(matcher):
    extracted = matcher.extract_task_reference("delete the task old notes")
    assert extracted.intent == UserIntent.DELETE_TASK
    assert extracted.reference == "old notes"
    assert matcher.extract_task_reference("hello world") is None


def test_partial_weight_update_keeps_other_fields(matcher):
    original = matcher.get_weights()
    matcher.update_weights({"exact_title": 0.95})
    updated = matcher.get_weights()
    assert updated.exact_title == 0.95
    assert updated.model_dump(exclude={"exact_title"}) == original.model_dump(exclude={"exact_title"})


def test_full_weight_update(matcher):
    new_weights = {
        "exact_title": 0.9,
        "fuzzy_title": 0.7,
        "description": 0.5,
        "tags": 0.6,
        "recent_activity": 0.4,
        "contextual": 0.3,
    }
    matcher.update_weights(new_weights)
    assert matcher.get_weights().model_dump() == new_weights


def test_invalid_weight_updates_are_rejected(matcher):
    with pytest.raises(ValidationError):
        matcher.update_weights({"fuzzy_title": 0})
    with pytest.raises(ValidationError):
        matcher.update_weights({"popularity": 0.5})
    assert matcher.get_weights().fuzzy_title == 0.8


def test_get_weights_returns_a_copy(matcher):
    assert matcher.get_weights() is not matcher.get_weights()


@pytest.mark.asyncio
async def test_weights_change_scores(matcher):
    matcher.update_weights({"fuzzy_title": 1.0})
    results = await matcher.find_tasks_by_description("login issue")
    assert _by_id(results, "1").confidence == 38


@pytest.mark.asyncio
async def test_monitor_receives_operation_metrics(store):
    monitor = RecordingMonitor()
    matcher = TaskMatcher(store, monitor=monitor)
    results = await matcher.find_tasks_by_description("login bug")

    operation_id, metadata = monitor.started[0]
    assert operation_id.startswith("task-match-")
    assert metadata == {"type": "task_matching", "query_length": 9, "has_context": False}
    ended_id, outcome = monitor.ended[0]
    assert ended_id == operation_id
    assert outcome.success is True
    assert outcome.metrics["tasks_processed"] == 3
    assert outcome.metrics["matches_found"] == len(results)
    assert outcome.metrics["highest_confidence"] == results[0].confidence


@pytest.mark.asyncio
async def test_store_failure_propagates():
    monitor = RecordingMonitor()
    matcher = TaskMatcher(FailingStore(), monitor=monitor)
    with pytest.raises(RuntimeError, match="Database connection failed"):
        await matcher.find_tasks_by_description("test")
    _, outcome = monitor.ended[0]
    assert outcome.success is False
    assert outcome.error == "Database connection failed"


@pytest.mark.asyncio
async def test_cancellation_propagates():
    store = BlockingStore()
    monitor = RecordingMonitor()
    matcher = TaskMatcher(store, monitor=monitor)
    pending = asyncio.create_task(matcher.find_tasks_by_description("anything"))
    await store.entered.wait()
    pending.cancel()
    with pytest.raises(asyncio.CancelledError):
        await pending
    assert monitor.ended[0][1].success is False


@pytest.mark.asyncio
async def test_broken_monitor_does_not_change_results(store):
    diagnostics = []
    plain = await TaskMatcher(store).find_tasks_by_description("login bug")
    observed = await TaskMatcher(store, monitor=BrokenMonitor(), on_diagnostic=diagnostics.append).find_tasks_by_description(
        "login bug"
    )
    assert observed == plain
    assert [diagnostic.code for diagnostic in diagnostics] == ["telemetry_failed", "telemetry_failed"]


@pytest.mark.asyncio
async def test_unknown_context_reference_is_tolerated(store):
    diagnostics = []
    matcher = TaskMatcher(store, on_diagnostic=diagnostics.append)
    context = MatchContext(current_task=Task(id="ghost", title="Ghost task"))
    results = await matcher.find_tasks_by_description("bug", context)
    assert _by_id(results, "1").match_type == MatchType.TAG_MATCH
    assert len(diagnostics) == 1
    assert diagnostics[0].code == "context_task_missing"
    assert diagnostics[0].details == {"role": "current", "task_id": "ghost"}


@pytest.mark.asyncio
async def test_suggest_tasks_for_context(matcher, sample_tasks):
    context = MatchContext(current_task=sample_tasks[2], recent_tasks=[sample_tasks[1]])
    suggestions = await matcher.suggest_tasks_for_context(context)
    assert [task.id for task in suggestions] == ["3", "2"]


@pytest.mark.asyncio
async def test_find_single_task(matcher):
    task = await matcher.find_single_task("Fix login bug")
    assert task is not None and task.id == "1"
    assert await matcher.find_single_task("nonexistent task xyz") is None


@pytest.mark.asyncio
async def test_find_single_task_leaves_ambiguity_to_the_caller():
    tasks = [task for task in _report_tasks() if task.id != "c"]
    matcher = TaskMatcher(InMemoryTaskStore(tasks))
    assert await matcher.find_single_task("report", auto_resolve=False) is None
    picked = await matcher.find_single_task("report")
    assert picked.id == "a"


@pytest.mark.asyncio
async def test_find_single_task_decisive_confidence_is_on_result_scale():
    tasks = [task for task in _report_tasks() if task.id != "c"]
    matcher = TaskMatcher(InMemoryTaskStore(tasks))
    # "a" scores 48 and "b" 36: only "a" clears 40.
    picked = await matcher.find_single_task("report", auto_resolve=False, decisive_confidence=40)
    assert picked.id == "a"
    assert await matcher.find_single_task("report", auto_resolve=False, decisive_confidence=30) is None


@pytest.mark.asyncio
async def test_concurrent_matching(matcher):
    queries = ["login bug", "documentation task", "high priority", "testing feature"]
    results = await asyncio.gather(*(matcher.find_tasks_by_description(query) for query in queries))
    assert len(results) == 4
    assert all(isinstance(result, list) for result in results)
