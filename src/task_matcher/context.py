"""Contextual relevance bonus for a task."""
from __future__ import annotations

from .models import MatchContext, Task

CURRENT_TASK_BONUS = 0.8
RECENT_TASK_BONUS = 0.6
STATUS_FILTER_BONUS = 0.3
PRIORITY_FILTER_BONUS = 0.2
TAG_FILTER_BONUS = 0.4


def context_score(task: Task, context: MatchContext) -> float:
    """Additive bonus in [0, 1]; only meaningful on top of a lexical match."""
    score = 0.0
    if context.current_task is not None and context.current_task.id == task.id:
        score += CURRENT_TASK_BONUS
    if any(recent.id == task.id for recent in context.recent_tasks):
        score += RECENT_TASK_BONUS

    filters = context.active_filters
    if filters is not None:
        if filters.status and task.status in filters.status:
            score += STATUS_FILTER_BONUS
        if filters.priority and task.priority in filters.priority:
            score += PRIORITY_FILTER_BONUS
        if filters.tags and set(filters.tags) & set(task.tags):
            score += TAG_FILTER_BONUS

    return min(score, 1.0)
