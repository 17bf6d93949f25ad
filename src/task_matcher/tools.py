"""`find_task` tool exposing the matcher to a conversational agent."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

import structlog
from pydantic import BaseModel, Field

from .matcher import SETTLED_CONFIDENCE, TaskMatcher
from .models import MatchContext, Priority, Task, UserIntent

_logger = structlog.get_logger(__name__)

IntentKeyword = Literal["complete", "start_timer", "edit", "delete", "schedule", "view"]

INTENT_KEYWORDS: Dict[str, UserIntent] = {
    "complete": UserIntent.COMPLETE_TASK,
    "start_timer": UserIntent.START_TIMER,
    "edit": UserIntent.EDIT_TASK,
    "delete": UserIntent.DELETE_TASK,
    "schedule": UserIntent.SCHEDULE_TASK,
    "view": UserIntent.VIEW_DETAILS,
}

PRIORITY_LABELS: Dict[Priority, str] = {
    Priority.URGENT: "Urgent",
    Priority.HIGH: "High",
    Priority.MEDIUM: "Medium",
    Priority.LOW: "Low",
}


class FindTaskParams(BaseModel):
    query: str = Field(description="Natural language description of the task to find")
    intent: Optional[IntentKeyword] = Field(default=None, description="What the user wants to do with the task")
    auto_resolve: bool = Field(default=True, description="Whether to automatically resolve ambiguous matches")


class ToolMatch(BaseModel):
    task: Task
    confidence: int
    reason: str


class FindTaskResult(BaseModel):
    success: bool
    message: str
    task: Optional[Task] = None
    matches: List[ToolMatch] = Field(default_factory=list)
    needs_resolution: bool = False


class TaskMatchingTool:
    name = "find_task"
    description = "Find tasks using natural language descriptions instead of requiring exact IDs"

    def __init__(self, matcher: TaskMatcher) -> None:
        self.matcher = matcher

    async def execute(self, params: FindTaskParams) -> FindTaskResult:
        context = MatchContext(user_intent=INTENT_KEYWORDS[params.intent] if params.intent else None)
        try:
            matches = await self.matcher.search_tasks(params.query, context)
        except Exception as exc:
            _logger.exception("find_task failed", query=params.query, error=str(exc))
            return FindTaskResult(success=False, message=f"Error searching for tasks: {exc}")

        if not matches:
            return FindTaskResult(
                success=False,
                message=f'I couldn\'t find any tasks matching "{params.query}". Would you like me to create a new task?',
            )

        best = matches[0]
        if len(matches) == 1 and best.confidence >= SETTLED_CONFIDENCE and params.auto_resolve:
            return FindTaskResult(
                success=True,
                task=best.task,
                message=f'Found task: "{best.task.title}" ({best.confidence}% confidence - {best.match_reason})',
            )

        return FindTaskResult(
            success=True,
            matches=[ToolMatch(task=m.task, confidence=m.confidence, reason=m.match_reason) for m in matches],
            message=f'I found {len(matches)} possible matches for "{params.query}". Please select which task you meant:',
            needs_resolution=True,
        )

    async def get_task_details(self, query: str) -> FindTaskResult:
        result = await self.execute(FindTaskParams(query=query, intent="view"))
        if not result.success or result.task is None:
            return FindTaskResult(
                success=False,
                message=result.message,
                matches=result.matches,
                needs_resolution=result.needs_resolution,
            )

        task = result.task
        lines = [
            f"**{task.title}**",
            task.description,
            f"Status: {task.status.value.replace('_', ' ')}",
            f"Priority: {PRIORITY_LABELS.get(task.priority, 'Unknown')}",
            f"Tags: {', '.join(task.tags)}" if task.tags else "",
        ]
        return FindTaskResult(success=True, task=task, message="\n".join(line for line in lines if line))

    @classmethod
    def get_schema(cls) -> Dict[str, Any]:
        return {
            "name": cls.name,
            "description": cls.description,
            "parameters": FindTaskParams.model_json_schema(),
        }
