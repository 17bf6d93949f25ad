"""Pydantic models shared by the matcher, the stores and the resolution flow."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Priority(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2
    URGENT = 3


class MatchType(str, Enum):
    EXACT_TITLE = "exact_title"
    FUZZY_TITLE = "fuzzy_title"
    DESCRIPTION_MATCH = "description_match"
    TAG_MATCH = "tag_match"
    CONTEXTUAL = "contextual"


class UserIntent(str, Enum):
    COMPLETE_TASK = "complete_task"
    START_TIMER = "start_timer"
    EDIT_TASK = "edit_task"
    DELETE_TASK = "delete_task"
    VIEW_DETAILS = "view_details"
    SCHEDULE_TASK = "schedule_task"


class TieBreak(str, Enum):
    """Secondary ordering for results with identical confidence."""

    RECENTLY_UPDATED = "recently_updated"
    TASK_ID = "task_id"
    STORE_ORDER = "store_order"


class Task(BaseModel):
    """A task record as read from the task store."""

    id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    priority: Priority = Priority.MEDIUM
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class TaskFilters(BaseModel):
    """Filter bag used both by the UI (active filters) and by store reads."""

    status: Optional[list[TaskStatus]] = None
    priority: Optional[list[Priority]] = None
    tags: Optional[list[str]] = None

    def accepts(self, task: Task) -> bool:
        if self.status is not None and task.status not in self.status:
            return False
        if self.priority is not None and task.priority not in self.priority:
            return False
        if self.tags is not None and not set(self.tags) & set(task.tags):
            return False
        return True


class MatchContext(BaseModel):
    """Ambient context for a query: what the user is looking at right now."""

    current_task: Optional[Task] = None
    recent_tasks: list[Task] = Field(default_factory=list)
    active_filters: Optional[TaskFilters] = None
    user_intent: Optional[UserIntent] = None


class MatchQuery(BaseModel):
    query: str
    context: Optional[MatchContext] = None
    max_results: int = Field(default=10, ge=1)
    min_confidence: float = Field(default=0.3, ge=0.0, le=1.0)

    @property
    def confidence_floor(self) -> float:
        """`min_confidence` on the 0-100 scale used by `MatchResult`."""
        return round(self.min_confidence * 100, 4)


class MatchResult(BaseModel):
    task: Task
    confidence: int = Field(ge=0, le=100)
    match_reason: str
    match_type: MatchType
    alternatives: list[Task] = Field(default_factory=list)


class MatchingWeights(BaseModel):
    """Multipliers applied to the lexical signals. Replaced, never mutated."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    exact_title: float = Field(default=1.0, gt=0)
    fuzzy_title: float = Field(default=0.8, gt=0)
    description: float = Field(default=0.6, gt=0)
    tags: float = Field(default=0.7, gt=0)
    recent_activity: float = Field(default=0.5, gt=0)
    contextual: float = Field(default=0.4, gt=0)


class ExtractedReference(BaseModel):
    reference: str
    intent: UserIntent
    confidence: float


class ResolutionRequest(BaseModel):
    """An ambiguous match handed to the presentation layer for a decision."""

    original_query: str
    matches: list[MatchResult]
    context: Optional[MatchContext] = None

    @classmethod
    def from_matches(
        cls,
        query: str,
        matches: list[MatchResult],
        context: Optional[MatchContext] = None,
    ) -> "ResolutionRequest":
        return cls(original_query=query, matches=list(matches), context=context)

    @property
    def user_intent(self) -> Optional[UserIntent]:
        return self.context.user_intent if self.context else None

    def candidate_ids(self) -> set[str]:
        ids = {match.task.id for match in self.matches}
        for match in self.matches:
            ids.update(alternative.id for alternative in match.alternatives)
        return ids


class ResolutionResponse(BaseModel):
    selected_task: Optional[Task] = None
    cancelled: bool = False
    create_new: bool = False
    new_task_title: Optional[str] = None

    @model_validator(mode="after")
    def _single_outcome(self) -> "ResolutionResponse":
        outcomes = [self.selected_task is not None, self.cancelled, self.create_new]
        if sum(outcomes) != 1:
            raise ValueError("a resolution response needs exactly one outcome")
        if self.create_new:
            title = (self.new_task_title or "").strip()
            if not title:
                raise ValueError("create_new requires a non-blank new_task_title")
            self.new_task_title = title
        return self

    @classmethod
    def select(cls, task: Task) -> "ResolutionResponse":
        return cls(selected_task=task)

    @classmethod
    def cancel(cls) -> "ResolutionResponse":
        return cls(cancelled=True)

    @classmethod
    def create(cls, title: str) -> "ResolutionResponse":
        return cls(create_new=True, new_task_title=title)


class Diagnostic(BaseModel):
    """A tolerated, non-fatal event surfaced to the host application."""

    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class OperationOutcome(BaseModel):
    success: bool
    metrics: dict[str, float] = Field(default_factory=dict)
    error: Optional[str] = None
