"""Ambiguous-match resolution workflow.

The coordinator holds at most one pending `ResolutionRequest`. The presentation
layer reads `request`/`is_pending`, and exactly one of `resolve`, `cancel` or
`close` ends the cycle and returns the coordinator to idle.
"""
from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, Iterable, List, Optional

import structlog

from .models import MatchResult, ResolutionRequest, ResolutionResponse, Task

_logger = structlog.get_logger(__name__)

ResolutionCallback = Callable[[ResolutionResponse], None]


class ResolutionError(Exception):
    """Raised when a response cannot settle the pending request."""


class NoPendingResolution(ResolutionError):
    pass


class ResolutionState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


def needs_resolution(matches: List[MatchResult], threshold: int = 80) -> bool:
    """True unless the result set is a single match at or above ``threshold``."""
    if not matches:
        return False
    return len(matches) > 1 or matches[0].confidence < threshold


def preferred_task(candidates: Iterable[Task]) -> Optional[Task]:
    """Heuristic pick among candidates: highest priority, then most recently updated."""
    ordered = sorted(candidates, key=lambda task: (-int(task.priority), -task.updated_at.timestamp()))
    return ordered[0] if ordered else None


class ResolutionCoordinator:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._request: Optional[ResolutionRequest] = None
        self._callback: Optional[ResolutionCallback] = None

    @property
    def state(self) -> ResolutionState:
        return ResolutionState.PENDING if self._request is not None else ResolutionState.IDLE

    @property
    def is_pending(self) -> bool:
        return self._request is not None

    @property
    def request(self) -> Optional[ResolutionRequest]:
        return self._request

    def open(self, request: ResolutionRequest, on_resolve: Optional[ResolutionCallback] = None) -> None:
        """Hold ``request`` for presentation, replacing any request already pending."""
        with self._lock:
            replaced = self._request
            self._request = request
            self._callback = on_resolve
        if replaced is not None:
            _logger.info("resolution request replaced", previous_query=replaced.original_query)
        _logger.info("resolution request opened", query=request.original_query, matches=len(request.matches))

    def resolve(self, response: ResolutionResponse) -> None:
        with self._lock:
            request = self._request
            if request is None:
                raise NoPendingResolution("There is no pending resolution request")
            if response.selected_task is not None and response.selected_task.id not in request.candidate_ids():
                raise ResolutionError(f"Task {response.selected_task.id!r} is not a candidate for this request")
            callback = self._callback
            self._request = None
            self._callback = None
        _logger.info(
            "resolution request resolved",
            query=request.original_query,
            selected=response.selected_task.id if response.selected_task else None,
            cancelled=response.cancelled,
            create_new=response.create_new,
        )
        if callback is not None:
            callback(response)

    def cancel(self) -> None:
        """Abandon the pending request; the continuation sees a cancelled response."""
        with self._lock:
            request = self._request
            callback = self._callback
            self._request = None
            self._callback = None
        if request is None:
            return
        _logger.info("resolution request cancelled", query=request.original_query)
        if callback is not None:
            callback(ResolutionResponse.cancel())

    def close(self) -> None:
        """Drop the pending request without notifying the continuation."""
        with self._lock:
            request = self._request
            self._request = None
            self._callback = None
        if request is not None:
            _logger.info("resolution request closed", query=request.original_query)
