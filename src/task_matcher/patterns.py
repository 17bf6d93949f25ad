"""Natural language to task reference extraction."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional

from .models import ExtractedReference, UserIntent


def _first_group(match: re.Match[str]) -> str:
    return match.group(1).strip()


@dataclass(frozen=True)
class TaskIdentificationPattern:
    pattern: re.Pattern[str]
    intent: UserIntent
    confidence: float
    extract: Callable[[re.Match[str]], str] = _first_group

    def apply(self, utterance: str) -> Optional[ExtractedReference]:
        match = self.pattern.search(utterance)
        if not match:
            return None
        reference = self.extract(match)
        if not reference:
            return None
        return ExtractedReference(reference=reference, intent=self.intent, confidence=self.confidence)


# Order is priority: specific verbs first, the bare "task ..." catch-all last.
TASK_IDENTIFICATION_PATTERNS: tuple[TaskIdentificationPattern, ...] = (
    TaskIdentificationPattern(
        re.compile(r"\b(?:complete|finish|done with|mark as done)\s+(?:the\s+)?(?:task\s+)?[\"']?([^\"']+)[\"']?", re.I),
        UserIntent.COMPLETE_TASK,
        0.9,
    ),
    TaskIdentificationPattern(
        re.compile(r"\b(?:start|begin|work on)\s+(?:working on\s+)?(?:the\s+)?(?:task\s+)?[\"']?([^\"']+?)[\"']?$", re.I),
        UserIntent.START_TIMER,
        0.85,
    ),
    TaskIdentificationPattern(
        re.compile(r"\b(?:edit|modify|update|change)\s+(?:the\s+)?(?:task\s+)?[\"']?([^\"']+)[\"']?", re.I),
        UserIntent.EDIT_TASK,
        0.8,
    ),
    TaskIdentificationPattern(
        re.compile(r"\b(?:delete|remove)\s+(?:the\s+)?(?:task\s+)?[\"']?([^\"']+)[\"']?", re.I),
        UserIntent.DELETE_TASK,
        0.85,
    ),
    TaskIdentificationPattern(
        re.compile(r"\b(?:schedule|plan)\s+(?:the\s+)?(?:task\s+)?[\"']?([^\"']+)[\"']?", re.I),
        UserIntent.SCHEDULE_TASK,
        0.8,
    ),
    TaskIdentificationPattern(
        re.compile(r"\b(?:show|view|details of|info about)\s+(?:me\s+)?(?:the\s+)?(?:task\s+)?[\"']([^\"']+)[\"']", re.I),
        UserIntent.VIEW_DETAILS,
        0.75,
    ),
    TaskIdentificationPattern(
        re.compile(r"(?:task\s+)?[\"']([^\"']+)[\"']", re.I),
        UserIntent.VIEW_DETAILS,
        0.6,
    ),
    TaskIdentificationPattern(
        re.compile(r"(?:the\s+)?\btask\s+(?:called\s+|named\s+)?(\S+(?:\s+\S+)*)", re.I),
        UserIntent.VIEW_DETAILS,
        0.5,
    ),
)


def extract_task_reference(
    utterance: str,
    patterns: tuple[TaskIdentificationPattern, ...] = TASK_IDENTIFICATION_PATTERNS,
) -> Optional[ExtractedReference]:
    for entry in patterns:
        extracted = entry.apply(utterance)
        if extracted is not None:
            return extracted
    return None
