"""
Data model for the note analysis pipeline.

Every object here is created fresh for one pipeline run. ``AnalysisContext``
is immutable; ``PipelineState`` is the LangGraph state passed between the
orchestrator's nodes.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, TypedDict, Union


MAX_INTENT_ATTEMPTS = 3


class AgentId(str, Enum):
    """Stable identifiers used to tag streamed output."""

    INTENT = "intent"
    REVIEW = "review"
    ORIGINAL = "original"
    CORRECTION = "correction"
    SUMMARY = "summary"


@dataclass(frozen=True)
class NoteMetadata:
    """
    Review-schedule metadata for the analysed note.

    Timestamps are epoch milliseconds, as stored on note records.
    """

    category_name: str
    curve_name: str
    curve_intervals: Tuple[int, ...] = ()
    stage: int = 0
    next_review_date: int = 0
    created_at: Optional[int] = None


@dataclass(frozen=True)
class AnalysisContext:
    """
    Read-only input bundle for one pipeline run.

    Fields:
        title: Note title.
        content: Note body text.
        images: Zero or more images (data URLs or http(s) URLs), sent as
            ``image_url`` content blocks.
        metadata: Category, curve and review-stage information.
    """

    title: str
    content: str
    metadata: NoteMetadata
    images: Tuple[str, ...] = ()

    def user_content(self) -> List[Dict[str, Any]]:
        """
        Build the multi-part user message for this note.

        A new list is returned on every call so callers may extend it
        without touching anyone else's copy.
        """
        blocks: List[Dict[str, Any]] = [
            {
                "type": "text",
                "text": f"笔记标题：{self.title}\n笔记内容：{self.content}",
            }
        ]
        for image in self.images:
            blocks.append({"type": "image_url", "image_url": {"url": image}})
        return blocks


@dataclass(frozen=True)
class ReviewVerdict:
    """Outcome of one Review Agent call."""

    passed: bool
    feedback: str


@dataclass
class RetryState:
    """Loop state of the intent review gate."""

    attempt: int = 0
    max_attempts: int = MAX_INTENT_ATTEMPTS
    last_intent: str = ""
    last_verdict: Optional[ReviewVerdict] = None

    @property
    def passed(self) -> bool:
        return self.last_verdict is not None and self.last_verdict.passed

    @property
    def is_terminal(self) -> bool:
        return self.passed or self.attempt >= self.max_attempts


@dataclass(frozen=True)
class IntentGateResult:
    """Result of the retry-gated intent analysis."""

    intent: str
    review_passed: bool
    attempts: int


@dataclass(frozen=True)
class ParallelAnalysis:
    """Joined output of the original-record and correction agents."""

    original: str
    correction: str


@dataclass(frozen=True)
class PipelineResult:
    """
    Outcome of a full pipeline run.

    When ``review_passed`` is False, ``original`` holds the canned degraded
    message and ``correction`` / ``summary`` are empty.
    """

    intent: str
    original: str
    correction: str
    summary: str
    review_passed: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StatusEvent:
    """Human-readable status line."""

    message: str


@dataclass(frozen=True)
class TokenEvent:
    """Latest accumulated output of one agent."""

    agent_id: str
    partial_text: str


ProgressEvent = Union[StatusEvent, TokenEvent]


class PipelineState(TypedDict, total=False):
    """
    LangGraph state for the orchestrator graph.

    Fields:
        run_id: Identifier of this pipeline run (for logs).
        context: The caller's AnalysisContext.
        intent: Latest intent text from the review gate.
        review_passed: Whether the review gate passed.
        attempts: Number of intent attempts made.
        original: Original-record analysis, or the degraded message.
        correction: Correction analysis.
        summary: Final report.
        current_stage: Name of the node that last updated the state.
    """

    run_id: str
    context: AnalysisContext
    intent: str
    review_passed: bool
    attempts: int
    original: str
    correction: str
    summary: str
    current_stage: str


__all__ = [
    "MAX_INTENT_ATTEMPTS",
    "AgentId",
    "NoteMetadata",
    "AnalysisContext",
    "ReviewVerdict",
    "RetryState",
    "IntentGateResult",
    "ParallelAnalysis",
    "PipelineResult",
    "StatusEvent",
    "TokenEvent",
    "ProgressEvent",
    "PipelineState",
]
