"""
Note Record Models

The study notes analysed by the pipeline, as stored by the note-taking
application (camelCase JSON), plus a small file-backed store used by the
runner script.
"""

import json
import time
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .agents.state import AnalysisContext, NoteMetadata
from .utils.errors import NoteAnalyzerError
from .utils.logger import get_logger


logger = get_logger("note_analyzer.notes")


class ReviewAction(str, Enum):
    """Outcome of one review session"""

    REMEMBERED = "remembered"
    FORGOT = "forgot"


# ============================================================================
# Record Models
# ============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ReviewRecord(_CamelModel):
    """One entry of a note's review history"""

    date: int = Field(..., description="Review time (epoch ms)")
    action: ReviewAction


class AIAnalysisRecord(_CamelModel):
    """Analysis report stored back onto a note"""

    content: str
    generated_at: int = Field(..., alias="generatedAt", description="Epoch ms")


class CurveProfile(_CamelModel):
    """Named spaced-repetition schedule"""

    id: str
    name: str
    intervals: List[int] = Field(default_factory=list, description="Review intervals in days")
    is_default: bool = Field(default=False, alias="isDefault")


class Category(_CamelModel):
    """User-defined note category"""

    id: str
    name: str
    color: str = ""
    sort_order: Optional[int] = Field(default=None, alias="sortOrder")


class NoteRecord(_CamelModel):
    """A study note with its review schedule"""

    id: str
    title: str
    content: str = ""
    category_id: str = Field(..., alias="categoryId")
    curve_id: str = Field(..., alias="curveId")
    images: List[str] = Field(default_factory=list)
    created_at: int = Field(..., alias="createdAt", description="Epoch ms")
    next_review_date: int = Field(..., alias="nextReviewDate", description="Epoch ms")
    stage: int = Field(default=0, ge=0)
    review_history: List[ReviewRecord] = Field(default_factory=list, alias="reviewHistory")
    ai_analysis: Optional[AIAnalysisRecord] = Field(default=None, alias="aiAnalysis")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        """Titles must not be blank"""
        if not v.strip():
            raise ValueError("Note title cannot be empty")
        return v

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialise with the application's camelCase keys."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ============================================================================
# Helpers
# ============================================================================


def is_overdue(note: NoteRecord, now: Optional[datetime] = None) -> bool:
    """
    A note is overdue once the whole of its review day has passed.

    Args:
        note: The note to check.
        now: Reference time (defaults to the current local time).
    """
    now = now or datetime.now()
    review_day = datetime.fromtimestamp(note.next_review_date / 1000).date()
    return review_day < now.date()


def build_analysis_context(
    note: NoteRecord,
    category: Optional[Category] = None,
    curve: Optional[CurveProfile] = None,
) -> AnalysisContext:
    """
    Build the pipeline input for a note.

    A missing category or curve is reported as "未知" rather than failing.
    """
    metadata = NoteMetadata(
        category_name=category.name if category else "未知",
        curve_name=curve.name if curve else "未知",
        curve_intervals=tuple(curve.intervals) if curve else (),
        stage=note.stage,
        next_review_date=note.next_review_date,
        created_at=note.created_at,
    )
    return AnalysisContext(
        title=note.title,
        content=note.content,
        metadata=metadata,
        images=tuple(note.images),
    )


def attach_analysis(note: NoteRecord, content: str, generated_at: Optional[int] = None) -> NoteRecord:
    """Return a copy of ``note`` carrying the analysis report."""
    generated_at = generated_at if generated_at is not None else int(time.time() * 1000)
    record = AIAnalysisRecord(content=content, generated_at=generated_at)
    return note.model_copy(update={"ai_analysis": record})


# ============================================================================
# Storage
# ============================================================================


class NoteStore(Protocol):
    """Opaque key-value storage for note documents."""

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    def put(self, key: str, value: Dict[str, Any]) -> None:
        ...


class NoteStoreError(NoteAnalyzerError):
    """Raised when a stored document cannot be read or written"""

    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class JsonNoteStore:
    """
    Store each document as ``<root>/<key>.json``.

    Attributes:
        root: Directory holding the documents
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as exc:
            raise NoteStoreError(path, f"invalid JSON ({exc.msg})") from exc

    def put(self, key: str, value: Dict[str, Any]) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(value, f, indent=2, ensure_ascii=False)
        logger.debug("Stored document | key=%s | path=%s", key, path)


def load_note(store: NoteStore, key: str) -> NoteRecord:
    """Load and validate a note document."""
    document = store.get(key)
    if document is None:
        raise KeyError(key)
    return NoteRecord.model_validate(document)


def save_note(store: NoteStore, key: str, note: NoteRecord) -> None:
    store.put(key, note.to_json_dict())


__all__ = [
    "ReviewAction",
    "ReviewRecord",
    "AIAnalysisRecord",
    "CurveProfile",
    "Category",
    "NoteRecord",
    "is_overdue",
    "build_analysis_context",
    "attach_analysis",
    "NoteStore",
    "NoteStoreError",
    "JsonNoteStore",
    "load_note",
    "save_note",
]
