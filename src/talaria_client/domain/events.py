"""Typed events delivered from a job's event stream."""

from typing import Optional, List, Literal, Union
from pydantic import BaseModel, Field

from .models import BookResult


class _Event(BaseModel):
    class Config:
        """Pydantic config."""

        frozen = True

    @property
    def is_terminal(self) -> bool:
        """Whether the stream ends after this event."""
        return False


class ProgressEvent(_Event):
    """Status update such as "Looking..." or "Reading..."."""

    kind: Literal["progress"] = "progress"
    message: str


class ResultItemEvent(_Event):
    """One recognised book."""

    kind: Literal["result"] = "result"
    book: BookResult


class CompletedEvent(_Event):
    """Job finished; results are inline, by reference, or both."""

    kind: Literal["completed"] = "completed"
    results_endpoint: Optional[str] = None
    inline_items: Optional[List[BookResult]] = None

    @property
    def is_terminal(self) -> bool:
        return True

    @property
    def has_inline_items(self) -> bool:
        """True when the event carries at least one book."""
        return bool(self.inline_items)


class ErrorEvent(_Event):
    """Job failed on the server."""

    kind: Literal["error"] = "error"
    message: str
    code: Optional[str] = None
    retryable: Optional[bool] = None
    job_id: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return True


class CanceledEvent(_Event):
    """Job was canceled by the user or the system."""

    kind: Literal["canceled"] = "canceled"

    @property
    def is_terminal(self) -> bool:
        return True


class PingEvent(_Event):
    """Keepalive."""

    kind: Literal["ping"] = "ping"


class EnrichmentDegradedEvent(_Event):
    """Enrichment fell back to a secondary source. Informational only."""

    kind: Literal["enrichment_degraded"] = "enrichment_degraded"
    job_id: Optional[str] = None
    isbn: Optional[str] = None
    title: Optional[str] = None
    reason: Optional[str] = None
    fallback_source: Optional[str] = None
    timestamp: Optional[str] = None


class SegmentedEvent(_Event):
    """Annotated preview image with the detected spine regions."""

    kind: Literal["segmented"] = "segmented"
    image: bytes = Field(..., repr=False)
    total_books: int


class BookProgressEvent(_Event):
    """Per-book processing progress (1-based ``current``)."""

    kind: Literal["book_progress"] = "book_progress"
    current: int
    total: int
    stage: Optional[str] = None


class IgnoredUnknownEvent(_Event):
    """Event label this client does not understand; never an error."""

    kind: Literal["ignored_unknown"] = "ignored_unknown"
    label: str


StreamEvent = Union[
    ProgressEvent,
    ResultItemEvent,
    CompletedEvent,
    ErrorEvent,
    CanceledEvent,
    PingEvent,
    EnrichmentDegradedEvent,
    SegmentedEvent,
    BookProgressEvent,
    IgnoredUnknownEvent,
]
