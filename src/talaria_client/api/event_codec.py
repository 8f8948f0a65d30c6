"""Server-Sent Events framing and event payload decoding."""

import base64
import binascii
import json
from typing import Optional, List, Dict, Any, Callable

from pydantic import BaseModel, ValidationError

from ..domain.errors import EventDecodeError
from ..domain.events import (
    StreamEvent,
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
)
from ..domain.models import BookResult
from .schemas import (
    ProgressPayload,
    ErrorPayload,
    EnrichmentDegradedPayload,
    SegmentedPayload,
    BookProgressPayload,
)

DEFAULT_EVENT_LABEL = "message"


class SSERecord:
    """One dispatched SSE record."""

    def __init__(self, event: str, data: str, event_id: Optional[str] = None):
        self.event = event
        self.data = data
        self.event_id = event_id

    def __repr__(self) -> str:
        return f"SSERecord(event={self.event!r}, id={self.event_id!r}, data={self.data!r})"


class SSERecordParser:
    """Incremental line-oriented SSE parser.

    Feed decoded lines one at a time; a record is returned when the blank line
    terminating it arrives.
    """

    def __init__(self) -> None:
        self._event: Optional[str] = None
        self._data: List[str] = []
        self._id: Optional[str] = None
        self._has_fields = False

    def feed(self, line: str) -> Optional[SSERecord]:
        """Consume one line, returning a record when one is complete."""
        line = line.rstrip("\r\n")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        elif field == "id":
            # An id containing NULL must be ignored per the SSE format.
            if "\0" not in value:
                self._id = value
        else:
            return None
        self._has_fields = True
        return None

    def _dispatch(self) -> Optional[SSERecord]:
        if not self._has_fields:
            return None
        record = SSERecord(
            event=self._event or DEFAULT_EVENT_LABEL,
            data="\n".join(self._data),
            event_id=self._id,
        )
        self._event = None
        self._data = []
        self._id = None
        self._has_fields = False
        return record


def _load_object(label: str, data: bytes) -> Dict[str, Any]:
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise EventDecodeError(label, f"data is not JSON ({e})") from e
    if not isinstance(payload, dict):
        raise EventDecodeError(label, "data is not a JSON object")
    return payload


def _validate(label: str, schema: type[BaseModel], payload: Dict[str, Any]) -> Any:
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        raise EventDecodeError(label, str(e)) from e


def _decode_progress(label: str, data: bytes) -> StreamEvent:
    payload = _validate(label, ProgressPayload, _load_object(label, data))
    return ProgressEvent(message=payload.message)


def _decode_result(label: str, data: bytes) -> StreamEvent:
    return ResultItemEvent(book=_validate(label, BookResult, _load_object(label, data)))


def _decode_completed(label: str, data: bytes) -> StreamEvent:
    # Legacy servers send an empty or non-object payload.
    if not data.strip():
        return CompletedEvent()
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return CompletedEvent()
    if not isinstance(payload, dict):
        return CompletedEvent()

    results_url = payload.get("resultsUrl")
    if not isinstance(results_url, str):
        results_url = None

    books = None
    raw_books = payload.get("books")
    if isinstance(raw_books, list):
        try:
            books = [BookResult.model_validate(item) for item in raw_books]
        except ValidationError:
            # Malformed inline books fall back to the results endpoint.
            books = None
    return CompletedEvent(results_endpoint=results_url, inline_items=books)


def _decode_error(label: str, data: bytes) -> StreamEvent:
    payload = _validate(label, ErrorPayload, _load_object(label, data))
    return ErrorEvent(
        message=payload.message,
        code=payload.code,
        retryable=payload.retryable,
        job_id=payload.job_id,
    )


def _decode_canceled(label: str, data: bytes) -> StreamEvent:
    return CanceledEvent()


def _decode_ping(label: str, data: bytes) -> StreamEvent:
    return PingEvent()


def _decode_enrichment_degraded(label: str, data: bytes) -> StreamEvent:
    payload = _validate(label, EnrichmentDegradedPayload, _load_object(label, data))
    return EnrichmentDegradedEvent(
        job_id=payload.job_id,
        isbn=payload.isbn,
        title=payload.title,
        reason=payload.reason,
        fallback_source=payload.fallback_source,
        timestamp=payload.timestamp,
    )


def _decode_segmented(label: str, data: bytes) -> StreamEvent:
    payload = _validate(label, SegmentedPayload, _load_object(label, data))
    try:
        image = base64.b64decode(payload.image, validate=True)
    except (binascii.Error, ValueError) as e:
        raise EventDecodeError(label, "image is not valid base64") from e
    return SegmentedEvent(image=image, total_books=payload.total_books)


def _decode_book_progress(label: str, data: bytes) -> StreamEvent:
    payload = _validate(label, BookProgressPayload, _load_object(label, data))
    return BookProgressEvent(current=payload.current, total=payload.total, stage=payload.stage)


_DECODERS: Dict[str, Callable[[str, bytes], StreamEvent]] = {
    "progress": _decode_progress,
    "result": _decode_result,
    "complete": _decode_completed,
    "completed": _decode_completed,
    "error": _decode_error,
    "canceled": _decode_canceled,
    "ping": _decode_ping,
    "enrichment_degraded": _decode_enrichment_degraded,
    "segmented": _decode_segmented,
    "book_progress": _decode_book_progress,
}

KNOWN_LABELS = frozenset(_DECODERS)


def decode(label: str, data: bytes) -> StreamEvent:
    """Decode one event payload by its wire label.

    Unknown labels decode to IgnoredUnknownEvent.

    Raises:
        EventDecodeError: a known label's required fields are absent or malformed
    """
    decoder = _DECODERS.get(label)
    if decoder is None:
        return IgnoredUnknownEvent(label=label)
    return decoder(label, data)


def decode_record(record: SSERecord) -> StreamEvent:
    """Decode a parsed SSE record."""
    return decode(record.event, record.data.encode())
