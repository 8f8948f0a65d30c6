"""Unit tests for SSE framing and event decoding."""

import base64
import json

import pytest

from talaria_client.api import event_codec
from talaria_client.api.event_codec import SSERecordParser
from talaria_client.domain.errors import EventDecodeError
from talaria_client.domain.events import (
    BookProgressEvent,
    CanceledEvent,
    CompletedEvent,
    EnrichmentDegradedEvent,
    ErrorEvent,
    IgnoredUnknownEvent,
    PingEvent,
    ProgressEvent,
    ResultItemEvent,
    SegmentedEvent,
)
from talaria_client.domain.models import EnrichmentStatus

BOOK = {"title": "Dune", "author": "Frank Herbert", "isbn": "9780441013593", "confidence": 0.93}


def feed_all(parser, lines):
    return [record for record in (parser.feed(line) for line in lines) if record is not None]


class TestSSERecordParser:
    """Tests for SSERecordParser."""

    def test_dispatches_on_blank_line(self):
        """A record is complete only once the blank line arrives."""
        parser = SSERecordParser()

        assert parser.feed("id: 7") is None
        assert parser.feed("event: progress") is None
        assert parser.feed('data: {"message": "Looking..."}') is None
        record = parser.feed("")

        assert record.event == "progress"
        assert record.event_id == "7"
        assert record.data == '{"message": "Looking..."}'

    def test_joins_multiple_data_lines(self):
        """Consecutive data lines are joined with newlines."""
        records = feed_all(SSERecordParser(), ["event: progress", "data: first", "data: second", ""])

        assert records[0].data == "first\nsecond"

    def test_skips_comments_and_defaults_label(self):
        """Comment lines are ignored and a missing event field means 'message'."""
        records = feed_all(SSERecordParser(), [": keepalive", "data: hello", ""])

        assert len(records) == 1
        assert records[0].event == "message"
        assert records[0].event_id is None

    def test_blank_lines_without_fields_dispatch_nothing(self):
        """Stray blank lines never produce records."""
        assert feed_all(SSERecordParser(), ["", "", ": ping", ""]) == []

    def test_strips_crlf_and_single_leading_space(self):
        """Only the first space after the colon belongs to the syntax."""
        records = feed_all(SSERecordParser(), ["event: progress\r\n", "data:  two spaces\r\n", "\r\n"])

        assert records[0].event == "progress"
        assert records[0].data == " two spaces"

    def test_ignores_id_containing_null(self):
        """An id with a NULL character is discarded."""
        records = feed_all(SSERecordParser(), ["id: 4\0", "event: ping", "data: {}", ""])

        assert records[0].event_id is None


class TestDecode:
    """Tests for event payload decoding."""

    def test_progress(self):
        """Progress carries its message."""
        event = event_codec.decode("progress", b'{"message": "Reading..."}')

        assert event == ProgressEvent(message="Reading...")
        assert not event.is_terminal

    def test_result_reads_camel_case_fields(self):
        """Result payloads use the wire field names."""
        payload = dict(BOOK, coverUrl="https://covers.test/dune.jpg", pageCount=412, enrichmentStatus="success")

        event = event_codec.decode("result", json.dumps(payload).encode())

        assert isinstance(event, ResultItemEvent)
        assert event.book.cover_url == "https://covers.test/dune.jpg"
        assert event.book.page_count == 412
        assert event.book.enrichment_status == EnrichmentStatus.SUCCESS

    def test_unknown_enrichment_status_decodes_to_none(self):
        """New enrichment states from the server do not break decoding."""
        event = event_codec.decode("result", json.dumps(dict(BOOK, enrichmentStatus="queued")).encode())

        assert event.book.enrichment_status is None

    def test_result_with_out_of_range_confidence_fails(self):
        """Confidence must stay within [0, 1]."""
        with pytest.raises(EventDecodeError) as exc_info:
            event_codec.decode("result", json.dumps(dict(BOOK, confidence=1.5)).encode())

        assert exc_info.value.label == "result"

    @pytest.mark.parametrize("label", ["complete", "completed"])
    def test_completed_with_inline_books(self, label):
        """Both completion spellings decode inline books."""
        event = event_codec.decode(label, json.dumps({"books": [BOOK]}).encode())

        assert isinstance(event, CompletedEvent)
        assert event.is_terminal
        assert event.has_inline_items
        assert event.inline_items[0].title == "Dune"

    def test_completed_by_reference(self):
        """A results URL without books means fetch-by-reference."""
        event = event_codec.decode("completed", b'{"resultsUrl": "/v3/jobs/results/abc"}')

        assert event.results_endpoint == "/v3/jobs/results/abc"
        assert not event.has_inline_items

    @pytest.mark.parametrize("data", [b"", b"   ", b"not json", b"[]"])
    def test_legacy_completed_payloads(self, data):
        """Empty or non-object completion payloads still complete."""
        assert event_codec.decode("completed", data) == CompletedEvent()

    def test_completed_with_malformed_books_keeps_reference(self):
        """Broken inline books are dropped in favour of the results URL."""
        payload = {"resultsUrl": "/v3/jobs/results/abc", "books": [{"title": "No author"}]}

        event = event_codec.decode("completed", json.dumps(payload).encode())

        assert event.inline_items is None
        assert event.results_endpoint == "/v3/jobs/results/abc"

    def test_error(self):
        """Error events expose code, retryable and job id."""
        payload = {"message": "Gemini quota exceeded", "code": "PROVIDER_QUOTA", "retryable": True, "jobId": "J1"}

        event = event_codec.decode("error", json.dumps(payload).encode())

        assert event == ErrorEvent(message="Gemini quota exceeded", code="PROVIDER_QUOTA", retryable=True, job_id="J1")
        assert event.is_terminal

    def test_error_without_message_fails(self):
        """The message field is required."""
        with pytest.raises(EventDecodeError):
            event_codec.decode("error", b'{"code": "X"}')

    def test_canceled_and_ping_ignore_payload(self):
        """Canceled and ping carry no data worth decoding."""
        assert event_codec.decode("canceled", b"") == CanceledEvent()
        assert event_codec.decode("canceled", b"").is_terminal
        assert event_codec.decode("ping", b"{}") == PingEvent()

    def test_enrichment_degraded_allows_empty_payload(self):
        """Every enrichment_degraded field is optional."""
        event = event_codec.decode("enrichment_degraded", b"{}")

        assert event == EnrichmentDegradedEvent()

    def test_enrichment_degraded_fields(self):
        """Fallback source is read from its wire name."""
        payload = {"jobId": "J1", "isbn": "123", "reason": "timeout", "fallbackSource": "openlibrary"}

        event = event_codec.decode("enrichment_degraded", json.dumps(payload).encode())

        assert event.fallback_source == "openlibrary"
        assert event.job_id == "J1"

    def test_segmented_decodes_image(self):
        """The preview image arrives base64 encoded."""
        image = b"\xff\xd8\xff\xe0jpeg"
        payload = {"image": base64.b64encode(image).decode(), "totalBooks": 12}

        event = event_codec.decode("segmented", json.dumps(payload).encode())

        assert event == SegmentedEvent(image=image, total_books=12)

    def test_segmented_with_bad_base64_fails(self):
        """Invalid base64 is a decode failure."""
        with pytest.raises(EventDecodeError):
            event_codec.decode("segmented", b'{"image": "***", "totalBooks": 1}')

    def test_book_progress(self):
        """Per-book progress is decoded."""
        event = event_codec.decode("book_progress", b'{"current": 2, "total": 5, "stage": "enriching"}')

        assert event == BookProgressEvent(current=2, total=5, stage="enriching")

    def test_unknown_label_is_ignored_not_an_error(self):
        """Unknown labels decode to IgnoredUnknownEvent."""
        event = event_codec.decode("shelf_analytics", b"garbage")

        assert event == IgnoredUnknownEvent(label="shelf_analytics")
        assert "progress" in event_codec.KNOWN_LABELS
        assert "shelf_analytics" not in event_codec.KNOWN_LABELS

    def test_decode_record(self):
        """Parsed records decode through their label."""
        records = feed_all(SSERecordParser(), ["event: progress", 'data: {"message": "Hi"}', ""])

        assert event_codec.decode_record(records[0]) == ProgressEvent(message="Hi")
