"""Unit tests for the command line entry point."""

import json

import pytest

from talaria_client.domain.events import ProgressEvent, SegmentedEvent
from talaria_client.main import _event_line, parse_args, run


def test_parse_args(tmp_path):
    """Images and overrides are parsed."""
    args = parse_args([str(tmp_path / "a.jpg"), "--base-url", "http://localhost:8787", "--pings"])

    assert args.images == [tmp_path / "a.jpg"]
    assert args.base_url == "http://localhost:8787"
    assert args.pings is True


def test_event_line_is_json(tmp_path):
    """Events print as one JSON object per line, without raw image bytes."""
    image = tmp_path / "shelf.jpg"

    progress = json.loads(_event_line(image, "J1", ProgressEvent(message="Looking...")))
    segmented = json.loads(_event_line(image, "J1", SegmentedEvent(image=b"\xff\xd8", total_books=3)))

    assert progress == {"image": str(image), "job_id": "J1", "kind": "progress", "message": "Looking..."}
    assert segmented["total_books"] == 3
    assert segmented["image"] == str(image)


@pytest.mark.asyncio
async def test_missing_images_exit_with_usage_error(tmp_path):
    """Nothing is uploaded when an input file is missing."""
    assert await run(parse_args([str(tmp_path / "missing.jpg")])) == 2
