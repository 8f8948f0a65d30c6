"""Pytest configuration and fixtures."""

import json
from typing import List, Optional
from unittest.mock import Mock

import pytest

from talaria_client.infra.config import ClientConfig

BASE_URL = "https://api.talaria.test"


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def mock_logger():
    """Mock logger."""
    logger = Mock()
    logger.debug.return_value = None
    logger.info.return_value = None
    logger.error.return_value = None
    logger.warning.return_value = None
    return logger


@pytest.fixture
def mock_metrics_client():
    """Mock Metrics client."""
    client = Mock()
    client.put_metric.return_value = None
    return client


@pytest.fixture
def sleep_recorder():
    """Injectable sleep that records requested delays."""
    return SleepRecorder()


@pytest.fixture
def config():
    """Deterministic client configuration."""
    return ClientConfig(
        base_url=BASE_URL,
        device_id="device-1",
        reconnect_jitter=0.0,
        max_stream_duration=None,
    )


@pytest.fixture
def problem():
    """Build a ProblemDetails JSON body."""

    def _problem(status: int, code: str, retryable: bool = False, retry_after_ms: Optional[int] = None) -> bytes:
        body = {
            "success": False,
            "type": f"https://api.oooefam.net/problems/{code.lower()}",
            "title": code.replace("_", " ").title(),
            "status": status,
            "detail": f"{code} happened",
            "code": code,
            "retryable": retryable,
        }
        if retry_after_ms is not None:
            body["retryAfterMs"] = retry_after_ms
        return json.dumps(body).encode()

    return _problem


@pytest.fixture
def sse():
    """Format SSE records into a response body."""

    def _sse(*records) -> bytes:
        chunks = []
        for record in records:
            label, data = record[0], record[1]
            event_id = record[2] if len(record) > 2 else None
            lines = []
            if event_id is not None:
                lines.append(f"id: {event_id}")
            lines.append(f"event: {label}")
            payload = data if isinstance(data, str) else json.dumps(data)
            for line in payload.split("\n"):
                lines.append(f"data: {line}")
            chunks.append("\n".join(lines) + "\n\n")
        return "".join(chunks).encode()

    return _sse
