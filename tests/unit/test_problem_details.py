"""Unit tests for the ProblemDetails codec."""

import json

import pytest

from talaria_client.api import problem_details
from talaria_client.domain.errors import ProblemDetailsDecodeError

MINIMAL = {
    "success": False,
    "type": "https://api.oooefam.net/problems/not-found",
    "title": "Not Found",
    "status": 404,
    "detail": "Job abc does not exist",
    "code": "NOT_FOUND",
    "retryable": False,
}


def test_decode_minimal_problem():
    """Only the seven required fields are needed."""
    problem = problem_details.decode(json.dumps(MINIMAL).encode())

    assert problem.status == 404
    assert problem.code == "NOT_FOUND"
    assert problem.retryable is False
    assert problem.retry_after_ms is None
    assert problem.instance is None
    assert problem.metadata is None


def test_decode_optional_fields():
    """Optional fields are read from their wire names."""
    body = dict(
        MINIMAL,
        status=429,
        code="RATE_LIMITED",
        retryable=True,
        retryAfterMs=2000,
        instance="/v3/jobs/scans",
        metadata={"limit": "10"},
    )

    problem = problem_details.decode(json.dumps(body).encode())

    assert problem.retry_after_ms == 2000
    assert problem.instance == "/v3/jobs/scans"
    assert problem.metadata == {"limit": "10"}


@pytest.mark.parametrize("missing", ["success", "type", "title", "status", "detail", "code", "retryable"])
def test_decode_missing_required_field_fails(missing):
    """Every required field is enforced."""
    body = {key: value for key, value in MINIMAL.items() if key != missing}

    with pytest.raises(ProblemDetailsDecodeError):
        problem_details.decode(json.dumps(body).encode())


@pytest.mark.parametrize("body", [b"", b"<html>Bad Gateway</html>", b"[1, 2]"])
def test_decode_non_problem_body_fails(body):
    """Empty, non-JSON and non-object bodies are rejected."""
    with pytest.raises(ProblemDetailsDecodeError):
        problem_details.decode(body)


def test_encode_omits_absent_optional_fields():
    """Absent optional fields are not written as nulls."""
    problem = problem_details.decode(json.dumps(MINIMAL).encode())

    encoded = json.loads(problem_details.encode(problem))

    assert encoded == MINIMAL


def test_encode_uses_wire_names():
    """retry_after_ms is written back as retryAfterMs."""
    problem = problem_details.decode(json.dumps(dict(MINIMAL, retryAfterMs=1500)).encode())

    encoded = json.loads(problem_details.encode(problem))

    assert encoded["retryAfterMs"] == 1500
    assert "retry_after_ms" not in encoded
