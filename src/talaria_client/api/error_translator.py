"""Translation of HTTP error responses into typed client errors."""

from typing import Optional, Mapping

from ..domain.errors import (
    ClientError,
    ProblemDetailsDecodeError,
    StructuredApiError,
    MalformedResponseError,
    RawHttpError,
)
from . import problem_details


def parse_retry_after(headers: Optional[Mapping[str, str]]) -> Optional[int]:
    """Read a ``Retry-After`` header given in seconds, as milliseconds."""
    if not headers:
        return None
    value = headers.get("Retry-After") or headers.get("retry-after")
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        # HTTP-date form is not used by the scan API.
        return None
    if seconds < 0:
        return None
    return int(seconds * 1000)


def translate(
    status_code: int,
    body: bytes,
    headers: Optional[Mapping[str, str]] = None,
) -> ClientError:
    """Map an HTTP status and body to a typed error.

    A ``retryAfterMs`` in the body always wins over the ``Retry-After`` header.
    """
    header_delay_ms = parse_retry_after(headers)
    try:
        problem = problem_details.decode(body)
    except ProblemDetailsDecodeError:
        if 200 <= status_code < 300:
            return MalformedResponseError(status_code)
        text = body.decode("utf-8", errors="replace") if body else ""
        return RawHttpError(status_code, retry_after_ms=header_delay_ms, body=text[:512])

    retry_after_ms = problem.retry_after_ms if problem.retry_after_ms is not None else header_delay_ms
    return StructuredApiError(problem, retry_after_ms=retry_after_ms)
