"""Error taxonomy for the scan client."""

from typing import Optional

from .models import ProblemDetails


class ClientError(Exception):
    """Base exception for the scan client.

    Every error carries enough structure for a caller to decide between
    offering a manual retry and showing a permanent failure.
    """

    code: Optional[str] = None
    retryable: bool = False

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class TransportError(ClientError):
    """Connectivity failure or timeout; always retryable by policy."""

    code = "TRANSPORT_ERROR"
    retryable = True


class ReconnectBudgetExhaustedError(TransportError):
    """The event stream could not be re-established within the attempt budget."""

    code = "RECONNECT_EXHAUSTED"
    retryable = False

    def __init__(self, job_id: str, attempts: int):
        super().__init__(f"Stream for job {job_id} dropped {attempts} times, giving up")
        self.job_id = job_id
        self.attempts = attempts


class StreamTimeoutError(TransportError):
    """The event stream exceeded its maximum duration."""

    code = "STREAM_TIMEOUT"
    retryable = False


class StructuredApiError(ClientError):
    """Server error with a decoded ProblemDetails body."""

    def __init__(self, problem: ProblemDetails, retry_after_ms: Optional[int] = None):
        super().__init__(problem.detail, status_code=problem.status)
        self.problem = problem
        self.code = problem.code
        self.retryable = problem.retryable
        self.retry_after_ms = retry_after_ms if retry_after_ms is not None else problem.retry_after_ms

    def __str__(self) -> str:
        return f"{self.problem.status} {self.problem.code}: {self.problem.detail}"


class MalformedResponseError(ClientError):
    """Response body violated the expected schema."""

    code = "MALFORMED_RESPONSE"

    def __init__(self, status_code: int, detail: str = "Invalid server response"):
        super().__init__(detail, status_code=status_code)


class RawHttpError(ClientError):
    """Non-2xx response whose body was not a ProblemDetails document."""

    def __init__(self, status_code: int, retry_after_ms: Optional[int] = None, body: str = ""):
        super().__init__(f"Server error (HTTP {status_code})", status_code=status_code)
        self.code = f"HTTP_{status_code}"
        self.retryable = status_code == 429 or status_code >= 500
        self.retry_after_ms = retry_after_ms
        self.body = body


class StreamTerminalError(ClientError):
    """Job failure reported through an ``error`` event on the stream."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        retryable: Optional[bool] = None,
        job_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.code = code
        self.retryable = bool(retryable)
        self.job_id = job_id


class ProblemDetailsDecodeError(ValueError):
    """Body is not a valid ProblemDetails document."""


class EventDecodeError(ValueError):
    """A known event label carried a missing or malformed payload."""

    def __init__(self, label: str, reason: str):
        super().__init__(f"Invalid '{label}' event: {reason}")
        self.label = label
        self.reason = reason
