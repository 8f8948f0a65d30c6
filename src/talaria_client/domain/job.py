"""Job domain model."""

from enum import Enum
from datetime import datetime, timedelta, UTC
from typing import Optional


class JobState(str, Enum):
    """Job lifecycle state enumeration."""

    CREATED = "CREATED"
    UPLOADING = "UPLOADING"
    STREAMING = "STREAMING"
    RESOLVING = "RESOLVING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions can happen."""
        return self in (JobState.COMPLETED, JobState.FAILED, JobState.CANCELED)


class JobHandle:
    """Server-side scan job, as returned by a successful upload."""

    def __init__(
        self,
        job_id: str,
        stream_endpoint: str,
        device_id: str,
        auth_token: Optional[str] = None,
        status_endpoint: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ):
        self.job_id = job_id
        self.stream_endpoint = stream_endpoint
        self.device_id = device_id
        self.auth_token = auth_token
        self.status_endpoint = status_endpoint
        self.created_at = created_at or datetime.now(UTC)

    def is_expired(self, ttl: timedelta, now: Optional[datetime] = None) -> bool:
        """Check whether the auth token validity window has elapsed."""
        now = now or datetime.now(UTC)
        return now - self.created_at >= ttl

    def __repr__(self) -> str:
        return f"JobHandle(job_id={self.job_id!r}, stream_endpoint={self.stream_endpoint!r})"


class RetryState:
    """Reconnect bookkeeping for one stream session.

    A new instance is created per JobHandle and is never shared between jobs.
    """

    def __init__(self, initial_backoff: float = 1.0):
        self.attempt_count = 0
        self.last_event_id: Optional[str] = None
        self.next_backoff = initial_backoff
        self._initial_backoff = initial_backoff

    def record_event_id(self, event_id: str) -> None:
        """Record an event id observed on the wire.

        Ids only move forward: when both ids are integers a smaller incoming
        id is ignored, otherwise the most recently received id wins.
        """
        if not event_id:
            return
        if self.last_event_id is not None:
            try:
                if int(event_id) < int(self.last_event_id):
                    return
            except ValueError:
                pass
        self.last_event_id = event_id

    def record_failure(self, next_backoff: float) -> None:
        """Count one failed connection and remember the delay before the next."""
        self.attempt_count += 1
        self.next_backoff = next_backoff

    def reset_attempts(self) -> None:
        """Forget failed attempts after a connection made progress."""
        self.attempt_count = 0
        self.next_backoff = self._initial_backoff
