"""Event stream client with Last-Event-ID reconnection."""

import asyncio
import random
import time
from contextlib import aclosing
from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx

from ..api import error_translator, event_codec
from ..api.event_codec import SSERecordParser
from ..domain.errors import (
    ClientError,
    EventDecodeError,
    ReconnectBudgetExhaustedError,
    StreamTimeoutError,
    TransportError,
)
from ..domain.events import ErrorEvent, IgnoredUnknownEvent, PingEvent, StreamEvent
from ..domain.interfaces import Logger
from ..domain.job import JobHandle, RetryState

MALFORMED_ERROR_EVENT_CODE = "MALFORMED_ERROR_EVENT"


class _IdleTimeout(Exception):
    """No bytes arrived within the idle window."""


class EventStreamClient:
    """Streams one job's events, reconnecting transparently.

    Each instance serves a single job at a time; its RetryState is private.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        logger: Logger,
        idle_timeout: float = 90.0,
        max_reconnect_attempts: int = 3,
        initial_backoff: float = 1.0,
        max_backoff: float = 30.0,
        backoff_multiplier: float = 2.0,
        jitter: float = 0.2,
        max_stream_duration: Optional[float] = 300.0,
        yield_pings: bool = False,
        request_timeout: Optional[httpx.Timeout] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize event stream client."""
        self.http_client = http_client
        self.logger = logger
        self.idle_timeout = idle_timeout
        self.max_reconnect_attempts = max_reconnect_attempts
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.backoff_multiplier = backoff_multiplier
        self.jitter = jitter
        self.max_stream_duration = max_stream_duration
        self.yield_pings = yield_pings
        self.request_timeout = request_timeout or httpx.Timeout(30.0, read=None)
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._clock = clock
        self.retry_state: Optional[RetryState] = None
        self.connections = 0

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate jittered exponential backoff delay."""
        backoff = min(self.initial_backoff * (self.backoff_multiplier ** attempt), self.max_backoff)
        if self.jitter:
            backoff *= self._rng.uniform(1 - self.jitter, 1 + self.jitter)
        return backoff

    async def open(self, handle: JobHandle) -> AsyncIterator[StreamEvent]:
        """Yield the job's events until a terminal event arrives.

        Raises:
            ReconnectBudgetExhaustedError: too many consecutive failed connections
            StreamTimeoutError: the overall stream deadline passed
            ClientError: the server refused the stream with a non-retryable status
        """
        state = RetryState(self.initial_backoff)
        self.retry_state = state
        deadline = None
        if self.max_stream_duration is not None:
            deadline = self._clock() + self.max_stream_duration

        while True:
            server_delay: Optional[float] = None
            try:
                async with aclosing(self._read_once(handle, state, deadline)) as events:
                    async for event in events:
                        yield event
                        if event.is_terminal:
                            return
                reason = "disconnected"
            except _IdleTimeout:
                reason = "idle_timeout"
            except StreamTimeoutError:
                raise
            except TransportError as e:
                reason = "transport_error"
                self.logger.warning("Stream transport failure", job_id=handle.job_id, error=str(e))
            except ClientError as e:
                status_retryable = e.status_code == 429 or (e.status_code or 0) >= 500
                if not (status_retryable and e.retryable):
                    self.logger.error(
                        "Stream refused",
                        job_id=handle.job_id,
                        status_code=e.status_code,
                        error_code=e.code,
                    )
                    raise
                reason = f"http_{e.status_code}"
                retry_after_ms = getattr(e, "retry_after_ms", None)
                if retry_after_ms is not None:
                    server_delay = retry_after_ms / 1000.0

            if state.attempt_count >= self.max_reconnect_attempts:
                self.logger.error(
                    "Max reconnect attempts exceeded",
                    job_id=handle.job_id,
                    attempts=state.attempt_count,
                    reason=reason,
                )
                raise ReconnectBudgetExhaustedError(handle.job_id, state.attempt_count)

            delay = server_delay if server_delay is not None else self._calculate_backoff(state.attempt_count)
            state.record_failure(delay)
            if deadline is not None and self._clock() + delay >= deadline:
                raise StreamTimeoutError(f"Stream for job {handle.job_id} exceeded {self.max_stream_duration}s")

            # Events older than the server's replay window are lost; resume silently.
            self.logger.info(
                "Reconnecting event stream",
                job_id=handle.job_id,
                reason=reason,
                attempt=state.attempt_count,
                backoff_seconds=delay,
                last_event_id=state.last_event_id,
            )
            await self._sleep(delay)

    def _build_headers(self, handle: JobHandle, state: RetryState) -> dict:
        headers = {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
            "X-Device-ID": handle.device_id,
        }
        if handle.auth_token:
            headers["Authorization"] = f"Bearer {handle.auth_token}"
        if state.last_event_id is not None:
            headers["Last-Event-ID"] = state.last_event_id
        return headers

    def _idle_window(self, deadline: Optional[float]) -> float:
        if deadline is None:
            return self.idle_timeout
        remaining = deadline - self._clock()
        if remaining <= 0:
            raise StreamTimeoutError(f"Stream exceeded {self.max_stream_duration}s")
        return min(self.idle_timeout, remaining)

    async def _read_once(
        self,
        handle: JobHandle,
        state: RetryState,
        deadline: Optional[float],
    ) -> AsyncIterator[StreamEvent]:
        """Run one connection until it ends, yielding decoded events."""
        headers = self._build_headers(handle, state)
        self.connections += 1
        self.logger.debug(
            "Opening event stream",
            job_id=handle.job_id,
            connection=self.connections,
            last_event_id=state.last_event_id,
        )
        try:
            async with self.http_client.stream(
                "GET", handle.stream_endpoint, headers=headers, timeout=self.request_timeout
            ) as response:
                if not response.is_success:
                    body = await response.aread()
                    raise error_translator.translate(response.status_code, body, response.headers)

                parser = SSERecordParser()
                lines = response.aiter_lines()
                while True:
                    window = self._idle_window(deadline)
                    try:
                        line = await asyncio.wait_for(_next_line(lines), timeout=window)
                    except asyncio.TimeoutError:
                        if deadline is not None and self._clock() >= deadline:
                            raise StreamTimeoutError(f"Stream exceeded {self.max_stream_duration}s")
                        raise _IdleTimeout()
                    if line is None:
                        return

                    record = parser.feed(line)
                    if record is None:
                        continue

                    # Record the id before decoding so a bad payload keeps the replay position.
                    if record.event_id is not None:
                        state.record_event_id(record.event_id)

                    try:
                        event = event_codec.decode_record(record)
                    except EventDecodeError as e:
                        self.logger.warning(
                            "Skipping undecodable event",
                            job_id=handle.job_id,
                            label=e.label,
                            event_id=record.event_id,
                            error=e.reason,
                        )
                        if e.label != "error":
                            continue
                        # The job still failed; keep the terminal signal.
                        event = ErrorEvent(message="Job failed", code=MALFORMED_ERROR_EVENT_CODE, job_id=handle.job_id)

                    if isinstance(event, IgnoredUnknownEvent):
                        self.logger.debug("Ignoring unknown event type", job_id=handle.job_id, label=event.label)
                        continue
                    if isinstance(event, PingEvent):
                        if not self.yield_pings:
                            continue
                    else:
                        # Only events the consumer sees restore the reconnect budget.
                        state.reset_attempts()

                    yield event
                    if event.is_terminal:
                        return
        except httpx.TransportError as e:
            raise TransportError(f"Stream connection failed: {e}") from e


async def _next_line(lines: AsyncIterator[str]) -> Optional[str]:
    try:
        return await lines.__anext__()
    except StopAsyncIteration:
        return None
