"""Per-job lifecycle orchestration."""

import time
from datetime import timedelta
from contextlib import AsyncExitStack, aclosing
from typing import AsyncIterator, List, Optional

from ..domain.errors import ClientError, StreamTerminalError
from ..domain.events import CanceledEvent, CompletedEvent, ErrorEvent, ResultItemEvent, StreamEvent
from ..domain.interfaces import Logger, MetricsClient
from ..domain.job import JobHandle, JobState
from ..domain.models import BookResult
from .cleanup import JobCleanupClient
from .event_stream import EventStreamClient
from .result_resolver import ResultResolver
from .stream_slots import StreamSlotManager
from .uploader import JobUploader


class InvalidTransitionError(RuntimeError):
    """Operation not allowed in the job's current state."""


class JobLifecycleCoordinator:
    """Drives one scan job from upload to cleanup.

    State machine::

        CREATED -> UPLOADING -> STREAMING -> [RESOLVING] -> COMPLETED
                                          \\-> FAILED | CANCELED

    Every terminal state reached with a job on the server triggers exactly one
    best-effort cleanup. The coordinator owns its stream client and retry
    state; nothing mutable is shared with other jobs.
    """

    def __init__(
        self,
        uploader: JobUploader,
        stream_client: EventStreamClient,
        resolver: ResultResolver,
        cleanup_client: JobCleanupClient,
        metrics_client: MetricsClient,
        logger: Logger,
        slots: Optional[StreamSlotManager] = None,
        token_ttl: Optional[timedelta] = None,
    ):
        """Initialize coordinator."""
        self.uploader = uploader
        self.stream_client = stream_client
        self.resolver = resolver
        self.cleanup_client = cleanup_client
        self.metrics_client = metrics_client
        self.logger = logger
        self.slots = slots
        self.token_ttl = token_ttl

        self.state = JobState.CREATED
        self.handle: Optional[JobHandle] = None
        self.results: List[BookResult] = []
        self.error: Optional[BaseException] = None
        self.cleanup_error: Optional[BaseException] = None
        self.cleanup_calls = 0
        self._cleaned_up = False

    @property
    def job_id(self) -> Optional[str]:
        """Server job id once uploaded."""
        return self.handle.job_id if self.handle else None

    def _transition(self, new_state: JobState) -> None:
        self.logger.info(
            "Job state changed",
            job_id=self.job_id,
            from_state=self.state.value,
            to_state=new_state.value,
        )
        self.state = new_state

    async def submit(self, image: bytes, device_id: str) -> JobHandle:
        """Upload the image and move to STREAMING.

        Upload errors move the job to FAILED and are re-raised. No cleanup is
        issued because no server job exists.
        """
        if self.state != JobState.CREATED:
            raise InvalidTransitionError(f"submit() not allowed in state {self.state.value}")

        self._transition(JobState.UPLOADING)
        start_time = time.time()
        try:
            handle = await self.uploader.submit(image, device_id)
        except Exception as e:
            self.error = e
            self._transition(JobState.FAILED)
            self.metrics_client.put_metric("JobsFailed", 1.0)
            self.logger.error("Upload failed", device_id=device_id, error=str(e))
            raise

        self.handle = handle
        self.metrics_client.put_metric("JobsSubmitted", 1.0)
        self.metrics_client.put_metric("UploadLatency", (time.time() - start_time) * 1000, "Milliseconds")
        self._transition(JobState.STREAMING)
        return handle

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Stream the job's events, resolving results by reference when needed.

        Consumer-side cancellation closes the stream without cleanup; call
        :meth:`cleanup` explicitly to discard the server job.
        """
        if self.state != JobState.STREAMING or self.handle is None:
            raise InvalidTransitionError(f"events() not allowed in state {self.state.value}")
        handle = self.handle
        terminal: Optional[StreamEvent] = None
        if self.token_ttl is not None and handle.is_expired(self.token_ttl):
            # The server answers 401 in that case; the stream client surfaces it.
            self.logger.warning("Stream token likely expired", job_id=handle.job_id)

        try:
            async with AsyncExitStack() as stack:
                if self.slots is not None:
                    await stack.enter_async_context(self.slots.slot(handle.job_id))
                stream = await stack.enter_async_context(aclosing(self.stream_client.open(handle)))
                async for event in stream:
                    if isinstance(event, CompletedEvent):
                        terminal = await self._complete(handle, event)
                        break
                    if isinstance(event, ErrorEvent):
                        self.error = StreamTerminalError(event.message, event.code, event.retryable, event.job_id)
                        self._transition(JobState.FAILED)
                        self.metrics_client.put_metric("JobsFailed", 1.0)
                        terminal = event
                        break
                    if isinstance(event, CanceledEvent):
                        self._transition(JobState.CANCELED)
                        self.metrics_client.put_metric("JobsCanceled", 1.0)
                        terminal = event
                        break
                    if isinstance(event, ResultItemEvent):
                        self.results.append(event.book)
                    yield event
        except ClientError as e:
            self.error = e
            self._transition(JobState.FAILED)
            self.metrics_client.put_metric("JobsFailed", 1.0)
            self.logger.error("Job failed", job_id=handle.job_id, error=str(e), error_code=e.code)
            await self._cleanup_once()
            raise

        # Cleanup precedes the terminal event so a consumer that stops there still releases the job.
        await self._cleanup_once()
        if terminal is not None:
            yield terminal

    async def _complete(self, handle: JobHandle, event: CompletedEvent) -> CompletedEvent:
        """Settle a completion, fetching results when none came inline."""
        if event.has_inline_items:
            self.results = list(event.inline_items)
        elif event.results_endpoint:
            self._transition(JobState.RESOLVING)
            self.results = await self.resolver.resolve(handle, event.results_endpoint)
            self.metrics_client.put_metric("ResultsFetched", 1.0)
            event = CompletedEvent(results_endpoint=event.results_endpoint, inline_items=self.results)
        elif self.results:
            # Items already arrived one by one as result events.
            event = CompletedEvent(inline_items=list(self.results))
        else:
            self.logger.warning("Completed without results", job_id=handle.job_id)

        self._transition(JobState.COMPLETED)
        self.metrics_client.put_metric("JobsCompleted", 1.0)
        return event

    async def run(self, image: bytes, device_id: str) -> AsyncIterator[StreamEvent]:
        """Upload then stream; equivalent to :meth:`submit` followed by :meth:`events`."""
        await self.submit(image, device_id)
        async with aclosing(self.events()) as stream:
            async for event in stream:
                yield event

    async def cleanup(self) -> bool:
        """Release the server job now.

        Safe to call in any state after upload, including before any stream
        consumption. Returns True when the server confirmed the cleanup.
        """
        if self.handle is None:
            raise InvalidTransitionError("cleanup() requires an uploaded job")
        return await self._cleanup_once()

    async def _cleanup_once(self) -> bool:
        if self._cleaned_up:
            return self.cleanup_error is None
        self._cleaned_up = True
        self.cleanup_calls += 1
        try:
            await self.cleanup_client.cleanup(self.handle)
            return True
        except Exception as e:
            # Cleanup never changes the job's outcome.
            self.cleanup_error = e
            self.metrics_client.put_metric("CleanupFailed", 1.0)
            self.logger.warning("Cleanup failed", job_id=self.job_id, error=str(e))
            return False
