"""Scan client facade."""

import asyncio
from typing import AsyncIterator, Awaitable, Callable, Optional, Tuple

import httpx

from ..domain.events import StreamEvent
from ..domain.interfaces import Logger, MetricsClient
from ..infra.config import ClientConfig
from ..infra.http import build_http_client, stream_timeout
from ..infra.logger import StructLogger
from ..infra.metrics import build_metrics_client
from .cleanup import JobCleanupClient
from .coordinator import JobLifecycleCoordinator
from .event_stream import EventStreamClient
from .result_resolver import ResultResolver
from .retry_policy import RetryPolicy
from .stream_slots import StreamSlotManager
from .uploader import JobUploader


class ScanClient:
    """Entry point for scanning shelves.

    Owns the HTTP client and the stateless collaborators shared by every job.
    Each job gets its own coordinator and stream client.

    Example::

        async with ScanClient(ClientConfig.from_env()) as client:
            coordinator, events = await client.scan(image)
            async for event in events:
                ...
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        logger: Optional[Logger] = None,
        metrics_client: Optional[MetricsClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize scan client."""
        self.config = config or ClientConfig()
        self.logger = logger or StructLogger()
        self.metrics_client = metrics_client or build_metrics_client(self.logger, self.config.metrics_enabled)
        self._sleep = sleep

        self.http_client = build_http_client(self.config, transport=transport)
        self.retry_policy = RetryPolicy(
            max_retries=self.config.max_retries,
            initial_backoff=self.config.initial_backoff,
            max_backoff=self.config.max_backoff,
            backoff_multiplier=self.config.backoff_multiplier,
            rate_limit_default_delay=self.config.rate_limit_default_delay,
        )
        self.uploader = JobUploader(
            self.http_client,
            self.retry_policy,
            self.logger,
            upload_path=self.config.upload_path,
            sleep=sleep,
        )
        self.resolver = ResultResolver(self.http_client, self.retry_policy, self.logger, sleep=sleep)
        self.cleanup_client = JobCleanupClient(self.http_client, self.logger, cleanup_path=self.config.cleanup_path)
        self.slots = StreamSlotManager(self.config.max_concurrent_streams, logger=self.logger)

    async def __aenter__(self) -> "ScanClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.http_client.aclose()

    def _new_stream_client(self) -> EventStreamClient:
        return EventStreamClient(
            self.http_client,
            self.logger,
            idle_timeout=self.config.idle_timeout,
            max_reconnect_attempts=self.config.max_reconnect_attempts,
            initial_backoff=self.config.reconnect_initial_backoff,
            max_backoff=self.config.reconnect_max_backoff,
            jitter=self.config.reconnect_jitter,
            max_stream_duration=self.config.max_stream_duration,
            yield_pings=self.config.yield_pings,
            request_timeout=stream_timeout(self.config),
            sleep=self._sleep,
        )

    def new_job(self) -> JobLifecycleCoordinator:
        """Create a coordinator for one scan job."""
        return JobLifecycleCoordinator(
            uploader=self.uploader,
            stream_client=self._new_stream_client(),
            resolver=self.resolver,
            cleanup_client=self.cleanup_client,
            metrics_client=self.metrics_client,
            logger=self.logger,
            slots=self.slots,
            token_ttl=self.config.token_ttl,
        )

    async def scan(
        self,
        image: bytes,
        device_id: Optional[str] = None,
    ) -> Tuple[JobLifecycleCoordinator, AsyncIterator[StreamEvent]]:
        """Upload ``image`` and return the job with its event iterator."""
        coordinator = self.new_job()
        await coordinator.submit(image, device_id or self.config.device_id)
        return coordinator, coordinator.events()
