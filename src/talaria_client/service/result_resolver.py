"""Fetch-by-reference result resolution."""

import asyncio
from typing import Awaitable, Callable, List

import httpx
from pydantic import ValidationError

from ..api import error_translator
from ..api.schemas import ResultsResponse
from ..domain.errors import MalformedResponseError, TransportError
from ..domain.interfaces import Logger
from ..domain.job import JobHandle
from ..domain.models import BookResult
from .retry_policy import RetryPolicy


class ResultResolver:
    """Fetches a job's full result list when the completion event has none inline."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        retry_policy: RetryPolicy,
        logger: Logger,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize result resolver."""
        self.http_client = http_client
        self.retry_policy = retry_policy
        self.logger = logger
        self._sleep = sleep

    async def resolve(self, job: JobHandle, results_endpoint: str) -> List[BookResult]:
        """Fetch the lite representation of the job's results.

        Pure read; repeated calls return the same data.
        """
        return await self.retry_policy.run(
            lambda: self._fetch_once(job, results_endpoint),
            sleep=self._sleep,
            logger=self.logger,
            job_id=job.job_id,
        )

    async def _fetch_once(self, job: JobHandle, results_endpoint: str) -> List[BookResult]:
        headers = {"X-Device-ID": job.device_id}
        if job.auth_token:
            headers["Authorization"] = f"Bearer {job.auth_token}"

        try:
            response = await self.http_client.get(
                results_endpoint,
                params={"format": "lite"},
                headers=headers,
            )
        except httpx.TransportError as e:
            raise TransportError(f"Results fetch failed: {e}") from e

        if not response.is_success:
            raise error_translator.translate(response.status_code, response.content, response.headers)

        try:
            envelope = ResultsResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise MalformedResponseError(response.status_code, f"Unparseable results response: {e}") from e
        if not envelope.success:
            raise MalformedResponseError(response.status_code, "Results response reported failure")

        self.logger.info(
            "Results fetched",
            job_id=job.job_id,
            status=envelope.data.status,
            count=len(envelope.data.results),
        )
        return list(envelope.data.results)
