"""Scan upload implementation."""

import asyncio
import time
from typing import Awaitable, Callable

import httpx
from pydantic import ValidationError

from ..api import error_translator
from ..api.schemas import UploadResponse
from ..domain.errors import MalformedResponseError, TransportError
from ..domain.interfaces import Logger
from ..domain.job import JobHandle
from .retry_policy import RetryPolicy

IMAGE_FIELD = "photos[]"
IMAGE_FILENAME = "spine.jpg"


class JobUploader:
    """Uploads spine images and returns the resulting job handle."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        retry_policy: RetryPolicy,
        logger: Logger,
        upload_path: str = "/v3/jobs/scans",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize uploader."""
        self.http_client = http_client
        self.retry_policy = retry_policy
        self.logger = logger
        self.upload_path = upload_path
        self._sleep = sleep

    async def submit(self, image: bytes, device_id: str) -> JobHandle:
        """Upload an image, retrying per the status-class policy.

        Callers only see the final outcome: a JobHandle or the error of the
        last try.
        """
        if not image:
            raise ValueError("image cannot be empty")
        if not device_id:
            raise ValueError("device_id is required")

        return await self.retry_policy.run(
            lambda: self._upload_once(image, device_id),
            sleep=self._sleep,
            logger=self.logger,
            device_id=device_id,
        )

    async def _upload_once(self, image: bytes, device_id: str) -> JobHandle:
        """Perform a single upload attempt."""
        start_time = time.time()
        try:
            response = await self.http_client.post(
                self.upload_path,
                data={"deviceId": device_id},
                files={IMAGE_FIELD: (IMAGE_FILENAME, image, "image/jpeg")},
                headers={"X-Device-ID": device_id},
            )
        except httpx.TransportError as e:
            self.logger.warning("Upload transport failure", device_id=device_id, error=str(e))
            raise TransportError(f"Upload failed: {e}") from e

        latency_ms = (time.time() - start_time) * 1000
        if not response.is_success:
            error = error_translator.translate(response.status_code, response.content, response.headers)
            self.logger.warning(
                "Upload rejected",
                device_id=device_id,
                status_code=response.status_code,
                error_code=error.code,
                latency_ms=latency_ms,
            )
            raise error

        handle = self._parse_handle(response, device_id)
        self.logger.info(
            "Upload accepted",
            job_id=handle.job_id,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )
        return handle

    @staticmethod
    def _parse_handle(response: httpx.Response, device_id: str) -> JobHandle:
        try:
            envelope = UploadResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise MalformedResponseError(response.status_code, f"Unparseable upload response: {e}") from e

        if not envelope.success or envelope.data is None:
            raise MalformedResponseError(response.status_code, "Upload response reported failure")
        if not envelope.data.job_id:
            raise MalformedResponseError(response.status_code, "Upload response missing jobId")
        if not envelope.data.stream_endpoint:
            raise MalformedResponseError(response.status_code, "Upload response missing streamEndpoint")

        return JobHandle(
            job_id=envelope.data.job_id,
            stream_endpoint=envelope.data.stream_endpoint,
            device_id=device_id,
            auth_token=envelope.data.auth_token,
            status_endpoint=envelope.data.status_endpoint,
        )
