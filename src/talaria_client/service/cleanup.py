"""Server-side job cleanup."""

import httpx

from ..api import error_translator
from ..domain.errors import TransportError
from ..domain.interfaces import Logger
from ..domain.job import JobHandle


class JobCleanupClient:
    """Releases server resources held for a job. Idempotent."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        logger: Logger,
        cleanup_path: str = "/v3/jobs/scans/{job_id}/cleanup",
    ):
        """Initialize cleanup client."""
        self.http_client = http_client
        self.logger = logger
        self.cleanup_path = cleanup_path

    async def cleanup(self, job: JobHandle) -> None:
        """Delete the job on the server.

        404 counts as success: the job is already gone.
        """
        headers = {"X-Device-ID": job.device_id}
        if job.auth_token:
            headers["Authorization"] = f"Bearer {job.auth_token}"

        try:
            response = await self.http_client.delete(
                self.cleanup_path.format(job_id=job.job_id),
                headers=headers,
            )
        except httpx.TransportError as e:
            raise TransportError(f"Cleanup failed: {e}") from e

        if response.status_code in (200, 202, 204, 404):
            self.logger.info("Job cleaned up", job_id=job.job_id, status_code=response.status_code)
            return

        raise error_translator.translate(response.status_code, response.content, response.headers)
