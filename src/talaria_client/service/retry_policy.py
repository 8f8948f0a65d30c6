"""Status-class retry policy for request/response calls."""

from typing import Optional, Any, Awaitable, Callable, TypeVar

from ..domain.errors import ClientError, StructuredApiError, TransportError
from ..domain.interfaces import Logger

T = TypeVar("T")


class RetryPolicy:
    """Decide whether and when a failed request is retried.

    429 gets exactly one deferred retry. 5xx and transport failures get
    ``max_retries`` retries with exponential backoff. Everything else fails
    immediately, as does any ProblemDetails error the server marked
    ``retryable: false``.
    """

    def __init__(
        self,
        max_retries: int = 3,
        initial_backoff: float = 1.0,
        max_backoff: float = 30.0,
        backoff_multiplier: float = 2.0,
        rate_limit_default_delay: float = 2.0,
    ):
        """Initialize retry policy."""
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.backoff_multiplier = backoff_multiplier
        self.rate_limit_default_delay = rate_limit_default_delay

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate exponential backoff delay."""
        backoff = self.initial_backoff * (self.backoff_multiplier ** attempt)
        return min(backoff, self.max_backoff)

    @staticmethod
    def _server_delay(error: ClientError) -> Optional[float]:
        retry_after_ms = getattr(error, "retry_after_ms", None)
        if retry_after_ms is None:
            return None
        return retry_after_ms / 1000.0

    def next_delay(self, error: ClientError, server_retries: int, rate_limit_retries: int) -> Optional[float]:
        """Return the delay before the next try, or None when the error is final.

        Args:
            error: failure of the latest try
            server_retries: 5xx/transport retries already spent
            rate_limit_retries: 429 retries already spent
        """
        if isinstance(error, StructuredApiError) and not error.retryable:
            return None

        if isinstance(error, TransportError):
            if server_retries >= self.max_retries:
                return None
            return self._calculate_backoff(server_retries)

        status = error.status_code
        if status == 429:
            if rate_limit_retries >= 1:
                return None
            delay = self._server_delay(error)
            return delay if delay is not None else self.rate_limit_default_delay

        if status is not None and 500 <= status <= 599:
            if server_retries >= self.max_retries:
                return None
            delay = self._server_delay(error)
            return delay if delay is not None else self._calculate_backoff(server_retries)

        return None

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        sleep: Callable[[float], Awaitable[None]],
        logger: Logger,
        **context: Any,
    ) -> T:
        """Run ``operation`` until it succeeds or the policy gives up.

        The last error is re-raised once no retry remains.
        """
        server_retries = 0
        rate_limit_retries = 0
        while True:
            try:
                return await operation()
            except ClientError as e:
                delay = self.next_delay(e, server_retries, rate_limit_retries)
                if delay is None:
                    raise
                if e.status_code == 429:
                    rate_limit_retries += 1
                else:
                    server_retries += 1
                logger.info(
                    "Retrying request",
                    status_code=e.status_code,
                    error_code=e.code,
                    attempt=server_retries + rate_limit_retries,
                    backoff_seconds=delay,
                    **context,
                )
                await sleep(delay)
