"""Metrics client implementation."""

from typing import Optional

from ..domain.interfaces import Logger, MetricsClient


class LogMetricsClient(MetricsClient):
    """Emits metrics as structured log events."""

    def __init__(self, logger: Logger, namespace: str = "TalariaClient"):
        """Initialize metrics client."""
        self.logger = logger
        self.namespace = namespace

    def put_metric(self, metric_name: str, value: float, unit: str = "Count") -> None:
        """Put a custom metric."""
        self.logger.info(
            "metric",
            namespace=self.namespace,
            metric_name=metric_name,
            value=value,
            unit=unit,
        )


class NullMetricsClient(MetricsClient):
    """Discards metrics."""

    def put_metric(self, metric_name: str, value: float, unit: str = "Count") -> None:
        """Put a custom metric."""
        return None


def build_metrics_client(logger: Optional[Logger], enabled: bool = True) -> MetricsClient:
    """Pick the metrics sink for the given settings."""
    if enabled and logger is not None:
        return LogMetricsClient(logger)
    return NullMetricsClient()
