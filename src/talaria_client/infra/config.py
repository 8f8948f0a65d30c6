"""Client configuration."""

import os
from datetime import timedelta
from typing import Optional
from uuid import uuid4
from pydantic import BaseModel, Field, field_validator

VERSION = "0.1.0"


class ClientConfig(BaseModel):
    """Scan client settings.

    Read-only once built; shared by every job of a client.
    """

    base_url: str = Field(default="https://api.oooefam.net", description="Talaria API base URL")
    device_id: str = Field(default_factory=lambda: str(uuid4()), description="Device identity sent with requests")
    user_agent: str = Field(default=f"talaria-client/{VERSION}", description="User-Agent header")

    # HTTP
    request_timeout: float = Field(default=30.0, description="Per-request timeout in seconds")
    connect_timeout: float = Field(default=10.0, description="Connect timeout in seconds")

    # Upload / results retry
    max_retries: int = Field(default=3, ge=0, description="Retries for 5xx and transport failures")
    initial_backoff: float = Field(default=1.0, ge=0, description="First 5xx backoff in seconds")
    max_backoff: float = Field(default=30.0, ge=0, description="Backoff ceiling in seconds")
    backoff_multiplier: float = Field(default=2.0, ge=1, description="Backoff growth factor")
    rate_limit_default_delay: float = Field(default=2.0, ge=0, description="429 delay when the server gives none")

    # Event stream
    idle_timeout: float = Field(default=90.0, gt=0, description="Reconnect after this many idle seconds")
    max_reconnect_attempts: int = Field(default=3, ge=0, description="Consecutive reconnects before giving up")
    reconnect_initial_backoff: float = Field(default=1.0, ge=0, description="First reconnect delay in seconds")
    reconnect_max_backoff: float = Field(default=30.0, ge=0, description="Reconnect delay ceiling in seconds")
    reconnect_jitter: float = Field(default=0.2, ge=0, le=1, description="Relative jitter applied to reconnect delays")
    max_stream_duration: Optional[float] = Field(default=300.0, description="Overall stream deadline; None disables")
    yield_pings: bool = Field(default=False, description="Deliver keepalive pings to the consumer")

    # Jobs
    max_concurrent_streams: int = Field(default=5, ge=1, description="Streams open at the same time")
    token_ttl_seconds: float = Field(default=7200.0, description="Server-side stream token lifetime")

    # Endpoints
    upload_path: str = Field(default="/v3/jobs/scans", description="Upload endpoint")
    cleanup_path: str = Field(default="/v3/jobs/scans/{job_id}/cleanup", description="Cleanup endpoint template")

    metrics_enabled: bool = Field(default=True, description="Emit metrics as log events")

    class Config:
        """Pydantic config."""

        frozen = True

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate base URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return v.rstrip("/")

    @property
    def token_ttl(self) -> timedelta:
        """Token lifetime as a timedelta."""
        return timedelta(seconds=self.token_ttl_seconds)

    @classmethod
    def from_env(cls, **overrides) -> "ClientConfig":
        """Build configuration from ``TALARIA_*`` environment variables."""
        values = {}
        env_map = {
            "base_url": "TALARIA_BASE_URL",
            "device_id": "TALARIA_DEVICE_ID",
            "request_timeout": "TALARIA_REQUEST_TIMEOUT",
            "max_retries": "TALARIA_MAX_RETRIES",
            "idle_timeout": "TALARIA_IDLE_TIMEOUT",
            "max_reconnect_attempts": "TALARIA_MAX_RECONNECT_ATTEMPTS",
            "max_stream_duration": "TALARIA_MAX_STREAM_DURATION",
            "max_concurrent_streams": "TALARIA_MAX_CONCURRENT_STREAMS",
            "yield_pings": "TALARIA_YIELD_PINGS",
        }
        for field_name, env_name in env_map.items():
            value = os.getenv(env_name)
            if value is not None and value != "":
                values[field_name] = value
        # "none" switches the overall stream deadline off
        if str(values.get("max_stream_duration", "")).lower() == "none":
            values["max_stream_duration"] = None
        values.update(overrides)
        return cls(**values)
