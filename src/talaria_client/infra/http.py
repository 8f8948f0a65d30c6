"""HTTP client factory."""

from typing import Optional

import httpx

from .config import ClientConfig


def build_http_client(
    config: ClientConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Build the httpx client shared by every job of a scan client.

    ``transport`` lets tests route requests to a MockTransport or an
    in-process ASGI app instead of the network.
    """
    # Never trust environment proxy variables when a transport is injected.
    return httpx.AsyncClient(
        base_url=config.base_url,
        transport=transport,
        timeout=httpx.Timeout(config.request_timeout, connect=config.connect_timeout),
        headers={"User-Agent": config.user_agent},
        trust_env=transport is None,
    )


def stream_timeout(config: ClientConfig) -> httpx.Timeout:
    """Timeout for the event stream; idleness is policed by the stream client."""
    return httpx.Timeout(config.request_timeout, connect=config.connect_timeout, read=None)
