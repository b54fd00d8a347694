"""Shared outbound HTTP client.

A single httpx.AsyncClient is shared by price providers, API discovery and
model inference to reuse connections. It is closed once at shutdown.
"""

import httpx

_shared_client: httpx.AsyncClient | None = None


def get_shared_client() -> httpx.AsyncClient:
    """Get or create the shared HTTP client.

    :returns: Shared httpx.AsyncClient instance.
    """
    global _shared_client
    if _shared_client is None or _shared_client.is_closed:
        _shared_client = httpx.AsyncClient(
            timeout=httpx.Timeout(30.0, connect=10.0),
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
            follow_redirects=True,
        )
    return _shared_client


async def close_shared_client() -> None:
    """Close the shared HTTP client."""
    global _shared_client
    if _shared_client is not None and not _shared_client.is_closed:
        await _shared_client.aclose()
    _shared_client = None
