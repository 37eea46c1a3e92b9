# batchsync/shared/_httpx_utils.py
"""Utilities for creating standardized httpx AsyncClient instances."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import httpx

__all__ = ["create_batchsync_http_client", "DEFAULT_TIMEOUT_SECONDS"]

DEFAULT_TIMEOUT_SECONDS = 30.0


@asynccontextmanager
async def create_batchsync_http_client(
    headers: dict[str, str] | None = None,
    timeout: httpx.Timeout | None = None,
    auth: httpx.Auth | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Provide a standardized httpx AsyncClient as an async context manager.

    Defaults used for every upload client:
    - follow_redirects=True (always enabled)
    - Default timeout of 30 seconds if not specified

    Args:
        headers: Optional headers to include with all requests.
        timeout: Request timeout as an httpx.Timeout object.
            Defaults to 30 seconds if not specified.
        auth: Optional authentication handler. It is the only place credentials
            enter the upload path.
        transport: Optional lower-level transport, e.g. ``httpx.MockTransport`` in tests.

    Yields:
        A configured httpx.AsyncClient instance.

    Examples:
        async with create_batchsync_http_client(auth=httpx.BasicAuth("user", "pass")) as client:
            transport = HttpxTransport(client, "https://storage.example.com/1.5/42/storage/bookmarks")
    """
    kwargs: dict[str, Any] = {
        "follow_redirects": True,
        "timeout": timeout if timeout is not None else httpx.Timeout(DEFAULT_TIMEOUT_SECONDS),
    }
    if headers is not None:
        kwargs["headers"] = headers
    if auth is not None:
        kwargs["auth"] = auth
    if transport is not None:
        kwargs["transport"] = transport

    client = httpx.AsyncClient(**kwargs)
    try:
        yield client
    finally:
        await client.aclose()
