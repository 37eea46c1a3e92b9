# batchsync/client/transport.py
from __future__ import annotations

from typing import Protocol

import httpx
from mcp.server.fastmcp.utilities.logging import get_logger

from batchsync.shared.exceptions import TransportError
from batchsync.types import PayloadRequest, UploadResponse

logger = get_logger(__name__)


class Transport(Protocol):
    async def send(self, request: PayloadRequest) -> UploadResponse:
        """Put one payload on the wire.

        Any HTTP status is returned as a response; only failures to obtain a
        response raise ``TransportError``. Other exceptions are treated by the
        session as transport failures of the payload being sent.
        """
        ...


class HttpxTransport:
    """POSTs payloads to a storage collection with an ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient, collection_url: str) -> None:
        self._client = client
        self._collection_url = collection_url

    async def send(self, request: PayloadRequest) -> UploadResponse:
        headers = {"Content-Type": "application/json", **request.headers()}
        logger.debug(
            "POST %s params=%s records=%d", self._collection_url, request.query_params(), len(request.payload.records)
        )
        try:
            response = await self._client.post(
                self._collection_url,
                params=request.query_params(),
                headers=headers,
                content=request.payload.encode().encode("utf-8"),
            )
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}", {"url": self._collection_url}) from e

        return UploadResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            text=response.text,
        )
