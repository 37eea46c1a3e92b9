# tests/unit/client/test_transport.py
import json

import httpx
import pytest

from batchsync.client.session import BatchUploadSession
from batchsync.client.settings import UploadLimits
from batchsync.client.transport import HttpxTransport
from batchsync.errors import FailureKind
from batchsync.shared._httpx_utils import create_batchsync_http_client
from batchsync.shared.exceptions import TransportError
from batchsync.types import PayloadRequest, SessionStatus
from tests.helpers import make_payload, make_records

COLLECTION_URL = "https://storage.example.com/1.5/42/storage/bookmarks"


@pytest.mark.anyio
async def test_request_carries_batch_params_watermark_and_body():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202, headers={"X-Last-Modified": "1000.00"}, json={"batch": "B1"})

    async with create_batchsync_http_client(transport=httpx.MockTransport(handler)) as client:
        response = await HttpxTransport(client, COLLECTION_URL).send(
            PayloadRequest(payload=make_payload("a", "b", is_commit=True), batch_token="B1", if_unmodified_since=999.5)
        )

    assert response.status_code == 202
    assert response.header("X-Last-Modified") == "1000.00"
    assert json.loads(response.text) == {"batch": "B1"}

    (request,) = seen
    assert request.method == "POST"
    assert request.url.params["batch"] == "B1"
    assert request.url.params["commit"] == "true"
    assert request.headers["X-If-Unmodified-Since"] == "999.50"
    assert request.headers["Content-Type"] == "application/json"
    assert [r["id"] for r in json.loads(request.content)] == ["a", "b"]


@pytest.mark.anyio
async def test_network_failure_becomes_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with create_batchsync_http_client(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(TransportError) as exc_info:
            await HttpxTransport(client, COLLECTION_URL).send(PayloadRequest(payload=make_payload("a")))

    assert exc_info.value.error.code is FailureKind.TRANSPORT_ERROR
    assert "connection refused" in exc_info.value.error.message


@pytest.mark.anyio
async def test_auth_is_applied_by_the_client():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, headers={"X-Last-Modified": "1.00"}, json={"success": ["a"]})

    async with create_batchsync_http_client(
        auth=httpx.BasicAuth("alice", "secret"), transport=httpx.MockTransport(handler)
    ) as client:
        await HttpxTransport(client, COLLECTION_URL).send(PayloadRequest(payload=make_payload("a")))

    assert seen[0].headers["Authorization"].startswith("Basic ")


@pytest.mark.anyio
async def test_session_over_httpx_end_to_end():
    """A small batching server: two accepted payloads, then a commit."""
    calls: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        calls.append(params)
        ids = [r["id"] for r in json.loads(request.content)]
        if params.get("commit") == "true":
            return httpx.Response(200, headers={"X-Last-Modified": "51.00"}, json={"success": ids})
        return httpx.Response(202, headers={"X-Last-Modified": "50.00"}, json={"batch": "Zm9v", "success": ids})

    async with create_batchsync_http_client(transport=httpx.MockTransport(handler)) as client:
        session = BatchUploadSession(
            HttpxTransport(client, COLLECTION_URL), limits=UploadLimits(max_post_records=2), last_modified=50.0
        )
        outcome = await session.run(make_records("a", "b", "c", "d", "e"))

    assert outcome.status is SessionStatus.completed
    assert outcome.succeeded == ("a", "b", "c", "d", "e")
    assert calls == [
        {"batch": "true"},
        {"batch": "Zm9v"},
        {"batch": "Zm9v", "commit": "true"},
    ]
