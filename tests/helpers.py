# tests/helpers.py
import json
from typing import Any

from batchsync.types import Payload, Record, UploadResponse


def make_response(
    status: int = 200,
    body: Any = None,
    last_modified: str | None = "1000.00",
    text: str | None = None,
) -> UploadResponse:
    """Build a server response; ``body`` is JSON-encoded unless raw ``text`` is given."""
    headers = {"X-Last-Modified": last_modified} if last_modified is not None else {}
    if text is None:
        text = json.dumps(body if body is not None else {})
    return UploadResponse(status_code=status, headers=headers, text=text)


def make_records(*guids: str, size: int = 10) -> list[Record]:
    return [Record(id=guid, payload="x" * size) for guid in guids]


def make_payload(*guids: str, is_commit: bool = False, is_last_payload: bool = False) -> Payload:
    return Payload(records=tuple(make_records(*guids)), is_commit=is_commit, is_last_payload=is_last_payload)
