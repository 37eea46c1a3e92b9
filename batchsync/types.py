# batchsync/types.py
from __future__ import annotations

import math
from enum import Enum
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from batchsync.errors import ErrorData

"""
Batch upload protocol bindings for Python
"""

# Header and body field names used by the batch upload endpoint.
HEADER_LAST_MODIFIED = "x-last-modified"
HEADER_IF_UNMODIFIED_SINCE = "X-If-Unmodified-Since"
KEY_BATCH = "batch"
KEY_SUCCESS = "success"
KEY_FAILED = "failed"

STATUS_OK = 200
STATUS_ACCEPTED = 202
STATUS_PRECONDITION_FAILED = 412


class BatchingMode(str, Enum):
    """Whether the server chunks this session into a multi-request batch."""

    unknown = "unknown"
    enabled = "enabled"
    disabled = "disabled"


class SessionStatus(str, Enum):
    idle = "idle"
    uploading = "uploading"
    validating = "validating"
    continuing = "continuing"
    committed = "committed"
    completed = "completed"
    aborted = "aborted"
    failed = "failed"


TERMINAL_STATUSES = frozenset({SessionStatus.completed, SessionStatus.aborted, SessionStatus.failed})


class Record(BaseModel):
    """A single storage object to upload."""

    id: str
    """Record GUID; echoed back by the server in `success` / `failed`."""

    payload: str
    """Opaque, already encoded record payload."""

    sortindex: int | None = None
    ttl: int | None = None

    model_config = ConfigDict(frozen=True)

    def encode(self) -> str:
        return self.model_dump_json(exclude_none=True)


class Payload(BaseModel):
    """One HTTP request's worth of records."""

    records: tuple[Record, ...]
    is_commit: bool = False
    """This payload finalizes the current batch."""

    is_last_payload: bool = False
    """This is the final payload of the whole session."""

    model_config = ConfigDict(frozen=True)

    @property
    def guids(self) -> tuple[str, ...]:
        return tuple(r.id for r in self.records)

    def encode(self) -> str:
        return "[" + ",".join(r.encode() for r in self.records) + "]"


class PayloadRequest(BaseModel):
    """Everything a transport needs to put one payload on the wire."""

    payload: Payload
    batch_token: str | None = None
    if_unmodified_since: float | None = None

    def query_params(self) -> dict[str, str]:
        params = {KEY_BATCH: self.batch_token if self.batch_token is not None else "true"}
        if self.payload.is_commit:
            params["commit"] = "true"
        return params

    def headers(self) -> dict[str, str]:
        if self.if_unmodified_since is None:
            return {}
        return {HEADER_IF_UNMODIFIED_SINCE: format_timestamp(self.if_unmodified_since)}


class UploadResponse(BaseModel):
    """Transport-neutral view of one HTTP response."""

    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    text: str = ""

    @field_validator("headers", mode="before")
    @classmethod
    def _lowercase_headers(cls, value: Mapping[str, str]) -> dict[str, str]:
        return {str(k).lower(): v for k, v in dict(value).items()}

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())


class SessionOutcome(BaseModel):
    """Final per-record and session-level result of one upload session."""

    status: SessionStatus
    succeeded: tuple[str, ...] = ()
    failed: dict[str, ErrorData] = Field(default_factory=dict)
    unresolved: tuple[str, ...] = ()
    """Record ids with no outcome because the session was aborted by a conflict."""

    error: ErrorData | None = None
    last_modified: float | None = None


def format_timestamp(seconds: float) -> str:
    """Render a watermark as decimal seconds, e.g. ``1476322348.12``."""
    return f"{seconds:.2f}"


def parse_timestamp(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return round(seconds, 2) if math.isfinite(seconds) else None
