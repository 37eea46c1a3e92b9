# batchsync/errors.py
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class FailureKind(str, Enum):
    """Why a record, payload or session did not succeed."""

    # Status / framing
    UNEXPECTED_STATUS = "unexpected_status"
    HTTP_FAILURE = "http_failure"
    TRANSPORT_ERROR = "transport_error"
    MISSING_WATERMARK = "missing_watermark"
    MALFORMED_BODY = "malformed_body"
    MALFORMED_SUCCESS = "malformed_success"
    MALFORMED_FAILED = "malformed_failed"
    # Batch semantics
    COMMIT_EXPECTED = "commit_expected"
    MISSING_BATCH_ID = "missing_batch_id"
    BATCHING_MODE_MISMATCH = "batching_mode_mismatch"
    INCONSISTENT_BATCH_TOKEN = "inconsistent_batch_token"
    TOKEN_AFTER_COMMIT = "token_after_commit"
    UNEXPECTED_WATERMARK_CHANGE = "unexpected_watermark_change"
    MISSING_WATERMARK_CHANGE = "missing_watermark_change"
    # Per record
    SERVER_REJECTED = "server_rejected"
    RECORD_TOO_LARGE = "record_too_large"
    NOT_ACKNOWLEDGED = "not_acknowledged"
    # Session
    CONCURRENT_MODIFICATION = "concurrent_modification"


class ErrorData(BaseModel):
    """Failure information attached to records, payloads and sessions."""

    code: FailureKind
    """The kind of failure that occurred."""

    message: str
    """
    A short description of the failure. The message SHOULD be limited to a concise single
    sentence.
    """

    data: Any | None = None
    """
    Additional information about the failure, e.g. the HTTP status code or the detail the
    server attached to a rejected record.
    """

    model_config = ConfigDict(extra="allow", frozen=True)
