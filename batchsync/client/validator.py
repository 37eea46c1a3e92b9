# batchsync/client/validator.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from mcp.server.fastmcp.utilities.logging import get_logger
from pydantic import TypeAdapter, ValidationError

from batchsync.client.state import SessionState
from batchsync.errors import ErrorData, FailureKind
from batchsync.shared.exceptions import BatchSyncError
from batchsync.types import (
    HEADER_LAST_MODIFIED,
    KEY_BATCH,
    KEY_FAILED,
    KEY_SUCCESS,
    STATUS_ACCEPTED,
    STATUS_OK,
    STATUS_PRECONDITION_FAILED,
    BatchingMode,
    Payload,
    UploadResponse,
    parse_timestamp,
)

logger = get_logger(__name__)

_BodyAdapter: TypeAdapter[dict[str, Any]] = TypeAdapter(dict[str, Any])
_SuccessAdapter: TypeAdapter[list[Any]] = TypeAdapter(list[Any])
_FailedAdapter: TypeAdapter[dict[str, Any]] = TypeAdapter(dict[str, Any])


@dataclass
class PayloadResult:
    """What the coordinator needs to know after one response was handled."""

    is_commit: bool
    is_last_payload: bool
    succeeded: tuple[str, ...] = ()
    """Accumulated succeeded GUIDs of the session at the time of this response."""

    failed: dict[str, ErrorData] = field(default_factory=dict)
    """Records that failed as part of this payload."""

    error: ErrorData | None = None
    """Set when the payload as a whole failed."""

    conflict: bool = False
    start_next_batch: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.conflict

    @property
    def session_failed(self) -> bool:
        return self.error is not None and self.is_last_payload


ResponseHandler = Callable[[UploadResponse], PayloadResult]


def make_response_handler(state: SessionState, payload: Payload) -> ResponseHandler:
    """Bind the validator to one outstanding payload."""

    def handle(response: UploadResponse) -> PayloadResult:
        return validate_payload_response(response, state, payload)

    return handle


def fail_payload(state: SessionState, payload: Payload, error: ErrorData) -> PayloadResult:
    """Route every record posted in ``payload`` to failure with ``error`` as cause."""
    logger.warning(
        "Payload of %d record(s) failed (%s): %s", len(payload.records), error.code.value, error.message
    )
    for guid in payload.guids:
        state.record_failed(guid, error)
    return PayloadResult(
        is_commit=payload.is_commit,
        is_last_payload=payload.is_last_payload,
        succeeded=state.snapshot_succeeded_guids(),
        failed={guid: error for guid in payload.guids},
        error=error,
    )


def validate_payload_response(response: UploadResponse, state: SessionState, payload: Payload) -> PayloadResult:
    status = response.status_code

    if status == STATUS_PRECONDITION_FAILED:
        logger.warning("Concurrent modification detected (412); aborting session")
        return PayloadResult(
            is_commit=payload.is_commit,
            is_last_payload=payload.is_last_payload,
            succeeded=state.snapshot_succeeded_guids(),
            conflict=True,
        )

    try:
        body = _check_response(response, state, payload)
    except BatchSyncError as e:
        return fail_payload(state, payload, e.error)

    # Everything below is accepted: collect per-record outcomes.
    success: list[Any] = body.get(KEY_SUCCESS) or []
    failed: dict[str, Any] = body.get(KEY_FAILED) or {}

    if success:
        logger.debug("Successful records: %s", success)
        for guid in success:
            state.record_succeeded(guid)

    rejected: dict[str, ErrorData] = {}
    if failed:
        logger.debug("Failed records: %s", failed)
        for guid, detail in failed.items():
            cause = ErrorData(
                code=FailureKind.SERVER_REJECTED,
                message=f"Server rejected record {guid}",
                data=detail,
            )
            state.record_failed(guid, cause)
            rejected[guid] = cause

    return PayloadResult(
        is_commit=payload.is_commit,
        is_last_payload=payload.is_last_payload,
        succeeded=state.snapshot_succeeded_guids(),
        failed=rejected,
        start_next_batch=payload.is_commit and not payload.is_last_payload,
    )


def _violation(code: FailureKind, message: str, data: Any | None = None) -> BatchSyncError:
    return BatchSyncError(ErrorData(code=code, message=message, data=data))


def _check_response(response: UploadResponse, state: SessionState, payload: Payload) -> dict[str, Any]:
    """Run the protocol checks and apply state transitions.

    Returns the parsed body with ``success`` / ``failed`` validated, or raises
    ``BatchSyncError`` naming the first violated rule.
    """
    status = response.status_code

    if not 200 <= status < 300:
        raise _violation(FailureKind.HTTP_FAILURE, f"HTTP request failed with status {status}", {"status": status})
    if status not in (STATUS_OK, STATUS_ACCEPTED):
        raise _violation(
            FailureKind.UNEXPECTED_STATUS, f"Expected a 200/202 response, got {status}", {"status": status}
        )

    # Every success response carries the watermark.
    raw_watermark = response.header(HEADER_LAST_MODIFIED)
    watermark = parse_timestamp(raw_watermark)
    if watermark is None:
        raise _violation(
            FailureKind.MISSING_WATERMARK,
            "Response did not have a usable X-Last-Modified header",
            {"header": raw_watermark},
        )

    try:
        body = _BodyAdapter.validate_json(response.text)
    except ValidationError as e:
        logger.error("Got exception parsing POST success body: %s", e)
        raise _violation(FailureKind.MALFORMED_BODY, "Response body is not a JSON object", str(e)) from e

    # 200 is either a non-batching result or a batch commit; 202 must name the batch.
    if status == STATUS_OK and state.token is not None:
        if state.batching_mode is BatchingMode.enabled and not payload.is_commit:
            raise _violation(
                FailureKind.COMMIT_EXPECTED, "Got 200 OK in batching mode, but this was not a commit payload"
            )
    elif status == STATUS_ACCEPTED and KEY_BATCH not in body:
        raise _violation(FailureKind.MISSING_BATCH_ID, "Batch response did not have a batch ID")

    state.set_batching_mode(KEY_BATCH in body)
    if state.batching_mode is BatchingMode.disabled and KEY_BATCH in body:
        raise _violation(
            FailureKind.BATCHING_MODE_MISMATCH,
            "Got a batch ID after the session was found to be non-batching",
            {KEY_BATCH: body[KEY_BATCH]},
        )

    token = body.get(KEY_BATCH)
    if token is not None and not isinstance(token, str):
        raise _violation(FailureKind.MALFORMED_BODY, "Batch ID is not a string", {KEY_BATCH: token})
    error = state.set_token(token, payload.is_commit)
    if error is not None:
        raise BatchSyncError(error)

    # Non-batching: every payload becomes visible, so the watermark moves each time.
    # Batching: only a commit moves it.
    expect_change = payload.is_commit or state.batching_mode is BatchingMode.disabled
    error = state.set_last_modified(watermark, expect_change)
    if error is not None:
        raise BatchSyncError(error)

    if body.get(KEY_SUCCESS) is not None:
        try:
            body[KEY_SUCCESS] = _SuccessAdapter.validate_python(body[KEY_SUCCESS], strict=True)
        except ValidationError as e:
            raise _violation(FailureKind.MALFORMED_SUCCESS, "'success' is not an array", str(e)) from e
    if body.get(KEY_FAILED) is not None:
        try:
            body[KEY_FAILED] = _FailedAdapter.validate_python(body[KEY_FAILED], strict=True)
        except ValidationError as e:
            raise _violation(FailureKind.MALFORMED_FAILED, "'failed' is not an object", str(e)) from e

    return body
