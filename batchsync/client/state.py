# batchsync/client/state.py
"""
SessionState
- Tracks the batch token, the last-modified watermark and the batching mode of one
  upload session, plus the per-record outcomes accumulated so far.
- Transitions never raise for protocol violations. They return ``None`` on success or
  an ``ErrorData`` naming the violated rule, so callers can react per failure kind.
- No I/O happens here.
"""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp.utilities.logging import get_logger

from batchsync.errors import ErrorData, FailureKind
from batchsync.types import BatchingMode, format_timestamp

logger = get_logger(__name__)


class SessionState:
    def __init__(self, last_modified: float | None = None) -> None:
        self._token: str | None = None
        self._last_modified: float | None = last_modified
        self._batching_mode = BatchingMode.unknown
        self._succeeded: list[str] = []
        self._succeeded_set: set[str] = set()
        self._failed: dict[str, ErrorData] = {}

    # -------- Batch token ----------
    @property
    def token(self) -> str | None:
        return self._token

    def set_token(self, token: str | None, is_commit: bool) -> ErrorData | None:
        if token == self._token:
            return None

        if is_commit:
            # A commit ends the token's validity; the server must not hand back a new one.
            if token is not None:
                return ErrorData(
                    code=FailureKind.TOKEN_AFTER_COMMIT,
                    message="Received a batch token on a commit response",
                    data={"stored": self._token, "received": token},
                )
            logger.debug("Batch %s committed; clearing token", self._token)
            self._token = None
            return None

        if self._token is None:
            logger.debug("Batch token assigned: %s", token)
            self._token = token
            return None

        return ErrorData(
            code=FailureKind.INCONSISTENT_BATCH_TOKEN,
            message="Batch token changed within a batch",
            data={"stored": self._token, "received": token},
        )

    # -------- Watermark ----------
    @property
    def last_modified(self) -> float | None:
        return self._last_modified

    def set_last_modified(self, timestamp: float, expect_change: bool) -> ErrorData | None:
        if self._last_modified is None:
            self._last_modified = timestamp
            return None

        changed = timestamp != self._last_modified
        if changed and not expect_change:
            return ErrorData(
                code=FailureKind.UNEXPECTED_WATERMARK_CHANGE,
                message="Last-Modified changed when it should not have",
                data={"stored": format_timestamp(self._last_modified), "received": format_timestamp(timestamp)},
            )
        if not changed and expect_change:
            return ErrorData(
                code=FailureKind.MISSING_WATERMARK_CHANGE,
                message="Last-Modified did not change when it should have",
                data={"stored": format_timestamp(self._last_modified)},
            )

        self._last_modified = timestamp
        return None

    # -------- Batching mode ----------
    @property
    def batching_mode(self) -> BatchingMode:
        return self._batching_mode

    def set_batching_mode(self, enabled: bool) -> None:
        """Decide the batching mode; only the first decision counts."""
        if self._batching_mode is not BatchingMode.unknown:
            return
        self._batching_mode = BatchingMode.enabled if enabled else BatchingMode.disabled
        logger.info("Batching mode decided: %s", self._batching_mode.value)

    # -------- Record outcomes ----------
    def record_succeeded(self, guid: Any) -> bool:
        if not isinstance(guid, str):
            logger.error("Ignoring malformed entry in success list: %r", guid)
            return False
        self._succeeded.append(guid)
        self._succeeded_set.add(guid)
        return True

    def record_failed(self, guid: str, cause: ErrorData) -> None:
        self._failed[guid] = cause

    def snapshot_succeeded_guids(self) -> tuple[str, ...]:
        return tuple(self._succeeded)

    def snapshot_failed_guids(self) -> dict[str, ErrorData]:
        return dict(self._failed)

    def is_resolved(self, guid: str) -> bool:
        return guid in self._failed or guid in self._succeeded_set

    def prepare_for_next_batch(self) -> None:
        """Start a new batch within the same session.

        The token is dropped. The watermark, the decided batching mode and the
        accumulated record outcomes carry over.
        """
        logger.debug("Preparing for next batch (previous token: %s)", self._token)
        self._token = None
