# batchsync/shared/exceptions.py
from __future__ import annotations

from typing import Any

from batchsync.errors import ErrorData, FailureKind


class BatchSyncError(Exception):
    """
    Exception type carrying structured failure information for an upload.
    """

    error: ErrorData

    def __init__(self, error: ErrorData):
        """Initialize BatchSyncError."""
        super().__init__(error.message)
        self.error = error


class TransportError(BatchSyncError):
    """Raised by a transport when a payload request could not be completed."""

    def __init__(self, message: str, data: Any | None = None):
        super().__init__(
            ErrorData(
                code=FailureKind.TRANSPORT_ERROR,
                message=message,
                data=data,
            )
        )


class SessionStateError(RuntimeError):
    """Raised when a batch upload session is driven outside its lifecycle."""
    pass
