# batchsync/__init__.py
from batchsync.client.session import BatchUploadSession
from batchsync.client.settings import UploaderSettings, UploadLimits
from batchsync.client.transport import HttpxTransport, Transport
from batchsync.errors import ErrorData, FailureKind
from batchsync.shared.exceptions import BatchSyncError, SessionStateError, TransportError
from batchsync.types import BatchingMode, Payload, Record, SessionOutcome, SessionStatus

__all__ = [
    "BatchSyncError",
    "BatchUploadSession",
    "BatchingMode",
    "ErrorData",
    "FailureKind",
    "HttpxTransport",
    "Payload",
    "Record",
    "SessionOutcome",
    "SessionStateError",
    "SessionStatus",
    "Transport",
    "TransportError",
    "UploadLimits",
    "UploaderSettings",
]
