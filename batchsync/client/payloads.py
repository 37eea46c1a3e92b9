# batchsync/client/payloads.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from mcp.server.fastmcp.utilities.logging import get_logger

from batchsync.client.settings import UploadLimits
from batchsync.errors import ErrorData, FailureKind
from batchsync.types import Payload, Record

logger = get_logger(__name__)

# "[" + "]" around a payload, and the "," between records.
_ARRAY_OVERHEAD_BYTES = 2
_SEPARATOR_BYTES = 1


@dataclass
class PayloadPlan:
    """The payloads of one session, in dispatch order, plus records refused up front."""

    payloads: list[Payload] = field(default_factory=list)
    rejected: dict[str, ErrorData] = field(default_factory=dict)

    @property
    def guids(self) -> list[str]:
        return [guid for p in self.payloads for guid in p.guids]


class _Batch:
    def __init__(self) -> None:
        self.payloads: list[list[Record]] = []
        self.records = 0
        self.bytes = 0

    def fits(self, size: int, limits: UploadLimits) -> bool:
        return self.records + 1 <= limits.max_total_records and self.bytes + size <= limits.max_total_bytes


def _payload_fits(current: list[Record], current_bytes: int, size: int, limits: UploadLimits) -> bool:
    if not current:
        return True
    return (
        len(current) + 1 <= limits.max_post_records
        and current_bytes + _SEPARATOR_BYTES + size <= limits.max_post_bytes
    )


def _check_record(record: Record, size: int, limits: UploadLimits) -> ErrorData | None:
    payload_bytes = len(record.payload.encode("utf-8"))
    if payload_bytes > limits.max_record_payload_bytes:
        return ErrorData(
            code=FailureKind.RECORD_TOO_LARGE,
            message=f"Record payload is {payload_bytes} bytes; limit is {limits.max_record_payload_bytes}",
            data={"payload_bytes": payload_bytes},
        )
    if size + _ARRAY_OVERHEAD_BYTES > limits.max_post_bytes or size > limits.max_total_bytes:
        return ErrorData(
            code=FailureKind.RECORD_TOO_LARGE,
            message=f"Encoded record is {size} bytes; it cannot fit in a single request",
            data={"encoded_bytes": size},
        )
    return None


def plan_payloads(records: Iterable[Record], limits: UploadLimits) -> PayloadPlan:
    """Pack records into payloads, and payloads into batches.

    Records are packed greedily in the order given. A payload closes when it would
    exceed the per-request bounds; a batch closes when it would exceed the per-batch
    bounds. The last payload of every batch is a commit, and the final payload of the
    session is both a commit and the last payload.
    """
    plan = PayloadPlan()
    batches: list[_Batch] = [_Batch()]
    current: list[Record] = []
    current_bytes = _ARRAY_OVERHEAD_BYTES

    def close_payload() -> None:
        nonlocal current, current_bytes
        if current:
            batches[-1].payloads.append(current)
        current = []
        current_bytes = _ARRAY_OVERHEAD_BYTES

    for record in records:
        size = len(record.encode().encode("utf-8"))
        error = _check_record(record, size, limits)
        if error is not None:
            logger.warning("Refusing record %s: %s", record.id, error.message)
            plan.rejected[record.id] = error
            continue

        if not batches[-1].fits(size, limits):
            close_payload()
            batches.append(_Batch())
        elif not _payload_fits(current, current_bytes, size, limits):
            close_payload()

        current_bytes += size + (_SEPARATOR_BYTES if current else 0)
        current.append(record)
        batches[-1].records += 1
        batches[-1].bytes += size
    close_payload()

    batches = [b for b in batches if b.payloads]
    for b_index, batch in enumerate(batches):
        for p_index, records_in_payload in enumerate(batch.payloads):
            is_commit = p_index == len(batch.payloads) - 1
            plan.payloads.append(
                Payload(
                    records=tuple(records_in_payload),
                    is_commit=is_commit,
                    is_last_payload=is_commit and b_index == len(batches) - 1,
                )
            )

    logger.debug(
        "Planned %d payload(s) in %d batch(es); %d record(s) refused",
        len(plan.payloads),
        len(batches),
        len(plan.rejected),
    )
    return plan
