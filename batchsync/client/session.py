# batchsync/client/session.py
from __future__ import annotations

from typing import Iterable, Protocol

import anyio
import anyio.lowlevel
from mcp.server.fastmcp.utilities.logging import get_logger

from batchsync.client.payloads import PayloadPlan, plan_payloads
from batchsync.client.settings import UploaderSettings, UploadLimits
from batchsync.client.state import SessionState
from batchsync.client.transport import Transport
from batchsync.client.validator import PayloadResult, fail_payload, make_response_handler
from batchsync.errors import ErrorData, FailureKind
from batchsync.shared.exceptions import SessionStateError, TransportError
from batchsync.types import (
    TERMINAL_STATUSES,
    Payload,
    PayloadRequest,
    Record,
    SessionOutcome,
    SessionStatus,
)

logger = get_logger(__name__)


class PayloadOutcomeFnT(Protocol):
    async def __call__(
        self,
        succeeded: tuple[str, ...],
        failed: dict[str, ErrorData],
        is_commit: bool,
        is_last_payload: bool,
    ) -> None: ...


class SessionAbortedFnT(Protocol):
    async def __call__(self, conflict: ErrorData) -> None: ...


class SessionFailedFnT(Protocol):
    async def __call__(self, error: ErrorData) -> None: ...


class SessionCompletedFnT(Protocol):
    async def __call__(self, succeeded: tuple[str, ...], failed: dict[str, ErrorData]) -> None: ...


async def _default_payload_outcome_callback(
    succeeded: tuple[str, ...],
    failed: dict[str, ErrorData],
    is_commit: bool,
    is_last_payload: bool,
) -> None:
    await anyio.lowlevel.checkpoint()


async def _default_session_aborted_callback(conflict: ErrorData) -> None:
    await anyio.lowlevel.checkpoint()


async def _default_session_failed_callback(error: ErrorData) -> None:
    await anyio.lowlevel.checkpoint()


async def _default_session_completed_callback(succeeded: tuple[str, ...], failed: dict[str, ErrorData]) -> None:
    await anyio.lowlevel.checkpoint()


class BatchUploadSession:
    """Drives one upload session: records in, one definitive outcome per record out.

    Payloads are sent strictly one at a time. Request N+1 is built from the batch
    token and watermark established by response N, so nothing is dispatched until
    the previous response has been validated and applied.

    A session object runs once.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        limits: UploadLimits | None = None,
        request_timeout: float | None = None,
        last_modified: float | None = None,
        payload_outcome_callback: PayloadOutcomeFnT | None = None,
        session_aborted_callback: SessionAbortedFnT | None = None,
        session_failed_callback: SessionFailedFnT | None = None,
        session_completed_callback: SessionCompletedFnT | None = None,
    ) -> None:
        self._transport = transport
        self._limits = limits or UploadLimits()
        self._request_timeout = request_timeout
        self._state = SessionState(last_modified=last_modified)
        self._status = SessionStatus.idle
        self._payload_outcome_callback = payload_outcome_callback or _default_payload_outcome_callback
        self._session_aborted_callback = session_aborted_callback or _default_session_aborted_callback
        self._session_failed_callback = session_failed_callback or _default_session_failed_callback
        self._session_completed_callback = session_completed_callback or _default_session_completed_callback

    @classmethod
    def from_settings(
        cls, transport: Transport, settings: UploaderSettings, **kwargs
    ) -> "BatchUploadSession":
        return cls(transport, limits=settings.limits, request_timeout=settings.request_timeout, **kwargs)

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def done(self) -> bool:
        return self._status in TERMINAL_STATUSES

    @property
    def limits(self) -> UploadLimits:
        return self._limits

    @property
    def request_timeout(self) -> float | None:
        return self._request_timeout

    @property
    def state(self) -> SessionState:
        return self._state

    def _set_status(self, status: SessionStatus) -> None:
        if status is not self._status:
            logger.debug("Upload session: %s -> %s", self._status.value, status.value)
        self._status = status

    async def run(self, records: Iterable[Record]) -> SessionOutcome:
        if self._status is not SessionStatus.idle:
            raise SessionStateError(f"Upload session already {self._status.value}; create a new session")

        plan = plan_payloads(records, self._limits)
        for guid, cause in plan.rejected.items():
            self._state.record_failed(guid, cause)

        if not plan.payloads:
            logger.info("Nothing to upload")
            return await self._complete(plan)

        logger.info("Uploading %d record(s) in %d payload(s)", len(plan.guids), len(plan.payloads))
        for payload in plan.payloads:
            result = await self._dispatch(payload)

            if result.conflict:
                return await self._abort(plan)

            await self._payload_outcome_callback(
                result.succeeded, result.failed, result.is_commit, result.is_last_payload
            )

            if result.error is not None and result.session_failed:
                return await self._fail(plan, result.error)
            if payload.is_last_payload:
                break

            if payload.is_commit:
                # The batch is closed whether or not the commit was accepted.
                self._set_status(SessionStatus.committed)
                self._state.prepare_for_next_batch()
            else:
                self._set_status(SessionStatus.continuing)

        return await self._complete(plan)

    async def _dispatch(self, payload: Payload) -> PayloadResult:
        request = PayloadRequest(
            payload=payload,
            batch_token=self._state.token,
            if_unmodified_since=self._state.last_modified,
        )
        handle_response = make_response_handler(self._state, payload)

        self._set_status(SessionStatus.uploading)
        logger.debug(
            "Sending payload: %d record(s), commit=%s, last=%s, token=%s",
            len(payload.records),
            payload.is_commit,
            payload.is_last_payload,
            request.batch_token,
        )
        try:
            with anyio.fail_after(self._request_timeout):
                response = await self._transport.send(request)
        except TransportError as e:
            self._set_status(SessionStatus.validating)
            return fail_payload(self._state, payload, e.error)
        except TimeoutError:
            self._set_status(SessionStatus.validating)
            error = ErrorData(
                code=FailureKind.TRANSPORT_ERROR,
                message=f"Payload request timed out after {self._request_timeout}s",
            )
            return fail_payload(self._state, payload, error)
        except Exception as e:
            logger.exception("Transport raised an unexpected error")
            self._set_status(SessionStatus.validating)
            error = ErrorData(
                code=FailureKind.TRANSPORT_ERROR,
                message=f"{type(e).__name__}: {e}",
            )
            return fail_payload(self._state, payload, error)

        self._set_status(SessionStatus.validating)
        return handle_response(response)

    def _outcome(self, status: SessionStatus, **kwargs) -> SessionOutcome:
        return SessionOutcome(
            status=status,
            succeeded=self._state.snapshot_succeeded_guids(),
            failed=self._state.snapshot_failed_guids(),
            last_modified=self._state.last_modified,
            **kwargs,
        )

    def _mark_unacknowledged(self, plan: PayloadPlan) -> None:
        for guid in plan.guids:
            if not self._state.is_resolved(guid):
                self._state.record_failed(
                    guid,
                    ErrorData(
                        code=FailureKind.NOT_ACKNOWLEDGED,
                        message="Server neither confirmed nor rejected this record",
                    ),
                )

    async def _complete(self, plan: PayloadPlan) -> SessionOutcome:
        self._mark_unacknowledged(plan)
        self._set_status(SessionStatus.completed)
        outcome = self._outcome(SessionStatus.completed)
        logger.info(
            "Upload session completed: %d succeeded, %d failed", len(outcome.succeeded), len(outcome.failed)
        )
        await self._session_completed_callback(outcome.succeeded, outcome.failed)
        return outcome

    async def _fail(self, plan: PayloadPlan, error: ErrorData) -> SessionOutcome:
        self._mark_unacknowledged(plan)
        self._set_status(SessionStatus.failed)
        outcome = self._outcome(SessionStatus.failed, error=error)
        logger.error("Upload session failed on its last payload: %s", error.message)
        await self._session_failed_callback(error)
        return outcome

    async def _abort(self, plan: PayloadPlan) -> SessionOutcome:
        unresolved = tuple(guid for guid in plan.guids if not self._state.is_resolved(guid))
        conflict = ErrorData(
            code=FailureKind.CONCURRENT_MODIFICATION,
            message="Collection was modified by another client during upload",
            data={"unresolved": len(unresolved)},
        )
        self._set_status(SessionStatus.aborted)
        outcome = self._outcome(SessionStatus.aborted, unresolved=unresolved, error=conflict)
        logger.warning(
            "Upload session aborted: %d succeeded before the conflict, %d left unresolved",
            len(outcome.succeeded),
            len(unresolved),
        )
        await self._session_aborted_callback(conflict)
        return outcome
