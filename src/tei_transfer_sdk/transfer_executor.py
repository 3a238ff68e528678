"""Ownership transfer followed by the enrollment/event org unit cascade.

States run ``IDLE -> SUBMITTING -> SUCCESS | FAILED``. The ownership change
is the commit point: once it succeeds nothing is rolled back, and a failure
while cascading is reported as a partial transfer.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .engine import DataEngine
from .exceptions import ApiError
from .logger import get_logger, log_action
from .models import Case, Enrollment, Event
from .queries import (
    LEGACY_CASE_PARAM,
    PRIMARY_CASE_PARAM,
    CaseParamName,
    case_cascade_query,
    enrollment_cascade_mutation,
    events_cascade_mutation,
    ownership_transfer_mutation,
)
from .telemetry import TelemetryLogger, build_event
from .ui_errors import UserFacingError, is_unknown_param_error, to_user_facing_error

TRANSFER_COMPLETED_MESSAGE = "Transfer completed."

logger = get_logger(__name__)


class TransferStatus(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILED = "failed"


class TransferInProgressError(RuntimeError):
    pass


@dataclass(frozen=True)
class TransferResult:
    status: TransferStatus
    message: str
    ownership_transferred: bool = False
    partial: bool = False
    case_param: CaseParamName | None = None
    enrollment_updated: bool = False
    updated_event_ids: tuple[str, ...] = ()
    error: UserFacingError | None = None

    @property
    def title(self) -> str:
        if self.status is TransferStatus.SUCCESS:
            return "Success"
        if self.partial:
            return "Transfer partially applied"
        return "Transfer failed"


def _error_code(exc: BaseException) -> str:
    if isinstance(exc, ApiError):
        return exc.code
    return type(exc).__name__


def event_cascade_payload(event: Event, enrollment_id: str, destination_id: str) -> dict[str, Any]:
    payload = {
        "event": event.id,
        "program": event.program_id,
        "programStage": event.program_stage_id,
        "enrollment": enrollment_id,
        "orgUnit": destination_id,
        "status": event.status,
        "occurredAt": event.occurred_at,
        "scheduledAt": event.scheduled_at,
    }
    return {key: value for key, value in payload.items() if value is not None}


class TransferExecutor:
    def __init__(
        self,
        engine: DataEngine,
        *,
        cascade_enrollment_location: bool = False,
        telemetry: TelemetryLogger | None = None,
    ) -> None:
        self.engine = engine
        self.cascade_enrollment_location = cascade_enrollment_location
        self.telemetry = telemetry
        self.status = TransferStatus.IDLE
        self.last_result: TransferResult | None = None

    @property
    def submitting(self) -> bool:
        return self.status is TransferStatus.SUBMITTING

    def reset(self) -> None:
        if self.submitting:
            raise TransferInProgressError("Cannot reset while a transfer is submitting")
        self.status = TransferStatus.IDLE
        self.last_result = None

    async def execute(self, case_id: str, program_id: str, destination_id: str) -> TransferResult:
        """Run one transfer attempt; every failure ends in a ``FAILED`` result, never an exception."""
        if self.submitting:
            raise TransferInProgressError("A transfer is already submitting")
        self.status = TransferStatus.SUBMITTING
        self.last_result = None

        result: TransferResult | None = None
        case_param: CaseParamName | None = None
        try:
            case_param = await self._transfer_ownership(case_id, program_id, destination_id)
            case = await self._fetch_case(case_id)
            enrollment = case.enrollment_for(program_id)
            enrollment_updated = await self._cascade_enrollment(case, case_id, enrollment, program_id, destination_id)
            event_ids = await self._cascade_events(enrollment, destination_id)
            result = TransferResult(
                status=TransferStatus.SUCCESS,
                message=TRANSFER_COMPLETED_MESSAGE,
                ownership_transferred=True,
                case_param=case_param,
                enrollment_updated=enrollment_updated,
                updated_event_ids=event_ids,
            )
            log_action(logger, "transfer", "execute", None, "success", events=len(event_ids))
        except Exception as exc:
            error = to_user_facing_error(exc)
            transferred = case_param is not None
            result = TransferResult(
                status=TransferStatus.FAILED,
                message=error.message,
                ownership_transferred=transferred,
                partial=transferred,
                case_param=case_param,
                error=error,
            )
            log_action(
                logger,
                "transfer",
                "execute",
                error.trace_id,
                "partial_failure" if transferred else "failure",
                details=error.technical_details,
            )
        finally:
            self.status = result.status if result is not None else TransferStatus.FAILED
            self.last_result = result
        return result

    async def _transfer_ownership(self, case_id: str, program_id: str, destination_id: str) -> CaseParamName:
        try:
            await self._mutate(
                "transfer",
                "ownership_transfer",
                ownership_transfer_mutation(case_id, program_id, destination_id, PRIMARY_CASE_PARAM),
            )
            return PRIMARY_CASE_PARAM
        except ApiError as exc:
            if not is_unknown_param_error(exc, PRIMARY_CASE_PARAM):
                raise
            log_action(logger, "transfer", "ownership_transfer_fallback", exc.trace_id, "retrying", param=LEGACY_CASE_PARAM)

        await self._mutate(
            "transfer",
            "ownership_transfer_legacy",
            ownership_transfer_mutation(case_id, program_id, destination_id, LEGACY_CASE_PARAM),
        )
        return LEGACY_CASE_PARAM

    async def _fetch_case(self, case_id: str) -> Case:
        started = time.monotonic()
        try:
            payload = await self.engine.query(case_cascade_query(case_id))
        except Exception as exc:
            self._emit("cascade", "fetch_case", started, success=False, error_code=_error_code(exc))
            raise
        self._emit("cascade", "fetch_case", started, success=True)
        data = payload.get("tei")
        if not isinstance(data, dict):
            raise ValueError("Expected tracked entity response to be a JSON object")
        return Case.model_validate(data)

    async def _cascade_enrollment(
        self,
        case: Case,
        case_id: str,
        enrollment: Enrollment | None,
        program_id: str,
        destination_id: str,
    ) -> bool:
        if not self.cascade_enrollment_location or enrollment is None:
            return False
        await self._mutate(
            "cascade",
            "enrollment_update",
            enrollment_cascade_mutation(enrollment.id, program_id, case.id or case_id, destination_id),
        )
        return True

    async def _cascade_events(self, enrollment: Enrollment | None, destination_id: str) -> tuple[str, ...]:
        if enrollment is None or not enrollment.events:
            return ()
        payloads = [event_cascade_payload(event, enrollment.id, destination_id) for event in enrollment.events]
        await self._mutate("cascade", "events_update", events_cascade_mutation(payloads))
        return tuple(event.id for event in enrollment.events)

    async def _mutate(self, category: str, action: str, mutation: dict[str, Any]) -> Any:
        started = time.monotonic()
        try:
            response = await self.engine.mutate(mutation)
        except Exception as exc:
            self._emit(
                category,
                action,
                started,
                success=False,
                error_code=_error_code(exc),
                trace_id=getattr(exc, "trace_id", None),
            )
            raise
        self._emit(category, action, started, success=True)
        return response

    def _emit(
        self,
        category: str,
        action: str,
        started: float,
        *,
        success: bool,
        error_code: str | None = None,
        trace_id: str | None = None,
    ) -> None:
        if self.telemetry is None:
            return
        event = build_event(
            category=category,
            name=f"{category}_{action}",
            module="transfer_executor",
            action=action,
            trace_id=trace_id,
            duration_ms=int((time.monotonic() - started) * 1000),
            success=success,
            error_code=error_code,
        )
        try:
            self.telemetry.emit(event)
        except OSError as exc:
            log_action(logger, "transfer", "telemetry_emit", trace_id, "error", level=logging.WARNING, error=str(exc))
