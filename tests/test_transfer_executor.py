from __future__ import annotations

import asyncio
import json

import pytest
from fakes import FakeEngine, Gate, api_error

from tei_transfer_sdk.models import Event
from tei_transfer_sdk.telemetry import TelemetryLogger
from tei_transfer_sdk.transfer_executor import (
    TransferExecutor,
    TransferInProgressError,
    TransferStatus,
    event_cascade_payload,
)

TRANSFER = "tracker/ownership/transfer"
CASE = "tracker/trackedEntities/T1"


def _case_payload() -> dict:
    return {
        "trackedEntityType": "person",
        "orgUnit": "A",
        "enrollments": [
            {
                "enrollment": "E1",
                "program": "P1",
                "orgUnit": "A",
                "status": "ACTIVE",
                "occurredAt": "2024-01-01T00:00:00.000",
                "enrolledAt": "2024-01-01T00:00:00.000",
                "events": [
                    {
                        "event": "EV1",
                        "program": "P1",
                        "programStage": "PS1",
                        "orgUnit": "A",
                        "status": "COMPLETED",
                        "occurredAt": "2024-02-01T00:00:00.000",
                    },
                    {
                        "event": "EV2",
                        "program": "P1",
                        "programStage": "PS2",
                        "orgUnit": "A",
                        "status": "SCHEDULE",
                        "scheduledAt": "2024-03-01T00:00:00.000",
                    },
                ],
            },
            {
                "enrollment": "E2",
                "program": "P2",
                "events": [{"event": "EV9", "program": "P2", "orgUnit": "A", "status": "ACTIVE"}],
            },
        ],
    }


def _engine() -> FakeEngine:
    engine = FakeEngine()
    engine.on_query(CASE, _case_payload())
    return engine


def test_successful_transfer_cascades_every_event_of_the_program_enrollment() -> None:
    engine = _engine()
    executor = TransferExecutor(engine)

    result = asyncio.run(executor.execute("T1", "P1", "B"))

    assert result.status is TransferStatus.SUCCESS
    assert result.message == "Transfer completed."
    assert result.case_param == "trackedEntity"
    assert result.updated_event_ids == ("EV1", "EV2")
    assert executor.status is TransferStatus.SUCCESS

    transfer, events = engine.mutations
    assert transfer == {
        "resource": TRANSFER,
        "type": "update",
        "params": {"trackedEntity": "T1", "program": "P1", "ou": "B"},
        "data": {"trackedEntity": "T1", "program": "P1", "orgUnit": "B"},
    }
    assert engine.queries[0]["tei"]["params"]["fields"].startswith("trackedEntityType,orgUnit,enrollments[")
    assert events["resource"] == "tracker"
    assert events["type"] == "create"
    assert events["params"] == {"async": False, "importStrategy": "UPDATE"}
    assert events["data"] == {
        "events": [
            {
                "event": "EV1",
                "program": "P1",
                "programStage": "PS1",
                "enrollment": "E1",
                "orgUnit": "B",
                "status": "COMPLETED",
                "occurredAt": "2024-02-01T00:00:00.000",
            },
            {
                "event": "EV2",
                "program": "P1",
                "programStage": "PS2",
                "enrollment": "E1",
                "orgUnit": "B",
                "status": "SCHEDULE",
                "scheduledAt": "2024-03-01T00:00:00.000",
            },
        ]
    }


def test_unknown_parameter_retries_once_with_legacy_name() -> None:
    engine = _engine()
    engine.on_mutate(TRANSFER, api_error(400, "Unknown parameter trackedEntity"))
    executor = TransferExecutor(engine)

    result = asyncio.run(executor.execute("T1", "P1", "B"))

    transfers = engine.mutations_for(TRANSFER)
    assert [list(item["params"])[0] for item in transfers] == ["trackedEntity", "trackedEntityInstance"]
    assert transfers[1]["params"] == {"trackedEntityInstance": "T1", "program": "P1", "ou": "B"}
    assert result.status is TransferStatus.SUCCESS
    assert result.case_param == "trackedEntityInstance"
    assert engine.resources_queried() == [CASE]


@pytest.mark.parametrize(
    "message",
    [
        "Unknown parameter trackedEntity",
        "UNKNOWN PARAMETER: trackedEntity",
        "Required request parameter 'trackedEntityInstance' is not present",
        "Parameter trackedEntity is not supported",
    ],
)
def test_parameter_messages_that_trigger_fallback(message: str) -> None:
    engine = _engine()
    engine.on_mutate(TRANSFER, api_error(400, message))

    asyncio.run(TransferExecutor(engine).execute("T1", "P1", "B"))

    assert len(engine.mutations_for(TRANSFER)) == 2


def test_failed_fallback_is_not_retried_again() -> None:
    engine = _engine()
    engine.on_mutate(
        TRANSFER,
        api_error(400, "Unknown parameter trackedEntity"),
        api_error(400, "Unknown parameter trackedEntityInstance"),
    )
    executor = TransferExecutor(engine)

    result = asyncio.run(executor.execute("T1", "P1", "B"))

    assert len(engine.mutations_for(TRANSFER)) == 2
    assert result.status is TransferStatus.FAILED
    assert result.partial is False
    assert result.message == "Unknown parameter trackedEntityInstance"
    assert engine.queries == []


@pytest.mark.parametrize(
    ("error", "message"),
    [
        (api_error(403, "User has no access to program"), "User has no access to program"),
        (api_error(409, "Ownership conflict"), "Ownership conflict"),
        (api_error(500, "Unknown parameter trackedEntity"), "Unknown parameter trackedEntity"),
        (api_error(503), "Transfer failed."),
    ],
)
def test_other_failures_abort_without_retry(error, message: str) -> None:
    engine = _engine()
    engine.on_mutate(TRANSFER, error)
    executor = TransferExecutor(engine)

    result = asyncio.run(executor.execute("T1", "P1", "B"))

    assert len(engine.mutations_for(TRANSFER)) == 1
    assert result.status is TransferStatus.FAILED
    assert result.message == message
    assert result.ownership_transferred is False
    assert result.title == "Transfer failed"
    assert executor.status is TransferStatus.FAILED


def test_cascade_failure_is_partial_and_never_repeats_transfer() -> None:
    engine = _engine()
    engine.on_mutate("tracker", api_error(409, "Event import rejected"))
    executor = TransferExecutor(engine)

    result = asyncio.run(executor.execute("T1", "P1", "B"))

    assert result.status is TransferStatus.FAILED
    assert result.ownership_transferred is True
    assert result.partial is True
    assert result.title == "Transfer partially applied"
    assert result.message == "Event import rejected"
    assert len(engine.mutations_for(TRANSFER)) == 1


def test_refetch_failure_is_partial() -> None:
    engine = FakeEngine()
    engine.on_query(CASE, api_error(500))
    executor = TransferExecutor(engine)

    result = asyncio.run(executor.execute("T1", "P1", "B"))

    assert result.partial is True
    assert result.message == "Transfer failed."
    assert engine.mutations_for("tracker") == []


def test_malformed_case_payload_is_partial() -> None:
    engine = FakeEngine()
    engine.on_query(CASE, [])

    result = asyncio.run(TransferExecutor(engine).execute("T1", "P1", "B"))

    assert result.status is TransferStatus.FAILED
    assert result.partial is True
    assert "JSON object" in result.message


def test_enrollment_cascade_only_when_enabled() -> None:
    engine = _engine()
    executor = TransferExecutor(engine, cascade_enrollment_location=True)

    result = asyncio.run(executor.execute("T1", "P1", "B"))

    enrollment, events = engine.mutations_for("tracker")
    assert enrollment["data"] == {
        "enrollments": [{"enrollment": "E1", "program": "P1", "trackedEntity": "T1", "orgUnit": "B"}]
    }
    assert enrollment["params"] == {"async": False, "importStrategy": "UPDATE"}
    assert "events" in events["data"]
    assert result.enrollment_updated is True


def test_enrollment_cascade_disabled_by_default() -> None:
    engine = _engine()

    result = asyncio.run(TransferExecutor(engine).execute("T1", "P1", "B"))

    assert result.enrollment_updated is False
    assert all("enrollments" not in item["data"] for item in engine.mutations_for("tracker"))


def test_no_matching_enrollment_skips_cascade() -> None:
    engine = _engine()

    result = asyncio.run(TransferExecutor(engine, cascade_enrollment_location=True).execute("T1", "P9", "B"))

    assert result.status is TransferStatus.SUCCESS
    assert engine.mutations_for("tracker") == []


def test_enrollment_without_events_skips_event_import() -> None:
    engine = FakeEngine()
    engine.on_query(CASE, {"enrollments": [{"enrollment": "E1", "program": "P1", "events": []}]})

    result = asyncio.run(TransferExecutor(engine).execute("T1", "P1", "B"))

    assert result.status is TransferStatus.SUCCESS
    assert result.updated_event_ids == ()
    assert engine.mutations_for("tracker") == []


def test_second_attempt_while_submitting_is_rejected() -> None:
    engine = _engine()
    executor = TransferExecutor(engine)

    async def scenario() -> None:
        gate = Gate({"status": "OK"})
        engine.on_mutate(TRANSFER, gate)
        first = asyncio.get_running_loop().create_task(executor.execute("T1", "P1", "B"))
        await gate.entered.wait()
        assert executor.submitting is True
        with pytest.raises(TransferInProgressError):
            await executor.execute("T1", "P1", "C")
        gate.release()
        await first

    asyncio.run(scenario())

    assert executor.status is TransferStatus.SUCCESS
    assert len(engine.mutations_for(TRANSFER)) == 1


def test_new_attempt_allowed_after_failure() -> None:
    engine = _engine()
    engine.on_mutate(TRANSFER, api_error(500))
    executor = TransferExecutor(engine)

    first = asyncio.run(executor.execute("T1", "P1", "B"))
    second = asyncio.run(executor.execute("T1", "P1", "B"))

    assert first.status is TransferStatus.FAILED
    assert second.status is TransferStatus.SUCCESS
    executor.reset()
    assert executor.status is TransferStatus.IDLE


def test_event_payload_drops_absent_fields() -> None:
    event = Event.model_validate({"event": "EV1", "orgUnit": "A"})

    assert event_cascade_payload(event, "E1", "B") == {"event": "EV1", "enrollment": "E1", "orgUnit": "B"}


def test_steps_are_emitted_to_telemetry(tmp_path) -> None:
    engine = _engine()
    log_file = tmp_path / "telemetry.jsonl"
    telemetry = TelemetryLogger(app_name="tei_transfer", enabled=True, log_file=log_file)

    asyncio.run(TransferExecutor(engine, telemetry=telemetry).execute("T1", "P1", "B"))

    events = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert [event["action"] for event in events] == ["ownership_transfer", "fetch_case", "events_update"]
    assert {event["category"] for event in events} == {"transfer", "cascade"}
    assert all(event["success"] for event in events)


def test_unexpected_failure_before_transfer_is_failed_result() -> None:
    engine = _engine()
    engine.on_mutate(TRANSFER, RuntimeError("socket closed"))
    executor = TransferExecutor(engine)

    result = asyncio.run(executor.execute("T1", "P1", "B"))

    assert result.status is TransferStatus.FAILED
    assert result.message == "socket closed"
    assert result.partial is False
    assert executor.last_result is result
    assert executor.status is TransferStatus.FAILED


def test_unexpected_failure_after_transfer_is_partial() -> None:
    engine = FakeEngine()
    engine.on_query(CASE, RuntimeError("connection reset"))
    executor = TransferExecutor(engine)

    result = asyncio.run(executor.execute("T1", "P1", "B"))

    assert result.status is TransferStatus.FAILED
    assert result.ownership_transferred is True
    assert result.partial is True
    assert result.message == "connection reset"
    assert len(engine.mutations_for(TRANSFER)) == 1


def test_unreadable_case_payload_uses_generic_message() -> None:
    engine = FakeEngine()
    engine.on_query(CASE, {"enrollments": [{"enrollment": "E1", "events": []}]})

    result = asyncio.run(TransferExecutor(engine).execute("T1", "P1", "B"))

    assert result.partial is True
    assert result.message == "Transfer failed."
    assert result.error is not None
    assert result.error.technical_details.startswith("ValidationError")


def test_broken_telemetry_sink_does_not_interrupt_transfer(tmp_path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    telemetry = TelemetryLogger(app_name="tei_transfer", enabled=True, log_file=blocker / "telemetry.jsonl")
    engine = _engine()

    result = asyncio.run(TransferExecutor(engine, telemetry=telemetry).execute("T1", "P1", "B"))

    assert result.status is TransferStatus.SUCCESS
    assert len(engine.mutations_for(TRANSFER)) == 1
    assert len(engine.mutations_for("tracker")) == 1


def test_cancellation_propagates_and_clears_submitting() -> None:
    engine = _engine()
    executor = TransferExecutor(engine)

    async def scenario() -> None:
        gate = Gate({"status": "OK"})
        engine.on_mutate(TRANSFER, gate)
        running = asyncio.get_running_loop().create_task(executor.execute("T1", "P1", "B"))
        await gate.entered.wait()
        running.cancel()
        with pytest.raises(asyncio.CancelledError):
            await running

    asyncio.run(scenario())

    assert executor.submitting is False
    assert executor.status is TransferStatus.FAILED
