"""Query and mutation specs for the Web API resources used by a transfer."""
from __future__ import annotations

from typing import Any, Literal

TRANSFER_RESOURCE = "tracker/ownership/transfer"
TRACKER_RESOURCE = "tracker"
CASE_CASCADE_FIELDS = (
    "trackedEntityType,orgUnit,enrollments[enrollment,program,orgUnit,status,occurredAt,enrolledAt,"
    "events[event,program,programStage,orgUnit,status,occurredAt,scheduledAt]]"
)
LOCATION_FIELDS = "id,displayName"
LOCATION_PATH_FIELDS = "id,displayName,path"

CaseParamName = Literal["trackedEntity", "trackedEntityInstance"]
PRIMARY_CASE_PARAM: CaseParamName = "trackedEntity"
LEGACY_CASE_PARAM: CaseParamName = "trackedEntityInstance"


def root_locations_query() -> dict[str, dict[str, Any]]:
    return {
        "roots": {
            "resource": "organisationUnits",
            "params": {"filter": "level:eq:1", "fields": LOCATION_PATH_FIELDS},
        }
    }


def case_location_query(case_id: str) -> dict[str, dict[str, Any]]:
    return {"tei": {"resource": f"tracker/trackedEntities/{case_id}", "params": {"fields": "orgUnit"}}}


def location_query(location_id: str, fields: str = LOCATION_FIELDS) -> dict[str, dict[str, Any]]:
    return {"ou": {"resource": f"organisationUnits/{location_id}", "params": {"fields": fields}}}


def location_search_query(text: str, page_size: int) -> dict[str, dict[str, Any]]:
    return {
        "orgUnits": {
            "resource": "organisationUnits",
            "params": {
                "filter": f"displayName:ilike:{text}",
                "fields": LOCATION_FIELDS,
                "paging": True,
                "pageSize": page_size,
            },
        }
    }


def case_cascade_query(case_id: str) -> dict[str, dict[str, Any]]:
    return {"tei": {"resource": f"tracker/trackedEntities/{case_id}", "params": {"fields": CASE_CASCADE_FIELDS}}}


def ownership_transfer_mutation(
    case_id: str,
    program_id: str,
    destination_id: str,
    param_name: CaseParamName = PRIMARY_CASE_PARAM,
) -> dict[str, Any]:
    return {
        "resource": TRANSFER_RESOURCE,
        "type": "update",
        "params": {param_name: case_id, "program": program_id, "ou": destination_id},
        "data": {"trackedEntity": case_id, "program": program_id, "orgUnit": destination_id},
    }


def _tracker_import(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "resource": TRACKER_RESOURCE,
        "type": "create",
        "data": data,
        "params": {"async": False, "importStrategy": "UPDATE"},
    }


def enrollment_cascade_mutation(
    enrollment_id: str,
    program_id: str,
    case_id: str,
    destination_id: str,
) -> dict[str, Any]:
    return _tracker_import(
        {
            "enrollments": [
                {
                    "enrollment": enrollment_id,
                    "program": program_id,
                    "trackedEntity": case_id,
                    "orgUnit": destination_id,
                }
            ]
        }
    )


def events_cascade_mutation(events: list[dict[str, Any]]) -> dict[str, Any]:
    return _tracker_import({"events": events})
