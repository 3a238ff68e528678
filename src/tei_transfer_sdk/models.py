from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Location(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    id: str
    display_name: str = Field(default="", alias="displayName")
    path: str | None = None

    @property
    def label(self) -> str:
        return f"{self.display_name} ({self.id})"


class Event(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(alias="event")
    program_id: str | None = Field(default=None, alias="program")
    program_stage_id: str | None = Field(default=None, alias="programStage")
    location_id: str | None = Field(default=None, alias="orgUnit")
    status: str | None = None
    occurred_at: str | None = Field(default=None, alias="occurredAt")
    scheduled_at: str | None = Field(default=None, alias="scheduledAt")


class Enrollment(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(alias="enrollment")
    program_id: str = Field(alias="program")
    location_id: str | None = Field(default=None, alias="orgUnit")
    status: str | None = None
    occurred_at: str | None = Field(default=None, alias="occurredAt")
    enrolled_at: str | None = Field(default=None, alias="enrolledAt")
    events: list[Event] = Field(default_factory=list)


class Case(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = Field(default=None, alias="trackedEntity")
    type: str | None = Field(default=None, alias="trackedEntityType")
    current_location_id: str | None = Field(default=None, alias="orgUnit")
    enrollments: list[Enrollment] = Field(default_factory=list)

    def enrollment_for(self, program_id: str) -> Enrollment | None:
        return next((item for item in self.enrollments if item.program_id == program_id), None)


class HostContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    case_id: str = ""
    program_id: str = ""
    current_location_id: str = ""


def locations_from_payload(payload: object) -> list[Location]:
    """Org units out of a collection response, skipping entries without an id."""
    if not isinstance(payload, dict):
        return []
    rows = payload.get("organisationUnits")
    if not isinstance(rows, list):
        return []
    return [
        Location.model_validate(row)
        for row in rows
        if isinstance(row, dict) and isinstance(row.get("id"), str)
    ]
