from __future__ import annotations

from typing import Any, Mapping

from .models import HostContext


def _nested_id(props: Mapping[str, Any], key: str, field: str = "id") -> str:
    value = props.get(key)
    if isinstance(value, Mapping):
        nested = value.get(field)
        if isinstance(nested, str):
            return nested
    return ""


def _first(*candidates: Any) -> str:
    for candidate in candidates:
        if isinstance(candidate, str) and candidate:
            return candidate
    return ""


def resolve_host_context(props: Mapping[str, Any]) -> HostContext:
    """Pick case, program and current org unit out of widget props.

    Hosts disagree on prop names, so each value has a chain of candidates;
    anything missing becomes an empty string.
    """
    return HostContext(
        case_id=_first(props.get("trackedEntityId"), props.get("teiId"), _nested_id(props, "trackedEntity")),
        program_id=_first(
            props.get("programId"),
            _nested_id(props, "program"),
            _nested_id(props, "enrollment", "program"),
        ),
        current_location_id=_first(props.get("orgUnitId"), _nested_id(props, "enrollment", "orgUnit")),
    )
