from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TransferWarning(str, Enum):
    MISSING_CASE_CONTEXT = "missing_case_context"
    MISSING_PROGRAM_CONTEXT = "missing_program_context"
    DESTINATION_UNCHANGED = "destination_unchanged"


WARNING_NOTICES: dict[TransferWarning, tuple[str, str]] = {
    TransferWarning.MISSING_CASE_CONTEXT: (
        "Missing TEI context",
        "No tracked entity was provided by Capture. Open this widget from a TEI enrollment.",
    ),
    TransferWarning.MISSING_PROGRAM_CONTEXT: (
        "Missing program context",
        "No program was provided by Capture. Open this widget from a program enrollment.",
    ),
    TransferWarning.DESTINATION_UNCHANGED: (
        "Destination org unit unchanged",
        "Choose a different org unit to transfer this case.",
    ),
}


@dataclass(frozen=True)
class TransferDecision:
    enabled: bool
    warnings: tuple[TransferWarning, ...]

    @property
    def same_location(self) -> bool:
        return TransferWarning.DESTINATION_UNCHANGED in self.warnings


def transfer_decision(
    case_id: str | None,
    program_id: str | None,
    destination_id: str | None,
    current_location_id: str | None,
    *,
    submitting: bool,
) -> TransferDecision:
    destination = (destination_id or "").strip()
    same_location = bool(current_location_id and destination and current_location_id == destination)

    warnings: list[TransferWarning] = []
    if not case_id:
        warnings.append(TransferWarning.MISSING_CASE_CONTEXT)
    if not program_id:
        warnings.append(TransferWarning.MISSING_PROGRAM_CONTEXT)
    if same_location:
        warnings.append(TransferWarning.DESTINATION_UNCHANGED)

    enabled = bool(case_id and program_id and destination and not same_location and not submitting)
    return TransferDecision(enabled=enabled, warnings=tuple(warnings))
