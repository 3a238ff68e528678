from __future__ import annotations

from enum import Enum

from .engine import DataEngine
from .liveness import EffectScope
from .logger import get_logger, log_action
from .models import Location
from .queries import LOCATION_FIELDS, LOCATION_PATH_FIELDS, case_location_query, location_query
from .ui_errors import LOCATION_FAILED_MESSAGE, failure_message

logger = get_logger(__name__)


class ResolveContext(str, Enum):
    CURRENT = "current"
    DESTINATION = "destination"


class LocationResolver:
    """Fetches display attributes for one org unit id at a time.

    In the ``CURRENT`` context a failed lookup only leaves ``location`` empty
    so callers can show the raw id. In the ``DESTINATION`` context the failure
    message is kept in ``error``.
    """

    def __init__(self, engine: DataEngine, context: ResolveContext, fields: str | None = None) -> None:
        self.engine = engine
        self.context = context
        self.fields = fields or (LOCATION_FIELDS if context is ResolveContext.CURRENT else LOCATION_PATH_FIELDS)
        self.location_id: str | None = None
        self.location: Location | None = None
        self.error: str | None = None
        self._scope = EffectScope(f"location:{context.value}")

    async def resolve(self, location_id: str | None) -> Location | None:
        token = self._scope.begin()
        self.location_id = location_id or None
        self.error = None
        if self.location is not None and self.location.id != self.location_id:
            self.location = None
        if not self.location_id:
            return None

        try:
            payload = await self.engine.query(location_query(self.location_id, self.fields))
            data = payload.get("ou")
            location = Location.model_validate(data) if isinstance(data, dict) and data.get("id") else None
        except Exception as exc:
            if not token.live:
                return None
            log_action(
                logger,
                "resolver",
                f"resolve_{self.context.value}",
                getattr(exc, "trace_id", None),
                "error",
                status_code=getattr(exc, "status_code", None),
                error=type(exc).__name__,
            )
            self.location = None
            if self.context is ResolveContext.DESTINATION:
                self.error = failure_message(exc, LOCATION_FAILED_MESSAGE)
            return None

        if not token.live:
            return None
        self.location = location
        return self.location

    def close(self) -> None:
        self._scope.close()


class CurrentLocationFinder:
    """Reads the case's org unit when the host did not pass one.

    This is a convenience lookup: failures leave ``location_id`` unset.
    """

    def __init__(self, engine: DataEngine) -> None:
        self.engine = engine
        self.location_id: str | None = None
        self._scope = EffectScope("current-location")

    async def find(self, case_id: str) -> str | None:
        token = self._scope.begin()
        try:
            payload = await self.engine.query(case_location_query(case_id))
            data = payload.get("tei")
        except Exception as exc:
            if token.live:
                log_action(
                    logger,
                    "resolver",
                    "find_current_location",
                    getattr(exc, "trace_id", None),
                    "ignored",
                    error=type(exc).__name__,
                )
            return None

        if not token.live:
            return None
        location_id = data.get("orgUnit") if isinstance(data, dict) else None
        if isinstance(location_id, str) and location_id:
            self.location_id = location_id
            return location_id
        return None

    def cancel(self) -> None:
        self._scope.invalidate()

    def close(self) -> None:
        self._scope.close()
