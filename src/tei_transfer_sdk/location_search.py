from __future__ import annotations

from .config import DEFAULT_MIN_SEARCH_LENGTH, DEFAULT_SEARCH_DEBOUNCE_MS, DEFAULT_SEARCH_PAGE_SIZE
from .debounce import Debouncer, Scheduler
from .engine import DataEngine
from .liveness import BackgroundTasks, EffectScope
from .logger import get_logger, log_action
from .models import Location, locations_from_payload
from .queries import location_search_query
from .ui_errors import SEARCH_FAILED_MESSAGE

logger = get_logger(__name__)


class LocationSearch:
    """Debounced org unit lookup by partial display name.

    Typing goes through ``set_query``; once the text settles a single request
    is issued, and only the latest issued request may write ``results``.
    """

    def __init__(
        self,
        engine: DataEngine,
        *,
        min_length: int = DEFAULT_MIN_SEARCH_LENGTH,
        page_size: int = DEFAULT_SEARCH_PAGE_SIZE,
        debounce_ms: int = DEFAULT_SEARCH_DEBOUNCE_MS,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.engine = engine
        self.min_length = min_length
        self.page_size = page_size
        self.query = ""
        self.results: list[Location] = []
        self.error: str | None = None
        self.is_searching = False
        self.picked = False
        self._scope = EffectScope("search")
        self._tasks = BackgroundTasks()
        self._debouncer: Debouncer[str] = Debouncer("", debounce_ms, on_settle=self._on_settle, scheduler=scheduler)

    @property
    def debounced_query(self) -> str:
        return self._debouncer.value

    @property
    def is_active(self) -> bool:
        return len(self.debounced_query.strip()) >= self.min_length

    @property
    def visible_results(self) -> list[Location]:
        if not self.is_active or self.is_searching:
            return []
        return list(self.results)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    @property
    def no_matches(self) -> bool:
        if self.picked:
            return False
        return self.is_active and not self.is_searching and not self.results and self.error is None

    def set_query(self, text: str) -> None:
        self.query = text
        self.picked = False
        self._debouncer.push(text)

    def flush(self) -> None:
        self._debouncer.flush()

    def accept_pick(self, location: Location) -> None:
        """Show the picked name in the field and close the result list without searching again."""
        self._scope.invalidate()
        self._debouncer.reset(location.display_name)
        self.query = location.display_name
        self.picked = True
        self.results = []
        self.error = None
        self.is_searching = False

    async def run(self, text: str) -> None:
        trimmed = text.strip()
        token = self._scope.begin()
        if len(trimmed) < self.min_length:
            self.results = []
            self.error = None
            self.is_searching = False
            return

        self.is_searching = True
        self.error = None
        try:
            payload = await self.engine.query(location_search_query(trimmed, self.page_size))
            results = locations_from_payload(payload.get("orgUnits"))
        except Exception as exc:
            if not token.live:
                return
            log_action(
                logger,
                "search",
                "location_search",
                getattr(exc, "trace_id", None),
                "error",
                status_code=getattr(exc, "status_code", None),
                error=type(exc).__name__,
            )
            self.error = SEARCH_FAILED_MESSAGE
            self.results = []
        else:
            if not token.live:
                return
            self.results = results
        finally:
            if token.live:
                self.is_searching = False

    async def drain(self) -> None:
        await self._tasks.drain()

    def close(self) -> None:
        self._debouncer.cancel()
        self._scope.close()
        self._tasks.cancel()

    def _on_settle(self, text: str) -> None:
        self._tasks.spawn(self.run(text))
