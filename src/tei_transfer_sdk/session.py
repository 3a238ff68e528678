from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .config import TransferSettings
from .debounce import Scheduler
from .engine import DataEngine
from .liveness import BackgroundTasks, EffectScope
from .location_resolver import CurrentLocationFinder, LocationResolver, ResolveContext
from .location_search import LocationSearch
from .logger import get_logger, log_action
from .models import HostContext, Location, locations_from_payload
from .queries import root_locations_query
from .selection import (
    ManualSelection,
    SearchSelection,
    Selection,
    SelectionState,
    reduce_selection,
    tree_selection,
)
from .telemetry import TelemetryLogger
from .transfer_executor import TransferExecutor, TransferResult, TransferStatus
from .transfer_validation import WARNING_NOTICES, TransferDecision, transfer_decision

UNKNOWN_LOCATION_LABEL = "Unknown org unit"
NO_ROOTS_MESSAGE = "No root org units were loaded. Check your user org unit access."
TREE_RENDER_FAILED_MESSAGE = "Failed to render org unit tree. Use manual entry instead."
NO_MATCHES_MESSAGE = "No matching org units."

logger = get_logger(__name__)


@dataclass(frozen=True)
class Notice:
    kind: str
    title: str
    message: str


@dataclass(frozen=True)
class SessionSnapshot:
    case_id: str
    program_id: str
    current_location_id: str
    description_label: str
    destination_id: str
    destination_label: str | None
    selected_paths: tuple[str, ...]
    root_ids: tuple[str, ...]
    manual_entry: bool
    search_text: str
    searching: bool
    search_results: tuple[Location, ...]
    no_matches: bool
    transfer_enabled: bool
    status: TransferStatus
    notices: tuple[Notice, ...]


class TransferSession:
    """State for one open transfer flow, from ``open`` until ``close``.

    Lookups run as background tasks owned by the session; ``settle`` waits for
    them. Nothing commits to session state after ``close``.
    """

    def __init__(
        self,
        engine: DataEngine,
        context: HostContext,
        settings: TransferSettings | None = None,
        *,
        scheduler: Scheduler | None = None,
        telemetry: TelemetryLogger | None = None,
    ) -> None:
        self.engine = engine
        self.context = context
        self.settings = settings or TransferSettings()
        self.current_location_id = context.current_location_id
        self.roots: list[Location] = []
        self.roots_loaded = False
        self.tree_error: str | None = None
        self.selection = SelectionState()
        self.status_message: str | None = None
        self.error_message: str | None = None
        self.last_result: TransferResult | None = None
        self.search = LocationSearch(
            engine,
            min_length=self.settings.min_search_length,
            page_size=self.settings.search_page_size,
            debounce_ms=self.settings.search_debounce_ms,
            scheduler=scheduler,
        )
        self.current_resolver = LocationResolver(engine, ResolveContext.CURRENT)
        self.destination_resolver = LocationResolver(engine, ResolveContext.DESTINATION)
        self.finder = CurrentLocationFinder(engine)
        self.executor = TransferExecutor(
            engine,
            cascade_enrollment_location=self.settings.cascade_enrollment_location,
            telemetry=telemetry,
        )
        self._roots_scope = EffectScope("roots")
        self._tasks = BackgroundTasks()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def destination_id(self) -> str:
        return self.selection.destination_id

    @property
    def description_label(self) -> str:
        current = self.current_resolver.location
        if current is not None and current.id == self.current_location_id and current.display_name:
            return current.display_name
        return self.current_location_id or UNKNOWN_LOCATION_LABEL

    @property
    def decision(self) -> TransferDecision:
        return transfer_decision(
            self.context.case_id,
            self.context.program_id,
            self.destination_id,
            self.current_location_id,
            submitting=self.executor.submitting,
        )

    def open(self) -> None:
        """Start the background lookups; call from inside the running loop."""
        self._tasks.spawn(self._load_roots())
        if self.current_location_id:
            self._tasks.spawn(self._resolve_current())
        elif self.context.case_id:
            self._tasks.spawn(self._find_current())

    def set_current_location_id(self, location_id: str) -> None:
        if self._closed or not location_id or location_id == self.current_location_id:
            return
        self.finder.cancel()
        self.current_location_id = location_id
        self._tasks.spawn(self._resolve_current())

    def set_search_text(self, text: str) -> None:
        if self._closed:
            return
        self.search.set_query(text)

    def select_from_tree(self, selected: Sequence[str], location_id: str) -> bool:
        return self._apply(tree_selection(selected, location_id))

    def pick_search_result(self, location: Location) -> bool:
        if not self._apply(SearchSelection(location)):
            return False
        self.search.accept_pick(location)
        return True

    def enter_destination(self, location_id: str) -> bool:
        return self._apply(ManualSelection(location_id))

    def report_tree_error(self, message: str | None = None) -> None:
        self.tree_error = message or TREE_RENDER_FAILED_MESSAGE
        log_action(logger, "session", "tree_error", None, "fallback_manual_entry")

    async def transfer(self) -> TransferResult | None:
        """Run the transfer if the current decision allows it; ``None`` when gated."""
        decision = self.decision
        if self._closed or not decision.enabled:
            log_action(
                logger,
                "session",
                "transfer",
                None,
                "blocked",
                warnings=[warning.value for warning in decision.warnings],
            )
            return None

        self.status_message = None
        self.error_message = None
        destination_id = self.destination_id
        result = await self.executor.execute(self.context.case_id, self.context.program_id, destination_id)
        if self._closed:
            return result
        self.last_result = result
        if result.status is TransferStatus.SUCCESS:
            self.status_message = result.message
        else:
            self.error_message = result.message
        if result.ownership_transferred:
            self.set_current_location_id(destination_id)
        return result

    async def settle(self) -> None:
        """Wait until every background lookup, including searches, has finished."""
        while len(self._tasks) or self.search.in_flight:
            await self._tasks.drain()
            await self.search.drain()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.search.close()
        self.current_resolver.close()
        self.destination_resolver.close()
        self.finder.close()
        self._roots_scope.close()
        self._tasks.cancel()

    def snapshot(self) -> SessionSnapshot:
        destination = self.destination_resolver.location
        return SessionSnapshot(
            case_id=self.context.case_id,
            program_id=self.context.program_id,
            current_location_id=self.current_location_id,
            description_label=self.description_label,
            destination_id=self.destination_id,
            destination_label=destination.label if destination is not None else None,
            selected_paths=self.selection.selected_paths,
            root_ids=tuple(location.id for location in self.roots),
            manual_entry=self.tree_error is not None,
            search_text=self.search.query,
            searching=self.search.is_searching,
            search_results=tuple(self.search.visible_results),
            no_matches=self.search.no_matches,
            transfer_enabled=self.decision.enabled,
            status=self.executor.status,
            notices=self._notices(),
        )

    def _notices(self) -> tuple[Notice, ...]:
        notices = [Notice("warning", *WARNING_NOTICES[warning]) for warning in self.decision.warnings]
        if self.search.error:
            notices.append(Notice("warning", "Search unavailable", self.search.error))
        elif self.search.no_matches:
            notices.append(Notice("info", "Search", NO_MATCHES_MESSAGE))
        if self.tree_error:
            notices.append(Notice("warning", "Org unit tree unavailable", self.tree_error))
        elif self.roots_loaded and not self.roots:
            notices.append(Notice("warning", "Org unit tree unavailable", NO_ROOTS_MESSAGE))
        if self.destination_resolver.error:
            notices.append(Notice("error", "Destination unavailable", self.destination_resolver.error))
        if self.error_message:
            title = self.last_result.title if self.last_result is not None else "Transfer failed"
            notices.append(Notice("error", title, self.error_message))
        if self.status_message:
            notices.append(Notice("success", "Success", self.status_message))
        return tuple(notices)

    def _apply(self, selection: Selection) -> bool:
        if self._closed or self.executor.submitting:
            log_action(logger, "session", "select_destination", None, "ignored")
            return False
        self.selection = reduce_selection(self.selection, selection)
        self._tasks.spawn(self.destination_resolver.resolve(self.selection.destination_id or None))
        return True

    async def _load_roots(self) -> None:
        token = self._roots_scope.begin()
        try:
            payload = await self.engine.query(root_locations_query())
            roots = locations_from_payload(payload.get("roots"))
        except Exception as exc:
            if token.live:
                log_action(
                    logger,
                    "session",
                    "load_roots",
                    getattr(exc, "trace_id", None),
                    "error",
                    status_code=getattr(exc, "status_code", None),
                    error=type(exc).__name__,
                )
                self.roots = []
                self.roots_loaded = True
            return
        if not token.live:
            return
        self.roots = roots
        self.roots_loaded = True

    async def _find_current(self) -> None:
        location_id = await self.finder.find(self.context.case_id)
        if location_id and not self._closed and not self.current_location_id:
            self.current_location_id = location_id
            await self._resolve_current()

    async def _resolve_current(self) -> None:
        await self.current_resolver.resolve(self.current_location_id or None)
