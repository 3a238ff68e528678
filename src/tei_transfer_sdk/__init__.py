from .config import ClientConfig, ConfigError, TransferSettings, load_config, load_settings
from .debounce import Debouncer
from .engine import DataEngine, HttpDataEngine
from .exceptions import (
    ApiError,
    AuthError,
    ConflictError,
    NotFoundError,
    PermissionError,
    ServerError,
    TransportError,
    ValidationError,
)
from .host_context import resolve_host_context
from .http_client import HttpClient
from .liveness import EffectScope, EffectToken
from .location_resolver import CurrentLocationFinder, LocationResolver, ResolveContext
from .location_search import LocationSearch
from .models import Case, Enrollment, Event, HostContext, Location
from .selection import ManualSelection, SearchSelection, SelectionState, TreeSelection, reduce_selection
from .session import Notice, SessionSnapshot, TransferSession
from .tracing import TraceContext
from .transfer_executor import TransferExecutor, TransferResult, TransferStatus
from .transfer_validation import TransferDecision, TransferWarning, transfer_decision

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "AuthError",
    "Case",
    "ClientConfig",
    "ConfigError",
    "ConflictError",
    "CurrentLocationFinder",
    "DataEngine",
    "Debouncer",
    "EffectScope",
    "EffectToken",
    "Enrollment",
    "Event",
    "HostContext",
    "HttpClient",
    "HttpDataEngine",
    "Location",
    "LocationResolver",
    "LocationSearch",
    "ManualSelection",
    "NotFoundError",
    "Notice",
    "PermissionError",
    "ResolveContext",
    "SearchSelection",
    "SelectionState",
    "ServerError",
    "SessionSnapshot",
    "TraceContext",
    "TransferDecision",
    "TransferExecutor",
    "TransferResult",
    "TransferSession",
    "TransferSettings",
    "TransferStatus",
    "TransferWarning",
    "TransportError",
    "TreeSelection",
    "ValidationError",
    "load_config",
    "load_settings",
    "reduce_selection",
    "resolve_host_context",
    "transfer_decision",
]
