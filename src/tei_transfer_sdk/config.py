from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable

from dotenv import load_dotenv

from .feature_flags import CASCADE_ENROLLMENT_LOCATION, FeatureFlagStore

DEFAULT_MIN_SEARCH_LENGTH = 2
DEFAULT_SEARCH_PAGE_SIZE = 15
DEFAULT_SEARCH_DEBOUNCE_MS = 300


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ClientConfig:
    env_name: str
    api_base_url: str
    api_token: str | None = None
    username: str | None = None
    password: str | None = None
    connect_timeout_seconds: float = 5.0
    read_timeout_seconds: float = 30.0
    max_connections: int = 10
    verify_ssl: bool = True

    @property
    def normalized_env(self) -> str:
        return self.env_name.lower().strip()

    @property
    def api_root(self) -> str:
        return f"{self.api_base_url.rstrip('/')}/api/"


@dataclass(frozen=True)
class TransferSettings:
    min_search_length: int = DEFAULT_MIN_SEARCH_LENGTH
    search_page_size: int = DEFAULT_SEARCH_PAGE_SIZE
    search_debounce_ms: int = DEFAULT_SEARCH_DEBOUNCE_MS
    cascade_enrollment_location: bool = False


def _require(values: dict[str, str | None], required: Iterable[str]) -> None:
    missing = [key for key in required if not values.get(key)]
    if missing:
        raise ConfigError(f"Missing required config values: {', '.join(missing)}")


def _coerce_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected a number, got {raw!r}") from exc


def _read_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected an integer, got {raw!r}") from exc


def _validate(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def _optional(name: str) -> str | None:
    value = (os.getenv(name) or "").strip()
    return value or None


def load_config(env_file: str | None = None) -> ClientConfig:
    """Load transport config from environment with optional .env override."""
    load_dotenv(env_file)

    env_name = (os.getenv("TEI_TRANSFER_ENV") or "dev").strip()
    env_key = env_name.upper()

    api_base_url = (
        (os.getenv(f"TEI_TRANSFER_API_BASE_URL_{env_key}") or "").strip()
        or (os.getenv("TEI_TRANSFER_API_BASE_URL") or "").strip()
    )

    connect_timeout_seconds = _read_float("TEI_TRANSFER_CONNECT_TIMEOUT_SECONDS", "5")
    _validate(
        connect_timeout_seconds > 0,
        (
            "Invalid TEI_TRANSFER_CONNECT_TIMEOUT_SECONDS: "
            f"expected > 0, got {connect_timeout_seconds}"
        ),
    )

    read_timeout_seconds = _read_float("TEI_TRANSFER_READ_TIMEOUT_SECONDS", "30")
    _validate(
        read_timeout_seconds > 0,
        f"Invalid TEI_TRANSFER_READ_TIMEOUT_SECONDS: expected > 0, got {read_timeout_seconds}",
    )

    max_connections = _read_int("TEI_TRANSFER_MAX_CONNECTIONS", "10")
    _validate(
        max_connections >= 1,
        f"Invalid TEI_TRANSFER_MAX_CONNECTIONS: expected >= 1, got {max_connections}",
    )

    verify_ssl = _coerce_bool(os.getenv("TEI_TRANSFER_VERIFY_SSL"), True)

    values = {"TEI_TRANSFER_API_BASE_URL": api_base_url}
    _require(values, ["TEI_TRANSFER_API_BASE_URL"])

    api_token = _optional("TEI_TRANSFER_API_TOKEN")
    username = _optional("TEI_TRANSFER_USERNAME")
    password = _optional("TEI_TRANSFER_PASSWORD")
    if username and not password:
        raise ConfigError("Missing required config values: TEI_TRANSFER_PASSWORD")

    return ClientConfig(
        env_name=env_name,
        api_base_url=api_base_url.rstrip("/"),
        api_token=api_token,
        username=username,
        password=password,
        connect_timeout_seconds=connect_timeout_seconds,
        read_timeout_seconds=read_timeout_seconds,
        max_connections=max_connections,
        verify_ssl=verify_ssl,
    )


def load_settings(env_file: str | None = None, flags: FeatureFlagStore | None = None) -> TransferSettings:
    """Load orchestration tunables; none of them is required."""
    load_dotenv(env_file)

    min_search_length = _read_int("TEI_TRANSFER_MIN_SEARCH_LENGTH", str(DEFAULT_MIN_SEARCH_LENGTH))
    _validate(
        min_search_length >= 2,
        f"Invalid TEI_TRANSFER_MIN_SEARCH_LENGTH: expected >= 2, got {min_search_length}",
    )

    search_page_size = _read_int("TEI_TRANSFER_SEARCH_PAGE_SIZE", str(DEFAULT_SEARCH_PAGE_SIZE))
    _validate(
        search_page_size >= 1,
        f"Invalid TEI_TRANSFER_SEARCH_PAGE_SIZE: expected >= 1, got {search_page_size}",
    )

    search_debounce_ms = _read_int("TEI_TRANSFER_SEARCH_DEBOUNCE_MS", str(DEFAULT_SEARCH_DEBOUNCE_MS))
    _validate(
        search_debounce_ms >= 0,
        f"Invalid TEI_TRANSFER_SEARCH_DEBOUNCE_MS: expected >= 0, got {search_debounce_ms}",
    )

    store = flags or FeatureFlagStore()
    return TransferSettings(
        min_search_length=min_search_length,
        search_page_size=search_page_size,
        search_debounce_ms=search_debounce_ms,
        cascade_enrollment_location=store.enabled(CASCADE_ENROLLMENT_LOCATION),
    )
