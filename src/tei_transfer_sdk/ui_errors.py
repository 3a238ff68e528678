from __future__ import annotations

from dataclasses import dataclass

import pydantic

from .exceptions import ApiError

TRANSFER_FAILED_MESSAGE = "Transfer failed."
SEARCH_FAILED_MESSAGE = "Failed to search org units."
LOCATION_FAILED_MESSAGE = "Failed to load org unit."


@dataclass(frozen=True)
class UserFacingError:
    message: str
    details: str | None = None
    trace_id: str | None = None

    @property
    def technical_details(self) -> str | None:
        if self.details:
            return self.details
        return None


def server_message(exc: BaseException) -> str | None:
    if not isinstance(exc, ApiError):
        return None
    payload = exc.raw_payload
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


def failure_message(exc: BaseException, fallback: str = TRANSFER_FAILED_MESSAGE) -> str:
    """Server-supplied message first, then the exception's own text, then ``fallback``.

    An ``ApiError`` without a server message carries only our placeholder
    text, and a payload validation dump is not readable, so both go straight
    to the fallback.
    """
    message = server_message(exc)
    if message:
        return message
    if isinstance(exc, (ApiError, pydantic.ValidationError)):
        return fallback
    text = str(exc).strip()
    return text or fallback


def to_user_facing_error(exc: BaseException, fallback: str = TRANSFER_FAILED_MESSAGE) -> UserFacingError:
    message = failure_message(exc, fallback)
    if not isinstance(exc, ApiError):
        return UserFacingError(message=message, details=f"{type(exc).__name__}: {exc}")
    details = f"{exc.code} (HTTP {exc.status_code})"
    return UserFacingError(message=message, details=details, trace_id=exc.trace_id)


def is_unknown_param_error(exc: BaseException, param_name: str) -> bool:
    if not isinstance(exc, ApiError) or not exc.is_client_error:
        return False
    message = failure_message(exc).lower()
    return "unknown parameter" in message or ("parameter" in message and param_name.lower() in message)
