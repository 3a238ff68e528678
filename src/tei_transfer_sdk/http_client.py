from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter

from .config import ClientConfig
from .error_mapper import map_error
from .exceptions import TransportError
from .tracing import TRACE_HEADER, TraceContext


@dataclass
class LastOperation:
    module: str
    operation: str
    duration_ms: int
    result: str
    trace_id: str | None


def encode_params(params: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """The Web API only understands lowercase booleans."""
    if params is None:
        return None
    encoded: dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        encoded[key] = str(value).lower() if isinstance(value, bool) else value
    return encoded


@dataclass
class HttpClient:
    config: ClientConfig
    trace: TraceContext | None = None
    session: requests.Session | None = None
    last_operation: LastOperation | None = None

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()
            adapter = HTTPAdapter(
                pool_connections=self.config.max_connections,
                pool_maxsize=self.config.max_connections,
            )
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)
        if self.config.username and not self.config.api_token:
            self.session.auth = (self.config.username, self.config.password or "")

    def _build_url(self, path: str) -> str:
        return urljoin(self.config.api_root, path.lstrip("/"))

    def _auth_headers(self) -> dict[str, str]:
        if self.config.api_token:
            return {"Authorization": f"ApiToken {self.config.api_token}"}
        return {}

    def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
        params: Mapping[str, Any] | None = None,
        module: str = "unknown",
        operation: str = "unknown",
    ) -> dict[str, Any] | list[Any] | None:
        payload, _ = self.send(
            method,
            path,
            headers=headers,
            json_body=json_body,
            params=params,
            module=module,
            operation=operation,
        )
        return payload

    def send(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
        params: Mapping[str, Any] | None = None,
        module: str = "unknown",
        operation: str = "unknown",
    ) -> tuple[dict[str, Any] | list[Any] | None, LastOperation]:
        """Like ``request`` but also returns this call's own ``LastOperation``.

        ``last_operation`` is shared by every caller of the client, so
        concurrent callers read their outcome from the return value instead.
        """
        if self.session is None:
            raise RuntimeError("HTTP session not initialized")
        request_headers = {"Accept": "application/json", **self._auth_headers()}
        if headers:
            request_headers.update(headers)
        trace_context = self.trace or TraceContext()
        request_headers[TRACE_HEADER] = trace_context.ensure()

        normalized_method = method.upper()
        url = self._build_url(path)
        started = time.monotonic()
        try:
            response = self.session.request(
                method=normalized_method,
                url=url,
                headers=request_headers,
                json=json_body,
                params=encode_params(params),
                timeout=(self.config.connect_timeout_seconds, self.config.read_timeout_seconds),
                verify=self.config.verify_ssl,
            )
        except requests.RequestException as exc:
            self._record_operation(module, operation, started, "error", trace_context.trace_id)
            raise TransportError(
                code="TRANSPORT_ERROR",
                message=str(exc),
                details={"type": type(exc).__name__},
                trace_id=trace_context.trace_id,
                status_code=0,
                raw_payload=None,
            ) from exc

        trace_context.update_from_headers(response.headers)
        if response.ok:
            payload = response.json() if response.content else None
            return payload, self._record_operation(module, operation, started, "success", trace_context.trace_id)

        error_payload: Any
        try:
            error_payload = response.json()
        except ValueError:
            error_payload = {"message": response.text} if response.text else {}
        self._record_operation(module, operation, started, "error", trace_context.trace_id)
        raise map_error(
            response.status_code,
            error_payload if isinstance(error_payload, dict) else {},
            trace_context.trace_id,
        )

    def _record_operation(
        self, module: str, operation: str, started: float, result: str, trace_id: str | None
    ) -> LastOperation:
        operation_record = LastOperation(
            module=module,
            operation=operation,
            duration_ms=int((time.monotonic() - started) * 1000),
            result=result,
            trace_id=trace_id,
        )
        self.last_operation = operation_record
        return operation_record
