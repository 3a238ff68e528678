"""The query/mutate capability the orchestration consumes.

Query specs map an alias to ``{"resource": ..., "params": ...}`` and resolve
to ``{alias: payload}``. Mutation specs carry ``resource``, ``type``
(``create``, ``update``, ``replace`` or ``delete``), optional ``params`` and
optional ``data``. Both coroutines raise :class:`ApiError` on failure.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from .http_client import HttpClient, LastOperation
from .logger import get_logger, log_action

QuerySpec = Mapping[str, Mapping[str, Any]]
MutationSpec = Mapping[str, Any]

MUTATION_METHODS = {
    "create": "POST",
    "update": "PUT",
    "replace": "PUT",
    "delete": "DELETE",
}

logger = get_logger(__name__)


def _log(module: str, action: str, operation: LastOperation) -> None:
    log_action(
        logger,
        module=module,
        action=action,
        trace_id=operation.trace_id,
        outcome=operation.result,
        duration_ms=operation.duration_ms,
    )


class DataEngine(Protocol):
    async def query(self, query: QuerySpec) -> dict[str, Any]: ...

    async def mutate(self, mutation: MutationSpec) -> Any: ...


@dataclass
class HttpDataEngine:
    http: HttpClient

    async def query(self, query: QuerySpec) -> dict[str, Any]:
        results: dict[str, Any] = {}
        for alias, spec in query.items():
            payload, operation = await asyncio.to_thread(
                self.http.send,
                "GET",
                spec["resource"],
                params=spec.get("params"),
                module="query",
                operation=alias,
            )
            results[alias] = payload
            _log("query", alias, operation)
        return results

    async def mutate(self, mutation: MutationSpec) -> Any:
        mutation_type = mutation.get("type", "create")
        method = MUTATION_METHODS.get(mutation_type)
        if method is None:
            raise ValueError(f"Unsupported mutation type: {mutation_type!r}")
        payload, operation = await asyncio.to_thread(
            self.http.send,
            method,
            mutation["resource"],
            params=mutation.get("params"),
            json_body=mutation.get("data"),
            module="mutate",
            operation=mutation_type,
        )
        _log("mutate", str(mutation["resource"]), operation)
        return payload
