"""Generation counters that decide whether an async result may still commit.

Every effect owns an :class:`EffectScope`. Starting a request draws a token;
starting another, invalidating the scope, or closing it makes all earlier
tokens stale, so only the most recently issued request can commit.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Coroutine


@dataclass(frozen=True)
class EffectToken:
    scope: EffectScope
    generation: int

    @property
    def live(self) -> bool:
        return self.scope.is_current(self.generation)


class EffectScope:
    def __init__(self, name: str) -> None:
        self.name = name
        self._generation = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def begin(self) -> EffectToken:
        self._generation += 1
        return EffectToken(self, self._generation)

    def invalidate(self) -> None:
        self._generation += 1

    def close(self) -> None:
        self._closed = True
        self._generation += 1

    def is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation


class BackgroundTasks:
    """Tasks spawned by one owner, drained together and cancelled on teardown."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def cancel(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
