from __future__ import annotations

import asyncio
from typing import Callable, Generic, Protocol, TypeVar

T = TypeVar("T")


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def _loop_scheduler(delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay_seconds, callback)


class Debouncer(Generic[T]):
    """Holds ``value`` back until ``push`` has been quiet for ``delay_ms``.

    ``on_settle`` fires only when the settled value differs from the last one.
    After ``cancel`` no timer is pending and further pushes are ignored.
    """

    def __init__(
        self,
        initial: T,
        delay_ms: int,
        on_settle: Callable[[T], None] | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.value = initial
        self.delay_ms = delay_ms
        self.on_settle = on_settle
        self._scheduler = scheduler or _loop_scheduler
        self._latest = initial
        self._handle: TimerHandle | None = None
        self._cancelled = False

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def push(self, value: T) -> None:
        if self._cancelled:
            return
        self._latest = value
        self._clear_timer()
        self._handle = self._scheduler(self.delay_ms / 1000, self._settle)

    def flush(self) -> None:
        if self._cancelled or self._handle is None:
            return
        self._clear_timer()
        self._commit(self._latest)

    def reset(self, value: T) -> None:
        """Set both sides at once without notifying ``on_settle``."""
        self._clear_timer()
        self._latest = value
        self.value = value

    def cancel(self) -> None:
        self._clear_timer()
        self._cancelled = True

    def _settle(self) -> None:
        self._handle = None
        if self._cancelled:
            return
        self._commit(self._latest)

    def _commit(self, value: T) -> None:
        if value == self.value:
            return
        self.value = value
        if self.on_settle is not None:
            self.on_settle(value)

    def _clear_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
