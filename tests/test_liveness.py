from __future__ import annotations

import asyncio

from tei_transfer_sdk.liveness import BackgroundTasks, EffectScope


def test_only_latest_token_is_live() -> None:
    scope = EffectScope("search")

    first = scope.begin()
    second = scope.begin()

    assert first.live is False
    assert second.live is True


def test_invalidate_and_close_stale_outstanding_tokens() -> None:
    scope = EffectScope("location")
    token = scope.begin()

    scope.invalidate()
    assert token.live is False

    fresh = scope.begin()
    scope.close()
    assert fresh.live is False
    assert scope.begin().live is False
    assert scope.closed is True


def test_background_tasks_drain_and_cancel() -> None:
    finished: list[str] = []

    async def work(name: str, delay: float) -> None:
        await asyncio.sleep(delay)
        finished.append(name)

    async def scenario() -> None:
        tasks = BackgroundTasks()
        tasks.spawn(work("fast", 0))
        await tasks.drain()
        assert len(tasks) == 0

        slow = tasks.spawn(work("slow", 10))
        tasks.cancel()
        await asyncio.gather(slow, return_exceptions=True)
        assert slow.cancelled() is True

    asyncio.run(scenario())

    assert finished == ["fast"]
