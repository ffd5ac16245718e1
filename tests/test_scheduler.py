from __future__ import annotations

import asyncio
import logging

import pytest

from tripemu.scheduler import AsyncioScheduler, AsyncioTicker

_TICK = 0.01


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(_TICK)


class TestAsyncioTicker:
    @pytest.mark.asyncio
    async def test_fires_repeatedly(self) -> None:
        calls = 0

        async def tick() -> None:
            nonlocal calls
            calls += 1

        ticker = AsyncioScheduler().every(_TICK, tick, name="t")
        assert ticker.name == "t"
        await _wait_for(lambda: calls >= 3)
        ticker.cancel()
        await ticker.wait_closed()
        assert not ticker.is_active

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self) -> None:
        async def tick() -> None:
            return None

        ticker = AsyncioTicker(_TICK, tick, name="t")
        ticker.cancel()
        ticker.cancel()
        await ticker.wait_closed()
        assert not ticker.is_active

    @pytest.mark.asyncio
    async def test_self_cancel_lets_callback_finish(self) -> None:
        events: list[str] = []
        holder: dict[str, AsyncioTicker] = {}

        async def tick() -> None:
            events.append("begin")
            holder["ticker"].cancel()
            await asyncio.sleep(0)
            events.append("end")

        holder["ticker"] = AsyncioTicker(_TICK, tick, name="self-cancel")
        await holder["ticker"].wait_closed()

        assert events == ["begin", "end"]

    @pytest.mark.asyncio
    async def test_external_cancel_waits_for_running_callback(self) -> None:
        entered = asyncio.Event()
        release = asyncio.Event()
        finished: list[bool] = []

        async def tick() -> None:
            entered.set()
            await release.wait()
            finished.append(True)

        ticker = AsyncioTicker(_TICK, tick, name="slow")
        await entered.wait()
        ticker.cancel()
        release.set()
        await ticker.wait_closed()

        assert finished == [True]

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_stop_schedule(self, caplog: pytest.LogCaptureFixture) -> None:
        calls = 0

        async def tick() -> None:
            nonlocal calls
            calls += 1
            raise RuntimeError("flaky")

        with caplog.at_level(logging.ERROR, logger="tripemu.scheduler"):
            ticker = AsyncioTicker(_TICK, tick, name="flaky")
            await _wait_for(lambda: calls >= 2)
            ticker.cancel()
            await ticker.wait_closed()

        assert "Ticker flaky callback failed" in caplog.text

    @pytest.mark.asyncio
    async def test_rejects_non_positive_interval(self) -> None:
        async def tick() -> None:
            return None

        with pytest.raises(ValueError):
            AsyncioTicker(0, tick, name="bad")


class TestAsyncioScheduler:
    @pytest.mark.asyncio
    async def test_wait_closed_waits_for_cancelled_tickers_only(self) -> None:
        async def tick() -> None:
            return None

        scheduler = AsyncioScheduler()
        stopped = scheduler.every(60, tick, name="stopped")
        running = scheduler.every(60, tick, name="running")
        stopped.cancel()

        await scheduler.wait_closed()

        assert stopped.is_closed
        assert running.is_active
        running.cancel()
        await scheduler.wait_closed()
        assert running.is_closed

    @pytest.mark.asyncio
    async def test_wait_closed_lets_running_callback_finish(self) -> None:
        entered = asyncio.Event()
        release = asyncio.Event()
        finished: list[bool] = []

        async def tick() -> None:
            entered.set()
            await release.wait()
            finished.append(True)

        scheduler = AsyncioScheduler()
        ticker = scheduler.every(_TICK, tick, name="slow")
        await entered.wait()
        ticker.cancel()
        closing = asyncio.create_task(scheduler.wait_closed())
        await asyncio.sleep(0)
        assert not closing.done()

        release.set()
        await closing
        assert finished == [True]
