"""Periodic task scheduling.

Controllers never touch the event loop directly: they ask a
:class:`Scheduler` for a named :class:`Ticker` and cancel it later.  The
production :class:`AsyncioScheduler` runs each ticker as one asyncio task;
tests substitute a scheduler whose tickers are fired by hand.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

_logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[None]]


class Ticker(Protocol):
    """Handle for one recurring action."""

    @property
    def name(self) -> str: ...

    @property
    def is_active(self) -> bool: ...

    def cancel(self) -> None:
        """Stop firing.  Cancelling twice is a silent no-op."""
        ...


class Scheduler(Protocol):
    """Factory for recurring actions."""

    def every(self, interval: float, callback: TickCallback, *, name: str) -> Ticker: ...


class AsyncioTicker:
    """A recurring action running as a single asyncio task.

    The callback is awaited before the next sleep starts, so one ticker
    never overlaps itself.  :meth:`cancel` never interrupts a callback that
    is already running (it may be doing network I/O, or may be the caller
    of ``cancel`` itself); the loop simply exits once it returns.
    """

    def __init__(self, interval: float, callback: TickCallback, *, name: str) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._interval = interval
        self._callback = callback
        self._name = name
        self._cancelled = False
        self._in_callback = False
        self._task: asyncio.Task[None] = asyncio.get_running_loop().create_task(self._run(), name=name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_active(self) -> bool:
        return not self._cancelled and not self._task.done()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_closed(self) -> bool:
        """Whether the underlying task has finished."""
        return self._task.done()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._in_callback or self._task.done():
            return
        if self._task is asyncio.current_task():
            return
        self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait for the underlying task to finish after :meth:`cancel`."""
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _run(self) -> None:
        while not self._cancelled:
            await asyncio.sleep(self._interval)
            if self._cancelled:
                return
            self._in_callback = True
            try:
                await self._callback()
            except Exception:
                # Faults stay inside the tick; the schedule keeps going.
                _logger.exception("Ticker %s callback failed", self._name)
            finally:
                self._in_callback = False


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self) -> None:
        self._tickers: list[AsyncioTicker] = []

    def every(self, interval: float, callback: TickCallback, *, name: str) -> AsyncioTicker:
        self._tickers = [t for t in self._tickers if not t.is_closed]
        ticker = AsyncioTicker(interval, callback, name=name)
        self._tickers.append(ticker)
        return ticker

    async def wait_closed(self) -> None:
        """Wait until every cancelled ticker's task has finished.

        Tickers that are still active are left running.
        """
        cancelled = [t for t in self._tickers if t.is_cancelled]
        for ticker in cancelled:
            await ticker.wait_closed()
        self._tickers = [t for t in self._tickers if not t.is_closed]
