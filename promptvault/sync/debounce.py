"""
Debouncer — one cancellable delayed task that coalesces bursts of calls.

Each reschedule() restarts the delay and cancels the previous timer, so a
burst of edits produces a single callback run. Once the delay has elapsed the
callback is in flight and is never aborted; a later run waits for it first,
so runs never overlap and always complete in order.

Must be used from inside a running event loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class Debouncer:
    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]]) -> None:
        self.delay = delay
        self._callback = callback
        self._timer: asyncio.Task[None] | None = None
        self._inflight: asyncio.Task[None] | None = None

    @property
    def pending(self) -> bool:
        """A timer is counting down and the callback has not started yet."""
        return self._timer is not None and not self._timer.done()

    @property
    def running(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def reschedule(self) -> None:
        """(Re)start the countdown, dropping any timer that has not fired."""
        self.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._countdown())

    def cancel(self) -> bool:
        """Drop the pending timer. An in-flight run is left alone."""
        if self.pending:
            assert self._timer is not None
            self._timer.cancel()
            self._timer = None
            return True
        return False

    async def flush(self) -> bool:
        """Fire a pending run now and wait for all runs to finish.

        Returns True if a pending run was fired.
        """
        fired = False
        if self.cancel():
            self._fire()
            fired = True
        if self._inflight is not None:
            await asyncio.wait([self._inflight])
        return fired

    def hand_off(self, callback: Callable[[], Awaitable[None]]) -> bool:
        """Replace a pending run with ``callback`` and start it without waiting.

        The run is queued behind any in-flight one. Returns False, starting
        nothing, when no run was pending.
        """
        if not self.cancel():
            return False
        self._fire(callback)
        return True

    async def wait(self) -> None:
        """Wait until nothing is pending or running."""
        while self.pending or self.running:
            if self.pending:
                assert self._timer is not None
                await asyncio.wait([self._timer])
            if self.running:
                assert self._inflight is not None
                await asyncio.wait([self._inflight])

    async def _countdown(self) -> None:
        await asyncio.sleep(self.delay)
        self._timer = None
        self._fire()

    def _fire(self, callback: Callable[[], Awaitable[None]] | None = None) -> None:
        previous = self._inflight
        self._inflight = asyncio.get_running_loop().create_task(
            self._run(previous, callback or self._callback)
        )

    async def _run(
        self, previous: asyncio.Task[None] | None, callback: Callable[[], Awaitable[None]]
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            await callback()
        except Exception:
            logger.exception("Debounced callback failed")
