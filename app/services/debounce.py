# app/services/debounce.py
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

Callback = Callable[[], Awaitable[None]]


class Debouncer:
    """
    Cancellable, replaceable timer on the running asyncio loop.

    schedule() drops whatever was pending and starts the quiet period over,
    so a burst of edits produces exactly one call.
    """

    def __init__(self):
        self._handle: Optional[asyncio.TimerHandle] = None
        self._callback: Optional[Callback] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay_seconds: float, callback: Callback) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._callback = callback
        self._handle = loop.call_later(max(0.0, delay_seconds), self._fire)

    def cancel(self) -> bool:
        """Drop the pending call (if any). Running callbacks are left alone."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        self._callback = None
        return True

    async def flush(self) -> bool:
        """Run the pending call now and wait for it. False if nothing was pending."""
        callback = self._callback
        if not self.cancel() or callback is None:
            return False
        await callback()
        return True

    async def wait_idle(self) -> None:
        """Wait for the last fired callback to finish."""
        if self._task is not None:
            await asyncio.shield(self._task)

    def _fire(self) -> None:
        callback = self._callback
        self._handle = None
        self._callback = None
        if callback is not None:
            self._task = asyncio.ensure_future(callback())
