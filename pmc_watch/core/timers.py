"""Timer handles owned by exactly one component.

Both timers run on the asyncio event loop that is current when they start.
``cancel()`` is safe to call any number of times.
"""

from __future__ import annotations

import asyncio
from typing import Callable


class OneShotTimer:
    """Fires ``callback`` once after ``delay`` seconds unless cancelled."""

    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def start(self, delay: float, callback: Callable[[], None]) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()

        def fire() -> None:
            self._handle = None
            callback()

        self._handle = loop.call_later(delay, fire)

    def cancel(self) -> bool:
        """Cancel the pending fire. Returns True if something was cancelled."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True


class IntervalTimer:
    """Fires ``callback`` every ``interval`` seconds until cancelled.

    The first fire happens one interval after ``start()``.
    """

    def __init__(self) -> None:
        self._timer = OneShotTimer()
        self._interval = 0.0
        self._callback: Callable[[], None] | None = None

    @property
    def running(self) -> bool:
        return self._timer.pending

    def start(self, interval: float, callback: Callable[[], None]) -> None:
        self._interval = interval
        self._callback = callback
        self._timer.start(interval, self._tick)

    def _tick(self) -> None:
        callback = self._callback
        # Re-arm before running so the callback may cancel the timer.
        self._timer.start(self._interval, self._tick)
        if callback is not None:
            callback()

    def cancel(self) -> bool:
        self._callback = None
        return self._timer.cancel()
