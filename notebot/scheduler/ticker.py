"""TickSource — a timer thread that feeds tick messages to the event loop.

The timer runs on its own OS thread so a blocked or busy event loop cannot
delay the clock itself. The only shared object is the asyncio queue, and it
is only ever written through ``loop.call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Literal

logger = logging.getLogger(__name__)

TICK_INTERVAL_SECONDS = 30.0

TickMessage = Literal["started", "tick"]


class TickSource:
    """Posts ``"started"`` once, then ``"tick"`` every *interval* seconds.

    Args:
        loop: Event loop that owns *queue*.
        queue: Destination for tick messages.
        interval: Seconds between ticks.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        queue: asyncio.Queue[TickMessage],
        interval: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        self._loop = loop
        self._queue = queue
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="cron-tick", daemon=True)
        self._thread.start()
        logger.debug("Tick source started (interval=%.1fs)", self._interval)

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the thread to exit and wait briefly for it."""
        self._stop.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None

    def _run(self) -> None:
        self._emit("started")
        while not self._stop.wait(self._interval):
            if not self._emit("tick"):
                break

    def _emit(self, message: TickMessage) -> bool:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, message)
        except RuntimeError:
            # Event loop already closed.
            logger.debug("Tick source: loop closed, exiting")
            return False
        return True
