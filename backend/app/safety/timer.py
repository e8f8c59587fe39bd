"""
Monotonic repeating timer on the running asyncio loop.

Deadlines are computed from loop.time() (monotonic) and advance by a
fixed interval, so a slow callback does not accumulate drift. A callback
exception is logged and the timer keeps running. stop() may be called
from inside the callback.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RepeatingTimer:
    def __init__(self, interval_seconds: float = 1.0, *, name: str = "timer"):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval = interval_seconds
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._stopped = True
        self._generation = 0

    @property
    def is_running(self) -> bool:
        return not self._stopped

    def start(self, callback: Callable[[], None]) -> None:
        """Schedule callback every interval. Requires a running loop."""
        self.stop()
        loop = asyncio.get_running_loop()
        self._generation += 1
        self._task = loop.create_task(
            self._run(callback, self._generation), name=self.name,
        )
        # _run first checks this on the next loop iteration
        self._stopped = False

    def stop(self) -> None:
        self._stopped = True
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # Called from inside the callback: the loop exits on its own
        if task is not current:
            task.cancel()

    def _is_current(self, generation: int) -> bool:
        return not self._stopped and generation == self._generation

    async def _run(self, callback: Callable[[], None], generation: int) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while self._is_current(generation):
            deadline += self.interval
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            if not self._is_current(generation):
                break
            try:
                callback()
            except Exception:
                logger.exception("Timer %s callback failed", self.name)
