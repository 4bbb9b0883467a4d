"""A pool of asyncio event loops, each running on its own thread."""

from __future__ import annotations

import asyncio
import itertools
import logging
import os
import threading
from types import TracebackType

logger = logging.getLogger(__name__)


class IOServicePool:
    """Hands out event loops round-robin; each loop runs until stop()."""

    def __init__(self, size: int | None = None) -> None:
        if size is None:
            size = os.cpu_count() or 1
        if size < 1:
            raise ValueError("pool size must be at least 1")
        self._loops = [asyncio.new_event_loop() for _ in range(size)]
        self._threads = [
            threading.Thread(
                target=self._run, args=(loop,), name=f"io-service-{index}", daemon=True
            )
            for index, loop in enumerate(self._loops)
        ]
        self._cycle = itertools.cycle(self._loops)
        self._lock = threading.Lock()
        self._stopped = False
        for thread in self._threads:
            thread.start()

    @staticmethod
    def _run(loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        loop.run_forever()

    def __len__(self) -> int:
        return len(self._loops)

    def get_loop(self) -> asyncio.AbstractEventLoop:
        """Return the next loop in turn."""
        with self._lock:
            if self._stopped:
                raise RuntimeError("io service pool is stopped")
            return next(self._cycle)

    def stop(self) -> None:
        """Stop every loop, wait for its thread and close it. Safe to repeat."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        for loop in self._loops:
            loop.call_soon_threadsafe(loop.stop)
        for thread in self._threads:
            thread.join()
        for loop in self._loops:
            loop.close()
        logger.info("io service pool stopped")

    def __enter__(self) -> IOServicePool:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()