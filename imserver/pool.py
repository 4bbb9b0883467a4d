"""Thread-safe pools of reusable connections."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Callable, Generic, Iterable, Iterator, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Connections used within this many seconds are not pinged.
KEEPALIVE_INTERVAL = 5


class ConnectionPool(Generic[T]):
    """A FIFO pool; acquire() blocks until a connection is free or the pool closes."""

    def __init__(self, connections: Iterable[T]) -> None:
        self._idle: deque[T] = deque(connections)
        self._lock = threading.Lock()
        self._available = threading.Condition(self._lock)
        self._closed = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._idle)

    @property
    def closed(self) -> bool:
        return self._closed

    def acquire(self) -> T:
        """Take the oldest idle connection, waiting for one if none is free.

        Raises RuntimeError once the pool is closed.
        """
        with self._available:
            self._available.wait_for(lambda: self._closed or bool(self._idle))
            if self._closed:
                raise RuntimeError("connection pool is closed")
            return self._idle.popleft()

    def release(self, conn: T) -> None:
        """Give a connection back; it is dropped if the pool is closed."""
        with self._available:
            if self._closed:
                return
            self._idle.append(conn)
            self._available.notify()

    @contextmanager
    def connection(self) -> Iterator[T]:
        """Acquire a connection for the duration of a with-block."""
        conn = self.acquire()
        try:
            yield conn
        finally:
            self.release(conn)

    def close(self) -> None:
        """Close the pool and wake every waiting acquire()."""
        with self._available:
            self._closed = True
            self._available.notify_all()


class KeepAlivePool(ConnectionPool[T]):
    """A pool that pings idle connections and replaces those that fail."""

    def __init__(
        self,
        factory: Callable[[], T],
        size: int,
        ping: Callable[[T], object],
    ) -> None:
        if size < 1:
            raise ValueError("pool size must be at least 1")
        self._factory = factory
        self._ping = ping
        now = time.time()
        conns = [factory() for _ in range(size)]
        self._last_used: dict[int, float] = {id(conn): now for conn in conns}
        super().__init__(conns)

    def _refresh(self, conn: T, now: float) -> T:
        if now - self._last_used.get(id(conn), now) < KEEPALIVE_INTERVAL:
            return conn
        try:
            self._ping(conn)
            logger.debug("keep-alive query executed at %s", now)
        except Exception as exc:  # any failure means the connection is dead
            logger.warning("error keeping connection alive: %s", exc)
            fresh = self._factory()
            self._last_used.pop(id(conn), None)
            conn = fresh
        self._last_used[id(conn)] = now
        return conn

    def check_connections(self, now: float | None = None) -> int:
        """Ping idle connections unused for a while; return how many were idle."""
        if now is None:
            now = time.time()
        with self._lock:
            count = len(self._idle)
            for _ in range(count):
                conn = self._idle.popleft()
                try:
                    conn = self._refresh(conn, now)
                finally:
                    self._idle.append(conn)
            return count