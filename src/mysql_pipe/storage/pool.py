"""Lazy connection pool with a bounded lifetime per physical connection."""

from __future__ import annotations

import contextlib
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger()

DEFAULT_MAX_LIFETIME_SECONDS = 30.0


@dataclass
class _Slot:
    conn: Any
    opened_at: float = field(default_factory=time.monotonic)

    def expired(self, max_lifetime: float) -> bool:
        return time.monotonic() - self.opened_at >= max_lifetime


class PoolClosedError(RuntimeError):
    """Raised when a connection is requested from a closed pool."""


class ConnectionPool:
    """Hands out driver connections, opening them only on first use.

    Connections older than ``max_lifetime`` are closed instead of reused. A
    connection whose statement raised is discarded rather than returned.
    """

    def __init__(
        self,
        connect: Callable[[], Any],
        *,
        max_lifetime: float = DEFAULT_MAX_LIFETIME_SECONDS,
        max_idle: int = 2,
    ) -> None:
        self._connect = connect
        self._max_lifetime = max_lifetime
        self._max_idle = max_idle
        self._idle: list[_Slot] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    def _checkout(self) -> _Slot:
        with self._lock:
            if self._closed:
                msg = "connection pool is closed"
                raise PoolClosedError(msg)
            while self._idle:
                slot = self._idle.pop()
                if not slot.expired(self._max_lifetime):
                    return slot
                self._discard(slot, reason="max_lifetime")
        slot = _Slot(self._connect())
        logger.debug("storage.pool.connected")
        return slot

    def _checkin(self, slot: _Slot) -> None:
        with self._lock:
            if (
                self._closed
                or slot.expired(self._max_lifetime)
                or len(self._idle) >= self._max_idle
            ):
                self._discard(slot, reason="checkin")
                return
            self._idle.append(slot)

    @staticmethod
    def _discard(slot: _Slot, *, reason: str) -> None:
        with contextlib.suppress(Exception):
            slot.conn.close()
        logger.debug("storage.pool.discarded", reason=reason)

    @contextlib.contextmanager
    def connection(self) -> Iterator[Any]:
        """Borrow a connection for the duration of the ``with`` block."""
        slot = self._checkout()
        try:
            yield slot.conn
        except BaseException:
            self._discard(slot, reason="error")
            raise
        self._checkin(slot)

    def close(self) -> None:
        """Close every idle connection. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            idle, self._idle = self._idle, []
        for slot in idle:
            self._discard(slot, reason="pool_closed")
