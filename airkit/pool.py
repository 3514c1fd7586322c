"""Bounded connection pool with idle connections and a failure breaker."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Protocol


class Conn(Protocol):
    """A pooled connection: a unique ``id`` and a ``close`` method."""

    @property
    def id(self) -> str: ...

    def close(self) -> None: ...


class PoolError(Exception):
    """Base class of every error raised by the pool."""

    default_message = "pool error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class NewFuncError(PoolError):
    """Raised when the pool is given no connection factory."""

    default_message = "new func is nil"


class PoolClosedError(PoolError):
    """Raised when the pool is used after it was closed."""

    default_message = "pool is closed"


class GetTimeoutError(PoolError):
    """Raised when no connection slot frees up in time."""

    default_message = "get connection timeout"


class OverMaxSizeError(PoolError):
    """Raised in quick-fail mode when the pool is full."""

    default_message = "over pool max size"


class IDConflictError(PoolError):
    """Raised when a new connection reuses the id of a pooled one."""

    default_message = "conn id conflict"


@dataclass(frozen=True)
class Stats:
    """A snapshot of the pool's counters."""

    hits: int = 0
    misses: int = 0
    removes: int = 0
    id_conflicts: int = 0
    over_max_sizes: int = 0
    timeouts: int = 0
    breakers: int = 0
    conn_count: int = 0
    idle_count: int = 0


@dataclass
class _Counters:
    hits: int = 0
    misses: int = 0
    removes: int = 0
    id_conflicts: int = 0
    over_max_sizes: int = 0
    timeouts: int = 0
    breakers: int = 0


def _close_quietly(conn: Conn) -> None:
    try:
        conn.close()
    except Exception:
        pass


def _close_in_background(conn: Conn) -> None:
    threading.Thread(target=_close_quietly, args=(conn,), daemon=True).start()


class ConnPool:
    """A pool of at most ``pool_size`` connections, keeping ``idle_size`` ready.

    After ``breaker_threshold`` consecutive factory failures the pool stops
    creating connections and raises the last failure instead.
    """

    def __init__(
        self,
        new_func: Callable[[], Conn],
        *,
        pool_size: int = 10,
        idle_size: int = 5,
        breaker_threshold: int = 1,
        get_quick_fail: bool = False,
        get_conn_timeout: float = 10.0,
    ) -> None:
        if new_func is None or not callable(new_func):
            raise NewFuncError()
        self.pool_size = pool_size
        self.idle_size = idle_size
        self.breaker_threshold = breaker_threshold
        self.get_quick_fail = get_quick_fail
        self.get_conn_timeout = get_conn_timeout

        self._new_func = new_func
        self._slots = threading.Semaphore(pool_size)
        self._lock = threading.Lock()
        self._conns: dict[str, Conn] = {}
        self._idle: list[str] = []
        self._counts = _Counters()
        self._closed = False
        self._error_count = 0
        self._last_error: BaseException | None = None

        self._add_idle()

    def __enter__(self) -> "ConnPool":
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self._closed:
            self.close()

    def get(self) -> Conn:
        """Return an idle connection, or create a new one."""
        if self._closed:
            raise PoolClosedError()
        conn = self._get_idle()
        if conn is not None:
            return conn
        return self._new_conn()

    def put(self, conn: Conn) -> None:
        """Return ``conn`` to the idle set, or drop it when the set is full."""
        if self._closed:
            raise PoolClosedError()
        if self._return_idle(conn):
            return
        with self._lock:
            self._remove_conn(conn)

    def remove(self, conn: Conn) -> None:
        """Drop ``conn`` from the pool and close it."""
        if self._closed:
            raise PoolClosedError()
        with self._lock:
            if not self._remove_conn(conn):
                return
            self._counts.removes += 1
            self._idle = [conn_id for conn_id in self._idle if conn_id != conn.id]

    def close(self) -> None:
        """Close every pooled connection; the pool can no longer be used."""
        with self._lock:
            if self._closed:
                raise PoolClosedError()
            self._closed = True
            conns = list(self._conns.values())
            self._conns.clear()
            self._idle.clear()
        for conn in conns:
            _close_in_background(conn)

    def stats(self) -> Stats:
        """Return a snapshot of the pool's counters."""
        with self._lock:
            c = self._counts
            return Stats(
                hits=c.hits,
                misses=c.misses,
                removes=c.removes,
                id_conflicts=c.id_conflicts,
                over_max_sizes=c.over_max_sizes,
                timeouts=c.timeouts,
                breakers=c.breakers,
                conn_count=len(self._conns),
                idle_count=len(self._idle),
            )

    def _breaker_open(self) -> bool:
        return self._error_count >= self.breaker_threshold

    def _queue_in(self) -> None:
        if self._slots.acquire(timeout=max(self.get_conn_timeout, 0)):
            return
        self._counts.timeouts += 1
        raise GetTimeoutError()

    def _queue_out(self) -> None:
        self._slots.release()

    def _new_conn(self) -> Conn:
        with self._lock:
            if len(self._conns) >= self.pool_size and self.get_quick_fail:
                self._counts.over_max_sizes += 1
                raise OverMaxSizeError()
            self._queue_in()
            try:
                return self._handle_new()
            except BaseException:
                self._queue_out()
                raise

    def _handle_new(self) -> Conn:
        # Caller holds the lock and a connection slot.
        if self._breaker_open():
            self._counts.breakers += 1
            if self._last_error is not None:
                raise self._last_error
            raise PoolError("connection breaker is open")
        try:
            conn = self._new_func()
        except Exception as exc:
            self._error_count += 1
            self._last_error = exc
            raise
        if conn.id in self._conns:
            _close_quietly(conn)
            self._counts.id_conflicts += 1
            raise IDConflictError()
        self._conns[conn.id] = conn
        self._error_count = 0
        return conn

    def _add_idle(self) -> None:
        if self.idle_size == 0:
            return
        while True:
            with self._lock:
                if self._breaker_open():
                    if self._last_error is not None:
                        raise self._last_error
                    return
                if (
                    self._closed
                    or len(self._conns) >= self.pool_size
                    or len(self._idle) >= self.idle_size
                ):
                    return
                if not self._slots.acquire(timeout=max(self.get_conn_timeout, 0)):
                    return
                try:
                    conn = self._handle_new()
                except IDConflictError:
                    self._queue_out()
                    raise
                except Exception:
                    self._queue_out()
                    continue
                self._idle.append(conn.id)

    def _refill(self) -> None:
        try:
            self._add_idle()
        except Exception:
            pass

    def _get_idle(self) -> Conn | None:
        if self.idle_size == 0:
            return None
        with self._lock:
            if not self._idle:
                self._counts.misses += 1
                return None
            self._counts.hits += 1
            conn = self._conns[self._idle.pop(0)]
        threading.Thread(target=self._refill, daemon=True).start()
        return conn

    def _return_idle(self, conn: Conn) -> bool:
        with self._lock:
            if len(self._idle) >= self.idle_size:
                return False
            self._idle.append(conn.id)
            return True

    def _remove_conn(self, conn: Conn) -> bool:
        # Caller holds the lock.
        if conn.id not in self._conns:
            return False
        del self._conns[conn.id]
        self._queue_out()
        _close_in_background(conn)
        return True