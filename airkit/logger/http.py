"""Log-id propagation through HTTP headers and re-readable request bodies."""

from __future__ import annotations

import io
import os
import threading
import time
from dataclasses import dataclass, field
from typing import BinaryIO, MutableMapping

from .container import Context, value_log_id
from .fields import LOG_HEADER

_EPOCH_MS = 1288834974657
_NODE_BITS = 10
_STEP_BITS = 12
_STEP_MASK = (1 << _STEP_BITS) - 1


class _Snowflake:
    """Generator of time-ordered 63-bit ids."""

    def __init__(self, node: int) -> None:
        self._node = node & ((1 << _NODE_BITS) - 1)
        self._lock = threading.Lock()
        self._last = -1
        self._step = 0

    def next(self) -> int:
        with self._lock:
            now = time.time_ns() // 1_000_000
            if now < self._last:
                now = self._last
            if now == self._last:
                self._step = (self._step + 1) & _STEP_MASK
                if self._step == 0:
                    while now <= self._last:
                        now = time.time_ns() // 1_000_000
            else:
                self._step = 0
            self._last = now
            return (
                ((now - _EPOCH_MS) << (_NODE_BITS + _STEP_BITS))
                | (self._node << _STEP_BITS)
                | self._step
            )


_generator = _Snowflake(os.getpid())


@dataclass
class Request:
    """An incoming or outgoing HTTP request."""

    method: str = "GET"
    url: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    body: BinaryIO | None = None


def _get_header(headers: MutableMapping[str, str], name: str) -> str:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return ""


def _set_header(headers: MutableMapping[str, str], name: str, value: str) -> None:
    lowered = name.lower()
    for key in [k for k in headers if k.lower() == lowered]:
        del headers[key]
    headers[name] = value


def generate_id() -> str:
    """Return a new unique, time-ordered decimal id."""
    return str(_generator.next())


def extract_log_id(request: Request) -> str:
    """Return the request's log id, generating and storing one if absent."""
    log_id = _get_header(request.headers, LOG_HEADER) or generate_id()
    _set_header(request.headers, LOG_HEADER, log_id)
    return log_id


def set_log_id(ctx: Context, headers: MutableMapping[str, str]) -> str:
    """Put the context's log id (or a fresh one) into ``headers`` and return it."""
    log_id = value_log_id(ctx) or generate_id()
    _set_header(headers, LOG_HEADER, log_id)
    return log_id


def get_request_body(request: Request) -> bytes:
    """Read the whole body and replace it with a fresh stream of the same bytes."""
    data = request.body.read() if request.body is not None else b""
    request.body = io.BytesIO(data)
    return data