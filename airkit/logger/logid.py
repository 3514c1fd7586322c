"""Twelve-byte object ids built from time, machine, process and counter."""

from __future__ import annotations

import binascii
import hashlib
import itertools
import math
import os
import socket
import threading
import time as _time
from dataclasses import dataclass
from datetime import datetime, timezone


def _init_machine_id() -> bytes:
    try:
        hostname = socket.gethostname()
    except OSError:
        return os.urandom(3)
    return hashlib.md5(hostname.encode()).digest()[:3]


_MACHINE_ID = _init_machine_id()
_counter = itertools.count(1)
_counter_lock = threading.Lock()


@dataclass(frozen=True)
class ObjectID:
    """A 12-byte id: 4 bytes seconds, 3 bytes machine, 2 bytes pid, 3 bytes counter."""

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != 12:
            raise ValueError("object id must be exactly 12 bytes")

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return self.hex()

    def hex(self) -> str:
        """Return the id as 24 lowercase hex digits."""
        return self.raw.hex()

    def time(self) -> datetime:
        """Return the timestamp part as an aware UTC datetime."""
        secs = int.from_bytes(self.raw[:4], "big")
        return datetime.fromtimestamp(secs, tz=timezone.utc)

    def machine(self) -> bytes:
        """Return the 3-byte machine part."""
        return self.raw[4:7]

    def pid(self) -> int:
        """Return the 16-bit process id part."""
        return int.from_bytes(self.raw[7:9], "big")

    def counter(self) -> int:
        """Return the 24-bit counter part."""
        return int.from_bytes(self.raw[9:12], "big")


def new_object_id() -> ObjectID:
    """Return a new unique object id."""
    with _counter_lock:
        count = next(_counter)
    seconds = int(_time.time()) & 0xFFFFFFFF
    pid = os.getpid() & 0xFFFF
    raw = (
        seconds.to_bytes(4, "big")
        + _MACHINE_ID
        + pid.to_bytes(2, "big")
        + (count & 0xFFFFFF).to_bytes(3, "big")
    )
    return ObjectID(raw)


def new_object_id_with_time(t: datetime) -> ObjectID:
    """Return an id whose timestamp part is ``t`` and whose other parts are zero."""
    seconds = math.floor(t.timestamp()) & 0xFFFFFFFF
    return ObjectID(seconds.to_bytes(4, "big") + bytes(8))


def new_object_id_with_hex_string(s: str) -> ObjectID:
    """Parse 24 hex digits into an id; raise ValueError otherwise."""
    try:
        data = binascii.unhexlify(s)
    except (binascii.Error, ValueError, TypeError):
        raise ValueError("string length must 12") from None
    if len(data) != 12:
        raise ValueError("string length must 12")
    return ObjectID(data)