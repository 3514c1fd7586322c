"""Structured JSON logger that writes one record per line."""

from __future__ import annotations

import functools
import inspect
import json
import os
import sys
import threading
import time
from pathlib import PurePath
from typing import Any, Iterable, TextIO

from .container import Context, add_field, extract_fields, fork_context
from .fields import APP_NAME, MODULE, SERVICE_NAME, Field
from .level import Level, string_to_level

_SEVERITY = {
    "debug": -1,
    "info": 0,
    "warn": 1,
    "error": 2,
    "dpanic": 3,
    "panic": 4,
    "fatal": 5,
}
_NAMES = {value: name.upper() for name, value in _SEVERITY.items()}
_FROM_LEVEL = {
    Level.DEBUG: -1,
    Level.INFO: 0,
    Level.WARN: 1,
    Level.ERROR: 2,
    Level.FATAL: 5,
}
_INFO = 0

_APP_NAME = os.path.splitext(os.path.basename(sys.argv[0] if sys.argv else ""))[0]
_THIS_FILE = os.path.normcase(os.path.abspath(__file__))


def _severity(level: Level | str) -> int:
    if isinstance(level, Level):
        return _FROM_LEVEL.get(level, _INFO)
    try:
        return _SEVERITY[level]
    except KeyError:
        raise ValueError(f"unknown log level: {level!r}") from None


def _is_own_frame(frame: Any) -> bool:
    return os.path.normcase(os.path.abspath(frame.f_code.co_filename)) == _THIS_FILE


class PanicError(RuntimeError):
    """Raised by ``JsonLogger.panic`` after the record is written."""


class JsonLogger:
    """Writes records at or below info to ``info_writer``, warn and above to ``error_writer``.

    Records below the logger's ``level`` are dropped.  A writer left as None
    means the current ``sys.stdout``.
    """

    def __init__(
        self,
        *,
        level: Level | str = Level.INFO,
        caller_skip: int = 1,
        module: str = "default",
        service_name: str = "default",
        info_writer: TextIO | None = None,
        error_writer: TextIO | None = None,
    ) -> None:
        self.level = string_to_level(level) if isinstance(level, str) else Level(level)
        self.caller_skip = caller_skip
        self.module = module
        self.service_name = service_name
        self._info_writer = info_writer
        self._error_writer = error_writer
        self._lock = threading.Lock()

    @property
    def info_writer(self) -> TextIO:
        return self._info_writer if self._info_writer is not None else sys.stdout

    @property
    def error_writer(self) -> TextIO:
        return self._error_writer if self._error_writer is not None else sys.stdout

    def __enter__(self) -> "JsonLogger":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def enabled(self, level: Level | str) -> bool:
        """Return whether a record at ``level`` would be written."""
        return _severity(level) >= _FROM_LEVEL.get(self.level, _INFO)

    def debug(self, ctx: Context, msg: str, *args: Field) -> None:
        self.log("debug", msg, self._extract(ctx, args))

    def info(self, ctx: Context, msg: str, *args: Field) -> None:
        self.log("info", msg, self._extract(ctx, args))

    def warn(self, ctx: Context, msg: str, *args: Field) -> None:
        self.log("warn", msg, self._extract(ctx, args))

    def error(self, ctx: Context, msg: str, *args: Field) -> None:
        self.log("error", msg, self._extract(ctx, args))

    def dpanic(self, ctx: Context, msg: str, *args: Field) -> None:
        self.log("dpanic", msg, self._extract(ctx, args))

    def panic(self, ctx: Context, msg: str, *args: Field) -> None:
        """Write the record, then raise PanicError."""
        self.log("panic", msg, self._extract(ctx, args))
        raise PanicError(msg)

    def fatal(self, ctx: Context, msg: str, *args: Field) -> None:
        """Write the record, flush, then exit with status 1."""
        self.log("fatal", msg, self._extract(ctx, args))
        self.close()
        raise SystemExit(1)

    def log(self, level: Level | str, msg: str, fields: Iterable[Field]) -> None:
        """Write one record at ``level`` carrying ``fields``."""
        severity = _severity(level)
        if severity < _FROM_LEVEL.get(self.level, _INFO):
            return
        writer = self.info_writer if severity <= _INFO else self.error_writer
        caller, func = self._caller()
        record: dict[str, Any] = {
            "level": _NAMES[severity],
            "time": time.strftime("%Y-%m-%d %H:%M:%S"),
            "file": caller,
            "func": func,
            "msg": msg,
            APP_NAME: _APP_NAME,
            MODULE: self.module,
            SERVICE_NAME: self.service_name,
        }
        for f in fields:
            record[f.key] = f.value
        line = json.dumps(record, ensure_ascii=False, default=str)
        with self._lock:
            writer.write(line + "\n")

    def close(self) -> None:
        """Flush both writers."""
        for writer in {id(w): w for w in (self.info_writer, self.error_writer)}.values():
            flush = getattr(writer, "flush", None)
            if flush is not None:
                flush()

    @staticmethod
    def _extract(ctx: Context, fields: tuple[Field, ...]) -> list[Field]:
        forked = fork_context(ctx)
        add_field(forked, *fields)
        return extract_fields(forked)

    def _caller(self) -> tuple[str, str]:
        frame = inspect.currentframe()
        try:
            while frame is not None and _is_own_frame(frame):
                frame = frame.f_back
            for _ in range(max(self.caller_skip - 1, 0)):
                if frame is None or frame.f_back is None:
                    break
                frame = frame.f_back
            if frame is None:
                return "", ""
            code = frame.f_code
            short = "/".join(PurePath(code.co_filename).parts[-2:])
            return f"{short}:{frame.f_lineno}", code.co_name
        finally:
            del frame


@functools.lru_cache(maxsize=None)
def std_logger() -> JsonLogger:
    """Return the shared logger writing to standard output."""
    return JsonLogger()