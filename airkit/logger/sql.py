"""Logger for SQL statements, recording each with its cost and row count."""

from __future__ import annotations

import copy
import functools
import socket
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import IntEnum
from typing import Any, Callable

from .container import Context, fork_context_only_meta, value_log_id, value_trace_id
from .fields import (
    API,
    CLIENT_IP,
    COST,
    LOG_ID,
    MODULE_MYSQL,
    REQUEST,
    RESPONSE,
    TRACE_ID,
    Field,
)
from .jsonlog import JsonLogger
from .rotate import rotate_writers


@functools.lru_cache(maxsize=None)
def _local_ip() -> str:
    try:
        return socket.gethostbyname(socket.gethostname())
    except OSError:
        return ""


class LogLevel(IntEnum):
    """How much SQL activity is logged; higher logs more."""

    SILENT = 1
    ERROR = 2
    WARN = 3
    INFO = 4


_WRITER_LEVEL = {
    LogLevel.SILENT: "fatal",
    LogLevel.ERROR: "error",
    LogLevel.WARN: "warn",
    LogLevel.INFO: "info",
}


class RecordNotFoundError(LookupError):
    """Raised by a query that matched no row."""

    def __init__(self, message: str = "record not found") -> None:
        super().__init__(message)


@dataclass
class SqlLogConfig:
    """SQL logging settings; ``slow_threshold`` is in milliseconds, 0 turns it off."""

    service_name: str = ""
    slow_threshold: int = 0
    info_file: str = ""
    error_file: str = ""
    level: int = 0
    skip_caller_lookup: bool = False
    ignore_record_not_found_error: bool = False


def _format_message(msg: str, args: tuple[Any, ...]) -> str:
    if not args:
        return msg
    try:
        return msg % args
    except (TypeError, ValueError):
        return " ".join([msg, *(str(a) for a in args)])


class SqlLogger:
    """Records executed statements: failures as errors, slow ones as warnings."""

    def __init__(self, config: SqlLogConfig) -> None:
        self.config: SqlLogConfig | None = config
        self.log_level: int = config.level
        self.slow_threshold = timedelta(milliseconds=config.slow_threshold)
        self.skip_caller_lookup = config.skip_caller_lookup
        self.ignore_record_not_found_error = config.ignore_record_not_found_error
        self._writers = rotate_writers(config.info_file, config.error_file)
        info_writer, error_writer = self._writers
        self.logger = JsonLogger(
            level=_WRITER_LEVEL.get(self.log_level, "info"),
            caller_skip=2,
            module=MODULE_MYSQL,
            service_name=config.service_name,
            info_writer=info_writer,
            error_writer=error_writer,
        )

    def log_mode(self, level: int) -> "SqlLogger":
        """Return a logger sharing this one's output but filtering at ``level``."""
        other = copy.copy(self)
        other.config = None
        other.log_level = level
        return other

    def _message(
        self,
        ctx: Context,
        level: str,
        threshold: LogLevel,
        msg: str,
        args: tuple[Any, ...],
    ) -> None:
        if self.log_level < threshold:
            return
        ctx = fork_context_only_meta(ctx)
        fields = [
            Field(LOG_ID, value_log_id(ctx)),
            Field(TRACE_ID, value_trace_id(ctx)),
        ]
        self.logger.log(level, _format_message(msg, args), fields)

    def info(self, ctx: Context, msg: str, *args: Any) -> None:
        """Log a general message when the level admits info."""
        self._message(ctx, "info", LogLevel.INFO, msg, args)

    def warn(self, ctx: Context, msg: str, *args: Any) -> None:
        """Log a general message when the level admits warnings."""
        self._message(ctx, "warn", LogLevel.WARN, msg, args)

    def error(self, ctx: Context, msg: str, *args: Any) -> None:
        """Log a general message when the level admits errors."""
        self._message(ctx, "error", LogLevel.ERROR, msg, args)

    def trace(
        self,
        ctx: Context,
        begin: float,
        fc: Callable[[], tuple[str, int]],
        err: BaseException | None,
    ) -> None:
        """Record the statement returned by ``fc``, begun at ``begin`` (``time.monotonic()``)."""
        if self.log_level <= LogLevel.SILENT:
            return

        ctx = fork_context_only_meta(ctx)
        elapsed = time.monotonic() - begin

        sql, rows = fc()
        words = sql.split(" ")
        api = words[0].upper() if len(words) > 1 else ""

        fields = [
            Field(LOG_ID, value_log_id(ctx)),
            Field(TRACE_ID, value_trace_id(ctx)),
            Field(COST, int(elapsed * 1000)),
            Field(REQUEST, sql),
            Field(RESPONSE, rows),
            Field(API, api),
            Field(CLIENT_IP, _local_ip()),
        ]

        if (
            err is not None
            and self.log_level >= LogLevel.ERROR
            and not (
                self.ignore_record_not_found_error
                and isinstance(err, RecordNotFoundError)
            )
        ):
            self.logger.log("error", str(err), fields)
            return

        if self.slow_threshold and elapsed > self.slow_threshold.total_seconds():
            self.logger.log("warn", "warn", fields)
            return

        self.logger.log("info", "info", fields)

    def close(self) -> None:
        """Flush and close the log files."""
        self.logger.close()
        for writer in self._writers:
            writer.close()