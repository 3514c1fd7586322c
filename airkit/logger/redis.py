"""Hooks that log every Redis command and pipeline with its cost."""

from __future__ import annotations

import functools
import socket
import time
from dataclasses import dataclass
from typing import Any, Sequence

from .container import Context, add_field, fork_context_only_meta
from .fields import (
    API,
    CLIENT_IP,
    COST,
    METHOD,
    MODULE_REDIS,
    REQUEST,
    RESPONSE,
    SERVER_IP,
    SERVER_PORT,
    reflect,
)
from .jsonlog import JsonLogger
from .rotate import rotate_writers

_CMD_START = object()


@functools.lru_cache(maxsize=None)
def _local_ip() -> str:
    try:
        return socket.gethostbyname(socket.gethostname())
    except OSError:
        return ""


class RedisNil(Exception):
    """The reply to a lookup of a missing key; not treated as a failure."""

    def __init__(self, message: str = "redis: nil") -> None:
        super().__init__(message)


@dataclass
class Command:
    """A Redis command: its arguments, its reply and the error it ended with."""

    args: Sequence[Any] = ()
    result: Any = None
    err: BaseException | None = None

    @property
    def name(self) -> str:
        """The command's name in lower case."""
        return str(self.args[0]).lower() if self.args else ""

    def __str__(self) -> str:
        text = " ".join(str(arg) for arg in self.args)
        if self.result is not None:
            text += f": {self.result}"
        return text


def _failed(cmd: Command) -> bool:
    return cmd.err is not None and not isinstance(cmd.err, RedisNil)


@dataclass
class RedisConfig:
    """Where Redis records go, the lowest level written and the server logged."""

    info_file: str = ""
    error_file: str = ""
    level: str = ""
    service_name: str = ""
    host: str = ""
    port: int = 0


class RedisLogger:
    """Logs each command after it runs; failures go to the error log.

    Setting ``logger`` to None turns the hooks into no-ops.
    """

    def __init__(self, config: RedisConfig) -> None:
        self.config = config
        self._writers = rotate_writers(config.info_file, config.error_file)
        info_writer, error_writer = self._writers
        self.logger: JsonLogger | None = JsonLogger(
            level=config.level,
            caller_skip=3,
            module=MODULE_REDIS,
            service_name=config.service_name,
            info_writer=info_writer,
            error_writer=error_writer,
        )

    def close(self) -> None:
        """Flush and close the log files."""
        if self.logger is not None:
            self.logger.close()
        for writer in self._writers:
            writer.close()

    def before_process(self, ctx: Context, cmd: Command) -> Context:
        """Return a context recording when ``cmd`` started."""
        return self._set_cmd_start(ctx)

    def after_process(self, ctx: Context, cmd: Command) -> None:
        """Log ``cmd`` with the time spent since ``before_process``."""
        if self.logger is None:
            return
        cost = self._cmd_cost(ctx)
        if _failed(cmd):
            self.error(ctx, False, [cmd], cost)
            return
        self.info(ctx, False, [cmd], cost)

    def before_process_pipeline(self, ctx: Context, cmds: Sequence[Command]) -> Context:
        """Return a context recording when the pipeline started."""
        return self._set_cmd_start(ctx)

    def after_process_pipeline(self, ctx: Context, cmds: Sequence[Command]) -> None:
        """Log the pipeline as one record; any failed command makes it an error."""
        if self.logger is None:
            return
        cost = self._cmd_cost(ctx)
        if any(_failed(cmd) for cmd in cmds):
            self.error(ctx, True, cmds, cost)
            return
        self.info(ctx, True, cmds, cost)

    def info(
        self, ctx: Context, is_pipeline: bool, cmds: Sequence[Command], cost: int
    ) -> None:
        """Write an info record for ``cmds``."""
        assert self.logger is not None
        self.logger.info(self._fields(ctx, is_pipeline, cmds, cost), "info")

    def error(
        self, ctx: Context, is_pipeline: bool, cmds: Sequence[Command], cost: int
    ) -> None:
        """Write an error record listing each command's error.

        Nothing is written unless every command carries an error.
        """
        assert self.logger is not None
        errs = []
        for idx, cmd in enumerate(cmds):
            if cmd.err is None:
                return
            errs.append(f"{idx}-{cmd.err}")
        self.logger.error(self._fields(ctx, is_pipeline, cmds, cost), ",".join(errs))

    def _fields(
        self, ctx: Context, is_pipeline: bool, cmds: Sequence[Command], cost: int
    ) -> Context:
        ctx = fork_context_only_meta(ctx)
        method = "pipeline" if is_pipeline else cmds[0].name
        add_field(
            ctx,
            reflect(METHOD, method),
            reflect(REQUEST, [list(cmd.args) for cmd in cmds]),
            reflect(RESPONSE, [str(cmd) for cmd in cmds]),
            reflect(CLIENT_IP, _local_ip()),
            reflect(SERVER_IP, self.config.host),
            reflect(SERVER_PORT, self.config.port),
            reflect(API, method),
            reflect(COST, cost),
        )
        return ctx

    @staticmethod
    def _set_cmd_start(ctx: Context) -> Context:
        return ctx.with_value(_CMD_START, time.monotonic())

    @staticmethod
    def _cmd_cost(ctx: Context) -> int:
        start = ctx.value(_CMD_START)
        if not isinstance(start, float):
            start = time.monotonic()
        return int((time.monotonic() - start) * 1000)