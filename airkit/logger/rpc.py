"""Logger for outgoing RPC calls, writing to rotating log files."""

from __future__ import annotations

from dataclasses import dataclass

from .container import Context
from .fields import MODULE_RPC, Field
from .jsonlog import JsonLogger
from .rotate import rotate_writers


@dataclass
class RPCConfig:
    """Where RPC records go and the lowest level that is written."""

    info_file: str = ""
    error_file: str = ""
    level: str = ""


class RPCLogger:
    """Writes RPC records; the reported caller is the code that called ``info`` or ``error``."""

    def __init__(self, config: RPCConfig) -> None:
        self.config = config
        self._writers = rotate_writers(config.info_file, config.error_file)
        info_writer, error_writer = self._writers
        self.logger = JsonLogger(
            level=config.level,
            caller_skip=2,
            module=MODULE_RPC,
            info_writer=info_writer,
            error_writer=error_writer,
        )

    def __enter__(self) -> "RPCLogger":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def info(self, ctx: Context, msg: str, *args: Field) -> None:
        """Write an info record carrying the context's fields and ``args``."""
        self.logger.info(ctx, msg, *args)

    def error(self, ctx: Context, msg: str, *args: Field) -> None:
        """Write an error record carrying the context's fields and ``args``."""
        self.logger.error(ctx, msg, *args)

    def close(self) -> None:
        """Flush and close the log files."""
        self.logger.close()
        for writer in self._writers:
            writer.close()