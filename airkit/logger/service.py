"""Logger for a service's own HTTP traffic, writing to rotating log files."""

from __future__ import annotations

from dataclasses import dataclass

from .fields import MODULE_HTTP
from .jsonlog import JsonLogger
from .rotate import rotate_writers


@dataclass
class ServiceConfig:
    """Where service records go and the lowest level that is written."""

    info_file: str = ""
    error_file: str = ""
    level: str = ""


class ServiceLogger(JsonLogger):
    """A JSON logger tagged with the HTTP module and the service's name."""

    def __init__(self, service_name: str, config: ServiceConfig) -> None:
        info_writer, error_writer = rotate_writers(config.info_file, config.error_file)
        super().__init__(
            level=config.level,
            module=MODULE_HTTP,
            service_name=service_name,
            info_writer=info_writer,
            error_writer=error_writer,
        )
        self.config = config