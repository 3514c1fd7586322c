"""Log levels and their textual names."""

from __future__ import annotations

from enum import IntEnum


class Level(IntEnum):
    """Severity of a log record, ordered from least to most severe."""

    UNKNOWN = -1
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    FATAL = 4

    def __str__(self) -> str:
        return self.name.lower()

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


_BY_NAME = {str(level): level for level in Level if level is not Level.UNKNOWN}


def string_to_level(name: str) -> Level:
    """Return the level with the given name, or ``Level.UNKNOWN``."""
    return _BY_NAME.get(name, Level.UNKNOWN)