"""Log field type, field constructors and the well-known field keys."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

LOG_HEADER = "Log-Id"

MODULE_HTTP = "HTTP"
MODULE_RPC = "RPC"
MODULE_MYSQL = "MySQL"
MODULE_REDIS = "Redis"
MODULE_QUEUE = "Queue"
MODULE_CRON = "Cron"

APP_NAME = "app_name"
LOG_ID = "log_id"
TRACE_ID = "trace_id"
MODULE = "module"
SERVICE_NAME = "service_name"
REQUEST_HEADER = "request_header"
RESPONSE_HEADER = "response_header"
METHOD = "method"
API = "api"
URI = "uri"
REQUEST = "request"
RESPONSE = "response"
STATUS = "status"
CLIENT_IP = "client_ip"
CLIENT_PORT = "client_port"
SERVER_IP = "server_ip"
SERVER_PORT = "server_port"
COST = "cost"
ERRNO = "errno"
ERROR = "error"
STACK = "stack"

# Keys that survive a metadata-only fork of a fields container.
META_FIELDS = frozenset({APP_NAME, LOG_ID, TRACE_ID})


@dataclass(frozen=True)
class Field:
    """A single key/value pair attached to a log record."""

    key: str = ""
    value: Any = None


def reflect(key: str, value: Any) -> Field:
    """Return a field holding an arbitrary value."""
    return Field(key, value)


def error(err: Any) -> Field:
    """Return an ``error`` field holding the text of ``err``."""
    if isinstance(err, str):
        return Field(ERROR, err)
    return Field(ERROR, str(err))


def stack(s: str) -> Field:
    """Return a ``stack`` field holding a stack trace."""
    return Field(STACK, s)