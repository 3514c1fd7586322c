"""Request contexts and the ordered log-field container they carry."""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterator

from .fields import META_FIELDS, Field

_ROOT = object()
_LOG_CONTAINER_KEY = object()
_LOG_ID_KEY = object()
_TRACE_ID_KEY = object()


class FieldsNotInitialized(RuntimeError):
    """Raised when a context carries no log-field container."""

    def __init__(self) -> None:
        super().__init__("fieldsContainer not init")


class Context:
    """An immutable chain of key/value pairs; ``Context()`` is the empty root."""

    __slots__ = ("_parent", "_key", "_value")

    def __init__(self) -> None:
        self._parent: Context | None = None
        self._key: Any = _ROOT
        self._value: Any = None

    def with_value(self, key: Any, value: Any) -> "Context":
        """Return a child context in which ``key`` maps to ``value``."""
        child = Context()
        child._parent = self
        child._key = key
        child._value = value
        return child

    def value(self, key: Any) -> Any:
        """Return the nearest value stored under ``key``, or None."""
        node: Context | None = self
        while node is not None:
            if node._key is not _ROOT and node._key == key:
                return node._value
            node = node._parent
        return None


def with_log_id(ctx: Context, log_id: str) -> Context:
    """Return a context carrying ``log_id``."""
    return ctx.with_value(_LOG_ID_KEY, log_id)


def value_log_id(ctx: Context | None) -> str:
    """Return the log id carried by ``ctx``, or an empty string."""
    if ctx is None:
        return ""
    value = ctx.value(_LOG_ID_KEY)
    return value if isinstance(value, str) else ""


def with_trace_id(ctx: Context, trace_id: str) -> Context:
    """Return a context carrying ``trace_id``."""
    return ctx.with_value(_TRACE_ID_KEY, trace_id)


def value_trace_id(ctx: Context | None) -> str:
    """Return the trace id carried by ``ctx``, or an empty string."""
    if ctx is None:
        return ""
    value = ctx.value(_TRACE_ID_KEY)
    return value if isinstance(value, str) else ""


class _FieldsContainer:
    """Thread-safe, insertion-ordered set of fields keyed by field key."""

    def __init__(self) -> None:
        self._fields: dict[str, Field] = {}
        self._lock = threading.Lock()

    def add(self, fields: tuple[Field | None, ...]) -> None:
        with self._lock:
            for f in fields:
                if f is not None:
                    self._fields[f.key] = f

    def delete(self, keys: tuple[str, ...]) -> None:
        with self._lock:
            for key in keys:
                self._fields.pop(key, None)

    def find(self, key: str) -> Field:
        with self._lock:
            return self._fields.get(key, Field())

    def snapshot(self) -> list[Field]:
        with self._lock:
            return list(self._fields.values())

    def clone(self, only_meta: bool) -> "_FieldsContainer":
        copied = _FieldsContainer()
        copied._fields = {
            f.key: f
            for f in self.snapshot()
            if not only_meta or f.key in META_FIELDS
        }
        return copied

    def __iter__(self) -> Iterator[Field]:
        return iter(self.snapshot())


def _find(ctx: Context | None) -> _FieldsContainer | None:
    if ctx is None:
        return None
    container = ctx.value(_LOG_CONTAINER_KEY)
    return container if isinstance(container, _FieldsContainer) else None


def _must_find(ctx: Context | None) -> _FieldsContainer:
    container = _find(ctx)
    if container is None:
        raise FieldsNotInitialized()
    return container


def init_fields_container(ctx: Context | None) -> Context:
    """Return ``ctx`` with a field container, adding one if it has none."""
    if ctx is None:
        ctx = Context()
    if _find(ctx) is not None:
        return ctx
    return ctx.with_value(_LOG_CONTAINER_KEY, _FieldsContainer())


def fork_context(ctx: Context) -> Context:
    """Return a child context holding an independent copy of all fields."""
    return ctx.with_value(_LOG_CONTAINER_KEY, _must_find(ctx).clone(False))


def fork_context_only_meta(ctx: Context) -> Context:
    """Return a child context holding a copy of only the metadata fields."""
    return ctx.with_value(_LOG_CONTAINER_KEY, _must_find(ctx).clone(True))


def extract_fields(ctx: Context) -> list[Field]:
    """Return the fields of ``ctx`` in insertion order."""
    return _must_find(ctx).snapshot()


def add_field(ctx: Context, *fields: Field | None) -> None:
    """Add or replace fields; a replaced field keeps its position."""
    _must_find(ctx).add(fields)


def delete_field(ctx: Context, *keys: str) -> None:
    """Remove the fields with the given keys."""
    _must_find(ctx).delete(keys)


def find_field(ctx: Context, key: str) -> Field:
    """Return the field under ``key``, or an empty field."""
    return _must_find(ctx).find(key)


def range_fields(ctx: Context, func: Callable[[Field], Any]) -> None:
    """Call ``func`` with every field in insertion order."""
    for f in _must_find(ctx):
        func(f)