# airkit

Building blocks for service code, using only the standard library:

- `airkit.logger.container` provides an immutable `Context` that carries an ordered set of log fields. A fork of a context gets its own copy of the fields.
- `airkit.logger.jsonlog.JsonLogger` writes one JSON object per line. Debug and info records go to one writer, and warn and above go to another.
- Ready-made loggers for RPC calls, services, Redis commands and SQL statements. They write to log files that rotate every hour.
- `airkit.logger.logid` provides 12-byte object ids. `airkit.logger.http` provides helpers for the `Log-Id` header.
- `airkit.pool.ConnPool` is a bounded connection pool. It keeps idle connections ready, has a breaker for a failing factory, a quick-fail mode and a timeout on `get`.

## Install

```
pip install airkit
```

## Log fields and contexts

```python
from airkit.logger.container import (
    Context, init_fields_container, add_field, find_field, fork_context, extract_fields,
)
from airkit.logger.fields import reflect

ctx = init_fields_container(Context())
add_field(ctx, reflect("user", "alice"))
print(find_field(ctx, "user").value)          # alice

child = fork_context(ctx)
add_field(child, reflect("step", 2))
print(len(extract_fields(ctx)), len(extract_fields(child)))   # 1 2
```

Field order and replacement:

- Fields keep their insertion order.
- Adding a field whose key already exists replaces the old one in place.
- `delete_field` removes fields by key.
- `find_field` returns an empty `Field()` when the key is absent.

Forking:

- `fork_context` copies every field.
- `fork_context_only_meta` keeps only `app_name`, `log_id` and `trace_id`.

Errors and ids:

- Every field function raises `FieldsNotInitialized` when the context has no container. Call `init_fields_container` first.
- `with_log_id`/`value_log_id` and `with_trace_id`/`value_trace_id` store and read the ids on a context.

`airkit.logger.fields` holds the `Field` type and the well-known key names. It also has these constructors:

- `reflect(key, value)`
- `error(err)`, which builds the `error` field from the error's text.
- `stack(s)`

`airkit.logger.level` defines `Level`: `DEBUG`, `INFO`, `WARN`, `ERROR`, `FATAL` and `UNKNOWN`. `str(level)` gives the lower-case name. `string_to_level(name)` maps a name back to a level, returning `Level.UNKNOWN` for unknown names.

## JSON logging

```python
import io
from airkit.logger.jsonlog import JsonLogger

out = io.StringIO()
log = JsonLogger(module="HTTP", service_name="orders", info_writer=out, error_writer=out)
log.info(ctx, "request handled", reflect("status", 200))
```

Each record is one JSON line. It holds:

- `level`, `time` (`YYYY-mm-dd HH:MM:SS`), `file` and `func`, which name the caller.
- `msg`.
- `app_name`, `module` and `service_name`.
- Every field of the context.

Fields passed to the call override context fields that have the same key. The context itself is left unchanged.

Levels:

- Records below the logger's `level` are dropped. The level is a `Level` or a name; an unknown name behaves as info.
- `enabled(level)` reports whether a record at that level would be written.

Writers:

- A writer left as `None` means the current `sys.stdout`.

Methods:

- `debug`, `info`, `warn`, `error` and `dpanic` write a record.
- `panic` writes the record and then raises `PanicError`.
- `fatal` writes the record, flushes, and raises `SystemExit(1)`.
- `log(level, msg, fields)` writes a record directly.
- `close()` flushes both writers. The logger is also a context manager.

`std_logger()` returns a shared logger that writes to standard output.

## Ready-made loggers

Each ready-made logger takes a config naming an info file and an error file. Each file is opened through `airkit.logger.rotate.TimeRotatingWriter`:

- `app.log` is written to `app-YYYYMMDDHH.log`.
- `app.log` becomes a symbolic link to the current file.
- Files older than seven days are removed when a new file is opened.

`rotate_writers(info_file, err_file)` builds such a pair of writers.

The loggers:

- `airkit.logger.rpc.RPCLogger(RPCConfig(...))` has `info`, `error` and `close`. Its records carry module `RPC`.
- `airkit.logger.service.ServiceLogger(service_name, ServiceConfig(...))` is a `JsonLogger` with module `HTTP`.
- `airkit.logger.redis.RedisLogger(RedisConfig(...))` provides hooks to call around Redis commands. Its records carry module `Redis`.
  - Call `before_process` / `before_process_pipeline` first. They return a context that records the start time.
  - Then call `after_process` / `after_process_pipeline` with `Command(args, result, err)` objects. These write one record with the method, arguments, replies, cost in milliseconds and server address.
  - A `RedisNil` error does not count as a failure.
  - An error record is written only when every command in it carries an error.
  - Setting `logger` to `None` makes the hooks do nothing.
- `airkit.logger.sql.SqlLogger(SqlLogConfig(...))` records statements with `trace(ctx, begin, fc, err)`.
  - `begin` is a `time.monotonic()` value.
  - `fc()` returns `(sql, rows)`.
  - A failed statement is written as an error. `RecordNotFoundError` can be ignored with `ignore_record_not_found_error`.
  - Statements slower than `slow_threshold` milliseconds are written as warnings. All others are written as info.
  - The config's `level` uses `LogLevel` (`SILENT=1` to `INFO=4`). At `SILENT` or below, which includes the default `0`, nothing is traced.
  - `log_mode(level)` returns a copy that filters at another level.

The contexts passed to these loggers must have been set up with `init_fields_container`.

## Log ids

```python
from airkit.logger.logid import new_object_id, new_object_id_with_hex_string

oid = new_object_id()
print(oid.hex(), oid.time(), oid.machine(), oid.pid(), oid.counter())
```

An id is made of four parts:

- 4 bytes of seconds.
- 3 bytes of the MD5 of the host name.
- 2 bytes of the process id.
- 3 bytes of a counter.

Two other constructors:

- `new_object_id_with_time(t)` sets only the time part.
- `new_object_id_with_hex_string(s)` parses 24 hex digits. It raises `ValueError` for anything else.

`airkit.logger.http` provides:

- `extract_log_id(request)` returns the `Log-Id` header of a `Request`. It generates one with `generate_id()` and stores it when the header is absent.
- `set_log_id(ctx, headers)` writes the context's log id, or a fresh one, into `headers`.
- `get_request_body(request)` reads the body and replaces it with a fresh stream of the same bytes.

## Connection pool

```python
from airkit.pool import ConnPool, OverMaxSizeError

pool = ConnPool(make_conn, pool_size=3, idle_size=2, get_quick_fail=True)
conn = pool.get()
pool.put(conn)
pool.close()
```

`make_conn()` returns an object with an `id` and a `close()` method.

Creating the pool:

- The constructor fills the idle set. It raises the factory's error, or `IDConflictError` when two connections share an id.

Getting a connection:

- `get()` returns an idle connection or creates a new one.
- When the pool is full, `get()` raises `OverMaxSizeError` in quick-fail mode. Otherwise it waits up to `get_conn_timeout` seconds and then raises `GetTimeoutError`.
- After `breaker_threshold` consecutive factory failures, the factory's last error is raised again instead of creating a connection.

Returning and removing connections:

- `put` returns a connection to the idle set. When the set is full, it drops and closes the connection instead.
- `remove` drops and closes a connection.

Closing and inspecting the pool:

- `close` closes everything. Any later call raises `PoolClosedError`.
- `stats()` returns a `Stats` snapshot.

All pool errors derive from `PoolError`.

## What it does not do

The Redis and SQL loggers only record what they are given. They do not connect to Redis or to a database. The package has no tracing, no metrics and no command-line program.