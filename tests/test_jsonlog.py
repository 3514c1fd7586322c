import io
import json
import re
import sys

import pytest

from airkit.logger.container import (
    Context,
    FieldsNotInitialized,
    add_field,
    extract_fields,
    init_fields_container,
)
from airkit.logger.fields import reflect
from airkit.logger.jsonlog import JsonLogger, PanicError, std_logger
from airkit.logger.level import Level


def make_logger(**kwargs):
    info, err = io.StringIO(), io.StringIO()
    return JsonLogger(info_writer=info, error_writer=err, **kwargs), info, err


def records(buf):
    return [json.loads(line) for line in buf.getvalue().splitlines()]


def new_ctx():
    return init_fields_container(Context())


def test_default_options():
    logger = JsonLogger()
    assert logger.level == Level.INFO
    assert logger.caller_skip == 1
    assert logger.module == "default"
    assert logger.service_name == "default"
    assert logger.info_writer is sys.stdout
    assert logger.error_writer is sys.stdout


def test_with_options():
    logger = JsonLogger(
        caller_skip=2,
        module="error",
        service_name="test",
        info_writer=sys.stderr,
        error_writer=sys.stderr,
        level="info",
    )
    assert logger.caller_skip == 2
    assert logger.module == "error"
    assert logger.service_name == "test"
    assert logger.info_writer is sys.stderr
    assert logger.error_writer is sys.stderr
    assert logger.level == Level.INFO


def test_enabled_at_info():
    logger = JsonLogger(level=Level.INFO)
    assert logger.enabled("debug") is False
    assert logger.enabled(Level.INFO) is True
    assert logger.enabled("warn") is True


def test_info_logger_routes_by_level():
    logger, info, err = make_logger(level="info")
    ctx = new_ctx()
    logger.debug(ctx, "d")
    assert info.getvalue() == "" and err.getvalue() == ""
    logger.info(ctx, "i")
    assert [r["msg"] for r in records(info)] == ["i"]
    assert err.getvalue() == ""
    logger.warn(ctx, "w")
    logger.error(ctx, "e")
    assert [r["msg"] for r in records(err)] == ["w", "e"]
    assert [r["msg"] for r in records(info)] == ["i"]


def test_warn_logger_drops_info():
    logger, info, err = make_logger(level=Level.WARN)
    ctx = new_ctx()
    logger.info(ctx, "i")
    logger.warn(ctx, "w")
    assert info.getvalue() == ""
    assert [r["level"] for r in records(err)] == ["WARN"]


def test_unknown_level_behaves_as_info():
    logger, info, _ = make_logger(level="verbose")
    assert logger.level == Level.UNKNOWN
    ctx = new_ctx()
    logger.debug(ctx, "d")
    logger.info(ctx, "i")
    assert [r["msg"] for r in records(info)] == ["i"]


def test_record_content():
    logger, info, _ = make_logger(module="HTTP", service_name="svc")
    logger.info(new_ctx(), "hello")
    (record,) = records(info)
    assert record["msg"] == "hello"
    assert record["level"] == "INFO"
    assert record["module"] == "HTTP"
    assert record["service_name"] == "svc"
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", record["time"])
    assert "test_jsonlog.py:" in record["file"]
    assert record["func"] == "test_record_content"


def test_sum_fields():
    logger, info, _ = make_logger()
    ctx = new_ctx()
    add_field(ctx, reflect("key", "value"))
    logger.info(ctx, "msg", reflect("key1", "value1"))
    (record,) = records(info)
    assert record["key"] == "value"
    assert record["key1"] == "value1"
    assert [f.key for f in extract_fields(ctx)] == ["key"]


def test_cover_fields():
    logger, info, _ = make_logger()
    ctx = new_ctx()
    add_field(ctx, reflect("key", "value"))
    logger.info(ctx, "msg", reflect("key", "value1"))
    (record,) = records(info)
    assert record["key"] == "value1"
    assert extract_fields(ctx)[0].value == "value"


def test_missing_container_raises():
    logger, _, _ = make_logger()
    with pytest.raises(FieldsNotInitialized):
        logger.info(Context(), "msg")


def test_dpanic_logs_without_raising():
    logger, _, err = make_logger()
    logger.dpanic(new_ctx(), "dp")
    assert [r["level"] for r in records(err)] == ["DPANIC"]


def test_panic_logs_then_raises():
    logger, _, err = make_logger()
    with pytest.raises(PanicError, match="boom"):
        logger.panic(new_ctx(), "boom")
    assert [r["msg"] for r in records(err)] == ["boom"]


def test_fatal_logs_then_exits():
    logger, _, err = make_logger()
    with pytest.raises(SystemExit) as info:
        logger.fatal(new_ctx(), "bye")
    assert info.value.code == 1
    assert [r["level"] for r in records(err)] == ["FATAL"]


def test_log_direct_and_unknown_name():
    logger, info, _ = make_logger()
    logger.log(Level.INFO, "direct", [reflect("a", 1)])
    assert records(info)[0]["a"] == 1
    with pytest.raises(ValueError):
        logger.log("loud", "x", [])


def test_context_manager_flushes_writers_once():
    class Recorder(io.StringIO):
        flushes = 0

        def flush(self):
            Recorder.flushes += 1
            super().flush()

    writer = Recorder()
    logger = JsonLogger(info_writer=writer, error_writer=writer)
    with logger as entered:
        entered.info(new_ctx(), "inside")
    assert entered is logger
    assert Recorder.flushes == 1
    assert [r["msg"] for r in records(writer)] == ["inside"]


def test_std_logger_writes_stdout(capsys):
    logger = std_logger()
    assert std_logger() is logger
    ctx = new_ctx()
    logger.debug(ctx, "hidden")
    logger.info(ctx, "shown")
    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [r["msg"] for r in lines] == ["shown"]
    assert lines[0]["module"] == "default"