import json
import time

import pytest

from airkit.logger.container import Context, init_fields_container, with_log_id
from airkit.logger.sql import LogLevel, RecordNotFoundError, SqlLogConfig, SqlLogger


def _records(directory, stem):
    out = []
    for path in sorted(directory.glob(f"{stem}-*.log")):
        out.extend(json.loads(line) for line in path.read_text().splitlines() if line)
    return out


def _fc():
    return "select * from table;", 0


@pytest.fixture
def ctx():
    return init_fields_container(Context())


def _make(tmp_path, **kwargs):
    return SqlLogger(
        SqlLogConfig(
            info_file=str(tmp_path / "info.log"),
            error_file=str(tmp_path / "error.log"),
            **kwargs,
        )
    )


def test_new_logger_defaults(tmp_path):
    logger = _make(tmp_path, slow_threshold=5, level=3)
    assert logger.log_level == LogLevel.WARN
    assert logger.slow_threshold.total_seconds() == 0.005
    assert logger.logger.module == "MySQL"


def test_log_mode(tmp_path):
    logger = _make(tmp_path, slow_threshold=7, ignore_record_not_found_error=True)
    other = logger.log_mode(LogLevel.INFO)
    assert other.log_level == LogLevel.INFO
    assert other.logger is logger.logger
    assert other.slow_threshold == logger.slow_threshold
    assert other.ignore_record_not_found_error is True
    assert other.config is None
    assert logger.log_level == 0


def test_trace_silent_writes_nothing(tmp_path, ctx):
    logger = _make(tmp_path)
    logger.trace(ctx, time.monotonic(), _fc, RuntimeError("error"))
    assert _records(tmp_path, "info") == []
    assert _records(tmp_path, "error") == []


def test_trace_error_log(tmp_path, ctx):
    logger = _make(tmp_path, level=2, ignore_record_not_found_error=True)
    logger.trace(with_log_id(ctx, "abc"), time.monotonic(), _fc, RuntimeError("error"))
    records = _records(tmp_path, "error")
    assert len(records) == 1
    record = records[0]
    assert record["msg"] == "error"
    assert record["level"] == "ERROR"
    assert record["request"] == "select * from table;"
    assert record["response"] == 0
    assert record["api"] == "SELECT"
    assert record["log_id"] == "abc"
    assert record["trace_id"] == ""


def test_trace_ignored_not_found_is_info(tmp_path, ctx):
    logger = _make(tmp_path, level=4, ignore_record_not_found_error=True)
    logger.trace(ctx, time.monotonic(), _fc, RecordNotFoundError())
    assert [r["msg"] for r in _records(tmp_path, "info")] == ["info"]
    assert _records(tmp_path, "error") == []


def test_trace_not_found_is_error_unless_ignored(tmp_path, ctx):
    logger = _make(tmp_path, level=4)
    logger.trace(ctx, time.monotonic(), _fc, RecordNotFoundError())
    assert [r["msg"] for r in _records(tmp_path, "error")] == ["record not found"]


def test_trace_slow_log(tmp_path, ctx):
    logger = _make(tmp_path, level=3, slow_threshold=1)
    logger.trace(ctx, time.monotonic() - 1, _fc, None)
    records = _records(tmp_path, "error")
    assert [r["msg"] for r in records] == ["warn"]
    assert records[0]["cost"] >= 1000


def test_trace_info_log(tmp_path, ctx):
    logger = _make(tmp_path, level=4)
    logger.trace(ctx, time.monotonic(), lambda: ("update t set a = 1", 3), None)
    records = _records(tmp_path, "info")
    assert [r["msg"] for r in records] == ["info"]
    assert records[0]["api"] == "UPDATE"
    assert records[0]["response"] == 3


def test_trace_info_dropped_at_error_level(tmp_path, ctx):
    logger = _make(tmp_path, level=2)
    logger.trace(ctx, time.monotonic(), _fc, None)
    assert _records(tmp_path, "info") == []


def test_single_word_statement_has_no_api(tmp_path, ctx):
    logger = _make(tmp_path, level=4)
    logger.trace(ctx, time.monotonic(), lambda: ("COMMIT", 0), None)
    assert _records(tmp_path, "info")[0]["api"] == ""