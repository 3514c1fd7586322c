import json

import pytest

from airkit.logger.container import Context, add_field, init_fields_container
from airkit.logger.fields import reflect
from airkit.logger.rpc import RPCConfig, RPCLogger


def _records(directory, stem):
    out = []
    for path in sorted(directory.glob(f"{stem}-*.log")):
        out.extend(json.loads(line) for line in path.read_text().splitlines() if line)
    return out


@pytest.fixture
def ctx():
    return init_fields_container(Context())


def _config(tmp_path, level=""):
    return RPCConfig(
        info_file=str(tmp_path / "info.log"),
        error_file=str(tmp_path / "error.log"),
        level=level,
    )


def test_info_writes_to_info_file(tmp_path, ctx):
    add_field(ctx, reflect("key", "value"))
    with RPCLogger(_config(tmp_path)) as logger:
        logger.info(ctx, "msg", reflect("extra", 1))
    records = _records(tmp_path, "info")
    assert len(records) == 1
    record = records[0]
    assert record["msg"] == "msg"
    assert record["level"] == "INFO"
    assert record["module"] == "RPC"
    assert record["key"] == "value"
    assert record["extra"] == 1
    assert _records(tmp_path, "error") == []


def test_error_writes_to_error_file(tmp_path, ctx):
    with RPCLogger(_config(tmp_path)) as logger:
        logger.error(ctx, "boom")
    records = _records(tmp_path, "error")
    assert [r["msg"] for r in records] == ["boom"]
    assert records[0]["level"] == "ERROR"
    assert _records(tmp_path, "info") == []


def test_caller_is_the_calling_code(tmp_path, ctx):
    with RPCLogger(_config(tmp_path)) as logger:
        logger.info(ctx, "msg")
    record = _records(tmp_path, "info")[0]
    assert record["func"] == "test_caller_is_the_calling_code"
    assert record["file"].startswith("tests/test_rpc.py:")


def test_level_filters_info(tmp_path, ctx):
    with RPCLogger(_config(tmp_path, level="error")) as logger:
        logger.info(ctx, "dropped")
        logger.error(ctx, "kept")
    assert _records(tmp_path, "info") == []
    assert [r["msg"] for r in _records(tmp_path, "error")] == ["kept"]


def test_call_fields_do_not_leak_into_context(tmp_path, ctx):
    with RPCLogger(_config(tmp_path)) as logger:
        logger.info(ctx, "first", reflect("once", True))
        logger.info(ctx, "second")
    records = _records(tmp_path, "info")
    assert records[0]["once"] is True
    assert "once" not in records[1]