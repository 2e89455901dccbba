import io
import json
import re
import time
from datetime import datetime, timedelta, timezone

import pytest

from enlightkit import log
from enlightkit.contexts import user_id_scope
from enlightkit.log import Level, LogPanic, Logger
from enlightkit.tracing import start_span


def make_logger(level=Level.DEBUG, console=False):
    buffer = io.StringIO()
    return Logger(sink=buffer, level=level, console=console), buffer


def entries(buffer):
    return [json.loads(line) for line in buffer.getvalue().splitlines()]


def test_info_writes_message_and_fields():
    logger, buffer = make_logger()
    logger.with_field("application", "backend").info("A info msg")
    (entry,) = entries(buffer)
    assert entry["message"] == "A info msg"
    assert entry["level"] == "info"
    assert entry["application"] == "backend"
    assert "test_log.py:" in entry["source"]
    assert "stacktrace" not in entry


def test_timestamp_is_rfc3339():
    logger, buffer = make_logger()
    logger.info("x")
    raw = entries(buffer)[0]["timestamp"]
    pattern = r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(Z|[+-]\d{2}:\d{2})"
    assert re.fullmatch(pattern, raw) is not None
    parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    assert abs((datetime.now(timezone.utc) - parsed).total_seconds()) < 60


def test_debug_is_dropped_at_info_level():
    logger, buffer = make_logger(level=Level.INFO)
    logger.with_field("application", "backend").debug("This is a debug message")
    logger.warning("A warning msg")
    assert [entry["message"] for entry in entries(buffer)] == ["A warning msg"]
    assert entries(buffer)[0]["level"] == "warn"


def test_formatting():
    logger, buffer = make_logger()
    logger.infof("Called %d", 3)
    logger.infof("value %v", "x")
    logger.infof("no args %d")
    assert [entry["message"] for entry in entries(buffer)] == ["Called 3", "value x", "no args %d"]


def test_sprint_spacing():
    logger, buffer = make_logger()
    logger.info("a", 1, 2, "b")
    assert entries(buffer)[0]["message"] == "a1 2b"


def test_error_has_error_field_and_stacktrace():
    logger, buffer = make_logger()
    logger.with_error(ValueError("A test error")).error("A test error, should have stacktrace")
    (entry,) = entries(buffer)
    assert entry["error"] == "A test error"
    assert entry["level"] == "error"
    assert "test_log.py" in entry["stacktrace"]


def test_with_fields_accepts_mapping_and_pairs():
    logger, buffer = make_logger()
    logger.with_fields({"a": 1}).with_fields([("b", 2)]).info("m")
    entry = entries(buffer)[0]
    assert (entry["a"], entry["b"]) == (1, 2)


def test_panic_writes_then_raises():
    logger, buffer = make_logger()
    with pytest.raises(LogPanic) as caught:
        logger.with_field("token", "token").panic("A panic msg")
    assert caught.value.message == "A panic msg"
    assert entries(buffer)[0]["level"] == "panic"


def test_module_panic_raises():
    with pytest.raises(LogPanic):
        log.with_field("token", "token").panic("A panic msg")


def test_fatal_exits():
    logger, buffer = make_logger()
    with pytest.raises(SystemExit) as caught:
        logger.fatalf("bad %s", "thing")
    assert caught.value.code == 1
    assert entries(buffer)[0]["message"] == "bad thing"


def test_nop_still_panics():
    with pytest.raises(LogPanic):
        log.nop().panic("boom")


def test_only_with_tracing_without_span_logs_nothing(capsys):
    log.only_with_tracing().info("Empty context should not log anything")
    assert capsys.readouterr().out == ""


def test_with_tracing_adds_datadog_ids():
    logger, buffer = make_logger()
    with start_span("op") as span:
        logger.with_tracing().info("traced")
        logger.only_with_tracing().info("also traced")
    first, second = entries(buffer)
    assert first["dd.trace_id"] == span.context.datadog_trace_id
    assert first["dd.span_id"] == span.context.datadog_span_id
    assert second["dd.trace_id"] == span.context.datadog_trace_id


def test_with_tracing_without_span_adds_nothing():
    logger, buffer = make_logger()
    logger.with_tracing().info("Actual tracing information would be empty")
    assert "dd.trace_id" not in entries(buffer)[0]


def test_with_user_id():
    logger, buffer = make_logger()
    with user_id_scope("user-1"):
        logger.with_user_id().info("m")
    logger.with_user_id().info("n")
    first, second = entries(buffer)
    assert first["userId"] == "user-1"
    assert "userId" not in second


def test_with_client_id_adds_nothing():
    logger, buffer = make_logger()
    logger.with_client_id().info("m")
    assert "clientId" not in entries(buffer)[0]


def test_check_write():
    logger, buffer = make_logger(level=Level.INFO)
    logger.check_write(Level.WARN, "written", key="v")
    logger.check_write("debug", "dropped")
    (entry,) = entries(buffer)
    assert entry["message"] == "written"
    assert entry["key"] == "v"


def test_console_format():
    logger, buffer = make_logger(console=True)
    logger.with_field("k", "v").info("hello")
    columns = buffer.getvalue().rstrip("\n").split("\t")
    assert columns[1] == "info"
    assert columns[3] == "hello"
    assert json.loads(columns[4]) == {"k": "v"}


def test_module_functions_write_to_stdout(capsys):
    log.set_default_field("team", "core")
    log.with_field("application", "backend").info("A info msg")
    entry = json.loads(capsys.readouterr().out.splitlines()[-1])
    assert entry["application"] == "backend"
    assert entry["team"] == "core"
    assert log.base() is not None and "team" in json.dumps(entry)


def test_sample_logger(capsys):
    log.set_default_service("service")
    sampler = log.new_sample_logger(timedelta(seconds=10), 10, 50)
    for i in range(100):
        sampler.info(f"Called {i + 1}")
    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    expected = [f"Called {i}" for i in range(1, 11)] + ["Called 50", "Called 100"]
    assert [line["message"] for line in lines] == expected
    assert all(line["service"] == "service" for line in lines)


def test_sample_logger_resets_after_tick(capsys):
    sampler = log.new_sample_logger(timedelta(milliseconds=200), 1, 1000)
    sampler.info("A")
    sampler.info("B")
    time.sleep(0.3)
    sampler.info("C")
    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [line["message"] for line in lines] == ["A", "C"]