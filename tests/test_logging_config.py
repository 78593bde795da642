"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
import sys

from coach_engine.logging_config import JSONFormatter, get_logger, log_context, setup_logging


def _record(**kwargs):
    defaults = dict(
        name="coach_engine.test", level=logging.INFO, pathname="test.py",
        lineno=1, msg="hello %s", args=("world",), exc_info=None,
    )
    defaults.update(kwargs)
    return logging.LogRecord(**defaults)


def test_json_formatter_outputs_valid_json():
    parsed = json.loads(JSONFormatter().format(_record()))
    assert parsed["message"] == "hello world"
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "coach_engine.test"
    assert "timestamp" in parsed
    assert "context" not in parsed


def test_json_formatter_includes_exception():
    try:
        raise ValueError("test error")
    except ValueError:
        exc_info = sys.exc_info()
    parsed = json.loads(JSONFormatter().format(_record(level=logging.ERROR, msg="fail", args=(), exc_info=exc_info)))
    assert parsed["exception"] == {"type": "ValueError", "message": "test error"}


def test_json_formatter_collects_context_extras():
    record = _record()
    record.ctx_workout_id = 42
    record.ctx_exercise_id = None
    record.unrelated = "skip"
    parsed = json.loads(JSONFormatter().format(record))
    assert parsed["context"] == {"workout_id": 42, "exercise_id": None}


def test_log_context_prefixes_fields():
    assert log_context(workout_id=3, set_id=9) == {"ctx_workout_id": 3, "ctx_set_id": 9}


def test_context_round_trips_through_logger(caplog):
    log = get_logger("coach_engine.services.workout_sets")
    with caplog.at_level(logging.INFO, logger=log.name):
        log.info("Set %s logged", 9, extra=log_context(workout_id=3, set_id=9))
    parsed = json.loads(JSONFormatter().format(caplog.records[-1]))
    assert parsed["message"] == "Set 9 logged"
    assert parsed["context"] == {"workout_id": 3, "set_id": 9}


def test_get_logger_returns_named_logger():
    log = get_logger("coach_engine.services")
    assert log.name == "coach_engine.services"


def test_setup_logging_idempotent():
    root = logging.getLogger()
    initial_count = len(root.handlers)
    setup_logging()
    setup_logging()
    assert len(root.handlers) <= initial_count + 1


def test_setup_logging_defaults_to_settings_level(monkeypatch):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    root.handlers = []
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    try:
        setup_logging()
        assert root.level == logging.WARNING
        assert logging.getLogger("alembic").level == logging.WARNING
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
