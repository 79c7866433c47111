"""Tests for the JSON log formatter and logger naming."""
import json
import logging

from log import JSONFormatter, get_logger


def test_loggers_share_reader_namespace():
    assert get_logger("reader.llm").name == "reader.llm"
    assert get_logger("study").name == "reader.study"
    assert get_logger().name == "reader"
    assert len(get_logger().handlers) == 1
    assert get_logger("reader.cache").handlers == []


def test_json_formatter_whitelists_extra_keys():
    record = logging.LogRecord("reader.llm", logging.INFO, __file__, 1, "OpenRouter request ok", None, None)
    record.model = "openai/gpt-4o"
    record.duration_ms = 812
    record.password = "secret"
    entry = json.loads(JSONFormatter().format(record))
    assert entry["msg"] == "OpenRouter request ok"
    assert entry["level"] == "info"
    assert entry["model"] == "openai/gpt-4o"
    assert entry["duration_ms"] == 812
    assert "password" not in entry
