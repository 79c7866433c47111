"""Logging for Arabic Reader.

All loggers live under the ``reader`` namespace (``reader.extract_routes``,
``reader.llm`` ...) and share one stderr handler installed on ``reader``.
Records are JSON lines by default; OpenRouter calls, extraction runs and
test submissions attach context such as ``model``, ``lesson_id`` or
``duration_ms`` through ``extra=``.

READER_LOG_LEVEL sets verbosity, READER_LOG_FORMAT=text gives plain lines.
"""
import logging
import json
import os
import sys
from typing import Any

ROOT_LOGGER = "reader"

# Only these extra= keys reach the JSON output
_EXTRA_KEYS = (
    "component", "detail", "duration_ms", "count", "endpoint", "status_code",
    "ip", "model", "lesson_id", "user_id",
)


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            entry["error"] = str(record.exc_info[1])
            entry["error_type"] = type(record.exc_info[1]).__name__
        for key in _EXTRA_KEYS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        return json.dumps(entry, ensure_ascii=False, default=str)


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return root
    level = os.environ.get("READER_LOG_LEVEL", "INFO").upper()
    root.setLevel(getattr(logging, level, logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    if os.environ.get("READER_LOG_FORMAT", "json") == "text":
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        ))
    else:
        handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
    root.propagate = False
    return root


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Logger for one module, e.g.

        logger = get_logger("reader.llm")
        logger.info("OpenRouter request ok", extra={"component": "openrouter", "model": model})
    """
    root = _configure_root()
    if name == ROOT_LOGGER:
        return root
    if not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
