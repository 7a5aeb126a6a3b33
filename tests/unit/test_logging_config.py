# tests/unit/test_logging_config.py

from __future__ import annotations
import json
import logging
import sys
from pathlib import Path
import pytest

# Ensure "src" is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from llmrelay.logging_config import JSONFormatter, TextFormatter, configure_logging  # type: ignore


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_production_uses_json_on_stdout():
    configure_logging("debug", env="production")
    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JSONFormatter)
    assert root.handlers[0].stream is sys.stdout


def test_repeated_calls_replace_handlers():
    configure_logging(logging.INFO)
    configure_logging(logging.INFO)
    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, TextFormatter)
    assert logging.getLogger("httpx").level == logging.WARNING


def test_unknown_level_rejected():
    with pytest.raises(ValueError):
        configure_logging("chatty")


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("llmrelay.test", logging.WARNING, __file__, 1, "retry %s", ("soon",), None)
    record.provider = "openai"
    entry = json.loads(JSONFormatter().format(record))
    assert entry["message"] == "retry soon"
    assert entry["level"] == "WARNING"
    assert entry["logger"] == "llmrelay.test"
    assert entry["provider"] == "openai"
