"""
apimeta — unit tests for observability logging

File: tests/unit/observability/test_logging.py
Last updated: 2026-10-18

Purpose
- Validate that structlog events reach the configured sinks with redaction applied.

What this test file should cover
- JSON line validity and redaction guarantees.
- Text rendering and level filtering.
- Sink shutdown behavior.

Functional requirements
- Offline operation.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest
import structlog

from apimeta.observability.logging import (
    LoggingConfig,
    default_log_redactor,
    setup_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

FAKE_TOKEN = "ghp_" + "A1b2C3d4E5f6G7h8I9j0K1l2"


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _read_json_lines(path: Path) -> list[dict[str, object]]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_json_log_file_receives_redacted_structlog_events(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "apimeta.jsonl"
    setup_logging(LoggingConfig(level="INFO", log_format="json", log_file=log_file))

    structlog.get_logger("apimeta.tests").info(
        "descriptions_fetched",
        ref="main",
        count=4,
        token=FAKE_TOKEN,
        nested={"password": "hunter2", "safe": "ok"},
    )
    shutdown_logging()

    [event] = _read_json_lines(log_file)
    assert event["level"] == "INFO"
    assert event["logger"] == "apimeta.tests"
    assert event["message"] == "descriptions_fetched"
    assert str(event["timestamp"]).endswith("Z")
    assert event["fields"] == {
        "count": 4,
        "nested": {"password": "***REDACTED***", "safe": "ok"},
        "ref": "main",
        "token": "***REDACTED***",
    }
    assert FAKE_TOKEN not in log_file.read_text(encoding="utf-8")


def test_text_format_renders_sorted_key_values(capsys: pytest.CaptureFixture[str]) -> None:
    setup_logging(LoggingConfig(level="INFO"))

    structlog.get_logger("apimeta.tests").info("inventory_built", methods=3, files=2)

    err = capsys.readouterr().err
    assert "INFO apimeta.tests: inventory_built files=2 methods=3" in err


def test_level_filter_drops_lower_events(capsys: pytest.CaptureFixture[str]) -> None:
    setup_logging(LoggingConfig(level="WARNING"))
    log = structlog.get_logger("apimeta.tests")

    log.debug("hidden_debug")
    log.info("hidden_info")
    log.warning("shown_warning")

    err = capsys.readouterr().err
    assert "hidden" not in err
    assert "shown_warning" in err


def test_message_text_is_redacted(capsys: pytest.CaptureFixture[str]) -> None:
    setup_logging(LoggingConfig(level="INFO"))

    logging.getLogger("apimeta.tests").info("sending Bearer abc.def with token=xyz")

    err = capsys.readouterr().err
    assert "abc.def" not in err
    assert "xyz" not in err


def test_shutdown_removes_installed_handlers(tmp_path: Path) -> None:
    setup_logging(LoggingConfig(log_file=tmp_path / "apimeta.log"))
    assert len(logging.getLogger("apimeta").handlers) == 2

    shutdown_logging()

    assert logging.getLogger("apimeta").handlers == []


def test_setup_twice_replaces_sinks() -> None:
    setup_logging(LoggingConfig())
    setup_logging(LoggingConfig())

    assert len(logging.getLogger("apimeta").handlers) == 1


def test_logging_config_from_mapping() -> None:
    verbose = LoggingConfig.from_mapping({"log_level": "ERROR"}, verbose=True)
    plain = LoggingConfig.from_mapping(
        {"log_level": "INFO", "log_format": "json", "log_file": "run.log"}
    )

    assert verbose.level == "DEBUG"
    assert plain.level == "INFO"
    assert plain.log_format == "json"
    assert plain.log_file == "run.log"


def test_unknown_level_is_rejected() -> None:
    with pytest.raises(ValueError, match="unsupported logging level"):
        setup_logging(LoggingConfig(level="LOUD"))


def test_default_log_redactor_keeps_env_references() -> None:
    redacted = default_log_redactor(
        {"token_env": "GITHUB_TOKEN", "items": [{"api_key": "x"}, f"value {FAKE_TOKEN}"]}
    )

    assert redacted == {
        "token_env": "GITHUB_TOKEN",
        "items": [{"api_key": "***REDACTED***"}, "value ***REDACTED***"],
    }
