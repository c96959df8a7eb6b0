"""Tests for observability/logging.py."""

from __future__ import annotations

import json
import logging
from typing import Any

import pytest
import structlog

from couch_cache_infra.observability.logging import (
    _resolve_level,
    command_context,
    configure_logging,
    operation_context,
)
from tests.mocks.mock_settings import make_settings


def _json_lines(stream: str) -> list[dict[str, Any]]:
    return [json.loads(line) for line in stream.splitlines() if line.strip()]


@pytest.mark.unit
class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_entries_go_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Log output never mixes with command results on stdout."""
        configure_logging(make_settings(log_format="json"))
        structlog.get_logger("couch_cache_test").info("cache_set", key="k1")

        captured = capsys.readouterr()
        assert captured.out == ""
        entry = _json_lines(captured.err)[-1]
        assert entry["event"] == "cache_set"
        assert entry["key"] == "k1"
        assert entry["level"] == "info"
        assert entry["logger"] == "couch_cache_test"

    def test_stdlib_records_share_the_format(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Foreign stdlib loggers are rendered as JSON too."""
        configure_logging(make_settings(log_format="json"))
        logging.getLogger("couch_cache_stdlib").warning("plain record")

        entry = _json_lines(capsys.readouterr().err)[-1]
        assert entry["event"] == "plain record"
        assert entry["level"] == "warning"

    def test_level_threshold(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Entries below the configured level are dropped."""
        configure_logging(make_settings(log_format="json", log_level="WARNING"))
        log = structlog.get_logger("couch_cache_level")
        log.info("cache_miss")
        log.warning("store_timeout")

        events = [e["event"] for e in _json_lines(capsys.readouterr().err)]
        assert events == ["store_timeout"]

    def test_http_client_loggers_quieted(self) -> None:
        """httpx request lines stay off even at DEBUG."""
        configure_logging(make_settings(log_level="DEBUG"))
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_reconfiguring_replaces_the_handler(self) -> None:
        """One handler per configuration, so repeated commands do not duplicate lines."""
        configure_logging(make_settings())
        configure_logging(make_settings())
        assert len(logging.getLogger().handlers) == 1


@pytest.mark.unit
class TestLogContext:
    """Tests for command_context and operation_context."""

    def test_command_fields_reach_entries(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Entries inside a command carry its name, collection and current operation."""
        configure_logging(make_settings(log_format="json"))
        log = structlog.get_logger("couch_cache_ctx")
        with command_context("get", "couch_cache"):
            with operation_context("get_specific"):
                log.info("cache_miss")
            log.info("cache_hit")

        inner, outer = _json_lines(capsys.readouterr().err)[-2:]
        assert inner["command"] == outer["command"] == "get"
        assert inner["collection"] == outer["collection"] == "couch_cache"
        assert inner["operation"] == "get_specific"
        assert "operation" not in outer

    def test_command_context_cleared_on_error(self) -> None:
        """A failing command leaves nothing bound."""
        with pytest.raises(RuntimeError), command_context("clear", "couch_cache"):
            raise RuntimeError("boom")
        assert structlog.contextvars.get_contextvars() == {}


@pytest.mark.unit
class TestResolveLevel:
    """Tests for _resolve_level."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("debug", logging.DEBUG),
            ("WARNING", logging.WARNING),
            ("unknown", logging.INFO),
        ],
    )
    def test_resolve_level(self, name: str, expected: int) -> None:
        """Names are case-insensitive and unknown names fall back to INFO."""
        assert _resolve_level(name) == expected
