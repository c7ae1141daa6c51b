"""Unit tests for observability logging."""

from __future__ import annotations

import io
import json
import logging
from typing import Iterator

import pytest
import structlog
from structlog.testing import capture_logs

from reliable_delivery.config import DeliverySettings
from reliable_delivery.kernel.errors import StorageError
from reliable_delivery.observability.logging import (
    configure_from_settings,
    configure_logging,
    expand_errors,
    get_logger,
)


@pytest.fixture()
def restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    level = root.level
    yield
    structlog.reset_defaults()
    for handler in list(root.handlers):
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(handler)
    root.setLevel(level)


class TestGetLogger:
    def test_binds_initial_values(self) -> None:
        with capture_logs() as logs:
            get_logger("relay", relay_id="r-1").info("outbox.dispatched", message_id="G1")
        assert logs == [
            {"relay_id": "r-1", "message_id": "G1", "event": "outbox.dispatched", "log_level": "info"}
        ]

    def test_without_initial_values(self) -> None:
        with capture_logs() as logs:
            get_logger().warning("inbox.duplicate")
        assert logs[0]["event"] == "inbox.duplicate"
        assert logs[0]["log_level"] == "warning"


class TestConfigureLogging:
    def test_json_output(self, capsys: pytest.CaptureFixture[str], restore_logging: None) -> None:
        configure_logging("INFO", json=True)
        get_logger("reliable_delivery.test").info("saga.completed", saga_id="order-1")
        line = capsys.readouterr().err.strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["event"] == "saga.completed"
        assert payload["saga_id"] == "order-1"
        assert payload["level"] == "info"
        assert payload["logger"] == "reliable_delivery.test"
        assert "timestamp" in payload

    def test_level_filters(self, capsys: pytest.CaptureFixture[str], restore_logging: None) -> None:
        configure_logging(logging.WARNING, json=True)
        get_logger("reliable_delivery.test").info("outbox.relay_pass")
        assert capsys.readouterr().err == ""

    def test_stdlib_records_rendered(self, capsys: pytest.CaptureFixture[str], restore_logging: None) -> None:
        configure_logging("INFO", json=True)
        logging.getLogger("sqlalchemy.engine").warning("pool exhausted")
        payload = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert payload["event"] == "pool exhausted"
        assert payload["logger"] == "sqlalchemy.engine"

    def test_reconfigure_replaces_handler(self, restore_logging: None) -> None:
        configure_logging("INFO")
        configure_logging("DEBUG", json=False)
        root = logging.getLogger()
        ours = [h for h in root.handlers if isinstance(h.formatter, structlog.stdlib.ProcessorFormatter)]
        assert len(ours) == 1
        assert root.level == logging.DEBUG

    def test_library_error_is_expanded(self, capsys: pytest.CaptureFixture[str], restore_logging: None) -> None:
        configure_logging("INFO", json=True)
        get_logger("reliable_delivery.test").error("outbox.save_failed", error=StorageError("disk full", store="outbox"))
        payload = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert payload["error"]["code"] == "storage_error"
        assert payload["error"]["detail"] == {"store": "outbox"}
        assert payload["error"]["retryable"] is True


class TestConfigureFromSettings:
    def test_applies_level_and_format(self, restore_logging: None) -> None:
        stream = io.StringIO()
        configure_from_settings(DeliverySettings(log_level="WARNING", log_json=True), stream=stream)
        logger = get_logger("reliable_delivery.test")
        logger.info("outbox.relay_pass")
        logger.warning("outbox.backlog", pending=250)
        lines = stream.getvalue().strip().splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["pending"] == 250


class TestExpandErrors:
    def test_leaves_plain_values(self) -> None:
        event = {"event": "saga.step_failed", "error": "ValueError: boom"}
        assert expand_errors(None, "warning", dict(event)) == event

    def test_expands_base_error(self) -> None:
        out = expand_errors(None, "error", {"event": "x", "error": StorageError("down", store="inbox")})
        assert out["error"]["message"] == "down"
