"""Tests for structured logging."""

import json
import logging
from datetime import datetime, timezone

from claimease.core.config import settings
from claimease.core.logging import JSONFormatter, get_logger, resolve_level


def read_lines(log_dir, prefix):
    today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    path = log_dir / f"{prefix}-{today}.log"
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


class TestJSONFormatter:
    """Test record rendering."""

    def test_fields(self) -> None:
        """Test timestamp, level, message and meta."""
        record = logging.LogRecord("claimease.test", logging.WARNING, __file__, 1, "Slow query", None, None)
        record.meta = {"collection": "claims"}

        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "WARN"
        assert entry["message"] == "Slow query"
        assert entry["collection"] == "claims"
        assert entry["timestamp"].endswith("+00:00")


class TestLogFiles:
    """Test daily log files."""

    def test_info_goes_to_app_log(self, isolated_settings) -> None:
        """Test records land in the app log only."""
        get_logger("files").info("Policy created", policy_id="pol_1")

        lines = read_lines(isolated_settings / "logs", "app")
        assert lines[-1]["message"] == "Policy created"
        assert lines[-1]["policy_id"] == "pol_1"
        assert read_lines(isolated_settings / "logs", "error") == []

    def test_errors_also_in_error_log(self, isolated_settings) -> None:
        """Test error records are duplicated."""
        get_logger("files").error("Storage failed", collection="payments")

        errors = read_lines(isolated_settings / "logs", "error")
        assert errors[-1]["level"] == "ERROR"
        assert errors[-1]["collection"] == "payments"
        assert read_lines(isolated_settings / "logs", "app")[-1]["message"] == "Storage failed"

    def test_file_logging_disabled(self, isolated_settings, monkeypatch) -> None:
        """Test LOG_TO_FILE switches files off."""
        monkeypatch.setattr(settings, "LOG_TO_FILE", False)
        get_logger("files").error("Not written")

        messages = [entry["message"] for entry in read_lines(isolated_settings / "logs", "error")]
        assert "Not written" not in messages

    def test_security_severity(self, isolated_settings) -> None:
        """Test high severity security events are errors."""
        logger = get_logger("files")
        logger.log_security("token_reuse", severity="high", user_id="usr_1")
        logger.log_security("failed_login", severity="medium")

        lines = read_lines(isolated_settings / "logs", "app")
        assert [(entry["event"], entry["level"]) for entry in lines[-2:]] == [
            ("token_reuse", "ERROR"),
            ("failed_login", "WARN"),
        ]

    def test_requests_are_logged(self, isolated_settings, client) -> None:
        """Test the request middleware writes an access line."""
        client.get("/health")

        requests = [entry for entry in read_lines(isolated_settings / "logs", "app")
                    if entry["message"] == "HTTP Request"]
        assert requests[-1]["url"] == "/health"
        assert requests[-1]["status_code"] == 200


class TestLevels:
    """Test level names."""

    def test_resolve_level(self) -> None:
        """Test configured names map to logging levels."""
        assert resolve_level("warn") == logging.WARNING
        assert resolve_level("DEBUG") == logging.DEBUG
        assert resolve_level("verbose") == logging.INFO
