"""Unit tests for logging configuration."""

import json
from pathlib import Path

from loguru import logger

from ballot_api.core.logging import AUDIT_CHANNEL, audit_logger, setup_logging


class TestLogging:
    """Tests for Loguru sink setup."""

    def test_setup_logging_does_not_raise(self) -> None:
        setup_logging("DEBUG")
        setup_logging("warning")
        setup_logging("INFO")

    def test_file_sinks_split_audit_records(self, tmp_path: Path) -> None:
        setup_logging("INFO", str(tmp_path / "logs"))
        try:
            logger.info("election sweep ran")
            audit_logger.bind(event="vote_cast").info("vote accepted")
            logger.complete()

            operational = (tmp_path / "logs" / "ballot-api.log").read_text()
            audit_lines = (tmp_path / "logs" / "ballot-audit.jsonl").read_text().splitlines()
        finally:
            setup_logging("INFO")

        assert "election sweep ran" in operational
        assert "vote accepted" not in operational
        assert len(audit_lines) == 1
        record = json.loads(audit_lines[0])["record"]
        assert record["message"] == "vote accepted"
        assert record["extra"]["event"] == "vote_cast"

    def test_audit_logger_is_tagged(self) -> None:
        captured: list[str] = []
        sink_id = logger.add(captured.append, serialize=True)
        try:
            audit_logger.info("vote accepted")
        finally:
            logger.remove(sink_id)
        assert json.loads(captured[0])["record"]["extra"]["channel"] == AUDIT_CHANNEL
