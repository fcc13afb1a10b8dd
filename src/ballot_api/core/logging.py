"""Loguru sinks for operational and ballot-audit logging.

Operational records go to stderr in a readable line format. Records bound
through ``audit_logger`` are kept apart: they are serialized as JSON, never
mixed into the operational stream, and get their own longer-lived file when a
``log_dir`` is configured.
"""

import sys
from pathlib import Path
from typing import Any

from loguru import logger

AUDIT_CHANNEL = "ballot-audit"
AUDIT_RETENTION = "365 days"

_LINE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} | {message}"


def _is_audit(record: dict[str, Any]) -> bool:
    return record["extra"].get("channel") == AUDIT_CHANNEL


def _is_operational(record: dict[str, Any]) -> bool:
    return not _is_audit(record)


def setup_logging(log_level: str = "INFO", log_dir: str | None = None) -> None:
    """Replace all Loguru sinks with the service configuration.

    Args:
        log_level: Minimum level for operational records. Audit records are
            always emitted at INFO or above.
        log_dir: When set, ``ballot-api.log`` (rotated daily, kept a week) and
            ``ballot-audit.jsonl`` (rotated daily, kept a year) are written here.
    """
    level = log_level.upper()
    logger.remove()
    logger.add(sys.stderr, level=level, format=_LINE_FORMAT, filter=_is_operational)
    logger.add(sys.stderr, level="INFO", serialize=True, filter=_is_audit)

    if not log_dir:
        return

    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    logger.add(
        directory / "ballot-api.log",
        level=level,
        format=_LINE_FORMAT,
        filter=_is_operational,
        rotation="24h",
        retention="7 days",
    )
    logger.add(
        directory / "ballot-audit.jsonl",
        level="INFO",
        serialize=True,
        filter=_is_audit,
        rotation="24h",
        retention=AUDIT_RETENTION,
    )


audit_logger = logger.bind(channel=AUDIT_CHANNEL)
