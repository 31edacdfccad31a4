"""
Structured JSON logging.

Every log line is a single JSON object, so auth decisions (which credential
was chosen, refreshes, consent flow transitions, fallbacks) can be filtered
by field. Structured fields are attached with:

    logger.info("Credential resolved", extra={"log_data": {"kind": "oauth"}})

Logs go to stderr: with the stdio transport, stdout carries the MCP protocol
stream and anything else written there would corrupt it.
"""

import json
import logging
import sys
from typing import TextIO


class JSONLogFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Example output:

        {"timestamp": "2026-02-06 10:30:00,123", "level": "INFO",
         "logger": "blogger_mcp.resolver", "message": "Credential resolved",
         "requirement": "write", "kind": "oauth"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge any extra fields passed via logger.info("msg", extra={"log_data": {...}})
        if hasattr(record, "log_data"):
            log_entry.update(record.log_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str = "info", stream: TextIO | None = None) -> None:
    """Install the JSON formatter on the root logger."""
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONLogFormatter())

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )
