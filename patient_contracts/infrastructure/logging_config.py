"""Structured logging configuration.

Emits JSON lines for log collectors or human-readable text for the
terminal. Log records emitted by this package never carry field values,
only paths, counts and identifiers.

Security Impact:
    - Structured format enables audit trail analysis
    - Extra fields are attached explicitly; nothing is inferred from payloads
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "patient_contracts"


class StructuredFormatter(logging.Formatter):
    """Structured JSON formatter for logs.

    Fields passed as ``extra={"extra_fields": {...}}`` are merged into the
    top-level JSON object.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Parameters:
            record: Log record to format

        Returns:
            JSON string representation of log record
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


def setup_logging(use_json: bool = False, log_level: str = "INFO") -> None:
    """Setup application logging.

    Parameters:
        use_json: Emit one JSON object per line instead of text
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    # stderr keeps command output on stdout machine-readable
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if use_json:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
    logger.debug(f"Logging configured (level={logging.getLevelName(level)}, json={use_json})")


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Parameters:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
