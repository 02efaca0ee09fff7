"""Logging setup for configuration resolution."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

ROOT_LOGGER = "quality_tools"

# -v count -> level
_LEVELS = {0: logging.WARNING, 1: logging.INFO}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers and CI annotations."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "path": getattr(record, "path", None),
            "tool": getattr(record, "tool", None),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(
    verbosity: int = 0, json_output: bool = False, stream: TextIO | None = None
) -> logging.Logger:
    """
    Attach a single stream handler to the package logger.

    Args:
        verbosity: 0 for warnings, 1 for info, 2 or more for debug
        json_output: Emit JSON lines instead of plain text
        stream: Target stream (defaults to stderr)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER)

    handler = logging.StreamHandler(stream or sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    # Reconfiguring replaces the previous handler instead of duplicating output
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)

    logger.setLevel(_LEVELS.get(verbosity, logging.DEBUG))
    logger.propagate = False
    return logger
