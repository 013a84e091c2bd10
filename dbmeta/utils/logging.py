"""Logging setup for the describe tool.

Reports are written to stdout, so log records always go to stderr (and
optionally to a file) to keep the two streams apart.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

QUIET_LOGGERS = ("psycopg2", "sqlglot", "asyncio")


class StructuredFormatter(logging.Formatter):
    """JSON formatter, one object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # set by DataSourceLogger
        if hasattr(record, "context"):
            log_data.update(record.context)

        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """Human-readable formatter."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging(
    level: str = "WARNING",
    structured: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Configure the root logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        structured: Emit JSON records instead of plain lines
        log_file: Also write records to this file
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)
    formatter = StructuredFormatter() if structured else StandardFormatter()

    handlers = []
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)
    handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


class DataSourceLogger(logging.LoggerAdapter):
    """Adapter that tags every record with the active data source."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.setdefault("extra", {})
        extra["context"] = dict(self.extra)
        return f"[{self.extra.get('datasource', '?')}] {msg}", kwargs


def get_datasource_logger(name: str, datasource: str) -> DataSourceLogger:
    """Logger whose records carry the data source name.

    Example:
        >>> log = get_datasource_logger(__name__, "warehouse")
        >>> log.info("connected")  # "[warehouse] connected"
    """
    return DataSourceLogger(logging.getLogger(name), {"datasource": datasource})
