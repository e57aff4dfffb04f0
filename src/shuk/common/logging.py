"""Logging setup for the shuk command line tool.

Log records go to stderr so the link printed on stdout can be piped. Fields
added with ``LogContext`` (bucket, key) travel on each record as
``extra_fields``; the JSON formatter merges them into the document and the
text formatters append them as ``key=value`` pairs.
"""

import logging
import logging.handlers
import json
import sys
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from pathlib import Path

# Third-party loggers that drown out our own output at DEBUG
NOISY_LOGGERS = ("urllib3", "botocore", "boto3", "s3transfer")

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _context_suffix(record: logging.LogRecord) -> str:
    fields = getattr(record, "extra_fields", None)
    if not fields:
        return ""
    return " [" + " ".join(f"{name}={value}" for name, value in fields.items()) + "]"


class StructuredFormatter(logging.Formatter):
    """One JSON document per record; used for log files and ``format = "json"``."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        fields = getattr(record, "extra_fields", None)
        if fields:
            log_data.update(fields)

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, default=str)


class DetailedFormatter(logging.Formatter):
    """Text with logger, function and line; for ``-v`` troubleshooting."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
            datefmt=DATE_FORMAT,
        )

    def format(self, record: logging.LogRecord) -> str:
        return super().format(record) + _context_suffix(record)


class SimpleFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s [%(levelname)s] %(message)s", datefmt=DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        return super().format(record) + _context_suffix(record)


FORMATTERS = {
    "json": StructuredFormatter,
    "detailed": DetailedFormatter,
    "simple": SimpleFormatter,
}


def setup_logging(
    level: str = "WARNING",
    format: str = "simple",
    log_file: Optional[Path] = None,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
) -> None:
    """Configure the root logger.

    Replaces any existing handlers. The console handler writes to stderr;
    a log file, when given, is rotated and always written as JSON.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: Console format (simple, detailed, json)
        log_file: Optional log file path
        max_file_size_mb: Rotate the log file at this size
        backup_count: Rotated files to keep
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(FORMATTERS.get(format, SimpleFormatter)())
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    # SDK debug output includes signed request headers
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class LogContext:
    """Attach fields to every record created inside the ``with`` block.

    Applies to records from all loggers, so lookups and transfers running
    under a share operation carry the same bucket and key.
    """

    def __init__(self, logger: logging.Logger, **fields: Any) -> None:
        self.logger = logger
        self.fields = fields
        self._previous_factory = None

    def __enter__(self) -> "LogContext":
        previous = logging.getLogRecordFactory()
        self._previous_factory = previous
        fields = self.fields

        def record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
            record = previous(*args, **kwargs)
            record.extra_fields = {**getattr(record, "extra_fields", {}), **fields}
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        logging.setLogRecordFactory(self._previous_factory)
