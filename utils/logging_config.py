"""
Structured logging configuration for the stats sink
"""
import logging
import json
import sys
import os
from datetime import datetime, timezone

from config import LoggingConfig

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset([
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'exc_info', 'exc_text', 'stack_info',
    'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'message',
    'taskName',
])


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging"""

    def __init__(self, service_name: str = "statsink", include_trace: bool = False):
        super().__init__()
        self.service_name = service_name
        self.include_trace = include_trace

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON"""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }

        # Add thread and process info for debugging
        if self.include_trace:
            log_entry.update({
                "thread": record.thread,
                "thread_name": record.threadName,
                "process": record.process,
                "filename": record.filename,
                "function": record.funcName,
                "line_number": record.lineno,
            })

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str)


def setup_logging(
    service_name: str = "statsink",
    level: str = "INFO",
    structured: bool = True,
    include_trace: bool = False
) -> None:
    """Configure application logging"""

    # Get log level from environment or parameter
    log_level = os.getenv("LOG_LEVEL", level).upper()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    if structured:
        formatter = StructuredFormatter(service_name=service_name, include_trace=include_trace)
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(formatter)

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level))

    # The InfluxDB client logs every request through urllib3
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def setup_logging_from_config(config: LoggingConfig, service_name: str = "statsink") -> None:
    setup_logging(
        service_name=service_name,
        level=config.level,
        structured=config.format == "structured",
        include_trace=config.include_trace,
    )
