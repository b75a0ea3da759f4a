import logging
import logging.config
import os
import sys
import uuid
from datetime import datetime
from typing import Optional

import structlog

# Applied to structlog events and to records from plain stdlib loggers
# (werkzeug, apscheduler) alike
SHARED_PROCESSORS = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 7


def configure_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """
    Configure structured logging for the service.

    Every record, whether it comes from a structlog logger or a third-party
    stdlib logger, is rendered as one JSON object per line on stdout and, when
    `log_file` is set, in a rotating log file.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path; its directory is created if missing.
    """
    log_level = log_level.upper()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *SHARED_PROCESSORS,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "structured",
            "stream": sys.stdout,
        }
    }
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "structured",
            "filename": log_file,
            "maxBytes": LOG_FILE_MAX_BYTES,
            "backupCount": LOG_FILE_BACKUPS,
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": structlog.stdlib.ProcessorFormatter,
                "foreign_pre_chain": SHARED_PROCESSORS,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.format_exc_info,
                    structlog.processors.JSONRenderer(),
                ],
            }
        },
        "handlers": handlers,
        "root": {"level": log_level, "handlers": list(handlers)},
    })

    logger = structlog.get_logger("jobber_agent")
    logger.info("Logging configured", level=log_level, file=log_file)
    return logger


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class ProcessingContext:
    """Context manager for processing one queue entry with correlation ID."""

    def __init__(self, operation_type: str, operation_id: Optional[str] = None, **fields):
        self.operation_type = operation_type
        self.operation_id = operation_id or str(uuid.uuid4())[:8]
        self.fields = fields
        self.logger = get_logger("jobber_agent.processing")
        self.start_time = None
        self.duration = None

    def __enter__(self):
        self.start_time = datetime.utcnow()
        self.logger.info(
            "Processing started",
            operation_type=self.operation_type,
            operation_id=self.operation_id,
            start_time=self.start_time.isoformat(),
            **self.fields
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = (datetime.utcnow() - self.start_time).total_seconds()

        if exc_type is None:
            self.logger.info(
                "Processing completed",
                operation_type=self.operation_type,
                operation_id=self.operation_id,
                duration_seconds=self.duration,
                status="success",
                **self.fields
            )
        else:
            self.logger.warning(
                "Processing failed",
                operation_type=self.operation_type,
                operation_id=self.operation_id,
                duration_seconds=self.duration,
                status="error",
                error_type=exc_type.__name__,
                error_message=str(exc_val),
                **self.fields
            )

        return False  # Don't suppress exceptions
