"""
Structured JSON Logging Configuration

Structured logging shared by the games event consumer, the request-handling
services and the publisher.

Every log line is a single JSON object so the worker output can be shipped
straight to CloudWatch / ELK and filtered by field:

{
  "timestamp": "2025-01-10T14:30:00.123Z",
  "level": "INFO",
  "service": "games-events-worker",
  "logger": "games_pipeline.consumer.consumer",
  "correlation_id": "0f6a2c3e-5b7d-4f0e-9e0c-1a2b3c4d5e6f",
  "message": "Message processed",
  "extra": {"event_type": "GameStarted", "subject_id": "...", "processing_time_ms": 12.4}
}

CORRELATION IDS:
- Consumer side: the SQS MessageId of the delivery being processed
- Producer side: the game id the request is about
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

# Attributes every LogRecord carries; anything else came from ``extra=``
_STANDARD_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName", "correlation_id",
    }
)


# ==============================================================================
# JSON FORMATTER
# ==============================================================================


class JSONFormatter(logging.Formatter):
    """
    Render log records as one-line JSON documents.

    Output keys:
    - timestamp: ISO 8601 UTC with millisecond precision
    - level / service / logger / message
    - correlation_id: message id or game id, when bound
    - exception: formatted traceback, when exc_info is set
    - extra: every field passed through ``extra=``
    """

    def __init__(self, service_name: str = "games-pipeline", include_extra: bool = True):
        super().__init__()
        self.service_name = service_name
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self._format_timestamp(record.created),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "correlation_id"):
            log_data["correlation_id"] = record.correlation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            extra_fields = {
                k: v
                for k, v in record.__dict__.items()
                if k not in _STANDARD_ATTRS and not k.startswith("_")
            }
            if extra_fields:
                log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)

    @staticmethod
    def _format_timestamp(created: float) -> str:
        """Format a record's epoch timestamp as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
        dt = datetime.fromtimestamp(created, tz=timezone.utc)
        return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


# ==============================================================================
# PLAIN TEXT FORMATTER (for development)
# ==============================================================================


class PlainTextFormatter(logging.Formatter):
    """
    Human-readable formatter for local runs.

    Format: [2025-01-10 14:30:00] INFO [games-events-worker] Message processed
    """

    def __init__(self, service_name: str = "games-pipeline"):
        super().__init__(
            fmt=f"[%(asctime)s] %(levelname)s [{service_name}] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


# ==============================================================================
# LOGGER SETUP
# ==============================================================================


def setup_logger(
    name: str,
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
) -> logging.Logger:
    """
    Configure a stdout logger for one of the pipeline services.

    Args:
        name: Logger name. Pass ``"games_pipeline"`` to configure the whole
            package tree, since module loggers propagate to it.
        service_name: Value of the ``service`` field (e.g. "games-events-worker")
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: "json" or "text"

    Returns:
        The configured logger. Calling again with the same name returns the
        existing logger without adding a second handler.

    Example:
        >>> logger = setup_logger("games_pipeline", "games-events-worker")
        >>> logger.info("Worker started", extra={"queue_url": url})
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logger.level)

    if log_format.lower() == "json":
        formatter: logging.Formatter = JSONFormatter(service_name=service_name)
    else:
        formatter = PlainTextFormatter(service_name=service_name)

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


# ==============================================================================
# CORRELATION ID ADAPTER
# ==============================================================================


class CorrelationAdapter(logging.LoggerAdapter):
    """
    Logger adapter that stamps ``correlation_id`` on every record.

    Example:
        >>> message_logger = CorrelationAdapter(logger, {"correlation_id": message.message_id})
        >>> message_logger.info("Processing message")
    """

    def process(self, msg: str, kwargs: dict) -> tuple:
        extra = dict(kwargs.get("extra") or {})

        if "correlation_id" in self.extra:
            extra["correlation_id"] = self.extra["correlation_id"]

        kwargs["extra"] = extra
        return msg, kwargs
