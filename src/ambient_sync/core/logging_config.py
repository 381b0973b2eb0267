"""
Structured Logging Configuration
=================================

Provides centralized logging configuration for the sync jobs.
Supports both JSON structured logging (for production) and human-readable
format (for development).

Features:
- JSON structured logs for production
- Color-coded console logs for development
- Run ID tracking so every line of one cron run can be correlated
- Optional JSON file output
- Stage timing via PerformanceLogger
"""

import contextvars
import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger as loguru_logger


# =================================================================
# RUN ID CONTEXT
# =================================================================

run_id_context: contextvars.ContextVar[str] = contextvars.ContextVar(
    "run_id", default="no-run-id"
)


def new_run_id() -> str:
    """Assign a fresh run id to the current context and return it."""
    run_id = uuid.uuid4().hex[:12]
    run_id_context.set(run_id)
    return run_id


class RunIDFilter(logging.Filter):
    """Logging filter that adds run_id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_context.get()
        return True


# =================================================================
# LOG FORMATTERS
# =================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON structured logging formatter for production.

    Outputs logs in JSON format with standard fields:
    - timestamp: ISO 8601 format
    - level: Log level (INFO, ERROR, etc.)
    - logger: Logger name
    - message: Log message
    - module, function, line: call site
    - run_id: Run ID (if available)
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "run_id"):
            log_data["run_id"] = record.run_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        return json.dumps(log_data, ensure_ascii=False)


class ColoredFormatter(logging.Formatter):
    """Color-coded console formatter for development."""

    COLORS = {
        "DEBUG": "\033[37m",      # Gray
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[41m",   # Red background
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[levelname]}{levelname:8}{self.RESET}"
            )

        formatted = super().format(record)
        record.levelname = levelname

        return formatted


# =================================================================
# LOG HANDLERS
# =================================================================

def get_console_handler(environment: str) -> logging.StreamHandler:
    """
    Get console handler with appropriate formatter.

    Args:
        environment: "production" selects JSON output

    Returns:
        StreamHandler: Console handler for stderr
    """
    handler = logging.StreamHandler(sys.stderr)

    if environment == "production":
        formatter = StructuredFormatter()
    else:
        formatter = ColoredFormatter(
            fmt="%(asctime)s - %(name)-40s - %(levelname)s - [%(run_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    handler.setFormatter(formatter)
    handler.addFilter(RunIDFilter())
    return handler


def get_file_handler(log_file: Path) -> Optional[logging.FileHandler]:
    """
    Get file handler with JSON formatter.

    Returns None when the log directory cannot be created, in which case
    file logging is skipped.
    """
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        import warnings
        warnings.warn(f"Could not create log directory: {e}. File logging disabled.")
        return None

    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(StructuredFormatter())
    handler.addFilter(RunIDFilter())

    return handler


# =================================================================
# LOGGER SETUP
# =================================================================

def setup_logging(
    log_level: str = "INFO",
    environment: str = "development",
    log_file: Optional[Path] = None
) -> None:
    """
    Configure stdlib logging and the loguru sink for the whole process.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Deployment environment name
        log_file: Optional path of a JSON log file

    Example:
        >>> setup_logging(log_level="DEBUG")
        >>> logger = logging.getLogger(__name__)
        >>> logger.info("Sync started")
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    root_logger.addHandler(get_console_handler(environment))

    if log_file is not None:
        file_handler = get_file_handler(log_file)
        if file_handler:
            root_logger.addHandler(file_handler)

    # Third-party transports are noisy at INFO
    for noisy in ("elasticsearch", "elastic_transport", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    # Services log through loguru; keep its level and destination in step
    loguru_logger.remove()
    loguru_logger.add(
        sys.stderr,
        level=log_level.upper(),
        serialize=environment == "production",
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
               "<cyan>{name}</cyan> - <level>{message}</level>",
    )
    if log_file is not None:
        loguru_logger.add(str(log_file), level=log_level.upper(), serialize=True)

    logging.getLogger(__name__).info(
        f"🔧 Logging configured: level={log_level}, environment={environment}"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with run ID tracking.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Querying cluster", extra={"extra_data": {"cluster": "STAGING"}})
    """
    logger = logging.getLogger(name)
    logger.addFilter(RunIDFilter())
    return logger


# =================================================================
# PERFORMANCE LOGGING
# =================================================================

class PerformanceLogger:
    """
    Context manager for performance logging.

    Logs execution time of code blocks.

    Example:
        >>> with PerformanceLogger("fetch_station_data"):
        ...     outcome = await fetcher.fetch(origin)
    """

    def __init__(self, operation_name: str, logger_name: Optional[str] = None):
        self.operation_name = operation_name
        self.logger = get_logger(logger_name or __name__)
        self.start_time = None
        self.elapsed: Optional[float] = None

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.debug(f"⏱️  Started: {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = (datetime.now() - self.start_time).total_seconds()

        if exc_type:
            self.logger.error(
                f"❌ Failed: {self.operation_name} ({self.elapsed:.2f}s)",
                exc_info=True
            )
        else:
            self.logger.info(
                f"✅ Completed: {self.operation_name} ({self.elapsed:.2f}s)"
            )
