"""
Structured logging for CacheVault.

Helpers that record cache operations together with their context so
failures in load/flush can be traced without interrupting the host.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from cachevault.shared.constants import Encoding, Logging
from cachevault.shared.errors import CacheVaultError, ErrorContext

if TYPE_CHECKING:
    from cachevault.config.settings import LoggingSettings


class StructuredFormatter(logging.Formatter):
    """
    Formatter that renders log records as JSON objects.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a log record as JSON.

        Args:
            record: log record

        Returns:
            JSON string
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=timezone.utc,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for attribute in ("error_code", "context", "operation", "duration_ms", "result_info"):
            if hasattr(record, attribute):
                log_entry[attribute] = getattr(record, attribute)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def _create_rich_console() -> Console:
    """
    Create the rich console used by the console handler.

    Returns:
        Console with the CacheVault theme
    """
    custom_theme = Theme(
        {
            "logging.level.debug": "cyan",
            "logging.level.info": "green",
            "logging.level.warning": "yellow",
            "logging.level.error": "red bold",
            "logging.level.critical": "red bold reverse",
            "log.time": "dim cyan",
            "log.message": "white",
            "log.path": "dim blue",
        }
    )
    return Console(theme=custom_theme, stderr=True)


def setup_structured_logger(
    name: str = Logging.LOGGER_NAME,
    level: str = Logging.DEFAULT_LEVEL,
    log_file: str | None = None,
    *,
    use_rich_console: bool = True,
) -> logging.Logger:
    """
    Configure a logger for structured output.

    Args:
        name: logger name (default: "cachevault")
        level: log level (default: "INFO")
        log_file: optional log file path, always written as JSON
        use_rich_console: use rich for console output instead of JSON

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers when called twice
    if logger.handlers:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    log_level = getattr(logging, level.upper())
    logger.setLevel(log_level)

    if use_rich_console:
        handler: logging.Handler = RichHandler(
            console=_create_rich_console(),
            show_time=True,
            show_level=True,
            show_path=True,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            log_time_format=Logging.TIME_FORMAT,
        )
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
    handler.setLevel(log_level)
    logger.addHandler(handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding=Encoding.DEFAULT)
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def configure_logging(
    settings: LoggingSettings,
    name: str = Logging.LOGGER_NAME,
) -> logging.Logger:
    """
    Configure the package logger from the logging settings section.

    Args:
        settings: logging section, e.g. ``load_settings().logging``
        name: logger name (default: "cachevault")

    Returns:
        The configured logger
    """
    return setup_structured_logger(
        name,
        level=settings.level,
        log_file=settings.file,
        use_rich_console=settings.use_rich_console,
    )


def _context_to_dict(context: dict[str, Any] | ErrorContext | None) -> dict[str, Any]:
    if context is None:
        return {}
    if isinstance(context, ErrorContext):
        return context.as_dict()
    return dict(context)


def log_operation_error(
    logger: logging.Logger,
    error: CacheVaultError,
    operation: str | None = None,
    additional_context: dict[str, Any] | ErrorContext | None = None,
) -> None:
    """
    Record a CacheVaultError as a structured error log.

    Args:
        logger: logger instance
        error: error to record
        operation: operation name (defaults to the error context's)
        additional_context: extra context merged over the error's own
    """
    context_dict: dict[str, Any] = {}
    if error.context:
        context_dict.update(error.context.as_dict())
    context_dict.update(_context_to_dict(additional_context))

    logger.error(
        error.message,
        extra={
            "error_code": error.code.name,
            "context": context_dict,
            "operation": operation or error.context.operation,
        },
        exc_info=error.original_error if error.original_error is not None else False,
    )


def log_operation_success(
    logger: logging.Logger,
    operation: str,
    duration_ms: float,
    result_info: dict[str, Any] | None = None,
    context: dict[str, Any] | ErrorContext | None = None,
) -> None:
    """
    Record a successful operation at DEBUG level.

    Args:
        logger: logger instance
        operation: operation name
        duration_ms: elapsed time in milliseconds
        result_info: operation results (counts, paths)
        context: context information
    """
    logger.debug(
        "Operation '%s' completed successfully",
        operation,
        extra={
            "operation": operation,
            "duration_ms": duration_ms,
            "result_info": result_info or {},
            "context": _context_to_dict(context),
        },
    )


def log_operation_start(
    logger: logging.Logger,
    operation: str,
    context: dict[str, Any] | None = None,
) -> None:
    """
    Record the start of an operation at DEBUG level.

    Args:
        logger: logger instance
        operation: operation name
        context: context information
    """
    logger.debug(
        "Starting operation '%s'",
        operation,
        extra={
            "operation": operation,
            "context": context or {},
        },
    )
