"""Structured logging configuration for audiopass."""

import logging
import sys
from pathlib import Path
from typing import Any, Optional

import structlog

from audiopass.config import LoggingConfig

SHARED_PROCESSORS = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]


def _renderer(log_format: str) -> Any:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def _file_handler(output: str, level: int) -> Optional[logging.Handler]:
    """File handler for the log output, None if the file can't be opened."""
    try:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(output, mode="a", encoding="utf-8")
    except OSError as e:
        # Fall back to stdout only
        print(f"Warning: Could not create log file {output}: {e}", file=sys.stderr)
        return None
    handler.setLevel(level)
    return handler


def setup_logging(config: LoggingConfig) -> None:
    """Configure structured logging.

    Events go to stdout and, when ``config.output`` is set and writable,
    to a log file. Both sinks share the same renderer.

    Args:
        config: Logging configuration
    """
    level = getattr(logging, config.level.upper())

    structlog.configure(
        processors=[*SHARED_PROCESSORS, _renderer(config.format)],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    handlers: list[logging.Handler] = [console_handler]

    if config.output:
        file_handler = _file_handler(config.output, level)
        if file_handler is not None:
            handlers.append(file_handler)

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=handlers,
        force=True,
    )


def get_logger(name: Optional[str] = None, **context: Any) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Args:
        name: Logger name (defaults to caller's module name)
        **context: Key/value pairs bound to every event

    Returns:
        Structured logger instance
    """
    logger = structlog.get_logger(name)
    return logger.bind(**context) if context else logger
