"""Structured logging for the quote service, built on structlog.

Log records from third-party libraries (yfinance, ccxt, aiosqlite, uvicorn)
are routed through the same formatter so that a single stream carries
everything. Context bound with ``structlog.contextvars`` (for example the
refresh cycle number) is attached to every event emitted inside it.
"""

import logging
import os

import structlog

# Libraries that log at INFO/DEBUG on every request.
_NOISY_LOGGERS = ("yfinance", "peewee", "aiosqlite", "ccxt", "urllib3", "httpx")

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def _install_root_handler(formatter: logging.Formatter, log_level: str) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging(log_level: str = "INFO", log_format: str | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    ``log_format`` is "console" (default, human-readable) or "json". When not
    given it falls back to the LOG_FORMAT environment variable.
    """
    log_format = (log_format or os.environ.get("LOG_FORMAT", "console")).lower()

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(log_format),
        ],
    )
    _install_root_handler(formatter, log_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
