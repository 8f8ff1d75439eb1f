"""
Structured logging for an embedded purchase library.

purchasekit emits structlog events through the standard library logger named
``purchasekit``. The host application owns the root logger; ``setup_logging``
only attaches a rendering handler to the ``purchasekit`` logger, so calling it
never changes how the host's own records are written.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from purchasekit.config import get_settings

LIBRARY_LOGGER = "purchasekit"

_installed_handler: logging.Handler | None = None


def app_context(service_name: str, version: str) -> Processor:
    """Build a processor that stamps service name and version on every entry."""

    def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service_name)
        event_dict.setdefault("version", version)
        return event_dict

    return add_app_context


def _resolve_level(log_level: str) -> int:
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")
    return level


def build_formatter(log_format: str, service_name: str, version: str) -> logging.Formatter:
    """
    Build a formatter rendering both structlog events and plain stdlib records.

    Args:
        log_format: ``json`` or ``console``
        service_name: Value of the ``service`` field
        version: Value of the ``version`` field
    """
    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    elif log_format == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        raise ValueError(f"Unknown log format: {log_format}")

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            app_context(service_name, version),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def setup_logging(
    log_level: str | None = None,
    log_format: str | None = None,
    handler: logging.Handler | None = None,
) -> logging.Handler:
    """
    Route purchasekit's structured events to a handler.

    Level and format default to ``PURCHASEKIT_LOG_LEVEL`` and
    ``PURCHASEKIT_LOG_FORMAT``. Calling again replaces the handler installed
    by the previous call.

    Args:
        log_level: Minimum level for ``purchasekit.*`` loggers
        log_format: ``json`` or ``console``
        handler: Destination handler (defaults to stderr)

    Returns:
        The installed handler
    """
    global _installed_handler

    config = get_settings()
    level = _resolve_level(log_level or config.log_level)
    handler = handler or logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        build_formatter(
            log_format or config.log_format,
            config.service_name,
            config.service_version,
        )
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            app_context(config.service_name, config.service_version),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    library_logger = logging.getLogger(LIBRARY_LOGGER)
    if _installed_handler is not None:
        library_logger.removeHandler(_installed_handler)
    library_logger.addHandler(handler)
    library_logger.setLevel(level)
    library_logger.propagate = False
    _installed_handler = handler

    return handler


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("purchase_completed", product_id=product.product_id)
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class log_context:
    """
    Context manager for adding structured logging context.

    Usage:
        with log_context(product_id="pro_monthly"):
            logger.info("purchase_requested")
            # All logs within this context will include product_id
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        """Enter context - bind context variables."""
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit context - clear context variables."""
        structlog.contextvars.unbind_contextvars(*self.context.keys())
