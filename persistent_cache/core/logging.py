"""Structured logging for the cache package.

Events are structlog event dicts handed to stdlib loggers under
``persistent_cache``. Nothing is configured on import or on first cache
access: without ``configure_logging`` the host's own handlers (or none)
decide what is shown. ``configure_logging`` is opt-in and only touches the
``persistent_cache`` logger, never the root logger or structlog's global
configuration.
"""

import sys
import structlog
import logging
from pathlib import Path
from persistent_cache.core.config import Settings

LOGGER_NAME = "persistent_cache"

_PRE_CHAIN = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]

# Handlers installed by configure_logging, replaced on the next call
_handlers: list = []


def _formatter(settings: Settings) -> structlog.stdlib.ProcessorFormatter:
    if settings.log_format == "json":
        timestamper = structlog.processors.TimeStamper(fmt="iso")
        renderer = structlog.processors.JSONRenderer()
    else:
        timestamper = structlog.processors.TimeStamper(fmt="%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer(
            colors=False,
            pad_event=35,
            exception_formatter=structlog.dev.plain_traceback
        )

    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            timestamper,
            renderer,
        ],
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
        ],
    )


def configure_logging(settings: Settings) -> None:
    """Send cache events to stderr (and ``log_file``) at ``log_level``.

    Calling it again replaces the handlers from the previous call.
    """
    level = getattr(logging, settings.log_level.upper())
    formatter = _formatter(settings)

    handlers = [logging.StreamHandler(sys.stderr)]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in _handlers:
        package_logger.removeHandler(handler)
        handler.close()
    _handlers.clear()

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)
        _handlers.append(handler)

    package_logger.setLevel(level)
    package_logger.propagate = False


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger bound to the stdlib logger ``name``."""
    return structlog.wrap_logger(
        logging.getLogger(name),
        processors=[*_PRE_CHAIN, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def log_cache_operation(logger: structlog.BoundLogger, operation: str,
                        key: str, hit: bool = None, **kwargs) -> None:
    """Log cache operations."""
    log_data = {
        "operation": operation,
        "cache_key": key,
        **kwargs
    }

    if hit is not None:
        log_data["cache_hit"] = hit

    logger.debug("Cache operation", **log_data)
