"""
Logging Configuration

structlog setup for the pipeline. Events are snake_case names with keyword
context; every event emitted during an integration run also carries the
run id through contextvars.
"""
import logging
import sys
from typing import Any, Optional
from uuid import uuid4

import structlog
from structlog.types import EventDict, Processor

from config.settings import settings

NOISY_LOGGERS = ("aiohttp", "asyncio", "urllib3")


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["environment"] = settings.environment
    event_dict["app"] = "countydata"
    return event_dict


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> structlog.BoundLogger:
    """
    Configure stdlib logging and structlog.

    Args:
        level: Log level name (defaults to settings.log_level)
        log_format: 'json' or 'console' (defaults to settings.log_format)

    Returns:
        Root structlog logger
    """
    level_name = (level or settings.log_level).upper()
    log_format = log_format or settings.log_format

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )
    # Transport chatter; failures are reported as pipeline events instead
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_app_context,
    ]

    if log_format == "json":
        renderer: list[Processor] = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=shared + renderer,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger()


def bind_run_context(run_id: Optional[str] = None, **context: Any) -> str:
    """
    Attach an integration run id (and any extra keys) to every later event.

    Returns:
        The bound run id
    """
    run_id = run_id or f"run_{uuid4().hex[:12]}"
    structlog.contextvars.bind_contextvars(run_id=run_id, **context)
    return run_id


def clear_run_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """
    Logger for a module.

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name) if name else structlog.get_logger()
