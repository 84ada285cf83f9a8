"""structlog setup for the engine.

Every event carries ``app="streamgate"`` and whatever payment context was
bound with ``bind_context`` (typically ``transaction_id``, ``user_id`` and
``content_id``). Payer phone numbers are masked before rendering.

Rendering is JSON by default; set ``LOG_FORMAT=console`` for local work.
"""

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.typing import EventDict, Processor

from streamgate.utils.phone import mask_phone

APP_NAME = "streamgate"

# Event keys that may hold a payer phone number
PHONE_KEYS = ("phone", "payer_phone", "payerPhone", "phoneNumber")


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["app"] = APP_NAME
    return event_dict


def add_log_level(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Record the level under ``level`` unless the caller set one."""
    event_dict.setdefault("level", method_name.upper())
    return event_dict


def mask_phone_numbers(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace payer phone numbers with their masked form."""
    for key in PHONE_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = mask_phone(value)
    return event_dict


def drop_debug_in_production(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Drop debug events unless LOG_LEVEL=DEBUG."""
    if method_name == "debug" and os.getenv("LOG_LEVEL", "INFO").upper() != "DEBUG":
        raise structlog.DropEvent
    return event_dict


def _renderer(json_format: bool) -> Processor:
    if json_format:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback)


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = True,
    include_timestamp: bool = True,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_format: JSON lines when True, coloured console output otherwise
        include_timestamp: add an ISO 8601 ``timestamp`` field
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        add_log_level,
        mask_phone_numbers,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    if level > logging.DEBUG:
        processors.append(drop_debug_in_production)
    processors.append(_renderer(json_format))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging_from_env() -> None:
    """Configure from LOG_LEVEL (default INFO) and LOG_FORMAT (json or console)."""
    configure_logging(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        json_format=os.getenv("LOG_FORMAT", "json").lower() == "json",
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach fields to every later event in the current context.

    Example:
        bind_context(transaction_id="TX-1", user_id="user-123")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def transaction_context(transaction_id: str, **kwargs: Any) -> Iterator[None]:
    """Bind ``transaction_id`` (and any extra fields) for the duration of a block."""
    with structlog.contextvars.bound_contextvars(transaction_id=transaction_id, **kwargs):
        yield
