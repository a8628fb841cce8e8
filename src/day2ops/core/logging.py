"""
Structured logging for day2ops.

All modules log through structlog. Reconcile workers bind ``controller`` and
``key`` for the duration of one reconcile, so every event a reconciler emits
can be traced back to the object it was working on.

Output is JSON when stdout is not a terminal (the manager running in a pod)
and colored console lines otherwise. JSON events use ECS field names so they
index cleanly.

Example:
    >>> from day2ops.core.logging import LogContext, configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> log = get_logger(__name__)
    >>> with LogContext(controller="etcdsnapshotrestore", key="default/r1"):
    ...     log.info("phase_changed", phase="Started")
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_service = "day2ops"

# JSON output renames these to their ECS equivalents
_ECS_FIELDS = {"timestamp": "@timestamp", "level": "log.level"}


def _add_service_metadata(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service.name", _service)
    return event_dict


def _elasticsearch_compatible(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    for field, ecs_field in _ECS_FIELDS.items():
        if field in event_dict:
            event_dict[ecs_field] = event_dict.pop(field)
    return event_dict


def _processors(json_format: bool, add_timestamp: bool) -> list[Processor]:
    chain: list[Processor] = []
    if add_timestamp:
        chain.append(structlog.processors.TimeStamper(fmt="iso"))
    chain += [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]
    if json_format:
        chain += [
            structlog.processors.format_exc_info,
            _elasticsearch_compatible,
            structlog.processors.JSONRenderer(),
        ]
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=True))
    return chain


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "day2ops",
    add_timestamp: bool = True,
) -> None:
    """Install the day2ops processor chain.

    Args:
        level: Minimum level name (``DEBUG`` .. ``ERROR``)
        json_format: Force JSON (True) or console (False); None picks JSON
            when stdout is not a tty
        service: Value of the ``service.name`` field
        add_timestamp: Stamp events with an ISO timestamp
    """
    global _service
    _service = service

    if json_format is None:
        json_format = not sys.stdout.isatty()
    numeric_level = getattr(logging, level.upper())

    structlog.configure(
        processors=_processors(json_format, add_timestamp),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    # rendered lines are written by the stdlib root handler
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def bind_context(**values: Any) -> None:
    """Attach *values* to every event logged from this context."""
    structlog.contextvars.bind_contextvars(**values)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind keys on enter, drop the same keys on exit."""

    def __init__(self, **values: Any):
        self._values = values

    def __enter__(self) -> LogContext:
        bind_context(**self._values)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        unbind_context(*self._values)


__all__ = [
    "LogContext",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
]
