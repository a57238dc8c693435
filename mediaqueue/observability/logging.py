"""
Structured logging for the queue worker process.

Every module logs through stdlib ``logging.getLogger(__name__)`` with
``extra={...}``; records are rendered by structlog. Worker tasks bind
their worker and queue names once, and each executed job adds its id and
attempt for as long as it runs, so handler output can be traced back to
the job that produced it without threading ids through handler code.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from opentelemetry import trace
from structlog.typing import Processor

from mediaqueue import __version__
from mediaqueue.config import get_settings

# Chatty at INFO, and nothing there is about the queue
QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "aiosqlite",
    "asyncpg",
    "opentelemetry",
)


def add_trace_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add the ids of the current OpenTelemetry span, if one is recording."""
    span = trace.get_current_span()
    if span and span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def add_service_context(service: str) -> Processor:
    """
    Build a processor that stamps the service name and package version.

    Several worker processes can ship logs to one place; the version tells
    apart records written before and after an upgrade.
    """

    def processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service)
        event_dict.setdefault("version", __version__)
        return event_dict

    return processor


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """
    Configure structured logging for the worker process.

    Args:
        level: Log level name. Defaults to the ``log_level`` setting.
        log_format: ``json`` or ``console``. Defaults to the ``log_format``
            setting.
    """
    settings = get_settings()
    level = level or settings.log_level
    log_format = log_format or settings.log_format

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_trace_context,
        add_service_context(settings.otel_service_name),
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.ExtraAdder(),
    ]

    # The console renderer formats exc_info itself
    render_processors: list[Any]
    if log_format == "json":
        render_processors = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        render_processors = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *render_processors,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs: Any) -> None:
    """
    Bind context variables to all subsequent log messages.

    Inside an asyncio task the binding stays local to that task.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def job_context(job_id: int | None, attempt: int) -> Iterator[None]:
    """
    Tag every record logged while a job runs with its id and attempt.

    The previous bindings are restored on exit, so the worker's own
    context survives the job.
    """
    with structlog.contextvars.bound_contextvars(job_id=job_id, attempt=attempt):
        yield
