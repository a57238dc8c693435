"""
Observability module.
Contains logging, metrics, and tracing setup.
"""

from mediaqueue.observability.logging import (
    bind_context,
    clear_context,
    job_context,
    setup_logging,
)
from mediaqueue.observability.metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
    start_metrics_server,
)
from mediaqueue.observability.tracing import (
    get_tracer,
    instrument_sqlalchemy,
    setup_tracing,
)

__all__ = [
    "setup_logging",
    "bind_context",
    "clear_context",
    "job_context",
    "setup_metrics",
    "get_metrics",
    "start_metrics_server",
    "MetricsCollector",
    "setup_tracing",
    "get_tracer",
    "instrument_sqlalchemy",
]
