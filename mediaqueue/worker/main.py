"""
Worker process entry point.

Wires the database, job queue and worker pools together from settings,
recovers orphaned reservations, spawns the configured workers and runs
until SIGINT or SIGTERM. Shutdown waits for in-flight jobs to finish.
"""

import asyncio
import logging
import signal

from mediaqueue.config import get_settings
from mediaqueue.db import (
    ConfigurationRepository,
    QueueRepository,
    close_db,
    create_schema,
    get_engine,
    get_session_factory,
    init_db,
)
from mediaqueue.observability.logging import setup_logging
from mediaqueue.observability.metrics import setup_metrics, start_metrics_server
from mediaqueue.observability.tracing import instrument_sqlalchemy, setup_tracing
from mediaqueue.queue.job_queue import JobQueue
from mediaqueue.worker import jobs  # noqa: F401  registers the built-in jobs
from mediaqueue.worker.pool import WorkerPoolManager

logger = logging.getLogger(__name__)


async def run_async() -> None:
    """Run the worker pools until a shutdown signal arrives."""
    settings = get_settings()

    setup_logging()
    setup_metrics()
    setup_tracing()
    start_metrics_server(settings.prometheus_port)

    await init_db()
    engine = get_engine()
    if settings.otel_enabled:
        instrument_sqlalchemy(engine)
    await create_schema(engine)

    session_factory = get_session_factory()
    store = QueueRepository(session_factory())
    job_queue = JobQueue(
        store,
        max_attempts=settings.queue_max_attempts,
        retry_max_attempts=settings.db_retry_max_attempts,
        retry_base_delay=settings.db_retry_base_delay_seconds,
        retry_max_jitter=settings.db_retry_max_jitter_seconds,
    )
    manager = WorkerPoolManager(
        job_queue,
        settings.queue_worker_counts,
        configuration_store=ConfigurationRepository(session_factory),
        poll_interval=settings.queue_poll_interval_seconds,
        spawn_delay=settings.queue_spawn_delay_seconds,
    )

    # Handle shutdown signals
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await manager.initialize()
        logger.info(
            "Worker process running",
            extra={"queues": manager.queue_names, "metrics_port": settings.prometheus_port},
        )
        await stop_event.wait()
    finally:
        await manager.shutdown()
        await store.dispose()
        await close_db()
        logger.info("Worker process stopped")


def run() -> None:
    """Run the worker process."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
