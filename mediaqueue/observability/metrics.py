"""
Prometheus metrics collection.
"""

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    start_http_server,
)

from mediaqueue.constants import (
    METRIC_DB_RETRIES,
    METRIC_JOB_DURATION,
    METRIC_JOBS_COMPLETED,
    METRIC_JOBS_DEAD_LETTERED,
    METRIC_JOBS_ENQUEUED,
    METRIC_JOBS_RESERVED,
    METRIC_WORKERS_LIVE,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the job queue.

    Collects metrics for:
    - Jobs enqueued, reserved and dead-lettered per queue
    - Job completions and execution duration
    - Live worker count per queue
    - Store retries per operation
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.jobs_enqueued = Counter(
            METRIC_JOBS_ENQUEUED,
            "Total number of jobs written to the queue",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_reserved = Counter(
            METRIC_JOBS_RESERVED,
            "Total number of jobs reserved by workers",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_completed = Counter(
            METRIC_JOBS_COMPLETED,
            "Total number of job executions",
            ["queue", "status"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job execution duration in seconds",
            ["queue", "status"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0, 1800.0),
            registry=self._registry,
        )

        self.jobs_dead_lettered = Counter(
            METRIC_JOBS_DEAD_LETTERED,
            "Total number of jobs moved to the failed jobs table",
            ["queue"],
            registry=self._registry,
        )

        self.workers_live = Gauge(
            METRIC_WORKERS_LIVE,
            "Number of live workers",
            ["queue"],
            registry=self._registry,
        )

        self.db_retries = Counter(
            METRIC_DB_RETRIES,
            "Total number of retried store operations",
            ["operation"],
            registry=self._registry,
        )

    def record_job_enqueued(self, queue: str) -> None:
        """Record a job written to the queue."""
        self.jobs_enqueued.labels(queue=queue).inc()

    def record_job_reserved(self, queue: str) -> None:
        """Record a reservation."""
        self.jobs_reserved.labels(queue=queue).inc()

    def record_job_completed(
        self,
        queue: str,
        status: str,
        duration_seconds: float,
    ) -> None:
        """Record a job execution."""
        self.jobs_completed.labels(queue=queue, status=status).inc()
        self.job_duration.labels(queue=queue, status=status).observe(duration_seconds)

    def record_job_dead_lettered(self, queue: str) -> None:
        """Record a job moved to failed jobs."""
        self.jobs_dead_lettered.labels(queue=queue).inc()

    def set_workers_live(self, queue: str, count: int) -> None:
        """Update the live worker count for a queue."""
        self.workers_live.labels(queue=queue).set(count)

    def record_db_retry(self, operation: str) -> None:
        """Record a retried store operation."""
        self.db_retries.labels(operation=operation).inc()

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)


def setup_metrics(registry: CollectorRegistry | None = None) -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Args:
        registry: Optional custom registry, used on first setup only.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector(registry)
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics


def start_metrics_server(port: int) -> None:
    """
    Expose metrics over HTTP for scraping.

    Args:
        port: Port to listen on.
    """
    registry = get_metrics()._registry
    start_http_server(port, registry=registry)
