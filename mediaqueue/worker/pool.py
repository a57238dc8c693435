"""
Worker pool manager.

Owns a target worker count and the live workers for every configured
queue. Growing a pool spawns workers one at a time; shrinking is passive
and happens when a surplus worker reports a finished cycle, so a worker is
never removed while it holds a job.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from uuid import UUID

from mediaqueue.constants import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_SPAWN_DELAY_SECONDS,
    worker_count_key,
)
from mediaqueue.exceptions import UnknownQueueError
from mediaqueue.observability.metrics import get_metrics
from mediaqueue.queue.dispatcher import JobDispatcher
from mediaqueue.queue.job_queue import JobQueue
from mediaqueue.queue.store import ConfigurationStore
from mediaqueue.worker.queue_worker import QueueWorker

logger = logging.getLogger(__name__)


@dataclass
class _Pool:
    """Bookkeeping for one named queue."""

    target: int
    workers: list[QueueWorker] = field(default_factory=list)
    # Bumped on every resize; a ramp-up only spawns while its generation is current
    generation: int = 0
    ramp_up: asyncio.Task[None] | None = None
    spawned: int = 0


class WorkerPoolManager:
    """
    Manages per-queue worker pools.

    Usage:
        manager = WorkerPoolManager(job_queue, {"encoder": 1, "image": 5})
        await manager.initialize()
        await manager.dispatcher.dispatch(SomeJob(...))
        await manager.set_worker_count("encoder", 2, actor=user_id)
        await manager.shutdown()

    ``wait_until_ready()`` resolves once ``initialize()`` has spawned the
    initial workers; a cron evaluator awaits it before firing anything.
    """

    def __init__(
        self,
        job_queue: JobQueue,
        worker_counts: dict[str, int],
        configuration_store: ConfigurationStore | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        spawn_delay: float = DEFAULT_SPAWN_DELAY_SECONDS,
    ):
        """
        Initialize the manager.

        Args:
            job_queue: Queue shared by every worker.
            worker_counts: Default target worker count per queue name.
            configuration_store: Where resized counts are persisted and
                read back on startup. Optional.
            poll_interval: Pause between worker iterations, in seconds.
            spawn_delay: Pause between spawns while growing a pool.
        """
        for name, count in worker_counts.items():
            if count < 0:
                raise ValueError(f"Worker count for {name!r} must not be negative")

        self.job_queue = job_queue
        self.dispatcher = JobDispatcher(job_queue)

        self._configuration_store = configuration_store
        self._poll_interval = poll_interval
        self._spawn_delay = spawn_delay
        self._pools: dict[str, _Pool] = {
            name: _Pool(target=count) for name, count in worker_counts.items()
        }
        self._lock = asyncio.Lock()
        self._ready = asyncio.Event()
        self._initialized = False
        self._shut_down = False
        self._metrics = get_metrics()

    @property
    def queue_names(self) -> list[str]:
        return list(self._pools)

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def wait_until_ready(self) -> None:
        """Wait until the initial workers have been spawned."""
        await self._ready.wait()

    async def initialize(self) -> None:
        """
        Recover reservations and spawn the initial workers.

        Only the first call does anything. Orphaned reservations from a
        previous process are cleared before any worker starts, and counts
        persisted by ``set_worker_count`` override the defaults.
        """
        if self._initialized:
            return
        self._initialized = True

        await self.job_queue.reset_all_reserved_jobs()
        await self._load_persisted_counts()

        async with self._lock:
            for name, pool in self._pools.items():
                for _ in range(pool.target):
                    self._spawn(name, pool)

        self._ready.set()

        logger.info(
            "Worker pools initialized",
            extra={"workers": {name: len(p.workers) for name, p in self._pools.items()}},
        )

    async def start(self, name: str) -> None:
        for worker in self._workers(name):
            worker.start()

    async def stop(self, name: str) -> None:
        """Ask every worker of a queue to stop without waiting for them."""
        for worker in self._workers(name):
            worker.stop()

    async def restart(self, name: str) -> None:
        """Restart every worker of a queue, letting in-flight jobs finish first."""
        await asyncio.gather(*(worker.restart() for worker in self._workers(name)))

    async def start_all(self) -> None:
        for name in self._pools:
            await self.start(name)

    async def stop_all(self) -> None:
        for name in self._pools:
            await self.stop(name)

    async def restart_all(self) -> None:
        for name in self._pools:
            await self.restart(name)

    async def shutdown(self) -> None:
        """
        Stop every pool and wait for in-flight jobs to finish.

        The manager cannot be started again; later resizes only persist
        the new target.
        """
        async with self._lock:
            self._shut_down = True
            for pool in self._pools.values():
                pool.generation += 1
                if pool.ramp_up is not None:
                    pool.ramp_up.cancel()
                    pool.ramp_up = None
            workers = [w for pool in self._pools.values() for w in pool.workers]

        logger.info("Shutting down worker pools", extra={"workers": len(workers)})

        for worker in workers:
            worker.stop()
        await asyncio.gather(*(worker.stop_when_ready() for worker in workers))

        async with self._lock:
            for name, pool in self._pools.items():
                pool.workers.clear()
                self._metrics.set_workers_live(name, 0)

    async def set_worker_count(
        self,
        name: str,
        target: int,
        actor: str | UUID | None = None,
    ) -> bool:
        """
        Resize a queue's pool while it runs.

        The new count is persisted under ``"<name>Runners"``. Any ramp-up
        still running for the queue is superseded. Growing spawns workers
        one per ``spawn_delay``; shrinking retires surplus workers as they
        finish their current cycle.

        Args:
            name: Queue name.
            target: Desired number of workers.
            actor: Who made the change, recorded with the persisted value.

        Returns:
            False if the queue is not configured, True otherwise.
        """
        pool = self._pools.get(name)
        if pool is None:
            return False
        if target < 0:
            raise ValueError("Worker count must not be negative")

        if self._configuration_store is not None:
            await self._configuration_store.set_value_async(
                worker_count_key(name),
                str(target),
                None if actor is None else str(actor),
            )

        logger.info(
            f"Setting queue {name} to {target} workers",
            extra={"queue": name, "target": target, "actor": None if actor is None else str(actor)},
        )

        async with self._lock:
            pool.generation += 1
            if pool.ramp_up is not None and not pool.ramp_up.done():
                pool.ramp_up.cancel()
            pool.ramp_up = None
            pool.target = target

            if self._initialized and not self._shut_down and len(pool.workers) < target:
                pool.ramp_up = asyncio.create_task(
                    self._ramp_up(name, pool.generation),
                    name=f"ramp-up:{name}",
                )

        return True

    def get_worker_index(self, name: str, worker: QueueWorker) -> int:
        """Position of a worker in its pool, or -1 if it is not in it."""
        pool = self._pools.get(name)
        if pool is None:
            return -1
        try:
            return pool.workers.index(worker)
        except ValueError:
            return -1

    def get_worker_count(self, name: str) -> int:
        """Number of live workers for a queue."""
        return len(self._get_pool(name).workers)

    def get_target_count(self, name: str) -> int:
        return self._get_pool(name).target

    def active_workers(self) -> dict[str, list[QueueWorker]]:
        """Snapshot of the live workers per queue."""
        return {name: list(pool.workers) for name, pool in self._pools.items()}

    async def _load_persisted_counts(self) -> None:
        if self._configuration_store is None:
            return

        for name, pool in self._pools.items():
            value = await self._configuration_store.get_value(worker_count_key(name))
            if value is None:
                continue
            try:
                count = int(value)
            except ValueError:
                logger.warning(
                    "Ignoring non-numeric persisted worker count",
                    extra={"queue": name, "value": value},
                )
                continue
            if count < 0:
                logger.warning(
                    "Ignoring negative persisted worker count",
                    extra={"queue": name, "value": value},
                )
                continue
            pool.target = count

    async def _ramp_up(self, name: str, generation: int) -> None:
        pool = self._pools[name]
        while True:
            async with self._lock:
                if pool.generation != generation or len(pool.workers) >= pool.target:
                    return
                self._spawn(name, pool)
            await asyncio.sleep(self._spawn_delay)

    def _spawn(self, name: str, pool: _Pool) -> QueueWorker:
        # Caller holds self._lock
        pool.spawned += 1
        worker = QueueWorker(
            self.job_queue,
            name,
            poll_interval=self._poll_interval,
            on_cycle_completed=self._on_cycle_completed,
            name=f"{name}-{pool.spawned}",
        )
        pool.workers.append(worker)
        worker.start()
        self._metrics.set_workers_live(name, len(pool.workers))

        logger.debug(
            "Worker spawned",
            extra={"queue": name, "worker": worker.name, "live": len(pool.workers)},
        )
        return worker

    async def _on_cycle_completed(self, worker: QueueWorker, had_job: bool) -> None:
        async with self._lock:
            pool = self._pools.get(worker.queue_name)
            if pool is None or worker not in pool.workers:
                return
            if len(pool.workers) <= pool.target:
                return

            worker.stop()
            pool.workers.remove(worker)
            self._metrics.set_workers_live(worker.queue_name, len(pool.workers))

        logger.info(
            "Worker retired",
            extra={
                "queue": worker.queue_name,
                "worker": worker.name,
                "live": len(pool.workers),
                "target": pool.target,
            },
        )

    def _get_pool(self, name: str) -> _Pool:
        pool = self._pools.get(name)
        if pool is None:
            raise UnknownQueueError(name)
        return pool

    def _workers(self, name: str) -> list[QueueWorker]:
        return list(self._get_pool(name).workers)
