"""
Polling worker pool with in-process claim tracking.
"""

import asyncio
import os
import socket
from datetime import timedelta
from uuid import UUID

from jobqueue.config.logging import get_logger
from jobqueue.config.settings import Settings
from jobqueue.v1.infra.jobs.executor import JobExecutor
from jobqueue.v1.infra.jobs.store import JobStore

logger = get_logger(__name__)


class _QueueWorkers:
    """Poller and sweeper tasks for a single queue."""

    def __init__(self, queue: str):
        self.queue = queue
        self.stop_event = asyncio.Event()
        self.pollers: dict[str, asyncio.Task] = {}
        self.sweeper: asyncio.Task | None = None

    def tasks(self) -> list[asyncio.Task]:
        tasks = list(self.pollers.values())
        if self.sweeper is not None:
            tasks.append(self.sweeper)
        return tasks


class WorkerPool:
    """
    Runs independent pollers per queue.

    Each poller claims and executes at most one job per tick, so a queue's
    concurrency equals its number of pollers. A job id is held in
    ``active_jobs`` for the whole execution; a poller that selects an id
    already held skips its tick. This only protects pollers in this process;
    the conditional claim in the store covers other processes.
    """

    def __init__(self, store: JobStore, executor: JobExecutor, settings: Settings):
        self.store = store
        self.executor = executor
        self.settings = settings
        self.worker_id = f"{socket.gethostname()}-{os.getpid()}-{id(self)}"
        self.active_jobs: set[UUID] = set()
        self._claim_lock = asyncio.Lock()
        self._queues: dict[str, _QueueWorkers] = {}

    @property
    def poll_interval(self) -> float:
        return self.settings.queue_poll_interval_ms / 1000

    def is_running(self, queue: str | None = None) -> bool:
        """Check if any poller (for ``queue``, or at all) is running."""
        if queue is not None:
            workers = self._queues.get(queue)
            return bool(workers and any(not t.done() for t in workers.pollers.values()))
        return any(self.is_running(name) for name in self._queues)

    def running_queues(self) -> list[str]:
        return [name for name in self._queues if self.is_running(name)]

    def start(self, queue: str, concurrency: int = 1) -> None:
        """Start ``concurrency`` pollers for ``queue``.

        Pollers already running for the queue are kept; only missing slots
        are started.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        workers = self._queues.get(queue)
        if workers is None or workers.stop_event.is_set():
            workers = _QueueWorkers(queue)
            self._queues[queue] = workers

        for index in range(concurrency):
            poller_id = f"{queue}-{index}"
            task = workers.pollers.get(poller_id)
            if task is not None and not task.done():
                continue
            workers.pollers[poller_id] = asyncio.create_task(
                self._poll_loop(workers, poller_id), name=poller_id
            )

        if workers.sweeper is None or workers.sweeper.done():
            workers.sweeper = asyncio.create_task(
                self._sweep_loop(workers), name=f"{queue}-sweeper"
            )

        logger.info(
            "Started queue workers",
            worker_id=self.worker_id,
            queue=queue,
            concurrency=len(workers.pollers),
            poll_interval_ms=self.settings.queue_poll_interval_ms,
        )

    async def stop(self, queue: str | None = None) -> None:
        """Stop pollers for ``queue`` (or every queue) and wait for them.

        A job already executing is allowed to finish; no new job is claimed
        once the stop is signalled.
        """
        names = [queue] if queue is not None else list(self._queues)
        tasks: list[asyncio.Task] = []

        for name in names:
            workers = self._queues.pop(name, None)
            if workers is None:
                continue
            workers.stop_event.set()
            tasks.extend(workers.tasks())
            logger.info("Stopping queue workers", worker_id=self.worker_id, queue=name)

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def process_next(self, queue: str) -> bool:
        """Run one poller tick. Returns True if a job was executed."""
        job = await self.store.fetch_next(queue)
        if job is None:
            return False

        async with self._claim_lock:
            if job.id in self.active_jobs:
                return False
            self.active_jobs.add(job.id)

        try:
            return await self.executor.execute(job)
        finally:
            async with self._claim_lock:
                self.active_jobs.discard(job.id)

    async def _poll_loop(self, workers: _QueueWorkers, poller_id: str) -> None:
        while not workers.stop_event.is_set():
            try:
                await self.process_next(workers.queue)
            except Exception:
                logger.exception(
                    "Error in poller loop",
                    worker_id=self.worker_id,
                    poller_id=poller_id,
                )

            await self._wait(workers.stop_event, self.poll_interval)

    async def _sweep_loop(self, workers: _QueueWorkers) -> None:
        stalled_after = timedelta(seconds=self.settings.queue_stalled_after_s)
        while not workers.stop_event.is_set():
            try:
                async with self._claim_lock:
                    active = set(self.active_jobs)
                await self.store.recover_stalled(workers.queue, stalled_after, active)
            except Exception:
                logger.exception(
                    "Error in stalled job recovery",
                    worker_id=self.worker_id,
                    queue=workers.queue,
                )

            await self._wait(workers.stop_event, self.settings.queue_reconcile_interval_s)

    @staticmethod
    async def _wait(stop_event: asyncio.Event, seconds: float) -> None:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
