"""
Queue service: the public entry point for enqueueing and processing jobs.
"""

from collections.abc import Sequence
from typing import Any
from uuid import UUID

from jobqueue.config.logging import get_logger
from jobqueue.config.settings import Settings
from jobqueue.infra.database import Database
from jobqueue.v1.core.registries import HandlerRegistry, JobHandler
from jobqueue.v1.infra.jobs.executor import JobExecutor
from jobqueue.v1.infra.jobs.models import Job, JobPriority, JobStatus
from jobqueue.v1.infra.jobs.schemas import JobOptions, QueueStats, ResolvedJobOptions
from jobqueue.v1.infra.jobs.store import JobStore
from jobqueue.v1.infra.jobs.worker import WorkerPool

logger = get_logger(__name__)

EMAIL_QUEUE = "email"
NOTIFICATION_QUEUE = "notification"
PAYMENT_QUEUE = "payment"
ESCROW_QUEUE = "escrow"
PREDEFINED_QUEUES = (EMAIL_QUEUE, NOTIFICATION_QUEUE, PAYMENT_QUEUE, ESCROW_QUEUE)


def _as_uuid(job_id: UUID | str) -> UUID:
    return job_id if isinstance(job_id, UUID) else UUID(str(job_id))


class QueueService:
    """Service for adding, processing and inspecting queued jobs."""

    def __init__(
        self,
        store: JobStore,
        settings: Settings,
        handlers: HandlerRegistry | None = None,
        queue_defaults: dict[str, JobOptions] | None = None,
    ):
        self.store = store
        self.settings = settings
        self.handlers = handlers or HandlerRegistry()
        self.queue_defaults = dict(queue_defaults or {})
        self.executor = JobExecutor(
            store, self.handlers, max_threads=settings.worker_handler_threads
        )
        self.workers = WorkerPool(store, self.executor, settings)

    # Configuration

    def register_handler(self, job_type: str, handler: JobHandler) -> None:
        """Associate ``job_type`` with ``handler``, replacing any previous one."""
        self.handlers.register(job_type, handler)
        logger.info("Job handler registered", job_type=job_type)

    def configure_queue(self, queue: str, options: JobOptions) -> None:
        """Set default options for jobs added to ``queue``."""
        self.queue_defaults[queue] = options

    def resolve_options(
        self, queue: str, options: JobOptions | None = None
    ) -> ResolvedJobOptions:
        """Fill unset options from queue defaults, then from settings."""
        layers = [options or JobOptions(), self.queue_defaults.get(queue, JobOptions())]

        def pick(field: str, fallback: Any) -> Any:
            for layer in layers:
                value = getattr(layer, field)
                if value is not None:
                    return value
            return fallback

        return ResolvedJobOptions(
            max_attempts=pick("max_attempts", self.settings.queue_max_attempts),
            timeout=pick("timeout", self.settings.queue_timeout_ms),
            retry_delay=pick("retry_delay", self.settings.queue_retry_delay_ms),
            exponential_backoff=pick(
                "exponential_backoff", self.settings.queue_exponential_backoff
            ),
            priority=pick("priority", JobPriority.NORMAL),
        )

    # Enqueueing

    async def add(
        self,
        queue: str,
        job_type: str,
        data: Any = None,
        options: JobOptions | None = None,
    ) -> UUID:
        """Add a job to ``queue`` and return its id."""
        return await self.store.add(
            queue, job_type, data, self.resolve_options(queue, options)
        )

    async def add_bulk(
        self,
        queue: str,
        job_type: str,
        data_list: Sequence[Any],
        options: JobOptions | None = None,
    ) -> list[UUID]:
        """Add one job per payload atomically. Ids follow input order."""
        return await self.store.add_bulk(
            queue, job_type, data_list, self.resolve_options(queue, options)
        )

    # Processing

    async def process(self, queue: str, concurrency: int = 1) -> None:
        """Start ``concurrency`` pollers for ``queue``."""
        self.workers.start(queue, concurrency)

    async def stop(self, queue: str | None = None) -> None:
        """Stop pollers for ``queue``, or for every queue if omitted."""
        await self.workers.stop(queue)

    def close(self) -> None:
        """Release executor resources. Call after ``stop()`` on shutdown."""
        self.executor.close()

    # Inspection and management

    async def get_job(self, job_id: UUID | str) -> Job | None:
        return await self.store.get_job(_as_uuid(job_id))

    async def list_jobs(
        self, queue: str, status: JobStatus | None = None, limit: int = 100
    ) -> list[Job]:
        return await self.store.list_jobs(queue, status, limit)

    async def cancel(self, job_id: UUID | str) -> bool:
        """Cancel a job that has not started. Running jobs are not interrupted."""
        return await self.store.cancel(_as_uuid(job_id))

    async def retry(self, job_id: UUID | str) -> bool:
        """Requeue a failed job with a fresh attempt budget."""
        return await self.store.retry(_as_uuid(job_id))

    async def get_stats(self, queue: str) -> QueueStats:
        return await self.store.get_stats(queue)

    async def cleanup(self, queue: str, older_than_days: int | None = None) -> int:
        """Delete terminal jobs older than the retention window."""
        if older_than_days is None:
            older_than_days = self.settings.queue_cleanup_after_days
        return await self.store.cleanup(queue, older_than_days)

    def queue(self, name: str) -> "NamedQueue":
        """Get a facade bound to a single queue."""
        return NamedQueue(self, name)


class NamedQueue:
    """Shortcut for operations on one queue."""

    def __init__(self, service: QueueService, name: str):
        self.service = service
        self.name = name

    async def add(
        self, job_type: str, data: Any = None, options: JobOptions | None = None
    ) -> UUID:
        return await self.service.add(self.name, job_type, data, options)

    async def add_bulk(
        self,
        job_type: str,
        data_list: Sequence[Any],
        options: JobOptions | None = None,
    ) -> list[UUID]:
        return await self.service.add_bulk(self.name, job_type, data_list, options)

    async def process(self, concurrency: int = 1) -> None:
        await self.service.process(self.name, concurrency)

    async def stop(self) -> None:
        await self.service.stop(self.name)

    async def get_stats(self) -> QueueStats:
        return await self.service.get_stats(self.name)


def build_queue_service(
    database: Database,
    settings: Settings,
    handlers: HandlerRegistry | None = None,
) -> QueueService:
    """Wire a queue service to ``database``."""
    return QueueService(JobStore(database.SessionLocal), settings, handlers)
