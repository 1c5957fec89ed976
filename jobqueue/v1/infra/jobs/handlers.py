"""
Built-in job handlers.

Handlers are plain callables taking the claimed job; these are registered by
``registry_init.register_job_handlers``.
"""

from typing import Any

from jobqueue.config.logging import get_logger
from jobqueue.config.settings import Settings
from jobqueue.v1.infra.jobs.models import Job
from jobqueue.v1.infra.jobs.store import JobStore

logger = get_logger(__name__)


class MaintenanceCleanupHandler:
    """
    Job handler that deletes old terminal jobs from a queue.

    Payload expected:
    {
        "queue": "email",
        "older_than_days": 7,  # optional, defaults to settings
        "dry_run": false  # optional
    }
    """

    def __init__(self, store: JobStore, settings: Settings):
        self.store = store
        self.settings = settings

    async def __call__(self, job: Job) -> dict[str, Any]:
        payload = job.data or {}

        queue = payload.get("queue")
        if not queue:
            raise ValueError("queue is required in payload")

        older_than_days = int(
            payload.get("older_than_days", self.settings.queue_cleanup_after_days)
        )
        dry_run = bool(payload.get("dry_run", False))

        logger.info(
            "Starting job cleanup",
            queue=queue,
            older_than_days=older_than_days,
            dry_run=dry_run,
        )

        if dry_run:
            return {
                "status": "dry_run",
                "queue": queue,
                "older_than_days": older_than_days,
            }

        deleted_count = await self.store.cleanup(queue, older_than_days)
        return {
            "status": "completed",
            "queue": queue,
            "older_than_days": older_than_days,
            "deleted_count": deleted_count,
        }
