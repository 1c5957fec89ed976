"""
Built-in handler registration.
"""

from jobqueue.config.logging import get_logger
from jobqueue.v1.infra.jobs.handlers import MaintenanceCleanupHandler
from jobqueue.v1.infra.jobs.service import QueueService

logger = get_logger(__name__)

MAINTENANCE_CLEANUP = "maintenance.cleanup"


def register_job_handlers(service: QueueService) -> None:
    """Register all built-in job handlers on ``service``."""

    logger.info("Registering job handlers")

    # Maintenance job handlers
    service.register_handler(
        MAINTENANCE_CLEANUP, MaintenanceCleanupHandler(service.store, service.settings)
    )

    logger.info(
        "Job handlers registered", registered_handlers=service.handlers.list()
    )
