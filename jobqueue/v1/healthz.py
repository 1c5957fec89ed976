from datetime import UTC, datetime, timedelta

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from jobqueue.config.settings import Settings
from jobqueue.infra.database import SessionDep
from jobqueue.v1.core.exceptions import create_success_response
from jobqueue.v1.infra.jobs.routes import QueueServiceDep
from jobqueue.v1.infra.jobs.service import QueueService

router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class WorkerHealth(BaseModel):
    """Worker health status."""

    running_queues: list[str] = []
    active_jobs: int = 0
    stalled_jobs_count: int = 0
    queue_depth: int = 0


@router.get("/healthz", response_model=dict)
async def health_check(
    session: AsyncSession = SessionDep,
    service: QueueService = QueueServiceDep,
):
    """Health check endpoint with database and worker status."""

    settings = service.settings
    timestamp = datetime.now(UTC).isoformat()

    db_health = await _check_database_health(session)

    worker_health = None
    if db_health.connected:
        worker_health = await _check_worker_health(service, settings)

    health_data = {
        "ok": db_health.connected,
        "version": settings.version,
        "environment": settings.environment,
        "timestamp": timestamp,
        "database": db_health.model_dump(),
        "worker": worker_health.model_dump() if worker_health else None,
    }

    return create_success_response(data=health_data)


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        # Simple query to test database connectivity
        await session.execute(text("SELECT 1"))

        end_time = datetime.now(UTC)
        response_time_ms = (end_time - start_time).total_seconds() * 1000

        return DatabaseHealth(
            connected=True, response_time_ms=round(response_time_ms, 2)
        )

    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))


async def _check_worker_health(
    service: QueueService, settings: Settings
) -> WorkerHealth:
    """Summarise pollers in this process and queue state in the store."""
    stalled_after = timedelta(seconds=settings.queue_stalled_after_s)

    return WorkerHealth(
        running_queues=service.workers.running_queues(),
        active_jobs=len(service.workers.active_jobs),
        stalled_jobs_count=await service.store.count_stalled(stalled_after),
        queue_depth=await service.store.queue_depth(),
    )
