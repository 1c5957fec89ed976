import asyncio
from collections.abc import AsyncGenerator, Generator
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from jobqueue.config.settings import Settings
from jobqueue.infra.database import Database
from jobqueue.main import create_app
from jobqueue.v1.infra.jobs.models import Job, JobStatus
from jobqueue.v1.infra.jobs.schemas import ResolvedJobOptions
from jobqueue.v1.infra.jobs.service import QueueService
from jobqueue.v1.infra.jobs.store import JobStore


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file with fast polling."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}",
        create_tables=True,
        queue_poll_interval_ms=10,
        queue_retry_delay_ms=50,
        queue_timeout_ms=5000,
        queue_reconcile_interval_s=3600,
        worker_queues=[],
    )


@pytest.fixture
async def database(test_settings) -> AsyncGenerator[Database, None]:
    """Create a fresh database with the job table."""
    db = Database(test_settings)
    await db.create_all()
    yield db
    await db.close()


@pytest.fixture
def store(database) -> JobStore:
    return JobStore(database.SessionLocal)


@pytest.fixture
async def service(store, test_settings) -> AsyncGenerator[QueueService, None]:
    """Queue service whose pollers are stopped and closed after each test."""
    queue_service = QueueService(store, test_settings)
    yield queue_service
    await queue_service.stop()
    queue_service.close()


@pytest.fixture
def default_options() -> ResolvedJobOptions:
    return ResolvedJobOptions(
        max_attempts=3,
        timeout=5000,
        retry_delay=1000,
        exponential_backoff=True,
        priority=5,
    )


async def _wait_for_status(
    service: QueueService,
    job_id: UUID,
    *statuses: JobStatus,
    timeout: float = 5.0,
) -> Job:
    """Poll a job until it reaches one of ``statuses``."""
    wanted = {JobStatus(s).value for s in statuses}
    deadline = asyncio.get_running_loop().time() + timeout

    while True:
        job = await service.get_job(job_id)
        if job is not None and job.status in wanted:
            return job
        if asyncio.get_running_loop().time() > deadline:
            current = job.status if job is not None else None
            raise AssertionError(f"Job {job_id} stuck in {current}, wanted {wanted}")
        await asyncio.sleep(0.02)


@pytest.fixture
def app(test_settings):
    """Create a test FastAPI application bound to the test database."""
    return create_app(test_settings)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client. Entering it runs the application lifespan."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def wait_for_status():
    """Helper awaiting a job status: ``await wait_for_status(service, id, *statuses)``."""
    return _wait_for_status
