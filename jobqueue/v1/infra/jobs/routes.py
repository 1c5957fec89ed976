"""
Job queue admin API endpoints.

Provides endpoints for enqueueing, inspecting and managing jobs and queues.
"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from jobqueue.config.logging import get_logger
from jobqueue.v1.core.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    create_success_response,
)
from jobqueue.v1.infra.jobs.models import JobStatus
from jobqueue.v1.infra.jobs.schemas import (
    CleanupRequest,
    CleanupResponse,
    JobBulkEnqueueRequest,
    JobEnqueueRequest,
    JobEnqueueResponse,
    JobListResponse,
    JobResponse,
)
from jobqueue.v1.infra.jobs.service import QueueService

logger = get_logger(__name__)
router = APIRouter(tags=["jobs"])


def get_queue_service(request: Request) -> QueueService:
    """Dependency returning the queue service built at startup."""
    return request.app.state.queue_service


QueueServiceDep = Depends(get_queue_service)


@router.post("/jobs", response_model=dict)
async def enqueue_job(
    job_request: JobEnqueueRequest,
    service: QueueService = QueueServiceDep,
) -> dict[str, Any]:
    """Enqueue a new job."""
    job_id = await service.add(
        job_request.queue, job_request.type, job_request.data, job_request.options
    )

    logger.info(
        "Job enqueued via API",
        job_id=str(job_id),
        queue=job_request.queue,
        job_type=job_request.type,
    )

    response = JobEnqueueResponse(job_ids=[job_id])
    return create_success_response(data=response.model_dump(mode="json"))


@router.post("/jobs/bulk", response_model=dict)
async def enqueue_jobs_bulk(
    bulk_request: JobBulkEnqueueRequest,
    service: QueueService = QueueServiceDep,
) -> dict[str, Any]:
    """Enqueue one job per payload in a single transaction."""
    if not bulk_request.data:
        raise ValidationError("At least one payload is required", details={"data": []})

    job_ids = await service.add_bulk(
        bulk_request.queue, bulk_request.type, bulk_request.data, bulk_request.options
    )

    response = JobEnqueueResponse(job_ids=job_ids)
    return create_success_response(data=response.model_dump(mode="json"))


@router.get("/jobs", response_model=dict)
async def list_jobs(
    queue: str = Query(..., min_length=1, description="Queue name"),
    status: JobStatus | None = Query(default=None, description="Filter by status"),
    limit: int = Query(default=100, ge=1, le=1000, description="Maximum results"),
    service: QueueService = QueueServiceDep,
) -> dict[str, Any]:
    """List jobs of a queue, newest first."""
    jobs = await service.list_jobs(queue, status, limit)

    response = JobListResponse(
        jobs=[JobResponse.model_validate(job) for job in jobs],
        total=len(jobs),
        limit=limit,
    )
    return create_success_response(data=response.model_dump(mode="json"))


@router.get("/jobs/{job_id}", response_model=dict)
async def get_job(
    job_id: UUID, service: QueueService = QueueServiceDep
) -> dict[str, Any]:
    """Get a specific job by ID."""
    job = await service.get_job(job_id)
    if job is None:
        raise NotFoundError("Job not found", details={"job_id": str(job_id)})

    return create_success_response(
        data=JobResponse.model_validate(job).model_dump(mode="json")
    )


@router.post("/jobs/{job_id}/cancel", response_model=dict)
async def cancel_job(
    job_id: UUID, service: QueueService = QueueServiceDep
) -> dict[str, Any]:
    """Cancel a pending or retrying job."""
    if not await service.cancel(job_id):
        await _raise_transition_error(service, job_id, "cancellation")

    return create_success_response(data={"success": True, "job_id": str(job_id)})


@router.post("/jobs/{job_id}/retry", response_model=dict)
async def retry_job(
    job_id: UUID, service: QueueService = QueueServiceDep
) -> dict[str, Any]:
    """Retry a failed job."""
    if not await service.retry(job_id):
        await _raise_transition_error(service, job_id, "retry")

    return create_success_response(data={"success": True, "job_id": str(job_id)})


@router.get("/queues/{queue}/stats", response_model=dict)
async def get_queue_stats(
    queue: str, service: QueueService = QueueServiceDep
) -> dict[str, Any]:
    """Get job statistics for a queue."""
    stats = await service.get_stats(queue)
    return create_success_response(data=stats.model_dump())


@router.post("/queues/{queue}/cleanup", response_model=dict)
async def cleanup_queue(
    queue: str,
    cleanup_request: CleanupRequest,
    service: QueueService = QueueServiceDep,
) -> dict[str, Any]:
    """Delete terminal jobs older than the retention window."""
    deleted_count = await service.cleanup(queue, cleanup_request.older_than_days)

    response = CleanupResponse(queue=queue, deleted_count=deleted_count)
    return create_success_response(data=response.model_dump())


async def _raise_transition_error(
    service: QueueService, job_id: UUID, action: str
) -> None:
    job = await service.get_job(job_id)
    if job is None:
        raise NotFoundError("Job not found", details={"job_id": str(job_id)})
    raise ConflictError(
        f"Job is not eligible for {action}",
        details={"job_id": str(job_id), "status": job.status},
    )
