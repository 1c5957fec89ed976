"""
Job queue Pydantic schemas.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from jobqueue.v1.infra.jobs.models import JobPriority, JobStatus


class JobOptions(BaseModel):
    """Per-job execution policy. Unset fields fall back to queue defaults."""

    max_attempts: int | None = Field(
        default=None, ge=1, description="Maximum executions before failing"
    )
    timeout: int | None = Field(
        default=None, gt=0, description="Handler timeout in milliseconds"
    )
    retry_delay: int | None = Field(
        default=None, ge=0, description="Base retry delay in milliseconds"
    )
    exponential_backoff: bool | None = Field(
        default=None, description="Double the retry delay on each attempt"
    )
    priority: JobPriority | None = Field(
        default=None, description="Selection priority, higher runs first"
    )


class ResolvedJobOptions(BaseModel):
    """Execution policy with every field filled in."""

    max_attempts: int
    timeout: int
    retry_delay: int
    exponential_backoff: bool
    priority: JobPriority


class JobEnqueueRequest(BaseModel):
    """Schema for enqueueing a job via API."""

    queue: str = Field(..., min_length=1, description="Queue name")
    type: str = Field(..., min_length=1, description="Job type")
    data: Any = Field(default_factory=dict, description="Job payload")
    options: JobOptions = Field(default_factory=JobOptions)


class JobBulkEnqueueRequest(BaseModel):
    """Schema for enqueueing a batch of jobs that share type and policy."""

    queue: str = Field(..., min_length=1, description="Queue name")
    type: str = Field(..., min_length=1, description="Job type")
    data: list[Any] = Field(..., description="One payload per job")
    options: JobOptions = Field(default_factory=JobOptions)


class JobEnqueueResponse(BaseModel):
    """Schema for enqueue responses."""

    job_ids: list[UUID]


class JobResponse(BaseModel):
    """Schema for job API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    queue: str
    type: str
    data: Any = None
    status: JobStatus
    priority: int
    attempts: int
    max_attempts: int
    timeout: int
    retry_delay: int
    exponential_backoff: bool

    result: Any = None
    error: str | None = None
    error_code: str | None = None

    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    next_retry_at: datetime | None = None


class JobListResponse(BaseModel):
    """Schema for job list API response."""

    jobs: list[JobResponse]
    total: int
    limit: int


class QueueStats(BaseModel):
    """Aggregate counts for one queue."""

    pending: int = 0  # pending + retrying
    processing: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    total_processed: int = 0  # completed + failed
    average_processing_time: float = Field(
        default=0.0, description="Mean completed_at - started_at in milliseconds"
    )


class CleanupRequest(BaseModel):
    """Schema for queue cleanup requests."""

    older_than_days: int = Field(default=7, ge=0, description="Retention in days")


class CleanupResponse(BaseModel):
    """Schema for queue cleanup responses."""

    queue: str
    deleted_count: int
