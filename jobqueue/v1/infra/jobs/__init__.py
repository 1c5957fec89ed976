"""
Job queue infrastructure.

This package provides a durable job queue with:
- Database-backed job store with atomic claims
- Priority then FIFO selection per named queue
- Polling workers with bounded concurrency and per-job timeouts
- Retries with fixed or exponential backoff
- Registry-based pluggable handlers
"""

from jobqueue.v1.infra.jobs.models import ErrorCode, Job, JobPriority, JobStatus
from jobqueue.v1.infra.jobs.schemas import JobOptions, QueueStats
from jobqueue.v1.infra.jobs.service import (
    ESCROW_QUEUE,
    EMAIL_QUEUE,
    NOTIFICATION_QUEUE,
    PAYMENT_QUEUE,
    PREDEFINED_QUEUES,
    NamedQueue,
    QueueService,
    build_queue_service,
)

__all__ = [
    "ErrorCode",
    "Job",
    "JobPriority",
    "JobStatus",
    "JobOptions",
    "QueueStats",
    "QueueService",
    "NamedQueue",
    "build_queue_service",
    "EMAIL_QUEUE",
    "NOTIFICATION_QUEUE",
    "PAYMENT_QUEUE",
    "ESCROW_QUEUE",
    "PREDEFINED_QUEUES",
]
