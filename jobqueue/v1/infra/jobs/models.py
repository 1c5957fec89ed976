"""
Job queue models.
"""

from datetime import UTC, datetime
from enum import Enum, IntEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, CheckConstraint, Index, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from jobqueue.infra.database import Base, UTCDateTime


class JobStatus(str, Enum):
    """Job status enumeration."""

    PENDING = "pending"
    PROCESSING = "processing"
    RETRYING = "retrying"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobPriority(IntEnum):
    """Job priority, higher runs first."""

    LOW = 1
    NORMAL = 5
    HIGH = 10
    CRITICAL = 20


class ErrorCode(str, Enum):
    """Structured classification of the last failure."""

    PROCESSING_ERROR = "PROCESSING_ERROR"
    TIMEOUT = "TIMEOUT"
    HANDLER_NOT_FOUND = "HANDLER_NOT_FOUND"
    STALLED = "STALLED"


ELIGIBLE_STATUSES = (JobStatus.PENDING.value, JobStatus.RETRYING.value)
TERMINAL_STATUSES = (
    JobStatus.COMPLETED.value,
    JobStatus.FAILED.value,
    JobStatus.CANCELLED.value,
)


class Job(Base):
    """
    A unit of work scheduled on a named queue.

    Execution policy (attempts, timeout, retry delay, backoff) is resolved at
    enqueue time and stored on the row, so later changes to queue defaults
    do not affect jobs already waiting.
    """

    __tablename__ = "job_queue"

    # Identity
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    queue: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Queue (scheduling partition) name"
    )
    type: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Job type, resolves to a registered handler"
    )
    data: Mapped[Any] = mapped_column(
        JSON, nullable=True, comment="Opaque payload passed to the handler"
    )

    # State
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=JobStatus.PENDING.value,
        comment="pending|processing|retrying|completed|failed|cancelled",
    )
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=JobPriority.NORMAL.value,
        comment="Higher priority is selected first",
    )
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Executions started so far"
    )

    # Execution policy
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    timeout: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Handler timeout in milliseconds"
    )
    retry_delay: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Base retry delay in milliseconds"
    )
    exponential_backoff: Mapped[bool] = mapped_column(Boolean, nullable=False)

    # Outcome
    result: Mapped[Any] = mapped_column(
        JSON, nullable=True, comment="Return value of the last successful run"
    )
    error: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Last error message"
    )
    error_code: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Structured error identifier"
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    next_retry_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True, comment="Earliest retry time while retrying"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'retrying', "
            "'completed', 'failed', 'cancelled')",
            name="job_queue_status_check",
        ),
        CheckConstraint("attempts <= max_attempts", name="job_queue_attempts_check"),
        Index("ix_job_queue_selection", "queue", "status", "priority", "created_at"),
        Index("ix_job_queue_next_retry_at", "next_retry_at"),
    )

    def processing_time_ms(self) -> float | None:
        """Wall time of the last execution, if it has both timestamps."""
        if self.started_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds() * 1000
