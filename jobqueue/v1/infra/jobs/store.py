"""
Durable job store backed by SQLAlchemy.

Every public method runs in its own session and transaction, so callers never
observe partial writes. State transitions are conditional updates on the
current status, which keeps them safe against concurrent pollers.
"""

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobqueue.config.logging import get_logger
from jobqueue.v1.infra.jobs.models import (
    ELIGIBLE_STATUSES,
    TERMINAL_STATUSES,
    ErrorCode,
    Job,
    JobStatus,
)
from jobqueue.v1.infra.jobs.schemas import QueueStats, ResolvedJobOptions

logger = get_logger(__name__)


class JobStore:
    """CRUD and selection over job records."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    def _new_job(
        self,
        queue: str,
        job_type: str,
        data: Any,
        options: ResolvedJobOptions,
        now: datetime,
    ) -> Job:
        return Job(
            id=uuid4(),
            queue=queue,
            type=job_type,
            data=data,
            status=JobStatus.PENDING.value,
            priority=int(options.priority),
            attempts=0,
            max_attempts=options.max_attempts,
            timeout=options.timeout,
            retry_delay=options.retry_delay,
            exponential_backoff=options.exponential_backoff,
            created_at=now,
            updated_at=now,
        )

    async def add(
        self, queue: str, job_type: str, data: Any, options: ResolvedJobOptions
    ) -> UUID:
        """Insert a pending job and return its id."""
        job = self._new_job(queue, job_type, data, options, datetime.now(UTC))

        async with self.session_factory() as session:
            session.add(job)
            await session.commit()

        logger.info(
            "Job added",
            job_id=str(job.id),
            queue=queue,
            job_type=job_type,
            priority=job.priority,
        )
        return job.id

    async def add_bulk(
        self,
        queue: str,
        job_type: str,
        data_list: Sequence[Any],
        options: ResolvedJobOptions,
    ) -> list[UUID]:
        """Insert a batch of pending jobs in one transaction.

        Each job gets a strictly later ``created_at`` than the previous one so
        the FIFO tie-break follows input order.
        """
        now = datetime.now(UTC)
        jobs = [
            self._new_job(
                queue, job_type, data, options, now + timedelta(microseconds=index)
            )
            for index, data in enumerate(data_list)
        ]
        if not jobs:
            return []

        async with self.session_factory() as session:
            session.add_all(jobs)
            await session.commit()

        logger.info(
            "Jobs added in bulk", queue=queue, job_type=job_type, count=len(jobs)
        )
        return [job.id for job in jobs]

    async def get_job(self, job_id: UUID) -> Job | None:
        """Get job by ID."""
        async with self.session_factory() as session:
            return await session.get(Job, job_id)

    async def fetch_next(self, queue: str) -> Job | None:
        """Select the best eligible job without claiming it.

        Highest priority first, oldest first among equals. Retrying jobs are
        only eligible once their retry time has passed.
        """
        now = datetime.now(UTC)
        query = (
            select(Job)
            .where(
                Job.queue == queue,
                or_(
                    Job.status == JobStatus.PENDING.value,
                    and_(
                        Job.status == JobStatus.RETRYING.value,
                        Job.next_retry_at <= now,
                    ),
                ),
            )
            .order_by(Job.priority.desc(), Job.created_at.asc())
            .limit(1)
        )

        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def list_jobs(
        self, queue: str, status: JobStatus | None = None, limit: int = 100
    ) -> list[Job]:
        """List jobs of a queue, newest first, optionally filtered by status."""
        query = select(Job).where(Job.queue == queue)
        if status is not None:
            query = query.where(Job.status == JobStatus(status).value)
        query = query.order_by(Job.created_at.desc()).limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def _update(self, job_id: UUID, *conditions: Any, **values: Any) -> bool:
        values.setdefault("updated_at", datetime.now(UTC))
        query = update(Job).where(Job.id == job_id, *conditions).values(**values)

        async with self.session_factory() as session:
            result = await session.execute(query)
            await session.commit()
            return result.rowcount > 0

    async def mark_processing(
        self, job_id: UUID, expected_attempts: int | None = None
    ) -> bool:
        """Claim a job for execution.

        Only succeeds while the row is still eligible: pending, or retrying
        with its retry time reached. With ``expected_attempts`` the claim also
        fails if another scheduler ran the job since the caller selected it,
        so a stale selection cannot start the same attempt twice.
        """
        now = datetime.now(UTC)
        conditions = [
            or_(
                Job.status == JobStatus.PENDING.value,
                and_(
                    Job.status == JobStatus.RETRYING.value,
                    Job.next_retry_at <= now,
                ),
            ),
            Job.attempts < Job.max_attempts,
        ]
        if expected_attempts is not None:
            conditions.append(Job.attempts == expected_attempts)

        return await self._update(
            job_id,
            *conditions,
            status=JobStatus.PROCESSING.value,
            attempts=Job.attempts + 1,
            started_at=now,
            completed_at=None,
            next_retry_at=None,
            updated_at=now,
        )

    async def mark_completed(self, job_id: UUID, result: Any) -> bool:
        now = datetime.now(UTC)
        return await self._update(
            job_id,
            Job.status == JobStatus.PROCESSING.value,
            status=JobStatus.COMPLETED.value,
            result=result,
            error=None,
            error_code=None,
            completed_at=now,
            updated_at=now,
        )

    async def mark_failed(
        self,
        job_id: UUID,
        attempts: int,
        error: str,
        error_code: ErrorCode = ErrorCode.PROCESSING_ERROR,
    ) -> bool:
        now = datetime.now(UTC)
        return await self._update(
            job_id,
            Job.status == JobStatus.PROCESSING.value,
            status=JobStatus.FAILED.value,
            attempts=attempts,
            error=error,
            error_code=ErrorCode(error_code).value,
            result=None,
            completed_at=now,
            updated_at=now,
        )

    async def mark_retrying(
        self,
        job_id: UUID,
        attempts: int,
        error: str,
        next_retry_at: datetime,
        error_code: ErrorCode = ErrorCode.PROCESSING_ERROR,
    ) -> bool:
        return await self._update(
            job_id,
            Job.status == JobStatus.PROCESSING.value,
            status=JobStatus.RETRYING.value,
            attempts=attempts,
            error=error,
            error_code=ErrorCode(error_code).value,
            result=None,
            next_retry_at=next_retry_at,
        )

    async def cancel(self, job_id: UUID) -> bool:
        """Cancel a pending or retrying job. Processing jobs are left alone."""
        success = await self._update(
            job_id,
            Job.status.in_(ELIGIBLE_STATUSES),
            status=JobStatus.CANCELLED.value,
            next_retry_at=None,
        )
        if success:
            logger.info("Job cancelled", job_id=str(job_id))
        return success

    async def retry(self, job_id: UUID) -> bool:
        """Reset a failed job to pending with a fresh attempt budget."""
        success = await self._update(
            job_id,
            Job.status == JobStatus.FAILED.value,
            status=JobStatus.PENDING.value,
            attempts=0,
            error=None,
            error_code=None,
            result=None,
            started_at=None,
            completed_at=None,
            next_retry_at=None,
        )
        if success:
            logger.info("Job retried", job_id=str(job_id))
        return success

    async def get_stats(self, queue: str) -> QueueStats:
        """Aggregate counts and mean processing time by scanning the queue."""
        async with self.session_factory() as session:
            result = await session.execute(select(Job).where(Job.queue == queue))
            jobs = result.scalars().all()

        stats = QueueStats()
        total_time_ms = 0.0
        timed = 0

        for job in jobs:
            status = job.status
            if status in ELIGIBLE_STATUSES:
                stats.pending += 1
            elif status == JobStatus.PROCESSING.value:
                stats.processing += 1
            elif status == JobStatus.COMPLETED.value:
                stats.completed += 1
            elif status == JobStatus.FAILED.value:
                stats.failed += 1
            elif status == JobStatus.CANCELLED.value:
                stats.cancelled += 1

            elapsed_ms = job.processing_time_ms()
            if elapsed_ms is not None:
                total_time_ms += elapsed_ms
                timed += 1

        stats.total_processed = stats.completed + stats.failed
        stats.average_processing_time = total_time_ms / timed if timed else 0.0
        return stats

    async def cleanup(self, queue: str, older_than_days: int = 7) -> int:
        """Delete terminal jobs that finished before the retention cutoff.

        Cancelled jobs never complete, so their last update is used instead.
        """
        cutoff = datetime.now(UTC) - timedelta(days=older_than_days)
        query = delete(Job).where(
            Job.queue == queue,
            Job.status.in_(TERMINAL_STATUSES),
            func.coalesce(Job.completed_at, Job.updated_at) < cutoff,
        )

        async with self.session_factory() as session:
            result = await session.execute(query)
            await session.commit()
            deleted_count = result.rowcount

        if deleted_count > 0:
            logger.info(
                "Cleaned up old jobs",
                queue=queue,
                deleted_count=deleted_count,
                retention_days=older_than_days,
            )
        return deleted_count

    async def recover_stalled(
        self,
        queue: str,
        stalled_after: timedelta,
        exclude_ids: set[UUID] | None = None,
    ) -> int:
        """Release processing jobs whose outcome was never recorded.

        Jobs with attempts left become retrying and immediately eligible;
        the rest fail. Ids currently executing in this process are skipped.
        """
        now = datetime.now(UTC)
        cutoff = now - stalled_after
        error = f"Job stalled in processing for more than {int(stalled_after.total_seconds())}s"

        conditions = [
            Job.queue == queue,
            Job.status == JobStatus.PROCESSING.value,
            Job.started_at < cutoff,
        ]
        if exclude_ids:
            conditions.append(Job.id.not_in(exclude_ids))

        async with self.session_factory() as session:
            retried = await session.execute(
                update(Job)
                .where(*conditions, Job.attempts < Job.max_attempts)
                .values(
                    status=JobStatus.RETRYING.value,
                    error=error,
                    error_code=ErrorCode.STALLED.value,
                    next_retry_at=now,
                    updated_at=now,
                )
            )
            failed = await session.execute(
                update(Job)
                .where(*conditions, Job.attempts >= Job.max_attempts)
                .values(
                    status=JobStatus.FAILED.value,
                    error=error,
                    error_code=ErrorCode.STALLED.value,
                    completed_at=now,
                    updated_at=now,
                )
            )
            await session.commit()

        recovered = retried.rowcount + failed.rowcount
        if recovered:
            logger.warning(
                "Recovered stalled jobs",
                queue=queue,
                retried=retried.rowcount,
                failed=failed.rowcount,
            )
        return recovered

    async def count_stalled(self, stalled_after: timedelta) -> int:
        """Count processing jobs older than the stall window, across queues."""
        cutoff = datetime.now(UTC) - stalled_after
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count(Job.id)).where(
                    Job.status == JobStatus.PROCESSING.value, Job.started_at < cutoff
                )
            )
            return result.scalar() or 0

    async def queue_depth(self) -> int:
        """Count jobs waiting or executing, across queues."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count(Job.id)).where(
                    Job.status.in_(
                        [*ELIGIBLE_STATUSES, JobStatus.PROCESSING.value]
                    )
                )
            )
            return result.scalar() or 0
