"""
Job execution: handler lookup, timeout, outcome classification and backoff.
"""

import asyncio
import inspect
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta
from typing import Any

from jobqueue.config.logging import get_logger
from jobqueue.v1.core.exceptions import HandlerNotFoundError, JobTimeoutError
from jobqueue.v1.core.registries import HandlerRegistry, JobHandler
from jobqueue.v1.infra.jobs.models import ErrorCode, Job
from jobqueue.v1.infra.jobs.store import JobStore

logger = get_logger(__name__)


def compute_retry_delay(retry_delay_ms: int, attempts: int, exponential: bool) -> int:
    """Delay before the next attempt, in milliseconds.

    ``attempts`` is the number of executions that have already failed.
    """
    if exponential:
        return retry_delay_ms * (2**attempts)
    return retry_delay_ms


def _is_async(handler: JobHandler) -> bool:
    return inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
        getattr(handler, "__call__", None)
    )


async def _resolve(call: Any) -> Any:
    result = await call
    if inspect.isawaitable(result):
        result = await result
    return result


class JobExecutor:
    """Runs one claimed job and records its outcome in the store.

    Synchronous handlers run on a dedicated thread pool. Threads cannot be
    interrupted, so a timed-out sync handler keeps its thread until it
    returns; the job timeout only starts once a thread has picked it up.
    """

    def __init__(
        self, store: JobStore, handlers: HandlerRegistry, max_threads: int = 8
    ):
        self.store = store
        self.handlers = handlers
        self.max_threads = max_threads
        self._threads = ThreadPoolExecutor(
            max_workers=max_threads, thread_name_prefix="job-handler"
        )

    def close(self) -> None:
        """Release the handler thread pool without waiting for running handlers."""
        self._threads.shutdown(wait=False, cancel_futures=True)

    async def execute(self, job: Job) -> bool:
        """Claim and run ``job``.

        Returns False when the claim was lost, i.e. the row was no longer
        pending or retrying by the time this executor tried to start it.
        """
        job_logger = logger.bind(job_id=str(job.id), queue=job.queue, job_type=job.type)

        if not await self.store.mark_processing(job.id, job.attempts):
            job_logger.info("Job claim lost")
            return False

        # The claim matched the stored attempts and incremented them
        attempts = job.attempts + 1
        job.attempts = attempts
        job_logger.info("Processing job started", attempt=attempts)

        try:
            handler = self.handlers.get(job.type)
            result = await self._run_with_timeout(handler, job)
        except HandlerNotFoundError as e:
            job_logger.error("Job failed: no handler registered")
            await self._record(
                job_logger,
                self.store.mark_failed(
                    job.id, attempts, e.message, ErrorCode.HANDLER_NOT_FOUND
                ),
            )
            return True
        except JobTimeoutError as e:
            job_logger.warning("Job timed out", timeout_ms=e.timeout_ms)
            await self._handle_failure(job_logger, job, attempts, e.message, ErrorCode.TIMEOUT)
            return True
        except Exception as e:
            job_logger.exception("Job processing failed", error=str(e))
            await self._handle_failure(
                job_logger, job, attempts, str(e) or e.__class__.__name__
            )
            return True

        await self._record(job_logger, self.store.mark_completed(job.id, result))
        job_logger.info("Processing job completed successfully")
        return True

    async def _run_with_timeout(self, handler: JobHandler, job: Job) -> Any:
        if _is_async(handler):
            call = handler(job)
        else:
            call = await self._start_in_thread(handler, job)

        try:
            return await asyncio.wait_for(_resolve(call), job.timeout / 1000)
        except asyncio.TimeoutError:
            raise JobTimeoutError(job.timeout) from None

    async def _start_in_thread(self, handler: JobHandler, job: Job) -> asyncio.Future:
        """Submit a sync handler and wait until a thread starts running it."""
        loop = asyncio.get_running_loop()
        started = asyncio.Event()

        def run() -> Any:
            loop.call_soon_threadsafe(started.set)
            return handler(job)

        future = loop.run_in_executor(self._threads, run)
        waiter = asyncio.ensure_future(started.wait())
        try:
            done, _ = await asyncio.wait(
                {waiter, future},
                timeout=job.timeout / 1000,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if not done:
                logger.warning(
                    "Handler threads saturated, job waiting for a free thread",
                    job_id=str(job.id),
                    max_threads=self.max_threads,
                )
                await asyncio.wait(
                    {waiter, future}, return_when=asyncio.FIRST_COMPLETED
                )
        finally:
            waiter.cancel()
        return future

    async def _handle_failure(
        self,
        job_logger: Any,
        job: Job,
        attempts: int,
        error: str,
        error_code: ErrorCode = ErrorCode.PROCESSING_ERROR,
    ) -> None:
        if attempts < job.max_attempts:
            delay_ms = compute_retry_delay(
                job.retry_delay, attempts, job.exponential_backoff
            )
            next_retry_at = datetime.now(UTC) + timedelta(milliseconds=delay_ms)
            await self._record(
                job_logger,
                self.store.mark_retrying(
                    job.id, attempts, error, next_retry_at, error_code
                ),
            )
            job_logger.info(
                "Job scheduled for retry",
                attempt=attempts,
                max_attempts=job.max_attempts,
                next_retry_at=next_retry_at.isoformat(),
            )
        else:
            await self._record(
                job_logger, self.store.mark_failed(job.id, attempts, error, error_code)
            )
            job_logger.error("Job failed permanently", attempts=attempts)

    async def _record(self, job_logger: Any, write: Any) -> None:
        # A lost write leaves the row processing; the stalled job sweep heals it.
        try:
            updated = await write
        except Exception:
            job_logger.exception("Failed to record job outcome")
            return
        if not updated:
            job_logger.warning("Job outcome not recorded: row left processing state")
