"""Tests for the queue service, its pollers and named queues."""

import asyncio

import pytest

from jobqueue.v1.infra.jobs.models import ErrorCode, JobPriority, JobStatus
from jobqueue.v1.infra.jobs.schemas import JobOptions
from jobqueue.v1.infra.jobs.service import (
    EMAIL_QUEUE,
    PAYMENT_QUEUE,
    PREDEFINED_QUEUES,
    NamedQueue,
)


class TestOptions:
    async def test_settings_fill_unset_options(self, service, test_settings):
        resolved = service.resolve_options("email")

        assert resolved.max_attempts == test_settings.queue_max_attempts
        assert resolved.timeout == test_settings.queue_timeout_ms
        assert resolved.retry_delay == test_settings.queue_retry_delay_ms
        assert resolved.exponential_backoff == test_settings.queue_exponential_backoff
        assert resolved.priority == JobPriority.NORMAL

    async def test_queue_defaults_then_job_options(self, service):
        service.configure_queue(
            PAYMENT_QUEUE, JobOptions(max_attempts=5, timeout=60000)
        )

        resolved = service.resolve_options(
            PAYMENT_QUEUE, JobOptions(timeout=1000, priority=JobPriority.HIGH)
        )

        assert resolved.max_attempts == 5
        assert resolved.timeout == 1000
        assert resolved.priority == JobPriority.HIGH

        # Other queues are unaffected
        assert service.resolve_options(EMAIL_QUEUE).max_attempts == 3

    async def test_options_stored_on_job(self, service):
        job_id = await service.add(
            EMAIL_QUEUE,
            "email.send",
            {"to": "a@b.c"},
            JobOptions(max_attempts=7, priority=JobPriority.CRITICAL),
        )

        job = await service.get_job(str(job_id))
        assert job.max_attempts == 7
        assert job.priority == JobPriority.CRITICAL


class TestProcessing:
    async def test_job_completes(self, service, wait_for_status):
        async def send(job):
            return {"delivered": job.data["to"]}

        service.register_handler("email.send", send)
        job_id = await service.add(EMAIL_QUEUE, "email.send", {"to": "a@b.c"})

        await service.process(EMAIL_QUEUE)
        job = await wait_for_status(service, job_id, JobStatus.COMPLETED)

        assert job.result == {"delivered": "a@b.c"}
        assert job.attempts == 1

    async def test_failing_job_retries_then_fails(self, service, wait_for_status):
        calls = []

        async def flaky(job):
            calls.append(job.attempts)
            raise RuntimeError("gateway down")

        service.register_handler("payment.capture", flaky)
        job_id = await service.add(
            PAYMENT_QUEUE,
            "payment.capture",
            {},
            JobOptions(max_attempts=3, retry_delay=10, exponential_backoff=False),
        )

        await service.process(PAYMENT_QUEUE)
        job = await wait_for_status(service, job_id, JobStatus.FAILED)

        assert job.attempts == 3
        assert job.error == "gateway down"
        assert calls == [1, 2, 3]

    async def test_higher_priority_runs_first(self, service, wait_for_status):
        order = []

        async def record(job):
            order.append(job.data["name"])

        service.register_handler("email.send", record)
        low_id = await service.add(
            EMAIL_QUEUE, "email.send", {"name": "low"}, JobOptions(priority=JobPriority.LOW)
        )
        high_id = await service.add(
            EMAIL_QUEUE, "email.send", {"name": "high"}, JobOptions(priority=JobPriority.HIGH)
        )

        await service.process(EMAIL_QUEUE, concurrency=1)
        low = await wait_for_status(service, low_id, JobStatus.COMPLETED)
        high = await service.get_job(high_id)

        assert order == ["high", "low"]
        assert high.completed_at <= low.started_at

    async def test_timeout_recorded(self, service, wait_for_status):
        async def slow(job):
            await asyncio.sleep(1)

        service.register_handler("report.build", slow)
        job_id = await service.add(
            "reports",
            "report.build",
            {},
            JobOptions(timeout=50, retry_delay=60000),
        )

        await service.process("reports")
        job = await wait_for_status(
            service, job_id, JobStatus.RETRYING, JobStatus.FAILED
        )

        assert job.error_code == ErrorCode.TIMEOUT.value
        assert "timeout" in job.error.lower()

    async def test_cancelled_job_never_runs(self, service):
        calls = []

        async def send(job):
            calls.append(job.id)

        service.register_handler("email.send", send)
        job_id = await service.add(EMAIL_QUEUE, "email.send", {})
        assert await service.cancel(job_id) is True

        await service.process(EMAIL_QUEUE)
        await asyncio.sleep(0.2)

        job = await service.get_job(job_id)
        assert job.status == JobStatus.CANCELLED.value
        assert calls == []

    async def test_cancel_does_not_interrupt_running_job(
        self, service, wait_for_status
    ):
        started = asyncio.Event()
        release = asyncio.Event()

        async def long_running(job):
            started.set()
            await release.wait()
            return "done"

        service.register_handler("escrow.release", long_running)
        job_id = await service.add("escrow", "escrow.release", {})

        await service.process("escrow")
        await asyncio.wait_for(started.wait(), timeout=5)

        assert await service.cancel(job_id) is False

        release.set()
        job = await wait_for_status(service, job_id, JobStatus.COMPLETED)
        assert job.result == "done"

    async def test_concurrent_pollers_run_job_once(self, service, wait_for_status):
        calls = []

        async def slow(job):
            calls.append(job.id)
            await asyncio.sleep(0.1)

        service.register_handler("email.send", slow)
        job_id = await service.add(EMAIL_QUEUE, "email.send", {})

        await service.process(EMAIL_QUEUE, concurrency=3)
        await wait_for_status(service, job_id, JobStatus.COMPLETED)
        await asyncio.sleep(0.05)

        assert calls == [job_id]

    async def test_concurrency_runs_jobs_in_parallel(self, service, wait_for_status):
        running = 0
        peak = 0

        async def track(job):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.2)
            running -= 1

        service.register_handler("email.send", track)
        job_ids = await service.add_bulk(EMAIL_QUEUE, "email.send", [{}, {}, {}])

        await service.process(EMAIL_QUEUE, concurrency=3)
        for job_id in job_ids:
            await wait_for_status(service, job_id, JobStatus.COMPLETED)

        assert peak >= 2

    async def test_retry_failed_job(self, service, wait_for_status):
        outcomes = iter([RuntimeError("first run fails"), None])

        async def handler(job):
            error = next(outcomes)
            if error is not None:
                raise error
            return "ok"

        service.register_handler("notify.push", handler)
        job_id = await service.add(
            "notification", "notify.push", {}, JobOptions(max_attempts=1)
        )

        await service.process("notification")
        await wait_for_status(service, job_id, JobStatus.FAILED)

        assert await service.retry(job_id) is True
        job = await wait_for_status(service, job_id, JobStatus.COMPLETED)
        assert job.attempts == 1
        assert job.result == "ok"


class TestLifecycle:
    async def test_stop_waits_for_in_flight_job(self, service, wait_for_status):
        started = asyncio.Event()

        async def slow(job):
            started.set()
            await asyncio.sleep(0.1)
            return "finished"

        service.register_handler("email.send", slow)
        job_id = await service.add(EMAIL_QUEUE, "email.send", {})

        await service.process(EMAIL_QUEUE)
        await asyncio.wait_for(started.wait(), timeout=5)
        await service.stop(EMAIL_QUEUE)

        job = await service.get_job(job_id)
        assert job.status == JobStatus.COMPLETED.value
        assert not service.workers.is_running(EMAIL_QUEUE)

    async def test_stopped_queue_claims_nothing(self, service):
        service.register_handler("email.send", lambda job: None)

        await service.process(EMAIL_QUEUE)
        await service.stop(EMAIL_QUEUE)

        job_id = await service.add(EMAIL_QUEUE, "email.send", {})
        await asyncio.sleep(0.1)

        assert (await service.get_job(job_id)).status == JobStatus.PENDING.value

    async def test_process_is_per_queue(self, service):
        await service.process(EMAIL_QUEUE, concurrency=2)
        await service.process(PAYMENT_QUEUE)

        assert sorted(service.workers.running_queues()) == [EMAIL_QUEUE, PAYMENT_QUEUE]

        await service.stop(PAYMENT_QUEUE)
        assert service.workers.running_queues() == [EMAIL_QUEUE]

        await service.stop()
        assert service.workers.running_queues() == []

    async def test_invalid_concurrency(self, service):
        with pytest.raises(ValueError):
            await service.process(EMAIL_QUEUE, concurrency=0)

    async def test_poller_skips_job_held_in_process(self, service):
        service.register_handler("email.send", lambda job: None)
        job_id = await service.add(EMAIL_QUEUE, "email.send", {})
        service.workers.active_jobs.add(job_id)

        assert await service.workers.process_next(EMAIL_QUEUE) is False
        assert (await service.get_job(job_id)).status == JobStatus.PENDING.value

    async def test_claim_released_when_outcome_write_fails(self, service):
        async def send(job):
            return "sent"

        async def broken_write(job_id, result):
            raise RuntimeError("database unavailable")

        service.register_handler("email.send", send)
        service.store.mark_completed = broken_write
        job_id = await service.add(EMAIL_QUEUE, "email.send", {})

        assert await service.workers.process_next(EMAIL_QUEUE) is True

        assert service.workers.active_jobs == set()
        assert (await service.get_job(job_id)).status == JobStatus.PROCESSING.value


class TestInspection:
    async def test_list_jobs_newest_first(self, service):
        first = await service.add(EMAIL_QUEUE, "email.send", {})
        second = await service.add(EMAIL_QUEUE, "email.send", {})
        await service.cancel(first)

        jobs = await service.list_jobs(EMAIL_QUEUE)
        assert [job.id for job in jobs] == [second, first]

        cancelled = await service.list_jobs(EMAIL_QUEUE, JobStatus.CANCELLED)
        assert [job.id for job in cancelled] == [first]

        assert len(await service.list_jobs(EMAIL_QUEUE, limit=1)) == 1

    async def test_stats_after_processing(self, service, wait_for_status):
        async def send(job):
            if job.data.get("fail"):
                raise RuntimeError("bounced")
            return "ok"

        service.register_handler("email.send", send)
        ok_id = await service.add(EMAIL_QUEUE, "email.send", {})
        bad_id = await service.add(
            EMAIL_QUEUE, "email.send", {"fail": True}, JobOptions(max_attempts=1)
        )

        await service.process(EMAIL_QUEUE)
        await wait_for_status(service, ok_id, JobStatus.COMPLETED)
        await wait_for_status(service, bad_id, JobStatus.FAILED)

        stats = await service.get_stats(EMAIL_QUEUE)
        assert stats.completed == 1
        assert stats.failed == 1
        assert stats.total_processed == 2
        assert stats.average_processing_time >= 0

    async def test_cleanup_uses_settings_default(self, service):
        await service.add(EMAIL_QUEUE, "email.send", {})

        assert await service.cleanup(EMAIL_QUEUE) == 0


class TestNamedQueues:
    def test_predefined_queue_names(self):
        assert PREDEFINED_QUEUES == ("email", "notification", "payment", "escrow")

    async def test_named_queue_facade(self, service, wait_for_status):
        async def send(job):
            return job.queue

        service.register_handler("email.send", send)
        email = service.queue(EMAIL_QUEUE)
        assert isinstance(email, NamedQueue)

        job_id = await email.add("email.send", {"to": "a@b.c"})
        bulk_ids = await email.add_bulk("email.send", [{"n": 1}, {"n": 2}])

        await email.process()
        for each in [job_id, *bulk_ids]:
            job = await wait_for_status(service, each, JobStatus.COMPLETED)
            assert job.result == EMAIL_QUEUE

        stats = await email.get_stats()
        assert stats.completed == 3

        await email.stop()
        assert not service.workers.is_running(EMAIL_QUEUE)
