"""Job Commands - enqueue and manage individual jobs"""

import json
from typing import Any, Optional

import typer
from rich.console import Console

from ..client.endpoints import JobQueueClient, JobQueueError
from ..utils.config_manager import config
from ..utils.formatting import (
    create_job_panel,
    create_jobs_table,
    print_error,
    print_info,
    print_success,
)

console = Console()
app = typer.Typer(name="jobs", help="Enqueue and manage jobs")

PRIORITIES = {"low": 1, "normal": 5, "high": 10, "critical": 20}


def _parse_json(value: str, what: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        print_error(f"Invalid JSON for {what}: {e}")
        raise typer.Exit(1) from None


def _build_options(
    priority: str | None,
    max_attempts: int | None,
    timeout: int | None,
    retry_delay: int | None,
    backoff: bool | None,
) -> dict[str, Any]:
    options: dict[str, Any] = {}
    if priority is not None:
        if priority.lower() not in PRIORITIES:
            print_error(f"Unknown priority '{priority}'. Use one of: {', '.join(PRIORITIES)}")
            raise typer.Exit(1)
        options["priority"] = PRIORITIES[priority.lower()]
    if max_attempts is not None:
        options["max_attempts"] = max_attempts
    if timeout is not None:
        options["timeout"] = timeout
    if retry_delay is not None:
        options["retry_delay"] = retry_delay
    if backoff is not None:
        options["exponential_backoff"] = backoff
    return options


@app.command("add")
def add_job(
    job_type: str = typer.Argument(..., help="Job type (registered handler name)"),
    data: str = typer.Option("{}", "--data", "-d", help="JSON payload"),
    queue: Optional[str] = typer.Option(None, "--queue", "-q", help="Queue name"),
    priority: Optional[str] = typer.Option(None, "--priority", "-p", help="low|normal|high|critical"),
    max_attempts: Optional[int] = typer.Option(None, "--max-attempts", min=1),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Timeout in ms"),
    retry_delay: Optional[int] = typer.Option(None, "--retry-delay", help="Retry delay in ms"),
    backoff: Optional[bool] = typer.Option(None, "--backoff/--no-backoff", help="Exponential backoff"),
):
    """➕ Enqueue a job"""
    queue = queue or config.get("defaults.queue", "default")
    payload = _parse_json(data, "--data")
    options = _build_options(priority, max_attempts, timeout, retry_delay, backoff)

    try:
        with JobQueueClient() as client:
            result = client.add_job(queue, job_type, payload, options)
            job_id = result.get("job_ids", [""])[0]
            print_success(f"Job {job_id} added to '{queue}'")

    except JobQueueError as e:
        print_error(f"Failed to add job: {e}")
        raise typer.Exit(1) from None


@app.command("bulk")
def add_jobs_bulk(
    job_type: str = typer.Argument(..., help="Job type (registered handler name)"),
    data: str = typer.Option(..., "--data", "-d", help="JSON array, one payload per job"),
    queue: Optional[str] = typer.Option(None, "--queue", "-q", help="Queue name"),
    priority: Optional[str] = typer.Option(None, "--priority", "-p", help="low|normal|high|critical"),
    max_attempts: Optional[int] = typer.Option(None, "--max-attempts", min=1),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Timeout in ms"),
    retry_delay: Optional[int] = typer.Option(None, "--retry-delay", help="Retry delay in ms"),
    backoff: Optional[bool] = typer.Option(None, "--backoff/--no-backoff", help="Exponential backoff"),
):
    """📦 Enqueue a batch of jobs sharing type and options"""
    queue = queue or config.get("defaults.queue", "default")
    payloads = _parse_json(data, "--data")
    if not isinstance(payloads, list):
        print_error("--data must be a JSON array")
        raise typer.Exit(1)
    options = _build_options(priority, max_attempts, timeout, retry_delay, backoff)

    try:
        with JobQueueClient() as client:
            result = client.add_jobs_bulk(queue, job_type, payloads, options)
            job_ids = result.get("job_ids", [])
            print_success(f"{len(job_ids)} jobs added to '{queue}'")
            for job_id in job_ids:
                console.print(f"  [cyan]{job_id}[/cyan]")

    except JobQueueError as e:
        print_error(f"Failed to add jobs: {e}")
        raise typer.Exit(1) from None


@app.command("get")
def get_job(job_id: str = typer.Argument(..., help="Job ID")):
    """🔍 Show a job"""
    try:
        with JobQueueClient() as client:
            job = client.get_job(job_id)
            console.print(create_job_panel(job))

    except JobQueueError as e:
        print_error(f"Failed to get job: {e}")
        raise typer.Exit(1) from None


@app.command("list")
def list_jobs(
    queue: Optional[str] = typer.Option(None, "--queue", "-q", help="Queue name"),
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Filter by status"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Maximum jobs to show"),
):
    """📋 List jobs of a queue"""
    queue = queue or config.get("defaults.queue", "default")
    limit = limit or int(config.get("display.jobs_per_page", 20))

    try:
        with JobQueueClient() as client:
            result = client.list_jobs(queue, status=status, limit=limit)
            jobs = result.get("jobs", [])

            if not jobs:
                print_info(f"No jobs found in '{queue}'")
                return

            console.print(create_jobs_table(jobs, queue))

    except JobQueueError as e:
        print_error(f"Failed to list jobs: {e}")
        raise typer.Exit(1) from None


@app.command("cancel")
def cancel_job(job_id: str = typer.Argument(..., help="Job ID")):
    """🛑 Cancel a pending or retrying job"""
    try:
        with JobQueueClient() as client:
            client.cancel_job(job_id)
            print_success(f"Job {job_id} cancelled")

    except JobQueueError as e:
        print_error(f"Failed to cancel job: {e}")
        raise typer.Exit(1) from None


@app.command("retry")
def retry_job(job_id: str = typer.Argument(..., help="Job ID")):
    """🔁 Retry a failed job"""
    try:
        with JobQueueClient() as client:
            client.retry_job(job_id)
            print_success(f"Job {job_id} queued for retry")

    except JobQueueError as e:
        print_error(f"Failed to retry job: {e}")
        raise typer.Exit(1) from None
