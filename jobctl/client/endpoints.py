"""API Endpoint Wrappers - Typed API calls"""

from typing import Any

from .base import APIClient, JobQueueError
from ..utils.config_manager import config

__all__ = ["JobQueueClient", "JobQueueError"]


class JobQueueClient:
    """High-level client with typed endpoint methods"""

    def __init__(
        self,
        base_url: str | None = None,
        headers: dict[str, str] | None = None
    ):
        # Use config values if not provided
        api_config = config.load_config().get("api", {})
        final_base_url = base_url or api_config.get("base_url", "http://localhost:8000")
        final_headers = headers or api_config.get("headers", {})

        self.api = APIClient(
            base_url=final_base_url,
            timeout=int(api_config.get("timeout", 30)),
            headers=final_headers
        )

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    # Health Check
    def health_check(self) -> dict[str, Any]:
        """Check API health status"""
        return self.api.get("/healthz")

    # Job Endpoints
    def add_job(
        self,
        queue: str,
        type: str,
        data: Any = None,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Enqueue a single job"""
        return self.api.post(
            "/jobs",
            {"queue": queue, "type": type, "data": data, "options": options or {}},
        )

    def add_jobs_bulk(
        self,
        queue: str,
        type: str,
        data: list[Any],
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Enqueue a batch of jobs"""
        return self.api.post(
            "/jobs/bulk",
            {"queue": queue, "type": type, "data": data, "options": options or {}},
        )

    def list_jobs(
        self, queue: str, status: str | None = None, limit: int = 20
    ) -> dict[str, Any]:
        """List jobs of a queue"""
        params: dict[str, Any] = {"queue": queue, "limit": limit}
        if status:
            params["status"] = status
        return self.api.get("/jobs", params)

    def get_job(self, job_id: str) -> dict[str, Any]:
        """Get specific job by ID"""
        return self.api.get(f"/jobs/{job_id}")

    def cancel_job(self, job_id: str) -> dict[str, Any]:
        """Cancel a pending or retrying job"""
        return self.api.post(f"/jobs/{job_id}/cancel")

    def retry_job(self, job_id: str) -> dict[str, Any]:
        """Retry a failed job"""
        return self.api.post(f"/jobs/{job_id}/retry")

    # Queue Endpoints
    def get_queue_stats(self, queue: str) -> dict[str, Any]:
        """Get statistics for a queue"""
        return self.api.get(f"/queues/{queue}/stats")

    def cleanup_queue(self, queue: str, older_than_days: int = 7) -> dict[str, Any]:
        """Delete old terminal jobs of a queue"""
        return self.api.post(
            f"/queues/{queue}/cleanup", {"older_than_days": older_than_days}
        )
