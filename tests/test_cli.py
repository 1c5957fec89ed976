"""Tests for CLI commands"""

from unittest.mock import Mock, patch

import pytest
from typer.testing import CliRunner

from jobctl.client.base import JobQueueError
from jobctl.main import app
from jobctl.utils.config_manager import ConfigManager


# Test fixtures
@pytest.fixture
def runner():
    """CLI test runner"""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point every command at a throwaway config directory"""
    manager = ConfigManager(tmp_path / "jobctl")
    monkeypatch.setattr("jobctl.main.config_manager", manager)
    monkeypatch.setattr("jobctl.commands.jobs.config", manager)
    monkeypatch.setattr("jobctl.commands.config.config", manager)
    return manager


def make_client():
    client = Mock()
    client.__enter__ = Mock(return_value=client)
    client.__exit__ = Mock(return_value=None)
    return client


class TestMainCommands:
    """Test main CLI commands"""

    def test_version(self, runner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "jobctl v" in result.stdout

    @patch("jobctl.main.JobQueueClient")
    def test_status_success(self, mock_client_class, runner):
        """Test status command with successful connection"""
        mock_client = make_client()
        mock_client.health_check.return_value = {
            "version": "1.0.0",
            "environment": "development",
            "worker": {"running_queues": ["email"], "queue_depth": 3},
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "Connected Successfully" in result.stdout
        assert "email" in result.stdout

    @patch("jobctl.main.JobQueueClient")
    def test_status_failure(self, mock_client_class, runner):
        """Test status command with connection failure"""
        mock_client = make_client()
        mock_client.health_check.side_effect = JobQueueError("Connection failed")
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert "Connection Failed" in result.stdout


class TestJobCommands:
    """Test job commands"""

    @patch("jobctl.commands.jobs.JobQueueClient")
    def test_add_job(self, mock_client_class, runner):
        mock_client = make_client()
        mock_client.add_job.return_value = {"job_ids": ["job-1"]}
        mock_client_class.return_value = mock_client

        result = runner.invoke(
            app,
            [
                "jobs", "add", "email.send",
                "--queue", "email",
                "--data", '{"to": "a@b.c"}',
                "--priority", "high",
                "--max-attempts", "5",
                "--no-backoff",
            ],
        )

        assert result.exit_code == 0
        assert "Job job-1 added to 'email'" in result.stdout
        mock_client.add_job.assert_called_once_with(
            "email",
            "email.send",
            {"to": "a@b.c"},
            {"priority": 10, "max_attempts": 5, "exponential_backoff": False},
        )

    @patch("jobctl.commands.jobs.JobQueueClient")
    def test_add_job_uses_default_queue(self, mock_client_class, runner):
        mock_client = make_client()
        mock_client.add_job.return_value = {"job_ids": ["job-1"]}
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "add", "email.send"])

        assert result.exit_code == 0
        mock_client.add_job.assert_called_once_with("default", "email.send", {}, {})

    def test_add_job_invalid_json(self, runner):
        result = runner.invoke(
            app, ["jobs", "add", "email.send", "--queue", "email", "--data", "{oops"]
        )

        assert result.exit_code == 1
        assert "Invalid JSON" in result.stdout

    def test_add_job_unknown_priority(self, runner):
        result = runner.invoke(
            app, ["jobs", "add", "email.send", "--queue", "email", "--priority", "urgent"]
        )

        assert result.exit_code == 1
        assert "Unknown priority" in result.stdout

    @patch("jobctl.commands.jobs.JobQueueClient")
    def test_add_bulk(self, mock_client_class, runner):
        mock_client = make_client()
        mock_client.add_jobs_bulk.return_value = {"job_ids": ["job-1", "job-2"]}
        mock_client_class.return_value = mock_client

        result = runner.invoke(
            app,
            ["jobs", "bulk", "email.send", "--queue", "email", "--data", '[{"n": 1}, {"n": 2}]'],
        )

        assert result.exit_code == 0
        assert "2 jobs added to 'email'" in result.stdout
        mock_client.add_jobs_bulk.assert_called_once_with(
            "email", "email.send", [{"n": 1}, {"n": 2}], {}
        )

    @patch("jobctl.commands.jobs.JobQueueClient")
    def test_add_bulk_with_options(self, mock_client_class, runner):
        mock_client = make_client()
        mock_client.add_jobs_bulk.return_value = {"job_ids": ["job-1"]}
        mock_client_class.return_value = mock_client

        result = runner.invoke(
            app,
            [
                "jobs", "bulk", "email.send",
                "--queue", "email",
                "--data", '[{"n": 1}]',
                "--priority", "high",
                "--max-attempts", "5",
                "--timeout", "1000",
                "--retry-delay", "250",
                "--no-backoff",
            ],
        )

        assert result.exit_code == 0
        mock_client.add_jobs_bulk.assert_called_once_with(
            "email",
            "email.send",
            [{"n": 1}],
            {
                "priority": 10,
                "max_attempts": 5,
                "timeout": 1000,
                "retry_delay": 250,
                "exponential_backoff": False,
            },
        )

    def test_add_bulk_requires_array(self, runner):
        result = runner.invoke(
            app, ["jobs", "bulk", "email.send", "--queue", "email", "--data", "{}"]
        )

        assert result.exit_code == 1
        assert "must be a JSON array" in result.stdout

    @patch("jobctl.commands.jobs.JobQueueClient")
    def test_list_jobs_empty(self, mock_client_class, runner):
        mock_client = make_client()
        mock_client.list_jobs.return_value = {"jobs": [], "total": 0, "limit": 20}
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "list", "--queue", "email"])

        assert result.exit_code == 0
        assert "No jobs found" in result.stdout
        mock_client.list_jobs.assert_called_once_with("email", status=None, limit=20)

    @patch("jobctl.commands.jobs.JobQueueClient")
    def test_list_jobs(self, mock_client_class, runner):
        mock_client = make_client()
        mock_client.list_jobs.return_value = {
            "jobs": [
                {
                    "id": "0f8b6c2a-aaaa-bbbb-cccc-123456789abc",
                    "type": "email.send",
                    "status": "failed",
                    "priority": 5,
                    "attempts": 3,
                    "max_attempts": 3,
                    "created_at": "2026-01-01T00:00:00Z",
                }
            ],
            "total": 1,
            "limit": 10,
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(
            app, ["jobs", "list", "--queue", "email", "--status", "failed", "--limit", "10"]
        )

        assert result.exit_code == 0
        assert "0f8b6c2a" in result.stdout
        mock_client.list_jobs.assert_called_once_with("email", status="failed", limit=10)

    @patch("jobctl.commands.jobs.JobQueueClient")
    def test_get_job(self, mock_client_class, runner):
        mock_client = make_client()
        mock_client.get_job.return_value = {
            "id": "job-1",
            "queue": "email",
            "type": "email.send",
            "status": "failed",
            "priority": 5,
            "attempts": 1,
            "max_attempts": 1,
            "error": "mailbox full",
            "error_code": "PROCESSING_ERROR",
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "get", "job-1"])

        assert result.exit_code == 0
        assert "mailbox full" in result.stdout

    @patch("jobctl.commands.jobs.JobQueueClient")
    def test_cancel_job(self, mock_client_class, runner):
        mock_client = make_client()
        mock_client.cancel_job.return_value = {"success": True, "job_id": "job-1"}
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "cancel", "job-1"])

        assert result.exit_code == 0
        assert "Job job-1 cancelled" in result.stdout

    @patch("jobctl.commands.jobs.JobQueueClient")
    def test_cancel_job_conflict(self, mock_client_class, runner):
        mock_client = make_client()
        mock_client.cancel_job.side_effect = JobQueueError(
            "API Error 409: Job not found or not eligible for cancellation"
        )
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "cancel", "job-1"])

        assert result.exit_code == 1
        assert "Failed to cancel job" in result.stdout

    @patch("jobctl.commands.jobs.JobQueueClient")
    def test_retry_job(self, mock_client_class, runner):
        mock_client = make_client()
        mock_client.retry_job.return_value = {"success": True, "job_id": "job-1"}
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "retry", "job-1"])

        assert result.exit_code == 0
        assert "Job job-1 queued for retry" in result.stdout


class TestQueueCommands:
    """Test queue commands"""

    @patch("jobctl.commands.queues.JobQueueClient")
    def test_stats(self, mock_client_class, runner):
        mock_client = make_client()
        mock_client.get_queue_stats.return_value = {
            "pending": 2,
            "processing": 1,
            "completed": 10,
            "failed": 1,
            "cancelled": 0,
            "total_processed": 11,
            "average_processing_time": 12.5,
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["queues", "stats", "email"])

        assert result.exit_code == 0
        assert "Queue Stats" in result.stdout
        assert "12.5ms" in result.stdout
        assert "jobctl jobs list" in result.stdout

    @patch("jobctl.commands.queues.JobQueueClient")
    def test_cleanup(self, mock_client_class, runner):
        mock_client = make_client()
        mock_client.cleanup_queue.return_value = {"queue": "email", "deleted_count": 4}
        mock_client_class.return_value = mock_client

        result = runner.invoke(
            app, ["queues", "cleanup", "email", "--older-than-days", "3", "--yes"]
        )

        assert result.exit_code == 0
        assert "Deleted 4 jobs from 'email'" in result.stdout
        mock_client.cleanup_queue.assert_called_once_with("email", 3)

    @patch("jobctl.commands.queues.JobQueueClient")
    def test_cleanup_declined(self, mock_client_class, runner):
        result = runner.invoke(app, ["queues", "cleanup", "email"], input="n\n")

        assert result.exit_code == 0
        assert "Cleanup cancelled" in result.stdout
        mock_client_class.assert_not_called()


class TestConfigCommands:
    """Test configuration commands"""

    def test_set_and_get(self, runner, isolated_config):
        result = runner.invoke(app, ["config", "set", "defaults.queue", "email"])
        assert result.exit_code == 0

        assert isolated_config.get("defaults.queue") == "email"

        result = runner.invoke(app, ["config", "get", "defaults.queue"])
        assert result.exit_code == 0
        assert "email" in result.stdout

    def test_set_rejects_bad_url(self, runner):
        result = runner.invoke(app, ["config", "set", "api.base_url", "localhost"])

        assert result.exit_code == 1
        assert "must start with http" in result.stdout

    def test_get_unknown_key(self, runner):
        result = runner.invoke(app, ["config", "get", "nope.missing"])

        assert result.exit_code == 0
        assert "not found" in result.stdout

    def test_reset(self, runner, isolated_config):
        isolated_config.set("defaults.queue", "payment")

        result = runner.invoke(app, ["config", "reset", "--yes"])

        assert result.exit_code == 0
        assert isolated_config.get("defaults.queue") == "default"
