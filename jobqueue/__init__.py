"""Durable priority job queue with retries and backoff."""

__version__ = "1.0.0"
