"""Durable report-generation job queue helpers (Redis/RQ)."""

from __future__ import annotations

from redis import Redis
from rq import Queue, Retry
from rq.job import Job

from config import settings


GENERATION_QUEUE_NAME = "report_generation_jobs"


def get_redis_connection() -> Redis:
    """Build Redis connection used by RQ."""
    return Redis.from_url(settings.REDIS_URL)


def get_generation_queue() -> Queue:
    """Return the configured report generation queue."""
    return Queue(
        name=GENERATION_QUEUE_NAME,
        connection=get_redis_connection(),
        default_timeout=900,
    )


def enqueue_report_generation_job(report_id: int, repo_url: str) -> Job:
    """Enqueue content generation for an approved report."""
    queue = get_generation_queue()
    return queue.enqueue(
        "services.report_generation.generate_report_content_job",
        report_id,
        repo_url,
        job_id=f"report-generation:{report_id}",
        retry=Retry(max=3, interval=[30, 120, 600]),
        job_timeout=900,
        result_ttl=86400,
        failure_ttl=86400,
    )
