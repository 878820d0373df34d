"""Report-content generation collaborator.

Approval hands the report to a generator that turns the confirmed findings
into a shareable document. The API only enqueues; the RQ worker loads the
findings and posts them to the external generator service.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Protocol

import httpx
from sqlalchemy.future import select

from config import settings
from database import async_session_maker
from models.audit_issue import AuditIssue
from models.audit_report import AuditReport
from services.generation_queue import enqueue_report_generation_job

logger = logging.getLogger(__name__)

ENQUEUE_TIMEOUT_SECONDS = 5.0


def build_repo_url(user_name: str, repo_name: str) -> str:
    repo = str(repo_name or "").strip().strip("/")
    if "/" in repo:
        return f"{settings.REPO_BASE_URL.rstrip('/')}/{repo}"
    return f"{settings.REPO_BASE_URL.rstrip('/')}/{str(user_name or '').strip()}/{repo}"


class ReportContentGenerator(Protocol):
    async def trigger(self, report_id: int, repo_url: str) -> Dict[str, Any]:
        ...


class QueuedReportGenerator:
    """Default generator: push a job onto the RQ generation queue."""

    async def trigger(self, report_id: int, repo_url: str) -> Dict[str, Any]:
        job = await asyncio.wait_for(
            asyncio.to_thread(enqueue_report_generation_job, report_id, repo_url),
            timeout=ENQUEUE_TIMEOUT_SECONDS,
        )
        return {"queued": True, "job_id": job.id}


def get_report_generator() -> ReportContentGenerator:
    return QueuedReportGenerator()


async def _load_confirmed_findings(report_id: int) -> Dict[str, Any]:
    async with async_session_maker() as db:
        report_result = await db.execute(select(AuditReport).where(AuditReport.id == report_id))
        report = report_result.scalar_one_or_none()
        if report is None:
            raise LookupError(f"Audit report not found: {report_id}")
        issues_result = await db.execute(
            select(AuditIssue).where(
                AuditIssue.report_id == report_id,
                AuditIssue.false_positive.is_(False),
            )
        )
        findings: List[Dict[str, Any]] = [
            {
                "severity": issue.severity,
                "issue_type": issue.issue_type,
                "file_path": issue.file_path,
                "line_number": issue.line_number,
                "message": issue.message,
                "code_snippet": issue.code_snippet,
                "feedback": issue.feedback,
            }
            for issue in issues_result.scalars().all()
        ]
        return {
            "report_id": report.id,
            "user_name": report.user_name,
            "repo_name": report.repo_name,
            "risk_score": report.risk_score,
            "findings": findings,
        }


async def generate_report_content(report_id: int, repo_url: str) -> Dict[str, Any]:
    """Post confirmed findings to the generator service and return its reply."""
    payload = await _load_confirmed_findings(report_id)
    payload["repo_url"] = repo_url
    headers = {}
    if settings.REPORT_GENERATOR_API_KEY:
        headers["Authorization"] = f"Bearer {settings.REPORT_GENERATOR_API_KEY}"

    async with httpx.AsyncClient(timeout=settings.REPORT_GENERATION_TIMEOUT_SECONDS) as client:
        response = await client.post(settings.REPORT_GENERATOR_URL, json=payload, headers=headers)
        response.raise_for_status()
        result = response.json()

    logger.info("Generated content for report %s (%s findings)", report_id, len(payload["findings"]))
    return result if isinstance(result, dict) else {"result": result}


def generate_report_content_job(report_id: int, repo_url: str) -> Dict[str, Any]:
    """RQ entrypoint."""
    return asyncio.run(generate_report_content(report_id, repo_url))
