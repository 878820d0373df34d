"""Report status transitions and who may trigger them."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.audit_report import ReportStatus
from services.errors import InvalidTransition, NotFound
from services.permissions import require_curator
from services.report_generation import ReportContentGenerator, build_repo_url, get_report_generator
from services.report_repository import get_report, update_report_status
from services.session_token import RequestSession

logger = logging.getLogger(__name__)


async def _trigger_generation(
    report_id: int,
    repo_url: str,
    generator: Optional[ReportContentGenerator],
    timeout_seconds: Optional[float] = None,
) -> Dict[str, Any]:
    if not settings.REPORT_GENERATION_ENABLED:
        return {"queued": False, "skipped": True}
    try:
        pending = (generator or get_report_generator()).trigger(report_id, repo_url)
        if timeout_seconds is None:
            return await pending
        return await asyncio.wait_for(pending, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("Report generation for report %s timed out after %ss; approval kept", report_id, timeout_seconds)
        return {"queued": False, "error": "timeout"}
    except Exception as exc:
        # Approval stands even when generation cannot be started.
        logger.exception("Report generation failed for report %s; approval kept", report_id)
        return {"queued": False, "error": str(exc) or exc.__class__.__name__}


async def change_report_status(
    session: Optional[RequestSession],
    report_id: Any,
    status: Any,
    db: AsyncSession,
) -> Dict[str, Any]:
    """Curator-only status change. Permission failures raise; transition failures return."""
    await require_curator(session, db)
    try:
        report = await update_report_status(report_id, status, db)
    except InvalidTransition as exc:
        logger.info("Rejected status change for report %s: %s", report_id, exc.message)
        return {
            "success": False,
            "code": exc.code,
            "message": exc.message,
            "report_id": report_id,
            "status": exc.current,
        }
    return {
        "success": True,
        "message": f"Report status updated to {report.status}",
        "report_id": report.id,
        "status": report.status,
    }


async def approve_report(
    session: Optional[RequestSession],
    report_id: Any,
    db: AsyncSession,
    *,
    generator: Optional[ReportContentGenerator] = None,
    generation_timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """Mark a pending report completed, then kick off content generation.

    A generation failure or timeout is reported under ``generation``; the
    approval is already committed at that point and stays.
    """
    result = await change_report_status(session, report_id, ReportStatus.COMPLETED, db)
    if not result["success"]:
        return result

    report = await get_report(result["report_id"], db)
    repo_url = build_repo_url(report.user_name, report.repo_name)
    generation = await _trigger_generation(report.id, repo_url, generator, generation_timeout)

    result.update(
        {
            "message": "Audit approved" if "error" not in generation else "Audit approved; report generation failed",
            "repo_url": repo_url,
            "generation": generation,
        }
    )
    return result


async def archive_report(session: Optional[RequestSession], report_id: Any, db: AsyncSession) -> Dict[str, Any]:
    return await change_report_status(session, report_id, ReportStatus.ARCHIVED, db)


async def check_report_status(report_id: Any, db: AsyncSession) -> Dict[str, Any]:
    try:
        report = await get_report(report_id, db)
    except NotFound as exc:
        return {"success": False, "message": exc.message}
    return {"success": True, "report_id": report.id, "status": report.status}
