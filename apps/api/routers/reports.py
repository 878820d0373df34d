"""Audit dates, reports, issue curation and the report lifecycle."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.api_errors import request_timeout, to_http_exception
from routers.auth_scope import get_request_session
from routers.rate_limit import rate_limit
from services.access_gate import AccessReason, check_report_access
from services.curation import (
    IssueFilterOptions,
    extract_categories,
    filter_issues,
    group_by_file,
    to_records,
)
from services.errors import AuditCreditsError, InsufficientCredits, ReportNotAvailable
from services.permissions import require_curator
from services.report_generation import ReportContentGenerator, get_report_generator
from services.report_lifecycle import approve_report, archive_report, check_report_status
from services.report_repository import (
    bulk_update_feedback,
    get_date_statistics,
    get_report,
    list_dates,
    list_issues,
    list_reports,
    serialize_date,
    serialize_report,
    update_issue,
)
from services.session_token import RequestSession
from services.timeouts import run_with_timeout

router = APIRouter()
logger = logging.getLogger(__name__)


class IssuePatchRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    message: Optional[str] = None
    feedback: Optional[str] = None
    false_positive: Optional[bool] = None


class BulkFeedbackRequest(BaseModel):
    issue_ids: List[int] = Field(min_length=1, max_length=500)
    feedback: Optional[str] = None


def _issue_payload(issue) -> dict:
    return to_records([issue])[0].model_dump()


@router.get("/dates")
async def audit_dates(db: AsyncSession = Depends(get_db)):
    return {"dates": [serialize_date(row) for row in await list_dates(db)]}


@router.get("/dates/{date_code}")
async def audit_date_statistics(date_code: str, db: AsyncSession = Depends(get_db)):
    try:
        row = await get_date_statistics(date_code, db)
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc
    return serialize_date(row)


@router.get("/dates/{date_code}/reports")
async def reports_for_date(
    date_code: str,
    search: Optional[str] = Query(default=None, max_length=200),
    db: AsyncSession = Depends(get_db),
):
    try:
        rows = await list_reports(date_code, db, search=search)
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc
    return {"date_code": date_code, "reports": [serialize_report(row) for row in rows]}


@router.post("/{report_id}/view")
async def view_report(
    report_id: int,
    _rate_limit: None = Depends(rate_limit("report_view", limit=120, window_seconds=60)),
    session: RequestSession = Depends(get_request_session),
    timeout: float = Depends(request_timeout),
    db: AsyncSession = Depends(get_db),
):
    """Open a report, paying the view cost once per session when required."""
    try:
        decision = await run_with_timeout(check_report_access(session, report_id, db), timeout, "check_report_access")
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc
    except Exception:
        logger.exception("Failed to check access to report %s for user %s", report_id, session.user_id)
        raise HTTPException(status_code=500, detail="Failed to open report.")

    if not decision.granted:
        if decision.reason == AccessReason.INSUFFICIENT_CREDITS.value:
            status_code = InsufficientCredits.status_code
        else:
            status_code = ReportNotAvailable.status_code
        return JSONResponse(status_code=status_code, content={"success": False, **decision.to_dict()})

    report = await get_report(decision.report_id, db)
    issues = await list_issues(decision.report_id, db)
    return {
        "success": True,
        "access": decision.to_dict(),
        "report": serialize_report(report),
        "issues": [_issue_payload(issue) for issue in issues],
    }


@router.post("/{report_id}/issues/query")
async def query_issues(
    report_id: int,
    options: IssueFilterOptions,
    session: RequestSession = Depends(get_request_session),
    db: AsyncSession = Depends(get_db),
):
    """Filter and group a report's issues for display."""
    try:
        decision = await check_report_access(session, report_id, db)
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc
    if not decision.granted:
        raise HTTPException(status_code=403, detail={"success": False, **decision.to_dict()})

    records = to_records(await list_issues(decision.report_id, db))
    visible = filter_issues(records, options)
    return {
        "report_id": decision.report_id,
        "total": len(records),
        "visible": len(visible),
        "categories": extract_categories(records),
        "groups": [group.model_dump() for group in group_by_file(visible)],
    }


@router.patch("/issues/{issue_id}")
async def patch_issue(
    issue_id: int,
    request: IssuePatchRequest,
    _rate_limit: None = Depends(rate_limit("issue_update", limit=300, window_seconds=60)),
    session: RequestSession = Depends(get_request_session),
    db: AsyncSession = Depends(get_db),
):
    try:
        await require_curator(session, db)
        issue = await update_issue(issue_id, request, db)
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {"success": True, "issue": _issue_payload(issue)}


@router.post("/issues/feedback")
async def bulk_feedback(
    request: BulkFeedbackRequest,
    _rate_limit: None = Depends(rate_limit("issue_feedback", limit=120, window_seconds=60)),
    session: RequestSession = Depends(get_request_session),
    db: AsyncSession = Depends(get_db),
):
    try:
        await require_curator(session, db)
        issues = await bulk_update_feedback(request.issue_ids, request.feedback, db)
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {"success": True, "updated": len(issues), "issues": [_issue_payload(issue) for issue in issues]}


@router.post("/{report_id}/approve")
async def approve(
    report_id: int,
    _rate_limit: None = Depends(rate_limit("report_approve", limit=60, window_seconds=60)),
    session: RequestSession = Depends(get_request_session),
    generator: ReportContentGenerator = Depends(get_report_generator),
    timeout: float = Depends(request_timeout),
    db: AsyncSession = Depends(get_db),
):
    try:
        result = await run_with_timeout(
            approve_report(session, report_id, db, generator=generator, generation_timeout=timeout),
            timeout,
            "approve_report",
        )
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc
    except Exception:
        logger.exception("Failed to approve report %s", report_id)
        raise HTTPException(status_code=500, detail="Failed to approve report.")
    if not result["success"]:
        return JSONResponse(status_code=409, content=result)
    return result


@router.post("/{report_id}/archive")
async def archive(
    report_id: int,
    _rate_limit: None = Depends(rate_limit("report_archive", limit=60, window_seconds=60)),
    session: RequestSession = Depends(get_request_session),
    db: AsyncSession = Depends(get_db),
):
    try:
        result = await archive_report(session, report_id, db)
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc
    if not result["success"]:
        return JSONResponse(status_code=409, content=result)
    return result


@router.get("/{report_id}/status")
async def report_status(report_id: int, db: AsyncSession = Depends(get_db)):
    result = await check_report_status(report_id, db)
    if not result["success"]:
        return JSONResponse(status_code=404, content=result)
    return result
