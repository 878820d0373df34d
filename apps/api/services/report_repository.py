"""Read and curate access to audit dates, reports and issues."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import case, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.audit_date import AuditDate
from models.audit_issue import AuditIssue
from models.audit_report import REPORT_TRANSITIONS, AuditReport, ReportStatus
from services.curation import normalize_feedback_value
from services.errors import InvalidDateCode, InvalidTransition, NotFound, ReportArchived
from services.timeouts import mark_atomic_step

logger = logging.getLogger(__name__)

DATE_CODE_PATTERN = re.compile(r"^\d{8}$")
SEVERITY_ORDER = ("critical", "high", "medium", "low", "info")
EDITABLE_ISSUE_FIELDS = frozenset({"message", "feedback", "false_positive"})

_severity_rank = case(
    {severity: rank for rank, severity in enumerate(SEVERITY_ORDER)},
    value=func.lower(AuditIssue.severity),
    else_=len(SEVERITY_ORDER),
)


def format_date_code(date_code: Optional[str]) -> str:
    """Render YYYYMMDD as YYYY-MM-DD."""
    if not date_code or len(date_code) != 8:
        return "Invalid Date"
    return f"{date_code[0:4]}-{date_code[4:6]}-{date_code[6:8]}"


def _validate_date_code(date_code: Any) -> str:
    token = str(date_code or "").strip()
    if not DATE_CODE_PATTERN.match(token):
        raise InvalidDateCode()
    return token


def serialize_date(row: AuditDate) -> Dict[str, Any]:
    return {
        "date_code": row.date_code,
        "formatted_date": row.formatted_date,
        "total_repos": row.total_repos,
        "critical_issues": row.critical_issues,
        "high_issues": row.high_issues,
        "total_issues": row.total_issues,
    }


def serialize_report(row: AuditReport) -> Dict[str, Any]:
    return {
        "id": row.id,
        "date_code": row.date_code,
        "user_name": row.user_name,
        "repo_name": row.repo_name,
        "risk_score": row.risk_score,
        "total_issues": row.total_issues,
        "critical_issues": row.critical_issues,
        "high_issues": row.high_issues,
        "medium_issues": row.medium_issues,
        "low_issues": row.low_issues,
        "status": row.status,
        "submitter_user_id": row.submitter_user_id,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


async def list_dates(db: AsyncSession) -> List[AuditDate]:
    result = await db.execute(select(AuditDate).order_by(AuditDate.formatted_date.desc()))
    return list(result.scalars().all())


async def get_date_statistics(date_code: Any, db: AsyncSession) -> AuditDate:
    token = _validate_date_code(date_code)
    result = await db.execute(select(AuditDate).where(AuditDate.date_code == token))
    row = result.scalar_one_or_none()
    if row is None:
        raise NotFound(f"No audit statistics for date {token}.")
    return row


async def list_reports(date_code: Any, db: AsyncSession, *, search: Optional[str] = None) -> List[AuditReport]:
    """Reports for one audit date, riskiest (lowest score) first."""
    token = _validate_date_code(date_code)
    query = select(AuditReport).where(AuditReport.date_code == token)
    term = str(search or "").strip().lower()
    if term:
        pattern = f"%{term}%"
        query = query.where(
            or_(
                func.lower(AuditReport.repo_name).like(pattern),
                func.lower(AuditReport.user_name).like(pattern),
            )
        )
    result = await db.execute(
        query.order_by(AuditReport.risk_score.asc(), AuditReport.user_name, AuditReport.repo_name)
    )
    return list(result.scalars().all())


async def get_report(report_id: Any, db: AsyncSession) -> AuditReport:
    try:
        key = int(report_id)
    except (TypeError, ValueError):
        raise NotFound(f"Audit report not found: {report_id}") from None
    result = await db.execute(select(AuditReport).where(AuditReport.id == key))
    report = result.scalar_one_or_none()
    if report is None:
        raise NotFound(f"Audit report not found: {report_id}")
    return report


async def list_issues(report_id: Any, db: AsyncSession) -> List[AuditIssue]:
    """Issues ordered by severity rank, file path, then line (unknown lines last)."""
    result = await db.execute(
        select(AuditIssue)
        .where(AuditIssue.report_id == int(report_id))
        .order_by(
            _severity_rank,
            AuditIssue.file_path,
            AuditIssue.line_number.is_(None),
            AuditIssue.line_number,
            AuditIssue.id,
        )
    )
    return list(result.scalars().all())


def normalize_issue_patch(patch: Any) -> Dict[str, Any]:
    """Validate a partial issue update; unknown fields are rejected."""
    if hasattr(patch, "model_dump"):
        patch = patch.model_dump(exclude_unset=True)
    if not isinstance(patch, Mapping):
        raise ValueError("Issue patch must be a mapping")
    unknown = set(patch) - EDITABLE_ISSUE_FIELDS
    if unknown:
        raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}")

    values: Dict[str, Any] = {}
    if "message" in patch:
        values["message"] = str(patch["message"] or "")
    if "feedback" in patch:
        values["feedback"] = normalize_feedback_value(patch["feedback"])
    if "false_positive" in patch:
        values["false_positive"] = bool(patch["false_positive"])
    return values


async def _issue_statuses(issue_ids: Iterable[int], db: AsyncSession) -> Dict[int, str]:
    result = await db.execute(
        select(AuditIssue.id, AuditReport.status)
        .join(AuditReport, AuditReport.id == AuditIssue.report_id)
        .where(AuditIssue.id.in_(list(issue_ids)))
    )
    return {int(issue_id): status for issue_id, status in result.all()}


async def update_issue(issue_id: Any, patch: Any, db: AsyncSession) -> AuditIssue:
    """Apply a partial update and return the stored row.

    The caller is responsible for checking curator privilege.
    """
    values = normalize_issue_patch(patch)
    key = int(issue_id)
    statuses = await _issue_statuses([key], db)
    if key not in statuses:
        raise NotFound(f"Audit issue not found: {issue_id}")
    if statuses[key] == ReportStatus.ARCHIVED.value:
        raise ReportArchived()

    if values:
        await db.execute(
            update(AuditIssue)
            .where(AuditIssue.id == key)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

    result = await db.execute(
        select(AuditIssue).where(AuditIssue.id == key).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def bulk_update_feedback(issue_ids: Iterable[Any], feedback: Any, db: AsyncSession) -> List[AuditIssue]:
    """Set (or clear) feedback on every listed issue in one statement."""
    keys = sorted({int(issue_id) for issue_id in issue_ids})
    if not keys:
        return []
    value = normalize_feedback_value(feedback)

    statuses = await _issue_statuses(keys, db)
    missing = [key for key in keys if key not in statuses]
    if missing:
        raise NotFound(f"Audit issues not found: {', '.join(str(key) for key in missing)}")
    if any(status == ReportStatus.ARCHIVED.value for status in statuses.values()):
        raise ReportArchived()

    await db.execute(
        update(AuditIssue)
        .where(AuditIssue.id.in_(keys))
        .values(feedback=value)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("Updated feedback=%s on %s issues", value, len(keys))

    result = await db.execute(
        select(AuditIssue)
        .where(AuditIssue.id.in_(keys))
        .order_by(AuditIssue.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def can_transition(current: Any, requested: Any) -> bool:
    try:
        return ReportStatus(requested) in REPORT_TRANSITIONS[ReportStatus(current)]
    except (KeyError, ValueError):
        return False


async def update_report_status(report_id: Any, status: Any, db: AsyncSession) -> AuditReport:
    """Compare-and-set the report status along the lifecycle table."""
    report = await get_report(report_id, db)
    key = report.id
    current = report.status
    requested = status.value if isinstance(status, ReportStatus) else str(status or "")

    if not can_transition(current, requested):
        raise InvalidTransition(current=current, requested=requested)

    mark_atomic_step()
    result = await db.execute(
        update(AuditReport)
        .where(AuditReport.id == key, AuditReport.status == current)
        .values(status=requested, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        latest = await get_report(key, db)
        raise InvalidTransition(current=latest.status, requested=requested)
    await db.commit()

    logger.info("Report %s status %s -> %s", key, current, requested)
    refreshed = await db.execute(
        select(AuditReport).where(AuditReport.id == key).execution_options(populate_existing=True)
    )
    return refreshed.scalar_one()
