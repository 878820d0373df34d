"""Privilege resolution for curators and report submitters."""

from __future__ import annotations

import enum
import logging
import re
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.audit_report import AuditReport
from models.whitelist_user import WhitelistUser
from services.errors import NotAuthenticated, PermissionDenied
from services.session_token import RequestSession

logger = logging.getLogger(__name__)

USER_ID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


class Role(str, enum.Enum):
    """Access role of an identity with respect to one report."""

    VIEWER = "viewer"
    SUBMITTER = "submitter"
    CURATOR = "curator"


async def _reset_after_failure(db: AsyncSession) -> None:
    try:
        await db.rollback()
    except Exception:
        logger.exception("Rollback after failed permission lookup also failed")


async def is_whitelisted(user_id: Optional[str], db: AsyncSession) -> bool:
    """Return True only when the registry positively lists ``user_id``.

    Malformed ids and lookup errors are treated as not whitelisted.
    """
    token = str(user_id or "").strip()
    if not token:
        return False
    if not USER_ID_PATTERN.match(token):
        logger.warning("Rejecting whitelist check for malformed user id %r", token)
        return False

    try:
        result = await db.execute(select(WhitelistUser.user_id).where(WhitelistUser.user_id == token))
        return result.scalar_one_or_none() is not None
    except Exception:
        logger.exception("Whitelist lookup failed for user %s; treating as not whitelisted", token)
        await _reset_after_failure(db)
        return False


async def is_report_submitter(user_id: Optional[str], report_id: Any, db: AsyncSession) -> bool:
    token = str(user_id or "").strip()
    if not token:
        return False
    try:
        result = await db.execute(
            select(AuditReport.submitter_user_id).where(AuditReport.id == int(report_id))
        )
        submitter = result.scalar_one_or_none()
    except (TypeError, ValueError):
        return False
    except Exception:
        logger.exception("Submitter lookup failed for user %s report %s", token, report_id)
        await _reset_after_failure(db)
        return False
    return bool(submitter) and submitter == token


async def resolve_role(session: RequestSession, report_id: Any, db: AsyncSession) -> Role:
    """Collapse the whitelist and submitter checks into one role per request."""
    if await is_whitelisted(session.user_id, db):
        return Role.CURATOR
    if await is_report_submitter(session.user_id, report_id, db):
        return Role.SUBMITTER
    return Role.VIEWER


async def require_curator(session: Optional[RequestSession], db: AsyncSession) -> None:
    if session is None or not session.user_id:
        raise NotAuthenticated()
    if not await is_whitelisted(session.user_id, db):
        raise PermissionDenied()
