"""Access gate deciding whether a session may view a report's detail.

Decision order, first match wins:

1. curator (whitelisted)  -> granted, free
2. report submitter       -> granted, free
3. grant already recorded for this session -> granted, free
4. report not ``completed`` -> denied (report_not_available)
5. debit VIEW_REPORT_COST  -> granted, or denied (insufficient_credits)

The debit and the session grant row commit in one transaction, so a grant is
paid for exactly once per session. A new session pays again.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.audit_report import ReportStatus
from models.credit_account import OwnerKind
from models.credit_transaction import TransactionType
from models.report_view_grant import ReportViewGrant
from services.credits import debit, get_balance
from services.errors import InsufficientCredits, InsufficientFunds, NotAuthenticated, ReportNotAvailable
from services.permissions import Role, resolve_role
from services.report_repository import get_report
from services.session_token import RequestSession

logger = logging.getLogger(__name__)


class AccessReason(str, enum.Enum):
    CURATOR = "curator"
    SUBMITTER = "submitter"
    SESSION_GRANT = "session_grant"
    PURCHASED = "purchased"
    REPORT_NOT_AVAILABLE = "report_not_available"
    INSUFFICIENT_CREDITS = "insufficient_credits"


@dataclass
class AccessDecision:
    granted: bool
    report_id: int
    role: str
    reason: str
    charged: int = 0
    required_credits: int = 0
    current_balance: Optional[int] = None
    transaction_id: Optional[str] = None
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


async def _find_session_grant(session: RequestSession, report_id: int, db: AsyncSession) -> Optional[ReportViewGrant]:
    result = await db.execute(
        select(ReportViewGrant).where(
            ReportViewGrant.session_id == session.session_id,
            ReportViewGrant.report_id == report_id,
            ReportViewGrant.user_id == session.user_id,
        )
    )
    return result.scalar_one_or_none()


async def check_report_access(
    session: Optional[RequestSession],
    report_id: Any,
    db: AsyncSession,
    *,
    cost: Optional[int] = None,
) -> AccessDecision:
    if session is None or not session.user_id or not session.session_id:
        raise NotAuthenticated()

    report = await get_report(report_id, db)
    key = report.id
    repo_name = report.repo_name
    status = report.status

    role = await resolve_role(session, key, db)
    if role is Role.CURATOR:
        return AccessDecision(granted=True, report_id=key, role=role.value, reason=AccessReason.CURATOR.value)
    if role is Role.SUBMITTER:
        return AccessDecision(granted=True, report_id=key, role=role.value, reason=AccessReason.SUBMITTER.value)

    if await _find_session_grant(session, key, db) is not None:
        return AccessDecision(
            granted=True,
            report_id=key,
            role=role.value,
            reason=AccessReason.SESSION_GRANT.value,
        )

    if status != ReportStatus.COMPLETED.value:
        return AccessDecision(
            granted=False,
            report_id=key,
            role=role.value,
            reason=AccessReason.REPORT_NOT_AVAILABLE.value,
            message=ReportNotAvailable().message,
        )

    view_cost = int(cost if cost is not None else settings.VIEW_REPORT_COST)
    try:
        charge = await debit(
            OwnerKind.USER,
            session.user_id,
            db,
            amount=view_cost,
            description=f"view report {repo_name}",
            transaction_type=TransactionType.VIEW_REPORT,
            reference_id=str(key),
            commit=False,
        )
    except InsufficientFunds as exc:
        shortfall = InsufficientCredits(required=exc.required, available=exc.available)
        logger.info(
            "Denied report %s to user %s: required=%s available=%s",
            key,
            session.user_id,
            exc.required,
            exc.available,
        )
        return AccessDecision(
            granted=False,
            report_id=key,
            role=role.value,
            reason=AccessReason.INSUFFICIENT_CREDITS.value,
            required_credits=exc.required,
            current_balance=exc.available,
            message=shortfall.message,
        )

    db.add(
        ReportViewGrant(
            session_id=session.session_id,
            user_id=session.user_id,
            report_id=key,
            charged=view_cost,
            transaction_id=charge.transaction_id,
        )
    )
    try:
        await db.commit()
    except IntegrityError:
        # A parallel request in this session won the grant; our debit rolls back with it.
        await db.rollback()
        balance = await get_balance(OwnerKind.USER, session.user_id, db)
        return AccessDecision(
            granted=True,
            report_id=key,
            role=role.value,
            reason=AccessReason.SESSION_GRANT.value,
            current_balance=balance,
        )

    logger.info("User %s purchased view of report %s for %s credits", session.user_id, key, view_cost)
    return AccessDecision(
        granted=True,
        report_id=key,
        role=role.value,
        reason=AccessReason.PURCHASED.value,
        charged=view_cost,
        required_credits=view_cost,
        current_balance=charge.balance,
        transaction_id=charge.transaction_id,
    )
