"""RPC-style credit operations returning structured results.

Ledger refusals come back as ``{"success": False, "message": ...}`` so the
caller can explain them; authentication problems still raise.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.credit_account import OwnerKind
from models.credit_transaction import TransactionType
from models.user import User
from services.credits import debit, get_balance, transfer
from services.errors import AuditCreditsError, InsufficientFunds, MissingWallet, NotAuthenticated
from services.permissions import is_report_submitter as _is_report_submitter
from services.permissions import is_whitelisted
from services.session_token import RequestSession

logger = logging.getLogger(__name__)

DEDUCTION_TYPES = frozenset({TransactionType.DEDUCT.value, TransactionType.VIEW_REPORT.value, TransactionType.BURN.value})


def _failure(message: str, remaining_points: int, **extra: Any) -> Dict[str, Any]:
    payload = {"success": False, "message": message, "remaining_points": remaining_points}
    payload.update(extra)
    return payload


async def get_user_points(user_id: str, db: AsyncSession) -> int:
    return await get_balance(OwnerKind.USER, user_id, db)


async def get_wallet_points(wallet_address: Optional[str], db: AsyncSession) -> int:
    wallet = str(wallet_address or "").strip()
    if not wallet:
        raise MissingWallet()
    return await get_balance(OwnerKind.WALLET, wallet, db)


async def deduct_user_points(
    user_id: str,
    db: AsyncSession,
    *,
    amount: Any,
    description: str,
    transaction_type: str = TransactionType.DEDUCT.value,
    reference_id: Optional[str] = None,
) -> Dict[str, Any]:
    kind = transaction_type.value if isinstance(transaction_type, TransactionType) else str(transaction_type or "")
    if kind not in DEDUCTION_TYPES:
        return _failure(f"Invalid deduction type: {kind or transaction_type}", await get_user_points(user_id, db))

    try:
        result = await debit(
            OwnerKind.USER,
            user_id,
            db,
            amount=amount,
            description=description,
            transaction_type=kind,
            reference_id=reference_id,
        )
    except InsufficientFunds as exc:
        return _failure(exc.message, exc.available, required=exc.required)
    except AuditCreditsError as exc:
        return _failure(exc.message, await get_user_points(user_id, db))
    return {"success": True, "message": "Points deducted", "remaining_points": result.balance}


async def transfer_user_points(
    session: Optional[RequestSession],
    db: AsyncSession,
    *,
    target_user_id: Optional[str],
    amount: Any,
    description: str = "Points transfer",
) -> Dict[str, Any]:
    """Move points from the session user to ``target_user_id``."""
    if session is None or not session.user_id:
        raise NotAuthenticated()
    target = str(target_user_id or "").strip()
    if not target:
        return _failure("Target user ID is required", await get_user_points(session.user_id, db))
    if target != session.user_id:
        known = await db.execute(select(User.id).where(User.id == target))
        if known.scalar_one_or_none() is None:
            return _failure("Target user not found", await get_user_points(session.user_id, db))

    try:
        result = await transfer(
            OwnerKind.USER,
            session.user_id,
            OwnerKind.USER,
            target,
            db,
            amount=amount,
            description=description,
        )
    except InsufficientFunds as exc:
        return _failure(exc.message, exc.available, required=exc.required)
    except AuditCreditsError as exc:
        return _failure(exc.message, await get_user_points(session.user_id, db))
    return {
        "success": True,
        "message": "Points transferred successfully",
        "remaining_points": result.remaining_at_source,
    }


async def transfer_points_by_wallet(
    db: AsyncSession,
    *,
    source_wallet: Optional[str],
    target_wallet: Optional[str],
    amount: Any,
    description: str = "Wallet transfer",
) -> Dict[str, Any]:
    source = str(source_wallet or "").strip()
    target = str(target_wallet or "").strip()
    if not source:
        return _failure("Source wallet address is required", 0, target_points=None)
    if not target:
        return _failure("Target wallet address is required", await get_wallet_points(source, db), target_points=None)

    try:
        result = await transfer(
            OwnerKind.WALLET,
            source,
            OwnerKind.WALLET,
            target,
            db,
            amount=amount,
            description=description,
        )
    except InsufficientFunds as exc:
        return _failure(exc.message, exc.available, required=exc.required, target_points=None)
    except AuditCreditsError as exc:
        return _failure(exc.message, await get_wallet_points(source, db), target_points=None)
    return {
        "success": True,
        "message": "Credits transferred successfully",
        "remaining_points": result.remaining_at_source,
        "target_points": result.balance_at_target,
    }


async def is_whitelist_user(user_id: Optional[str], db: AsyncSession) -> bool:
    return await is_whitelisted(user_id, db)


async def is_report_submitter(user_id: Optional[str], report_id: Any, db: AsyncSession) -> bool:
    return await _is_report_submitter(user_id, report_id, db)
