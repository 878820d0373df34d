"""Credit burn requests: credits are debited now, tokens are paid out later."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.burn_request import BurnRequest
from models.credit_account import OwnerKind
from models.credit_transaction import TransactionType
from services.credits import debit, get_balance
from services.errors import InsufficientFunds

logger = logging.getLogger(__name__)


def serialize_burn_request(row: BurnRequest) -> Dict[str, Any]:
    return {
        "id": row.id,
        "wallet_address": row.wallet_address,
        "burn_amount": row.burn_amount,
        "token_amount": row.token_amount,
        "status": row.status,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "processed_at": row.processed_at.isoformat() if row.processed_at else None,
    }


async def _pending_request_id(user_id: str, db: AsyncSession) -> Optional[str]:
    result = await db.execute(
        select(BurnRequest.id).where(BurnRequest.user_id == user_id, BurnRequest.status == "pending").limit(1)
    )
    return result.scalar_one_or_none()


async def check_can_submit_burn_request(user_id: str, db: AsyncSession) -> Dict[str, Any]:
    balance = await get_balance(OwnerKind.USER, user_id, db)
    pending_id = await _pending_request_id(user_id, db)
    exchange_rate = int(settings.BURN_EXCHANGE_RATE)

    if pending_id:
        reason, message, can_submit = "PENDING_REQUEST_EXISTS", "A burn request is already pending.", False
    elif balance < int(settings.BURN_MIN_CREDITS):
        reason = "INSUFFICIENT_BALANCE"
        message = f"At least {settings.BURN_MIN_CREDITS} credits are required to burn."
        can_submit = False
    else:
        reason, message, can_submit = "OK", "You can submit a burn request.", True

    return {
        "can_submit": can_submit,
        "reason": reason,
        "message": message,
        "current_balance": balance,
        "exchange_rate": exchange_rate,
        "pending_request_id": pending_id,
    }


async def create_burn_request(
    user_id: str,
    db: AsyncSession,
    *,
    burn_amount: Any,
    wallet_address: Optional[str],
) -> Dict[str, Any]:
    low, high = int(settings.BURN_MIN_CREDITS), int(settings.BURN_MAX_CREDITS)
    if isinstance(burn_amount, bool) or not isinstance(burn_amount, int) or not low <= burn_amount <= high:
        return {"success": False, "message": f"Burn amount must be between {low:,} and {high:,} credits", "data": None}
    wallet = str(wallet_address or "").strip()
    if not wallet:
        return {"success": False, "message": "Wallet address is required", "data": None}
    if await _pending_request_id(user_id, db):
        return {"success": False, "message": "A burn request is already pending.", "data": None}

    request_id = str(uuid.uuid4())
    try:
        charge = await debit(
            OwnerKind.USER,
            user_id,
            db,
            amount=burn_amount,
            description=f"Burn {burn_amount} credits to {wallet}",
            transaction_type=TransactionType.BURN,
            reference_id=request_id,
            commit=False,
        )
    except InsufficientFunds as exc:
        return {"success": False, "message": exc.message, "data": None}

    row = BurnRequest(
        id=request_id,
        user_id=user_id,
        wallet_address=wallet,
        burn_amount=burn_amount,
        token_amount=burn_amount // max(int(settings.BURN_EXCHANGE_RATE), 1),
        status="pending",
        transaction_id=charge.transaction_id,
    )
    db.add(row)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Burn request %s created for user %s (%s credits)", request_id, user_id, burn_amount)
    data = serialize_burn_request(row)
    data["remaining_balance"] = charge.balance
    return {"success": True, "message": "Burn request created successfully", "data": data}


async def list_burn_requests(user_id: str, db: AsyncSession, *, limit: int = 20, offset: int = 0) -> Dict[str, Any]:
    limit = max(1, min(int(limit), 100))
    offset = max(int(offset), 0)
    total = await db.execute(select(func.count(BurnRequest.id)).where(BurnRequest.user_id == user_id))
    result = await db.execute(
        select(BurnRequest)
        .where(BurnRequest.user_id == user_id)
        .order_by(BurnRequest.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return {
        "requests": [serialize_burn_request(row) for row in result.scalars().all()],
        "total_count": int(total.scalar() or 0),
        "limit": limit,
        "offset": offset,
    }
