"""One-time airdrop credit claims."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.airdrop_allocation import AirdropAllocation
from models.credit_account import OwnerKind
from models.credit_transaction import TransactionType
from services.credits import get_or_create_account, grant
from services.timeouts import mark_atomic_step
from services.wallet_proof import is_valid_wallet_address

logger = logging.getLogger(__name__)

MESSAGES = {
    "invalid_wallet": "Invalid wallet address.",
    "not_eligible": "This wallet is not eligible for the airdrop.",
    "already_claimed": "Airdrop credits have already been claimed for this wallet.",
}


async def check_airdrop_eligibility(wallet_address: Optional[str], db: AsyncSession) -> Dict[str, Any]:
    wallet = str(wallet_address or "").strip()
    if not is_valid_wallet_address(wallet):
        return {"is_eligible": False, "amount": 0, "reason": "invalid_wallet"}

    result = await db.execute(
        select(AirdropAllocation)
        .where(AirdropAllocation.wallet_address == wallet)
        .execution_options(populate_existing=True)
    )
    allocation = result.scalar_one_or_none()
    if allocation is None:
        return {"is_eligible": False, "amount": 0, "reason": "not_eligible"}
    if allocation.claimed_at is not None:
        return {"is_eligible": False, "amount": allocation.amount, "reason": "already_claimed"}
    return {"is_eligible": True, "amount": allocation.amount, "reason": allocation.reason or "eligible"}


async def claim_airdrop_credits(wallet_address: Optional[str], user_id: str, db: AsyncSession) -> Dict[str, Any]:
    """Mark the allocation claimed and credit the user in one transaction."""
    wallet = str(wallet_address or "").strip()
    eligibility = await check_airdrop_eligibility(wallet, db)
    if not eligibility["is_eligible"]:
        reason = eligibility["reason"]
        return {"success": False, "amount": 0, "message": MESSAGES.get(reason, reason), "reason": reason}
    amount = int(eligibility["amount"])

    await get_or_create_account(OwnerKind.USER, user_id, db)
    mark_atomic_step()
    try:
        marked = await db.execute(
            update(AirdropAllocation)
            .where(AirdropAllocation.wallet_address == wallet, AirdropAllocation.claimed_at.is_(None))
            .values(claimed_at=datetime.now(timezone.utc), claimed_by_user_id=user_id)
            .execution_options(synchronize_session=False)
        )
        if marked.rowcount != 1:
            await db.rollback()
            return {
                "success": False,
                "amount": 0,
                "message": MESSAGES["already_claimed"],
                "reason": "already_claimed",
            }

        granted = await grant(
            OwnerKind.USER,
            user_id,
            db,
            amount=amount,
            description=f"Airdrop claim for wallet {wallet}",
            reference_id=f"airdrop:{wallet}",
            transaction_type=TransactionType.AIRDROP,
            commit=False,
        )
        if not granted.applied:
            return {
                "success": False,
                "amount": 0,
                "message": MESSAGES["already_claimed"],
                "reason": "already_claimed",
            }
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Airdrop of %s credits claimed by user %s for wallet %s", amount, user_id, wallet)
    return {
        "success": True,
        "amount": amount,
        "message": f"Claimed {amount} airdrop credits.",
        "balance": granted.balance,
    }
