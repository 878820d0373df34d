"""Credit balances, history, deductions and transfers."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from models.credit_account import OwnerKind
from models.credit_transaction import TransactionType
from routers.api_errors import request_timeout, to_http_exception
from routers.auth_scope import get_request_session
from routers.rate_limit import rate_limit
from services.credits import list_transactions
from services.errors import AuditCreditsError
from services.points import (
    deduct_user_points,
    get_user_points,
    get_wallet_points,
    transfer_points_by_wallet,
    transfer_user_points,
)
from services.session_token import RequestSession
from services.timeouts import run_with_timeout
from services.users import ensure_user, get_linked_wallet

router = APIRouter()
logger = logging.getLogger(__name__)


class DeductRequest(BaseModel):
    amount: int
    description: str = Field(default="Points deduction", max_length=255)
    transaction_type: str = TransactionType.DEDUCT.value
    reference_id: Optional[str] = Field(default=None, max_length=255)


class TransferRequest(BaseModel):
    target_user_id: str
    amount: int
    description: str = Field(default="Points transfer", max_length=255)


class WalletTransferRequest(BaseModel):
    target_wallet: str
    amount: int
    source_wallet: Optional[str] = None
    description: str = Field(default="Wallet transfer", max_length=255)


@router.get("/balance")
async def credit_balance(
    session: RequestSession = Depends(get_request_session),
    db: AsyncSession = Depends(get_db),
):
    await ensure_user(db, session.user_id, session.email)
    return {"user_id": session.user_id, "points": await get_user_points(session.user_id, db)}


@router.get("/wallet/{wallet_address}")
async def wallet_balance(
    wallet_address: str,
    session: RequestSession = Depends(get_request_session),
    db: AsyncSession = Depends(get_db),
):
    try:
        points = await get_wallet_points(wallet_address, db)
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc
    return {"wallet_address": wallet_address, "points": points}


@router.get("/transactions")
async def transaction_history(
    limit: int = Query(default=10, ge=1),
    offset: int = Query(default=0, ge=0),
    session: RequestSession = Depends(get_request_session),
    db: AsyncSession = Depends(get_db),
):
    page_limit = min(limit, int(settings.TRANSACTION_PAGE_LIMIT))
    transactions = await list_transactions(OwnerKind.USER, session.user_id, db, limit=page_limit, offset=offset)
    return {"transactions": transactions, "limit": page_limit, "offset": offset}


@router.post("/deduct")
async def deduct_points(
    request: DeductRequest,
    _rate_limit: None = Depends(rate_limit("credits_deduct", limit=120, window_seconds=60)),
    session: RequestSession = Depends(get_request_session),
    timeout: float = Depends(request_timeout),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await run_with_timeout(
            deduct_user_points(
                session.user_id,
                db,
                amount=request.amount,
                description=request.description,
                transaction_type=request.transaction_type,
                reference_id=request.reference_id,
            ),
            timeout,
            "deduct_user_points",
        )
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc
    except Exception:
        logger.exception("Failed to deduct points for user %s", session.user_id)
        raise HTTPException(status_code=500, detail="Failed to deduct points.")


@router.post("/transfer")
async def transfer_points(
    request: TransferRequest,
    _rate_limit: None = Depends(rate_limit("credits_transfer", limit=60, window_seconds=60)),
    session: RequestSession = Depends(get_request_session),
    timeout: float = Depends(request_timeout),
    db: AsyncSession = Depends(get_db),
):
    await ensure_user(db, session.user_id, session.email)
    try:
        return await run_with_timeout(
            transfer_user_points(
                session,
                db,
                target_user_id=request.target_user_id,
                amount=request.amount,
                description=request.description,
            ),
            timeout,
            "transfer_user_points",
        )
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc
    except Exception:
        logger.exception("Failed to transfer points for user %s", session.user_id)
        raise HTTPException(status_code=500, detail="Failed to transfer points.")


@router.post("/transfer/wallet")
async def transfer_wallet_points(
    request: WalletTransferRequest,
    _rate_limit: None = Depends(rate_limit("credits_wallet_transfer", limit=60, window_seconds=60)),
    session: RequestSession = Depends(get_request_session),
    timeout: float = Depends(request_timeout),
    db: AsyncSession = Depends(get_db),
):
    """Spend from the caller's linked wallet account."""
    linked_wallet = await get_linked_wallet(db, session.user_id)
    if not linked_wallet:
        raise HTTPException(status_code=403, detail="Link a wallet before transferring wallet credits.")
    if request.source_wallet and request.source_wallet != linked_wallet:
        raise HTTPException(status_code=403, detail="source_wallet does not match the linked wallet.")

    try:
        result = await run_with_timeout(
            transfer_points_by_wallet(
                db,
                source_wallet=linked_wallet,
                target_wallet=request.target_wallet,
                amount=request.amount,
                description=request.description,
            ),
            timeout,
            "transfer_points_by_wallet",
        )
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc
    except Exception:
        logger.exception("Failed wallet transfer from %s", linked_wallet)
        raise HTTPException(status_code=500, detail="Failed to transfer wallet credits.")
    if result["success"]:
        logger.info("Wallet transfer of %s from %s to %s", request.amount, linked_wallet, request.target_wallet)
    return result
