"""Credit burn requests."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import get_request_session
from routers.rate_limit import rate_limit
from services.burns import check_can_submit_burn_request, create_burn_request, list_burn_requests
from services.session_token import RequestSession
from services.users import get_linked_wallet

router = APIRouter()
logger = logging.getLogger(__name__)


class BurnRequestBody(BaseModel):
    burn_amount: int
    wallet_address: Optional[str] = None


@router.get("/eligibility")
async def burn_eligibility(
    session: RequestSession = Depends(get_request_session),
    db: AsyncSession = Depends(get_db),
):
    return await check_can_submit_burn_request(session.user_id, db)


@router.post("")
async def submit_burn_request(
    request: BurnRequestBody,
    _rate_limit: None = Depends(rate_limit("burn_request", limit=10, window_seconds=3600)),
    session: RequestSession = Depends(get_request_session),
    db: AsyncSession = Depends(get_db),
):
    """Debit credits now; the linked wallet is used when none is given."""
    wallet = request.wallet_address or await get_linked_wallet(db, session.user_id)
    try:
        result = await create_burn_request(
            session.user_id,
            db,
            burn_amount=request.burn_amount,
            wallet_address=wallet,
        )
    except Exception:
        logger.exception("Failed to create burn request for user %s", session.user_id)
        raise HTTPException(status_code=500, detail="Failed to create burn request.")
    if not result["success"]:
        return JSONResponse(status_code=422, content=result)
    return result


@router.get("")
async def burn_history(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: RequestSession = Depends(get_request_session),
    db: AsyncSession = Depends(get_db),
):
    return await list_burn_requests(session.user_id, db, limit=limit, offset=offset)
