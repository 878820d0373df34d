"""Airdrop eligibility and wallet-proven claims."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.api_errors import to_http_exception
from routers.auth_scope import get_request_session
from routers.rate_limit import rate_limit
from services.airdrop import check_airdrop_eligibility, claim_airdrop_credits
from services.errors import AuditCreditsError
from services.session_token import RequestSession
from services.wallet_proof import WalletProof, WalletProofVerifier, get_wallet_verifier, issue_wallet_nonce

router = APIRouter()
logger = logging.getLogger(__name__)


class NonceRequest(BaseModel):
    wallet_address: str = Field(min_length=32, max_length=44)


class ClaimRequest(BaseModel):
    wallet_address: str = Field(min_length=32, max_length=44)
    nonce_token: str
    signature: str


@router.get("/eligibility/{wallet_address}")
async def airdrop_eligibility(wallet_address: str, db: AsyncSession = Depends(get_db)):
    return await check_airdrop_eligibility(wallet_address, db)


@router.post("/nonce")
async def airdrop_nonce(
    request: NonceRequest,
    _rate_limit: None = Depends(rate_limit("wallet_nonce", limit=30, window_seconds=60)),
):
    try:
        return issue_wallet_nonce(request.wallet_address)
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc


@router.post("/claim")
async def airdrop_claim(
    request: ClaimRequest,
    _rate_limit: None = Depends(rate_limit("airdrop_claim", limit=10, window_seconds=3600)),
    session: RequestSession = Depends(get_request_session),
    verifier: WalletProofVerifier = Depends(get_wallet_verifier),
    db: AsyncSession = Depends(get_db),
):
    """Credit the caller once the wallet signature over the nonce checks out."""
    try:
        verifier.verify(WalletProof(request.wallet_address, request.nonce_token, request.signature))
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc

    try:
        result = await claim_airdrop_credits(request.wallet_address, session.user_id, db)
    except Exception:
        logger.exception("Failed to claim airdrop for wallet %s", request.wallet_address)
        raise HTTPException(status_code=500, detail="Failed to claim airdrop.")
    if not result["success"]:
        status_code = 409 if result.get("reason") == "already_claimed" else 422
        return JSONResponse(status_code=status_code, content=result)
    return result
