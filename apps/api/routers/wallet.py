"""Wallet linking backed by a signed nonce."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.api_errors import to_http_exception
from routers.auth_scope import get_request_session
from routers.rate_limit import rate_limit
from services.errors import AuditCreditsError
from services.session_token import RequestSession
from services.users import link_wallet
from services.wallet_proof import WalletProof, WalletProofVerifier, get_wallet_verifier

router = APIRouter()


class LinkWalletRequest(BaseModel):
    wallet_address: str = Field(min_length=32, max_length=44)
    nonce_token: str
    signature: str


@router.post("/link")
async def link_wallet_endpoint(
    request: LinkWalletRequest,
    _rate_limit: None = Depends(rate_limit("wallet_link", limit=20, window_seconds=3600)),
    session: RequestSession = Depends(get_request_session),
    verifier: WalletProofVerifier = Depends(get_wallet_verifier),
    db: AsyncSession = Depends(get_db),
):
    try:
        verifier.verify(WalletProof(request.wallet_address, request.nonce_token, request.signature))
        user = await link_wallet(db, session.user_id, request.wallet_address)
    except AuditCreditsError as exc:
        raise to_http_exception(exc) from exc
    return {"success": True, "user_id": user.id, "wallet_address": user.wallet_address}
