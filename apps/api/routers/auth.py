"""
Session token issuance for local development and tests.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import get_request_session
from services.points import get_user_points
from services.session_token import RequestSession, create_session_token
from services.users import ensure_user, get_linked_wallet

router = APIRouter()


class DevSessionRequest(BaseModel):
    user_id: Optional[str] = None
    email: Optional[str] = None


class SessionResponse(BaseModel):
    user_id: str
    session_id: str
    session_token: str
    session_expires_at: int


class CurrentUserResponse(BaseModel):
    user_id: str
    session_id: str
    email: Optional[str] = None
    wallet_address: Optional[str] = None
    points: int = 0


@router.post("/session", response_model=SessionResponse)
async def create_dev_session(
    request: DevSessionRequest,
    db: AsyncSession = Depends(get_db),
):
    """Issue a session token without an identity provider. Disabled by default."""
    if not settings.ALLOW_DEV_SESSIONS:
        raise HTTPException(status_code=404, detail="Not Found")

    user_id = request.user_id or str(uuid.uuid4())
    await ensure_user(db, user_id, request.email)
    token = create_session_token(user_id=user_id, email=request.email)
    return SessionResponse(
        user_id=user_id,
        session_id=token["session_id"],
        session_token=token["token"],
        session_expires_at=token["expires_at"],
    )


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(
    session: RequestSession = Depends(get_request_session),
    db: AsyncSession = Depends(get_db),
):
    await ensure_user(db, session.user_id, session.email)
    return CurrentUserResponse(
        user_id=session.user_id,
        session_id=session.session_id,
        email=session.email,
        wallet_address=await get_linked_wallet(db, session.user_id),
        points=await get_user_points(session.user_id, db),
    )
