"""User mirror rows and wallet links."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.user import User
from services.errors import PermissionDenied

logger = logging.getLogger(__name__)


async def ensure_user(db: AsyncSession, user_id: str, email: Optional[str] = None) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user:
        return user

    user = User(id=user_id, email=email)
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None and email:
            # Email already belongs to another user row.
            return await ensure_user(db, user_id)
        if user is None:
            raise
    return user


async def get_linked_wallet(db: AsyncSession, user_id: str) -> Optional[str]:
    result = await db.execute(select(User.wallet_address).where(User.id == user_id))
    return result.scalar_one_or_none()


async def link_wallet(db: AsyncSession, user_id: str, wallet_address: str) -> User:
    """Attach a verified wallet to a user; a wallet belongs to one user only."""
    user = await ensure_user(db, user_id)
    owner = await db.execute(select(User.id).where(User.wallet_address == wallet_address))
    owner_id = owner.scalar_one_or_none()
    if owner_id and owner_id != user_id:
        raise PermissionDenied("Wallet is already linked to another account.")

    user.wallet_address = wallet_address
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise PermissionDenied("Wallet is already linked to another account.") from exc
    logger.info("Linked wallet %s to user %s", wallet_address, user_id)
    return user
