"""WhitelistUser model: registry of curator identities."""

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from database import Base


class WhitelistUser(Base):
    __tablename__ = "whitelist_users"

    user_id = Column(String, primary_key=True)
    note = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
