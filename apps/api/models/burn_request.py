"""BurnRequest model: credits burned in exchange for on-chain tokens."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from database import Base


class BurnRequest(Base):
    __tablename__ = "burn_requests"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    wallet_address = Column(String, nullable=False)
    burn_amount = Column(Integer, nullable=False)
    token_amount = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending, completed, rejected
    transaction_id = Column(String, ForeignKey("credit_transactions.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
