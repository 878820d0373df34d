"""CreditTransaction model: immutable ledger entry."""

import enum
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class TransactionType(str, enum.Enum):
    DEDUCT = "deduct"
    VIEW_REPORT = "view_report"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_RECEIVE = "transrecv"
    GRANT = "grant"
    AIRDROP = "airdrop"
    BURN = "burn"


class CreditTransaction(Base):
    """Append-only record of a single balance change."""

    __tablename__ = "credit_transactions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String, ForeignKey("credit_accounts.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    description = Column(String, nullable=True)
    transaction_type = Column(String, nullable=False)
    reference_id = Column(String, nullable=True, index=True)
    counterparty_account_id = Column(String, ForeignKey("credit_accounts.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    account = relationship("CreditAccount", back_populates="transactions", foreign_keys=[account_id])
