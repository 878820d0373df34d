"""AirdropAllocation model: wallets eligible for a one-time credit airdrop."""

from sqlalchemy import Column, DateTime, Integer, String

from database import Base


class AirdropAllocation(Base):
    __tablename__ = "airdrop_allocations"

    wallet_address = Column(String, primary_key=True)
    amount = Column(Integer, nullable=False)
    reason = Column(String, nullable=True)
    claimed_at = Column(DateTime(timezone=True), nullable=True)
    claimed_by_user_id = Column(String, nullable=True, index=True)
