"""CreditGrantClaim model guarding one-time grants."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.sql import func

from database import Base


class CreditGrantClaim(Base):
    """One row per (account, reference) that has already been credited."""

    __tablename__ = "credit_grant_claims"
    __table_args__ = (
        UniqueConstraint("account_id", "reference_id", name="uq_credit_grant_claims_account_reference"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String, ForeignKey("credit_accounts.id"), nullable=False, index=True)
    reference_id = Column(String, nullable=False)
    transaction_id = Column(String, ForeignKey("credit_transactions.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
