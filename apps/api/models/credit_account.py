"""CreditAccount model holding the running balance of a user or wallet."""

import enum
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class OwnerKind(str, enum.Enum):
    """Identity kinds that may hold a balance."""

    USER = "user"
    WALLET = "wallet"


class CreditAccount(Base):
    """Per-identity balance. Created lazily, never deleted."""

    __tablename__ = "credit_accounts"
    __table_args__ = (
        UniqueConstraint("owner_kind", "owner_id", name="uq_credit_accounts_owner"),
        CheckConstraint("balance >= 0", name="ck_credit_accounts_balance_non_negative"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_kind = Column(String, nullable=False)
    owner_id = Column(String, nullable=False, index=True)
    balance = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    transactions = relationship(
        "CreditTransaction",
        back_populates="account",
        foreign_keys="CreditTransaction.account_id",
    )
