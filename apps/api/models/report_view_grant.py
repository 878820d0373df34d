"""ReportViewGrant model: per-session record of granted report access."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from database import Base


class ReportViewGrant(Base):
    __tablename__ = "report_view_grants"
    __table_args__ = (
        UniqueConstraint("session_id", "report_id", name="uq_report_view_grants_session_report"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    report_id = Column(Integer, ForeignKey("audit_reports.id"), nullable=False)
    charged = Column(Integer, nullable=False, default=0)
    transaction_id = Column(String, ForeignKey("credit_transactions.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
