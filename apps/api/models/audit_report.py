"""AuditReport model for per-repository audit results."""

import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class ReportStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    ARCHIVED = "archived"


# pending -approve-> completed, {pending, completed} -archive-> archived.
# Nothing leaves archived.
REPORT_TRANSITIONS = {
    ReportStatus.PENDING: frozenset({ReportStatus.COMPLETED, ReportStatus.ARCHIVED}),
    ReportStatus.COMPLETED: frozenset({ReportStatus.ARCHIVED}),
    ReportStatus.ARCHIVED: frozenset(),
}


class AuditReport(Base):
    """Audit of one repository, produced by the ingestion pipeline."""

    __tablename__ = "audit_reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date_code = Column(String(8), ForeignKey("audit_dates.date_code"), nullable=False, index=True)
    user_name = Column(String, nullable=False)
    repo_name = Column(String, nullable=False)
    risk_score = Column(Integer, nullable=False, default=100)
    total_issues = Column(Integer, nullable=False, default=0)
    critical_issues = Column(Integer, nullable=False, default=0)
    high_issues = Column(Integer, nullable=False, default=0)
    medium_issues = Column(Integer, nullable=False, default=0)
    low_issues = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default=ReportStatus.PENDING.value)
    submitter_user_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    audit_date = relationship("AuditDate", back_populates="reports")
    issues = relationship("AuditIssue", back_populates="report", cascade="all, delete-orphan")
