"""AuditDate model: one row per day of audit activity."""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from database import Base


class AuditDate(Base):
    """Daily roll-up of audit runs keyed by an 8-digit YYYYMMDD code."""

    __tablename__ = "audit_dates"

    date_code = Column(String(8), primary_key=True)
    formatted_date = Column(String, nullable=False, index=True)
    total_repos = Column(Integer, nullable=False, default=0)
    critical_issues = Column(Integer, nullable=False, default=0)
    high_issues = Column(Integer, nullable=False, default=0)
    total_issues = Column(Integer, nullable=False, default=0)

    reports = relationship("AuditReport", back_populates="audit_date")
