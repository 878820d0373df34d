"""AuditIssue model for individual findings."""

import enum

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from database import Base


class Severity(str, enum.Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class Feedback(str, enum.Enum):
    SAFETY = "safety"
    PERFORMANCE = "performance"
    DEPRECATED = "deprecated"
    DEPENDENCY = "dependency"


class AuditIssue(Base):
    """Single finding within an audit report."""

    __tablename__ = "audit_issues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_id = Column(Integer, ForeignKey("audit_reports.id"), nullable=False, index=True)
    severity = Column(String, nullable=False)
    issue_type = Column(String, nullable=False)
    file_path = Column(String, nullable=True)
    line_number = Column(Integer, nullable=True)
    message = Column(Text, nullable=False, default="")
    code_snippet = Column(Text, nullable=True)
    feedback = Column(String, nullable=True)
    false_positive = Column(Boolean, nullable=False, default=False)

    report = relationship("AuditReport", back_populates="issues")
