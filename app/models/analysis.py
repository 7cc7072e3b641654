"""Analysis SQLAlchemy model"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from app.core.database import Base


class AnalysisStatus(str, Enum):
    PENDING = "PENDING"
    FETCHING = "FETCHING"
    ANALYZING = "ANALYZING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Analysis(Base):
    """Persistent record for one analysis run against a repository.

    Only a digest of the credential is stored (token_hash). Rows are never
    deleted; the history endpoint lists them most recent first.
    """

    __tablename__ = "analyses"

    id = Column(String(36), primary_key=True, nullable=False)
    repository_id = Column(String(36), ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(32), nullable=False, default=AnalysisStatus.PENDING.value)
    progress = Column(Integer, nullable=False, default=0)
    token_hash = Column(String(64), nullable=False)

    total_files = Column(Integer, nullable=False, default=0)
    processed_files = Column(Integer, nullable=False, default=0)
    total_issues = Column(Integer, nullable=False, default=0)
    critical_issues = Column(Integer, nullable=False, default=0)
    warning_issues = Column(Integer, nullable=False, default=0)
    info_issues = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)

    # Python-side default keeps sub-second ordering on SQLite
    started_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    repository = relationship("Repository", back_populates="analyses")
    reports = relationship("Report", back_populates="analysis", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Analysis(id={self.id}, status={self.status}, progress={self.progress})>"
