"""Report SQLAlchemy model"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class Report(Base):
    """
    Analysis outcome for one source file. Written once, never updated.
    Attributes:
        filename: Path of the file within the repository
        language: Language tag from the supported-file table
        file_size: Size in bytes as reported by the host
        content: Snapshot of the file text that was analysed
        degraded_reason: Why the classifier produced no usable output, if it didn't
    """
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, nullable=False)
    analysis_id = Column(String(36), ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(1024), nullable=False)
    language = Column(String(32), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=False)
    degraded_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    analysis = relationship("Analysis", back_populates="reports")
    issues = relationship("Issue", back_populates="report", cascade="all, delete-orphan")
