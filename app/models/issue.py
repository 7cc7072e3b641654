"""Issue SQLAlchemy model"""
from sqlalchemy import Column, Integer, String, Text, ForeignKey
from sqlalchemy.orm import relationship

from app.core.database import Base


class Issue(Base):
    __tablename__ = "issues"

    id = Column(String(36), primary_key=True, nullable=False)
    report_id = Column(String(36), ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    severity = Column(String(16), nullable=False, index=True)
    title = Column(String(512), nullable=False)
    description = Column(Text, nullable=False, default="")
    suggestion = Column(Text, nullable=True)
    line_number = Column(Integer, nullable=True)
    column_start = Column(Integer, nullable=True)
    column_end = Column(Integer, nullable=True)
    code_snippet = Column(Text, nullable=True)

    report = relationship("Report", back_populates="issues")
