"""Repository SQLAlchemy model"""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class Repository(Base):
    """
    A source repository that has been analyzed at least once.
    Attributes:
        id: Primary key (UUID string)
        url: Repository URL as submitted, unique
        name: Full name reported by the host, e.g. "owner/repo"
        description: Optional description from the host
    """
    __tablename__ = "repositories"

    id = Column(String(36), primary_key=True, nullable=False)
    url = Column(String(1024), unique=True, nullable=False, index=True)
    name = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    analyses = relationship("Analysis", back_populates="repository", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Repository(id={self.id}, url={self.url})>"
