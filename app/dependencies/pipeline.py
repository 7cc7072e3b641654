"""Dependencies providing the analysis pipeline to FastAPI routes"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.database import get_session_factory
from app.services.orchestrator import AnalysisOrchestrator


def get_orchestrator(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AnalysisOrchestrator:
    """
    Build an orchestrator for one analysis request.

    Returns:
        AnalysisOrchestrator: wired to GitHub, the configured LLM and the database
    """
    return AnalysisOrchestrator.from_settings(settings, session_factory=session_factory)
