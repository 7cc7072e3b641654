"""SQLAlchemy models"""
from app.models.repository import Repository
from app.models.analysis import Analysis, AnalysisStatus
from app.models.report import Report
from app.models.issue import Issue

__all__ = ["Repository", "Analysis", "AnalysisStatus", "Report", "Issue"]
