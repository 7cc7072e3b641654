"""Pydantic schemas for request/response"""
from app.schemas.analysis import AnalyzeRequest, AnalysisDetail, AnalysisHistory, AnalysisSummary
from app.schemas.events import EventStatus, ProgressEvent

__all__ = [
    "AnalyzeRequest",
    "AnalysisDetail",
    "AnalysisHistory",
    "AnalysisSummary",
    "EventStatus",
    "ProgressEvent",
]
