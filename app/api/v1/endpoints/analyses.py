"""Read-only analysis endpoints: one analysis by id, and paginated history"""
import math

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.analysis import AnalysisDetail, AnalysisHistory, AnalysisSummary, Pagination
from app.services.analysis_service import AnalysisService

router = APIRouter(tags=["analysis"])


@router.get("/analysis/{analysis_id}", response_model=AnalysisDetail)
async def get_analysis(
    analysis_id: str,
    db: AsyncSession = Depends(get_db),
) -> AnalysisDetail:
    """
    Return a stored analysis with its repository, reports and issues.

    Raises:
        HTTPException: 404 if the id is unknown
    """
    analysis = await AnalysisService.get_analysis_detail(db, analysis_id)
    if not analysis:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="analysis not found")
    return AnalysisDetail.model_validate(analysis)


@router.get("/history", response_model=AnalysisHistory)
async def list_history(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    db: AsyncSession = Depends(get_db),
) -> AnalysisHistory:
    """List past analyses, most recent first, without reports."""
    analyses, total = await AnalysisService.list_analyses(db, page, page_size)
    return AnalysisHistory(
        analyses=[AnalysisSummary.model_validate(a) for a in analyses],
        pagination=Pagination(
            page=page,
            page_size=page_size,
            total=total,
            pages=math.ceil(total / page_size),
        ),
    )
