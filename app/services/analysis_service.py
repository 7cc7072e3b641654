"""Service layer for Repository/Analysis/Report/Issue persistence."""
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from app.agents.schemas import ClassificationResult, FileDescriptor
from app.core.security import generate_id
from app.models.analysis import Analysis, AnalysisStatus
from app.models.issue import Issue
from app.models.report import Report
from app.models.repository import Repository


class AnalysisNotFound(LookupError):
    pass


class AnalysisService:
    @staticmethod
    async def upsert_repository(db: AsyncSession, url: str, name: str, description: Optional[str]) -> Repository:
        """Create the repository row for `url`, or refresh its name and description."""
        for _ in range(2):
            result = await db.execute(select(Repository).where(Repository.url == url))
            repository = result.scalars().first()
            if repository is None:
                repository = Repository(id=generate_id(), url=url, name=name, description=description)
            else:
                repository.name = name
                repository.description = description
            db.add(repository)
            try:
                await db.commit()
                await db.refresh(repository)
                return repository
            except IntegrityError:
                # Another run inserted the same url first; retry as an update
                await db.rollback()
        raise RuntimeError(f"Could not upsert repository {url}")

    @staticmethod
    async def create_analysis(db: AsyncSession, repository_id: str, token_hash: str) -> Analysis:
        analysis = Analysis(
            id=generate_id(),
            repository_id=repository_id,
            token_hash=token_hash,
            status=AnalysisStatus.FETCHING.value,
            progress=10,
        )
        db.add(analysis)
        try:
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await db.refresh(analysis)
        return analysis

    @staticmethod
    async def _get(db: AsyncSession, analysis_id: str) -> Analysis:
        analysis = await db.get(Analysis, analysis_id)
        if analysis is None:
            raise AnalysisNotFound(analysis_id)
        return analysis

    @staticmethod
    async def mark_analyzing(db: AsyncSession, analysis_id: str, total_files: int) -> None:
        analysis = await AnalysisService._get(db, analysis_id)
        analysis.status = AnalysisStatus.ANALYZING.value
        analysis.total_files = total_files
        analysis.progress = 20
        await db.commit()

    @staticmethod
    async def mark_failed(db: AsyncSession, analysis_id: str, error_message: str) -> None:
        analysis = await AnalysisService._get(db, analysis_id)
        analysis.status = AnalysisStatus.FAILED.value
        analysis.error_message = error_message
        analysis.completed_at = datetime.now(timezone.utc)
        await db.commit()

    @staticmethod
    async def record_file_result(
        db: AsyncSession,
        analysis_id: str,
        file: FileDescriptor,
        language: str,
        content: str,
        result: ClassificationResult,
        processed_files: int,
        progress: int,
    ) -> Report:
        """
        Persist one Report with its Issues and the analysis' new file count, in one transaction.

        On failure the transaction is rolled back, so a file either has its
        Report and every Issue stored or nothing at all.
        """
        try:
            report = Report(
                id=generate_id(),
                analysis_id=analysis_id,
                filename=file.path,
                language=language,
                file_size=file.size,
                content=content,
                degraded_reason=result.degraded_reason,
            )
            db.add(report)
            for found in result.issues:
                db.add(Issue(
                    id=generate_id(),
                    report_id=report.id,
                    type=found.type.value,
                    severity=found.severity.value,
                    title=found.title,
                    description=found.description,
                    suggestion=found.suggestion,
                    line_number=found.line_number,
                    column_start=found.column_start,
                    column_end=found.column_end,
                    code_snippet=found.code_snippet,
                ))
            analysis = await AnalysisService._get(db, analysis_id)
            analysis.processed_files = processed_files
            analysis.progress = progress
            await db.commit()
            return report
        except Exception:
            await db.rollback()
            raise

    @staticmethod
    async def mark_completed(
        db: AsyncSession,
        analysis_id: str,
        total_issues: int,
        critical_issues: int,
        warning_issues: int,
        info_issues: int,
    ) -> None:
        analysis = await AnalysisService._get(db, analysis_id)
        analysis.status = AnalysisStatus.COMPLETED.value
        analysis.completed_at = datetime.now(timezone.utc)
        analysis.total_issues = total_issues
        analysis.critical_issues = critical_issues
        analysis.warning_issues = warning_issues
        analysis.info_issues = info_issues
        analysis.progress = 100
        await db.commit()

    @staticmethod
    async def get_analysis_detail(db: AsyncSession, analysis_id: str) -> Optional[Analysis]:
        """Load an analysis with its repository and every report and issue."""
        stmt = (
            select(Analysis)
            .where(Analysis.id == analysis_id)
            .options(
                selectinload(Analysis.repository),
                selectinload(Analysis.reports).selectinload(Report.issues),
            )
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def list_analyses(db: AsyncSession, page: int, page_size: int) -> Tuple[Sequence[Analysis], int]:
        """Return one page of analyses, most recent first, and the total count."""
        total = (await db.execute(select(func.count()).select_from(Analysis))).scalar_one()
        stmt = (
            select(Analysis)
            .options(selectinload(Analysis.repository))
            .order_by(Analysis.started_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db.execute(stmt)
        return result.scalars().all(), total
