"""Analysis orchestrator: drives one run from repository URL to stored results.

The run is an async generator of ProgressEvent. Stages:

    validate input -> repository metadata -> Repository upsert + Analysis row
    (FETCHING) -> tree walk -> filter -> ANALYZING: per-file fetch + classify
    -> COMPLETED

Per-file work runs on a sliding window of at most `concurrency` tasks. Results
are consumed in discovery order by this generator alone, which is the only writer to the
database. Progress events therefore stay ordered and non-decreasing whatever
order the workers finish in.

Failure policy:
- bad input or a failed metadata fetch ends the run before anything is stored
- a failed walk, or no eligible files, marks the Analysis FAILED
- a file whose fetch, classification or save fails is logged and skipped
- anything else marks the Analysis FAILED with a generic error event
Every run ends with exactly one `completed` or `error` event.
"""
from __future__ import annotations

import asyncio
import logging
from collections import Counter, deque
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import AsyncIterator, Deque, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.agents.issue_classifier import IssueClassifier
from app.agents.schemas import ClassificationResult, DetectedIssue, FileDescriptor, Severity
from app.agents.tools.file_filter import MAX_FILE_SIZE, filter_supported, language_for
from app.agents.tools.tree_walker import (
    InvalidRepositoryReference,
    RepositoryTreeWalker,
    parse_repository_reference,
)
from app.core.config import Settings, settings as app_settings
from app.core.database import AsyncSessionLocal
from app.core.github_client import GitHubClient, GitHubError
from app.core.llm_client import get_llm_client
from app.core.security import hash_credential
from app.schemas.events import ProgressEvent
from app.services.analysis_service import AnalysisService
from app.services.progress import ProgressStream, analysis_progress

logger = logging.getLogger(__name__)

MSG_MISSING_INPUT = "repo url and github token are required"
MSG_INVALID_URL = "invalid github repo url"
MSG_REPO_FETCH_FAILED = "failed to fetch repo info - check token and repo url"
MSG_TREE_FETCH_FAILED = "failed to fetch repository files"
MSG_NO_SUPPORTED_FILES = "no supported files found in repository"
MSG_ANALYSIS_FAILED = "analysis failed"


@dataclass
class IssueTotals:
    total: int = 0
    by_severity: Counter = field(default_factory=Counter)

    def add(self, issues: Iterable[DetectedIssue]) -> None:
        for issue in issues:
            self.total += 1
            self.by_severity[issue.severity] += 1

    @property
    def critical(self) -> int:
        return self.by_severity[Severity.CRITICAL]

    @property
    def warning(self) -> int:
        return self.by_severity[Severity.WARNING]

    @property
    def info(self) -> int:
        return self.by_severity[Severity.INFO]


@dataclass
class FileOutcome:
    file: FileDescriptor
    language: str
    content: Optional[str] = None
    result: Optional[ClassificationResult] = None
    error: Optional[Exception] = None


class AnalysisOrchestrator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        github: GitHubClient,
        classifier: IssueClassifier,
        concurrency: int = 1,
        max_file_size: int = MAX_FILE_SIZE,
        file_timeout: Optional[float] = None,
        walk_strict: bool = False,
    ):
        self._session_factory = session_factory
        self._github = github
        self._classifier = classifier
        self._walker = RepositoryTreeWalker(github, strict=walk_strict)
        self._concurrency = max(1, concurrency)
        self._max_file_size = max_file_size
        self._file_timeout = file_timeout

    @classmethod
    def from_settings(
        cls,
        settings: Settings = app_settings,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    ) -> "AnalysisOrchestrator":
        return cls(
            session_factory=session_factory,
            github=GitHubClient.from_settings(settings),
            classifier=IssueClassifier(get_llm_client(), timeout=settings.LLM_TIMEOUT_SECONDS),
            concurrency=settings.ANALYSIS_CONCURRENCY,
            max_file_size=settings.MAX_FILE_SIZE_BYTES,
            file_timeout=settings.FILE_TIMEOUT_SECONDS,
            walk_strict=settings.WALK_STRICT,
        )

    async def run(self, repo_url: Optional[str], token: Optional[str]) -> AsyncIterator[ProgressEvent]:
        """Run one analysis, yielding progress events until the terminal one."""
        stream = ProgressStream()
        repo_url = (repo_url or "").strip()
        token = (token or "").strip()

        if not repo_url or not token:
            yield stream.error(MSG_MISSING_INPUT)
            return
        try:
            owner, repo = parse_repository_reference(repo_url)
        except InvalidRepositoryReference:
            logger.info("Rejected repository reference %r", repo_url)
            yield stream.error(MSG_INVALID_URL)
            return

        yield stream.initializing()

        analysis_id: Optional[str] = None
        async with self._session_factory() as db:
            try:
                try:
                    repo_data = await self._github.get_repository(owner, repo, token)
                except GitHubError as exc:
                    logger.warning("Repository metadata fetch failed for %s/%s: %s", owner, repo, exc)
                    yield stream.error(MSG_REPO_FETCH_FAILED)
                    return

                repository = await AnalysisService.upsert_repository(
                    db,
                    url=repo_url,
                    name=repo_data.get("full_name") or f"{owner}/{repo}",
                    description=repo_data.get("description"),
                )
                analysis = await AnalysisService.create_analysis(db, repository.id, hash_credential(token))
                analysis_id = str(analysis.id)
                logger.info("Analysis %s started for %s/%s", analysis_id, owner, repo)
                yield stream.fetching(analysis_id)

                try:
                    walk = await self._walker.walk(owner, repo, token)
                except GitHubError as exc:
                    logger.warning("Tree walk failed for %s/%s: %s", owner, repo, exc)
                    await AnalysisService.mark_failed(db, analysis_id, f"{MSG_TREE_FETCH_FAILED}: {exc}")
                    yield stream.error(MSG_TREE_FETCH_FAILED)
                    return

                files = filter_supported(walk.files, self._max_file_size)
                if not files:
                    await AnalysisService.mark_failed(db, analysis_id, MSG_NO_SUPPORTED_FILES)
                    yield stream.error(MSG_NO_SUPPORTED_FILES)
                    return

                total = len(files)
                await AnalysisService.mark_analyzing(db, analysis_id, total)
                yield stream.analyzing(f"found {total} files to analyze", analysis_progress(0, total), total)

                totals = IssueTotals()
                async with aclosing(self._analyze_files(db, stream, analysis_id, files, token, totals)) as events:
                    async for event in events:
                        yield event

                await AnalysisService.mark_completed(
                    db, analysis_id, totals.total, totals.critical, totals.warning, totals.info
                )
                logger.info("Analysis %s completed: %d issues", analysis_id, totals.total)
                yield stream.completed(analysis_id, totals.total, totals.critical, totals.warning, totals.info)

            except Exception as exc:
                logger.exception("Analysis %s failed", analysis_id or f"of {owner}/{repo}")
                if analysis_id is not None:
                    await self._mark_failed_quietly(db, analysis_id, f"{type(exc).__name__}: {exc}")
                if not stream.closed:
                    yield stream.error(MSG_ANALYSIS_FAILED)

    async def _analyze_files(
        self,
        db: AsyncSession,
        stream: ProgressStream,
        analysis_id: str,
        files: List[FileDescriptor],
        token: str,
        totals: IssueTotals,
    ) -> AsyncIterator[ProgressEvent]:
        total = len(files)
        processed = 0
        remaining = iter(files)
        # At most `concurrency` files are in flight or buffered at any time
        pending: Deque[asyncio.Task] = deque()

        def start_next() -> None:
            file = next(remaining, None)
            if file is not None:
                pending.append(asyncio.create_task(self._process_file(file, token)))

        for _ in range(self._concurrency):
            start_next()
        try:
            # Consume in discovery order regardless of completion order
            while pending:
                outcome = await pending.popleft()
                start_next()
                path = outcome.file.path
                if outcome.error is not None:
                    logger.warning("Skipping %s: %s", path, str(outcome.error) or type(outcome.error).__name__)
                    continue

                try:
                    await AnalysisService.record_file_result(
                        db,
                        analysis_id,
                        outcome.file,
                        outcome.language,
                        outcome.content,
                        outcome.result,
                        processed_files=processed + 1,
                        progress=analysis_progress(processed + 1, total),
                    )
                except Exception:
                    logger.exception("Could not save results for %s, skipping", path)
                    continue

                processed += 1
                totals.add(outcome.result.issues)
                yield stream.analyzing(
                    f"analyzed {path}",
                    analysis_progress(processed, total),
                    total,
                    current_file=path,
                )
        finally:
            for task in pending:
                task.cancel()

        if processed < total:
            logger.info("Analysis %s: %d of %d files skipped", analysis_id, total - processed, total)

    async def _process_file(self, file: FileDescriptor, token: str) -> FileOutcome:
        outcome = FileOutcome(file=file, language=language_for(file.name) or "")
        try:
            if self._file_timeout:
                await asyncio.wait_for(self._fetch_and_classify(outcome, token), timeout=self._file_timeout)
            else:
                await self._fetch_and_classify(outcome, token)
        except Exception as exc:
            outcome.error = exc
        return outcome

    async def _fetch_and_classify(self, outcome: FileOutcome, token: str) -> None:
        outcome.content = await self._github.fetch_file_content(outcome.file, token)
        outcome.result = await self._classifier.classify(outcome.content, outcome.language, outcome.file.path)

    @staticmethod
    async def _mark_failed_quietly(db: AsyncSession, analysis_id: str, error_message: str) -> None:
        try:
            await db.rollback()
            await AnalysisService.mark_failed(db, analysis_id, error_message)
        except Exception:
            logger.exception("Could not mark analysis %s as failed", analysis_id)
