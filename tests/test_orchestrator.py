"""Tests for the analysis orchestrator"""
import asyncio

import pytest
from sqlalchemy import func, select

from app.agents.schemas import ClassificationResult, DetectedIssue, IssueType, Severity
from app.models import Analysis, AnalysisStatus, Issue, Report, Repository
from app.services.analysis_service import AnalysisService


async def _run(orchestrator, url, token="ghp_token"):
    return [event async for event in orchestrator.run(url, token)]


async def _count(session_factory, model):
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _only_analysis(session_factory):
    async with session_factory() as session:
        return (await session.execute(select(Analysis))).scalars().one()


def _assert_stream_protocol(events):
    progress = [e.progress for e in events]
    assert progress == sorted(progress)
    assert all(0 <= p <= 100 for p in progress)
    terminal = [e for e in events if e.status in ("completed", "error")]
    assert len(terminal) == 1
    assert events[-1] is terminal[0]


@pytest.fixture
def two_files(items):
    return {"": [items.file("a.py"), items.dir("src"), items.file("README.md")], "src": [items.file("src/b.js")]}


@pytest.mark.asyncio
async def test_two_files_one_critical_issue(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls, two_files, items):
    classifier = fake_classifier_cls({"a.py": [items.issue(Severity.CRITICAL)]})
    events = await _run(make_orchestrator(fake_github_cls(two_files), classifier), items.repo_url)

    _assert_stream_protocol(events)
    assert [e.status for e in events] == ["initializing", "fetching", "analyzing", "analyzing", "analyzing", "completed"]
    done = events[-1]
    assert (done.total_issues, done.critical_issues, done.warning_issues, done.info_issues) == (1, 1, 0, 0)
    assert done.analysis_id == events[1].analysis_id

    analysis = await _only_analysis(test_db)
    assert analysis.status == AnalysisStatus.COMPLETED.value
    assert analysis.progress == 100
    assert (analysis.total_files, analysis.processed_files) == (2, 2)
    assert (analysis.total_issues, analysis.critical_issues) == (1, 1)
    assert analysis.completed_at is not None
    assert await _count(test_db, Report) == 2
    assert await _count(test_db, Issue) == 1
    assert classifier.calls == [("a.py", "python"), ("src/b.js", "javascript")]


@pytest.mark.asyncio
async def test_counts_match_persisted_issues(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls, items):
    tree = {"": [items.file(f"m{i}.py") for i in range(5)]}
    classifier = fake_classifier_cls({
        "m0.py": [items.issue(Severity.CRITICAL), items.issue(Severity.INFO)],
        "m2.py": [items.issue(Severity.WARNING)] * 3,
        "m4.py": [items.issue(Severity.INFO)],
    })
    events = await _run(make_orchestrator(fake_github_cls(tree), classifier, concurrency=3), items.repo_url)

    _assert_stream_protocol(events)
    analysis = await _only_analysis(test_db)
    async with test_db() as session:
        rows = (await session.execute(select(Issue.severity, func.count()).group_by(Issue.severity))).all()
    by_severity = dict(rows)
    assert analysis.total_issues == sum(by_severity.values()) == 6
    assert analysis.critical_issues == by_severity["CRITICAL"] == 1
    assert analysis.warning_issues == by_severity["WARNING"] == 3
    assert analysis.info_issues == by_severity["INFO"] == 2


@pytest.mark.asyncio
async def test_failed_fetch_skips_file(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls, items):
    tree = {"": [items.file("a.py"), items.file("b.py"), items.file("c.py")]}
    github = fake_github_cls(tree, failing_files={"b.py"})
    events = await _run(make_orchestrator(github, fake_classifier_cls()), items.repo_url)

    _assert_stream_protocol(events)
    assert events[-1].status == "completed"
    analysis = await _only_analysis(test_db)
    assert analysis.status == AnalysisStatus.COMPLETED.value
    assert (analysis.total_files, analysis.processed_files) == (3, 2)
    async with test_db() as session:
        names = (await session.execute(select(Report.filename).order_by(Report.filename))).scalars().all()
    assert names == ["a.py", "c.py"]


@pytest.mark.asyncio
async def test_classifier_error_skips_file(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls, items):
    tree = {"": [items.file("a.py"), items.file("b.py")]}
    classifier = fake_classifier_cls({"b.py": [items.issue()]}, failing={"a.py"})
    events = await _run(make_orchestrator(fake_github_cls(tree), classifier), items.repo_url)

    assert events[-1].status == "completed"
    assert events[-1].total_issues == 1
    analysis = await _only_analysis(test_db)
    assert analysis.processed_files == 1
    assert await _count(test_db, Report) == 1


@pytest.mark.asyncio
async def test_degraded_classification_is_recorded(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls, items):
    tree = {"": [items.file("a.py")]}
    classifier = fake_classifier_cls(degraded={"a.py"})
    events = await _run(make_orchestrator(fake_github_cls(tree), classifier), items.repo_url)

    assert events[-1].status == "completed"
    assert events[-1].total_issues == 0
    async with test_db() as session:
        report = (await session.execute(select(Report))).scalars().one()
    assert report.degraded_reason.startswith("unparseable")


@pytest.mark.asyncio
async def test_no_supported_files_fails_analysis(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls, items):
    tree = {"": [items.file("README.md"), items.file("huge.py", size=5 * 1024 * 1024)]}
    events = await _run(make_orchestrator(fake_github_cls(tree), fake_classifier_cls()), items.repo_url)

    _assert_stream_protocol(events)
    assert events[-1].status == "error"
    assert events[-1].message == "no supported files found in repository"
    analysis = await _only_analysis(test_db)
    assert analysis.status == AnalysisStatus.FAILED.value
    assert await _count(test_db, Report) == 0
    assert await _count(test_db, Issue) == 0


@pytest.mark.asyncio
async def test_invalid_url_persists_nothing(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls):
    github = fake_github_cls({})
    events = await _run(make_orchestrator(github, fake_classifier_cls()), "https://example.com/not-github")

    assert len(events) == 1
    assert events[0].status == "error"
    assert events[0].message == "invalid github repo url"
    assert github.tokens_seen == []
    assert await _count(test_db, Repository) == 0
    assert await _count(test_db, Analysis) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("url, token", [("", "tok"), ("https://github.com/octo/widgets", "")])
async def test_missing_input_is_rejected(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls, url, token):
    events = await _run(make_orchestrator(fake_github_cls({}), fake_classifier_cls()), url, token)

    assert [(e.status, e.message) for e in events] == [("error", "repo url and github token are required")]
    assert await _count(test_db, Analysis) == 0


@pytest.mark.asyncio
async def test_rejected_credential_persists_nothing(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls, two_files, items):
    github = fake_github_cls(two_files)
    github.rejects_token = True
    events = await _run(make_orchestrator(github, fake_classifier_cls()), items.repo_url)

    _assert_stream_protocol(events)
    assert [e.status for e in events] == ["initializing", "error"]
    assert events[-1].message == "failed to fetch repo info - check token and repo url"
    assert await _count(test_db, Repository) == 0
    assert await _count(test_db, Analysis) == 0


@pytest.mark.asyncio
async def test_root_listing_failure_fails_analysis(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls, two_files, items):
    github = fake_github_cls(two_files, failing_dirs={""})
    events = await _run(make_orchestrator(github, fake_classifier_cls()), items.repo_url)

    assert [e.status for e in events] == ["initializing", "fetching", "error"]
    assert events[-1].message == "failed to fetch repository files"
    analysis = await _only_analysis(test_db)
    assert analysis.status == AnalysisStatus.FAILED.value


@pytest.mark.asyncio
async def test_credential_is_stored_only_as_digest(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls, two_files, items):
    await _run(make_orchestrator(fake_github_cls(two_files), fake_classifier_cls()), items.repo_url, "ghp_secret")

    analysis = await _only_analysis(test_db)
    assert analysis.token_hash != "ghp_secret"
    assert len(analysis.token_hash) == 64


@pytest.mark.asyncio
async def test_repository_is_upserted_per_url(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls, two_files, items):
    github = fake_github_cls(two_files)
    await _run(make_orchestrator(github, fake_classifier_cls()), items.repo_url)
    github.repo_info = {"full_name": "octo/widgets", "description": "Renamed"}
    await _run(make_orchestrator(github, fake_classifier_cls()), items.repo_url)

    assert await _count(test_db, Repository) == 1
    assert await _count(test_db, Analysis) == 2
    async with test_db() as session:
        repository = (await session.execute(select(Repository))).scalars().one()
    assert repository.description == "Renamed"


class _SlowFirstClassifier:
    """Finishes files in reverse discovery order"""

    def __init__(self, total):
        self.remaining = total
        self.done = asyncio.Event()

    async def classify(self, content, language, file_path):
        if file_path == "f0.py":
            await self.done.wait()
        self.remaining -= 1
        if self.remaining == 1:
            self.done.set()
        return ClassificationResult()


@pytest.mark.asyncio
async def test_events_follow_discovery_order_under_concurrency(make_orchestrator, fake_github_cls, items):
    tree = {"": [items.file(f"f{i}.py") for i in range(4)]}
    orchestrator = make_orchestrator(fake_github_cls(tree), _SlowFirstClassifier(4), concurrency=4)
    events = await _run(orchestrator, items.repo_url)

    _assert_stream_protocol(events)
    per_file = [e.current_file for e in events if e.current_file]
    assert per_file == ["f0.py", "f1.py", "f2.py", "f3.py"]
    assert [e.progress for e in events if e.current_file] == [37, 55, 72, 90]


@pytest.mark.asyncio
async def test_file_timeout_skips_file(test_db, make_orchestrator, fake_github_cls, items):
    class Hanging:
        async def classify(self, content, language, file_path):
            if file_path == "slow.py":
                await asyncio.sleep(10)
            return ClassificationResult()

    tree = {"": [items.file("slow.py"), items.file("fast.py")]}
    orchestrator = make_orchestrator(fake_github_cls(tree), Hanging(), concurrency=2, file_timeout=0.05)
    events = await _run(orchestrator, items.repo_url)

    assert events[-1].status == "completed"
    analysis = await _only_analysis(test_db)
    assert analysis.processed_files == 1


@pytest.mark.asyncio
async def test_work_ahead_is_bounded_by_concurrency(test_db, make_orchestrator, fake_github_cls, items):
    tree = {"": [items.file(f"f{i}.py") for i in range(20)]}
    github = fake_github_cls(tree)
    fetched = []
    fetch = github.fetch_file_content

    async def counting_fetch(file, token):
        fetched.append(file.path)
        return await fetch(file, token)

    github.fetch_file_content = counting_fetch
    fetched_when_first_done = []

    class SlowFirst:
        async def classify(self, content, language, file_path):
            if file_path == "f0.py":
                await asyncio.sleep(0.05)
                fetched_when_first_done.append(len(fetched))
            return ClassificationResult()

    events = await _run(make_orchestrator(github, SlowFirst(), concurrency=2), items.repo_url)

    assert events[-1].status == "completed"
    assert fetched_when_first_done == [2]
    assert len(fetched) == 20
    analysis = await _only_analysis(test_db)
    assert analysis.processed_files == 20


@pytest.mark.asyncio
async def test_failed_save_is_rolled_back_and_skipped(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls, items):
    tree = {"": [items.file("a.py"), items.file("b.py"), items.file("c.py")]}
    # A null title violates the issues.title constraint when b.py is committed
    broken = DetectedIssue.model_construct(type=IssueType.BUG, severity=Severity.CRITICAL, title=None, description="")
    classifier = fake_classifier_cls({
        "a.py": [items.issue(Severity.WARNING)],
        "b.py": [items.issue(Severity.CRITICAL), broken],
        "c.py": [items.issue(Severity.INFO)],
    })
    events = await _run(make_orchestrator(fake_github_cls(tree), classifier), items.repo_url)

    _assert_stream_protocol(events)
    assert [e.current_file for e in events if e.current_file] == ["a.py", "c.py"]
    done = events[-1]
    assert done.status == "completed"
    assert (done.total_issues, done.critical_issues, done.warning_issues, done.info_issues) == (2, 0, 1, 1)

    analysis = await _only_analysis(test_db)
    assert analysis.status == AnalysisStatus.COMPLETED.value
    assert (analysis.total_files, analysis.processed_files) == (3, 2)
    assert analysis.total_issues == await _count(test_db, Issue) == 2
    async with test_db() as session:
        names = (await session.execute(select(Report.filename).order_by(Report.filename))).scalars().all()
    assert names == ["a.py", "c.py"]


@pytest.mark.asyncio
async def test_unexpected_error_fails_analysis(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls, two_files, items, monkeypatch):
    async def broken_completion(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(AnalysisService, "mark_completed", staticmethod(broken_completion))
    events = await _run(make_orchestrator(fake_github_cls(two_files), fake_classifier_cls()), items.repo_url)

    _assert_stream_protocol(events)
    assert events[-1].status == "error"
    assert events[-1].message == "analysis failed"
    assert events[-1].progress == events[-2].progress
    analysis = await _only_analysis(test_db)
    assert analysis.status == AnalysisStatus.FAILED.value
    assert analysis.error_message == "RuntimeError: disk full"


@pytest.mark.asyncio
async def test_failed_subdirectory_still_completes(test_db, make_orchestrator, fake_github_cls, fake_classifier_cls, items):
    tree = {
        "": [items.file("a.py"), items.dir("src"), items.dir("lib")],
        "src": [items.file("src/b.py")],
        "lib": [items.file("lib/c.py")],
    }
    github = fake_github_cls(tree, failing_dirs={"src"})
    events = await _run(make_orchestrator(github, fake_classifier_cls()), items.repo_url)

    _assert_stream_protocol(events)
    assert events[-1].status == "completed"
    assert [e.current_file for e in events if e.current_file] == ["a.py", "lib/c.py"]
    analysis = await _only_analysis(test_db)
    assert analysis.status == AnalysisStatus.COMPLETED.value
    assert (analysis.total_files, analysis.processed_files) == (2, 2)
