"""Pytest configuration and fixtures"""
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import ASGITransport, AsyncClient

from app.main import app
from app.agents.schemas import ClassificationResult, DetectedIssue, FileDescriptor, IssueType, Severity
from app.core.database import Base, get_db, get_session_factory
from app.core.github_client import GitHubError
from app.dependencies.pipeline import get_orchestrator
from app.services.orchestrator import AnalysisOrchestrator

REPO_URL = "https://github.com/octo/widgets"


def file_item(path: str, size: int = 120) -> dict:
    """A GitHub contents-API entry for a file"""
    return {
        "name": path.rsplit("/", 1)[-1],
        "path": path,
        "size": size,
        "type": "file",
        "download_url": f"https://raw.githubusercontent.com/octo/widgets/main/{path}",
    }


def dir_item(path: str) -> dict:
    return {"name": path.rsplit("/", 1)[-1], "path": path, "size": 0, "type": "dir", "download_url": None}


def make_issue(severity: Severity = Severity.CRITICAL, issue_type: IssueType = IssueType.BUG, title: str = "bad") -> DetectedIssue:
    return DetectedIssue(type=issue_type, severity=severity, title=title, description="details", line_number=3)


class FakeGitHub:
    """In-memory stand-in for GitHubClient, keyed by directory path"""

    def __init__(self, tree, contents=None, repo_info=None, failing_dirs=(), failing_files=()):
        self.tree = tree
        self.contents = contents or {}
        self.repo_info = repo_info if repo_info is not None else {"full_name": "octo/widgets", "description": "Widgets"}
        self.failing_dirs = set(failing_dirs)
        self.failing_files = set(failing_files)
        self.rejects_token = False
        self.tokens_seen = []

    async def get_repository(self, owner, repo, token):
        self.tokens_seen.append(token)
        if self.rejects_token:
            raise GitHubError("GET /repos returned 401", status_code=401)
        return self.repo_info

    async def list_directory(self, owner, repo, path, token):
        if path in self.failing_dirs:
            raise GitHubError(f"GET contents/{path} returned 500", status_code=500)
        return [FileDescriptor.from_github(item) for item in self.tree.get(path, [])]

    async def fetch_file_content(self, file, token):
        if file.path in self.failing_files:
            raise GitHubError(f"GET {file.download_url} returned 404", status_code=404)
        return self.contents.get(file.path, f"# contents of {file.path}\n")


class FakeClassifier:
    """Returns canned issues per file path; raises for paths in `failing`"""

    def __init__(self, issues_by_path=None, failing=(), degraded=()):
        self.issues_by_path = issues_by_path or {}
        self.failing = set(failing)
        self.degraded = set(degraded)
        self.calls = []

    async def classify(self, content, language, file_path):
        self.calls.append((file_path, language))
        if file_path in self.failing:
            raise RuntimeError("classifier exploded")
        if file_path in self.degraded:
            return ClassificationResult(degraded_reason="unparseable inference output: no JSON")
        return ClassificationResult(issues=list(self.issues_by_path.get(file_path, [])))


@pytest.fixture
def fake_github_cls():
    return FakeGitHub


@pytest.fixture
def fake_classifier_cls():
    return FakeClassifier


@pytest.fixture
def items():
    """Helpers for building contents-API entries and issues"""
    class _Items:
        file = staticmethod(file_item)
        dir = staticmethod(dir_item)
        issue = staticmethod(make_issue)
        repo_url = REPO_URL
    return _Items


@pytest_asyncio.fixture
async def test_db():
    """Create in-memory test database"""
    # StaticPool keeps a single connection so every session sees the same database
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        future=True,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    TestSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async def override_get_db():
        async with TestSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestSessionLocal

    yield TestSessionLocal

    app.dependency_overrides.clear()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def make_orchestrator(test_db):
    """Build an orchestrator over the test database and the given fakes"""
    def _make(github, classifier, concurrency=1, **kwargs):
        return AnalysisOrchestrator(
            session_factory=test_db,
            github=github,
            classifier=classifier,
            concurrency=concurrency,
            **kwargs,
        )
    return _make


@pytest.fixture
def use_orchestrator():
    """Make the analyze endpoint use the given orchestrator"""
    def _use(orchestrator):
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    return _use


@pytest_asyncio.fixture
async def client(test_db):
    """Create test client"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
