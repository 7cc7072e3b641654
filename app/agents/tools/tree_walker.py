"""Repository discovery: reference parsing and the recursive tree walk."""
from __future__ import annotations

import logging
import re
from typing import Iterator, List, Tuple

from app.agents.schemas import FileDescriptor, FileKind, WalkResult
from app.core.github_client import GitHubClient, GitHubError

logger = logging.getLogger(__name__)

_REPO_URL_RE = re.compile(r"github\.com/([^/]+)/([^/]+)")


class InvalidRepositoryReference(ValueError):
    """Raised when a URL does not point at a GitHub repository."""


def parse_repository_reference(url: str) -> Tuple[str, str]:
    """
    Extract (owner, repo) from a GitHub repository URL.
    e.g., https://github.com/psf/requests.git -> ('psf', 'requests')
    """
    match = _REPO_URL_RE.search(url or "")
    if not match:
        raise InvalidRepositoryReference(f"Cannot parse owner/repo from URL: {url}")
    owner, repo = match.group(1), match.group(2)
    repo = re.split(r"[?#]", repo, maxsplit=1)[0]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not owner or not repo:
        raise InvalidRepositoryReference(f"Cannot parse owner/repo from URL: {url}")
    return owner, repo


class RepositoryTreeWalker:
    """Depth-first, pre-order listing of every file in a repository.

    Uses an explicit stack of directory iterators instead of recursion: a
    sub-directory is expanded as soon as it is met, before its later
    siblings, so the output order matches a recursive walk over the order
    the API returns entries in.

    A failure listing the root always raises. A failure listing a
    sub-directory raises only when `strict` is set; otherwise the directory
    is recorded in `WalkResult.failed_directories` and the walk goes on.
    """

    def __init__(self, github: GitHubClient, strict: bool = False):
        self._github = github
        self._strict = strict

    async def walk(self, owner: str, repo: str, token: str) -> WalkResult:
        result = WalkResult()
        root = await self._github.list_directory(owner, repo, "", token)
        stack: List[Iterator[FileDescriptor]] = [iter(root)]

        while stack:
            entry = next(stack[-1], None)
            if entry is None:
                stack.pop()
                continue

            if entry.kind == FileKind.FILE:
                result.files.append(entry)
            elif entry.kind == FileKind.DIR:
                try:
                    listing = await self._github.list_directory(owner, repo, entry.path, token)
                except GitHubError as exc:
                    if self._strict:
                        raise
                    logger.warning("Skipping directory %s of %s/%s: %s", entry.path, owner, repo, exc)
                    result.failed_directories.append(entry.path)
                    continue
                stack.append(iter(listing))

        logger.info(
            "Discovered %d files in %s/%s (%d directories failed)",
            len(result.files), owner, repo, len(result.failed_directories),
        )
        return result
