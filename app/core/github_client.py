"""Async client for the GitHub REST API.

Every method takes the caller's token explicitly; the client itself holds no
credential, so a single instance can serve any number of analysis runs.
Transient failures (transport errors, 429 and 5xx responses) are retried with
a linear backoff. Other non-success responses raise GitHubError at once.
"""
from typing import Any, Optional
from urllib.parse import quote
import asyncio
import logging

import httpx

from app.agents.schemas import FileDescriptor
from app.core.config import Settings, settings as app_settings

logger = logging.getLogger(__name__)


class GitHubError(Exception):
    """Raised when a GitHub API request fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _is_transient(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code < 600


class GitHubClient:
    def __init__(
        self,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._backoff = backoff
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings = app_settings, **kwargs: Any) -> "GitHubClient":
        return cls(
            api_url=settings.GITHUB_API_URL,
            timeout=settings.GITHUB_TIMEOUT_SECONDS,
            max_retries=settings.GITHUB_MAX_RETRIES,
            backoff=settings.GITHUB_RETRY_BACKOFF_SECONDS,
            **kwargs,
        )

    @staticmethod
    def _headers(token: str, raw: bool = False) -> dict[str, str]:
        accept = "application/vnd.github.raw" if raw else "application/vnd.github+json"
        return {"Accept": accept, "Authorization": f"Bearer {token}"}

    async def _get(self, url: str, token: str, raw: bool = False) -> httpx.Response:
        """
        GET with retry on transport errors, 429 and 5xx.

        Raises:
            GitHubError: if the final attempt fails or a non-transient error status is returned.
        """
        last_error = GitHubError(f"GET {url} failed")
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport, follow_redirects=True
        ) as client:
            for attempt in range(1, self._max_retries + 1):
                try:
                    response = await client.get(url, headers=self._headers(token, raw))
                except httpx.TransportError as exc:
                    last_error = GitHubError(f"request to {url} failed: {type(exc).__name__}: {exc}")
                else:
                    if response.is_success:
                        return response
                    last_error = GitHubError(
                        f"GET {url} returned {response.status_code}", status_code=response.status_code
                    )
                    if not _is_transient(response.status_code):
                        raise last_error

                if attempt < self._max_retries:
                    delay = self._backoff * attempt
                    logger.info("Retrying %s in %.1fs (attempt %d/%d): %s",
                                url, delay, attempt, self._max_retries, last_error)
                    await asyncio.sleep(delay)

        raise last_error

    async def get_repository(self, owner: str, repo: str, token: str) -> dict[str, Any]:
        """Return the repository metadata (full_name, description, default_branch, ...)."""
        response = await self._get(f"{self._api_url}/repos/{owner}/{repo}", token)
        return response.json()

    async def list_directory(self, owner: str, repo: str, path: str, token: str) -> list[FileDescriptor]:
        """List one directory of the repository's default branch ("" is the root)."""
        url = f"{self._api_url}/repos/{owner}/{repo}/contents/{quote(path.strip('/'), safe='/')}"
        response = await self._get(url, token)
        data = response.json()
        if not isinstance(data, list):
            raise GitHubError(f"{path or '/'} is not a directory")
        return [FileDescriptor.from_github(item) for item in data]

    async def fetch_file_content(self, file: FileDescriptor, token: str) -> str:
        """Download the raw text of a file."""
        if not file.download_url:
            raise GitHubError(f"{file.path} has no download url")
        response = await self._get(file.download_url, token, raw=True)
        return response.text
