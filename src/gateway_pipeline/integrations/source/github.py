"""
gateway_pipeline.integrations.source.github - GitHub Source Provider
======================================================================

Resolves a revision through the GitHub REST API and lists the files of its
tree. File entries map each path to its blob sha; the build backend pulls
contents by reference.

    GET /repos/{owner}/{repo}/commits/{ref}           → revision + message
    GET /repos/{owner}/{repo}/git/trees/{sha}?recursive=1 → files
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
import structlog

from gateway_pipeline.core.config import SourceConfig
from gateway_pipeline.core.exceptions import SourceFetchError
from gateway_pipeline.integrations.source.base import SourceProvider, SourceSnapshot


logger = structlog.get_logger()


class GitHubSourceProvider(SourceProvider):
    """Source provider talking to the GitHub REST API.

    Args:
        owner: Account or organisation owning the repositories.
        token: Access token; anonymous access when None.
        api_base_url: API root (GitHub Enterprise hosts differ).
        timeout: Seconds per request.
        client: Pre-built client (tests pass one with a mock transport).

    Example:
        >>> provider = GitHubSourceProvider(owner="ndlib", token="...")
        >>> snapshot = await provider.fetch("illiad-gateway", "master", "abc123")
    """

    def __init__(
        self,
        owner: str,
        token: Optional[str] = None,
        api_base_url: str = "https://api.github.com",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owner = owner
        self._token = token
        self._api_base_url = api_base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._logger = logger.bind(component="source_provider", impl="github")

    @classmethod
    def from_config(cls, config: SourceConfig) -> GitHubSourceProvider:
        return cls(
            owner=config.git_owner,
            token=config.token,
            api_base_url=config.api_base_url,
            timeout=config.request_timeout,
        )

    @property
    def provider_name(self) -> str:
        return "github"

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/vnd.github+json"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=self._api_base_url,
                timeout=httpx.Timeout(self._timeout),
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(
        self,
        repository: str,
        branch: str,
        revision: Optional[str] = None,
    ) -> SourceSnapshot:
        ref = revision or branch
        commit = await self._get(f"/repos/{self._owner}/{repository}/commits/{ref}")
        sha = commit.get("sha")
        if not sha:
            raise SourceFetchError(
                message=f"No revision returned for {repository}@{ref}",
                error_code="SOURCE_BAD_RESPONSE",
                details={"repository": repository, "ref": ref},
            )

        tree = await self._get(
            f"/repos/{self._owner}/{repository}/git/trees/{sha}",
            params={"recursive": "1"},
        )
        files = {
            entry["path"]: entry.get("sha", "")
            for entry in tree.get("tree", [])
            if entry.get("type") == "blob"
        }

        self._logger.info(
            "source_fetched",
            repository=repository,
            branch=branch,
            revision=sha,
            files=len(files),
        )
        return SourceSnapshot(
            repository=repository,
            branch=branch,
            revision=sha,
            files=files,
            message=commit.get("commit", {}).get("message"),
        )

    async def _get(self, path: str, params: Optional[dict[str, str]] = None) -> dict[str, Any]:
        client = self._ensure_client()
        try:
            response = await client.get(path, params=params)
        except httpx.TimeoutException as e:
            self._logger.error("github_timeout", path=path, error=str(e))
            raise SourceFetchError(
                message=f"Timed out fetching {path}",
                error_code="SOURCE_TIMEOUT",
                details={"path": path},
            ) from e
        except httpx.RequestError as e:
            self._logger.error("github_request_error", path=path, error=str(e))
            raise SourceFetchError(
                message=f"Request to {path} failed: {e}",
                error_code="SOURCE_UNREACHABLE",
                details={"path": path},
            ) from e

        if response.status_code == 404:
            raise SourceFetchError(
                message=f"Not found: {path}",
                error_code="SOURCE_NOT_FOUND",
                details={"path": path},
            )
        if response.status_code in (401, 403):
            raise SourceFetchError(
                message=f"Access denied to {path}",
                error_code="SOURCE_ACCESS_DENIED",
                details={"path": path, "status_code": response.status_code},
            )
        if response.status_code >= 400:
            raise SourceFetchError(
                message=f"GitHub API error {response.status_code} for {path}",
                error_code="SOURCE_API_ERROR",
                details={"path": path, "status_code": response.status_code},
            )
        return response.json()
