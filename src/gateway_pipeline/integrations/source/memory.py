"""
gateway_pipeline.integrations.source.memory - In-Memory Source Provider
=========================================================================

A seeded, in-process stand-in for a version-control host. Tests and local
runs push revisions into it and can make a repository unreachable.

Usage:
    >>> provider = InMemorySourceProvider()
    >>> provider.push("illiad-gateway", "master", "abc123", {"src/all.py": "..."})
    >>> snapshot = await provider.fetch("illiad-gateway", "master", "abc123")
    >>> provider.set_unreachable("illiad-gateway")
"""

from __future__ import annotations

from typing import Optional

import structlog

from gateway_pipeline.core.exceptions import SourceFetchError
from gateway_pipeline.integrations.source.base import SourceProvider, SourceSnapshot


logger = structlog.get_logger()


class InMemorySourceProvider(SourceProvider):
    """Source provider backed by dictionaries.

    Attributes:
        fetch_calls: (repository, branch, revision) of every fetch, in order.
    """

    def __init__(self) -> None:
        # (repository, branch) → revisions oldest first
        self._history: dict[tuple[str, str], list[SourceSnapshot]] = {}
        self._unreachable: set[str] = set()
        self.fetch_calls: list[tuple[str, str, Optional[str]]] = []
        self._logger = logger.bind(component="source_provider", impl="in_memory")

    @property
    def provider_name(self) -> str:
        return "memory"

    def push(
        self,
        repository: str,
        branch: str,
        revision: str,
        files: Optional[dict[str, str]] = None,
        message: Optional[str] = None,
    ) -> SourceSnapshot:
        """Record a new head revision for a branch."""
        snapshot = SourceSnapshot(
            repository=repository,
            branch=branch,
            revision=revision,
            files=dict(files or {}),
            message=message,
        )
        self._history.setdefault((repository, branch), []).append(snapshot)
        return snapshot

    def set_unreachable(self, repository: str, unreachable: bool = True) -> None:
        if unreachable:
            self._unreachable.add(repository)
        else:
            self._unreachable.discard(repository)

    async def fetch(
        self,
        repository: str,
        branch: str,
        revision: Optional[str] = None,
    ) -> SourceSnapshot:
        self.fetch_calls.append((repository, branch, revision))

        if repository in self._unreachable:
            raise SourceFetchError(
                message=f"Repository '{repository}' is unreachable",
                error_code="SOURCE_UNREACHABLE",
                details={"repository": repository, "branch": branch},
            )

        history = self._history.get((repository, branch))
        if not history:
            raise SourceFetchError(
                message=f"Branch '{branch}' of '{repository}' does not exist",
                error_code="SOURCE_NOT_FOUND",
                details={"repository": repository, "branch": branch},
            )

        if revision is None:
            snapshot = history[-1]
        else:
            matches = [s for s in history if s.revision == revision]
            if not matches:
                raise SourceFetchError(
                    message=f"Revision '{revision}' not found on {repository}@{branch}",
                    error_code="REVISION_NOT_FOUND",
                    details={"repository": repository, "branch": branch, "revision": revision},
                )
            snapshot = matches[-1]

        self._logger.debug(
            "source_fetched",
            repository=repository,
            branch=branch,
            revision=snapshot.revision,
        )
        return snapshot.model_copy(deep=True)
