"""
gateway_pipeline.integrations.source.base - Version-Control Source Interface
==============================================================================

Source actions never talk to a version-control host directly; they go
through a SourceProvider:

    ┌───────────────┐      fetch()       ┌──────────────────┐
    │ SourceAction  │ ─────────────────→ │  SourceProvider  │
    │               │ ←─ SourceSnapshot ─│  (abstract)      │
    └───────────────┘                    └────────┬─────────┘
                                       ┌──────────┴─────────┐
                                  ┌────▼────┐       ┌───────▼──────┐
                                  │ InMemory│       │   GitHub     │
                                  └─────────┘       └──────────────┘

Any failure to reach or read the source surfaces as SourceFetchError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class SourceSnapshot(BaseModel):
    """The content of one repository at one revision.

    Attributes:
        repository: Repository name.
        branch: Branch the revision was taken from.
        revision: Full revision identifier.
        files: Path → content (or content reference) of every file.
        message: Commit message, if the provider knows it.
        fetched_at: When the snapshot was taken.
    """

    repository: str
    branch: str
    revision: str
    files: dict[str, str] = Field(default_factory=dict)
    message: Optional[str] = Field(default=None)
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SourceProvider(ABC):
    """Abstract interface to a version-control host."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        ...

    @abstractmethod
    async def fetch(
        self,
        repository: str,
        branch: str,
        revision: Optional[str] = None,
    ) -> SourceSnapshot:
        """Fetch a repository snapshot.

        Args:
            repository: Repository name.
            branch: Branch name.
            revision: Exact revision to fetch. None means the branch head.

        Raises:
            SourceFetchError: If the host is unreachable or the revision
                does not exist.
        """
        ...

    async def close(self) -> None:
        """Release any held connections."""
        return None
