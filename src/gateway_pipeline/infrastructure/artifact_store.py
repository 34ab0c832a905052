"""
gateway_pipeline.infrastructure.artifact_store - Artifact Persistence Layer
=============================================================================

Artifacts are the named, versioned outputs that flow between pipeline
actions: the application source (AppCode) and the infrastructure source
(InfraCode) produced by the Source stage and consumed by every
build-and-deploy action.

Ownership Rules:
    - An artifact name is declared once per execution, together with its
      producer ("Stage/Action"). Only that producer may write it.
    - The first read by any other action seals the artifact. A write after
      the seal raises ArtifactError, so every consumer of an execution sees
      the same bytes.

    ┌──────────────────┐   put(AppCode)    ┌─────────────────┐
    │  SourceAppCode   │ ────────────────→ │  ArtifactStore  │
    └──────────────────┘                   │  (per execution)│
    ┌──────────────────┐   read(AppCode)   │                 │
    │ Build_and_Deploy │ ←──────────────── │   sealed: true  │
    └──────────────────┘                   └─────────────────┘

Usage:
    >>> store = InMemoryArtifactStore()
    >>> await store.declare("exec-1", "AppCode", producer="Source/SourceAppCode")
    >>> await store.put(Artifact(execution_id="exec-1", name="AppCode",
    ...                          producer="Source/SourceAppCode", files={...}))
    >>> artifact = await store.read("exec-1", "AppCode",
    ...                             consumer="DeployToTest/Build_and_Deploy")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

import structlog
from pydantic import BaseModel, Field

from gateway_pipeline.core.exceptions import ArtifactError


logger = structlog.get_logger()


def _generate_artifact_id() -> str:
    return f"art-{uuid4()}"


# =============================================================================
# Artifact Model
# =============================================================================
class Artifact(BaseModel):
    """A named output of one action within one execution.

    Attributes:
        artifact_id: Unique identifier of this version of the artifact.
        execution_id: Execution that produced the artifact.
        name: Artifact name (e.g. "AppCode"), unique per execution.
        producer: Qualified name of the only action allowed to write it.
        version: Incremented on every write; 1 for the first.
        revision: Source revision the content was taken from, if any.
        files: Path → content of the files making up the artifact.
        metadata: Additional key-value metadata (repository, branch, ...).
        sealed: True once a consumer has read the artifact.
        created_at: When this version was written.
    """

    artifact_id: str = Field(default_factory=_generate_artifact_id)
    execution_id: str
    name: str = Field(..., min_length=1)
    producer: str = Field(..., min_length=1)
    version: int = Field(default=1, ge=1)
    revision: Optional[str] = Field(default=None)
    files: dict[str, str] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    sealed: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# =============================================================================
# Abstract Base Class
# =============================================================================
class ArtifactStore(ABC):
    """Abstract interface for artifact persistence.

    Methods:
        declare(execution_id, name, producer): Register the only writer.
        put(artifact): Write a new version (producer only, before seal).
        read(execution_id, name, consumer): Read and seal.
        get(execution_id, name): Inspect without sealing.
        exists(execution_id, name): Whether content has been written.
        list_by_execution(execution_id): All artifacts of an execution.
        delete_execution(execution_id): Drop an execution's artifacts.
        count(): Number of stored artifacts.
    """

    @abstractmethod
    async def declare(self, execution_id: str, name: str, producer: str) -> None:
        """Register `producer` as the only writer of `name`.

        Raises:
            ArtifactError: If another producer already declared the name.
        """
        ...

    @abstractmethod
    async def put(self, artifact: Artifact) -> Artifact:
        """Write a new version of an artifact.

        Returns:
            The stored artifact with its version number assigned.

        Raises:
            ArtifactError: Undeclared name, wrong producer, or sealed artifact.
        """
        ...

    @abstractmethod
    async def read(self, execution_id: str, name: str, consumer: str) -> Artifact:
        """Read an artifact on behalf of `consumer`.

        Reads by anyone other than the producer seal the artifact.

        Raises:
            ArtifactError: If nothing has been written under the name.
        """
        ...

    @abstractmethod
    async def get(self, execution_id: str, name: str) -> Optional[Artifact]:
        ...

    @abstractmethod
    async def exists(self, execution_id: str, name: str) -> bool:
        ...

    @abstractmethod
    async def list_by_execution(self, execution_id: str) -> list[Artifact]:
        ...

    @abstractmethod
    async def delete_execution(self, execution_id: str) -> int:
        """Remove every artifact of an execution. Returns how many were removed."""
        ...

    @abstractmethod
    async def count(self) -> int:
        ...


# =============================================================================
# In-Memory Implementation
# =============================================================================
class InMemoryArtifactStore(ArtifactStore):
    """Dict-backed artifact store for development and testing.

    Stored artifacts are copies; callers can never mutate what the store
    holds. Data is lost when the process exits.
    """

    def __init__(self) -> None:
        self._artifacts: dict[tuple[str, str], Artifact] = {}
        self._producers: dict[tuple[str, str], str] = {}
        self._logger = logger.bind(component="in_memory_artifact_store")

    async def declare(self, execution_id: str, name: str, producer: str) -> None:
        key = (execution_id, name)
        existing = self._producers.get(key)
        if existing is not None and existing != producer:
            raise ArtifactError(
                message=f"Artifact '{name}' is already owned by {existing}",
                error_code="ARTIFACT_WRONG_PRODUCER",
                details={"artifact": name, "owner": existing, "producer": producer},
            )
        self._producers[key] = producer

    async def put(self, artifact: Artifact) -> Artifact:
        key = (artifact.execution_id, artifact.name)
        owner = self._producers.get(key)
        if owner is None:
            raise ArtifactError(
                message=f"Artifact '{artifact.name}' was never declared",
                error_code="ARTIFACT_NOT_DECLARED",
                details={"artifact": artifact.name, "execution_id": artifact.execution_id},
            )
        if owner != artifact.producer:
            raise ArtifactError(
                message=(
                    f"{artifact.producer} may not write '{artifact.name}', "
                    f"which is owned by {owner}"
                ),
                error_code="ARTIFACT_WRONG_PRODUCER",
                details={"artifact": artifact.name, "owner": owner, "producer": artifact.producer},
            )

        current = self._artifacts.get(key)
        if current is not None and current.sealed:
            raise ArtifactError(
                message=f"Artifact '{artifact.name}' was already consumed and is sealed",
                error_code="ARTIFACT_SEALED",
                details={"artifact": artifact.name, "version": current.version},
            )

        stored = artifact.model_copy(
            deep=True,
            update={
                "version": current.version + 1 if current else 1,
                "sealed": False,
            },
        )
        self._artifacts[key] = stored
        self._logger.debug(
            "artifact_written",
            execution_id=artifact.execution_id,
            artifact=artifact.name,
            version=stored.version,
            files=len(stored.files),
        )
        return stored.model_copy(deep=True)

    async def read(self, execution_id: str, name: str, consumer: str) -> Artifact:
        key = (execution_id, name)
        artifact = self._artifacts.get(key)
        if artifact is None:
            raise ArtifactError(
                message=f"Artifact '{name}' has not been produced",
                error_code="ARTIFACT_NOT_FOUND",
                details={"artifact": name, "execution_id": execution_id, "consumer": consumer},
            )
        if consumer != artifact.producer and not artifact.sealed:
            artifact.sealed = True
            self._logger.debug(
                "artifact_sealed",
                execution_id=execution_id,
                artifact=name,
                consumer=consumer,
            )
        return artifact.model_copy(deep=True)

    async def get(self, execution_id: str, name: str) -> Optional[Artifact]:
        artifact = self._artifacts.get((execution_id, name))
        return artifact.model_copy(deep=True) if artifact else None

    async def exists(self, execution_id: str, name: str) -> bool:
        return (execution_id, name) in self._artifacts

    async def list_by_execution(self, execution_id: str) -> list[Artifact]:
        artifacts = [
            a.model_copy(deep=True)
            for (exec_id, _), a in self._artifacts.items()
            if exec_id == execution_id
        ]
        return sorted(artifacts, key=lambda a: a.created_at)

    async def delete_execution(self, execution_id: str) -> int:
        keys = [k for k in self._artifacts if k[0] == execution_id]
        for key in keys:
            del self._artifacts[key]
        for key in [k for k in self._producers if k[0] == execution_id]:
            del self._producers[key]
        return len(keys)

    async def count(self) -> int:
        return len(self._artifacts)
