"""
gateway_pipeline.infrastructure - Storage Layer
=================================================

    - artifact_store: Per-execution artifacts passed between actions
"""

from gateway_pipeline.infrastructure.artifact_store import (
    Artifact,
    ArtifactStore,
    InMemoryArtifactStore,
)

__all__ = ["Artifact", "ArtifactStore", "InMemoryArtifactStore"]
