"""
Tests for gateway_pipeline.infrastructure.artifact_store
==========================================================

What's Being Tested:
    - Single writer:  only the declared producer may put an artifact
    - Sealing:        the first read by a consumer freezes the content
    - Versioning:     every write bumps the version
    - Isolation:      stored artifacts are copies
    - Housekeeping:   list / exists / delete_execution / count

All tests are async (pytest-asyncio with asyncio_mode=auto).
"""

import pytest

from gateway_pipeline.core.exceptions import ArtifactError
from gateway_pipeline.infrastructure.artifact_store import (
    Artifact,
    ArtifactStore,
    InMemoryArtifactStore,
)


PRODUCER = "Source/SourceAppCode"
CONSUMER = "DeployToTest/Build_and_Deploy"


def _artifact(execution_id: str = "exec-1", producer: str = PRODUCER, **kwargs) -> Artifact:
    return Artifact(
        execution_id=execution_id,
        name="AppCode",
        producer=producer,
        revision="abc123",
        files={"src/handler.py": "print('hi')"},
        **kwargs,
    )


@pytest.fixture
async def store() -> InMemoryArtifactStore:
    store = InMemoryArtifactStore()
    await store.declare("exec-1", "AppCode", producer=PRODUCER)
    return store


# =============================================================================
# Test: Ownership
# =============================================================================
class TestOwnership:
    """Only the declared producer may write."""

    def test_is_an_artifact_store(self) -> None:
        assert isinstance(InMemoryArtifactStore(), ArtifactStore)

    async def test_producer_can_write(self, store) -> None:
        stored = await store.put(_artifact())
        assert stored.version == 1
        assert stored.sealed is False

    async def test_undeclared_name_is_rejected(self) -> None:
        store = InMemoryArtifactStore()
        with pytest.raises(ArtifactError) as exc_info:
            await store.put(_artifact())
        assert exc_info.value.error_code == "ARTIFACT_NOT_DECLARED"

    async def test_other_writer_is_rejected(self, store) -> None:
        with pytest.raises(ArtifactError) as exc_info:
            await store.put(_artifact(producer=CONSUMER))
        assert exc_info.value.error_code == "ARTIFACT_WRONG_PRODUCER"

    async def test_second_declaration_by_another_producer_fails(self, store) -> None:
        with pytest.raises(ArtifactError) as exc_info:
            await store.declare("exec-1", "AppCode", producer=CONSUMER)
        assert exc_info.value.details["owner"] == PRODUCER

    async def test_redeclaring_by_same_producer_is_fine(self, store) -> None:
        await store.declare("exec-1", "AppCode", producer=PRODUCER)

    async def test_declarations_are_per_execution(self, store) -> None:
        await store.declare("exec-2", "AppCode", producer=CONSUMER)


# =============================================================================
# Test: Sealing & Versioning
# =============================================================================
class TestSealing:
    """The first read by a consumer seals the artifact."""

    async def test_rewrite_before_read_bumps_version(self, store) -> None:
        await store.put(_artifact())
        stored = await store.put(_artifact())
        assert stored.version == 2

    async def test_consumer_read_seals(self, store) -> None:
        await store.put(_artifact())
        artifact = await store.read("exec-1", "AppCode", consumer=CONSUMER)
        assert artifact.sealed is True
        assert artifact.revision == "abc123"

        with pytest.raises(ArtifactError) as exc_info:
            await store.put(_artifact())
        assert exc_info.value.error_code == "ARTIFACT_SEALED"

    async def test_producer_read_does_not_seal(self, store) -> None:
        await store.put(_artifact())
        await store.read("exec-1", "AppCode", consumer=PRODUCER)
        stored = await store.put(_artifact())
        assert stored.version == 2

    async def test_get_does_not_seal(self, store) -> None:
        await store.put(_artifact())
        assert (await store.get("exec-1", "AppCode")).sealed is False
        await store.put(_artifact())

    async def test_every_consumer_sees_the_same_content(self, store) -> None:
        await store.put(_artifact())
        first = await store.read("exec-1", "AppCode", consumer=CONSUMER)
        second = await store.read("exec-1", "AppCode", consumer="DeployToProd/Build_and_Deploy")
        assert first.files == second.files
        assert first.version == second.version

    async def test_read_of_missing_artifact(self, store) -> None:
        with pytest.raises(ArtifactError) as exc_info:
            await store.read("exec-1", "AppCode", consumer=CONSUMER)
        assert exc_info.value.error_code == "ARTIFACT_NOT_FOUND"


# =============================================================================
# Test: Queries & Housekeeping
# =============================================================================
class TestQueries:

    async def test_returned_copies_are_isolated(self, store) -> None:
        await store.put(_artifact())
        artifact = await store.get("exec-1", "AppCode")
        artifact.files["src/handler.py"] = "tampered"
        assert (await store.get("exec-1", "AppCode")).files["src/handler.py"] == "print('hi')"

    async def test_exists_and_count(self, store) -> None:
        assert not await store.exists("exec-1", "AppCode")
        await store.put(_artifact())
        assert await store.exists("exec-1", "AppCode")
        assert await store.count() == 1

    async def test_get_unknown_returns_none(self, store) -> None:
        assert await store.get("exec-9", "AppCode") is None

    async def test_list_by_execution(self, store) -> None:
        await store.declare("exec-1", "InfraCode", producer="Source/SourceInfraCode")
        await store.put(_artifact())
        await store.put(
            Artifact(execution_id="exec-1", name="InfraCode", producer="Source/SourceInfraCode")
        )
        names = [a.name for a in await store.list_by_execution("exec-1")]
        assert sorted(names) == ["AppCode", "InfraCode"]
        assert await store.list_by_execution("exec-2") == []

    async def test_delete_execution(self, store) -> None:
        await store.put(_artifact())
        assert await store.delete_execution("exec-1") == 1
        assert await store.count() == 0
        with pytest.raises(ArtifactError):
            await store.put(_artifact())
