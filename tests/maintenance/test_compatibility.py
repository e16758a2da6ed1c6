"""Unit tests for the compatibility monitor."""

from unittest.mock import AsyncMock

import pytest

from semantic_stash.embeddings.lightweight import LightweightEmbedding
from semantic_stash.maintenance.compatibility import CompatibilityMonitor
from semantic_stash.maintenance.rebuild import RebuildOrchestrator
from semantic_stash.models import ModelType
from semantic_stash.storage.models import EmbeddingRecord, RawItemRow


def add_item(database, item_id, model=LightweightEmbedding.MODEL_ID, dimension=256):
    database.raw.add(
        RawItemRow(
            id=item_id,
            type="link",
            payload="https://github.com",
            description="GitHub homepage",
            created_at="2024-01-01T00:00:00+00:00",
            last_accessed_at="2024-01-01T00:00:00+00:00",
        )
    )
    database.embeddings.add(
        EmbeddingRecord(
            id=item_id,
            embedding_model=model,
            vector=[0.1] * dimension,
            created_at="2024-01-01T00:00:00+00:00",
        )
    )


@pytest.fixture
def orchestrator(manager, sink):
    return RebuildOrchestrator(manager, sink=sink)


@pytest.fixture
def monitor(manager, orchestrator):
    return CompatibilityMonitor(manager, orchestrator)


@pytest.mark.asyncio
async def test_empty_table_is_compatible(database, monitor, sink):
    assert await monitor.ensure_compatible(database) is False
    assert sink.started == []


@pytest.mark.asyncio
async def test_matching_rows_are_left_alone(database, monitor, sink):
    add_item(database, "a")

    assert await monitor.ensure_compatible(database) is False
    assert sink.started == []


@pytest.mark.asyncio
async def test_model_change_triggers_rebuild(database, manager, monitor):
    add_item(database, "a")
    add_item(database, "b")
    await manager.set_model_type(ModelType.SENTENCE_ENCODER)

    assert await monitor.ensure_compatible(database) is True

    records = database.embeddings.all()
    assert len(records) == 2
    assert all(r.embedding_model == manager.current_model_id for r in records)
    assert all(r.dimension == manager.current_dimensions for r in records)


@pytest.mark.asyncio
async def test_same_tag_other_dimension_triggers_rebuild(database, monitor):
    add_item(database, "a", dimension=128)

    assert await monitor.ensure_compatible(database) is True
    assert database.embeddings.sample().dimension == 256


@pytest.mark.asyncio
async def test_missing_table_triggers_rebuild(database, monitor):
    add_item(database, "a")
    database.embeddings.drop()

    assert await monitor.ensure_compatible(database) is True
    assert database.embeddings.count() == 1


@pytest.mark.asyncio
async def test_skipped_while_rebuild_running(database, monitor, orchestrator):
    add_item(database, "a", model="old-model@1")
    orchestrator.rebuild_all = AsyncMock()
    assert orchestrator.lock.try_acquire()

    try:
        assert await monitor.ensure_compatible(database) is False
    finally:
        orchestrator.lock.release()

    orchestrator.rebuild_all.assert_not_called()


@pytest.mark.asyncio
async def test_compatible_after_check(database, monitor, orchestrator):
    """A second check right after a rebuild finds nothing to do."""
    add_item(database, "a", model="old-model@1")

    assert await monitor.ensure_compatible(database) is True
    assert await monitor.ensure_compatible(database) is False
