"""Qdrant-specific behaviour: alias switching and point ids."""

import pytest

pytest.importorskip("qdrant_client")

from qdrant_client import QdrantClient  # noqa: E402

from semantic_stash.storage.models import EmbeddingRecord  # noqa: E402
from semantic_stash.storage.qdrant import QdrantEmbeddingStore, point_id  # noqa: E402


def record(item_id, vector):
    return EmbeddingRecord(
        id=item_id,
        embedding_model="fake-encoder@test",
        vector=vector,
        created_at="2024-01-01T00:00:00+00:00",
    )


@pytest.fixture
def client():
    client = QdrantClient(location=":memory:")
    yield client
    client.close()


@pytest.fixture
def store(client):
    return QdrantEmbeddingStore(client)


def test_point_id_is_stable_uuid():
    assert point_id("item-1") == point_id("item-1")
    assert point_id("item-1") != point_id("item-2")
    assert len(point_id("item-1")) == 36


def test_first_insert_creates_aliased_collection(client, store):
    store.add(record("a", [1.0, 0.0, 0.0]))

    aliases = {alias.alias_name: alias.collection_name for alias in client.get_aliases().aliases}
    assert "items_embeddings" in aliases
    assert aliases["items_embeddings"].startswith("items_embeddings_")


def test_promote_switches_alias_and_removes_old_collection(client, store):
    store.add(record("a", [1.0, 0.0, 0.0]))
    old_collection = store._collection()

    staging = store.create_staging(dimension=4)
    staging.add(record("a", [1.0, 0.0, 0.0, 0.0]))
    new_collection = staging._collection()
    store.promote(staging)

    assert store._collection() == new_collection
    assert not client.collection_exists(old_collection)
    assert staging._collection() is None
    assert store.sample().dimension == 4


def test_drop_removes_collection(client, store):
    store.add(record("a", [1.0, 0.0, 0.0]))
    collection = store._collection()

    store.drop()

    assert store._collection() is None
    assert not client.collection_exists(collection)
    assert store.count() == 0


def test_local_path_mode_persists(tmp_path):
    store = QdrantEmbeddingStore.local(str(tmp_path / "vectors"))
    store.add(record("a", [1.0, 0.0, 0.0]))
    store.close()

    reopened = QdrantEmbeddingStore.local(str(tmp_path / "vectors"))
    try:
        assert reopened.get("a") is not None
    finally:
        reopened.close()
