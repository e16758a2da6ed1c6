"""Shared fixtures: fake backends, event recorder and store builders."""

from typing import List

import pytest

from semantic_stash.config import PreferencesStore
from semantic_stash.embeddings.lightweight import LightweightEmbedding
from semantic_stash.embeddings.manager import EmbeddingManager
from semantic_stash.item_store import ItemStore
from semantic_stash.models import ModelType
from semantic_stash.storage.memory import InMemoryItemDatabase


class FakeEncoder:
    """512-dimensional stand-in for the sentence encoder (no download)."""

    def __init__(self, dimension: int = 512, model_id: str = "fake-encoder@test"):
        self._inner = LightweightEmbedding(dimension=dimension)
        self._model_id = model_id
        self.calls = 0

    @property
    def dimension(self) -> int:
        return self._inner.dimension

    @property
    def model_id(self) -> str:
        return self._model_id

    async def embed(self, text: str) -> List[float]:
        self.calls += 1
        return self._inner.embed_sync(text)

    def similarity(self, vector_a: List[float], vector_b: List[float]) -> float:
        return self._inner.similarity(vector_a, vector_b)


class RecordingSink:
    """Collects rebuild events."""

    def __init__(self):
        self.started = []
        self.progress = []
        self.complete = []
        self.errors = []

    def on_rebuild_started(self, event):
        self.started.append(event)

    def on_rebuild_progress(self, event):
        self.progress.append(event)

    def on_rebuild_complete(self, event):
        self.complete.append(event)

    def on_rebuild_error(self, event):
        self.errors.append(event)


@pytest.fixture
def preferences_store(tmp_path):
    """Preferences file in a temporary directory."""
    return PreferencesStore(tmp_path / "preferences.json")


@pytest.fixture
def backend_factories():
    """Lightweight backend plus a fake heavy backend."""
    return {
        ModelType.LIGHTWEIGHT: LightweightEmbedding,
        ModelType.SENTENCE_ENCODER: FakeEncoder,
    }


@pytest.fixture
def manager(preferences_store, backend_factories):
    """Embedding manager using the fake backends."""
    return EmbeddingManager(preferences_store, backend_factories=backend_factories)


@pytest.fixture
def database():
    """Fresh in-memory two-table database."""
    database = InMemoryItemDatabase()
    database.initialize()
    return database


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_store(database, manager, sink):
    """Build an initialized ItemStore over the in-memory database."""

    async def _make(**kwargs) -> ItemStore:
        return await ItemStore.create(
            kwargs.pop("database", database),
            kwargs.pop("manager", manager),
            sink=kwargs.pop("sink", sink),
        )

    return _make


@pytest.fixture
def github_item():
    return {
        "type": "link",
        "payload": "https://github.com",
        "description": "GitHub homepage",
    }
