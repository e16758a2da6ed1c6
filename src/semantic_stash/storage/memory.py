"""
In-memory storage implementation.

Provides dict-backed raw and embedding tables with cosine similarity search,
suitable for testing and development. Data is lost on restart.
"""

import logging
from typing import Any, Dict, List, Optional

from semantic_stash.embeddings.similarity import rank_by_similarity
from semantic_stash.errors import StorageCorruptionError, StorageWriteError
from semantic_stash.search import normalize_for_search
from semantic_stash.storage.models import EmbeddingMatch, EmbeddingRecord, RawItemRow

logger = logging.getLogger(__name__)


class InMemoryRawItemStore:
    """In-memory implementation of the RawItemStore protocol."""

    def __init__(self):
        self._rows: Dict[str, RawItemRow] = {}

    def add(self, row: RawItemRow) -> None:
        if row.id in self._rows:
            raise StorageWriteError(f"Item {row.id} already exists")
        self._rows[row.id] = row.model_copy()
        logger.debug(f"Inserted raw item {row.id}: '{row.description[:50]}'")

    def get(self, item_id: str) -> Optional[RawItemRow]:
        row = self._rows.get(item_id)
        return row.model_copy() if row else None

    def all(self) -> List[RawItemRow]:
        return [row.model_copy() for row in self._rows.values()]

    def delete(self, item_id: str) -> bool:
        return self._rows.pop(item_id, None) is not None

    def search_text(self, pattern: str, normalize_fields: bool = False) -> List[RawItemRow]:
        pattern = pattern.lower()
        results = []
        for row in self._rows.values():
            fields = [row.description.lower(), row.payload.lower()]
            if normalize_fields:
                fields = [normalize_for_search(field) for field in fields]
            if any(pattern in field for field in fields):
                results.append(row.model_copy())
        return results

    def count(self) -> int:
        return len(self._rows)

    def recreate(self) -> None:
        count = len(self._rows)
        self._rows.clear()
        logger.info(f"Recreated raw table ({count} rows dropped)")


class InMemoryEmbeddingStore:
    """
    In-memory implementation of the EmbeddingStore protocol.

    ``dropped`` simulates a missing table: reads raise
    ``StorageCorruptionError`` until the table is recreated.
    """

    def __init__(self, name: str = "items_embeddings"):
        self.name = name
        self._rows: Dict[str, EmbeddingRecord] = {}
        self._staging: Optional["InMemoryEmbeddingStore"] = None
        self.dropped = False

    def _check(self) -> None:
        if self.dropped:
            raise StorageCorruptionError(f"Table {self.name} not found")

    def add(self, record: EmbeddingRecord) -> None:
        if self.dropped:
            # Inserting into a missing table recreates it
            self.dropped = False
        self._rows[record.id] = record.model_copy()

    def get(self, item_id: str) -> Optional[EmbeddingRecord]:
        self._check()
        record = self._rows.get(item_id)
        return record.model_copy() if record else None

    def delete(self, item_id: str) -> bool:
        self._check()
        return self._rows.pop(item_id, None) is not None

    def sample(self) -> Optional[EmbeddingRecord]:
        self._check()
        for record in self._rows.values():
            return record.model_copy()
        return None

    def all(self) -> List[EmbeddingRecord]:
        self._check()
        return [record.model_copy() for record in self._rows.values()]

    def search(self, vector: List[float], limit: int = 10) -> List[EmbeddingMatch]:
        self._check()
        candidates = [record for record in self._rows.values() if len(record.vector) == len(vector)]
        ranked = rank_by_similarity(vector, [record.vector for record in candidates], limit)
        results = [
            EmbeddingMatch(
                id=candidates[index].id,
                embedding_model=candidates[index].embedding_model,
                score=score,
            )
            for index, score in ranked
        ]
        logger.debug(f"{len(results)} vector hits found")
        return results

    def count(self) -> int:
        self._check()
        return len(self._rows)

    def recreate(self, dimension: Optional[int] = None) -> None:
        self._rows.clear()
        self.dropped = False
        logger.info(f"Recreated {self.name}")

    def create_staging(self, dimension: int) -> "InMemoryEmbeddingStore":
        if self._staging is not None:
            logger.warning(f"Discarding leftover staging table for {self.name}")
        self._staging = InMemoryEmbeddingStore(name=f"{self.name}_staging")
        return self._staging

    def promote(self, staging: "InMemoryEmbeddingStore") -> None:
        self._rows = dict(staging._rows)
        self.dropped = False
        staging.drop()
        self._staging = None
        logger.info(f"Promoted {staging.name} to {self.name} ({len(self._rows)} rows)")

    def drop(self) -> None:
        self._rows.clear()
        self.dropped = True


class InMemoryItemDatabase:
    """
    In-memory implementation of the ItemDatabase protocol.

    Example:
        >>> database = InMemoryItemDatabase()
        >>> database.initialize()
        >>> store = await ItemStore.create(database, manager)
    """

    def __init__(self, legacy_rows: Optional[List[Dict[str, Any]]] = None):
        self.raw = InMemoryRawItemStore()
        self.embeddings = InMemoryEmbeddingStore()
        self._markers: Dict[str, str] = {}
        self._legacy_rows = list(legacy_rows or [])

        logger.info("InMemoryItemDatabase initialized")

    def initialize(self) -> None:
        if self.embeddings.dropped:
            self.embeddings.recreate()

    def get_marker(self, key: str) -> Optional[str]:
        return self._markers.get(key)

    def set_marker(self, key: str, value: str) -> None:
        self._markers[key] = value

    def legacy_rows(self) -> List[Dict[str, Any]]:
        return [dict(row) for row in self._legacy_rows]

    def reset(self) -> None:
        self.raw.recreate()
        self.embeddings.recreate()
        self._markers.clear()
        self._legacy_rows.clear()
        logger.info("In-memory database reset")

    def close(self) -> None:
        pass
