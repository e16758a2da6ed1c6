"""
Qdrant-based embedding storage.

Embedding rows live in a Qdrant collection reached through an alias, so a
rebuild can fill a fresh collection and switch the alias over in one atomic
operation. Works with Qdrant's embedded local mode (``path=...``) as well as
a Qdrant server.
"""

import logging
import uuid
from contextlib import contextmanager
from typing import Iterator, List, Optional

from qdrant_client import QdrantClient
from qdrant_client.models import (
    CreateAlias,
    CreateAliasOperation,
    DeleteAlias,
    DeleteAliasOperation,
    Distance,
    PointStruct,
    VectorParams,
)

from semantic_stash.errors import StorageCorruptionError, is_not_found_error
from semantic_stash.storage.models import EmbeddingMatch, EmbeddingRecord
from semantic_stash.storage.protocols import EmbeddingStore

logger = logging.getLogger(__name__)

# Point ids must be UUIDs or integers; item ids are arbitrary strings
POINT_NAMESPACE = uuid.UUID("9b1f4a0e-2f4c-4a8e-9a53-1d2e6c7b5f10")


def point_id(item_id: str) -> str:
    return str(uuid.uuid5(POINT_NAMESPACE, item_id))


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Map missing-collection errors to StorageCorruptionError."""
    try:
        yield
    except StorageCorruptionError:
        raise
    except Exception as e:
        if is_not_found_error(e):
            raise StorageCorruptionError(f"{action}: {e}") from e
        raise


class QdrantEmbeddingStore:
    """
    Qdrant implementation of the EmbeddingStore protocol.

    ``name`` is an alias; the physical collection behind it is named
    ``<name>_<hex>`` and replaced wholesale on every promote.

    Example:
        client = QdrantClient(path="/data/stash/vectors")
        embeddings = QdrantEmbeddingStore(client)
        database = SQLAlchemyItemDatabase(engine, embeddings=embeddings)
    """

    def __init__(self, client: QdrantClient, name: str = "items_embeddings"):
        """
        Initialize the Qdrant embedding store.

        Args:
            client: Connected Qdrant client (local or remote)
            name: Alias under which the live collection is addressed
        """
        self.client = client
        self.name = name

    @classmethod
    def local(cls, path: str, name: str = "items_embeddings") -> "QdrantEmbeddingStore":
        """Open an embedded, on-disk Qdrant store."""
        return cls(QdrantClient(path=path), name=name)

    def _collection(self) -> Optional[str]:
        """Physical collection currently behind the alias."""
        for alias in self.client.get_aliases().aliases:
            if alias.alias_name == self.name:
                return alias.collection_name
        return None

    def _require_collection(self) -> Optional[str]:
        """
        Physical collection behind the alias, or None when the table was never
        created. An alias pointing at a vanished collection is corruption.
        """
        collection = self._collection()
        if collection is not None and not self.client.collection_exists(collection):
            raise StorageCorruptionError(
                f"Collection {collection} behind alias {self.name} not found"
            )
        return collection

    def _create_collection(self, dimension: int) -> str:
        collection = f"{self.name}_{uuid.uuid4().hex[:12]}"
        self.client.create_collection(
            collection_name=collection,
            vectors_config=VectorParams(size=dimension, distance=Distance.COSINE),
        )
        logger.info(f"Created Qdrant collection {collection} ({dimension} dimensions)")
        return collection

    def _point_to_record(self, point) -> EmbeddingRecord:
        payload = point.payload or {}
        return EmbeddingRecord(
            id=payload["id"],
            embedding_model=payload["embedding_model"],
            vector=list(point.vector),
            created_at=payload["created_at"],
        )

    def add(self, record: EmbeddingRecord) -> None:
        with translate_errors(f"{self.name} insert failed"):
            collection = self._require_collection()
            if collection is None:
                self.recreate(record.dimension)
                collection = self._collection()

            self.client.upsert(
                collection_name=collection,
                points=[
                    PointStruct(
                        id=point_id(record.id),
                        vector=record.vector,
                        payload={
                            "id": record.id,
                            "embedding_model": record.embedding_model,
                            "created_at": record.created_at,
                        },
                    )
                ],
            )
        logger.debug(f"Inserted embedding for item {record.id} into {collection}")

    def get(self, item_id: str) -> Optional[EmbeddingRecord]:
        with translate_errors(f"{self.name} read failed"):
            collection = self._require_collection()
            if collection is None:
                return None
            points = self.client.retrieve(
                collection_name=collection,
                ids=[point_id(item_id)],
                with_vectors=True,
                with_payload=True,
            )
        return self._point_to_record(points[0]) if points else None

    def delete(self, item_id: str) -> bool:
        with translate_errors(f"{self.name} delete failed"):
            collection = self._require_collection()
            if collection is None:
                return False
            existing = self.client.retrieve(collection_name=collection, ids=[point_id(item_id)])
            if not existing:
                return False
            self.client.delete(collection_name=collection, points_selector=[point_id(item_id)])
        return True

    def sample(self) -> Optional[EmbeddingRecord]:
        with translate_errors(f"{self.name} read failed"):
            collection = self._require_collection()
            if collection is None:
                return None
            points, _ = self.client.scroll(
                collection_name=collection, limit=1, with_vectors=True, with_payload=True
            )
        return self._point_to_record(points[0]) if points else None

    def all(self) -> List[EmbeddingRecord]:
        records: List[EmbeddingRecord] = []
        with translate_errors(f"{self.name} read failed"):
            collection = self._require_collection()
            if collection is None:
                return records
            offset = None
            while True:
                points, offset = self.client.scroll(
                    collection_name=collection,
                    limit=256,
                    offset=offset,
                    with_vectors=True,
                    with_payload=True,
                )
                records.extend(self._point_to_record(point) for point in points)
                if offset is None:
                    break
        return records

    def search(self, vector: List[float], limit: int = 10) -> List[EmbeddingMatch]:
        with translate_errors(f"{self.name} search failed"):
            collection = self._require_collection()
            if collection is None:
                return []
            hits = self.client.query_points(
                collection_name=collection,
                query=vector,
                limit=limit,
                with_payload=True,
                with_vectors=False,
            ).points

        logger.debug(f"{len(hits)} hits found in {collection}")
        return [
            EmbeddingMatch(
                id=hit.payload["id"],
                embedding_model=hit.payload["embedding_model"],
                score=hit.score,
            )
            for hit in hits
        ]

    def count(self) -> int:
        with translate_errors(f"{self.name} read failed"):
            collection = self._require_collection()
            if collection is None:
                return 0
            return self.client.count(collection_name=collection, exact=True).count

    def recreate(self, dimension: Optional[int] = None) -> None:
        """
        Drop the collection; with a ``dimension``, create a fresh empty one.

        Without a dimension the table is recreated lazily on the first insert,
        since Qdrant collections have a fixed vector size.
        """
        self.drop()
        if dimension is not None:
            self._switch_alias(self._create_collection(dimension))
        logger.info(f"Recreated {self.name}")

    def create_staging(self, dimension: int) -> "QdrantEmbeddingStore":
        staging = QdrantEmbeddingStore(self.client, name=f"{self.name}_staging")
        if staging._collection() is not None:
            logger.warning(f"Discarding leftover staging collection {staging.name}")
        staging.recreate(dimension)
        return staging

    def promote(self, staging: EmbeddingStore) -> None:
        if not isinstance(staging, QdrantEmbeddingStore):
            raise TypeError("Can only promote a Qdrant staging collection")

        new_collection = staging._collection()
        if new_collection is None:
            raise StorageCorruptionError(f"Staging collection {staging.name} not found")

        old_collection = self._collection()
        self.client.update_collection_aliases(
            change_aliases_operations=[
                *self._delete_alias_ops(),
                DeleteAliasOperation(delete_alias=DeleteAlias(alias_name=staging.name)),
                CreateAliasOperation(
                    create_alias=CreateAlias(collection_name=new_collection, alias_name=self.name)
                ),
            ]
        )
        if old_collection is not None and self.client.collection_exists(old_collection):
            self.client.delete_collection(old_collection)
        logger.info(f"Promoted {new_collection} to {self.name}")

    def drop(self) -> None:
        collection = self._collection()
        if collection is None:
            return
        self.client.update_collection_aliases(change_aliases_operations=self._delete_alias_ops())
        if self.client.collection_exists(collection):
            self.client.delete_collection(collection)

    def _delete_alias_ops(self) -> list:
        if self._collection() is None:
            return []
        return [DeleteAliasOperation(delete_alias=DeleteAlias(alias_name=self.name))]

    def _switch_alias(self, collection: str) -> None:
        self.client.update_collection_aliases(
            change_aliases_operations=[
                *self._delete_alias_ops(),
                CreateAliasOperation(
                    create_alias=CreateAlias(collection_name=collection, alias_name=self.name)
                ),
            ]
        )

    def close(self) -> None:
        self.client.close()
