"""
Storage protocol definitions for the raw and embedding tables.

These protocols define the interface that storage implementations must provide.
They are implementation-agnostic and can be backed by various stores
(SQLite via SQLAlchemy, Qdrant, in-memory, etc.). Neither protocol offers an
update primitive: rows are replaced by delete-then-insert.

Backends translate "table/object not found" failures into
``StorageCorruptionError``.
"""

from typing import Any, Dict, List, Optional, Protocol

from semantic_stash.storage.models import EmbeddingMatch, EmbeddingRecord, RawItemRow


class RawItemStore(Protocol):
    """
    Protocol for the ``items_raw`` table, the source of truth for items.
    """

    def add(self, row: RawItemRow) -> None:
        """
        Insert a row.

        Raises:
            StorageWriteError: If the row cannot be written (e.g. duplicate id)
        """
        ...

    def get(self, item_id: str) -> Optional[RawItemRow]:
        """
        Retrieve a row by id.

        Returns:
            The row if found, None otherwise
        """
        ...

    def all(self) -> List[RawItemRow]:
        """Return every row, unfiltered."""
        ...

    def delete(self, item_id: str) -> bool:
        """
        Delete a row by id.

        Returns:
            True if a row was deleted, False if none matched
        """
        ...

    def search_text(self, pattern: str, normalize_fields: bool = False) -> List[RawItemRow]:
        """
        Case-insensitive substring match against description and payload.

        Args:
            pattern: Lowercase pattern to look for
            normalize_fields: Strip whitespace, underscores and hyphens from
                the fields before matching

        Returns:
            Matching rows
        """
        ...

    def count(self) -> int:
        """Number of rows."""
        ...

    def recreate(self) -> None:
        """Drop the table and create it again, empty."""
        ...


class EmbeddingStore(Protocol):
    """
    Protocol for the ``items_embeddings`` table.

    Rows are derived data and may be dropped and regenerated at any time.
    """

    def add(self, record: EmbeddingRecord) -> None:
        """Insert an embedding row."""
        ...

    def get(self, item_id: str) -> Optional[EmbeddingRecord]:
        """
        Retrieve the embedding row of an item.

        Returns:
            The row if found, None otherwise
        """
        ...

    def delete(self, item_id: str) -> bool:
        """
        Delete the embedding row of an item.

        Returns:
            True if a row was deleted
        """
        ...

    def sample(self) -> Optional[EmbeddingRecord]:
        """
        Return any one row, or None when the table is empty.

        Raises:
            StorageCorruptionError: If the table is missing
        """
        ...

    def all(self) -> List[EmbeddingRecord]:
        """Return every row."""
        ...

    def search(self, vector: List[float], limit: int = 10) -> List[EmbeddingMatch]:
        """
        Nearest-neighbour search by cosine similarity.

        Args:
            vector: Query vector
            limit: Maximum number of hits

        Returns:
            Hits sorted by score, highest first
        """
        ...

    def count(self) -> int:
        """Number of rows."""
        ...

    def recreate(self, dimension: Optional[int] = None) -> None:
        """
        Drop the table and create it again, empty.

        Args:
            dimension: Vector size, for backends with a fixed-size schema
        """
        ...

    def create_staging(self, dimension: int) -> "EmbeddingStore":
        """
        Create an empty staging table beside this one.

        A leftover staging table from an interrupted rebuild is discarded.
        """
        ...

    def promote(self, staging: "EmbeddingStore") -> None:
        """
        Atomically replace this table's rows with the staging rows and drop
        the staging table.
        """
        ...

    def drop(self) -> None:
        """Drop the table entirely."""
        ...


class ItemDatabase(Protocol):
    """
    The two-table store plus a small marker table.

    ``raw`` and ``embeddings`` are related only by the shared item id.
    """

    raw: RawItemStore
    embeddings: EmbeddingStore

    def initialize(self) -> None:
        """Create missing tables."""
        ...

    def get_marker(self, key: str) -> Optional[str]:
        """Read a store marker (schema version, embedding model, ...)."""
        ...

    def set_marker(self, key: str, value: str) -> None:
        """Write a store marker."""
        ...

    def legacy_rows(self) -> List[Dict[str, Any]]:
        """
        Rows of a pre-split single ``items`` table, if one exists.

        Returns:
            Raw dicts (id, type, payload, description, timestamps,
            embedding_model, vector); empty when there is no legacy table
        """
        ...

    def reset(self) -> None:
        """Destroy every table and recreate the empty layout."""
        ...

    def close(self) -> None:
        """Release connections."""
        ...
