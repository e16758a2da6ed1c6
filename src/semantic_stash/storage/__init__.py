"""
Storage for the two-table item store.

Provides protocol definitions for the raw and embedding tables. Implementations
can use various databases (SQLite, Qdrant, in-memory, etc.) as long as they
satisfy the protocol interface.
"""

from semantic_stash.storage.factory import open_database
from semantic_stash.storage.memory import InMemoryItemDatabase
from semantic_stash.storage.models import EmbeddingMatch, EmbeddingRecord, RawItemRow
from semantic_stash.storage.protocols import EmbeddingStore, ItemDatabase, RawItemStore

__all__ = [
    "RawItemStore",
    "EmbeddingStore",
    "ItemDatabase",
    "RawItemRow",
    "EmbeddingRecord",
    "EmbeddingMatch",
    "InMemoryItemDatabase",
    "open_database",
]

try:
    from semantic_stash.storage.sqlalchemy import SQLAlchemyItemDatabase  # noqa: F401

    __all__.append("SQLAlchemyItemDatabase")
except ImportError:
    pass

try:
    from semantic_stash.storage.qdrant import QdrantEmbeddingStore  # noqa: F401

    __all__.append("QdrantEmbeddingStore")
except ImportError:
    pass
