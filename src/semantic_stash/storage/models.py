"""
Models for the two persisted tables.

``items_raw`` holds the source of truth for every item; ``items_embeddings``
holds derived, disposable vectors keyed by the same id.
"""

from typing import List, Optional

from pydantic import BaseModel

from semantic_stash.models import Item, ItemType


class RawItemRow(BaseModel):
    """A row of the ``items_raw`` table."""

    id: str
    type: ItemType
    payload: str
    description: str
    created_at: str
    last_accessed_at: str

    def embedding_text(self) -> str:
        """Text that is embedded for this item."""
        return f"{self.payload} {self.description}"

    def to_item(self, embedding_model: Optional[str] = None) -> Item:
        return Item(**self.model_dump(), embedding_model=embedding_model)


class EmbeddingRecord(BaseModel):
    """A row of the ``items_embeddings`` table."""

    id: str
    embedding_model: str
    vector: List[float]
    created_at: str

    @property
    def dimension(self) -> int:
        return len(self.vector)


class EmbeddingMatch(BaseModel):
    """A nearest-neighbour hit (id, tag and score only)."""

    id: str
    embedding_model: str
    score: float
