from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

ItemType = Literal["link", "query", "kusto_query", "text"]

UNKNOWN_MODEL = "unknown"


class ModelType(str, Enum):
    """Embedding backends a user can select."""

    LIGHTWEIGHT = "lightweight"
    SENTENCE_ENCODER = "sentence-encoder"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class NewItem(BaseModel):
    """Fields supplied by the caller when adding an item."""

    type: ItemType
    payload: str
    description: str

    @field_validator("payload", "description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value


class ItemUpdate(BaseModel):
    """Partial update of an item. Unset fields are left unchanged."""

    type: Optional[ItemType] = None
    payload: Optional[str] = None
    description: Optional[str] = None


class Item(BaseModel):
    """
    An item as returned to callers.

    Carries the resolved embedding model tag but never the vector itself.
    """

    id: str
    type: ItemType
    payload: str
    description: str
    created_at: str
    last_accessed_at: str
    embedding_model: Optional[str] = Field(
        default=None, description="Model that produced this item's embedding"
    )


class ImportProgress(BaseModel):
    current: int
    total: int
    success: int
    errors: int


class ImportResult(BaseModel):
    success_count: int = 0
    error_count: int = 0
    errors: List[str] = Field(default_factory=list)

    @property
    def message(self) -> str:
        message = f"Import completed: {self.success_count} items imported successfully"
        if self.error_count:
            message += f", {self.error_count} failed"
        return message


class RebuildStarted(BaseModel):
    model: str
    total: int
    started_at: str = Field(default_factory=utc_now_iso)


class RebuildProgress(BaseModel):
    current: int
    total: int
    success_count: int
    error_count: int


class RebuildSummary(BaseModel):
    total: int
    success_count: int
    error_count: int
    model: str
    dimension: int


class RebuildFailure(BaseModel):
    error: str
    model: Optional[str] = None
