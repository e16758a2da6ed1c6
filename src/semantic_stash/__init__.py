"""
semantic-stash: Local semantic search store for short text items.

Core components:
- item_store: The ItemStore façade (add, update, search, export/import, ...)
- embeddings: Embedding backends and the manager that selects between them
- storage: Raw and embedding tables (in-memory, SQLite, Qdrant)
- maintenance: Compatibility checks, rebuilds and migrations
- models: Core data models (Item, NewItem, ImportResult, ...)
"""

__version__ = "0.1.0"

from semantic_stash.config import StoreConfig
from semantic_stash.errors import (
    EmbeddingGenerationError,
    ItemNotFoundError,
    ItemValidationError,
    ModelLoadError,
    ModelNotInitializedError,
    SemanticStashError,
    StorageCorruptionError,
    StorageWriteError,
    UnsupportedFormatError,
)
from semantic_stash.item_store import ItemStore
from semantic_stash.maintenance import CallbackRebuildEventSink, RebuildEventSink
from semantic_stash.models import (
    ImportProgress,
    ImportResult,
    Item,
    ItemUpdate,
    ModelType,
    NewItem,
    RebuildFailure,
    RebuildProgress,
    RebuildStarted,
    RebuildSummary,
)

__all__ = [
    "__version__",
    "ItemStore",
    "StoreConfig",
    # Models
    "Item",
    "NewItem",
    "ItemUpdate",
    "ModelType",
    "ImportProgress",
    "ImportResult",
    "RebuildStarted",
    "RebuildProgress",
    "RebuildSummary",
    "RebuildFailure",
    # Rebuild events
    "RebuildEventSink",
    "CallbackRebuildEventSink",
    # Errors
    "SemanticStashError",
    "ModelNotInitializedError",
    "ModelLoadError",
    "EmbeddingGenerationError",
    "StorageCorruptionError",
    "StorageWriteError",
    "ItemNotFoundError",
    "ItemValidationError",
    "UnsupportedFormatError",
]
