"""
Exception hierarchy for semantic-stash.

Write paths (add/update/delete/import) raise these to the caller. Read paths
(search, listing) log them and degrade instead.
"""


class SemanticStashError(Exception):
    """Base class for all semantic-stash errors."""


class ModelNotInitializedError(SemanticStashError):
    """An embedding was requested before any backend was loaded."""


class ModelLoadError(SemanticStashError):
    """The requested embedding backend could not be loaded."""


class EmbeddingGenerationError(SemanticStashError):
    """The active backend failed to embed a text."""


class StorageCorruptionError(SemanticStashError):
    """A table or its backing object is missing from the store."""


class StorageWriteError(SemanticStashError):
    """A row could not be written to the store."""


class ItemNotFoundError(SemanticStashError):
    """No raw row exists for the requested item id."""

    def __init__(self, item_id: str):
        super().__init__(f"Item with id {item_id} not found")
        self.item_id = item_id


class ItemValidationError(SemanticStashError):
    """An item is missing required fields or has invalid values."""


class UnsupportedFormatError(SemanticStashError):
    """Export/import was asked for a format other than json or csv."""


_NOT_FOUND_MARKERS = (
    "not found",
    "no such table",
    "does not exist",
    "object at location",
)


def is_not_found_error(error: BaseException) -> bool:
    """
    Whether a backend error means a table/collection/file has gone missing.

    SQLite reports "no such table", Qdrant reports "Collection ... not found"
    (local mode) or a 404 (server mode).
    """
    if getattr(error, "status_code", None) == 404:
        return True
    message = str(error).lower()
    return any(marker in message for marker in _NOT_FOUND_MARKERS)
