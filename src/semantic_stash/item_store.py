"""
ItemStore: the public façade over the two-table store.

Every write goes to the raw table first and then to the embeddings table,
tagged with the active model. Reads lazily repair individual stale
embeddings; a model change repairs the whole table through a rebuild.
"""

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from pydantic import BaseModel, ValidationError

from semantic_stash.config import StoreConfig
from semantic_stash.embeddings.manager import EmbeddingManager, ModelState
from semantic_stash.errors import (
    EmbeddingGenerationError,
    ItemNotFoundError,
    ItemValidationError,
    StorageCorruptionError,
    StorageWriteError,
)
from semantic_stash.maintenance.compatibility import CompatibilityMonitor
from semantic_stash.maintenance.migrations import migrate
from semantic_stash.maintenance.rebuild import RebuildEventSink, RebuildOrchestrator
from semantic_stash.models import (
    UNKNOWN_MODEL,
    ImportProgress,
    ImportResult,
    Item,
    ItemUpdate,
    ModelType,
    NewItem,
    RebuildSummary,
    utc_now_iso,
)
from semantic_stash.search import fuzzy_text_search, merge_results
from semantic_stash.storage.factory import open_database
from semantic_stash.storage.models import EmbeddingRecord, RawItemRow
from semantic_stash.storage.protocols import ItemDatabase
from semantic_stash.transfer import (
    check_required_fields,
    export_rows,
    normalize_imported_item,
    parse_import,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ImportProgress], None]


@contextmanager
def storage_write(action: str) -> Iterator[None]:
    """Wrap backend failures of a write in StorageWriteError."""
    try:
        yield
    except StorageWriteError:
        raise
    except Exception as e:
        raise StorageWriteError(f"{action}: {e}") from e


def _validate(data: Dict[str, Any]) -> NewItem:
    try:
        return NewItem.model_validate(data)
    except ValidationError as e:
        raise ItemValidationError(f"Invalid item: {e}") from e


class ItemStore:
    """
    Semantic item store.

    Example:
        >>> store = await ItemStore.open(StoreConfig(storage_path=Path("~/.stash")))
        >>> item = await store.add_item(
        ...     NewItem(type="link", payload="https://github.com", description="GitHub homepage")
        ... )
        >>> [found.id for found in await store.search_items("github")]
        [item.id]
    """

    def __init__(
        self,
        database: ItemDatabase,
        manager: EmbeddingManager,
        sink: Optional[RebuildEventSink] = None,
        search_limit: int = 10,
        recent_limit: int = 5,
    ):
        """
        Wire the store together. Prefer ``create`` or ``open``, which also
        initialize tables and run migrations.

        Args:
            database: Raw and embedding tables
            manager: Embedding backend owner
            sink: Receiver of rebuild events
            search_limit: Maximum search results and vector top-K
            recent_limit: Default size of the recent items list
        """
        self.database = database
        self.manager = manager
        self.orchestrator = RebuildOrchestrator(manager, sink=sink)
        self.monitor = CompatibilityMonitor(manager, self.orchestrator)
        self.search_limit = search_limit
        self.recent_limit = recent_limit

    @classmethod
    async def create(
        cls,
        database: ItemDatabase,
        manager: EmbeddingManager,
        sink: Optional[RebuildEventSink] = None,
        config: Optional[StoreConfig] = None,
    ) -> "ItemStore":
        """Initialize tables, migrate legacy data and load the preferred model."""
        limits = {}
        if config is not None:
            limits = {"search_limit": config.search_limit, "recent_limit": config.recent_limit}
        store = cls(database, manager, sink=sink, **limits)

        database.initialize()
        migrate(database)
        await manager.ensure_initialized()
        logger.info(f"ItemStore ready (model={manager.current_model_id})")
        return store

    @classmethod
    async def open(
        cls, config: StoreConfig, sink: Optional[RebuildEventSink] = None
    ) -> "ItemStore":
        """Open the store described by ``config``, creating it if needed."""
        database = open_database(config)
        manager = EmbeddingManager.from_config(config)
        return await cls.create(database, manager, sink=sink, config=config)

    @property
    def is_rebuilding(self) -> bool:
        return self.orchestrator.is_running

    async def _embed(self, text: str) -> List[float]:
        try:
            await self.manager.ensure_initialized()
            return await self.manager.generate_embedding(text)
        except Exception as e:
            raise EmbeddingGenerationError(f"Failed to generate embedding: {e}") from e

    def _embedding_record(self, item_id: str, vector: List[float]) -> EmbeddingRecord:
        return EmbeddingRecord(
            id=item_id,
            embedding_model=self.manager.current_model_id,
            vector=vector,
            created_at=utc_now_iso(),
        )

    def _get_row(self, item_id: str) -> RawItemRow:
        row = self.database.raw.get(item_id)
        if row is None:
            raise ItemNotFoundError(item_id)
        return row

    def _replace_row(self, row: RawItemRow) -> None:
        with storage_write(f"Failed to update item {row.id}"):
            self.database.raw.delete(row.id)
            self.database.raw.add(row)

    async def _resolve(self, row: RawItemRow) -> Item:
        record = await self.ensure_embedding_current(row.id)
        return row.to_item(record.embedding_model if record else UNKNOWN_MODEL)

    # ------------------------------------------------------------------
    # Item lifecycle
    # ------------------------------------------------------------------

    async def add_item(self, item: Union[NewItem, Dict[str, Any]]) -> Item:
        """
        Store a new item and its embedding.

        Raises:
            ItemValidationError: Missing or invalid type, payload or description
            EmbeddingGenerationError: The embedding could not be generated
            StorageWriteError: Either table could not be written
        """
        new_item = item if isinstance(item, NewItem) else _validate(item)

        await self.monitor.ensure_compatible(self.database)
        vector = await self._embed(f"{new_item.payload} {new_item.description}")

        now = utc_now_iso()
        row = RawItemRow(
            id=str(uuid.uuid4()),
            type=new_item.type,
            payload=new_item.payload,
            description=new_item.description,
            created_at=now,
            last_accessed_at=now,
        )
        record = self._embedding_record(row.id, vector)

        with storage_write("Failed to add item"):
            self.database.raw.add(row)
            self.database.embeddings.add(record)

        logger.info(f"Added item {row.id} ({row.type}): '{row.description[:50]}'")
        return row.to_item(record.embedding_model)

    async def update_item(self, item_id: str, changes: Union[ItemUpdate, Dict[str, Any]]) -> Item:
        """
        Apply a partial update and refresh ``last_accessed_at``.

        The embedding is regenerated only when payload or description changed.

        Raises:
            ItemNotFoundError: No item with this id
            ItemValidationError: The merged item is invalid
        """
        if not isinstance(changes, ItemUpdate):
            try:
                changes = ItemUpdate.model_validate(changes)
            except ValidationError as e:
                raise ItemValidationError(f"Invalid update: {e}") from e

        row = self._get_row(item_id)
        updates = changes.model_dump(exclude_none=True)
        merged = _validate(
            {
                "type": updates.get("type", row.type),
                "payload": updates.get("payload", row.payload),
                "description": updates.get("description", row.description),
            }
        )
        content_changed = merged.payload != row.payload or merged.description != row.description

        updated = row.model_copy(
            update={**merged.model_dump(), "last_accessed_at": utc_now_iso()}
        )

        record = None
        if content_changed:
            await self.monitor.ensure_compatible(self.database)
            record = self._embedding_record(item_id, await self._embed(updated.embedding_text()))

        self._replace_row(updated)

        if record is None:
            logger.info(f"Updated item {item_id}")
            return await self._resolve(updated)

        with storage_write(f"Failed to update embedding of item {item_id}"):
            try:
                self.database.embeddings.delete(item_id)
            except StorageCorruptionError:
                pass
            self.database.embeddings.add(record)

        logger.info(f"Updated item {item_id} and regenerated its embedding")
        return updated.to_item(record.embedding_model)

    async def touch_item(self, item_id: str) -> Item:
        """
        Mark an item as used (selected or opened).

        Raises:
            ItemNotFoundError: No item with this id
        """
        row = self._get_row(item_id)
        touched = row.model_copy(update={"last_accessed_at": utc_now_iso()})
        self._replace_row(touched)
        logger.debug(f"Touched item {item_id}")
        return await self._resolve(touched)

    async def delete_item(self, item_id: str) -> None:
        """
        Delete an item from both tables.

        Raises:
            ItemNotFoundError: No raw row with this id
        """
        try:
            self.database.embeddings.delete(item_id)
        except StorageCorruptionError as e:
            logger.warning(f"Embeddings table unavailable while deleting {item_id}: {e}")

        with storage_write(f"Failed to delete item {item_id}"):
            deleted = self.database.raw.delete(item_id)
        if not deleted:
            raise ItemNotFoundError(item_id)
        logger.info(f"Deleted item {item_id}")

    async def delete_all_items(self) -> None:
        """Drop and recreate both tables, empty."""
        await self.manager.ensure_initialized()
        with storage_write("Failed to delete all items"):
            self.database.raw.recreate()
            self.database.embeddings.recreate(self.manager.current_dimensions)
        logger.info("Deleted all items")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def ensure_embedding_current(self, item_id: str) -> Optional[EmbeddingRecord]:
        """
        Regenerate one item's embedding if it is missing or stale.

        Returns:
            The current embedding row, or None if it could not be produced
        """
        try:
            await self.manager.ensure_initialized()
            model_id = self.manager.current_model_id
            dimension = self.manager.current_dimensions

            record = self.database.embeddings.get(item_id)
            if record and record.embedding_model == model_id and record.dimension == dimension:
                return record

            row = self.database.raw.get(item_id)
            if row is None:
                return None

            logger.debug(f"Regenerating stale embedding of item {item_id}")
            fresh = self._embedding_record(
                item_id, await self.manager.generate_embedding(row.embedding_text())
            )
            if record is not None:
                self.database.embeddings.delete(item_id)
            self.database.embeddings.add(fresh)
            return fresh
        except Exception as e:
            logger.warning(f"Could not ensure embedding of item {item_id}: {e}")
            return None

    async def get_recent_items(self, limit: Optional[int] = None) -> List[Item]:
        """Most recently used items first."""
        if limit is None:
            limit = self.recent_limit
        try:
            rows = self.database.raw.all()
        except Exception as e:
            logger.error(f"Failed to list recent items: {e}")
            return []

        rows.sort(key=lambda row: row.last_accessed_at, reverse=True)
        return [await self._resolve(row) for row in rows[:limit]]

    async def get_all_items(self) -> List[Item]:
        """Every item, newest first."""
        try:
            rows = self.database.raw.all()
        except Exception as e:
            logger.error(f"Failed to list items: {e}")
            return []

        rows.sort(key=lambda row: row.created_at, reverse=True)
        return [await self._resolve(row) for row in rows]

    async def search_items(self, query: str) -> List[Item]:
        """
        Hybrid search: fuzzy substring hits first, then semantic neighbours.

        Never raises for read failures; a failed pass is logged and skipped.
        """
        if not query or not query.strip():
            return []

        try:
            await self.monitor.ensure_compatible(self.database)
        except Exception as e:
            logger.warning(f"Compatibility check failed during search: {e}")

        query_vector: Optional[List[float]] = None
        try:
            query_vector = await self._embed(query)
        except EmbeddingGenerationError as e:
            logger.warning(f"Searching without vectors: {e}")

        try:
            fuzzy_rows = fuzzy_text_search(self.database.raw, query)
        except Exception as e:
            logger.warning(f"Fuzzy search failed: {e}")
            fuzzy_rows = []
        fuzzy_items = [await self._resolve(row) for row in fuzzy_rows]
        fuzzy_ids = {item.id for item in fuzzy_items}

        vector_items: List[Item] = []
        if query_vector is not None:
            try:
                matches = self.database.embeddings.search(query_vector, limit=self.search_limit)
                for match in matches:
                    if match.id in fuzzy_ids:
                        continue
                    row = self.database.raw.get(match.id)
                    if row is None:
                        logger.debug(f"Skipping vector hit {match.id} without raw row")
                        continue
                    vector_items.append(row.to_item(match.embedding_model))
            except Exception as e:
                logger.warning(f"Vector search failed, returning text matches only: {e}")
                vector_items = []

        results = merge_results(fuzzy_items, vector_items, self.search_limit)
        logger.info(
            f"Search '{query}': {len(results)} results "
            f"({len(fuzzy_items)} text, {len(vector_items)} semantic)"
        )
        return results

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    async def export_items(self, format: str = "json") -> str:
        """Serialize the raw table as JSON or CSV. Vectors are never exported."""
        return export_rows(self.database.raw.all(), format)

    async def import_items(
        self, raw: str, format: str = "json", on_progress: Optional[ProgressCallback] = None
    ) -> ImportResult:
        """
        Import an export produced by ``export_items`` (or compatible data).

        Raises:
            UnsupportedFormatError: Unknown format
            ItemValidationError: The document itself cannot be parsed
        """
        return await self.import_many(parse_import(raw, format), on_progress=on_progress)

    async def import_many(
        self,
        items: List[Union[Dict[str, Any], BaseModel]],
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        """
        Import items one by one. A failing item is recorded and skipped.
        """
        await self.monitor.ensure_compatible(self.database)

        result = ImportResult()
        total = len(items)
        if on_progress:
            on_progress(ImportProgress(current=0, total=total, success=0, errors=0))

        for index, data in enumerate(items, start=1):
            try:
                if isinstance(data, BaseModel):
                    data = data.model_dump()
                await self._import_one(data)
                result.success_count += 1
            except Exception as e:
                result.error_count += 1
                result.errors.append(f"Item {index}: {e}")
                logger.error(f"Error importing item {index}: {e}")

            if on_progress:
                on_progress(
                    ImportProgress(
                        current=index,
                        total=total,
                        success=result.success_count,
                        errors=result.error_count,
                    )
                )

        logger.info(result.message)
        return result

    async def _import_one(self, data: Dict[str, Any]) -> None:
        data = normalize_imported_item(data)
        check_required_fields(data)
        item = _validate(
            {"type": data["type"], "payload": data["payload"], "description": data["description"]}
        )

        now = utc_now_iso()
        created_at = data.get("created_at") or now
        row = RawItemRow(
            id=str(data.get("id") or uuid.uuid4()),
            type=item.type,
            payload=item.payload,
            description=item.description,
            created_at=created_at,
            last_accessed_at=data.get("last_accessed_at") or now,
        )
        record = self._embedding_record(row.id, await self._embed(row.embedding_text()))

        with storage_write(f"Failed to import item {row.id}"):
            self.database.raw.add(row)
            self.database.embeddings.add(record)

    # ------------------------------------------------------------------
    # Model selection and maintenance
    # ------------------------------------------------------------------

    async def set_embedding_model(self, model_type: Union[ModelType, str]) -> ModelState:
        """
        Select the embedding backend.

        The embeddings table is left untouched; the next add, update or
        search finds it incompatible and rebuilds it.

        Returns:
            The manager state; ``active`` differs from ``requested`` on fallback
        """
        return await self.manager.set_model_type(model_type)

    def get_embedding_model(self) -> str:
        return self.manager.current_model_type.value

    def can_use_heavy_model(self) -> bool:
        return self.manager.can_load_heavy_backend()

    def model_info(self) -> Dict[str, Any]:
        return self.manager.model_info()

    async def rebuild_embeddings(self) -> Optional[RebuildSummary]:
        """Regenerate every embedding. Returns None if a rebuild is already running."""
        return await self.orchestrator.rebuild_all(self.database)

    async def check_health(self) -> Dict[str, Any]:
        """
        Verify both tables, rebuilding the embeddings table if it is missing
        or stale.

        Returns:
            ``healthy`` flag, whether a rebuild ran, and row counts. An
            unhealthy raw table needs ``reset_storage``.
        """
        try:
            rebuilt = await self.monitor.ensure_compatible(self.database)
            item_count = self.database.raw.count()
            embedding_count = self.database.embeddings.count()
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return {"healthy": False, "rebuilt": False, "error": str(e)}

        return {
            "healthy": True,
            "rebuilt": rebuilt,
            "item_count": item_count,
            "embedding_count": embedding_count,
            "model": self.manager.current_model_id,
        }

    async def reset_storage(self) -> None:
        """Destroy all data and recreate the empty layout."""
        with storage_write("Failed to reset storage"):
            self.database.reset()
            migrate(self.database)
        logger.warning("Storage reset: all items deleted")

    def close(self) -> None:
        self.database.close()
