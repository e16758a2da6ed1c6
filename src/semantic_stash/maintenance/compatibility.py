"""Detects embeddings written by another model and triggers a rebuild."""

import logging

from semantic_stash.embeddings.manager import EmbeddingManager
from semantic_stash.errors import StorageCorruptionError
from semantic_stash.maintenance.rebuild import RebuildOrchestrator
from semantic_stash.storage.protocols import ItemDatabase

logger = logging.getLogger(__name__)


class CompatibilityMonitor:
    """
    Keeps the embeddings table in line with the active backend.

    One sample row stands for the whole table: rebuilds replace every row at
    once, so a table is either entirely current or entirely stale.
    """

    def __init__(self, manager: EmbeddingManager, orchestrator: RebuildOrchestrator):
        self.manager = manager
        self.orchestrator = orchestrator

    async def ensure_compatible(self, database: ItemDatabase) -> bool:
        """
        Rebuild the embeddings table if its model tag or dimension differ
        from the active backend, or if the table is missing.

        Returns:
            True if a rebuild ran
        """
        if self.orchestrator.is_running:
            logger.debug("Rebuild in progress, skipping compatibility check")
            return False

        await self.manager.ensure_initialized()

        try:
            sample = database.embeddings.sample()
        except StorageCorruptionError as e:
            logger.warning(f"Embeddings table unreadable, rebuilding: {e}")
            return await self._rebuild(database)

        if sample is None:
            return False

        model_id = self.manager.current_model_id
        dimension = self.manager.current_dimensions
        if sample.embedding_model == model_id and sample.dimension == dimension:
            return False

        logger.info(
            f"Embedding model changed from {sample.embedding_model} ({sample.dimension}d) "
            f"to {model_id} ({dimension}d), rebuilding"
        )
        return await self._rebuild(database)

    async def _rebuild(self, database: ItemDatabase) -> bool:
        summary = await self.orchestrator.rebuild_all(database)
        return summary is not None
