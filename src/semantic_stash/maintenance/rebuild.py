"""
Full regeneration of the embeddings table.

A rebuild embeds every raw row with the active backend into a staging table
and then promotes it over the live table, so an interrupted rebuild never
leaves a half-filled live table behind.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Optional, Protocol

from typing_extensions import runtime_checkable

from semantic_stash.embeddings.manager import EmbeddingManager
from semantic_stash.models import (
    RebuildFailure,
    RebuildProgress,
    RebuildStarted,
    RebuildSummary,
    utc_now_iso,
)
from semantic_stash.storage.models import EmbeddingRecord
from semantic_stash.storage.protocols import ItemDatabase

logger = logging.getLogger(__name__)

EMBEDDING_MODEL_MARKER = "embedding_model"
EMBEDDING_DIMENSION_MARKER = "embedding_dimension"


class RebuildState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RebuildLock:
    """Non-blocking mutual exclusion for rebuilds."""

    def __init__(self):
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def is_held(self) -> bool:
        return self._lock.locked()


# Shared by every orchestrator created without an explicit lock
PROCESS_REBUILD_LOCK = RebuildLock()


@runtime_checkable
class RebuildEventSink(Protocol):
    """Receives rebuild lifecycle events."""

    def on_rebuild_started(self, event: RebuildStarted) -> None:
        ...

    def on_rebuild_progress(self, event: RebuildProgress) -> None:
        ...

    def on_rebuild_complete(self, event: RebuildSummary) -> None:
        ...

    def on_rebuild_error(self, event: RebuildFailure) -> None:
        ...


class NullRebuildEventSink:
    """Discards every event."""

    def on_rebuild_started(self, event: RebuildStarted) -> None:
        pass

    def on_rebuild_progress(self, event: RebuildProgress) -> None:
        pass

    def on_rebuild_complete(self, event: RebuildSummary) -> None:
        pass

    def on_rebuild_error(self, event: RebuildFailure) -> None:
        pass


class CallbackRebuildEventSink:
    """
    Adapts plain callables to RebuildEventSink. Missing callbacks are skipped.

    Example:
        >>> sink = CallbackRebuildEventSink(on_progress=lambda e: print(e.current, e.total))
    """

    def __init__(
        self,
        on_started: Optional[Callable[[RebuildStarted], None]] = None,
        on_progress: Optional[Callable[[RebuildProgress], None]] = None,
        on_complete: Optional[Callable[[RebuildSummary], None]] = None,
        on_error: Optional[Callable[[RebuildFailure], None]] = None,
    ):
        self._on_started = on_started
        self._on_progress = on_progress
        self._on_complete = on_complete
        self._on_error = on_error

    def on_rebuild_started(self, event: RebuildStarted) -> None:
        if self._on_started:
            self._on_started(event)

    def on_rebuild_progress(self, event: RebuildProgress) -> None:
        if self._on_progress:
            self._on_progress(event)

    def on_rebuild_complete(self, event: RebuildSummary) -> None:
        if self._on_complete:
            self._on_complete(event)

    def on_rebuild_error(self, event: RebuildFailure) -> None:
        if self._on_error:
            self._on_error(event)


class RebuildOrchestrator:
    """
    Regenerates every embedding with the active backend.

    Only one rebuild runs at a time per process (orchestrators share
    ``PROCESS_REBUILD_LOCK`` unless given their own lock); a call made while
    one is running returns None without doing anything.

    Example:
        >>> orchestrator = RebuildOrchestrator(manager, sink=CallbackRebuildEventSink(...))
        >>> summary = await orchestrator.rebuild_all(database)
        >>> summary.success_count == summary.total
        True
    """

    def __init__(
        self,
        manager: EmbeddingManager,
        sink: Optional[RebuildEventSink] = None,
        lock: Optional[RebuildLock] = None,
    ):
        self.manager = manager
        self.sink = sink or NullRebuildEventSink()
        self.lock = lock or PROCESS_REBUILD_LOCK
        self.last_state = RebuildState.IDLE

    @property
    def state(self) -> RebuildState:
        return RebuildState.RUNNING if self.lock.is_held else RebuildState.IDLE

    @property
    def is_running(self) -> bool:
        return self.lock.is_held

    async def rebuild_all(self, database: ItemDatabase) -> Optional[RebuildSummary]:
        """
        Re-embed every raw row and replace the embeddings table.

        Per-item failures are counted and skipped. Any other failure discards
        the staging table, emits an error event and propagates.

        Returns:
            Summary of the run, or None if a rebuild was already running
        """
        if not self.lock.try_acquire():
            logger.info("Rebuild already in progress, skipping")
            return None

        staging = None
        model_id: Optional[str] = None
        try:
            self.last_state = RebuildState.RUNNING
            await self.manager.ensure_initialized()
            model_id = self.manager.current_model_id
            dimension = self.manager.current_dimensions

            rows = database.raw.all()
            total = len(rows)
            logger.info(f"Rebuilding {total} embeddings with {model_id} ({dimension} dimensions)")
            self.sink.on_rebuild_started(RebuildStarted(model=model_id, total=total))

            staging = database.embeddings.create_staging(dimension)
            success_count = 0
            error_count = 0

            for index, row in enumerate(rows, start=1):
                try:
                    vector = await self.manager.generate_embedding(row.embedding_text())
                    staging.add(
                        EmbeddingRecord(
                            id=row.id,
                            embedding_model=model_id,
                            vector=vector,
                            created_at=utc_now_iso(),
                        )
                    )
                    success_count += 1
                except Exception as e:
                    error_count += 1
                    logger.error(f"Failed to re-embed item {row.id}: {e}")

                self.sink.on_rebuild_progress(
                    RebuildProgress(
                        current=index,
                        total=total,
                        success_count=success_count,
                        error_count=error_count,
                    )
                )

            database.embeddings.promote(staging)
            staging = None
            database.set_marker(EMBEDDING_MODEL_MARKER, model_id)
            database.set_marker(EMBEDDING_DIMENSION_MARKER, str(dimension))

            summary = RebuildSummary(
                total=total,
                success_count=success_count,
                error_count=error_count,
                model=model_id,
                dimension=dimension,
            )
            self.last_state = RebuildState.COMPLETED
            logger.info(
                f"Rebuild complete: {success_count}/{total} embeddings regenerated, "
                f"{error_count} failed"
            )
            self.sink.on_rebuild_complete(summary)
            return summary

        except Exception as e:
            self.last_state = RebuildState.FAILED
            logger.error(f"Rebuild failed: {e}")
            if staging is not None:
                try:
                    staging.drop()
                except Exception as drop_error:
                    logger.warning(f"Failed to discard staging table: {drop_error}")
            self.sink.on_rebuild_error(RebuildFailure(error=str(e), model=model_id))
            raise
        finally:
            self.lock.release()
