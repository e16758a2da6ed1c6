"""Build the ItemDatabase described by a StoreConfig."""

import logging

from semantic_stash.config import StoreConfig
from semantic_stash.storage.protocols import ItemDatabase

logger = logging.getLogger(__name__)


def open_database(config: StoreConfig) -> ItemDatabase:
    """
    Open (and initialize) the configured database.

    - ``memory``: everything in process memory
    - ``sqlite``: both tables in ``<storage_path>/stash.db``
    - ``qdrant``: raw rows in SQLite, embeddings in a local Qdrant store
      at ``<storage_path>/vectors``

    Raises:
        ImportError: If the backend's optional dependencies are missing
    """
    if config.vector_backend == "memory":
        from semantic_stash.storage.memory import InMemoryItemDatabase

        database = InMemoryItemDatabase()
        database.initialize()
        return database

    from sqlalchemy import create_engine

    from semantic_stash.storage.sqlalchemy import SQLAlchemyItemDatabase

    config.storage_path.mkdir(parents=True, exist_ok=True)
    engine = create_engine(config.database_url)

    if config.vector_backend == "qdrant":
        try:
            from semantic_stash.storage.qdrant import QdrantEmbeddingStore
        except ImportError as e:
            raise ImportError(
                "qdrant-client is required for the qdrant backend. "
                "Install with: pip install semantic-stash[qdrant]"
            ) from e

        embeddings = QdrantEmbeddingStore.local(str(config.qdrant_path))
        database = SQLAlchemyItemDatabase(engine, embeddings=embeddings)
    else:
        database = SQLAlchemyItemDatabase(engine)

    database.initialize()
    logger.info(f"Opened {config.vector_backend} database at {config.storage_path}")
    return database
