"""
SQLAlchemy-based storage implementation.

Keeps both tables in any SQLAlchemy-compatible database; the default is a
SQLite file inside the storage directory. Vectors are stored as JSON and
searched by brute-force cosine similarity, which is plenty for a personal
corpus of short items.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import JSON, Column, Engine, MetaData, String, Table, Text, delete, func, inspect, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base

from semantic_stash.embeddings.similarity import rank_by_similarity
from semantic_stash.errors import StorageCorruptionError, StorageWriteError, is_not_found_error
from semantic_stash.storage.models import EmbeddingMatch, EmbeddingRecord, RawItemRow
from semantic_stash.storage.protocols import EmbeddingStore

logger = logging.getLogger(__name__)

RAW_TABLE = "items_raw"
EMBEDDINGS_TABLE = "items_embeddings"
LEGACY_TABLE = "items"

# Create SQLAlchemy Base
Base = declarative_base()


class RawItemDB(Base):
    """SQLAlchemy model for the raw items table."""

    __tablename__ = RAW_TABLE

    id = Column(String, primary_key=True)
    type = Column(String, nullable=False)
    payload = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    created_at = Column(String, nullable=False)
    last_accessed_at = Column(String, nullable=False)

    def to_row(self) -> RawItemRow:
        return RawItemRow(
            id=self.id,
            type=self.type,
            payload=self.payload,
            description=self.description,
            created_at=self.created_at,
            last_accessed_at=self.last_accessed_at,
        )

    @staticmethod
    def from_row(row: RawItemRow) -> "RawItemDB":
        return RawItemDB(**row.model_dump())


class StoreMetaDB(Base):
    """Key/value markers (schema version, embedding model, ...)."""

    __tablename__ = "store_meta"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)


def embeddings_table(name: str, metadata: MetaData) -> Table:
    """Schema shared by the live and staging embedding tables."""
    return Table(
        name,
        metadata,
        Column("id", String, primary_key=True),
        Column("embedding_model", String, nullable=False),
        Column("vector", JSON, nullable=False),
        Column("created_at", String, nullable=False),
    )


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Map missing-table errors to StorageCorruptionError."""
    try:
        yield
    except SQLAlchemyError as e:
        if is_not_found_error(e):
            raise StorageCorruptionError(f"{action}: {e}") from e
        raise


def _normalized_column(column):
    """SQL expression mirroring ``normalize_for_search`` for a text column."""
    expression = func.lower(column, type_=String)
    for char in (" ", "_", "-", "\t", "\n", "\r"):
        expression = func.replace(expression, char, "", type_=String)
    return expression


class SQLAlchemyRawItemStore:
    """SQLAlchemy implementation of the RawItemStore protocol."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @contextmanager
    def _session(self):
        """Context manager for database sessions with automatic commit/rollback."""
        session = Session(self.engine)
        try:
            with translate_errors(f"{RAW_TABLE} access failed"):
                yield session
                session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            session.close()

    def add(self, row: RawItemRow) -> None:
        try:
            with self._session() as session:
                session.add(RawItemDB.from_row(row))
        except IntegrityError as e:
            raise StorageWriteError(f"Item {row.id} already exists") from e
        logger.debug(f"Inserted raw item {row.id}: '{row.description[:50]}'")

    def get(self, item_id: str) -> Optional[RawItemRow]:
        with self._session() as session:
            db_item = session.get(RawItemDB, item_id)
            return db_item.to_row() if db_item else None

    def all(self) -> List[RawItemRow]:
        with self._session() as session:
            return [db_item.to_row() for db_item in session.query(RawItemDB).all()]

    def delete(self, item_id: str) -> bool:
        with self._session() as session:
            count = session.query(RawItemDB).filter(RawItemDB.id == item_id).delete()
            return count > 0

    def search_text(self, pattern: str, normalize_fields: bool = False) -> List[RawItemRow]:
        pattern = pattern.lower()
        if normalize_fields:
            description = _normalized_column(RawItemDB.description)
            payload = _normalized_column(RawItemDB.payload)
        else:
            description = func.lower(RawItemDB.description, type_=String)
            payload = func.lower(RawItemDB.payload, type_=String)

        with self._session() as session:
            query = session.query(RawItemDB).filter(
                description.contains(pattern, autoescape=True)
                | payload.contains(pattern, autoescape=True)
            )
            return [db_item.to_row() for db_item in query.all()]

    def count(self) -> int:
        with self._session() as session:
            return session.query(RawItemDB).count()

    def recreate(self) -> None:
        table = RawItemDB.__table__
        table.drop(self.engine, checkfirst=True)
        table.create(self.engine)
        logger.info(f"Recreated {RAW_TABLE}")


class SQLAlchemyEmbeddingStore:
    """
    SQLAlchemy implementation of the EmbeddingStore protocol.

    The staging table used by rebuilds lives in the same database as
    ``<name>_staging`` and is promoted with a single
    ``DELETE`` + ``INSERT ... SELECT`` transaction.
    """

    def __init__(self, engine: Engine, name: str = EMBEDDINGS_TABLE):
        self.engine = engine
        self.name = name
        self.table = embeddings_table(name, MetaData())

    def _to_record(self, row) -> EmbeddingRecord:
        return EmbeddingRecord(
            id=row.id,
            embedding_model=row.embedding_model,
            vector=row.vector,
            created_at=row.created_at,
        )

    def create(self) -> None:
        self.table.create(self.engine, checkfirst=True)

    def add(self, record: EmbeddingRecord) -> None:
        try:
            with translate_errors(f"{self.name} insert failed"), self.engine.begin() as conn:
                conn.execute(self.table.insert().values(**record.model_dump()))
        except IntegrityError as e:
            raise StorageWriteError(f"Embedding for item {record.id} already exists") from e

    def get(self, item_id: str) -> Optional[EmbeddingRecord]:
        with translate_errors(f"{self.name} read failed"), self.engine.connect() as conn:
            row = conn.execute(select(self.table).where(self.table.c.id == item_id)).first()
            return self._to_record(row) if row else None

    def delete(self, item_id: str) -> bool:
        with translate_errors(f"{self.name} delete failed"), self.engine.begin() as conn:
            result = conn.execute(delete(self.table).where(self.table.c.id == item_id))
            return result.rowcount > 0

    def sample(self) -> Optional[EmbeddingRecord]:
        with translate_errors(f"{self.name} read failed"), self.engine.connect() as conn:
            row = conn.execute(select(self.table).limit(1)).first()
            return self._to_record(row) if row else None

    def all(self) -> List[EmbeddingRecord]:
        with translate_errors(f"{self.name} read failed"), self.engine.connect() as conn:
            return [self._to_record(row) for row in conn.execute(select(self.table))]

    def search(self, vector: List[float], limit: int = 10) -> List[EmbeddingMatch]:
        # Rows of another dimension belong to a previous model and cannot be scored
        candidates = [record for record in self.all() if len(record.vector) == len(vector)]
        ranked = rank_by_similarity(vector, [record.vector for record in candidates], limit)
        logger.debug(f"{len(ranked)} vector hits found in {self.name}")
        return [
            EmbeddingMatch(
                id=candidates[index].id,
                embedding_model=candidates[index].embedding_model,
                score=score,
            )
            for index, score in ranked
        ]

    def count(self) -> int:
        with translate_errors(f"{self.name} read failed"), self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(self.table)).scalar_one()

    def recreate(self, dimension: Optional[int] = None) -> None:
        self.table.drop(self.engine, checkfirst=True)
        self.table.create(self.engine)
        logger.info(f"Recreated {self.name}")

    def create_staging(self, dimension: int) -> "SQLAlchemyEmbeddingStore":
        staging = SQLAlchemyEmbeddingStore(self.engine, name=f"{self.name}_staging")
        if inspect(self.engine).has_table(staging.name):
            logger.warning(f"Discarding leftover staging table {staging.name}")
        staging.recreate()
        return staging

    def promote(self, staging: EmbeddingStore) -> None:
        if not isinstance(staging, SQLAlchemyEmbeddingStore):
            raise TypeError("Can only promote a SQLAlchemy staging table")

        columns = [column.name for column in self.table.columns]
        with self.engine.begin() as conn:
            self.table.create(conn, checkfirst=True)
            conn.execute(delete(self.table))
            conn.execute(self.table.insert().from_select(columns, select(staging.table)))
            staging.table.drop(conn)
        logger.info(f"Promoted {staging.name} to {self.name}")

    def drop(self) -> None:
        self.table.drop(self.engine, checkfirst=True)


class SQLAlchemyItemDatabase:
    """
    SQLAlchemy-backed ItemDatabase.

    Raw rows and markers always live in the SQL database. Embeddings default
    to a SQL table too, but any EmbeddingStore (e.g. Qdrant) can be supplied.

    Example:
        from sqlalchemy import create_engine
        engine = create_engine("sqlite:///stash.db")
        database = SQLAlchemyItemDatabase(engine)
        database.initialize()
    """

    def __init__(self, engine: Engine, embeddings: Optional[EmbeddingStore] = None):
        """
        Initialize the database.

        Args:
            engine: SQLAlchemy engine for database connection
            embeddings: Embedding table implementation (default: SQL table)
        """
        self.engine = engine
        self.raw = SQLAlchemyRawItemStore(engine)
        self.embeddings = embeddings or SQLAlchemyEmbeddingStore(engine)
        logger.info(f"SQLAlchemyItemDatabase initialized (engine={engine.url})")

    def initialize(self) -> None:
        """Create database tables if they don't exist."""
        Base.metadata.create_all(self.engine)
        if isinstance(self.embeddings, SQLAlchemyEmbeddingStore):
            self.embeddings.create()
        logger.info("Database tables created/verified")

    def get_marker(self, key: str) -> Optional[str]:
        with Session(self.engine) as session:
            marker = session.get(StoreMetaDB, key)
            return marker.value if marker else None

    def set_marker(self, key: str, value: str) -> None:
        with Session(self.engine) as session, session.begin():
            session.merge(StoreMetaDB(key=key, value=value))

    def legacy_rows(self) -> List[Dict[str, Any]]:
        if not inspect(self.engine).has_table(LEGACY_TABLE):
            return []
        legacy = Table(LEGACY_TABLE, MetaData(), autoload_with=self.engine)
        with self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(select(legacy))]

    def reset(self) -> None:
        Base.metadata.drop_all(self.engine)
        if inspect(self.engine).has_table(LEGACY_TABLE):
            Table(LEGACY_TABLE, MetaData(), autoload_with=self.engine).drop(self.engine)
        self.embeddings.drop()
        Base.metadata.create_all(self.engine)
        self.embeddings.recreate()
        logger.info("Database reset: all tables recreated empty")

    def close(self) -> None:
        if not isinstance(self.embeddings, SQLAlchemyEmbeddingStore) and hasattr(self.embeddings, "close"):
            self.embeddings.close()
        self.engine.dispose()
