"""Tests for the SQLAlchemy-backed ItemDatabase (SQLite file)."""

import json

import pytest
from sqlalchemy import create_engine, inspect, text

from semantic_stash.storage.sqlalchemy import (
    EMBEDDINGS_TABLE,
    LEGACY_TABLE,
    RAW_TABLE,
    SQLAlchemyItemDatabase,
)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'stash.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def database(engine):
    database = SQLAlchemyItemDatabase(engine)
    database.initialize()
    return database


def test_initialize_creates_tables(engine, database):
    tables = set(inspect(engine).get_table_names())
    assert {RAW_TABLE, EMBEDDINGS_TABLE, "store_meta"} <= tables


def test_initialize_is_repeatable(database):
    database.initialize()
    database.initialize()


def test_markers(database):
    assert database.get_marker("schema_version") is None

    database.set_marker("schema_version", "1")
    database.set_marker("schema_version", "2")

    assert database.get_marker("schema_version") == "2"


def test_legacy_rows_empty_without_legacy_table(database):
    assert database.legacy_rows() == []


def test_legacy_rows_are_read(engine, database):
    with engine.begin() as conn:
        conn.execute(
            text(
                f"CREATE TABLE {LEGACY_TABLE} (id TEXT, type TEXT, payload TEXT, description TEXT, "
                "created_at TEXT, last_accessed_at TEXT, embedding_model TEXT, vector TEXT)"
            )
        )
        conn.execute(
            text(f"INSERT INTO {LEGACY_TABLE} VALUES (:id, 'link', 'https://github.com', "
                 "'GitHub homepage', '2023-01-01', '2023-01-02', 'old@1', :vector)"),
            {"id": "legacy-1", "vector": json.dumps([0.5, 0.5])},
        )

    rows = database.legacy_rows()

    assert len(rows) == 1
    assert rows[0]["id"] == "legacy-1"
    assert json.loads(rows[0]["vector"]) == [0.5, 0.5]


def test_reset_drops_everything(engine, database):
    with engine.begin() as conn:
        conn.execute(text(f"CREATE TABLE {LEGACY_TABLE} (id TEXT)"))
    database.set_marker("schema_version", "2")

    database.reset()

    tables = set(inspect(engine).get_table_names())
    assert LEGACY_TABLE not in tables
    assert {RAW_TABLE, EMBEDDINGS_TABLE} <= tables
    assert database.get_marker("schema_version") is None
    assert database.raw.count() == 0
    assert database.embeddings.count() == 0
