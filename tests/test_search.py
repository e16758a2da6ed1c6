"""Unit tests for the fuzzy search helpers."""

import pytest

from semantic_stash.models import Item
from semantic_stash.search import (
    create_search_patterns,
    fuzzy_text_search,
    merge_results,
    normalize_for_search,
)
from semantic_stash.storage.memory import InMemoryRawItemStore
from semantic_stash.storage.models import RawItemRow


def row(item_id, payload, description):
    return RawItemRow(
        id=item_id,
        type="kusto_query",
        payload=payload,
        description=description,
        created_at="2024-01-01T00:00:00+00:00",
        last_accessed_at="2024-01-01T00:00:00+00:00",
    )


def item(item_id):
    return row(item_id, "payload", "description").to_item("lightweight-embeddings@1.0.0")


@pytest.fixture
def raw_store():
    store = InMemoryRawItemStore()
    store.add(row("camel", "Resources | where resourceType == 'vm'", "VM inventory"))
    store.add(row("spaced", "Resources | take 10", "List by resource type"))
    store.add(row("snake", "select * from resource_type", "Snake case table"))
    store.add(row("other", "https://example.com", "Something else"))
    return store


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Resource Type", "resourcetype"),
        ("resource_type", "resourcetype"),
        ("resource-type", "resourcetype"),
        ("  Resource\tType \n", "resourcetype"),
    ],
)
def test_normalize_for_search(text, expected):
    assert normalize_for_search(text) == expected


def test_create_search_patterns():
    assert create_search_patterns("Resource Type") == [
        "resource type",
        "resourcetype",
        "resource",
        "type",
    ]


def test_create_search_patterns_deduplicates_single_word():
    assert create_search_patterns("GitHub") == ["github"]


def test_create_search_patterns_drops_one_letter_words():
    assert create_search_patterns("a vm") == ["a vm", "avm", "vm"]


def test_spaced_query_finds_camel_case(raw_store):
    ids = {r.id for r in fuzzy_text_search(raw_store, "resource type")}
    assert {"camel", "spaced", "snake"} <= ids
    assert "other" not in ids


def test_camel_case_query_finds_spaced(raw_store):
    ids = {r.id for r in fuzzy_text_search(raw_store, "resourceType")}
    assert {"camel", "spaced", "snake"} <= ids


def test_short_normalized_query_skips_normalized_pass(raw_store):
    """Two-character queries only use plain substring matching."""
    ids = [r.id for r in fuzzy_text_search(raw_store, "vm")]
    assert ids == ["camel"]


def test_results_are_unique_in_first_seen_order(raw_store):
    results = fuzzy_text_search(raw_store, "resource type")
    ids = [r.id for r in results]
    assert len(ids) == len(set(ids))


def test_merge_puts_fuzzy_hits_first_and_limits():
    merged = merge_results([item("a"), item("b")], [item("c"), item("a"), item("d")], limit=3)
    assert [i.id for i in merged] == ["a", "b", "c"]


def test_merge_keeps_fuzzy_version_of_duplicate():
    fuzzy = item("a")
    vector = Item(**{**fuzzy.model_dump(), "embedding_model": "other@1"})

    merged = merge_results([fuzzy], [vector], limit=10)

    assert merged == [fuzzy]
