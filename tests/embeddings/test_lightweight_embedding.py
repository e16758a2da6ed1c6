"""Unit tests for the hash-based lightweight embedder."""

import pytest

from semantic_stash.embeddings.lightweight import (
    KEYWORD_BOOST,
    SEMANTIC_KEYWORDS,
    LightweightEmbedding,
    stable_hash,
    tokenize,
)


@pytest.fixture
def embedder():
    return LightweightEmbedding()


def test_stable_hash_matches_rolling_hash():
    """h = h * 31 + code, computed by hand for 'abc'."""
    assert stable_hash("abc") == 96354


def test_stable_hash_wraps_to_signed_32_bit():
    """Long tokens overflow and are folded back into a non-negative int."""
    value = stable_hash("supercalifragilisticexpialidocious")
    assert 0 <= value <= 2**31


def test_tokenize_drops_short_tokens_and_punctuation():
    assert tokenize("Go to the DB, now!") == ["the", "now"]


@pytest.mark.asyncio
async def test_embed_has_fixed_dimension(embedder):
    vector = await embedder.embed("GitHub homepage")
    assert len(vector) == 256


@pytest.mark.asyncio
async def test_embed_is_deterministic(embedder):
    first = await embedder.embed("Fix database connection error")
    second = await LightweightEmbedding().embed("Fix database connection error")
    assert first == second


@pytest.mark.asyncio
async def test_token_weights_are_normalized_by_token_count(embedder):
    """Each token adds 1/len(tokens) to its bucket."""
    vector = await embedder.embed("homepage github")
    assert sum(vector) == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_keyword_boosts_fixed_indices(embedder):
    vector = await embedder.embed("Fix database connection error")

    for keyword in ("fix", "database", "connection", "error"):
        for index in SEMANTIC_KEYWORDS[keyword]:
            assert vector[index] >= KEYWORD_BOOST


@pytest.mark.asyncio
async def test_keyword_matches_as_substring(embedder):
    """Keywords also match inside identifiers."""
    vector = await embedder.embed("kusto_query")
    for index in SEMANTIC_KEYWORDS["query"]:
        assert vector[index] >= KEYWORD_BOOST


@pytest.mark.asyncio
async def test_short_tokens_only_yield_zero_vector(embedder):
    vector = await embedder.embed("a b")
    assert not any(vector)


@pytest.mark.asyncio
async def test_similar_texts_score_higher(embedder):
    base = await embedder.embed("database connection error")
    close = await embedder.embed("database connection timeout")
    far = await embedder.embed("holiday photos beach")

    assert embedder.similarity(base, close) > embedder.similarity(base, far)


def test_custom_dimension():
    embedder = LightweightEmbedding(dimension=512)
    assert len(embedder.embed_sync("anything goes")) == 512
