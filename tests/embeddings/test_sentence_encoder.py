"""Tests for the sentence-transformers backend (downloads the model)."""

import pytest

pytest.importorskip("sentence_transformers")

from semantic_stash.embeddings.sentence_encoder import SentenceEncoderEmbedding  # noqa: E402


@pytest.fixture(scope="module")
def embedder():
    return SentenceEncoderEmbedding()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_embed_dimension_and_determinism(embedder):
    first = await embedder.embed("How do I reset a connection pool?")
    second = await embedder.embed("How do I reset a connection pool?")

    assert len(first) == embedder.dimension == 512
    assert first == pytest.approx(second)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_semantic_neighbours(embedder):
    query = await embedder.embed("source code hosting")
    related = await embedder.embed("GitHub homepage")
    unrelated = await embedder.embed("chocolate cake recipe")

    assert embedder.similarity(query, related) > embedder.similarity(query, unrelated)


@pytest.mark.integration
def test_model_id_records_revision():
    assert SentenceEncoderEmbedding().model_id == (
        "sentence-transformers/distiluse-base-multilingual-cased-v2@latest"
    )
