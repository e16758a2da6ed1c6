"""Test that backends satisfy the TextEmbedding protocol."""

import pytest

from semantic_stash.embeddings import LightweightEmbedding, TextEmbedding
from semantic_stash.models import ModelType


@pytest.mark.asyncio
async def test_lightweight_is_protocol():
    """LightweightEmbedding implements TextEmbedding protocol."""
    embedder = LightweightEmbedding()
    assert isinstance(embedder, TextEmbedding)

    # Verify properties
    assert embedder.dimension == 256
    assert embedder.model_id == "lightweight-embeddings@1.0.0"

    vector = await embedder.embed("Hello world")
    assert len(vector) == embedder.dimension


@pytest.mark.asyncio
async def test_fake_encoder_is_protocol(backend_factories):
    """The heavy stand-in used across the suite implements the protocol."""
    embedder = backend_factories[ModelType.SENTENCE_ENCODER]()
    assert isinstance(embedder, TextEmbedding)
    assert embedder.dimension == 512


@pytest.mark.integration
@pytest.mark.asyncio
async def test_sentence_encoder_is_protocol():
    """SentenceEncoderEmbedding implements TextEmbedding protocol."""
    pytest.importorskip("sentence_transformers")

    from semantic_stash.embeddings import SentenceEncoderEmbedding

    embedder = SentenceEncoderEmbedding()
    assert isinstance(embedder, TextEmbedding)

    assert embedder.dimension == 512
    assert embedder.model_id.endswith("@latest")


def test_plain_object_is_not_protocol():
    assert not isinstance(object(), TextEmbedding)
