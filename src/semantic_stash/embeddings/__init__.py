"""
Text embedding backends for semantic-stash.

Provides one protocol and two interchangeable backends:
- LightweightEmbedding: hash-based, instant, always available
- SentenceEncoderEmbedding: neural sentence encoder (optional dependency)

The EmbeddingManager selects between them and persists the choice.
"""

from semantic_stash.embeddings.lightweight import LightweightEmbedding
from semantic_stash.embeddings.manager import EmbeddingManager, ModelState
from semantic_stash.embeddings.protocol import TextEmbedding
from semantic_stash.embeddings.similarity import cosine_similarity

__all__ = [
    "TextEmbedding",
    "LightweightEmbedding",
    "EmbeddingManager",
    "ModelState",
    "cosine_similarity",
]

# Optional adapters (import only if dependencies available)
try:
    from semantic_stash.embeddings.sentence_encoder import SentenceEncoderEmbedding  # noqa: F401

    __all__.append("SentenceEncoderEmbedding")
except ImportError:
    pass
