"""Sentence-transformers embedding backend for semantic-stash."""

import asyncio
import logging
from typing import List, Optional

from semantic_stash.config import DEFAULT_SENTENCE_MODEL
from semantic_stash.embeddings.similarity import cosine_similarity

logger = logging.getLogger(__name__)


class SentenceEncoderEmbedding:
    """
    Neural sentence-encoder backend.

    Wraps a pretrained ``SentenceTransformer``. The model is downloaded once
    into the HuggingFace cache and loaded on construction, which can take a
    while; the embedding manager runs construction in a worker thread under a
    timeout and falls back to the lightweight backend if it fails.

    The default model is a distilled multilingual Universal Sentence Encoder
    producing 512-dimensional vectors.

    Example:
        >>> embedder = SentenceEncoderEmbedding()
        >>> vector = await embedder.embed("How do I reset a connection pool?")
        >>> len(vector)
        512
    """

    def __init__(
        self,
        model_name: str = DEFAULT_SENTENCE_MODEL,
        revision: Optional[str] = None,
        device: Optional[str] = None,
        cache_folder: Optional[str] = None,
        normalize_embeddings: bool = True,
    ):
        """
        Load the sentence encoder.

        Args:
            model_name: HuggingFace model identifier
            revision: Model revision to pin (also recorded in ``model_id``)
            device: Device for computation ("cuda", "cpu", or None for auto)
            cache_folder: Directory for model cache (None = default ~/.cache)
            normalize_embeddings: L2 normalize vectors
        """
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise ImportError(
                "sentence-transformers is required for SentenceEncoderEmbedding. "
                "Install with: pip install semantic-stash[sentence-encoder]"
            ) from e

        self._model_name = model_name
        self._revision = revision
        self._normalize = normalize_embeddings

        logger.info(f"Loading sentence encoder: {model_name}")
        self._model = SentenceTransformer(
            model_name,
            device=device,
            cache_folder=cache_folder,
            revision=revision,
        )
        self._dimension = self._model.get_sentence_embedding_dimension()
        logger.info(f"Model loaded: {model_name} ({self._dimension} dimensions)")

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_id(self) -> str:
        return f"{self._model_name}@{self._revision or 'latest'}"

    def _encode(self, text: str) -> List[float]:
        embedding = self._model.encode(
            text,
            normalize_embeddings=self._normalize,
            show_progress_bar=False,
        )
        return [float(value) for value in embedding]

    async def embed(self, text: str) -> List[float]:
        """
        Generate the embedding for a text.

        Encoding is CPU bound, so it runs in a worker thread.
        """
        return await asyncio.to_thread(self._encode, text)

    def similarity(self, vector_a: List[float], vector_b: List[float]) -> float:
        return cosine_similarity(vector_a, vector_b)
