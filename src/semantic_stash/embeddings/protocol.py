"""
Text embedding protocol for semantic-stash.

Every backend the embedding manager can activate satisfies this interface,
so the rest of the store never needs to know which one is loaded.
"""

from typing import List, Protocol

from typing_extensions import runtime_checkable


@runtime_checkable
class TextEmbedding(Protocol):
    """
    Protocol for text embedding backends.

    Implementations must:

    1. Return a vector of exactly ``dimension`` floats for any text
    2. Return the same vector for the same text and model
    3. Expose a stable ``model_id`` that is stored next to every vector

    Example:
        >>> embedder = LightweightEmbedding()
        >>> vector = await embedder.embed("Hello world")
        >>> len(vector) == embedder.dimension
        True
    """

    @property
    def dimension(self) -> int:
        """
        Vector dimension produced by this backend.

        Stored rows whose length differs from this value are stale and get
        regenerated.
        """
        ...

    @property
    def model_id(self) -> str:
        """
        Identifier of the backend and its version.

        Returns:
            Tag such as "lightweight-embeddings@1.0.0"
        """
        ...

    async def embed(self, text: str) -> List[float]:
        """
        Generate the embedding for a text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector (length = self.dimension)
        """
        ...

    def similarity(self, vector_a: List[float], vector_b: List[float]) -> float:
        """
        Cosine similarity of two vectors of equal length.

        Raises:
            ValueError: If the vectors differ in length
        """
        ...
