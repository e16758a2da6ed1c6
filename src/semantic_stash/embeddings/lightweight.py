"""Hash-based embedding backend that needs no model download."""

import logging
import re
from typing import List

from semantic_stash.embeddings.similarity import cosine_similarity

logger = logging.getLogger(__name__)

# Fixed feature indices boosted when a keyword appears anywhere in the text
SEMANTIC_KEYWORDS = {
    "database": (50, 51, 52),
    "query": (53, 54, 55),
    "connection": (56, 57, 58),
    "server": (59, 60, 61),
    "api": (62, 63, 64),
    "function": (65, 66, 67),
    "method": (68, 69, 70),
    "class": (71, 72, 73),
    "variable": (74, 75, 76),
    "error": (77, 78, 79),
    "fix": (80, 81, 82),
    "debug": (83, 84, 85),
}

KEYWORD_BOOST = 0.5

_NON_WORD = re.compile(r"[^\w\s]")


def stable_hash(token: str) -> int:
    """31-multiplier rolling hash in signed 32-bit arithmetic, made non-negative."""
    h = 0
    for char in token:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def tokenize(text: str) -> List[str]:
    """Lowercase, strip punctuation, and drop tokens of two characters or fewer."""
    return [word for word in _NON_WORD.sub(" ", text.lower()).split() if len(word) > 2]


class LightweightEmbedding:
    """
    Zero-dependency embedding backend.

    Each token is hashed into one of ``dimension`` buckets and contributes its
    normalized frequency; a handful of domain keywords add fixed boosts.
    Quality is modest but it is instant, deterministic and always available.

    Example:
        >>> embedder = LightweightEmbedding()
        >>> vector = await embedder.embed("Fix database connection error")
        >>> len(vector)
        256
    """

    MODEL_ID = "lightweight-embeddings@1.0.0"

    def __init__(self, dimension: int = 256):
        self._dimension = dimension
        logger.info(f"Lightweight embedder ready ({dimension} dimensions)")

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_id(self) -> str:
        return self.MODEL_ID

    def embed_sync(self, text: str) -> List[float]:
        tokens = tokenize(text)
        vector = [0.0] * self._dimension

        for token in tokens:
            vector[stable_hash(token) % self._dimension] += 1 / len(tokens)

        lowered = text.lower()
        for keyword, indices in SEMANTIC_KEYWORDS.items():
            if keyword in lowered:
                for index in indices:
                    if index < self._dimension:
                        vector[index] += KEYWORD_BOOST

        return vector

    async def embed(self, text: str) -> List[float]:
        return self.embed_sync(text)

    def similarity(self, vector_a: List[float], vector_b: List[float]) -> float:
        return cosine_similarity(vector_a, vector_b)
