from typing import List, Sequence

import numpy as np


def cosine_similarity(vector_a: Sequence[float], vector_b: Sequence[float]) -> float:
    """Dot product over the product of norms. Zero vectors score 0.0."""
    if len(vector_a) != len(vector_b):
        raise ValueError("Vectors must have the same length")

    a = np.asarray(vector_a, dtype=np.float64)
    b = np.asarray(vector_b, dtype=np.float64)
    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm == 0:
        return 0.0
    return float(np.dot(a, b) / norm)


def rank_by_similarity(
    query: Sequence[float], vectors: List[Sequence[float]], limit: int
) -> List[tuple[int, float]]:
    """
    Score every vector against the query and return the best ``limit``.

    Returns:
        (index into ``vectors``, score) pairs, highest score first
    """
    if not vectors:
        return []

    matrix = np.asarray(vectors, dtype=np.float64)
    q = np.asarray(query, dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    dots = matrix @ q
    scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)

    order = np.argsort(-scores, kind="stable")[:limit]
    return [(int(i), float(scores[i])) for i in order]
