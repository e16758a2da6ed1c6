"""Unit tests for cosine scoring helpers."""

import pytest

from semantic_stash.embeddings.similarity import cosine_similarity, rank_by_similarity


def test_identical_vectors():
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)


def test_orthogonal_vectors():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_zero_vector_scores_zero():
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_length_mismatch_raises():
    with pytest.raises(ValueError):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


def test_rank_by_similarity_orders_and_limits():
    vectors = [
        [0.0, 1.0, 0.0],  # Orthogonal
        [1.0, 0.0, 0.0],  # Identical
        [0.9, 0.1, 0.0],  # Close
    ]

    ranked = rank_by_similarity([1.0, 0.0, 0.0], vectors, limit=2)

    assert [index for index, _ in ranked] == [1, 2]
    assert ranked[0][1] == pytest.approx(1.0)


def test_rank_by_similarity_empty():
    assert rank_by_similarity([1.0], [], limit=5) == []
