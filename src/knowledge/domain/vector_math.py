"""
Vector Math
===========

Pure numeric routines used for semantic retrieval.
"""

import math
from typing import List, Sequence, Tuple, TypeVar

T = TypeVar("T")


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        ValueError: If the vectors differ in length
    """
    if len(vec_a) != len(vec_b):
        raise ValueError(
            f"Vector length mismatch: {len(vec_a)} != {len(vec_b)}"
        )

    dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
    magnitude_a = math.sqrt(sum(a * a for a in vec_a))
    magnitude_b = math.sqrt(sum(b * b for b in vec_b))

    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0

    similarity = dot_product / (magnitude_a * magnitude_b)
    # float rounding can push identical vectors slightly past 1
    return max(-1.0, min(1.0, similarity))


def find_similar(
    query_vector: Sequence[float],
    candidates: Sequence[Tuple[T, Sequence[float]]],
    threshold: float
) -> List[Tuple[T, float]]:
    """
    Score candidates against a query vector.

    Args:
        query_vector: Query embedding
        candidates: (item, embedding) pairs, in corpus order
        threshold: Minimum similarity to keep

    Returns:
        (item, similarity) pairs with similarity >= threshold, sorted
        descending; ties keep corpus order.
    """
    scored = [
        (item, cosine_similarity(query_vector, vector))
        for item, vector in candidates
    ]
    kept = [pair for pair in scored if pair[1] >= threshold]
    return sorted(kept, key=lambda pair: pair[1], reverse=True)
