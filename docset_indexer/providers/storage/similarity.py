"""Brute-force cosine ranking shared by the in-process backends."""

from __future__ import annotations

import numpy as np


def rank_by_cosine(
    query: list[float],
    ids: list[str],
    vectors: list[list[float]],
    top_k: int,
) -> list[tuple[str, float]]:
    """Return up to *top_k* ``(id, similarity)`` pairs, most similar first.

    Zero vectors score 0 rather than NaN.
    """
    if not ids or top_k <= 0:
        return []

    matrix = np.asarray(vectors, dtype=np.float64)
    q = np.asarray(query, dtype=np.float64)
    if matrix.shape[1] != q.shape[0]:
        raise ValueError(
            f"query has {q.shape[0]} dimensions but stored vectors have {matrix.shape[1]}"
        )

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    dots = matrix @ q
    scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

    k = min(top_k, len(ids))
    # Stable sort keeps insertion order among ties.
    order = np.argsort(-scores, kind="stable")[:k]
    return [(ids[i], float(scores[i])) for i in order]
