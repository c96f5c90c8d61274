"""Vector similarity kernels (numpy).

Every metric is expressed as a *score* where higher means more similar,
so rankings never special-case the metric:

- cosine:       dot(a, b) / (|a| |b|), in [-1, 1]
- dot_product:  dot(a, b)
- euclidean:    -||a - b||
- manhattan:    -sum(|a - b|)
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from docvec.models.vector import DistanceMetric
from docvec.utils.errors import ConfigurationError, DimensionMismatchError


def l2_normalize(values: Sequence[float] | np.ndarray) -> list[float]:
    """Return *values* scaled to unit L2 norm (a zero vector is returned unchanged)."""
    arr = np.asarray(values, dtype=np.float64)
    norm = float(np.linalg.norm(arr))
    if norm == 0.0:
        return arr.tolist()
    return (arr / norm).tolist()


def score_matrix(
    query: Sequence[float] | np.ndarray,
    matrix: Sequence[Sequence[float]] | np.ndarray,
    metric: DistanceMetric,
) -> np.ndarray:
    """Score *query* against every row of *matrix*.

    Parameters
    ----------
    query:
        A single vector of length ``d``.
    matrix:
        An ``(n, d)`` array of candidate vectors.
    metric:
        The collection's similarity metric.

    Returns
    -------
    numpy.ndarray
        ``n`` scores, higher is better.
    """
    q = np.asarray(query, dtype=np.float64)
    m = np.asarray(matrix, dtype=np.float64)
    if m.size == 0:
        return np.zeros(0, dtype=np.float64)
    if m.ndim == 1:
        m = m.reshape(1, -1)

    if metric == DistanceMetric.COSINE:
        dots = m @ q
        norms = np.linalg.norm(m, axis=1) * np.linalg.norm(q)
        scores = np.zeros_like(dots)
        np.divide(dots, norms, out=scores, where=norms != 0)
        return scores
    if metric == DistanceMetric.DOT_PRODUCT:
        return m @ q
    if metric == DistanceMetric.EUCLIDEAN:
        return -np.linalg.norm(m - q, axis=1)
    if metric == DistanceMetric.MANHATTAN:
        return -np.abs(m - q).sum(axis=1)
    raise ConfigurationError(message=f"Unsupported similarity metric: {metric}")


def similarity(
    a: Sequence[float] | np.ndarray,
    b: Sequence[float] | np.ndarray,
    metric: DistanceMetric = DistanceMetric.COSINE,
) -> float:
    """Score a single pair of vectors."""
    return float(score_matrix(a, [b], metric)[0])


def top_k_indices(scores: np.ndarray, k: int) -> list[int]:
    """Indices of the *k* best scores, best first.

    The sort is stable, so equal scores keep their original (insertion)
    order.
    """
    if k <= 0 or scores.size == 0:
        return []
    order = np.argsort(-scores, kind="stable")
    return [int(i) for i in order[:k]]


def validate_dimensions(dimension: int, vectors: Sequence[Sequence[float]]) -> None:
    """Raise DimensionMismatchError if any vector's length differs from *dimension*.

    Checks the whole batch before anything is written.
    """
    for values in vectors:
        if len(values) != dimension:
            raise DimensionMismatchError(
                message=f"Expected vectors of dimension {dimension}, got {len(values)}",
                expected=dimension,
                actual=len(values),
            )
