"""
Cosine similarity and centroid arithmetic over embedding vectors.
"""

import logging
from typing import Sequence

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as _pairwise_cosine

from src.common.errors import ComputationError

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Returns 0 when either vector has zero norm or the dimensions differ;
    heterogeneous input is tolerated rather than rejected.

    Args:
        a: First vector
        b: Second vector

    Returns:
        dot(a, b) / (|a| * |b|), in [-1, 1]
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)

    if a.shape != b.shape:
        return 0.0

    denominator = np.linalg.norm(a) * np.linalg.norm(b)
    if denominator == 0:
        return 0.0

    return float(np.dot(a, b) / denominator)


def stack_vectors(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """
    Stack vectors into a (n, D) matrix.

    Raises:
        ComputationError: If the vectors do not share one dimension
    """
    dims = {len(v) for v in vectors}
    if len(dims) > 1:
        raise ComputationError(
            f"Embedding dimension mismatch across corpus: found dimensions {sorted(dims)}"
        )
    if len(vectors) == 0:
        return np.zeros((0, 0), dtype=np.float64)
    return np.vstack([np.asarray(v, dtype=np.float64) for v in vectors])


def centroid(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """Arithmetic mean of the vectors."""
    matrix = stack_vectors(vectors)
    if matrix.shape[0] == 0:
        raise ComputationError("Cannot compute centroid of an empty vector set")
    return matrix.mean(axis=0)


def similarity_matrix(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """
    Pairwise cosine similarity matrix.

    Uses the vectorised sklearn path when all vectors share a dimension
    (zero vectors score 0 against everything). Falls back to per-pair
    cosine_similarity for mixed dimensions, where mismatched pairs score 0.

    Args:
        vectors: n vectors

    Returns:
        Array of shape (n, n)
    """
    n = len(vectors)
    if n == 0:
        return np.zeros((0, 0), dtype=np.float64)

    try:
        matrix = stack_vectors(vectors)
    except ComputationError:
        logger.warning("Mixed embedding dimensions; computing similarities pair by pair")
        sims = np.zeros((n, n), dtype=np.float64)
        for i in range(n):
            for j in range(i, n):
                sims[i, j] = sims[j, i] = cosine_similarity(vectors[i], vectors[j])
        return sims

    return _pairwise_cosine(matrix)


def mean_pairwise_similarity(sims: np.ndarray) -> float:
    """Mean of the strict upper triangle of a similarity matrix (0 if n < 2)."""
    n = sims.shape[0]
    if n < 2:
        return 0.0
    upper = sims[np.triu_indices(n, k=1)]
    return float(upper.mean())
