"""
Representative member selection by degree-sum centrality.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from src.common.models import EmbeddingRecord
from .vector_math import similarity_matrix


@dataclass
class CentralMember:
    record: EmbeddingRecord
    index: int
    score: float


def find_central_member(members: Sequence[EmbeddingRecord]) -> Optional[CentralMember]:
    """
    Pick the cluster member most similar to all the others.

    Score is the sum of cosine similarity to every other member. Ties go to
    the earliest member in input order; a singleton is its own centre with
    score 0.

    Args:
        members: Cluster members

    Returns:
        CentralMember, or None for an empty cluster
    """
    if not members:
        return None

    sims = similarity_matrix([member.vector for member in members])
    np.fill_diagonal(sims, 0.0)
    scores = sims.sum(axis=1)

    best = int(np.argmax(scores))
    return CentralMember(record=members[best], index=best, score=float(scores[best]))
