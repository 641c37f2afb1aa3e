"""
Gap analysis: semantically similar article pairs with no citation between them.

Every unordered pair in the snapshot is scored, so the cost is O(n^2) in
time and memory. Callers pass a single scope's citation-graph neighbourhood,
never the full corpus.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from src.common.errors import ValidationError
from src.common.models import EmbeddingRecord, GapCandidate
from src.clustering.vector_math import similarity_matrix
from .citations import CitationEdgeOracle, CitationIndex

logger = logging.getLogger(__name__)


def _percent(similarity: float) -> int:
    return int(np.floor(similarity * 100 + 0.5))


def gap_reason(similarity: float, year_a: Optional[int], year_b: Optional[int]) -> str:
    """
    Human-readable rationale for a gap, based on how far apart the works are in time.

    Args:
        similarity: Cosine similarity of the pair
        year_a: Publication year of the first article, if known
        year_b: Publication year of the second article, if known
    """
    pct = _percent(similarity)

    if year_a is not None and year_b is not None:
        year_diff = abs(year_a - year_b)
        if year_diff <= 2:
            return (
                f"High similarity ({pct}%) between contemporary works: "
                f"likely independent concurrent discovery"
            )
        if year_diff <= 5:
            return f"Similar topics ({pct}%) with a small time gap: recent, worth a citation check"
        return f"Thematic link ({pct}%) between works from different periods: cross-era thematic overlap"

    return f"Semantic similarity {pct}% without a direct citation"


class GapDetector:
    """
    Finds high-similarity article pairs that lack a citation edge.

    Args:
        threshold: Minimum cosine similarity for a pair (default: 0.7)
        limit: Maximum number of pairs returned (default: 50)
        year_from: Earliest publication year allowed (inclusive)
        year_to: Latest publication year allowed (inclusive)

    Articles without a known year pass the year filter.
    """

    def __init__(
        self,
        threshold: float = 0.7,
        limit: int = 50,
        year_from: Optional[int] = None,
        year_to: Optional[int] = None
    ):
        if limit < 1:
            raise ValidationError(f"limit must be >= 1, got {limit}", field='limit')
        if year_from is not None and year_to is not None and year_from > year_to:
            raise ValidationError(
                f"year_from ({year_from}) must not be after year_to ({year_to})", field='year_from'
            )

        self.threshold = threshold
        self.limit = limit
        self.year_from = year_from
        self.year_to = year_to

    def _year_allowed(self, year: Optional[int]) -> bool:
        if year is None:
            return True
        if self.year_from is not None and year < self.year_from:
            return False
        if self.year_to is not None and year > self.year_to:
            return False
        return True

    def detect(
        self,
        records: Sequence[EmbeddingRecord],
        citations: Optional[CitationEdgeOracle] = None
    ) -> List[GapCandidate]:
        """
        Run gap analysis over a snapshot.

        Args:
            records: Article embeddings with citation identifiers
            citations: Edge oracle (built from the records if None)

        Returns:
            Gap candidates, most similar first, at most self.limit
        """
        if citations is None:
            citations = CitationIndex(records)

        candidates = [record for record in records if self._year_allowed(record.year)]
        n = len(candidates)
        logger.info(
            f"Gap analysis over {n} articles ({len(records) - n} outside year range), "
            f"threshold={self.threshold}"
        )

        if n < 2:
            return []

        sims = similarity_matrix([record.vector for record in candidates])
        rows, cols = np.triu_indices(n, k=1)
        pair_sims = sims[rows, cols]

        keep = pair_sims >= self.threshold
        rows, cols, pair_sims = rows[keep], cols[keep], pair_sims[keep]

        # Stable sort keeps input pair order among equal similarities
        order = np.argsort(-pair_sims, kind='stable')

        gaps: List[GapCandidate] = []
        skipped_cited = 0

        for idx in order:
            a = candidates[rows[idx]]
            b = candidates[cols[idx]]

            if a.id == b.id:
                continue
            if citations.has_citation_edge(a.id, b.id):
                skipped_cited += 1
                continue

            similarity = float(pair_sims[idx])
            gaps.append(GapCandidate(
                id_a=a.id,
                id_b=b.id,
                similarity=similarity,
                reason=gap_reason(similarity, a.year, b.year),
                title_a=a.title,
                title_b=b.title,
                year_a=a.year,
                year_b=b.year,
            ))

            if len(gaps) >= self.limit:
                break

        logger.info(f"Found {len(gaps)} gaps ({skipped_cited} similar pairs already cited)")
        return gaps
