"""
Cluster-aware semantic search ranking.

Ranks a scope's articles against a query vector and groups the hits by
their current cluster membership.
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from src.common.errors import ValidationError
from src.common.models import (
    Cluster,
    EmbeddingRecord,
    SearchGroup,
    SearchHit,
    SearchResult,
)
from src.clustering.vector_math import cosine_similarity
from .citations import CitationEdgeOracle, CitationIndex

logger = logging.getLogger(__name__)


def build_membership(clusters: Sequence[Cluster]) -> Dict[str, str]:
    """Map article ID -> cluster ID for persisted clusters."""
    membership = {}
    for cluster in clusters:
        if cluster.id is None:
            continue
        for member_id in cluster.member_ids:
            membership[member_id] = cluster.id
    return membership


def group_hits(
    hits: Sequence[SearchHit],
    clusters_by_id: Optional[Mapping[str, Cluster]] = None
) -> SearchResult:
    """
    Group ranked hits by cluster, in order of each cluster's first hit.

    Hits without a cluster go to the unclustered group. Per-group order
    follows the input order.
    """
    clusters_by_id = clusters_by_id or {}
    groups: Dict[str, SearchGroup] = {}
    unclustered: List[SearchHit] = []

    for hit in hits:
        if hit.cluster_id is None:
            unclustered.append(hit)
            continue
        if hit.cluster_id not in groups:
            cluster = clusters_by_id.get(hit.cluster_id)
            groups[hit.cluster_id] = SearchGroup(
                cluster_id=hit.cluster_id,
                hits=[],
                name=cluster.name.native if cluster is not None and cluster.name else None,
                color=cluster.color if cluster is not None else None,
            )
        groups[hit.cluster_id].hits.append(hit)

    return SearchResult(hits=list(hits), groups=list(groups.values()), unclustered=unclustered)


class SemanticSearchRanker:
    """
    Ranks a corpus against a query vector.

    Args:
        threshold: Minimum cosine similarity for a hit (default: 0.6)
        limit: Maximum number of hits (default: 20)
    """

    def __init__(self, threshold: float = 0.6, limit: int = 20):
        if limit < 1:
            raise ValidationError(f"limit must be >= 1, got {limit}", field='limit')
        self.threshold = threshold
        self.limit = limit

    def _score(
        self,
        query_vector: Sequence[float],
        corpus: Sequence[EmbeddingRecord]
    ) -> np.ndarray:
        query = np.asarray(query_vector, dtype=np.float64)
        return np.array(
            [cosine_similarity(query, record.vector) for record in corpus],
            dtype=np.float64,
        )

    def rank(
        self,
        query_vector: Sequence[float],
        corpus: Sequence[EmbeddingRecord],
        membership: Optional[Mapping[str, str]] = None,
        clusters: Optional[Sequence[Cluster]] = None,
        cluster_id: Optional[str] = None
    ) -> SearchResult:
        """
        Rank corpus articles by similarity to the query.

        Args:
            query_vector: Query embedding
            corpus: Articles to rank
            membership: Article ID -> cluster ID (derived from clusters if None)
            clusters: Persisted clusters, used for membership and group labels
            cluster_id: Keep only members of this cluster

        Returns:
            SearchResult; empty when nothing reaches the threshold
        """
        clusters = list(clusters or [])
        if membership is None:
            membership = build_membership(clusters)
        clusters_by_id = {cluster.id: cluster for cluster in clusters if cluster.id}

        if not corpus:
            return SearchResult(hits=[], groups=[], unclustered=[])

        scores = self._score(query_vector, corpus)
        order = np.argsort(-scores, kind='stable')

        hits: List[SearchHit] = []
        for idx in order:
            similarity = float(scores[idx])
            if not similarity >= self.threshold:
                break

            record = corpus[idx]
            member_of = membership.get(record.id)
            if cluster_id is not None and member_of != cluster_id:
                continue

            cluster = clusters_by_id.get(member_of) if member_of else None
            hits.append(SearchHit(
                id=record.id,
                similarity=similarity,
                cluster_id=member_of,
                title=record.title,
                year=record.year,
                cluster_name=cluster.name.native if cluster is not None and cluster.name else None,
                cluster_color=cluster.color if cluster is not None else None,
            ))

            if len(hits) >= self.limit:
                break

        logger.info(f"Ranked {len(corpus)} articles: {len(hits)} hits >= {self.threshold}")
        return group_hits(hits, clusters_by_id)

    def neighbors(
        self,
        article_id: str,
        corpus: Sequence[EmbeddingRecord],
        membership: Optional[Mapping[str, str]] = None,
        clusters: Optional[Sequence[Cluster]] = None,
        citations: Optional[CitationEdgeOracle] = None,
        vector: Optional[Sequence[float]] = None
    ) -> SearchResult:
        """
        Rank the corpus against an existing article, excluding the article itself.

        Each hit is flagged with whether it has a direct citation edge with
        the source article.

        Args:
            article_id: Source article
            corpus: Articles to rank
            membership: Article ID -> cluster ID
            clusters: Persisted clusters
            citations: Edge oracle (built from corpus if None)
            vector: Source embedding (looked up in corpus if None)

        Raises:
            ValidationError: If the source embedding is not available
        """
        if vector is None:
            source = next((record for record in corpus if record.id == article_id), None)
            if source is None:
                raise ValidationError(f"No embedding for article {article_id}", field='article_id')
            vector = source.vector

        if citations is None:
            citations = CitationIndex(corpus)

        others = [record for record in corpus if record.id != article_id]
        result = self.rank(vector, others, membership=membership, clusters=clusters)

        for hit in result.hits:
            hit.has_direct_citation = citations.has_citation_edge(article_id, hit.id)

        return result
