"""
Semantic graph service.

Orchestrates the stores, the clustering engine, the metadata generator and
the analysis components for one scope (project):

- create_clusters / get_clusters / delete_clusters
- analyze_gaps: similar article pairs with no citation between them
- smart_search: query embedding ranked against the scope, grouped by cluster
- semantic_neighbors: articles most similar to one article
- auto_prepare: default clustering then a default gap scan, best effort
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

from src.analysis import CitationIndex, GapDetector, SemanticSearchRanker, build_membership
from src.clustering.cluster_metadata import ClusterMetadataGenerator
from src.clustering.clusterer import SemanticClusterer
from src.common.errors import ArticleNotFoundError
from src.common.models import Cluster, ClusterResult, EmbeddingRecord, SearchResult
from .schema import ClusterSettings, GapAnalysisSettings, NeighborSettings, SmartSearchSettings

logger = logging.getLogger(__name__)


def cluster_summary(cluster: Cluster) -> Dict[str, Any]:
    """Cluster as returned to API callers (no centroid)."""
    data = cluster.to_dict()
    data.pop('centroid', None)
    return data


def cluster_stats(
    clusters: Sequence[Cluster],
    total_articles: Optional[int] = None,
    result: Optional[ClusterResult] = None
) -> Dict[str, Any]:
    clustered = sum(cluster.size for cluster in clusters)
    stats = {
        'total_clusters': len(clusters),
        'clustered_articles': clustered,
        'avg_cluster_size': round(clustered / len(clusters), 1) if clusters else 0.0,
    }
    if total_articles is not None:
        stats['total_articles'] = total_articles
        stats['unclustered_articles'] = total_articles - clustered
    if result is not None:
        stats['requested_k'] = result.requested_k
        stats['effective_k'] = result.effective_k
        stats['iterations'] = result.iterations
        stats['converged'] = result.converged
    return stats


def search_response(result: SearchResult) -> Dict[str, Any]:
    return {
        'results': [hit.to_dict() for hit in result.hits],
        'groups': [group.to_dict() for group in result.groups],
        'unclustered': [hit.to_dict() for hit in result.unclustered],
        'total_found': result.total_found,
    }


class SemanticGraphService:
    """
    Entry point for all semantic graph operations.

    Collaborators are created lazily so that tests can inject fakes and
    read-only operations never build the naming or embedding clients.

    Args:
        embedding_store: fetch_graph_embeddings(scope_id), fetch_embedding(article_id)
        cluster_store: replace_clusters, get_clusters, delete_clusters
        namer: name_cluster(titles) -> ClusterName
        query_embedder: embed(text) -> vector
        random_state: Seed or numpy Generator for clustering
    """

    _run_locks: Dict[str, threading.Lock] = {}
    _run_locks_guard = threading.Lock()

    def __init__(
        self,
        embedding_store=None,
        cluster_store=None,
        namer=None,
        query_embedder=None,
        random_state=None
    ):
        self._embedding_store = embedding_store
        self._cluster_store = cluster_store
        self._namer = namer
        self._query_embedder = query_embedder
        self.random_state = random_state

    @property
    def embedding_store(self):
        if self._embedding_store is None:
            from src.store import FirestoreEmbeddingStore
            self._embedding_store = FirestoreEmbeddingStore()
        return self._embedding_store

    @property
    def cluster_store(self):
        if self._cluster_store is None:
            from src.store import FirestoreClusterStore
            self._cluster_store = FirestoreClusterStore()
        return self._cluster_store

    @property
    def namer(self):
        if self._namer is None:
            from src.llm.naming import ClusterNamer
            self._namer = ClusterNamer()
        return self._namer

    @property
    def query_embedder(self):
        if self._query_embedder is None:
            from src.embed.query_embeddings import QueryEmbeddingService
            self._query_embedder = QueryEmbeddingService()
        return self._query_embedder

    @classmethod
    @contextmanager
    def _clustering_run(cls, scope_id: str):
        """Serialize clustering runs per scope."""
        with cls._run_locks_guard:
            lock = cls._run_locks.setdefault(scope_id, threading.Lock())
        if lock.locked():
            logger.info(f"Clustering already running for scope {scope_id}, waiting")
        with lock:
            yield

    def load_records(self, scope_id: str) -> List[EmbeddingRecord]:
        """Snapshot the scope's embeddings, dropping duplicate IDs."""
        records = []
        seen = set()
        for record in self.embedding_store.fetch_graph_embeddings(scope_id):
            if record.id in seen:
                logger.warning(f"Duplicate embedding for article {record.id}, keeping first")
                continue
            seen.add(record.id)
            records.append(record)
        return records

    def create_clusters(
        self,
        scope_id: str,
        settings: Optional[ClusterSettings] = None,
        dry_run: bool = False
    ) -> Dict[str, Any]:
        """
        Cluster the scope and replace its persisted clusters.

        Args:
            scope_id: Project ID
            settings: Validated cluster settings (defaults if None)
            dry_run: Compute clusters without replacing the stored ones

        Raises:
            InsufficientDataError: If the scope has too few embeddings
            ComputationError: If the scope's embeddings have mixed dimensions
        """
        settings = settings or ClusterSettings()
        start_time = time.time()

        with self._clustering_run(scope_id):
            records = self.load_records(scope_id)
            logger.info(f"Clustering {len(records)} articles for scope {scope_id}")

            clusterer = SemanticClusterer(
                n_clusters=settings.num_clusters,
                min_cluster_size=settings.min_cluster_size,
                min_similarity=settings.similarity_threshold,
                random_state=self.random_state,
            )
            result = clusterer.cluster(records)
            if result.k_clamped:
                logger.warning(
                    f"Requested {result.requested_k} clusters, used {result.effective_k}"
                )
            quality = clusterer.compute_quality_metrics([record.vector for record in records])

            generator = ClusterMetadataGenerator(
                namer=self.namer if settings.generate_names else None,
                generate_names=settings.generate_names,
            )
            clusters = generator.generate(result, records, scope_id=scope_id)

            if dry_run:
                logger.info(f"DRY RUN - stored clusters for scope {scope_id} left unchanged")
            else:
                self.cluster_store.replace_clusters(scope_id, clusters)

        elapsed = time.time() - start_time
        logger.info(
            f"✅ Created {len(clusters)} clusters for scope {scope_id} in {elapsed:.2f}s"
        )

        return {
            'clusters': [cluster_summary(cluster) for cluster in clusters],
            'unclustered': list(result.unassigned_ids),
            'stats': cluster_stats(clusters, total_articles=len(records), result=result),
            'quality': quality,
            'processing_time_sec': round(elapsed, 2),
        }

    def get_clusters(self, scope_id: str) -> Dict[str, Any]:
        clusters = self.cluster_store.get_clusters(scope_id)
        return {
            'clusters': [cluster_summary(cluster) for cluster in clusters],
            'stats': cluster_stats(clusters),
        }

    def delete_clusters(self, scope_id: str) -> Dict[str, Any]:
        deleted = self.cluster_store.delete_clusters(scope_id)
        return {'deleted': deleted}

    def analyze_gaps(
        self,
        scope_id: str,
        settings: Optional[GapAnalysisSettings] = None
    ) -> Dict[str, Any]:
        """Find highly similar article pairs that do not cite each other."""
        settings = settings or GapAnalysisSettings()
        records = self.load_records(scope_id)

        detector = GapDetector(
            threshold=settings.threshold,
            limit=settings.limit,
            year_from=settings.year_from,
            year_to=settings.year_to,
        )
        gaps = detector.detect(records, CitationIndex(records))

        return {
            'gaps': [gap.to_dict() for gap in gaps],
            'total_found': len(gaps),
            'articles_analyzed': len(records),
        }

    def smart_search(self, scope_id: str, settings: SmartSearchSettings) -> Dict[str, Any]:
        """
        Semantic search within the scope, grouped by current clusters.

        Raises:
            ExternalServiceError: If the query cannot be embedded
        """
        query_vector = self.query_embedder.embed(settings.query)
        records = self.load_records(scope_id)
        clusters = self.cluster_store.get_clusters(scope_id)

        ranker = SemanticSearchRanker(threshold=settings.threshold, limit=settings.limit)
        result = ranker.rank(
            query_vector,
            records,
            membership=build_membership(clusters),
            clusters=clusters,
            cluster_id=settings.cluster_id,
        )

        response = search_response(result)
        response['query'] = settings.query
        return response

    def semantic_neighbors(
        self,
        scope_id: str,
        article_id: str,
        settings: Optional[NeighborSettings] = None
    ) -> Dict[str, Any]:
        """
        Articles in the scope most similar to one article.

        Raises:
            ArticleNotFoundError: If the article has no embedding
        """
        settings = settings or NeighborSettings()
        records = self.load_records(scope_id)

        source = next((record for record in records if record.id == article_id), None)
        vector = source.vector if source is not None else self.embedding_store.fetch_embedding(article_id)
        if vector is None or len(vector) == 0:
            raise ArticleNotFoundError(article_id)

        clusters = self.cluster_store.get_clusters(scope_id)
        ranker = SemanticSearchRanker(threshold=settings.threshold, limit=settings.limit)
        result = ranker.neighbors(
            article_id,
            records,
            membership=build_membership(clusters),
            clusters=clusters,
            citations=CitationIndex(records),
            vector=vector,
        )

        response = search_response(result)
        response['article_id'] = article_id
        return response

    def auto_prepare(self, scope_id: str) -> Dict[str, Any]:
        """
        Best-effort preparation after articles are added to a scope.

        Runs clustering and a gap scan with default settings. Failures are
        logged and reported, never raised.
        """
        summary: Dict[str, Any] = {'clusters_created': None, 'gaps_found': None}

        try:
            clustering = self.create_clusters(scope_id, ClusterSettings())
            summary['clusters_created'] = clustering['stats']['total_clusters']
        except Exception as e:
            logger.warning(f"Auto-preparation clustering failed for scope {scope_id}: {e}")

        try:
            gaps = self.analyze_gaps(scope_id, GapAnalysisSettings())
            summary['gaps_found'] = gaps['total_found']
        except Exception as e:
            logger.warning(f"Auto-preparation gap analysis failed for scope {scope_id}: {e}")

        logger.info(f"Auto-preparation for scope {scope_id}: {summary}")
        return summary
