"""
Firestore-backed embedding store and cluster store.

Embedding store: reads a scope's citation-graph neighbourhood (the
project's own articles plus one hop of references and citing articles).

Cluster store: persists semantic clusters per scope. A clustering run
replaces all clusters of its scope in one atomic write batch, so readers
see either the old or the new complete set.
"""

import os
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
from google.cloud import firestore
from google.cloud.firestore_v1.vector import Vector

from src.common.config import get_collection_names
from src.common.errors import ComputationError
from src.common.models import Cluster, EmbeddingRecord

logger = logging.getLogger(__name__)

# Firestore limits
MAX_BATCH_OPERATIONS = 500
MAX_IN_QUERY_VALUES = 30

# Global Firestore client (lazy initialization)
_firestore_client = None


def get_firestore_client() -> firestore.Client:
    """
    Get or create Firestore client instance (cached).

    Returns:
        Initialized Firestore client
    """
    global _firestore_client

    if _firestore_client is None:
        project = os.getenv('GCP_PROJECT')
        logger.info(f"Initializing Firestore client for project: {project}")
        _firestore_client = firestore.Client(project=project)

    return _firestore_client


def to_float_list(embedding: Any) -> Optional[List[float]]:
    """
    Extract embedding values from a Firestore Vector or plain list.

    Returns:
        List of floats, or None if the value is not an embedding
    """
    if embedding is None:
        return None
    if hasattr(embedding, 'to_map_value'):
        map_value = embedding.to_map_value()
        values = map_value.get('value', map_value)
        return [float(v) for v in values]
    if isinstance(embedding, (list, tuple, np.ndarray)):
        return [float(v) for v in embedding]
    return None


def _chunks(values: List[str], size: int) -> Iterable[List[str]]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


class FirestoreEmbeddingStore:
    """
    Reads article embeddings for a scope.

    Articles documents carry: embedding, title_en, abstract_en, year, pmid,
    reference_pmids, cited_by_pmids. project_articles documents link a
    project_id to an article_id with a status.

    Args:
        db: Firestore client (shared lazy client if None)
        articles_collection: Articles collection name
        project_articles_collection: Project membership collection name
    """

    def __init__(
        self,
        db: Optional[firestore.Client] = None,
        articles_collection: Optional[str] = None,
        project_articles_collection: Optional[str] = None
    ):
        names = get_collection_names()
        self.db = db or get_firestore_client()
        self.articles_collection = articles_collection or names['articles']
        self.project_articles_collection = project_articles_collection or names['project_articles']

    def _project_article_ids(self, scope_id: str) -> List[str]:
        docs = (
            self.db.collection(self.project_articles_collection)
            .where('project_id', '==', scope_id)
            .stream()
        )

        article_ids = []
        for doc in docs:
            data = doc.to_dict()
            if data.get('status') == 'deleted' or not data.get('article_id'):
                continue
            article_ids.append(data['article_id'])
        return article_ids

    def _articles_by_id(self, article_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        if not article_ids:
            return {}
        collection = self.db.collection(self.articles_collection)
        refs = [collection.document(article_id) for article_id in article_ids]

        articles = {}
        for snapshot in self.db.get_all(refs):
            if snapshot.exists:
                articles[snapshot.id] = snapshot.to_dict()
        return articles

    def _articles_by_pmid(self, pmids: List[str]) -> Dict[str, Dict[str, Any]]:
        collection = self.db.collection(self.articles_collection)
        articles = {}
        for chunk in _chunks(pmids, MAX_IN_QUERY_VALUES):
            for doc in collection.where('pmid', 'in', chunk).stream():
                articles[doc.id] = doc.to_dict()
        return articles

    def fetch_graph_embeddings(self, scope_id: str) -> List[EmbeddingRecord]:
        """
        Fetch every article embedding reachable from the scope.

        Args:
            scope_id: Project ID

        Returns:
            Records for project articles and their one-hop citation neighbours,
            project articles first; articles without embeddings are skipped
        """
        logger.info(f"Loading graph embeddings for scope {scope_id}")

        project_articles = self._articles_by_id(self._project_article_ids(scope_id))

        neighbour_pmids = set()
        for data in project_articles.values():
            neighbour_pmids.update(str(p) for p in data.get('reference_pmids') or [])
            neighbour_pmids.update(str(p) for p in data.get('cited_by_pmids') or [])

        neighbours = self._articles_by_pmid(sorted(neighbour_pmids))

        records = []
        seen = set()
        for article_id, data in list(project_articles.items()) + list(neighbours.items()):
            if article_id in seen:
                continue
            seen.add(article_id)

            record = self._to_record(article_id, data)
            if record is not None:
                records.append(record)

        logger.info(
            f"Loaded {len(records)} embeddings ({len(project_articles)} project articles, "
            f"{len(neighbours)} citation neighbours)"
        )
        return records

    def fetch_embedding(self, article_id: str) -> Optional[List[float]]:
        """Fetch one article's embedding, or None if missing."""
        doc = self.db.collection(self.articles_collection).document(article_id).get()
        if not doc.exists:
            logger.warning(f"Article {article_id} not found")
            return None
        return to_float_list(doc.to_dict().get('embedding'))

    @staticmethod
    def _to_record(article_id: str, data: Dict[str, Any]) -> Optional[EmbeddingRecord]:
        vector = to_float_list(data.get('embedding'))
        if not vector:
            logger.warning(f"Article {article_id} missing embedding, skipping")
            return None

        pmid = data.get('pmid')
        return EmbeddingRecord(
            id=article_id,
            vector=vector,
            title=data.get('title_en') or '',
            abstract=data.get('abstract_en') or '',
            year=data.get('year'),
            citation_id=str(pmid) if pmid else None,
            reference_ids=frozenset(str(p) for p in data.get('reference_pmids') or []),
            cited_by_ids=frozenset(str(p) for p in data.get('cited_by_pmids') or []),
        )


class FirestoreClusterStore:
    """
    Persists semantic clusters, one document per cluster, keyed by scope_id.

    Args:
        db: Firestore client (shared lazy client if None)
        collection_name: Clusters collection name
    """

    _locks: Dict[str, threading.Lock] = {}
    _locks_guard = threading.Lock()

    def __init__(
        self,
        db: Optional[firestore.Client] = None,
        collection_name: Optional[str] = None
    ):
        self.db = db or get_firestore_client()
        self.collection_name = collection_name or get_collection_names()['clusters']

    @classmethod
    @contextmanager
    def _scope_lock(cls, scope_id: str):
        with cls._locks_guard:
            lock = cls._locks.setdefault(scope_id, threading.Lock())
        with lock:
            yield

    def _scope_documents(self, scope_id: str) -> list:
        return list(
            self.db.collection(self.collection_name)
            .where('scope_id', '==', scope_id)
            .stream()
        )

    def replace_clusters(self, scope_id: str, clusters: List[Cluster]) -> List[Cluster]:
        """
        Atomically replace all clusters of a scope.

        Deletes and inserts go into one write batch; Firestore commits it
        all-or-nothing. Writers for the same scope are serialized.

        Args:
            scope_id: Project ID
            clusters: New clusters (IDs are assigned here)

        Returns:
            The clusters with id and scope_id set
        """
        with self._scope_lock(scope_id):
            collection = self.db.collection(self.collection_name)
            existing = self._scope_documents(scope_id)

            operations = len(existing) + len(clusters)
            if operations > MAX_BATCH_OPERATIONS:
                raise ComputationError(
                    f"Replacing clusters for {scope_id} needs {operations} writes, "
                    f"more than one atomic batch allows ({MAX_BATCH_OPERATIONS})"
                )

            batch = self.db.batch()
            for doc in existing:
                batch.delete(doc.reference)

            new_refs = []
            for cluster in clusters:
                cluster.scope_id = scope_id
                doc_ref = collection.document()
                batch.set(doc_ref, self._to_document(cluster))
                new_refs.append(doc_ref)

            try:
                batch.commit()
            except Exception as e:
                logger.error(f"Error committing cluster replacement for {scope_id}: {e}")
                raise

            for cluster, doc_ref in zip(clusters, new_refs):
                cluster.id = doc_ref.id

        logger.info(
            f"✅ Replaced {len(existing)} clusters with {len(clusters)} for scope {scope_id}"
        )
        return clusters

    def get_clusters(self, scope_id: str) -> List[Cluster]:
        """
        Fetch all clusters of a scope, largest first.
        """
        clusters = [self._from_document(doc) for doc in self._scope_documents(scope_id)]
        clusters.sort(key=lambda cluster: cluster.size, reverse=True)
        logger.info(f"Retrieved {len(clusters)} clusters for scope {scope_id}")
        return clusters

    def delete_clusters(self, scope_id: str) -> int:
        """
        Delete all clusters of a scope in one batch.

        Returns:
            Number of clusters deleted
        """
        with self._scope_lock(scope_id):
            existing = self._scope_documents(scope_id)
            if not existing:
                return 0

            batch = self.db.batch()
            for doc in existing:
                batch.delete(doc.reference)
            batch.commit()

        logger.info(f"Deleted {len(existing)} clusters for scope {scope_id}")
        return len(existing)

    @staticmethod
    def _to_document(cluster: Cluster) -> Dict[str, Any]:
        data = cluster.to_dict()
        data.pop('id', None)
        data['centroid'] = Vector(cluster.centroid.tolist())
        data['created_at'] = cluster.created_at
        return data

    @staticmethod
    def _from_document(doc) -> Cluster:
        data = doc.to_dict()
        data['id'] = doc.id
        data['centroid'] = to_float_list(data.get('centroid')) or []
        return Cluster.from_dict(data)
