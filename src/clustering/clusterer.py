"""
Core semantic clustering logic: cosine k-means with k-means++ seeding.

Partitions article embeddings into topic groups. Unlike plain k-means,
a vector joins its nearest centroid only if the cosine similarity reaches
a floor; everything else stays unassigned (label -1).
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
from sklearn.metrics import silhouette_score
from sklearn.preprocessing import normalize

from src.common.errors import InsufficientDataError, ValidationError
from src.common.models import Cluster, ClusterResult, EmbeddingRecord
from .vector_math import mean_pairwise_similarity, similarity_matrix, stack_vectors

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 50

RandomSource = Union[None, int, np.random.SeedSequence, np.random.Generator, Any]


def _make_rng(random_state: RandomSource):
    """
    Build the random source used for seeding.

    Seeds and None go through numpy's default_rng. Any other object is used
    as-is and must provide integers(n) and choice(n, p=...) like a numpy
    Generator.
    """
    if random_state is None or isinstance(
        random_state, (int, np.integer, np.random.SeedSequence, np.random.Generator)
    ):
        return np.random.default_rng(random_state)
    return random_state


class SemanticClusterer:
    """
    Semantic clustering for article embeddings.

    Args:
        n_clusters: Requested number of clusters (clamped to n // min_cluster_size)
        min_cluster_size: Clusters smaller than this are dissolved (default: 3)
        min_similarity: Cosine floor for joining a centroid (default: 0.6)
        max_iterations: Upper bound on assignment rounds (default: 50)
        random_state: Seed, numpy Generator, or Generator-like object for seeding.
            None gives non-reproducible seeding.
    """

    def __init__(
        self,
        n_clusters: int = 5,
        min_cluster_size: int = 3,
        min_similarity: float = 0.6,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        random_state: RandomSource = None
    ):
        if n_clusters < 1:
            raise ValidationError(f"n_clusters must be >= 1, got {n_clusters}", field='n_clusters')
        if min_cluster_size < 1:
            raise ValidationError(
                f"min_cluster_size must be >= 1, got {min_cluster_size}", field='min_cluster_size'
            )
        if max_iterations < 1:
            raise ValidationError(
                f"max_iterations must be >= 1, got {max_iterations}", field='max_iterations'
            )

        self.n_clusters = n_clusters
        self.min_cluster_size = min_cluster_size
        self.min_similarity = min_similarity
        self.max_iterations = max_iterations
        self._rng = _make_rng(random_state)

        # Set after fit
        self.labels_ = None
        self.centroids_ = None
        self.effective_k = None
        self.n_seeds = 0
        self.n_iter_ = 0
        self.converged_ = False
        self.n_clusters_found = 0
        self.n_unassigned = 0

        logger.info(
            f"Initialized SemanticClusterer: n_clusters={n_clusters}, "
            f"min_cluster_size={min_cluster_size}, min_similarity={min_similarity}, "
            f"max_iterations={max_iterations}"
        )

    def required_samples(self) -> int:
        return 2 * self.min_cluster_size

    def fit_predict(self, embeddings: np.ndarray) -> np.ndarray:
        """
        Cluster embeddings and return cluster labels.

        Args:
            embeddings: Array of shape (n_samples, n_features)

        Returns:
            Array of labels; -1 marks unassigned vectors (below the similarity
            floor, or members of a dissolved undersized cluster)

        Raises:
            InsufficientDataError: If n_samples < 2 * min_cluster_size
            ValidationError: If embeddings are not a 2D array
        """
        embeddings = np.asarray(embeddings, dtype=np.float64)

        if embeddings.ndim != 2:
            raise ValidationError(f"Embeddings must be 2D array, got shape {embeddings.shape}")

        n_samples = embeddings.shape[0]
        if n_samples < self.required_samples():
            raise InsufficientDataError(found=n_samples, required=self.required_samples())

        self.effective_k = min(self.n_clusters, n_samples // self.min_cluster_size)
        if self.effective_k < self.n_clusters:
            logger.warning(
                f"Requested {self.n_clusters} clusters but {n_samples} embeddings with "
                f"min_cluster_size={self.min_cluster_size} support only {self.effective_k}"
            )

        logger.info(f"Clustering {n_samples} embeddings into at most {self.effective_k} clusters")

        normalized = normalize(embeddings, norm='l2')

        seeds = self._seed_centroids(normalized)
        self.n_seeds = len(seeds)
        centroids = embeddings[seeds].copy()

        labels = self._assign_until_stable(embeddings, normalized, centroids)
        labels = self._dissolve_small_clusters(labels)

        self.labels_ = labels
        self.centroids_ = centroids
        self._compute_statistics()

        return labels

    def _seed_centroids(self, normalized: np.ndarray) -> List[int]:
        """
        k-means++ seeding on cosine distance.

        The first seed is uniform. Each further seed is sampled with
        probability proportional to 1 - (max similarity to any chosen seed);
        chosen indices carry zero mass. Stops early if no mass is left.
        """
        n_samples = normalized.shape[0]
        chosen = [int(self._rng.integers(n_samples))]

        while len(chosen) < self.effective_k:
            sims = normalized @ normalized[chosen].T
            distances = np.clip(1.0 - sims.max(axis=1), 0.0, None)
            distances[chosen] = 0.0

            total = distances.sum()
            if total <= 0:
                logger.info(
                    f"Seeding stopped early with {len(chosen)} centroids "
                    f"(no distance mass left)"
                )
                break

            chosen.append(int(self._rng.choice(n_samples, p=distances / total)))

        return chosen

    def _assign_until_stable(
        self,
        embeddings: np.ndarray,
        normalized: np.ndarray,
        centroids: np.ndarray
    ) -> np.ndarray:
        """
        Alternate assignment and centroid update until labels stop changing.

        Mutates centroids in place. A centroid without members keeps its
        previous position.
        """
        n_samples = embeddings.shape[0]
        rows = np.arange(n_samples)
        labels = np.full(n_samples, -1, dtype=int)

        self.converged_ = False
        self.n_iter_ = 0

        for iteration in range(self.max_iterations):
            self.n_iter_ = iteration + 1

            sims = normalized @ normalize(centroids, norm='l2').T
            best = sims.argmax(axis=1)
            best_sim = sims[rows, best]
            new_labels = np.where(best_sim >= self.min_similarity, best, -1)

            if np.array_equal(new_labels, labels):
                self.converged_ = True
                break

            labels = new_labels

            for c in range(centroids.shape[0]):
                mask = labels == c
                if mask.any():
                    centroids[c] = embeddings[mask].mean(axis=0)

        if not self.converged_:
            logger.info(
                f"No convergence after {self.max_iterations} iterations; "
                f"returning best-effort partition"
            )

        return labels

    def _dissolve_small_clusters(self, labels: np.ndarray) -> np.ndarray:
        labels = labels.copy()
        for label in set(labels.tolist()) - {-1}:
            mask = labels == label
            if mask.sum() < self.min_cluster_size:
                logger.debug(f"Dissolving cluster {label} ({mask.sum()} members)")
                labels[mask] = -1
        return labels

    def _compute_statistics(self):
        """Compute clustering statistics after fit."""
        if self.labels_ is None:
            return

        unique_labels = set(self.labels_.tolist()) - {-1}
        self.n_clusters_found = len(unique_labels)
        self.n_unassigned = int(np.sum(self.labels_ == -1))

        logger.info(
            f"Clustering complete: {self.n_clusters_found} clusters found, "
            f"{self.n_unassigned} unassigned, {self.n_iter_} iterations"
        )

    def cluster(self, records: Sequence[EmbeddingRecord]) -> ClusterResult:
        """
        Partition embedding records into clusters.

        Args:
            records: Snapshot of article embeddings (unique IDs)

        Returns:
            ClusterResult with surviving clusters and unassigned IDs

        Raises:
            InsufficientDataError: If len(records) < 2 * min_cluster_size
            ComputationError: If record vectors have mixed dimensions
            ValidationError: If record IDs are not unique
        """
        if len(records) < self.required_samples():
            raise InsufficientDataError(found=len(records), required=self.required_samples())

        ids = [record.id for record in records]
        if len(set(ids)) != len(ids):
            raise ValidationError("Embedding record IDs must be unique", field='records')

        embeddings = stack_vectors([record.vector for record in records])
        labels = self.fit_predict(embeddings)

        clusters = []
        for label in sorted(set(labels.tolist()) - {-1}):
            indices = np.flatnonzero(labels == label)
            member_vectors = embeddings[indices]
            clusters.append(Cluster(
                member_ids=[ids[i] for i in indices],
                centroid=member_vectors.mean(axis=0),
                avg_internal_similarity=mean_pairwise_similarity(similarity_matrix(member_vectors)),
            ))

        unassigned_ids = [ids[i] for i in np.flatnonzero(labels == -1)]

        return ClusterResult(
            clusters=clusters,
            unassigned_ids=unassigned_ids,
            requested_k=self.n_clusters,
            effective_k=self.effective_k,
            n_seeds=self.n_seeds,
            iterations=self.n_iter_,
            converged=self.converged_,
        )

    def compute_quality_metrics(self, embeddings: np.ndarray) -> Dict[str, Any]:
        """
        Compute clustering quality metrics.

        Args:
            embeddings: Embeddings passed to the last fit

        Returns:
            Dictionary with silhouette score (cosine, over assigned vectors),
            cluster size statistics and unassigned count

        Raises:
            ValueError: If clustering hasn't been performed yet
        """
        if self.labels_ is None:
            raise ValueError("Must call fit_predict() before computing metrics")

        embeddings = np.asarray(embeddings, dtype=np.float64)
        metrics: Dict[str, Any] = {'silhouette_score': None}

        mask = self.labels_ != -1
        if self.n_clusters_found >= 2 and np.sum(mask) > self.n_clusters_found:
            try:
                score = silhouette_score(embeddings[mask], self.labels_[mask], metric='cosine')
                metrics['silhouette_score'] = float(score)
                logger.info(f"Silhouette score: {score:.3f}")
            except ValueError as e:
                logger.warning(f"Failed to compute silhouette score: {e}")
        else:
            logger.info("Too few clusters for silhouette score")

        cluster_sizes = [
            int(np.sum(self.labels_ == label))
            for label in set(self.labels_.tolist()) - {-1}
        ]
        if cluster_sizes:
            metrics['min_cluster_size'] = min(cluster_sizes)
            metrics['max_cluster_size'] = max(cluster_sizes)
            metrics['mean_cluster_size'] = float(np.mean(cluster_sizes))

        metrics['n_clusters'] = self.n_clusters_found
        metrics['n_unassigned'] = self.n_unassigned
        metrics['iterations'] = self.n_iter_
        metrics['converged'] = self.converged_

        return metrics

    def get_cluster_members(self, cluster_label: int) -> np.ndarray:
        """
        Get indices of all members with a given label.

        Args:
            cluster_label: Label to retrieve members for (-1 for unassigned)

        Returns:
            Array of indices with that label
        """
        if self.labels_ is None:
            raise ValueError("Must call fit_predict() before getting members")

        return np.where(self.labels_ == cluster_label)[0]


def cluster_embeddings(
    records: Sequence[EmbeddingRecord],
    k: int,
    min_cluster_size: int,
    min_similarity: float,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    random_state: Optional[RandomSource] = None
) -> ClusterResult:
    """Convenience wrapper: build a SemanticClusterer and cluster records."""
    clusterer = SemanticClusterer(
        n_clusters=k,
        min_cluster_size=min_cluster_size,
        min_similarity=min_similarity,
        max_iterations=max_iterations,
        random_state=random_state,
    )
    return clusterer.cluster(records)
