"""
Unit tests for clustering module.

Tests the cosine k-means engine, quality metrics, and helper functions.
"""

import unittest
import numpy as np
import pytest

from src.clustering.clusterer import SemanticClusterer, cluster_embeddings
from src.common.errors import ComputationError, InsufficientDataError, ValidationError
from src.common.models import EmbeddingRecord


class FirstThenFarthestRng:
    """Deterministic stand-in for numpy Generator: first index 0, then the heaviest weight."""

    def integers(self, n):
        return 0

    def choice(self, n, p=None):
        return int(np.argmax(p))


def two_group_records():
    """Six records: three near the x axis, three near the y axis."""
    vectors = [
        [1.0, 0.1, 0.0],
        [1.0, 0.0, 0.1],
        [0.95, 0.1, 0.05],
        [0.1, 1.0, 0.0],
        [0.0, 1.0, 0.1],
        [0.05, 0.95, 0.1],
    ]
    ids = ['a1', 'a2', 'a3', 'b1', 'b2', 'b3']
    return [EmbeddingRecord(id=i, vector=v, title=f"Title {i}") for i, v in zip(ids, vectors)]


class TestSemanticClusterer(unittest.TestCase):
    """Test SemanticClusterer class."""

    def setUp(self):
        """Set up test fixtures."""
        # Create synthetic embeddings (3 groups of similar vectors)
        rng = np.random.default_rng(42)

        # Group 1: embeddings around [1, 0, 0, ...]
        group1 = rng.normal(size=(5, 64)) * 0.05
        group1[:, 0] += 1.0

        # Group 2: embeddings around [0, 1, 0, ...]
        group2 = rng.normal(size=(5, 64)) * 0.05
        group2[:, 1] += 1.0

        # Group 3: embeddings around [0, 0, 1, ...]
        group3 = rng.normal(size=(5, 64)) * 0.05
        group3[:, 2] += 1.0

        self.synthetic_embeddings = np.vstack([group1, group2, group3])

    def test_initialization(self):
        """Test clusterer initialization."""
        clusterer = SemanticClusterer(n_clusters=4, min_cluster_size=2, min_similarity=0.5)

        self.assertEqual(clusterer.n_clusters, 4)
        self.assertEqual(clusterer.min_cluster_size, 2)
        self.assertEqual(clusterer.min_similarity, 0.5)
        self.assertEqual(clusterer.max_iterations, 50)
        self.assertIsNone(clusterer.labels_)

    def test_invalid_parameters(self):
        """Test parameter validation."""
        with self.assertRaises(ValidationError):
            SemanticClusterer(n_clusters=0)
        with self.assertRaises(ValidationError):
            SemanticClusterer(min_cluster_size=0)
        with self.assertRaises(ValidationError):
            SemanticClusterer(max_iterations=0)

    def test_two_tight_groups(self):
        """Two well-separated groups of three form exactly two clusters."""
        clusterer = SemanticClusterer(
            n_clusters=2,
            min_cluster_size=3,
            min_similarity=0.6,
            random_state=FirstThenFarthestRng()
        )

        result = clusterer.cluster(two_group_records())

        self.assertEqual(len(result.clusters), 2)
        self.assertEqual(result.unassigned_ids, [])
        member_sets = sorted(sorted(c.member_ids) for c in result.clusters)
        self.assertEqual(member_sets, [['a1', 'a2', 'a3'], ['b1', 'b2', 'b3']])
        for cluster in result.clusters:
            self.assertEqual(cluster.size, 3)
            self.assertGreater(cluster.avg_internal_similarity, 0.6)
        self.assertTrue(result.converged)

    def test_centroid_is_member_mean(self):
        """Each cluster centroid is the mean of its member vectors."""
        records = two_group_records()
        by_id = {r.id: r for r in records}

        result = SemanticClusterer(
            n_clusters=2, min_cluster_size=3, random_state=FirstThenFarthestRng()
        ).cluster(records)

        for cluster in result.clusters:
            expected = np.mean([by_id[m].vector for m in cluster.member_ids], axis=0)
            np.testing.assert_allclose(cluster.centroid, expected)

    def test_insufficient_data(self):
        """Four embeddings with min_cluster_size=3 is not enough."""
        records = two_group_records()[:4]
        clusterer = SemanticClusterer(n_clusters=2, min_cluster_size=3)

        with self.assertRaises(InsufficientDataError) as ctx:
            clusterer.cluster(records)

        self.assertEqual(ctx.exception.found, 4)
        self.assertEqual(ctx.exception.required, 6)

    def test_duplicate_ids_rejected(self):
        records = two_group_records()
        records[5] = EmbeddingRecord(id='a1', vector=[0.0, 1.0, 0.0])

        with self.assertRaises(ValidationError):
            SemanticClusterer(n_clusters=2, min_cluster_size=3).cluster(records)

    def test_mixed_dimensions_rejected(self):
        """A snapshot mixing embedding dimensions cannot be clustered."""
        records = two_group_records()
        records[4] = EmbeddingRecord(id='b2', vector=[0.0, 1.0, 0.1, 0.0])

        with self.assertRaises(ComputationError):
            SemanticClusterer(n_clusters=2, min_cluster_size=3).cluster(records)

    def test_k_clamped_to_sample_count(self):
        """Requested k above n // min_cluster_size is clamped and reported."""
        clusterer = SemanticClusterer(
            n_clusters=10, min_cluster_size=3, random_state=FirstThenFarthestRng()
        )

        result = clusterer.cluster(two_group_records())

        self.assertEqual(result.requested_k, 10)
        self.assertEqual(result.effective_k, 2)
        self.assertTrue(result.k_clamped)

    def test_size_and_conservation_invariants(self):
        """Every cluster meets the minimum size and all vectors are accounted for."""
        records = [
            EmbeddingRecord(id=f"doc-{i}", vector=v)
            for i, v in enumerate(self.synthetic_embeddings)
        ]

        for seed in range(5):
            result = cluster_embeddings(
                records, k=4, min_cluster_size=3, min_similarity=0.6, random_state=seed
            )

            total = sum(c.size for c in result.clusters) + len(result.unassigned_ids)
            self.assertEqual(total, len(records))
            for cluster in result.clusters:
                self.assertGreaterEqual(cluster.size, 3)

            assigned = [m for c in result.clusters for m in c.member_ids]
            self.assertEqual(len(assigned), len(set(assigned)))

    def test_reproducible_with_seed(self):
        """Same seed gives the same partition."""
        first = SemanticClusterer(n_clusters=3, min_cluster_size=3, random_state=7)
        second = SemanticClusterer(n_clusters=3, min_cluster_size=3, random_state=7)

        labels_1 = first.fit_predict(self.synthetic_embeddings)
        labels_2 = second.fit_predict(self.synthetic_embeddings)

        np.testing.assert_array_equal(labels_1, labels_2)

    def test_similarity_floor_leaves_outliers_unassigned(self):
        """Vectors below the floor for every centroid stay unassigned."""
        records = two_group_records() + [
            EmbeddingRecord(id='outlier', vector=[0.5, -0.5, 0.7]),
        ]

        result = SemanticClusterer(
            n_clusters=2, min_cluster_size=3, min_similarity=0.6,
            random_state=FirstThenFarthestRng()
        ).cluster(records)

        self.assertIn('outlier', result.unassigned_ids)
        self.assertEqual(sum(c.size for c in result.clusters), 6)

    def test_undersized_clusters_dissolved(self):
        """A cluster smaller than min_cluster_size dissolves into unassigned."""
        vectors = [[1.0, 0.0]] * 4 + [[0.0, 1.0]] * 2
        records = [EmbeddingRecord(id=f"r{i}", vector=v) for i, v in enumerate(vectors)]

        result = SemanticClusterer(
            n_clusters=2, min_cluster_size=3, random_state=FirstThenFarthestRng()
        ).cluster(records)

        self.assertEqual(len(result.clusters), 1)
        self.assertEqual(result.clusters[0].size, 4)
        self.assertEqual(sorted(result.unassigned_ids), ['r4', 'r5'])

    def test_identical_vectors_stop_seeding_early(self):
        """No distance mass left means fewer seeds than k, not an error."""
        records = [EmbeddingRecord(id=f"r{i}", vector=[1.0, 0.0]) for i in range(6)]

        clusterer = SemanticClusterer(n_clusters=2, min_cluster_size=3, random_state=0)
        result = clusterer.cluster(records)

        self.assertEqual(clusterer.n_seeds, 1)
        self.assertEqual(len(result.clusters), 1)
        self.assertEqual(result.clusters[0].size, 6)
        self.assertAlmostEqual(result.clusters[0].avg_internal_similarity, 1.0)

    def test_max_iterations_bounds_loop(self):
        clusterer = SemanticClusterer(
            n_clusters=3, min_cluster_size=3, max_iterations=1, random_state=0
        )
        clusterer.fit_predict(self.synthetic_embeddings)

        self.assertEqual(clusterer.n_iter_, 1)
        self.assertFalse(clusterer.converged_)

    def test_fit_predict_rejects_1d_input(self):
        with self.assertRaises(ValidationError):
            SemanticClusterer().fit_predict(np.ones(10))

    def test_quality_metrics(self):
        """Test quality metrics computation."""
        clusterer = SemanticClusterer(
            n_clusters=2, min_cluster_size=3, random_state=FirstThenFarthestRng()
        )
        embeddings = np.vstack([r.vector for r in two_group_records()])
        clusterer.fit_predict(embeddings)

        metrics = clusterer.compute_quality_metrics(embeddings)

        self.assertEqual(metrics['n_clusters'], 2)
        self.assertEqual(metrics['n_unassigned'], 0)
        self.assertEqual(metrics['min_cluster_size'], 3)
        self.assertEqual(metrics['max_cluster_size'], 3)
        self.assertGreater(metrics['silhouette_score'], 0.5)

    def test_metrics_before_fit(self):
        """Test that metrics raise error before fitting."""
        with self.assertRaises(ValueError):
            SemanticClusterer().compute_quality_metrics(self.synthetic_embeddings)

    def test_get_cluster_members(self):
        """Test getting cluster members."""
        clusterer = SemanticClusterer(
            n_clusters=2, min_cluster_size=3, random_state=FirstThenFarthestRng()
        )
        labels = clusterer.fit_predict(np.vstack([r.vector for r in two_group_records()]))

        members = clusterer.get_cluster_members(labels[0])
        self.assertEqual(members.tolist(), [0, 1, 2])


@pytest.mark.parametrize("n_records,min_size", [(6, 3), (9, 2), (12, 4)])
def test_every_vector_accounted_for(n_records, min_size):
    rng = np.random.default_rng(n_records)
    records = [
        EmbeddingRecord(id=f"r{i}", vector=rng.normal(size=16))
        for i in range(n_records)
    ]

    result = cluster_embeddings(records, k=3, min_cluster_size=min_size, min_similarity=0.3,
                                random_state=1)

    assert sum(c.size for c in result.clusters) + len(result.unassigned_ids) == n_records
    assert all(c.size >= min_size for c in result.clusters)
