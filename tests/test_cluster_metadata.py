"""
Tests for cluster metadata generation: colours, centre, keywords, names.
"""

import unittest
from unittest.mock import MagicMock

import numpy as np
import pytest

from src.clustering.cluster_metadata import (
    CLUSTER_COLORS,
    ClusterMetadataGenerator,
    default_cluster_name,
)
from src.common.errors import ExternalServiceError
from src.common.models import Cluster, ClusterName, ClusterResult, EmbeddingRecord


def make_result(groups):
    clusters = [
        Cluster(
            member_ids=[record.id for record in group],
            centroid=np.mean([record.vector for record in group], axis=0),
            avg_internal_similarity=0.9,
        )
        for group in groups
    ]
    return ClusterResult(clusters=clusters, unassigned_ids=[], requested_k=len(groups),
                         effective_k=len(groups))


class TestClusterMetadataGenerator(unittest.TestCase):

    def setUp(self):
        self.group_a = [
            EmbeddingRecord(id='a1', vector=[1.0, 0.0], title='Deep Learning for Cancer Detection'),
            EmbeddingRecord(id='a2', vector=[1.0, 0.2], title='Deep Learning in Oncology'),
            EmbeddingRecord(id='a3', vector=[1.0, 0.4], title=''),
        ]
        self.group_b = [
            EmbeddingRecord(id='b1', vector=[0.0, 1.0], title='Gut Microbiome Diversity'),
            EmbeddingRecord(id='b2', vector=[0.1, 1.0], title='Microbiome and Diet'),
            EmbeddingRecord(id='b3', vector=[0.2, 1.0], title='Microbiome Signatures'),
        ]
        self.records = self.group_a + self.group_b

    def test_names_colours_and_keywords(self):
        namer = MagicMock()
        namer.name_cluster.side_effect = [
            ClusterName(native='Глубокое обучение', en='Deep Learning'),
            ClusterName(native='Микробиом', en='Microbiome'),
        ]

        clusters = ClusterMetadataGenerator(namer=namer).generate(
            make_result([self.group_a, self.group_b]), self.records, scope_id='project-1'
        )

        self.assertEqual([c.color for c in clusters], CLUSTER_COLORS[:2])
        self.assertEqual(clusters[0].name.en, 'Deep Learning')
        self.assertEqual(clusters[1].name.native, 'Микробиом')
        self.assertEqual(clusters[0].keywords[:2], ['deep', 'learning'])
        self.assertEqual(clusters[1].keywords[0], 'microbiome')
        self.assertTrue(all(c.scope_id == 'project-1' for c in clusters))

        # Empty titles are not sent for naming
        namer.name_cluster.assert_any_call(
            ['Deep Learning for Cancer Detection', 'Deep Learning in Oncology']
        )

    def test_central_member_and_similarity_to_center(self):
        clusters = ClusterMetadataGenerator(generate_names=False).generate(
            make_result([self.group_a]), self.records
        )

        cluster = clusters[0]
        self.assertEqual(cluster.central_id, 'a2')
        self.assertAlmostEqual(cluster.similarity_to_center['a2'], 1.0)
        self.assertEqual(set(cluster.similarity_to_center), {'a1', 'a2', 'a3'})
        self.assertLess(cluster.similarity_to_center['a1'], 1.0)

    def test_naming_failure_falls_back_to_default(self):
        namer = MagicMock()
        namer.name_cluster.side_effect = [
            ExternalServiceError('cluster-naming', 'Timed out after 20s'),
            RuntimeError('unexpected'),
        ]

        clusters = ClusterMetadataGenerator(namer=namer).generate(
            make_result([self.group_a, self.group_b]), self.records
        )

        self.assertEqual(clusters[0].name, ClusterName(native='Кластер 1', en='Cluster 1'))
        self.assertEqual(clusters[1].name, ClusterName(native='Кластер 2', en='Cluster 2'))

    def test_naming_disabled(self):
        namer = MagicMock()

        clusters = ClusterMetadataGenerator(namer=namer, generate_names=False).generate(
            make_result([self.group_a]), self.records
        )

        namer.name_cluster.assert_not_called()
        self.assertEqual(clusters[0].name.en, 'Cluster 1')


@pytest.mark.parametrize("position,expected", [(0, 0), (11, 11), (12, 0), (13, 1)])
def test_colour_palette_cycles(position, expected):
    groups = [[EmbeddingRecord(id=f"r{i}", vector=[1.0, float(i)])] for i in range(position + 1)]
    records = [group[0] for group in groups]

    clusters = ClusterMetadataGenerator().generate(make_result(groups), records)

    assert clusters[position].color == CLUSTER_COLORS[expected]


def test_default_cluster_name():
    assert default_cluster_name(3).to_dict() == {'native': 'Кластер 3', 'en': 'Cluster 3'}
