"""
Semantic clustering of a project's citation graph.

Groups article embeddings by topic similarity with cosine k-means
(k-means++ seeding, similarity floor, small-cluster dissolution), then
derives per-cluster metadata: central article, keywords, name, colour.

Run from the command line with `python3 -m src.clustering --scope-id ...`
or through the semantic graph API (src.semantic_api).
"""

from .clusterer import SemanticClusterer, cluster_embeddings
from .cluster_metadata import ClusterMetadataGenerator, default_cluster_name
from .centrality import find_central_member
from .keywords import extract_keywords
from .vector_math import cosine_similarity

__all__ = [
    'ClusterMetadataGenerator',
    'SemanticClusterer',
    'cluster_embeddings',
    'cosine_similarity',
    'default_cluster_name',
    'extract_keywords',
    'find_central_member',
]
