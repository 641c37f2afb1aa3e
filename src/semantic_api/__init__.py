"""
Semantic graph API: request settings, service orchestration and the
Cloud Function HTTP entry point (src.semantic_api.main.semantic_graph).
"""

from .schema import ClusterSettings, GapAnalysisSettings, NeighborSettings, SmartSearchSettings
from .service import SemanticGraphService

__all__ = [
    'ClusterSettings',
    'GapAnalysisSettings',
    'NeighborSettings',
    'SemanticGraphService',
    'SmartSearchSettings',
]
