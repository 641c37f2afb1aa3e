"""
Similarity analysis over a scope's citation graph: missing-citation gaps
and cluster-aware semantic search.
"""

from .citations import CitationIndex
from .gap_detector import GapDetector, gap_reason
from .semantic_search import SemanticSearchRanker, build_membership, group_hits

__all__ = [
    'CitationIndex',
    'GapDetector',
    'SemanticSearchRanker',
    'build_membership',
    'gap_reason',
    'group_hits',
]
