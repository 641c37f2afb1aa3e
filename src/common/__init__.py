"""
Shared models, errors and configuration for semantic graph analysis.
"""

from .errors import (
    ArticleNotFoundError,
    ComputationError,
    ExternalServiceError,
    InsufficientDataError,
    SemanticAnalysisError,
    ValidationError,
)
from .models import (
    Cluster,
    ClusterName,
    ClusterResult,
    EmbeddingRecord,
    GapCandidate,
    SearchGroup,
    SearchHit,
    SearchResult,
)

__all__ = [
    'ArticleNotFoundError',
    'Cluster',
    'ClusterName',
    'ClusterResult',
    'ComputationError',
    'EmbeddingRecord',
    'ExternalServiceError',
    'GapCandidate',
    'InsufficientDataError',
    'SearchGroup',
    'SearchHit',
    'SearchResult',
    'SemanticAnalysisError',
    'ValidationError',
]
