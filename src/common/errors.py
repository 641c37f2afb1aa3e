"""
Error taxonomy for semantic graph analysis.

ValidationError and InsufficientDataError are surfaced to callers with a
precise explanation. ExternalServiceError covers the naming and embedding
providers. ArticleNotFoundError marks a neighbour lookup for an article
without an embedding. ComputationError marks unexpected internal failures.
"""

from typing import Optional


class SemanticAnalysisError(Exception):
    """Base class for all semantic analysis errors."""


class ValidationError(SemanticAnalysisError, ValueError):
    """Malformed or out-of-range configuration, rejected before computation."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InsufficientDataError(SemanticAnalysisError):
    """Fewer embeddings than clustering requires."""

    def __init__(self, found: int, required: int):
        super().__init__(
            f"Found {found} articles with embeddings, need at least {required}"
        )
        self.found = found
        self.required = required


class ExternalServiceError(SemanticAnalysisError):
    """Naming or embedding provider failed, timed out, or replied garbage."""

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service


class ComputationError(SemanticAnalysisError):
    """Unexpected internal failure, e.g. mixed vector dimensions."""


class ArticleNotFoundError(SemanticAnalysisError):
    """Requested article has no stored embedding."""

    def __init__(self, article_id: str):
        super().__init__(f"No embedding found for article {article_id}")
        self.article_id = article_id
