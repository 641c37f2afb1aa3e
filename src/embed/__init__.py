"""
Query embedding generation for semantic search.
"""

from .query_embeddings import QueryEmbeddingService

__all__ = ['QueryEmbeddingService']
