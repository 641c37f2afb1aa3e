"""
Persistence for article embeddings and semantic clusters.
"""

from .firestore_store import FirestoreClusterStore, FirestoreEmbeddingStore, get_firestore_client

__all__ = ['FirestoreClusterStore', 'FirestoreEmbeddingStore', 'get_firestore_client']
