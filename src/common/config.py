"""
Environment configuration.

Environment Variables:
    GCP_PROJECT: Google Cloud project ID
    GCP_REGION: Google Cloud region (default: europe-west4)
    ARTICLES_COLLECTION: Firestore collection with articles and embeddings (default: articles)
    PROJECT_ARTICLES_COLLECTION: Firestore collection linking projects to articles
        (default: project_articles)
    CLUSTERS_COLLECTION: Firestore collection for semantic clusters (default: semantic_clusters)
    LLM_MODEL: Model used for cluster naming (default: gemini-2.5-flash)
    EMBEDDING_MODEL: Query embedding model (default: gemini-embedding-001)
    EMBEDDING_DIMENSIONS: Query embedding output dimensionality (default: 768)
    NAMING_TIMEOUT_SEC: Timeout for a single cluster naming call (default: 20)
    EMBEDDING_TIMEOUT_SEC: Timeout for a single query embedding call (default: 30)
    CLUSTER_NAME_LANGUAGE: Native language for generated cluster names (default: Russian)
"""

import os
import logging
from typing import Tuple

logger = logging.getLogger(__name__)

DEFAULT_REGION = 'europe-west4'
DEFAULT_LLM_MODEL = 'gemini-2.5-flash'
DEFAULT_EMBEDDING_MODEL = 'gemini-embedding-001'


def get_gcp_config() -> Tuple[str, str]:
    """
    Get GCP project and region from environment.

    Returns:
        Tuple of (project_id, region)
    """
    project = os.environ.get('GCP_PROJECT')
    region = os.environ.get('GCP_REGION', DEFAULT_REGION)
    return project, region


def get_collection_names() -> dict:
    """Firestore collection names keyed by role."""
    return {
        'articles': os.getenv('ARTICLES_COLLECTION', 'articles'),
        'project_articles': os.getenv('PROJECT_ARTICLES_COLLECTION', 'project_articles'),
        'clusters': os.getenv('CLUSTERS_COLLECTION', 'semantic_clusters'),
    }


def get_llm_model() -> str:
    return os.getenv('LLM_MODEL', DEFAULT_LLM_MODEL)


def get_embedding_model_name() -> str:
    return os.getenv('EMBEDDING_MODEL', DEFAULT_EMBEDDING_MODEL)


def get_embedding_dimensions() -> int:
    return _int_env('EMBEDDING_DIMENSIONS', 768)


def get_naming_timeout() -> float:
    return _float_env('NAMING_TIMEOUT_SEC', 20.0)


def get_embedding_timeout() -> float:
    return _float_env('EMBEDDING_TIMEOUT_SEC', 30.0)


def get_cluster_name_language() -> str:
    return os.getenv('CLUSTER_NAME_LANGUAGE', 'Russian')


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default
