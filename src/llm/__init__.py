"""
LLM access for cluster naming.

Usage:
    from src.llm import get_client
    client = get_client()
    data = client.generate_json('Return JSON with keys: en, native')

Environment Variables:
    LLM_MODEL: Gemini model to use (default: gemini-2.5-flash)
    GCP_PROJECT: GCP project ID
    GCP_REGION: GCP region
"""

import logging
from typing import Dict, Optional

from src.common.config import get_llm_model
from .base import BaseLLMClient, GenerationConfig, LLMProvider, LLMResponse
from .naming import ClusterNamer

logger = logging.getLogger(__name__)

_client_cache: Dict[str, BaseLLMClient] = {}


def get_client(
    model: Optional[str] = None,
    project_id: Optional[str] = None,
    region: Optional[str] = None,
    cache: bool = True,
) -> BaseLLMClient:
    """
    Get an LLM client for the given model.

    Args:
        model: Gemini model ID (LLM_MODEL env var if None)
        project_id: GCP project ID (GCP_PROJECT env var if None)
        region: GCP region (GCP_REGION env var if None)
        cache: Whether to reuse client instances (default: True)

    Returns:
        Configured LLM client
    """
    from .gemini import GeminiClient

    model_id = model or get_llm_model()
    cache_key = f"{model_id}:{project_id}:{region}"
    if cache and cache_key in _client_cache:
        return _client_cache[cache_key]

    client = GeminiClient(model_id=model_id, project_id=project_id, region=region)

    if cache:
        _client_cache[cache_key] = client

    logger.info(f"Created LLM client: {client}")
    return client


def clear_cache() -> None:
    """Clear the client cache."""
    _client_cache.clear()


__all__ = [
    'BaseLLMClient',
    'ClusterNamer',
    'GenerationConfig',
    'LLMProvider',
    'LLMResponse',
    'clear_cache',
    'get_client',
]
