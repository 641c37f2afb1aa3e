"""
Gemini client via the Google Gen AI SDK on Vertex AI.
"""

import logging
import time
from typing import Optional

from src.common.config import DEFAULT_LLM_MODEL, get_gcp_config
from .base import BaseLLMClient, GenerationConfig, LLMProvider, LLMResponse

logger = logging.getLogger(__name__)

# Retry configuration
MAX_RETRIES = 3
INITIAL_BACKOFF = 1.0
MAX_BACKOFF = 30.0

_RETRIABLE_MARKERS = ('rate', 'quota', '429', 'internal', '500', '503')


class GeminiClient(BaseLLMClient):
    """
    Gemini client for short structured generations (cluster names).

    Args:
        model_id: Gemini model ID (default: gemini-2.5-flash)
        project_id: GCP project ID (GCP_PROJECT env var if None)
        region: GCP region (GCP_REGION env var if None)
    """

    def __init__(
        self,
        model_id: str = DEFAULT_LLM_MODEL,
        project_id: Optional[str] = None,
        region: Optional[str] = None
    ):
        default_project, default_region = get_gcp_config()
        super().__init__(model_id, project_id or default_project, region or default_region)
        self._client = None

    @property
    def provider(self) -> LLMProvider:
        return LLMProvider.GEMINI

    def _initialize(self) -> None:
        from google import genai

        logger.info(f"Initializing Gemini: model={self.model_id}, project={self.project_id}, region={self.region}")
        self._client = genai.Client(vertexai=True, project=self.project_id, location=self.region)

    def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None
    ) -> LLMResponse:
        self._ensure_initialized()

        from google.genai import types

        config = config or GenerationConfig()
        gen_config = types.GenerateContentConfig(
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
            top_p=config.top_p,
        )

        backoff = INITIAL_BACKOFF

        for attempt in range(MAX_RETRIES):
            try:
                response = self._client.models.generate_content(
                    model=self.model_id,
                    contents=prompt,
                    config=gen_config
                )

                text = response.text
                if not text or not text.strip():
                    raise ValueError("Empty response from Gemini API")

                usage = getattr(response, 'usage_metadata', None)
                finish_reason = None
                if response.candidates:
                    finish_reason = getattr(response.candidates[0], 'finish_reason', None)

                return LLMResponse(
                    text=text,
                    model=self.model_id,
                    provider=self.provider,
                    input_tokens=getattr(usage, 'prompt_token_count', None) if usage else None,
                    output_tokens=getattr(usage, 'candidates_token_count', None) if usage else None,
                    finish_reason=str(finish_reason) if finish_reason else None,
                )

            except Exception as e:
                is_retriable = any(marker in str(e).lower() for marker in _RETRIABLE_MARKERS)

                if is_retriable and attempt < MAX_RETRIES - 1:
                    logger.warning(
                        f"Retriable error (attempt {attempt + 1}/{MAX_RETRIES}): {e}. "
                        f"Retrying after {backoff}s"
                    )
                    time.sleep(backoff)
                    backoff = min(backoff * 2, MAX_BACKOFF)
                else:
                    logger.error(f"Gemini generation failed after {attempt + 1} attempts: {e}")
                    raise

        raise RuntimeError("Gemini generation exhausted retries")
