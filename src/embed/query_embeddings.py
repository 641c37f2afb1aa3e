"""
Query embedding generation using Vertex AI text embedding models.

Uses the same model and output dimensionality as the document embeddings
stored with articles so query vectors are comparable to them. Search
cannot proceed without a query vector, so every failure surfaces as
ExternalServiceError.
"""

import time
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import List, Optional

from google.api_core.exceptions import InternalServerError, ResourceExhausted, ServiceUnavailable

from src.common.config import (
    get_embedding_dimensions,
    get_embedding_model_name,
    get_embedding_timeout,
    get_gcp_config,
)
from src.common.errors import ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

SERVICE_NAME = 'query-embedding'
MAX_TEXT_LENGTH = 8000

# Retry configuration
MAX_RETRIES = 3
INITIAL_BACKOFF = 1  # seconds
MAX_BACKOFF = 32  # seconds


class QueryEmbeddingService:
    """
    Embeds free-text queries.

    Args:
        model: Object with get_embeddings(texts, output_dimensionality=...)
            (Vertex AI TextEmbeddingModel loaded lazily if None)
        dimensions: Output dimensionality (EMBEDDING_DIMENSIONS if None)
        timeout: Overall seconds allowed per query, retries included
            (EMBEDDING_TIMEOUT_SEC if None)
    """

    def __init__(
        self,
        model=None,
        dimensions: Optional[int] = None,
        timeout: Optional[float] = None,
        model_name: Optional[str] = None
    ):
        self._model = model
        self.dimensions = dimensions or get_embedding_dimensions()
        self.timeout = timeout if timeout is not None else get_embedding_timeout()
        self.model_name = model_name or get_embedding_model_name()

    def get_model(self):
        """
        Get or create the Vertex AI embedding model (cached).

        Returns:
            Initialized TextEmbeddingModel
        """
        if self._model is None:
            import vertexai
            from vertexai.language_models import TextEmbeddingModel

            project, region = get_gcp_config()
            logger.info(f"Initializing Vertex AI in project={project}, region={region}")
            vertexai.init(project=project, location=region)

            logger.info(f"Loading {self.model_name} model...")
            self._model = TextEmbeddingModel.from_pretrained(self.model_name)
            logger.info("Embedding model loaded successfully")

        return self._model

    @staticmethod
    def prepare_text(text: str) -> str:
        """
        Strip and truncate query text.

        Raises:
            ValidationError: If the text is empty after stripping
        """
        text = (text or '').strip()
        if not text:
            raise ValidationError("Query text must not be empty", field='query')
        return text[:MAX_TEXT_LENGTH]

    def embed(self, text: str) -> List[float]:
        """
        Generate an embedding for query text.

        Args:
            text: Query text (1-8000 characters used)

        Returns:
            Embedding vector with self.dimensions values

        Raises:
            ValidationError: If text is empty
            ExternalServiceError: On provider failure or timeout
        """
        text = self.prepare_text(text)

        # A call left running after a timeout keeps only its own worker
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=SERVICE_NAME)
        future = executor.submit(self._embed_with_retries, text)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError as e:
            logger.error(f"Query embedding timed out after {self.timeout}s")
            raise ExternalServiceError(SERVICE_NAME, f"Timed out after {self.timeout}s") from e
        finally:
            executor.shutdown(wait=False)

    def _embed_with_retries(self, text: str) -> List[float]:
        try:
            model = self.get_model()
        except Exception as e:
            logger.error(f"Failed to load embedding model: {e}")
            raise ExternalServiceError(SERVICE_NAME, f"Model unavailable: {e}") from e

        backoff = INITIAL_BACKOFF

        for attempt in range(MAX_RETRIES):
            try:
                logger.info(f"Generating embedding for query (attempt {attempt + 1}/{MAX_RETRIES})")

                embeddings = model.get_embeddings([text], output_dimensionality=self.dimensions)
                vector = list(embeddings[0].values)

                logger.info(f"Generated embedding with {len(vector)} dimensions")
                return vector

            except (ResourceExhausted, InternalServerError, ServiceUnavailable) as e:
                if attempt < MAX_RETRIES - 1:
                    logger.warning(
                        f"{type(e).__name__} (attempt {attempt + 1}/{MAX_RETRIES}), "
                        f"retrying after {backoff}s"
                    )
                    time.sleep(backoff)
                    backoff = min(backoff * 2, MAX_BACKOFF)
                else:
                    logger.error(f"Embedding failed after {MAX_RETRIES} attempts: {e}")
                    raise ExternalServiceError(SERVICE_NAME, f"Provider error: {e}") from e

            except Exception as e:
                logger.error(f"Unexpected error generating embedding: {e}")
                raise ExternalServiceError(SERVICE_NAME, f"Embedding generation failed: {e}") from e

        raise ExternalServiceError(SERVICE_NAME, "Failed to generate embedding after maximum retries")
