"""
Cluster naming via LLM.

Asks the model for a short bilingual name for a group of related article
titles. Every failure mode (provider error, timeout, malformed reply) is
reported as ExternalServiceError so callers can fall back to a default name.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Optional, Sequence

from src.common.config import get_cluster_name_language, get_naming_timeout
from src.common.errors import ExternalServiceError
from src.common.models import ClusterName
from .base import BaseLLMClient, GenerationConfig

logger = logging.getLogger(__name__)

MAX_TITLES = 10
SERVICE_NAME = 'cluster-naming'

NAMING_PROMPT = """Based on these scientific article titles, generate a short (2-4 words) descriptive name for this cluster of related research:

Titles:
{titles}

Respond in JSON format:
{{"en": "English Name", "native": "Name in {language}"}}

Focus on the main topic/theme that connects these articles."""


class ClusterNamer:
    """
    Generates cluster names with an LLM client under a timeout.

    Args:
        client: LLM client (created lazily from LLM_MODEL if None)
        timeout: Seconds to wait for one naming call (NAMING_TIMEOUT_SEC if None)
        language: Native language for the non-English name
    """

    def __init__(
        self,
        client: Optional[BaseLLMClient] = None,
        timeout: Optional[float] = None,
        language: Optional[str] = None
    ):
        self._client = client
        self.timeout = timeout if timeout is not None else get_naming_timeout()
        self.language = language or get_cluster_name_language()

    @property
    def client(self) -> BaseLLMClient:
        if self._client is None:
            from . import get_client
            self._client = get_client()
        return self._client

    def build_prompt(self, titles: Sequence[str]) -> str:
        return NAMING_PROMPT.format(
            titles='\n'.join(titles[:MAX_TITLES]),
            language=self.language,
        )

    def name_cluster(self, titles: Sequence[str]) -> ClusterName:
        """
        Generate a name for a cluster from its member titles.

        Args:
            titles: Member titles (only the first 10 are sent)

        Returns:
            ClusterName with native and English variants

        Raises:
            ExternalServiceError: On provider failure, timeout or malformed reply
        """
        titles = [title for title in titles if title][:MAX_TITLES]
        if not titles:
            raise ExternalServiceError(SERVICE_NAME, "No titles to name the cluster from")

        prompt = self.build_prompt(titles)
        config = GenerationConfig(temperature=0.3, max_output_tokens=100)

        # A call left running after a timeout keeps only its own worker
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=SERVICE_NAME)
        future = executor.submit(self.client.generate_json, prompt, config)
        try:
            data = future.result(timeout=self.timeout)
        except FutureTimeoutError as e:
            raise ExternalServiceError(SERVICE_NAME, f"Timed out after {self.timeout}s") from e
        except Exception as e:
            raise ExternalServiceError(SERVICE_NAME, str(e)) from e
        finally:
            executor.shutdown(wait=False)

        en = str(data.get('en') or '').strip()
        native = str(data.get('native') or data.get('ru') or '').strip()
        if not en:
            raise ExternalServiceError(SERVICE_NAME, f"Reply missing English name: {data}")

        logger.info(f"  Generated cluster name: {en}")
        return ClusterName(native=native or en, en=en)
