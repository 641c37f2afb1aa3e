"""
LLM client base classes.

Provider-neutral request/response types and the abstract client that the
cluster naming service talks to.
"""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    GEMINI = "gemini"


@dataclass
class GenerationConfig:
    """Model-agnostic generation settings."""
    temperature: float = 0.3
    max_output_tokens: int = 256
    top_p: float = 0.95


@dataclass
class LLMResponse:
    """Text reply from a provider plus usage metadata when available."""
    text: str
    model: str
    provider: LLMProvider
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    finish_reason: Optional[str] = None


_JSON_OBJECT = re.compile(r'\{.*\}', re.DOTALL)


class BaseLLMClient(ABC):
    """
    Abstract LLM client.

    Subclasses create their SDK client lazily in _initialize() so that
    constructing a client never touches the network.
    """

    def __init__(self, model_id: str, project_id: Optional[str], region: str):
        self.model_id = model_id
        self.project_id = project_id
        self.region = region
        self._initialized = False

    @property
    @abstractmethod
    def provider(self) -> LLMProvider:
        """Return the provider type."""

    @abstractmethod
    def _initialize(self) -> None:
        """Initialize the underlying SDK client. Called on first use."""

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self._initialize()
            self._initialized = True

    @abstractmethod
    def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None
    ) -> LLMResponse:
        """
        Generate text from a prompt.

        Args:
            prompt: User prompt
            config: Generation settings (defaults if None)

        Returns:
            LLMResponse with generated text
        """

    def generate_json(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None
    ) -> Dict[str, Any]:
        """
        Generate a reply and parse the first JSON object in it.

        Markdown code fences and chatter around the object are ignored.

        Raises:
            ValueError: If the reply holds no parseable JSON object
        """
        text = self.generate(prompt, config).text.strip()

        match = _JSON_OBJECT.search(text)
        if not match:
            raise ValueError(f"No JSON object in {self.provider.value} reply: {text[:200]}")

        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON from {self.provider.value}: {text[:200]}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Expected JSON object from {self.provider.value}, got {type(data).__name__}")
        return data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model_id}, region={self.region})"
