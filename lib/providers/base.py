"""Base class for AI providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class GenerationConfig:
    """Configuration for text generation."""
    temperature: float = 0.7
    max_tokens: int = 16384


@dataclass
class CompletionResult:
    """Result from a generation request."""
    text: Optional[str]
    model: str
    provider: str
    usage: dict = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)


class AIProvider(ABC):
    """Abstract base class for AI providers.

    Implementations raise lib.retry.ModelError for every failed call so the
    retry classifier sees one error shape regardless of provider.
    """

    PROVIDER_NAME: str = "base"

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key
        self._client = None

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None,
    ) -> CompletionResult:
        """
        Generate text from a prompt.

        Args:
            prompt: The text prompt
            config: Optional generation configuration

        Returns:
            CompletionResult with the response

        Raises:
            ModelError: If the call fails for any reason
        """
        pass

    @abstractmethod
    async def close(self):
        """Close any open connections."""
        pass
