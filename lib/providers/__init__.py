"""AI Provider abstraction layer for Gemini models."""

from .base import AIProvider, CompletionResult, GenerationConfig
from .google import GoogleProvider
from .mock import MockProvider
from .router import ProviderRouter

__all__ = [
    "AIProvider",
    "CompletionResult",
    "GenerationConfig",
    "GoogleProvider",
    "MockProvider",
    "ProviderRouter",
]
