"""Provider router - hands out one Gemini provider per API key."""

from typing import Optional

import httpx

from .base import AIProvider
from .google import GoogleProvider


class ProviderRouter:
    """Caches a GoogleProvider per (model, key) so each key keeps its own connection pool."""

    def __init__(
        self,
        model: str = GoogleProvider.DEFAULT_MODEL,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self.timeout = timeout
        self._transport = transport

        # Cache of active provider instances
        self._providers: dict[str, AIProvider] = {}

    def get_provider(self, api_key: str) -> AIProvider:
        """
        Get the provider bound to an API key.

        Raises:
            ValueError: If the key is empty
        """
        if not api_key:
            raise ValueError("GEMINI_API_KEY not configured")

        cache_key = f"{self.model}:{api_key}"
        if cache_key not in self._providers:
            self._providers[cache_key] = GoogleProvider(
                api_key=api_key,
                model=self.model,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._providers[cache_key]

    async def close_all(self):
        """Close all provider connections."""
        for provider in self._providers.values():
            await provider.close()
        self._providers.clear()
