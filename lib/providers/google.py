"""Google Gemini provider implementation."""

import httpx
from typing import Optional

from lib.retry import ModelError

from .base import AIProvider, CompletionResult, GenerationConfig


def model_error_from_response(response: httpx.Response) -> ModelError:
    """Build a ModelError from a non-200 Gemini response.

    Gemini errors look like {"error": {"code": 429, "status": "RESOURCE_EXHAUSTED",
    "message": "..."}}; bodies that are not JSON keep only the HTTP status.
    """
    message = f"Gemini API returned HTTP {response.status_code}"
    provider_code = None
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        error = data["error"]
        message = f"Gemini API error: {error.get('message', 'Unknown error')}"
        if isinstance(error.get("status"), str):
            provider_code = error["status"]

    return ModelError(message, status_code=response.status_code, provider_code=provider_code)


def model_error_from_transport(error: httpx.HTTPError) -> ModelError:
    """Build a ModelError from a connection-level failure (no HTTP status)."""
    if isinstance(error, httpx.TimeoutException):
        return ModelError(f"Gemini request timeout: {error}", provider_code="DEADLINE_EXCEEDED")
    return ModelError(f"Gemini service unavailable: {error}", provider_code="UNAVAILABLE")


class GoogleProvider(AIProvider):
    """Provider for Google's Gemini models."""

    PROVIDER_NAME = "google"

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

    DEFAULT_MODEL = "gemini-2.5-pro"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key)
        self.model = model
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None,
    ) -> CompletionResult:
        """Generate text using Gemini."""
        if not self.api_key:
            raise ModelError("GEMINI_API_KEY not configured", status_code=401)

        config = config or GenerationConfig()
        url = f"{self.BASE_URL}/{self.model}:generateContent"

        request_body = self._build_request_body(
            parts=[{"text": prompt}],
            config=config,
        )

        try:
            response = await self._client.post(
                url,
                json=request_body,
                headers={"Content-Type": "application/json", "x-goog-api-key": self.api_key},
            )
        except httpx.HTTPError as e:
            raise model_error_from_transport(e) from e

        data = self._parse_response(response)
        return CompletionResult(
            text=self._extract_text(data),
            model=self.model,
            provider=self.PROVIDER_NAME,
            usage=data.get("usageMetadata", {}),
            metadata={"finish_reason": self._finish_reason(data)},
        )

    def _build_request_body(
        self,
        parts: list[dict],
        config: GenerationConfig,
    ) -> dict:
        """Build the Gemini API request body."""
        return {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": config.temperature,
                "maxOutputTokens": config.max_tokens,
            },
        }

    def _parse_response(self, response: httpx.Response) -> dict:
        """Return the JSON body of a successful response or raise ModelError."""
        if response.status_code != 200:
            raise model_error_from_response(response)

        try:
            data = response.json()
        except ValueError as e:
            raise ModelError("Gemini API returned invalid JSON", status_code=502) from e

        if not isinstance(data, dict):
            raise ModelError("Gemini API returned an unexpected body", status_code=502)

        if "error" in data:
            raise model_error_from_response(response)

        return data

    def _extract_text(self, data: dict) -> Optional[str]:
        """Concatenate the text parts of the first candidate; None if there are none."""
        candidates = data.get("candidates") or []
        if not candidates:
            return None
        parts = candidates[0].get("content", {}).get("parts") or []
        texts = [part["text"] for part in parts if isinstance(part.get("text"), str)]
        if not texts:
            return None
        return "".join(texts)

    def _finish_reason(self, data: dict) -> Optional[str]:
        candidates = data.get("candidates") or []
        if candidates:
            return candidates[0].get("finishReason")
        return None

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
