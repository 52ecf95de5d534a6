"""
Client for the generation server.

Sends one POST /api/generate with a wall-clock timeout and turns every failure
into a GenerationClientError with a kind a UI can branch on. A "busy" answer
from the server is retried after a fixed delay, at most `max_busy_retries`
times, and never past `total_budget_s` measured from the first attempt.
"""

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx

from lib.models.generation import GenerateResponse

DEFAULT_BASE_URL = "http://localhost:4000"
BUSY_STATUS_CODES = frozenset({429, 503})
BUSY_ERROR_CODE = "upstream_busy"


class ClientErrorKind(str, Enum):
    """What went wrong, from the caller's point of view."""
    NETWORK = "network"
    TIMEOUT = "timeout"
    BUSY = "busy"
    VALIDATION = "validation"
    FORBIDDEN = "forbidden"
    UPSTREAM = "upstream"


class GenerationClientError(Exception):
    """A failed round trip to the generation server."""

    def __init__(self, kind: ClientErrorKind, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code


def _error_from_response(response: httpx.Response) -> GenerationClientError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = body.get("error") or f"Server returned HTTP {response.status_code}"
    status = response.status_code

    if status in BUSY_STATUS_CODES or body.get("code") == BUSY_ERROR_CODE:
        kind = ClientErrorKind.BUSY
    elif status == 403:
        kind = ClientErrorKind.FORBIDDEN
    elif 400 <= status < 500:
        kind = ClientErrorKind.VALIDATION
    else:
        kind = ClientErrorKind.UPSTREAM
    return GenerationClientError(kind, message, status)


class GenerationClient:
    """Async client for POST /api/generate."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 120.0,
        busy_retry_delay_s: float = 5.0,
        max_busy_retries: int = 1,
        total_budget_s: float = 180.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.busy_retry_delay_s = busy_retry_delay_s
        self.max_busy_retries = max_busy_retries
        self.total_budget_s = total_budget_s
        self._client = httpx.AsyncClient(base_url=self.base_url, transport=transport, timeout=None)
        self._sleep = sleep
        self._clock = clock

    async def __aenter__(self) -> "GenerationClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self):
        await self._client.aclose()

    async def _post_once(self, payload: dict, timeout_s: float) -> GenerateResponse:
        try:
            response = await asyncio.wait_for(
                self._client.post("/api/generate", json=payload),
                timeout=timeout_s,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise GenerationClientError(
                ClientErrorKind.TIMEOUT,
                f"The request timed out after {timeout_s:.0f} seconds.",
            ) from e
        except httpx.TransportError as e:
            raise GenerationClientError(
                ClientErrorKind.NETWORK,
                f"Could not reach the generation server at {self.base_url}.",
            ) from e

        if response.status_code != 200:
            raise _error_from_response(response)

        try:
            return GenerateResponse.model_validate(response.json())
        except ValueError as e:
            raise GenerationClientError(
                ClientErrorKind.UPSTREAM,
                "The server returned a response that could not be read.",
                response.status_code,
            ) from e

    async def generate(
        self,
        existing_test_latex: str,
        num_exercises: int,
        difficulty: str,
        language: str,
        guidance_prompt: Optional[str] = None,
    ) -> GenerateResponse:
        """
        Request a new test variant.

        Raises:
            GenerationClientError: With kind network, timeout, busy, validation,
                forbidden or upstream
        """
        payload = {
            "existingTestLatex": existing_test_latex,
            "numExercises": num_exercises,
            "difficulty": difficulty,
            "language": language,
        }
        if guidance_prompt:
            payload["guidancePrompt"] = guidance_prompt

        started = self._clock()
        retries = 0
        while True:
            remaining = self.total_budget_s - (self._clock() - started)
            try:
                return await self._post_once(payload, min(self.timeout_s, remaining))
            except GenerationClientError as e:
                if e.kind != ClientErrorKind.BUSY or retries >= self.max_busy_retries:
                    raise
                remaining = self.total_budget_s - (self._clock() - started)
                if remaining - self.busy_retry_delay_s <= 0:
                    raise
                retries += 1
                await self._sleep(self.busy_retry_delay_s)
