"""
Test generation service.

Turns a validated GenerationRequest into a GenerationResult:

1. build the prompt (difficulty phrase, choice labels, guidance, source)
2. wait for a rate-limit slot
3. call the model through key rotation + retry
4. strip code fences, pull out the ANSWER_KEY line, normalize the document

Worst-case time spent inside one request, with P keys and M attempts per key:
rate-limit wait + P * M * request timeout + P * base * (2^(M-1) - 1) ms of backoff.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from lib.answer_key import extract_answer_key
from lib.errors import ConfigurationError, MalformedUpstreamOutput, UpstreamFatalError, UpstreamTransientError
from lib.key_rotator import KeyRotator
from lib.languages import busy_message
from lib.latex_document import ensure_latex_document, strip_code_fences
from lib.logger import RequestLogger
from lib.models.generation import GenerationRequest, GenerationResult
from lib.prompt_templates import build_generation_prompt
from lib.providers import AIProvider, MockProvider, ProviderRouter
from lib.rate_limiter import RateLimiter
from lib.retry import ModelError, RetryPolicy, call_with_key_rotation, is_retriable

logger = logging.getLogger(__name__)

MOCK_KEYS = ("mock",)


def postprocess_output(text: str) -> GenerationResult:
    """
    Turn raw model text into a normalized document and answer key.

    Raises:
        MalformedUpstreamOutput: If nothing usable is left after cleanup
    """
    cleaned = strip_code_fences(text)
    cleaned, answer_key = extract_answer_key(cleaned)
    latex = ensure_latex_document(strip_code_fences(cleaned))
    if not latex:
        raise MalformedUpstreamOutput("Failed to generate test: Gemini did not return any LaTeX.")
    return GenerationResult(latex=latex, answer_key=tuple(answer_key))


class GenerationService:
    """Orchestrates one generation request against the model."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        key_rotator: KeyRotator,
        router: ProviderRouter,
        policy: RetryPolicy,
        request_logger: Optional[RequestLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.rate_limiter = rate_limiter
        self.key_rotator = key_rotator
        self.router = router
        self.policy = policy
        self.request_logger = request_logger or RequestLogger()
        self._sleep = sleep

    def worst_case_backoff_ms(self) -> int:
        return self.policy.worst_case_backoff_ms(len(self.key_rotator))

    async def generate(
        self,
        request: GenerationRequest,
        mock: bool = False,
        mock_scenario: Optional[str] = None,
    ) -> GenerationResult:
        """
        Generate a new test variant.

        Args:
            request: Validated inputs
            mock: Use MockProvider instead of Gemini (no credentials, no rate limit)
            mock_scenario: Canned output or error scenario for mock mode

        Raises:
            ConfigurationError: No API keys configured
            UpstreamTransientError: Upstream stayed busy across all attempts and keys
            UpstreamFatalError: Upstream rejected the request
            MalformedUpstreamOutput: Upstream returned no usable text
        """
        mode = "mock" if mock else "prod"
        log_id = self.request_logger.log_request(
            endpoint="/api/generate",
            mode=mode,
            prompt_preview=request.source_latex,
            exercise_count=request.exercise_count,
            language=request.language,
        )
        calls = 0

        if mock:
            keys = list(MOCK_KEYS)
            mock_provider = MockProvider(scenario=mock_scenario, request=request)
        else:
            keys = self.key_rotator.next_key_sequence()
            mock_provider = None

        if not keys:
            error = ConfigurationError("Server is missing the Gemini API key.")
            self.request_logger.log_response(log_id, success=False, error=error.message)
            raise error

        prompt = build_generation_prompt(request)

        async def attempt(key: str):
            nonlocal calls
            calls += 1
            provider: AIProvider = mock_provider or self.router.get_provider(key)
            return await provider.generate(prompt)

        try:
            if not mock:
                await self.rate_limiter.acquire_slot()
            completion = await call_with_key_rotation(
                keys, attempt, self.policy, sleep=self._sleep
            )
            if not completion.text or not completion.text.strip():
                raise MalformedUpstreamOutput("Failed to generate test: Gemini did not return any text.")
            result = postprocess_output(completion.text)
        except ModelError as e:
            logger.error("Error generating test after %d model call(s): %r", calls, e)
            self.request_logger.log_response(log_id, success=False, model_calls=calls, error=e.message)
            if is_retriable(e):
                raise UpstreamTransientError(busy_message(request.language), e) from e
            raise UpstreamFatalError(f"Failed to generate test: {e.message}", e) from e
        except MalformedUpstreamOutput as e:
            logger.error("Unusable model output after %d model call(s): %s", calls, e.message)
            self.request_logger.log_response(log_id, success=False, model_calls=calls, error=e.message)
            raise

        self.request_logger.log_response(
            log_id,
            success=True,
            model_calls=calls,
            answer_key_size=len(result.answer_key),
        )
        return result
