"""Mock provider serving canned outputs and simulated upstream errors."""

from typing import Optional

from lib.mock_responses import get_mock_response
from lib.models.generation import GenerationRequest
from lib.simulator import simulate_delay, simulate_error

from .base import AIProvider, CompletionResult, GenerationConfig


class MockProvider(AIProvider):
    """Stands in for Gemini on `mode=mock` requests."""

    PROVIDER_NAME = "mock"

    def __init__(
        self,
        scenario: Optional[str] = None,
        request: Optional[GenerationRequest] = None,
        delay_ms: int = 0,
    ):
        super().__init__(api_key="mock")
        self.scenario = scenario
        self.request = request
        self.delay_ms = delay_ms
        self.calls = 0

    async def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None,
    ) -> CompletionResult:
        self.calls += 1
        await simulate_delay(self.delay_ms)
        if self.scenario:
            simulate_error(self.scenario)
        return CompletionResult(
            text=get_mock_response(self.scenario, self.request),
            model="mock",
            provider=self.PROVIDER_NAME,
        )

    async def close(self):
        pass
