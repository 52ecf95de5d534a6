"""
Simulator - Simulate network conditions and upstream errors for testing.

Provides latency injection and Gemini-shaped error simulation for mock mode.
"""

import asyncio

from lib.retry import ModelError


async def simulate_delay(delay_ms: int) -> None:
    """
    Simulate network latency.

    Args:
        delay_ms: Delay in milliseconds (0-30000)
    """
    if delay_ms > 0:
        await asyncio.sleep(delay_ms / 1000)


# Error scenarios, shaped like Gemini API error bodies
ERROR_SCENARIOS = {
    "rate_limit": {
        "status_code": 429,
        "status": "RESOURCE_EXHAUSTED",
        "message": "Resource has been exhausted (e.g. check quota).",
    },
    "timeout": {
        "status_code": 504,
        "status": "DEADLINE_EXCEEDED",
        "message": "The upstream server did not respond in time.",
    },
    "500": {
        "status_code": 500,
        "status": "INTERNAL",
        "message": "An internal error has occurred. Please retry or report.",
    },
    "auth_failed": {
        "status_code": 400,
        "status": "INVALID_ARGUMENT",
        "message": "API key not valid. Please pass a valid API key.",
    },
    "model_unavailable": {
        "status_code": 503,
        "status": "UNAVAILABLE",
        "message": "The model is overloaded. Please try again later.",
    },
    "overloaded": {
        "status_code": None,
        "status": None,
        "message": "The model is overloaded.",
    },
}


def simulate_error(error_type: str) -> None:
    """
    Simulate a failed model call.

    Args:
        error_type: One of ERROR_SCENARIOS; unknown names are ignored

    Raises:
        ModelError: With the scenario's status, provider code and message
    """
    scenario = ERROR_SCENARIOS.get(error_type)
    if scenario is None:
        return
    raise ModelError(
        scenario["message"],
        status_code=scenario["status_code"],
        provider_code=scenario["status"],
    )
