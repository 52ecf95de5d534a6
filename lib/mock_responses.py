"""
Mock Responses - Predefined model outputs for testing without hitting the real API.

Selected with the X-Mock-Scenario header on `mode=mock` requests.
"""

import json
from typing import Optional

from lib.models.generation import GenerationRequest


def _answer_key_line(count: int) -> str:
    letters = "abcd"
    entries = [
        {"questionNumber": n, "correctAnswer": letters[(n - 1) % 4]}
        for n in range(1, count + 1)
    ]
    return "ANSWER_KEY: " + json.dumps(entries, separators=(",", ":"))


def _fragment(count: int) -> str:
    items = "\n".join(
        f"\\item ${n} + {n} = ?$\\\\\na) ${2 * n}$ \\quad b) ${2 * n + 1}$ \\quad c) ${n}$ \\quad d) $0$"
        for n in range(1, count + 1)
    )
    return f"\\section{{Test}}\n\\begin{{enumerate}}\n{items}\n\\end{{enumerate}}"


def _document(count: int) -> str:
    return (
        "\\documentclass{article}\n"
        "\\usepackage{amsmath}\n"
        "\\begin{document}\n"
        f"{_fragment(count)}\n"
        "\\end{document}"
    )


# Scenario name -> builder taking the number of requested exercises
SCENARIO_RESPONSES = {
    "default": lambda count: f"{_fragment(count)}\n{_answer_key_line(count)}",
    "full_document": lambda count: f"{_document(count)}\n{_answer_key_line(count)}",
    "fenced": lambda count: f"```latex\n{_document(count)}\n```\n{_answer_key_line(count)}",
    "malformed_answer_key": lambda count: f"{_document(count)}\nANSWER_KEY: [{{\"questionNumber\": 1, ",
    "no_answer_key": lambda count: _document(count),
    "empty": lambda count: "",
}


def get_mock_response(
    scenario: Optional[str] = None,
    request: Optional[GenerationRequest] = None,
) -> Optional[str]:
    """
    Get a mock model output for testing.

    Args:
        scenario: Optional specific scenario from X-Mock-Scenario header
        request: The validated request (its exercise count sizes the output)

    Returns:
        Mock model text; None for the "empty" scenario
    """
    count = request.exercise_count if request else 3
    builder = SCENARIO_RESPONSES.get(scenario or "default", SCENARIO_RESPONSES["default"])
    text = builder(count)
    return text or None
