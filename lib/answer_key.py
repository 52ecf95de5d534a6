"""
Answer-key extraction from model output.

The model is asked to append one line after the document:

    ANSWER_KEY: [{"questionNumber": 1, "correctAnswer": "a"}, ...]

The line is always removed from the LaTeX. An unparseable payload yields an
empty key instead of failing the request.
"""

import json
import logging
import re

from lib.models.generation import AnswerKeyEntry

logger = logging.getLogger(__name__)

ANSWER_KEY_MARKER = "ANSWER_KEY:"

_ANSWER_KEY_LINE_RE = re.compile(r"^[ \t]*ANSWER_KEY[ \t]*:(.*)$\n?", re.MULTILINE)
_CORRECT_ANSWER_RE = re.compile(r"^[a-z]$")


def _parse_entries(payload: str) -> list[AnswerKeyEntry]:
    data = json.loads(payload)
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array, got {type(data).__name__}")

    entries = []
    for item in data:
        if not isinstance(item, dict):
            logger.warning("Skipping answer-key item that is not an object: %r", item)
            continue
        number = item.get("questionNumber")
        answer = item.get("correctAnswer")
        if isinstance(number, bool) or not isinstance(number, int) or number < 1:
            logger.warning("Skipping answer-key item with bad questionNumber: %r", item)
            continue
        if not isinstance(answer, str):
            logger.warning("Skipping answer-key item with bad correctAnswer: %r", item)
            continue
        answer = answer.strip().rstrip(")").strip().lower()
        if not _CORRECT_ANSWER_RE.match(answer):
            logger.warning("Skipping answer-key item with bad correctAnswer: %r", item)
            continue
        entries.append(AnswerKeyEntry(question_number=number, correct_answer=answer))
    return entries


def extract_answer_key(text: str) -> tuple[str, list[AnswerKeyEntry]]:
    """
    Split model output into LaTeX text and its answer key.

    Returns:
        (text without any ANSWER_KEY lines, parsed entries). The last
        ANSWER_KEY line wins when the model emitted several.
    """
    matches = list(_ANSWER_KEY_LINE_RE.finditer(text))
    if not matches:
        return text, []

    stripped = _ANSWER_KEY_LINE_RE.sub("", text).rstrip()
    payload = matches[-1].group(1).strip()

    try:
        entries = _parse_entries(payload)
    except (ValueError, TypeError) as e:
        logger.warning("Could not parse answer key (%s); continuing without one", e)
        return stripped, []

    return stripped, entries


def score_answers(answer_key: list[AnswerKeyEntry], responses: dict[int, str]) -> dict:
    """
    Score a self-check answer sheet against the key.

    Args:
        answer_key: Entries from a generation result
        responses: questionNumber -> chosen letter

    Returns:
        {"correct", "total", "percentage"}; total is the number of keyed questions
    """
    correct = sum(
        1 for entry in answer_key
        if responses.get(entry.question_number, "").strip().lower() == entry.correct_answer
    )
    total = len(answer_key)
    percentage = round(correct / total * 100) if total else 0
    return {"correct": correct, "total": total, "percentage": percentage}
