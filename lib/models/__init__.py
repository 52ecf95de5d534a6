"""Pydantic models for the generation endpoints."""

from .generation import (
    AnswerKeyEntry,
    Difficulty,
    GenerateRequest,
    GenerateResponse,
    GenerationRequest,
    GenerationResult,
    PreviewRequest,
    PreviewResponse,
    ScoreRequest,
    ScoreResponse,
)

__all__ = [
    "AnswerKeyEntry",
    "Difficulty",
    "GenerateRequest",
    "GenerateResponse",
    "GenerationRequest",
    "GenerationResult",
    "PreviewRequest",
    "PreviewResponse",
    "ScoreRequest",
    "ScoreResponse",
]
