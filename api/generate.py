"""Test generation, preview and answer-sheet scoring endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Header, Query, Request

from lib.answer_key import score_answers
from lib.errors import GenerationError, UpstreamFatalError
from lib.latex_preview import sanitize_for_preview
from lib.models import (
    GenerateRequest,
    GenerateResponse,
    GenerationRequest,
    PreviewRequest,
    PreviewResponse,
    ScoreRequest,
    ScoreResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["generate"])


@router.post("/generate", response_model=GenerateResponse)
async def generate_test(
    body: GenerateRequest,
    request: Request,
    mode: str = Query(default="prod", pattern="^(mock|prod)$"),
    x_mock_scenario: Optional[str] = Header(default=None),
):
    """
    Generate a new variant of a LaTeX math test.

    Query Parameters:
    - mode: "mock" for canned model output, "prod" for Gemini

    Headers:
    - X-Mock-Scenario: output or error scenario used in mock mode
    """
    settings = request.app.state.settings
    service = request.app.state.generation_service

    generation_request = GenerationRequest.from_body(body, settings.max_exercises)

    try:
        result = await service.generate(
            generation_request,
            mock=mode == "mock",
            mock_scenario=x_mock_scenario,
        )
    except GenerationError:
        raise
    except Exception as e:
        logger.exception("Unexpected error generating test")
        raise UpstreamFatalError(f"Failed to generate test: {e}") from e

    return result.to_response()


@router.post("/preview", response_model=PreviewResponse)
async def preview_latex(body: PreviewRequest):
    """Rewrite LaTeX into the subset a browser-side renderer can display."""
    return PreviewResponse(
        latex=sanitize_for_preview(body.latex, language=body.language, inline=body.inline_choices)
    )


@router.post("/score", response_model=ScoreResponse)
async def score_answer_sheet(body: ScoreRequest):
    """Check an answer sheet against the answer key returned by /api/generate."""
    return ScoreResponse(**score_answers(body.answer_key, body.responses))
