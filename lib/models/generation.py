"""Models for the /api/generate and /api/preview endpoints."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from lib.errors import ValidationError


class Difficulty(str, Enum):
    """Difficulty of the new problems relative to the source test."""
    EASIER = "easier"
    MEDIUM = "medium"
    HARDER = "harder"


class GenerateRequest(BaseModel):
    """Request body for test generation.

    Fields are typed loosely; GenerationRequest.from_body does the
    validation so failures come back as 400 with a readable message.
    """
    model_config = ConfigDict(populate_by_name=True)

    existing_test_latex: Any = Field(None, alias="existingTestLatex", description="Source test as LaTeX")
    num_exercises: Any = Field(None, alias="numExercises", description="Number of new problems")
    difficulty: Any = Field(None, description="easier | medium | harder")
    language: Any = Field(None, description="Output language, e.g. 'Georgian'")
    guidance_prompt: Any = Field(None, alias="guidancePrompt", description="Extra instructions, appended verbatim")


class AnswerKeyEntry(BaseModel):
    """Correct option for one numbered question."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    question_number: int = Field(..., alias="questionNumber", ge=1)
    correct_answer: str = Field(..., alias="correctAnswer", pattern="^[a-z]$")


class GenerateResponse(BaseModel):
    """Response from test generation."""
    model_config = ConfigDict(populate_by_name=True)

    latex: str = Field(..., description="Closed LaTeX document")
    answer_key: list[AnswerKeyEntry] = Field(default_factory=list, alias="answerKey")


class PreviewRequest(BaseModel):
    """Request body for preview sanitization."""
    model_config = ConfigDict(populate_by_name=True)

    latex: str = Field("", description="LaTeX to prepare for in-browser rendering")
    language: Optional[str] = Field(None, description="Selects the alphabet for inline choice labels")
    inline_choices: bool = Field(True, alias="inlineChoices", description="Flatten choices into one line")


class PreviewResponse(BaseModel):
    """Response from preview sanitization."""
    latex: str


class ScoreRequest(BaseModel):
    """A filled-in answer sheet and the key it is checked against."""
    model_config = ConfigDict(populate_by_name=True)

    answer_key: list[AnswerKeyEntry] = Field(..., alias="answerKey")
    responses: dict[int, str] = Field(
        default_factory=dict, description="questionNumber -> chosen option letter"
    )


class ScoreResponse(BaseModel):
    """Result of checking an answer sheet."""
    correct: int
    total: int
    percentage: int


@dataclass(frozen=True)
class GenerationRequest:
    """Validated inputs for one generation attempt."""
    source_latex: str
    exercise_count: int
    difficulty: str
    language: str
    guidance_prompt: str = ""

    @classmethod
    def from_body(cls, body: GenerateRequest, max_exercises: int) -> "GenerationRequest":
        """
        Validate a request body.

        Raises:
            ValidationError: On empty source, bad exercise count, or a missing
                difficulty or language
        """
        source = body.existing_test_latex
        if not isinstance(source, str) or not source.strip():
            raise ValidationError("existingTestLatex must be a non-empty string.")

        count = body.num_exercises
        range_message = f"numExercises must be between 1 and {max_exercises}."
        if isinstance(count, bool) or not isinstance(count, (int, float)):
            raise ValidationError(range_message)
        if isinstance(count, float):
            if not count.is_integer():
                raise ValidationError(range_message)
            count = int(count)
        if count < 1 or count > max_exercises:
            raise ValidationError(range_message)

        difficulty = body.difficulty
        if not isinstance(difficulty, str) or not difficulty.strip():
            raise ValidationError("difficulty must be provided.")

        language = body.language
        if not isinstance(language, str) or not language.strip():
            raise ValidationError("language must be provided.")

        guidance = body.guidance_prompt if isinstance(body.guidance_prompt, str) else ""

        return cls(
            source_latex=source,
            exercise_count=count,
            difficulty=difficulty.strip().lower(),
            language=language.strip(),
            guidance_prompt=guidance.strip(),
        )


@dataclass(frozen=True)
class GenerationResult:
    """Normalized document and answer key from a successful generation."""
    latex: str
    answer_key: tuple[AnswerKeyEntry, ...] = ()

    def to_response(self) -> GenerateResponse:
        return GenerateResponse(latex=self.latex, answer_key=list(self.answer_key))
