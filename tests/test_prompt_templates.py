"""Unit tests for prompt construction."""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lib.models.generation import GenerationRequest
from lib.prompt_templates import build_generation_prompt, difficulty_phrase


def _request(**overrides) -> GenerationRequest:
    values = dict(
        source_latex="\\section{Algebra}\n\\begin{enumerate}\\item $x+1=2$\\end{enumerate}",
        exercise_count=7,
        difficulty="harder",
        language="Georgian",
        guidance_prompt="",
    )
    values.update(overrides)
    return GenerationRequest(**values)


class TestDifficultyPhrase:

    def test_known_values(self):
        assert difficulty_phrase("easier") == "noticeably easier than"
        assert difficulty_phrase("harder") == "noticeably harder than"
        assert difficulty_phrase("medium") == "of a similar difficulty to"

    def test_unknown_reads_as_medium(self):
        assert difficulty_phrase("extreme") == difficulty_phrase("medium")


class TestBuildGenerationPrompt:

    def test_includes_request_fields(self):
        prompt = build_generation_prompt(_request())
        assert "7 new, unique math problems" in prompt
        assert "noticeably harder than" in prompt
        assert "Georgian language" in prompt
        assert "\\section{Algebra}" in prompt

    def test_uses_language_labels(self):
        prompt = build_generation_prompt(_request())
        assert "ა), ბ), გ), დ)" in prompt
        assert "ა) Option 1 \\quad ბ) Option 2" in prompt

    def test_guidance_appended_verbatim(self):
        prompt = build_generation_prompt(_request(guidance_prompt="Only use fractions."))
        assert "Only use fractions." in prompt
        assert "Additional instructor guidance" in prompt

    def test_no_guidance_section_when_empty(self):
        assert "Additional instructor guidance" not in build_generation_prompt(_request())

    def test_answer_key_instruction(self):
        prompt = build_generation_prompt(_request())
        assert "ANSWER_KEY:" in prompt
        assert "each of the 7 problems" in prompt
        assert "ANSWER_KEY:" not in build_generation_prompt(_request(), include_answer_key=False)
