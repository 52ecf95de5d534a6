"""Prompt templates for test generation."""

from lib.answer_key import ANSWER_KEY_MARKER
from lib.languages import ChoiceLabelConfig, resolve_choice_labels
from lib.models.generation import Difficulty, GenerationRequest

DIFFICULTY_PHRASES = {
    Difficulty.EASIER.value: "noticeably easier than",
    Difficulty.MEDIUM.value: "of a similar difficulty to",
    Difficulty.HARDER.value: "noticeably harder than",
}


def difficulty_phrase(difficulty: str) -> str:
    """Phrase comparing new problems to the source; unknown values read as medium."""
    return DIFFICULTY_PHRASES.get(difficulty, DIFFICULTY_PHRASES[Difficulty.MEDIUM.value])


def format_choice_example(labels: ChoiceLabelConfig) -> str:
    """A worked example of an item followed by its inline choice line."""
    choice_line = " \\quad ".join(
        f"{label} Option {i + 1}" for i, label in enumerate(labels.labels)
    )
    return f"\\item Sample question text?\\\\\n       {choice_line}"


def format_guidance_section(guidance: str) -> str:
    if not guidance:
        return ""
    return f"""
Additional instructor guidance (follow every detail precisely):
\"\"\"
{guidance}
\"\"\"
"""


def format_answer_key_instruction(exercise_count: int) -> str:
    return f"""
After \\end{{document}}, append exactly one line of the form:
{ANSWER_KEY_MARKER} [{{"questionNumber":1,"correctAnswer":"a"}}, {{"questionNumber":2,"correctAnswer":"c"}}, ...]
Include one entry for each of the {exercise_count} problems that has multiple-choice options, numbered as they appear in your document.
Use the Latin letters a, b, c, d (in option order) for correctAnswer, whatever alphabet the labels use.
Write the JSON on a single line with no other text after it.
"""


def build_generation_prompt(request: GenerationRequest, include_answer_key: bool = True) -> str:
    """Build the instruction block sent to the model for one generation."""
    labels = resolve_choice_labels(request.language)
    label_list = ", ".join(labels.labels)

    prompt = f"""You are an expert math test generator. Your output must be valid LaTeX code.

Based on the following LaTeX script of a math test, generate a new LaTeX script containing {request.exercise_count} new, unique math problems.

The new problems must:
1. Be {difficulty_phrase(request.difficulty)} the examples provided.
2. Be written in the {request.language} language.
3. Be formatted correctly within a valid LaTeX document structure. The structure of your response should mirror the input's structure (e.g., if it uses \\begin{{document}}, \\section, \\item, etc., your output should too).
4. Do not include the original problems in your response. Only generate the new problems.
5. When you include multiple-choice options, render them inline on one line using {labels.display_name} letters ({label_list}) as labels.
   Always place the choice line on its own line immediately after the question using a LaTeX line break (e.g., end the question with \\\\).
   For example:
       {format_choice_example(labels)}
   Do not rely on custom environments or enumitem; write them directly as inline text with math in $...$ where needed. If you need additional options, continue with the next letters of the same alphabet.
6. Keep every enumerated problem statement on the same line as its number (e.g., "\\item Describe ..."). Do not insert a manual line break before the statement; only add \\\\ once the sentence is complete.
{format_guidance_section(request.guidance_prompt)}
Existing LaTeX Test Script:
---
{request.source_latex}
---

Provide only the complete, new LaTeX script as your output. Do not include any extra explanations, markdown formatting like ```latex, or introductory text."""

    if include_answer_key:
        prompt += "\n" + format_answer_key_instruction(request.exercise_count)

    return prompt
