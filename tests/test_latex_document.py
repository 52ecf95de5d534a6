"""Unit tests for LaTeX document normalization."""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lib.latex_document import ensure_latex_document, find_body_start, strip_code_fences


FULL_DOCUMENT = (
    "\\documentclass[12pt]{article}\n"
    "\\usepackage{amsmath}\n"
    "\\begin{document}\n"
    "\\section{Algebra}\n"
    "\\end{document}\n"
)


def _count(text: str, needle: str) -> int:
    return text.count(needle)


class TestEnsureLatexDocument:

    def test_fragment_is_wrapped(self):
        result = ensure_latex_document("\\section{A}\nHello")
        assert result == (
            "\\documentclass{article}\n"
            "\\begin{document}\n"
            "\\section{A}\nHello\n"
            "\\end{document}\n"
        )

    def test_preamble_stays_before_begin_document(self):
        result = ensure_latex_document("\\usepackage{amsmath}\n\\section{A}")
        assert result == (
            "\\documentclass{article}\n"
            "\\usepackage{amsmath}\n"
            "\\begin{document}\n"
            "\\section{A}\n"
            "\\end{document}\n"
        )

    def test_full_document_unchanged(self):
        assert ensure_latex_document(FULL_DOCUMENT) == FULL_DOCUMENT

    def test_documentclass_options_are_not_body(self):
        text = "\\documentclass[12pt]{article}\n\\usepackage{amsmath}\n\\begin{enumerate}\\item x\\end{enumerate}"
        result = ensure_latex_document(text)
        assert result.index("\\usepackage{amsmath}") < result.index("\\begin{document}")
        assert result.index("\\begin{document}") < result.index("\\begin{enumerate}")

    def test_missing_end_is_appended(self):
        result = ensure_latex_document("\\documentclass{article}\n\\begin{document}\nHi   \n\n")
        assert result.endswith("Hi\n\\end{document}\n")

    def test_missing_begin_before_existing_end(self):
        result = ensure_latex_document("\\documentclass{article}\n\\section{A}\n\\end{document}")
        assert result.index("\\begin{document}") < result.index("\\end{document}")
        assert _count(result, "\\begin{document}") == 1
        assert _count(result, "\\end{document}") == 1

    @pytest.mark.parametrize("text", [
        "\\section{A}\nHello",
        "\\item one\n\\item two",
        "Plain text with no commands",
        FULL_DOCUMENT,
        "\\usepackage{amsmath}\n\\maketitle\n\\section{B}",
    ])
    def test_idempotent(self, text):
        once = ensure_latex_document(text)
        assert ensure_latex_document(once) == once

    @pytest.mark.parametrize("text", [
        "\\section{A}",
        "no commands at all",
        "\\begin{document}\nbody",
        "body\n\\end{document}",
    ])
    def test_exactly_one_of_each_marker(self, text):
        result = ensure_latex_document(text)
        assert _count(result, "\\documentclass") == 1
        assert _count(result, "\\begin{document}") == 1
        assert _count(result, "\\end{document}") == 1
        assert result.index("\\begin{document}") < result.index("\\end{document}")

    @pytest.mark.parametrize("text", ["", "   ", "\n\n\t", "\ufeff  "])
    def test_blank_input_maps_to_empty(self, text):
        assert ensure_latex_document(text) == ""

    def test_non_string_maps_to_empty(self):
        assert ensure_latex_document(None) == ""
        assert ensure_latex_document(42) == ""

    def test_bom_and_carriage_returns_removed(self):
        result = ensure_latex_document("\ufeff\\section{A}\r\nLine\r\n")
        assert "\r" not in result
        assert "\ufeff" not in result
        assert "\\section{A}\nLine" in result

    def test_bom_after_leading_whitespace(self):
        text = " \ufeff\\documentclass{article}\\begin{document}x\\end{document}"
        once = ensure_latex_document(text)
        assert once == "\\documentclass{article}\\begin{document}x\\end{document}"
        assert ensure_latex_document(once) == once

    def test_end_before_begin_is_reordered(self):
        result = ensure_latex_document("\\end{document}\n\\section{A}\n\\begin{document}")
        assert result == (
            "\\documentclass{article}\n"
            "\\begin{document}\n"
            "\\section{A}\n"
            "\\end{document}\n"
        )

    def test_duplicate_markers_collapsed(self):
        text = (
            "\\documentclass{article}\n"
            "\\begin{document}\n"
            "\\section{A}\n"
            "\\end{document}\n"
            "\\documentclass{report}\n"
            "\\begin{document}\n"
            "\\section{B}\n"
            "\\end{document}\n"
        )
        result = ensure_latex_document(text)
        assert result == (
            "\\documentclass{article}\n"
            "\\begin{document}\n"
            "\\section{A}\n"
            "\\section{B}\n"
            "\\end{document}\n"
        )

    @pytest.mark.parametrize("text", [
        "\\end{document}\nfoo\n\\begin{document}",
        "\\begin{document}\\begin{document}x",
        "x\\end{document}\\end{document}",
        "\\documentclass{a}\\documentclass{b}\\section{S}",
    ])
    def test_stray_markers_closed_and_stable(self, text):
        result = ensure_latex_document(text)
        assert _count(result, "\\documentclass") == 1
        assert _count(result, "\\begin{document}") == 1
        assert _count(result, "\\end{document}") == 1
        assert result.index("\\begin{document}") < result.index("\\end{document}")
        assert ensure_latex_document(result) == result


class TestFindBodyStart:

    def test_earliest_body_command(self):
        text = "\\usepackage{x}\n\\title{T}\n\\section{S}"
        assert find_body_start(text) == text.index("\\title")

    def test_end_of_text_when_no_command(self):
        text = "\\usepackage{x}\n"
        assert find_body_start(text) == len(text)

    def test_never_past_end_document(self):
        text = "preamble\n\\end{document}\n\\section{after}"
        assert find_body_start(text) == text.index("\\end{document}")


class TestStripCodeFences:

    def test_language_fence_removed(self):
        assert strip_code_fences("```latex\n\\section{A}\n```") == "\\section{A}"

    def test_bare_fence_removed(self):
        assert strip_code_fences("```\nx\n```\n") == "x"

    def test_inline_backticks_kept(self):
        assert strip_code_fences("use ``quotes'' here") == "use ``quotes'' here"

    def test_fence_on_same_line_as_latex(self):
        text = "```latex\\documentclass{article}\\begin{document}x\\end{document}```"
        result = strip_code_fences(text)
        assert result == "\\documentclass{article}\\begin{document}x\\end{document}"
        assert "```" not in result

    def test_fence_in_the_middle_is_content(self):
        text = "```latex\n\\section{A}\n```\nmore\n```"
        assert strip_code_fences(text) == "\\section{A}\n```\nmore"

    def test_text_without_fences_only_trimmed(self):
        assert strip_code_fences("  \\section{A}\n") == "\\section{A}"
