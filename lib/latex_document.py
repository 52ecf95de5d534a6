"""
LaTeX document normalization.

Models return anything from a bare fragment to a full document. These helpers
turn that text into a standalone document with exactly one
\\documentclass, \\begin{document} and \\end{document}, without parsing LaTeX.
"""

import re

# Commands that mark the start of the document body
BODY_START_COMMANDS = (
    "section", "subsection", "chapter", "part", "paragraph", "subparagraph",
    "begin", "maketitle", "title", "author", "date", "item", "frame",
    "textbf", "textit", "documentclass",
)

_BODY_START_RE = re.compile(r"\\(" + "|".join(BODY_START_COMMANDS) + r")\b")

# \documentclass[opts]{cls} as a whole, so the search for body commands can
# start after the class declaration itself
_DOCUMENTCLASS_RE = re.compile(r"\\documentclass\s*(?:\[[^\]]*\])?\s*(?:\{[^}]*\})?")

_DOCUMENTCLASS_PRESENT_RE = re.compile(r"\\documentclass")
_BEGIN_DOCUMENT_RE = re.compile(r"\\begin\{document\}")
_END_DOCUMENT_RE = re.compile(r"\\end\{document\}")

# Only at the very start and end of the text; fences inside the body are content
_LEADING_FENCE_RE = re.compile(r"\A\s*```[A-Za-z0-9_+-]*[ \t]*\n?")
_TRAILING_FENCE_RE = re.compile(r"\n?[ \t]*```\s*\Z")

DEFAULT_DOCUMENTCLASS = "\\documentclass{article}"


def strip_code_fences(text: str) -> str:
    """Remove a leading ```latex (or bare ```) fence and a trailing ``` fence, then trim."""
    text = _LEADING_FENCE_RE.sub("", text, count=1)
    text = _TRAILING_FENCE_RE.sub("", text, count=1)
    return text.strip()


def _clean(text: str) -> str:
    return text.replace("\r", "").lstrip().lstrip("\ufeff").lstrip()


def _remove_spans(text: str, spans: list[tuple[int, int]]) -> str:
    """Cut each (start, end) span, plus one newline right after it."""
    pieces = []
    position = 0
    for start, end in sorted(spans):
        pieces.append(text[position:start])
        position = end + 1 if text[end:end + 1] == "\n" else end
    pieces.append(text[position:])
    return "".join(pieces)


def _drop_stray_markers(text: str) -> str:
    """
    Remove document markers that would break the one-of-each rule.

    Later \\documentclass declarations and \\begin{document} markers are
    dropped, as are earlier \\end{document} markers. When the surviving
    \\begin{document} comes after the surviving \\end{document}, both are
    dropped so they get re-inserted in order.
    """
    spans = [m.span() for m in _DOCUMENTCLASS_RE.finditer(text)][1:]

    begins = [m.span() for m in _BEGIN_DOCUMENT_RE.finditer(text)]
    ends = [m.span() for m in _END_DOCUMENT_RE.finditer(text)]
    if begins and ends and begins[0][0] > ends[-1][0]:
        spans += begins + ends
    else:
        spans += begins[1:] + ends[:-1]

    if not spans:
        return text
    return _remove_spans(text, spans).lstrip()


def find_body_start(text: str) -> int:
    """Index where \\begin{document} should go in a document lacking one.

    The earliest body-start command after any \\documentclass declaration,
    never past an existing \\end{document}; end of text when there is none.
    """
    search_from = 0
    doc_class = _DOCUMENTCLASS_RE.search(text)
    if doc_class:
        search_from = doc_class.end()

    limit = len(text)
    end_doc = _END_DOCUMENT_RE.search(text)
    if end_doc:
        limit = end_doc.start()

    match = _BODY_START_RE.search(text, search_from)
    if match and match.start() < limit:
        return match.start()
    return limit


def ensure_latex_document(text: str) -> str:
    """
    Turn any string into a closed LaTeX document.

    Total over strings: blank input maps to "". Applying it twice gives the
    same result as applying it once.
    """
    if not isinstance(text, str):
        return ""

    result = _drop_stray_markers(_clean(text))
    if not result.strip():
        return ""

    has_document_class = bool(_DOCUMENTCLASS_PRESENT_RE.search(result))
    has_begin = bool(_BEGIN_DOCUMENT_RE.search(result))
    has_end = bool(_END_DOCUMENT_RE.search(result))

    if not has_begin:
        insert_at = find_body_start(result)
        before, after = result[:insert_at], result[insert_at:]
        if before and not before.endswith("\n"):
            before += "\n"
        result = f"{before}\\begin{{document}}\n{after}"

    if not has_end:
        result = f"{result.rstrip()}\n\\end{{document}}\n"

    if not has_document_class:
        result = f"{DEFAULT_DOCUMENTCLASS}\n{result}"

    return result
