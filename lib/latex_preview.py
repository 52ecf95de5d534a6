"""
Preview sanitizer for in-browser LaTeX rendering.

Browser-side renderers (latex.js + KaTeX) support a small subset of LaTeX.
`sanitize_for_preview` rewrites a document into that subset: it drops
unsupported packages and font setup, flattens the custom `choices` list into
an inline line of labelled options, and closes dangling list environments.

Lossy and only used for previews; copy/download output is never passed
through here. All edits are textual. `%` comments and verbatim blocks are not
recognised, so commands inside them are edited like any other text.
"""

import logging
import re
from typing import Optional

from lib.languages import resolve_choice_labels
from lib.latex_document import ensure_latex_document

logger = logging.getLogger(__name__)

# Font selection, drawing, localization and low-level plotting packages the
# browser renderer cannot load
UNSUPPORTED_PACKAGES = frozenset({
    "fontspec", "unicode-math", "mathspec", "xunicode", "xltxtra", "fontenc", "inputenc",
    "polyglossia", "babel", "xeCJK",
    "tikz", "pgf", "pgfplots", "pstricks", "circuitikz", "tikz-cd",
    "enumitem",
})

CHOICE_SEPARATOR = " \\quad "

_USEPACKAGE_RE = re.compile(
    r"\\usepackage\s*(\[[^\]]*\])?\s*\{([^}]*)\}[ \t]*(?:%[^\n]*)?(\n?)"
)
_CHOICES_DECLARATION_RE = re.compile(r"^[ \t]*\\newlist\s*\{choices\}[^\n]*\n?", re.MULTILINE)
_SETLIST_RE = re.compile(r"^[ \t]*\\setlist\b[^\n]*\n?", re.MULTILINE)
_CHOICES_BLOCK_RE = re.compile(
    r"\\begin\{choices\}(?:\[[^\]]*\])?(.*?)\\end\{choices\}", re.DOTALL
)
_ITEM_SPLIT_RE = re.compile(r"\\item\b\s*")
_FONT_COMMAND_RE = re.compile(
    r"^[ \t]*\\(?:setmainfont|setsansfont|setmonofont|setmathfont|newfontfamily"
    r"|setCJKmainfont|defaultfontfeatures)\b[^\n]*\n?",
    re.MULTILINE,
)
_AT_BEGIN_DOCUMENT = "\\AtBeginDocument"
_LIST_ENV_RE = re.compile(r"\\(begin|end)\{(enumerate|itemize)\}")
_END_DOCUMENT = "\\end{document}"
_EXTRA_BLANK_LINES_RE = re.compile(r"\n{3,}")


def strip_packages(text: str, strip_all: bool = False) -> str:
    """Drop \\usepackage directives for unsupported packages (or all of them)."""

    def _replace(match: re.Match) -> str:
        options, names, newline = match.group(1) or "", match.group(2), match.group(3)
        if strip_all:
            return ""
        kept = [
            name.strip() for name in names.split(",")
            if name.strip() and name.strip() not in UNSUPPORTED_PACKAGES
        ]
        if not kept:
            return ""
        return f"\\usepackage{options}{{{','.join(kept)}}}{newline}"

    return _USEPACKAGE_RE.sub(_replace, text)


def strip_choice_list_setup(text: str) -> str:
    """Remove enumitem declarations and customizations of the `choices` list."""
    text = _CHOICES_DECLARATION_RE.sub("", text)
    return _SETLIST_RE.sub("", text)


def inline_choices(text: str, language: Optional[str] = None) -> str:
    """Replace each `choices` environment with one line of labelled options."""
    labels = resolve_choice_labels(language)

    def _replace(match: re.Match) -> str:
        parts = _ITEM_SPLIT_RE.split(match.group(1))
        items = [item.strip() for item in parts[1:] if item.strip()]
        return CHOICE_SEPARATOR.join(
            f"{labels.label_for(i)} {item}" for i, item in enumerate(items)
        )

    return _CHOICES_BLOCK_RE.sub(_replace, text)


def choices_to_enumerate(text: str) -> str:
    return text.replace("\\begin{choices}", "\\begin{enumerate}").replace(
        "\\end{choices}", "\\end{enumerate}"
    )


def strip_font_commands(text: str) -> str:
    return _FONT_COMMAND_RE.sub("", text)


def _matching_brace(text: str, open_index: int) -> int:
    """Index of the brace closing text[open_index], or -1 if unbalanced."""
    depth = 0
    i = open_index
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def strip_at_begin_document(text: str) -> str:
    """Remove \\AtBeginDocument{...} hooks, matching nested braces."""
    result = []
    position = 0
    while True:
        start = text.find(_AT_BEGIN_DOCUMENT, position)
        if start == -1:
            break
        brace = start + len(_AT_BEGIN_DOCUMENT)
        while brace < len(text) and text[brace] in " \t\n":
            brace += 1
        close = _matching_brace(text, brace) if brace < len(text) and text[brace] == "{" else -1
        if close == -1:
            # Unbalanced hook: leave it in place
            result.append(text[position:brace])
            position = brace
            continue
        result.append(text[position:start])
        position = close + 1
        while position < len(text) and text[position] in " \t":
            position += 1
        if position < len(text) and text[position] == "\n":
            position += 1
    result.append(text[position:])
    return "".join(result)


def balance_list_environments(text: str) -> str:
    """
    Make \\begin/\\end counts of enumerate and itemize equal.

    Depth is tracked per environment name, not as one shared stack: an
    \\end with no open environment of its name is dropped, and environments
    still open at the end are closed just before \\end{document}, innermost
    first. Interleaved types are not re-nested.
    """
    open_positions: dict[str, list[int]] = {"enumerate": [], "itemize": []}
    orphan_ends: list[tuple[int, int]] = []

    for match in _LIST_ENV_RE.finditer(text):
        kind, name = match.group(1), match.group(2)
        if kind == "begin":
            open_positions[name].append(match.start())
        elif open_positions[name]:
            open_positions[name].pop()
        else:
            orphan_ends.append((match.start(), match.end()))

    for start, end in reversed(orphan_ends):
        text = text[:start] + text[end:]

    unclosed = sorted(
        (pos, name) for name, positions in open_positions.items() for pos in positions
    )
    if not unclosed:
        return text

    closers = "".join(f"\\end{{{name}}}\n" for _, name in reversed(unclosed))
    end_doc = text.rfind(_END_DOCUMENT)
    if end_doc == -1:
        return f"{text.rstrip()}\n{closers}"
    head = text[:end_doc]
    if head and not head.endswith("\n"):
        head += "\n"
    return head + closers + text[end_doc:]


def sanitize_for_preview(
    text: str,
    language: Optional[str] = None,
    inline: bool = True,
    strip_all_packages: bool = False,
) -> str:
    """
    Best-effort rewrite of a document into something a browser renderer accepts.

    Args:
        text: LaTeX source (fragment or full document)
        language: Output language; selects the alphabet for inline choice labels
        inline: Flatten `choices` into one labelled line (False maps it to enumerate)
        strip_all_packages: Drop every \\usepackage instead of the deny-list only

    Returns:
        Renderable LaTeX; never raises
    """
    if not isinstance(text, str):
        return ""

    try:
        result = ensure_latex_document(text)
        if not result:
            return result
        result = strip_packages(result, strip_all=strip_all_packages)
        result = strip_choice_list_setup(result)
        if inline:
            result = inline_choices(result, language)
        result = choices_to_enumerate(result)
        result = strip_font_commands(result)
        result = strip_at_begin_document(result)
        result = balance_list_environments(result)
        return _EXTRA_BLANK_LINES_RE.sub("\n\n", result)
    except Exception:
        logger.exception("Preview sanitization failed; returning input unchanged")
        return text
