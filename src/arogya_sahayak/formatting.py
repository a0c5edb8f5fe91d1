"""
Plain-text cleanup for model output shown in a chat bubble.

Each step is a small named transform; `clean_completion_text` runs them in a
fixed order. The patterns are literal markdown markers only. Nested lists,
code fences containing pipes and similar structures may come out imperfect.
"""

from __future__ import annotations

import re
from collections.abc import Callable

BULLET = "•"

_BOLD_RE = re.compile(r"\*\*(.+?)\*\*|__(.+?)__")
_ITALIC_STAR_RE = re.compile(r"\*(?!\s)(.+?)(?<!\s)\*")
_ITALIC_UNDERSCORE_RE = re.compile(r"(?<!\w)_(?!\s)(.+?)(?<!\s)_(?!\w)")
_HEADING_RE = re.compile(r"^[ \t]*#{1,6}[ \t]+", re.MULTILINE)
_TABLE_RULE_RE = re.compile(
    r"^[ \t]*\|?[ \t]*:?-{3,}:?[ \t]*(?:\|[ \t]*:?-{3,}:?[ \t]*)*\|?[ \t]*(?:\n|$)",
    re.MULTILINE,
)
_PIPE_RE = re.compile(r"[ \t]*\|[ \t]*")
_FENCED_RE = re.compile(r"```(?:[\w+#.-]*[ \t]*\n)?(.*?)```", re.DOTALL)
_STRAY_FENCE_RE = re.compile(r"`{3,}")
_INLINE_CODE_RE = re.compile(r"`([^`\n]+)`")
_BULLET_RE = re.compile(r"^[ \t]*[-*+][ \t]+", re.MULTILINE)
_ORDERED_RE = re.compile(r"^[ \t]*(?:\d+\.[ \t]+)+(?P<bullet>[-*+][ \t]+)?", re.MULTILINE)


def strip_emphasis(text: str) -> str:
    text = _BOLD_RE.sub(lambda m: m.group(1) if m.group(1) is not None else m.group(2), text)
    text = _ITALIC_STAR_RE.sub(r"\1", text)
    return _ITALIC_UNDERSCORE_RE.sub(r"\1", text)


def strip_headings(text: str) -> str:
    return _HEADING_RE.sub("", text)


def strip_table_pipes(text: str) -> str:
    text = _TABLE_RULE_RE.sub("", text)
    lines = text.split("\n")
    return "\n".join(_PIPE_RE.sub(" ", line).strip() if "|" in line else line for line in lines)


def strip_code_markers(text: str) -> str:
    text = _FENCED_RE.sub(r"\1", text)
    text = _STRAY_FENCE_RE.sub("", text)
    return _INLINE_CODE_RE.sub(r"\1", text)


def normalize_bullets(text: str) -> str:
    return _BULLET_RE.sub(f"{BULLET} ", text)


def strip_ordered_markers(text: str) -> str:
    # "1. - item" keeps its bullet so a second pass has nothing left to do.
    return _ORDERED_RE.sub(lambda m: f"{BULLET} " if m.group("bullet") else "", text)


def trim(text: str) -> str:
    return text.strip()


PIPELINE: tuple[tuple[str, Callable[[str], str]], ...] = (
    ("strip_emphasis", strip_emphasis),
    ("strip_headings", strip_headings),
    ("strip_table_pipes", strip_table_pipes),
    ("strip_code_markers", strip_code_markers),
    ("normalize_bullets", normalize_bullets),
    ("strip_ordered_markers", strip_ordered_markers),
    ("trim", trim),
)


MAX_PASSES = 8


def clean_completion_text(text: str) -> str:
    """
    Run `PIPELINE` until the text stops changing.

    A later step can expose a marker an earlier one handles, e.g. a table
    cell `| ## Notes |` or an inline span `` `# Dosage` `` leaves a heading
    marker behind once the pipes or backticks are gone.
    """
    for _ in range(MAX_PASSES):
        cleaned = text
        for _name, step in PIPELINE:
            cleaned = step(cleaned)
        if cleaned == text:
            break
        text = cleaned
    return text
