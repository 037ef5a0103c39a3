"""Line splitting for raw extracted text.

The PDF-to-text collaborator hands over one string, line-broken however its
extractor chose. Before classification we:

1. Collapse CRLF and CR to LF.
2. Convert non-breaking spaces to plain spaces.
3. Remove zero-width characters.
4. Collapse runs of horizontal whitespace inside each line.
5. Trim each line and drop blank ones.

``RawLine.index`` is the position in the resulting list, so it is stable for a
given input and is what page estimates and warnings refer to.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

_ZERO_WIDTH_RE = re.compile("[\u200b\u200c\u200d\ufeff]")
_HSPACE_RE = re.compile(r"[^\S\n]+")


@dataclass(frozen=True, slots=True)
class RawLine:
    """One trimmed, non-blank line of input text."""

    text: str
    index: int

    def __post_init__(self) -> None:
        if self.index < 0:
            raise ValueError(f"RawLine.index must be >= 0, got {self.index}")


def normalize_text(text: str) -> str:
    """Apply the deterministic character-level transforms (steps 1-3)."""
    raw = text or ""
    raw = raw.replace("\r\n", "\n").replace("\r", "\n")
    raw = raw.replace("\u00a0", " ")
    return _ZERO_WIDTH_RE.sub("", raw)


def split_lines(text: str) -> list[RawLine]:
    """Split raw text into indexed, trimmed, non-blank lines."""
    out: list[RawLine] = []
    for line in normalize_text(text).split("\n"):
        cleaned = _HSPACE_RE.sub(" ", line).strip()
        if cleaned:
            out.append(RawLine(text=cleaned, index=len(out)))
    return out


def lines_from_strings(rows: list[str]) -> list[RawLine]:
    """Build RawLines from pre-split strings (same trimming rules)."""
    return split_lines("\n".join(rows))
