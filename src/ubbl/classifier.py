"""Line classifier: one raw line -> exactly one of four line classes.

Order of tests:
    1. Noise       -- strategy noise patterns (case-insensitive), or shorter
                      than ``min_line_length``
    2. PartHeader  -- ``PART <ROMAN> [- title]``
    3. ClauseStart -- ``<digits>[A-Z]. <content>`` that passes the boundary predicate
    4. Continuation

A line with the clause shape that fails the boundary predicate becomes Noise
when its content has no letters (page numbers, schedule figures), and
Continuation otherwise (list items, wrapped references).

Pure functions only. The same (line, previous, strategy) always yields the
same class.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import TypeAlias

from ubbl.roman import to_int
from ubbl.strategy import DEFAULT_STRATEGY, ClassificationStrategy

# ── Line classes ─────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Noise:
    reason: str = ""


@dataclass(frozen=True, slots=True)
class PartHeader:
    roman: str
    ordinal: int
    title_hint: str


@dataclass(frozen=True, slots=True)
class ClauseStart:
    number: str
    title_hint: str


@dataclass(frozen=True, slots=True)
class Continuation:
    pass


LineClass: TypeAlias = Noise | PartHeader | ClauseStart | Continuation


# ── Patterns ─────────────────────────────────────────────────────────

# Keyword is case-insensitive, the numeral is not ("PART in" is prose).
# Only I, V and X occur in Part numerals; "Part C of the Second Schedule" is prose.
RE_PART_HEADER: re.Pattern[str] = re.compile(
    r"^(?i:PART)\s+([IVX]+)\b\s*(?:[-\u2013\u2014:.]\s*)?(.*)$"
)

RE_CLAUSE_START: re.Pattern[str] = re.compile(r"^(\d+[A-Z]?)\.\s+(.*)$")

# Looser shape used for the "previous line was a list item" check.
RE_NUMERIC_PREFIX: re.Pattern[str] = re.compile(r"^\(?\d+[A-Za-z]?[.)]")

RE_ALPHA_RUN: re.Pattern[str] = re.compile(r"[^\W\d_]+")

RE_DIGITS_PUNCT_ONLY: re.Pattern[str] = re.compile(r"^[\d\W_]*$")


@lru_cache(maxsize=64)
def compile_patterns(patterns: tuple[str, ...], flags: int = 0) -> re.Pattern[str] | None:
    """Compile a tuple of alternatives into one pattern (cached per tuple)."""
    if not patterns:
        return None
    return re.compile("|".join(f"(?:{p})" for p in patterns), flags)


# ── Predicates ───────────────────────────────────────────────────────


def is_noise(text: str, strategy: ClassificationStrategy = DEFAULT_STRATEGY) -> bool:
    if len(text) < strategy.min_line_length:
        return True
    rx = compile_patterns(strategy.noise_patterns, re.IGNORECASE)
    return rx is not None and rx.search(text) is not None


def is_banner(text: str, strategy: ClassificationStrategy = DEFAULT_STRATEGY) -> bool:
    """True for the document title banner that opens the by-laws."""
    rx = compile_patterns(strategy.banner_patterns)
    return rx is not None and rx.search(text) is not None


def is_actual_clause_start(
    text: str,
    previous: str | None = None,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
) -> bool:
    """Decide whether a numeric-prefixed line opens a new clause.

    (a) the content after the prefix is longer than ``min_clause_text_length``
        and contains an alphabetic run;
    (b) the content is not only digits and punctuation;
    (c) a short line right after another numeric-prefixed line is a list
        sub-item, not a clause.
    """
    m = RE_CLAUSE_START.match(text)
    if m is None:
        return False
    content = m.group(2).strip()
    if len(content) <= strategy.min_clause_text_length:
        return False
    if RE_ALPHA_RUN.search(content) is None:
        return False
    if RE_DIGITS_PUNCT_ONLY.match(content):
        return False
    if (
        strategy.list_item_max_length > 0
        and previous is not None
        and RE_NUMERIC_PREFIX.match(previous)
        and len(text) < strategy.list_item_max_length
    ):
        return False
    return True


# ── Classification ───────────────────────────────────────────────────


def match_part_header(text: str) -> PartHeader | None:
    m = RE_PART_HEADER.match(text)
    if m is None:
        return None
    roman = m.group(1)
    return PartHeader(roman=roman, ordinal=to_int(roman), title_hint=m.group(2).strip())


def classify(
    text: str,
    previous: str | None = None,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
) -> LineClass:
    """Classify one trimmed line. ``previous`` is the raw line before it."""
    line = text.strip()
    if len(line) < strategy.min_line_length:
        return Noise("short")
    if is_noise(line, strategy):
        return Noise("pattern")

    header = match_part_header(line)
    if header is not None:
        return header

    m = RE_CLAUSE_START.match(line)
    if m is not None:
        if is_actual_clause_start(line, previous, strategy):
            return ClauseStart(number=m.group(1), title_hint=m.group(2).strip())
        if RE_ALPHA_RUN.search(m.group(2)) is None:
            return Noise("numeric")
        return Continuation()

    return Continuation()
