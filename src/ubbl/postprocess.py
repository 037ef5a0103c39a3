"""Optional clean-up passes run after parsing, before enrichment.

Both passes renumber ``sequence`` so the output stays gap-free from 1.
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import replace

from ubbl.corpus_types import Clause, Document
from ubbl.strategy import DEFAULT_STRATEGY, ClassificationStrategy

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def renumber(clauses: Sequence[Clause]) -> tuple[Clause, ...]:
    return tuple(c.with_sequence(i) for i, c in enumerate(clauses, start=1))


def dedup_key(clause: Clause) -> str:
    """``<part>-<number>-<normalized title prefix>``."""
    title = _NON_ALNUM_RE.sub("", clause.title.lower())[:50]
    return f"{clause.part_ordinal}-{clause.number}-{title}"


def deduplicate_clauses(clauses: Sequence[Clause]) -> tuple[Clause, ...]:
    """Keep the first clause for each dedup key."""
    seen: set[str] = set()
    kept: list[Clause] = []
    for clause in clauses:
        key = dedup_key(clause)
        if key in seen:
            continue
        seen.add(key)
        kept.append(clause)
    return renumber(kept)


def has_substantial_content(clause: Clause, *, min_title: int = 5, min_body: int = 10) -> bool:
    return len(clause.title) > min_title or len(clause.body) > min_body


def filter_number_range(
    clauses: Sequence[Clause],
    lo: int,
    hi: int,
) -> tuple[Clause, ...]:
    """Keep clauses numbered ``lo..hi`` (by leading integer) with real content."""
    kept = [
        c for c in clauses
        if lo <= c.numeric_part <= hi and has_substantial_content(c)
    ]
    return renumber(kept)


def postprocess_document(
    doc: Document,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
) -> Document:
    """Apply the passes the strategy enables."""
    clauses = doc.clauses
    if strategy.deduplicate:
        clauses = deduplicate_clauses(clauses)
    if strategy.number_range is not None:
        lo, hi = strategy.number_range
        clauses = filter_number_range(clauses, lo, hi)
    if clauses is doc.clauses:
        return doc
    return replace(doc, clauses=clauses)
