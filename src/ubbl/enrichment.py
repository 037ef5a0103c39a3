"""Rule-based clause metadata: category, flags, complexity, priority, keywords.

All functions are pure. Matching runs over ``(title + " " + body).lower()``;
a term matches at a word start (``\\bterm``), so ``load`` also hits
``loading`` and ``area`` hits ``areas``, but ``ramp`` does not hit ``tramp``.

This departs on purpose from the older extraction scripts, which matched bare
substrings: there ``but`` hit ``distribute`` and ``ratio`` hit ``operation``.
Metadata counts therefore differ from corpora those scripts produced.

Complexity ladder (first rule that holds)::

    5  len(body) > 1000  and both flags  and connectives > 5
    4  len(body) > 600   and both flags
    3  len(body) > 300   and either flag
    2  len(body) > 150
    1  otherwise

Enrichment is the one parallel stage: ``enrich_clauses(..., workers=N)``
fans out over a process pool and keeps input order.
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import replace
from functools import lru_cache
from multiprocessing import Pool

from ubbl.corpus_types import Clause, ClauseMetadata, Document
from ubbl.strategy import DEFAULT_STRATEGY, ClassificationStrategy

RE_WORD: re.Pattern[str] = re.compile(r"[a-z]+")


@lru_cache(maxsize=128)
def term_pattern(terms: tuple[str, ...], *, whole_word: bool = False) -> re.Pattern[str] | None:
    """Alternation over ``terms`` anchored at a word start (cached per tuple)."""
    if not terms:
        return None
    body = "|".join(re.escape(t) for t in terms)
    suffix = r"\b" if whole_word else ""
    return re.compile(rf"\b(?:{body}){suffix}")


def _matches(text: str, terms: tuple[str, ...]) -> bool:
    rx = term_pattern(terms)
    return rx is not None and rx.search(text) is not None


def match_text(title: str, body: str) -> str:
    return f"{title} {body}".lower()


# ── Individual signals ───────────────────────────────────────────────


def detect_category(text: str, strategy: ClassificationStrategy = DEFAULT_STRATEGY) -> str:
    for category, terms in strategy.category_rules:
        if _matches(text, terms):
            return category
    return "general"


def requires_calculation(text: str, strategy: ClassificationStrategy = DEFAULT_STRATEGY) -> bool:
    return _matches(text, strategy.calculation_terms)


def has_exceptions(text: str, strategy: ClassificationStrategy = DEFAULT_STRATEGY) -> bool:
    return _matches(text, strategy.exception_terms)


def count_connectives(text: str, strategy: ClassificationStrategy = DEFAULT_STRATEGY) -> int:
    rx = term_pattern(strategy.connective_terms, whole_word=True)
    return 0 if rx is None else len(rx.findall(text.lower()))


def complexity_level(
    body: str,
    *,
    calculation: bool,
    exceptions: bool,
    connectives: int,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
) -> int:
    t5, t4, t3, t2 = strategy.complexity_length_thresholds
    length = len(body)
    if length > t5 and calculation and exceptions and connectives > strategy.connective_threshold:
        return 5
    if length > t4 and calculation and exceptions:
        return 4
    if length > t3 and (calculation or exceptions):
        return 3
    if length > t2:
        return 2
    return 1


def detect_priority(text: str, strategy: ClassificationStrategy = DEFAULT_STRATEGY) -> str:
    if _matches(text, strategy.critical_terms):
        return "critical"
    if _matches(text, strategy.high_priority_terms):
        return "high"
    return "standard"


def applicable_building_types(
    text: str,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
) -> tuple[str, ...]:
    """Matching families in table order; none -> the broad default set."""
    found = tuple(btype for btype, terms in strategy.building_type_rules if _matches(text, terms))
    return found or strategy.default_building_types


def extract_keywords(text: str, strategy: ClassificationStrategy = DEFAULT_STRATEGY) -> tuple[str, ...]:
    """Distinct lowercase words, first-seen order, stop words removed."""
    stop = frozenset(strategy.stop_words)
    seen: dict[str, None] = {}
    for word in RE_WORD.findall(text.lower()):
        if len(word) < strategy.keyword_min_length or word in stop:
            continue
        seen.setdefault(word, None)
        if len(seen) >= strategy.max_keywords:
            break
    return tuple(seen)


# ── Clause-level ─────────────────────────────────────────────────────


def enrich_metadata(
    title: str,
    body: str,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
) -> ClauseMetadata:
    text = match_text(title, body)
    calculation = requires_calculation(text, strategy)
    exceptions = has_exceptions(text, strategy)
    return ClauseMetadata(
        keywords=extract_keywords(text, strategy),
        category=detect_category(text, strategy),
        complexity_level=complexity_level(
            body,
            calculation=calculation,
            exceptions=exceptions,
            connectives=count_connectives(body, strategy),
            strategy=strategy,
        ),
        requires_calculation=calculation,
        has_exceptions=exceptions,
        applicable_building_types=applicable_building_types(text, strategy),
        priority=detect_priority(text, strategy),
    )


def enrich_clause(clause: Clause, strategy: ClassificationStrategy = DEFAULT_STRATEGY) -> Clause:
    return replace(clause, metadata=enrich_metadata(clause.title, clause.body, strategy))


def _enrich_item(item: tuple[Clause, ClassificationStrategy]) -> Clause:
    clause, strategy = item
    return enrich_clause(clause, strategy)


def enrich_clauses(
    clauses: Sequence[Clause],
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
    *,
    workers: int = 1,
) -> tuple[Clause, ...]:
    """Enrich every clause; ``workers > 1`` uses a process pool (order kept)."""
    if workers <= 1 or len(clauses) < 2:
        return tuple(enrich_clause(c, strategy) for c in clauses)
    items = [(c, strategy) for c in clauses]
    chunksize = max(1, len(items) // (workers * 4))
    with Pool(processes=workers) as pool:
        return tuple(pool.map(_enrich_item, items, chunksize=chunksize))


def enrich_document(
    doc: Document,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
    *,
    workers: int = 1,
) -> Document:
    return replace(doc, clauses=enrich_clauses(doc.clauses, strategy, workers=workers))
