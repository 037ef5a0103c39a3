"""Corpus summary statistics."""
from __future__ import annotations

from collections import Counter
from typing import Any

from ubbl.corpus_types import Document
from ubbl.strategy import DEFAULT_STRATEGY, ClassificationStrategy


def summarize_corpus(
    doc: Document,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
) -> dict[str, Any]:
    """Counts by Part, category, priority, and complexity, plus coverage.

    Clauses without metadata are counted under ``by_part`` only.
    """
    by_part: Counter[int] = Counter()
    labels: dict[int, str] = {}
    by_category: Counter[str] = Counter()
    by_priority: Counter[str] = Counter()
    by_complexity: Counter[int] = Counter()
    calculation = 0
    exceptions = 0

    for clause in doc.clauses:
        by_part[clause.part_ordinal] += 1
        labels.setdefault(clause.part_ordinal, clause.part_label)
        meta = clause.metadata
        if meta is None:
            continue
        by_category[meta.category] += 1
        by_priority[meta.priority] += 1
        by_complexity[meta.complexity_level] += 1
        calculation += int(meta.requires_calculation)
        exceptions += int(meta.has_exceptions)

    total = len(doc.clauses)
    expected = strategy.expected_clause_count
    coverage = round(total / expected * 100, 1) if expected > 0 else 0.0
    return {
        "total_parts": len(doc.parts),
        "total_clauses": total,
        "expected_clauses": expected,
        "coverage_pct": coverage,
        "by_part": {labels[k]: by_part[k] for k in sorted(by_part)},
        "by_category": dict(by_category.most_common()),
        "by_priority": {p: by_priority.get(p, 0) for p in ("critical", "high", "standard")},
        "by_complexity": {str(k): by_complexity[k] for k in sorted(by_complexity)},
        "requires_calculation": calculation,
        "has_exceptions": exceptions,
        "warnings": len(doc.warnings),
    }
