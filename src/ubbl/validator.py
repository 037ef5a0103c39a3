"""Aggregate sanity checks over a finished corpus.

Nothing here raises: every finding is a CorpusWarning. A corpus whose clause
count is outside the expected band is still a complete corpus.
"""
from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

from ubbl.corpus_types import Clause, CorpusWarning, Document, Part
from ubbl.strategy import DEFAULT_STRATEGY, ClassificationStrategy


@dataclass(frozen=True, slots=True)
class ValidationReport:
    warnings: tuple[CorpusWarning, ...]

    @property
    def is_clean(self) -> bool:
        return not self.warnings

    def codes(self) -> list[str]:
        return [w.code for w in self.warnings]


def check_clause_band(
    clauses: Sequence[Clause],
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
) -> list[CorpusWarning]:
    lo, hi = strategy.expected_clause_range
    n = len(clauses)
    if lo <= n <= hi:
        return []
    return [CorpusWarning(
        code="clause_count_out_of_band",
        message=(
            f"{n} clauses extracted; expected between {lo} and {hi} "
            f"(~{strategy.expected_clause_count})"
        ),
    )]


def check_sequencing(clauses: Sequence[Clause]) -> list[CorpusWarning]:
    """Sequences must run 1, 2, 3, ... with no gaps."""
    out: list[CorpusWarning] = []
    for expected, clause in enumerate(clauses, start=1):
        if clause.sequence != expected:
            out.append(CorpusWarning(
                code="sequence_gap",
                message=f"Expected sequence {expected}, found {clause.sequence}",
                line_index=clause.line_index,
                clause_number=clause.number,
            ))
    return out


def check_ownership(parts: Sequence[Part], clauses: Sequence[Clause]) -> list[CorpusWarning]:
    """Each clause's Part must have been observed strictly before it."""
    first_seen: dict[int, int] = {}
    for part in parts:
        first_seen.setdefault(part.ordinal, part.line_index)
    out: list[CorpusWarning] = []
    for clause in clauses:
        at = first_seen.get(clause.part_ordinal)
        if at is None or at >= clause.line_index:
            out.append(CorpusWarning(
                code="orphan_clause",
                message=f"Clause {clause.number} references Part {clause.part_label} "
                        f"not observed before it",
                line_index=clause.line_index,
                clause_number=clause.number,
            ))
    return out


def check_title_duplication(clauses: Sequence[Clause]) -> list[CorpusWarning]:
    out: list[CorpusWarning] = []
    for clause in clauses:
        if clause.title and clause.body.startswith(clause.title):
            out.append(CorpusWarning(
                code="title_in_body",
                message=f"Clause {clause.number} body starts with its title",
                line_index=clause.line_index,
                clause_number=clause.number,
            ))
    return out


def check_duplicate_numbers(clauses: Sequence[Clause]) -> list[CorpusWarning]:
    counts = Counter(c.number for c in clauses)
    return [
        CorpusWarning(
            code="duplicate_clause_number",
            message=f"Clause number {number} appears {n} times",
            clause_number=number,
        )
        for number, n in counts.items()
        if n > 1
    ]


def validate_corpus(
    doc: Document,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
) -> ValidationReport:
    warnings: list[CorpusWarning] = []
    warnings.extend(check_clause_band(doc.clauses, strategy))
    warnings.extend(check_sequencing(doc.clauses))
    warnings.extend(check_ownership(doc.parts, doc.clauses))
    warnings.extend(check_title_duplication(doc.clauses))
    warnings.extend(check_duplicate_numbers(doc.clauses))
    return ValidationReport(warnings=tuple(warnings))
