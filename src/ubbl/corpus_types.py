"""Data types for the structured UBBL corpus.

Every type is a frozen, slotted dataclass. Invariants that are local to one
record (complexity range, priority vocabulary, positive sequence) are checked
in ``__post_init__``; cross-record invariants (gap-free sequencing, Part
ownership, title duplication) are the validator's job.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

CATEGORIES: tuple[str, ...] = (
    "fire_safety",
    "structural",
    "plan_submission",
    "accessibility",
    "environmental",
    "spatial_requirements",
    "services",
    "construction_process",
    "general",
)

PRIORITIES: tuple[str, ...] = ("critical", "high", "standard")

BUILDING_TYPES: tuple[str, ...] = (
    "residential",
    "commercial",
    "industrial",
    "institutional",
    "assembly",
)

COMPLEXITY_RANGE: tuple[int, int] = (1, 5)


def clause_id(number: str) -> str:
    """Stable record id for a clause number, e.g. ``bylaw-12A``."""
    return f"bylaw-{number}"


@dataclass(frozen=True, slots=True)
class Part:
    """A Roman-numeral labeled top-level section."""

    ordinal: int
    roman_label: str
    title: str
    line_index: int = 0

    def __post_init__(self) -> None:
        if self.ordinal < 1:
            raise ValueError(f"Part.ordinal must be >= 1, got {self.ordinal}")


@dataclass(frozen=True, slots=True)
class ClauseMetadata:
    """Rule-derived descriptors for one clause."""

    keywords: tuple[str, ...]
    category: str
    complexity_level: int
    requires_calculation: bool
    has_exceptions: bool
    applicable_building_types: tuple[str, ...]
    priority: str

    def __post_init__(self) -> None:
        lo, hi = COMPLEXITY_RANGE
        if not lo <= self.complexity_level <= hi:
            raise ValueError(
                f"complexity_level must be in [{lo}, {hi}], got {self.complexity_level}"
            )
        if self.priority not in PRIORITIES:
            raise ValueError(f"priority must be one of {PRIORITIES}, got {self.priority!r}")
        if self.category not in CATEGORIES:
            raise ValueError(f"Unknown category {self.category!r}")
        if not self.applicable_building_types:
            raise ValueError("applicable_building_types cannot be empty")


@dataclass(frozen=True, slots=True)
class Clause:
    """A numbered by-law with a denormalized snapshot of its owning Part."""

    id: str
    number: str
    sequence: int
    part_ordinal: int
    part_label: str
    part_title: str
    title: str
    body: str
    page_estimate: int
    line_index: int
    created_at: str
    updated_at: str
    metadata: ClauseMetadata | None = None
    title_translated: str | None = None
    body_translated: str | None = None
    embedding: tuple[float, ...] | None = None

    def __post_init__(self) -> None:
        if self.sequence < 1:
            raise ValueError(f"Clause.sequence must be >= 1, got {self.sequence}")
        if self.part_ordinal < 1:
            raise ValueError(f"Clause {self.number} has no owning Part")
        if self.id != clause_id(self.number):
            raise ValueError(f"Clause id {self.id!r} does not match number {self.number!r}")

    @property
    def numeric_part(self) -> int:
        """Leading integer of the clause number (``12A`` -> 12)."""
        digits = ""
        for ch in self.number:
            if not ch.isdigit():
                break
            digits += ch
        return int(digits) if digits else 0

    @property
    def full_text(self) -> str:
        return f"{self.title} {self.body}"

    def with_sequence(self, sequence: int) -> Clause:
        return replace(self, sequence=sequence)


@dataclass(frozen=True, slots=True)
class CorpusWarning:
    """Non-fatal diagnostic collected during a run."""

    code: str
    message: str
    line_index: int | None = None
    clause_number: str | None = None


@dataclass(frozen=True, slots=True)
class Document:
    """Ordered Parts and Clauses produced by one run."""

    parts: tuple[Part, ...] = ()
    clauses: tuple[Clause, ...] = ()
    warnings: tuple[CorpusWarning, ...] = field(default=())

    def part_by_ordinal(self, ordinal: int) -> Part | None:
        for part in self.parts:
            if part.ordinal == ordinal:
                return part
        return None


# ---------------------------------------------------------------------------
# Plain-dict views for adapters
# ---------------------------------------------------------------------------


def part_to_dict(part: Part) -> dict[str, Any]:
    return {
        "ordinal": part.ordinal,
        "roman_label": part.roman_label,
        "title": part.title,
    }


def metadata_to_dict(meta: ClauseMetadata) -> dict[str, Any]:
    return {
        "keywords": list(meta.keywords),
        "category": meta.category,
        "complexity_level": meta.complexity_level,
        "requires_calculation": meta.requires_calculation,
        "has_exceptions": meta.has_exceptions,
        "applicable_building_types": list(meta.applicable_building_types),
        "priority": meta.priority,
    }


def clause_to_dict(clause: Clause) -> dict[str, Any]:
    """Flat JSON-ready view of a clause (metadata nested)."""
    return {
        "id": clause.id,
        "number": clause.number,
        "sequence": clause.sequence,
        "part_ordinal": clause.part_ordinal,
        "part_label": clause.part_label,
        "part_title": clause.part_title,
        "title": clause.title,
        "body": clause.body,
        "page_estimate": clause.page_estimate,
        "metadata": metadata_to_dict(clause.metadata) if clause.metadata else None,
        "title_translated": clause.title_translated,
        "body_translated": clause.body_translated,
        "embedding": list(clause.embedding) if clause.embedding is not None else None,
        "created_at": clause.created_at,
        "updated_at": clause.updated_at,
    }


def warning_to_dict(warning: CorpusWarning) -> dict[str, Any]:
    return {
        "code": warning.code,
        "message": warning.message,
        "line_index": warning.line_index,
        "clause_number": warning.clause_number,
    }


def document_to_dict(doc: Document) -> dict[str, Any]:
    return {
        "parts": [part_to_dict(p) for p in doc.parts],
        "clauses": [clause_to_dict(c) for c in doc.clauses],
    }
