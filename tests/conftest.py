"""Shared fixtures: a small UBBL-shaped text and clause factories."""
from __future__ import annotations

from collections.abc import Callable

import pytest

from ubbl.corpus_types import Clause, ClauseMetadata, Document, clause_id
from ubbl.pipeline import run_pipeline

FIXED_TS = "2024-01-01T00:00:00+00:00"

SAMPLE_TEXT = """\
Published by the Government Printer
UNIFORM BUILDING BY-LAWS 1984
PART I - PRELIMINARY
1. Citation and commencement
These By-laws may be cited as the Uniform Building By-laws 1984.
Page 1
2. Interpretation
In these By-laws, unless the context otherwise requires, "authority" means the local authority.
PART II
SUBMISSION OF PLANS FOR APPROVAL
3. Submission of plans
All plans for buildings shall be submitted to the local authority for approval.
(a) site plans;
4. Signing of plans
Every plan shall be signed by the qualified person who prepared it.
PART VII - FIRE REQUIREMENTS
133. Means of escape
Every building shall be provided with means of escape in case of fire and the fire alarm shall be installed.
"""


def synthetic_text(n_clauses: int) -> str:
    """One Part with ``n_clauses`` well-formed clauses."""
    rows = ["PART I - GENERAL"]
    for i in range(1, n_clauses + 1):
        rows.append(f"{i}. Requirement number {i} heading")
        rows.append(f"The owner shall comply with requirement {i} in full.")
    return "\n".join(rows) + "\n"


@pytest.fixture()
def sample_text() -> str:
    return SAMPLE_TEXT


@pytest.fixture()
def make_text() -> Callable[[int], str]:
    return synthetic_text


@pytest.fixture()
def make_clause() -> Callable[..., Clause]:
    def _make(
        number: str = "1",
        sequence: int = 1,
        *,
        part_ordinal: int = 1,
        part_label: str = "I",
        title: str = "Citation",
        body: str = "These By-laws may be cited as the Uniform Building By-laws.",
        line_index: int = 1,
        metadata: ClauseMetadata | None = None,
    ) -> Clause:
        return Clause(
            id=clause_id(number),
            number=number,
            sequence=sequence,
            part_ordinal=part_ordinal,
            part_label=part_label,
            part_title="PRELIMINARY",
            title=title,
            body=body,
            page_estimate=1,
            line_index=line_index,
            created_at=FIXED_TS,
            updated_at=FIXED_TS,
            metadata=metadata,
        )

    return _make


@pytest.fixture()
def make_metadata() -> Callable[..., ClauseMetadata]:
    def _make(
        *,
        category: str = "general",
        priority: str = "standard",
        complexity_level: int = 1,
    ) -> ClauseMetadata:
        return ClauseMetadata(
            keywords=("citation",),
            category=category,
            complexity_level=complexity_level,
            requires_calculation=False,
            has_exceptions=False,
            applicable_building_types=("residential",),
            priority=priority,
        )

    return _make


@pytest.fixture()
def sample_doc() -> Document:
    """SAMPLE_TEXT through the full in-memory pipeline."""
    return run_pipeline(SAMPLE_TEXT, timestamp=FIXED_TS).document
