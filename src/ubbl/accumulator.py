"""In-progress clause text, finalized into a Clause record.

The accumulator is immutable: ``with_fragment`` returns a new
instance, so a ParserContext snapshot never changes under a test.
"""
from __future__ import annotations

from dataclasses import dataclass, replace

from ubbl.corpus_types import Clause, Part, clause_id


def estimate_page(line_index: int, total_lines: int, page_count: int) -> int:
    """Linear page estimate from line position (1-based, never exact)."""
    if total_lines <= 0:
        return 1
    return int(line_index / total_lines * page_count) + 1


def should_borrow_title(title_hint: str, next_text: str | None, threshold: int) -> bool:
    """Short same-line title followed by a longer line -> the heading wrapped.

    The caller must also check that the next line is a Continuation.
    """
    if next_text is None:
        return False
    return len(title_hint) < threshold and len(next_text) > threshold


def strip_title_prefix(body: str, title: str) -> str:
    """Remove one exact leading copy of ``title`` from ``body``."""
    text = body.strip()
    if title and text.startswith(title):
        text = text[len(title):].strip()
    return text


@dataclass(frozen=True, slots=True)
class ClauseAccumulator:
    """Number, title, ordered body fragments, and the opening line index."""

    number: str
    title: str
    line_index: int
    fragments: tuple[str, ...] = ()

    def with_fragment(self, text: str) -> ClauseAccumulator:
        return replace(self, fragments=self.fragments + (text,))

    @property
    def body(self) -> str:
        return " ".join(self.fragments).strip()

    def finalize(
        self,
        *,
        sequence: int,
        part: Part,
        page_estimate: int,
        timestamp: str,
    ) -> Clause:
        """Emit the Clause. ``sequence`` is owned by the state machine."""
        title = self.title.strip()
        return Clause(
            id=clause_id(self.number),
            number=self.number,
            sequence=sequence,
            part_ordinal=part.ordinal,
            part_label=part.roman_label,
            part_title=part.title,
            title=title,
            body=strip_title_prefix(self.body, title),
            page_estimate=page_estimate,
            line_index=self.line_index,
            created_at=timestamp,
            updated_at=timestamp,
        )
