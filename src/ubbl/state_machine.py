"""Document state machine: classified lines -> Parts and Clauses.

States::

    SEEKING_START --(banner | PART I)--> IN_PART --(ClauseStart)--> IN_CLAUSE

Transition table (``step``):

    SEEKING_START + banner          -> IN_PART, no Part yet
    SEEKING_START + PART I          -> push the line back, IN_PART
    SEEKING_START + anything else   -> discard
    IN_PART       + PartHeader      -> replace current Part
    IN_PART       + ClauseStart     -> open clause, IN_CLAUSE
                                       (no current Part: warning, discard)
    IN_PART       + Continuation    -> discard (Part-level prose)
    IN_CLAUSE     + ClauseStart     -> finalize pending, open clause
    IN_CLAUSE     + Continuation    -> append to pending
    IN_CLAUSE     + PartHeader      -> finalize pending, push the line back, IN_PART
    any           + Noise           -> discard
    end of input  (IN_CLAUSE)       -> finalize pending

Re-evaluating a line after closing a clause goes through the cursor's
one-line pushback buffer; ``step`` never moves the cursor backwards.

``ParserContext`` is immutable and replaced at every step, so a partial fold
can be inspected directly in tests.
"""
from __future__ import annotations

import enum
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime

from ubbl.accumulator import ClauseAccumulator, estimate_page, should_borrow_title
from ubbl.classifier import (
    ClauseStart,
    Continuation,
    Noise,
    PartHeader,
    classify,
    is_banner,
)
from ubbl.corpus_types import Clause, CorpusWarning, Document, Part
from ubbl.lines import RawLine, split_lines
from ubbl.strategy import DEFAULT_STRATEGY, ClassificationStrategy


class ParserState(enum.Enum):
    SEEKING_START = "seeking_start"
    IN_PART = "in_part"
    IN_CLAUSE = "in_clause"


class LineCursor:
    """Forward-only scan over RawLines with a one-line pushback buffer."""

    def __init__(self, lines: Sequence[RawLine]) -> None:
        self._lines = tuple(lines)
        self._pos = 0
        self._pushed: RawLine | None = None

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def exhausted(self) -> bool:
        return self._pushed is None and self._pos >= len(self._lines)

    def next(self) -> RawLine | None:
        if self._pushed is not None:
            line, self._pushed = self._pushed, None
            return line
        if self._pos >= len(self._lines):
            return None
        line = self._lines[self._pos]
        self._pos += 1
        return line

    def peek(self) -> RawLine | None:
        if self._pushed is not None:
            return self._pushed
        if self._pos >= len(self._lines):
            return None
        return self._lines[self._pos]

    def push_back(self, line: RawLine) -> None:
        if self._pushed is not None:
            raise ValueError(
                f"Pushback buffer already holds line {self._pushed.index}; "
                f"cannot push line {line.index}"
            )
        self._pushed = line

    def previous_of(self, line: RawLine) -> RawLine | None:
        """The raw line immediately before ``line`` in document order."""
        if line.index <= 0 or line.index > len(self._lines):
            return None
        return self._lines[line.index - 1]


@dataclass(frozen=True, slots=True)
class ParserContext:
    """Complete parser state between two lines."""

    state: ParserState
    timestamp: str
    total_lines: int = 0
    part: Part | None = None
    parts: tuple[Part, ...] = ()
    pending: ClauseAccumulator | None = None
    clauses: tuple[Clause, ...] = ()
    warnings: tuple[CorpusWarning, ...] = ()
    next_sequence: int = 1

    def warn(
        self,
        code: str,
        message: str,
        *,
        line_index: int | None = None,
        clause_number: str | None = None,
    ) -> ParserContext:
        warning = CorpusWarning(
            code=code, message=message, line_index=line_index, clause_number=clause_number,
        )
        return replace(self, warnings=self.warnings + (warning,))


def initial_context(
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
    *,
    total_lines: int = 0,
    timestamp: str | None = None,
) -> ParserContext:
    start = ParserState.SEEKING_START if strategy.require_start_marker else ParserState.IN_PART
    return ParserContext(
        state=start,
        timestamp=timestamp or datetime.now(UTC).isoformat(),
        total_lines=total_lines,
    )


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def _finalize_pending(ctx: ParserContext, strategy: ClassificationStrategy) -> ParserContext:
    pending = ctx.pending
    if pending is None:
        return ctx
    if ctx.part is None:
        # Only reachable from a hand-built context.
        return replace(ctx, pending=None).warn(
            "clause_without_part",
            f"Clause {pending.number} has no active Part",
            line_index=pending.line_index,
            clause_number=pending.number,
        )
    clause = pending.finalize(
        sequence=ctx.next_sequence,
        part=ctx.part,
        page_estimate=estimate_page(
            pending.line_index, ctx.total_lines, strategy.estimated_page_count,
        ),
        timestamp=ctx.timestamp,
    )
    return replace(
        ctx,
        pending=None,
        clauses=ctx.clauses + (clause,),
        next_sequence=ctx.next_sequence + 1,
    )


def _seek_start(
    ctx: ParserContext,
    line: RawLine,
    cursor: LineCursor,
    strategy: ClassificationStrategy,
) -> ParserContext:
    if is_banner(line.text, strategy):
        return replace(ctx, state=ParserState.IN_PART)
    previous = cursor.previous_of(line)
    cls = classify(line.text, previous.text if previous else None, strategy)
    if isinstance(cls, PartHeader) and cls.ordinal == 1:
        cursor.push_back(line)
        return replace(ctx, state=ParserState.IN_PART)
    return ctx


def _open_part(
    ctx: ParserContext,
    line: RawLine,
    header: PartHeader,
    cursor: LineCursor,
    strategy: ClassificationStrategy,
) -> ParserContext:
    title = header.title_hint
    if not title:
        nxt = cursor.peek()
        if nxt is not None and isinstance(classify(nxt.text, line.text, strategy), Continuation):
            title = nxt.text
            cursor.next()
        else:
            title = strategy.default_part_title
    part = Part(
        ordinal=header.ordinal,
        roman_label=header.roman,
        title=title,
        line_index=line.index,
    )
    seen = any(p.ordinal == part.ordinal for p in ctx.parts)
    return replace(
        ctx,
        state=ParserState.IN_PART,
        part=part,
        parts=ctx.parts if seen else ctx.parts + (part,),
    )


def _open_clause(
    ctx: ParserContext,
    line: RawLine,
    start: ClauseStart,
    cursor: LineCursor,
    strategy: ClassificationStrategy,
) -> ParserContext:
    if ctx.part is None:
        return ctx.warn(
            "clause_without_part",
            f"Clause {start.number} found before any Part header; discarded",
            line_index=line.index,
            clause_number=start.number,
        )
    ctx = _finalize_pending(ctx, strategy)

    title = start.title_hint
    nxt = cursor.peek()
    if (
        nxt is not None
        and should_borrow_title(title, nxt.text, strategy.title_borrow_threshold)
        and isinstance(classify(nxt.text, line.text, strategy), Continuation)
    ):
        title = nxt.text
        cursor.next()

    pending = ClauseAccumulator(number=start.number, title=title, line_index=line.index)
    return replace(ctx, state=ParserState.IN_CLAUSE, pending=pending)


def step(
    ctx: ParserContext,
    line: RawLine,
    cursor: LineCursor,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
) -> ParserContext:
    """Fold one line into the context. May peek, consume, or push back."""
    if ctx.state is ParserState.SEEKING_START:
        return _seek_start(ctx, line, cursor, strategy)

    previous = cursor.previous_of(line)
    cls = classify(line.text, previous.text if previous else None, strategy)

    match cls:
        case Noise():
            return ctx
        case PartHeader():
            if ctx.pending is not None:
                ctx = _finalize_pending(ctx, strategy)
                cursor.push_back(line)
                return replace(ctx, state=ParserState.IN_PART)
            return _open_part(ctx, line, cls, cursor, strategy)
        case ClauseStart():
            return _open_clause(ctx, line, cls, cursor, strategy)
        case Continuation():
            if ctx.pending is None:
                return ctx
            return replace(ctx, pending=ctx.pending.with_fragment(line.text))
    return ctx


def finish(
    ctx: ParserContext,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
) -> ParserContext:
    """End of input: emit the last clause, if any."""
    ctx = _finalize_pending(ctx, strategy)
    if ctx.state is ParserState.SEEKING_START:
        ctx = ctx.warn("no_start_marker", "No start-of-bylaws marker found; nothing parsed")
    if ctx.pending is None and ctx.state is ParserState.IN_CLAUSE:
        ctx = replace(ctx, state=ParserState.IN_PART)
    return ctx


# ---------------------------------------------------------------------------
# Drivers
# ---------------------------------------------------------------------------


def fold_lines(
    lines: Sequence[RawLine],
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
    *,
    timestamp: str | None = None,
) -> ParserContext:
    """Run ``step`` over every line without finishing (partial-input view)."""
    cursor = LineCursor(lines)
    ctx = initial_context(strategy, total_lines=len(cursor), timestamp=timestamp)
    while (line := cursor.next()) is not None:
        ctx = step(ctx, line, cursor, strategy)
    return ctx


def parse_lines(
    lines: Sequence[RawLine],
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
    *,
    timestamp: str | None = None,
) -> Document:
    ctx = finish(fold_lines(lines, strategy, timestamp=timestamp), strategy)
    return Document(parts=ctx.parts, clauses=ctx.clauses, warnings=ctx.warnings)


def parse_text(
    text: str,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
    *,
    timestamp: str | None = None,
) -> Document:
    """Split, trim, and parse one raw text blob into an unenriched Document."""
    return parse_lines(split_lines(text), strategy, timestamp=timestamp)


def parse_rows(
    rows: Iterable[str],
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
    *,
    timestamp: str | None = None,
) -> Document:
    return parse_text("\n".join(rows), strategy, timestamp=timestamp)
