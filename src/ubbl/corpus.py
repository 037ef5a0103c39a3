"""DuckDB-backed read-only index over an exported UBBL corpus.

The index is written by ``ubbl.exporters.export_duckdb`` (usually through
scripts/build_bylaw_corpus.py) and opened read-only by every consumer.

Tables:
    parts            -- one row per Part, keyed by ordinal
    clauses          -- one row per clause, keyed by sequence
    warnings         -- corpus warnings from the run
    _schema_version  -- schema version tracking
"""
from __future__ import annotations

import importlib
from pathlib import Path
from typing import Any

import orjson

from ubbl.attachments import bytes_to_floats
from ubbl.corpus_types import Clause, ClauseMetadata, CorpusWarning, Part
from ubbl.run_manifest import default_manifest_path, load_manifest

# Dynamic DuckDB import for pyright compatibility
_duckdb_mod = importlib.import_module("duckdb")


SCHEMA_VERSION = "1.0.0"

_CLAUSE_COLUMNS = (
    "sequence, id, number, part_ordinal, part_label, part_title, title, body, "
    "page_estimate, line_index, category, complexity_level, priority, "
    "requires_calculation, has_exceptions, keywords, applicable_building_types, "
    "title_translated, body_translated, embedding, created_at, updated_at"
)


class SchemaVersionError(RuntimeError):
    """Raised when a corpus DB schema version does not match expected."""


def _read_schema_version(conn: Any) -> str:
    """Read corpus schema version from an open DuckDB connection."""
    try:
        result = conn.execute(
            "SELECT version FROM _schema_version WHERE table_name = 'corpus'"
        ).fetchone()
    except _duckdb_mod.Error:
        return "unknown"
    return str(result[0]) if result else "unknown"


def ensure_schema_version(
    conn: Any,
    *,
    db_path: Path | None = None,
    expected: str = SCHEMA_VERSION,
) -> str:
    """Validate schema version for an open DuckDB connection.

    Returns actual schema version on success.
    Raises SchemaVersionError on mismatch.
    """
    actual = _read_schema_version(conn)
    if actual != expected:
        where = f" in {db_path}" if db_path is not None else ""
        raise SchemaVersionError(
            f"Schema version mismatch{where}: expected {expected}, got {actual}"
        )
    return actual


def _decode_string_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    decoded = orjson.loads(value) if isinstance(value, (str, bytes)) else value
    if isinstance(decoded, list):
        return tuple(str(v) for v in decoded if str(v))
    return ()


def _decode_embedding(value: Any) -> tuple[float, ...] | None:
    if value is None:
        return None
    return tuple(bytes_to_floats(bytes(value)))


def _row_to_clause(row: tuple[Any, ...]) -> Clause:
    (
        sequence, cid, number, part_ordinal, part_label, part_title, title, body,
        page_estimate, line_index, category, complexity, priority,
        calculation, exceptions, keywords, building_types,
        title_translated, body_translated, embedding, created_at, updated_at,
    ) = row
    metadata = None
    if category is not None:
        metadata = ClauseMetadata(
            keywords=_decode_string_tuple(keywords),
            category=str(category),
            complexity_level=int(complexity),
            requires_calculation=bool(calculation),
            has_exceptions=bool(exceptions),
            applicable_building_types=_decode_string_tuple(building_types),
            priority=str(priority),
        )
    return Clause(
        id=str(cid),
        number=str(number),
        sequence=int(sequence),
        part_ordinal=int(part_ordinal),
        part_label=str(part_label or ""),
        part_title=str(part_title or ""),
        title=str(title or ""),
        body=str(body or ""),
        page_estimate=int(page_estimate or 1),
        line_index=int(line_index or 0),
        created_at=str(created_at or ""),
        updated_at=str(updated_at or ""),
        metadata=metadata,
        title_translated=title_translated,
        body_translated=body_translated,
        embedding=_decode_embedding(embedding),
    )


class CorpusIndex:
    """Read-only interface to an exported corpus database.

    Opens the database in read-only mode. All queries return typed records.
    """

    def __init__(self, db_path: Path, *, enforce_schema: bool = True) -> None:
        self._db_path = db_path
        self._conn: Any = _duckdb_mod.connect(str(db_path), read_only=True)
        if enforce_schema:
            try:
                ensure_schema_version(self._conn, db_path=db_path)
            except SchemaVersionError:
                self._conn.close()
                raise

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> CorpusIndex:
        return self

    def __exit__(self, *_args: object) -> None:
        self.close()

    @property
    def schema_version(self) -> str:
        return _read_schema_version(self._conn)

    @property
    def run_manifest_path(self) -> Path:
        """Canonical run-manifest sidecar for this DB."""
        return default_manifest_path(self._db_path.parent)

    def get_run_manifest(self, manifest_path: Path | None = None) -> dict[str, Any] | None:
        """Load the run manifest sidecar, or None when it does not exist."""
        path = manifest_path.resolve() if manifest_path else self.run_manifest_path
        if not path.exists():
            return None
        return load_manifest(path)

    # ── Counts ──────────────────────────────────────────────────────

    @property
    def clause_count(self) -> int:
        result = self._conn.execute("SELECT COUNT(*) FROM clauses").fetchone()
        return int(result[0]) if result else 0

    @property
    def part_count(self) -> int:
        result = self._conn.execute("SELECT COUNT(*) FROM parts").fetchone()
        return int(result[0]) if result else 0

    def category_counts(self) -> dict[str, int]:
        rows = self._conn.execute(
            "SELECT category, COUNT(*) FROM clauses WHERE category IS NOT NULL "
            "GROUP BY category ORDER BY COUNT(*) DESC, category"
        ).fetchall()
        return {str(r[0]): int(r[1]) for r in rows}

    # ── Records ─────────────────────────────────────────────────────

    def parts(self) -> list[Part]:
        rows = self._conn.execute(
            "SELECT ordinal, roman_label, title FROM parts ORDER BY ordinal"
        ).fetchall()
        return [Part(ordinal=int(r[0]), roman_label=str(r[1]), title=str(r[2] or "")) for r in rows]

    def clauses(
        self,
        *,
        part_ordinal: int | None = None,
        category: str | None = None,
        priority: str | None = None,
        min_complexity: int | None = None,
    ) -> list[Clause]:
        """Clauses in sequence order, optionally filtered."""
        where: list[str] = []
        params: list[Any] = []
        if part_ordinal is not None:
            where.append("part_ordinal = ?")
            params.append(part_ordinal)
        if category is not None:
            where.append("category = ?")
            params.append(category)
        if priority is not None:
            where.append("priority = ?")
            params.append(priority)
        if min_complexity is not None:
            where.append("complexity_level >= ?")
            params.append(min_complexity)
        clause_sql = f" WHERE {' AND '.join(where)}" if where else ""
        rows = self._conn.execute(
            f"SELECT {_CLAUSE_COLUMNS} FROM clauses{clause_sql} ORDER BY sequence",
            params,
        ).fetchall()
        return [_row_to_clause(r) for r in rows]

    def get_clause(self, number: str) -> Clause | None:
        """First clause with the given printed number (e.g. ``12A``)."""
        row = self._conn.execute(
            f"SELECT {_CLAUSE_COLUMNS} FROM clauses WHERE number = ? ORDER BY sequence LIMIT 1",
            [number],
        ).fetchone()
        return _row_to_clause(row) if row else None

    def search(self, term: str, *, limit: int = 50) -> list[Clause]:
        """Case-insensitive substring search over title and body."""
        pattern = f"%{term}%"
        rows = self._conn.execute(
            f"SELECT {_CLAUSE_COLUMNS} FROM clauses "
            "WHERE title ILIKE ? OR body ILIKE ? ORDER BY sequence LIMIT ?",
            [pattern, pattern, limit],
        ).fetchall()
        return [_row_to_clause(r) for r in rows]

    def warnings(self) -> list[CorpusWarning]:
        rows = self._conn.execute(
            "SELECT code, message, line_index, clause_number FROM warnings"
        ).fetchall()
        return [
            CorpusWarning(
                code=str(r[0]),
                message=str(r[1] or ""),
                line_index=int(r[2]) if r[2] is not None else None,
                clause_number=str(r[3]) if r[3] is not None else None,
            )
            for r in rows
        ]
