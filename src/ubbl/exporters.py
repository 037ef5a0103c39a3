"""Export adapters over a finished Document, plus lookup helpers.

Formats:
    json    -- whole document (parts, clauses, warnings, summary)
    jsonl   -- one clause per line
    csv     -- one flat row per clause
    sql     -- one INSERT statement per clause (portable SQL)
    duckdb  -- ``parts``, ``clauses``, ``warnings`` and ``_schema_version``

Every writer is atomic (temp file + rename) and raises CorpusIOError on
failure. ``export_all`` stages every format first and renames them into place
together, so a failure in any one format leaves the output directory as it
was.
"""
from __future__ import annotations

import csv
import importlib
import io
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, TypeAlias

import orjson

from ubbl.attachments import floats_to_bytes
from ubbl.corpus import SCHEMA_VERSION
from ubbl.corpus_types import (
    Clause,
    Document,
    clause_to_dict,
    document_to_dict,
    warning_to_dict,
)
from ubbl.io_utils import (
    CorpusIOError,
    atomic_path,
    save_json,
    save_jsonl,
    staged_paths,
    write_text,
)

# DuckDB: dynamic import for pyright compatibility
_duckdb = importlib.import_module("duckdb")

DEFAULT_SQL_TABLE = "ubbl_clauses"

# ---------------------------------------------------------------------------
# Lookup helpers
# ---------------------------------------------------------------------------


def by_number(clauses: Sequence[Clause], number: str) -> Clause | None:
    for clause in clauses:
        if clause.number == number:
            return clause
    return None


def by_part(clauses: Sequence[Clause], part_ordinal: int) -> list[Clause]:
    return [c for c in clauses if c.part_ordinal == part_ordinal]


def by_category(clauses: Sequence[Clause], category: str) -> list[Clause]:
    return [c for c in clauses if c.metadata is not None and c.metadata.category == category]


def critical_only(clauses: Sequence[Clause]) -> list[Clause]:
    return [c for c in clauses if c.metadata is not None and c.metadata.priority == "critical"]


def complex_only(clauses: Sequence[Clause], min_level: int = 4) -> list[Clause]:
    return [
        c for c in clauses
        if c.metadata is not None and c.metadata.complexity_level >= min_level
    ]


# ---------------------------------------------------------------------------
# Flat rows
# ---------------------------------------------------------------------------

CSV_COLUMNS: tuple[str, ...] = (
    "id", "number", "sequence", "part_ordinal", "part_label", "part_title",
    "title", "body", "page_estimate", "category", "complexity_level", "priority",
    "requires_calculation", "has_exceptions", "applicable_building_types",
    "keywords", "created_at", "updated_at",
)


def flat_row(clause: Clause) -> dict[str, Any]:
    """One clause as a flat dict (list fields joined with ``|``)."""
    meta = clause.metadata
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
        "category": meta.category if meta else None,
        "complexity_level": meta.complexity_level if meta else None,
        "priority": meta.priority if meta else None,
        "requires_calculation": meta.requires_calculation if meta else None,
        "has_exceptions": meta.has_exceptions if meta else None,
        "applicable_building_types": "|".join(meta.applicable_building_types) if meta else "",
        "keywords": "|".join(meta.keywords) if meta else "",
        "created_at": clause.created_at,
        "updated_at": clause.updated_at,
    }


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------


def sql_escape(value: str) -> str:
    """Escape backslashes, then single quotes, for a quoted SQL literal."""
    return value.replace("\\", "\\\\").replace("'", "''")


def sql_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (list, tuple)):
        return f"'{sql_escape(orjson.dumps(list(value)).decode('utf-8'))}'"
    return f"'{sql_escape(str(value))}'"


def insert_statement(clause: Clause, table: str = DEFAULT_SQL_TABLE) -> str:
    meta = clause.metadata
    row: dict[str, Any] = {
        "id": clause.id,
        "number": clause.number,
        "sequence": clause.sequence,
        "part_ordinal": clause.part_ordinal,
        "part_label": clause.part_label,
        "part_title": clause.part_title,
        "title": clause.title,
        "body": clause.body,
        "title_translated": clause.title_translated,
        "body_translated": clause.body_translated,
        "page_estimate": clause.page_estimate,
        "category": meta.category if meta else None,
        "complexity_level": meta.complexity_level if meta else None,
        "priority": meta.priority if meta else None,
        "requires_calculation": meta.requires_calculation if meta else None,
        "has_exceptions": meta.has_exceptions if meta else None,
        "keywords": meta.keywords if meta else None,
        "applicable_building_types": meta.applicable_building_types if meta else None,
        "created_at": clause.created_at,
        "updated_at": clause.updated_at,
    }
    columns = ", ".join(row)
    values = ", ".join(sql_literal(v) for v in row.values())
    return f"INSERT INTO {table} ({columns}) VALUES ({values});"


def render_sql(doc: Document, table: str = DEFAULT_SQL_TABLE) -> str:
    lines = [f"-- UBBL clauses: {len(doc.clauses)} rows"]
    lines.extend(insert_statement(c, table) for c in doc.clauses)
    return "\n".join(lines) + "\n"


def render_csv(doc: Document) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=list(CSV_COLUMNS), lineterminator="\n")
    writer.writeheader()
    for clause in doc.clauses:
        writer.writerow(flat_row(clause))
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Writers
# ---------------------------------------------------------------------------


def export_json(doc: Document, path: Path, *, summary: dict[str, Any] | None = None) -> Path:
    payload = document_to_dict(doc)
    payload["schema_version"] = SCHEMA_VERSION
    payload["warnings"] = [warning_to_dict(w) for w in doc.warnings]
    if summary is not None:
        payload["summary"] = summary
    save_json(payload, path)
    return path


def export_jsonl(doc: Document, path: Path) -> Path:
    save_jsonl([clause_to_dict(c) for c in doc.clauses], path)
    return path


def export_csv(doc: Document, path: Path) -> Path:
    write_text(render_csv(doc), path)
    return path


def export_sql(doc: Document, path: Path, *, table: str = DEFAULT_SQL_TABLE) -> Path:
    write_text(render_sql(doc, table), path)
    return path


_DUCKDB_DDL = """\
CREATE TABLE _schema_version (
    table_name VARCHAR PRIMARY KEY,
    version VARCHAR NOT NULL,
    created_at TIMESTAMP DEFAULT current_timestamp
);

CREATE TABLE parts (
    ordinal INTEGER PRIMARY KEY,
    roman_label VARCHAR NOT NULL,
    title VARCHAR
);

CREATE TABLE clauses (
    sequence INTEGER PRIMARY KEY,
    id VARCHAR NOT NULL,
    number VARCHAR NOT NULL,
    part_ordinal INTEGER NOT NULL,
    part_label VARCHAR,
    part_title VARCHAR,
    title VARCHAR,
    body VARCHAR,
    page_estimate INTEGER,
    line_index INTEGER,
    category VARCHAR,
    complexity_level INTEGER,
    priority VARCHAR,
    requires_calculation BOOLEAN,
    has_exceptions BOOLEAN,
    keywords VARCHAR,
    applicable_building_types VARCHAR,
    title_translated VARCHAR,
    body_translated VARCHAR,
    embedding BLOB,
    created_at VARCHAR,
    updated_at VARCHAR
);

CREATE TABLE warnings (
    code VARCHAR NOT NULL,
    message VARCHAR,
    line_index INTEGER,
    clause_number VARCHAR
);
"""


def _duckdb_clause_row(clause: Clause) -> tuple[Any, ...]:
    meta = clause.metadata
    return (
        clause.sequence,
        clause.id,
        clause.number,
        clause.part_ordinal,
        clause.part_label,
        clause.part_title,
        clause.title,
        clause.body,
        clause.page_estimate,
        clause.line_index,
        meta.category if meta else None,
        meta.complexity_level if meta else None,
        meta.priority if meta else None,
        meta.requires_calculation if meta else None,
        meta.has_exceptions if meta else None,
        orjson.dumps(list(meta.keywords)).decode("utf-8") if meta else None,
        orjson.dumps(list(meta.applicable_building_types)).decode("utf-8") if meta else None,
        clause.title_translated,
        clause.body_translated,
        floats_to_bytes(clause.embedding) if clause.embedding is not None else None,
        clause.created_at,
        clause.updated_at,
    )


def export_duckdb(doc: Document, path: Path) -> Path:
    with atomic_path(path) as tmp:
        tmp.unlink()
        try:
            conn: Any = _duckdb.connect(str(tmp))
        except _duckdb.Error as exc:
            raise CorpusIOError(f"Cannot create DuckDB file {path}: {exc}") from exc
        try:
            for stmt in _DUCKDB_DDL.split(";"):
                stmt = stmt.strip()
                if stmt:
                    conn.execute(stmt)
            conn.execute(
                "INSERT INTO _schema_version VALUES ('corpus', ?, current_timestamp)",
                [SCHEMA_VERSION],
            )
            if doc.parts:
                conn.executemany(
                    "INSERT INTO parts (ordinal, roman_label, title) VALUES (?, ?, ?)",
                    [(p.ordinal, p.roman_label, p.title) for p in doc.parts],
                )
            if doc.clauses:
                conn.executemany(
                    f"INSERT INTO clauses VALUES ({', '.join('?' * 22)})",
                    [_duckdb_clause_row(c) for c in doc.clauses],
                )
            if doc.warnings:
                conn.executemany(
                    "INSERT INTO warnings VALUES (?, ?, ?, ?)",
                    [(w.code, w.message, w.line_index, w.clause_number) for w in doc.warnings],
                )
        except _duckdb.Error as exc:
            raise CorpusIOError(f"Cannot write DuckDB export {path}: {exc}") from exc
        finally:
            conn.close()
    return path


Exporter: TypeAlias = Callable[[Document, Path], Path]

EXPORTERS: dict[str, tuple[Exporter, str]] = {
    "json": (export_json, "corpus.json"),
    "jsonl": (export_jsonl, "clauses.jsonl"),
    "csv": (export_csv, "clauses.csv"),
    "sql": (export_sql, "clauses.sql"),
    "duckdb": (export_duckdb, "corpus.duckdb"),
}


def export_all(
    doc: Document,
    out_dir: Path,
    formats: Sequence[str],
    *,
    summary: dict[str, Any] | None = None,
) -> dict[str, Path]:
    """Write each requested format into ``out_dir``; returns format -> path.

    All formats are rendered to staging files before any of them replaces a
    target. Either every format lands or none does.
    """
    unknown = [f for f in formats if f not in EXPORTERS]
    if unknown:
        raise ValueError(f"Unknown export format(s): {', '.join(unknown)}")
    wanted = list(dict.fromkeys(formats))
    targets = [out_dir / EXPORTERS[fmt][1] for fmt in wanted]
    with staged_paths(targets) as staged:
        for fmt, tmp in zip(wanted, staged):
            fn, _filename = EXPORTERS[fmt]
            if fmt == "json":
                export_json(doc, tmp, summary=summary)
            else:
                fn(doc, tmp)
    return dict(zip(wanted, targets))
