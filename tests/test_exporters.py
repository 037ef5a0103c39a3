"""Tests for ubbl.exporters."""
from __future__ import annotations

import csv
import io
from pathlib import Path

import duckdb
import pytest

from ubbl.corpus import SCHEMA_VERSION
from ubbl.corpus_types import Document
from ubbl.exporters import (
    CSV_COLUMNS,
    EXPORTERS,
    by_category,
    by_number,
    by_part,
    complex_only,
    critical_only,
    export_all,
    export_csv,
    export_duckdb,
    export_json,
    export_jsonl,
    export_sql,
    flat_row,
    insert_statement,
    render_csv,
    render_sql,
    sql_escape,
    sql_literal,
)
from ubbl import io_utils
from ubbl.io_utils import CorpusIOError, load_json, load_jsonl


# ── Lookups ──────────────────────────────────────────────────────────


class TestLookups:
    def test_by_number(self, sample_doc: Document) -> None:
        clause = by_number(sample_doc.clauses, "133")
        assert clause is not None and clause.title == "Means of escape"
        assert by_number(sample_doc.clauses, "999") is None

    def test_by_part(self, sample_doc: Document) -> None:
        assert [c.number for c in by_part(sample_doc.clauses, 2)] == ["3", "4"]

    def test_by_category(self, sample_doc: Document) -> None:
        assert [c.number for c in by_category(sample_doc.clauses, "plan_submission")] == ["3", "4"]

    def test_critical_only(self, sample_doc: Document) -> None:
        assert [c.number for c in critical_only(sample_doc.clauses)] == ["133"]

    def test_complex_only(self, sample_doc: Document) -> None:
        assert complex_only(sample_doc.clauses) == []
        assert len(complex_only(sample_doc.clauses, min_level=1)) == 5

    def test_unenriched_clauses_skipped(self, make_clause) -> None:
        assert critical_only([make_clause()]) == []


# ── SQL ──────────────────────────────────────────────────────────────


class TestSql:
    def test_escape_backslash_then_quote(self) -> None:
        assert sql_escape("O'Brien") == "O''Brien"
        assert sql_escape("a\\b") == "a\\\\b"
        assert sql_escape("\\'") == "\\\\''"

    def test_literals(self) -> None:
        assert sql_literal(None) == "NULL"
        assert sql_literal(True) == "TRUE"
        assert sql_literal(False) == "FALSE"
        assert sql_literal(42) == "42"
        assert sql_literal("it's") == "'it''s'"
        assert sql_literal(("fire", "alarm")) == "'[\"fire\",\"alarm\"]'"

    def test_insert_statement(self, sample_doc: Document) -> None:
        stmt = insert_statement(sample_doc.clauses[-1])
        assert stmt.startswith("INSERT INTO ubbl_clauses (id, number, sequence,")
        assert "'bylaw-133'" in stmt
        assert "'critical'" in stmt
        assert stmt.endswith(");")

    def test_insert_without_metadata(self, make_clause) -> None:
        stmt = insert_statement(make_clause(), table="t")
        assert stmt.startswith("INSERT INTO t ")
        assert "NULL" in stmt

    def test_render_sql(self, sample_doc: Document) -> None:
        lines = render_sql(sample_doc).splitlines()
        assert lines[0] == "-- UBBL clauses: 5 rows"
        assert len(lines) == 6
        # Double quotes in the body pass through; only single quotes are doubled
        assert "\"authority\"" in lines[2]


# ── Flat formats ─────────────────────────────────────────────────────


class TestCsv:
    def test_columns_and_rows(self, sample_doc: Document) -> None:
        rows = list(csv.DictReader(io.StringIO(render_csv(sample_doc))))
        assert len(rows) == 5
        assert tuple(rows[0]) == CSV_COLUMNS
        last = rows[-1]
        assert last["number"] == "133"
        assert last["category"] == "fire_safety"
        assert last["keywords"].split("|")[:2] == ["means", "escape"]
        assert last["requires_calculation"] == "False"

    def test_flat_row_without_metadata(self, make_clause) -> None:
        row = flat_row(make_clause())
        assert row["category"] is None
        assert row["keywords"] == ""

    def test_export_csv(self, sample_doc: Document, tmp_path: Path) -> None:
        path = export_csv(sample_doc, tmp_path / "out" / "clauses.csv")
        assert path.read_text(encoding="utf-8").startswith("id,number,sequence,")


class TestJson:
    def test_export_json(self, sample_doc: Document, tmp_path: Path) -> None:
        path = export_json(sample_doc, tmp_path / "corpus.json", summary={"total_clauses": 5})
        data = load_json(path)
        assert data["schema_version"] == SCHEMA_VERSION
        assert [p["roman_label"] for p in data["parts"]] == ["I", "II", "VII"]
        assert len(data["clauses"]) == 5
        assert data["clauses"][0]["metadata"]["category"] == "general"
        assert [w["code"] for w in data["warnings"]] == ["clause_count_out_of_band"]
        assert data["summary"] == {"total_clauses": 5}

    def test_export_jsonl(self, sample_doc: Document, tmp_path: Path) -> None:
        path = export_jsonl(sample_doc, tmp_path / "clauses.jsonl")
        records = load_jsonl(path)
        assert [r["id"] for r in records] == [
            "bylaw-1", "bylaw-2", "bylaw-3", "bylaw-4", "bylaw-133",
        ]

    def test_export_sql_file(self, sample_doc: Document, tmp_path: Path) -> None:
        path = export_sql(sample_doc, tmp_path / "clauses.sql")
        assert path.read_text(encoding="utf-8").count("INSERT INTO") == 5


# ── DuckDB ───────────────────────────────────────────────────────────


class TestDuckDb:
    def test_tables_populated(self, sample_doc: Document, tmp_path: Path) -> None:
        path = export_duckdb(sample_doc, tmp_path / "corpus.duckdb")
        conn = duckdb.connect(str(path), read_only=True)
        try:
            assert conn.execute("SELECT COUNT(*) FROM clauses").fetchone()[0] == 5
            assert conn.execute("SELECT COUNT(*) FROM parts").fetchone()[0] == 3
            assert conn.execute("SELECT COUNT(*) FROM warnings").fetchone()[0] == 1
            version = conn.execute(
                "SELECT version FROM _schema_version WHERE table_name = 'corpus'"
            ).fetchone()[0]
            assert version == SCHEMA_VERSION
            keywords = conn.execute(
                "SELECT keywords FROM clauses WHERE number = '133'"
            ).fetchone()[0]
            assert keywords.startswith("[\"means\",\"escape\"")
        finally:
            conn.close()

    def test_overwrites_existing(self, sample_doc: Document, tmp_path: Path) -> None:
        path = tmp_path / "corpus.duckdb"
        export_duckdb(sample_doc, path)
        export_duckdb(Document(), path)
        conn = duckdb.connect(str(path), read_only=True)
        try:
            assert conn.execute("SELECT COUNT(*) FROM clauses").fetchone()[0] == 0
        finally:
            conn.close()


# ── export_all ───────────────────────────────────────────────────────


class TestExportAll:
    def test_every_format(self, sample_doc: Document, tmp_path: Path) -> None:
        written = export_all(sample_doc, tmp_path, list(EXPORTERS))
        assert set(written) == set(EXPORTERS)
        for fmt, path in written.items():
            assert path == tmp_path / EXPORTERS[fmt][1]
            assert path.exists()
        leftovers = [p.name for p in tmp_path.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_unknown_format(self, sample_doc: Document, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="xml"):
            export_all(sample_doc, tmp_path, ["json", "xml"])
        assert not (tmp_path / "corpus.json").exists()

    def test_unwritable_target(self, sample_doc: Document, tmp_path: Path) -> None:
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("x")
        with pytest.raises(CorpusIOError):
            export_all(sample_doc, blocker, ["json"])

    def test_failing_format_writes_nothing(self, sample_doc: Document, tmp_path: Path) -> None:
        (tmp_path / "clauses.sql").mkdir()
        with pytest.raises(CorpusIOError, match="is a directory"):
            export_all(sample_doc, tmp_path, ["json", "sql"])
        assert sorted(p.name for p in tmp_path.iterdir()) == ["clauses.sql"]

    def test_failed_rename_restores_previous_outputs(
        self, sample_doc: Document, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        (tmp_path / "corpus.json").write_bytes(b"old")
        real_replace = io_utils.os.replace

        def flaky_replace(src, dst):
            if Path(dst).name == "clauses.sql":
                raise OSError("disk full")
            real_replace(src, dst)

        monkeypatch.setattr(io_utils.os, "replace", flaky_replace)
        with pytest.raises(CorpusIOError, match="Cannot commit outputs"):
            export_all(sample_doc, tmp_path, ["json", "sql"])
        assert (tmp_path / "corpus.json").read_bytes() == b"old"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["corpus.json"]

    def test_repeated_format_written_once(self, sample_doc: Document, tmp_path: Path) -> None:
        written = export_all(sample_doc, tmp_path, ["csv", "csv"])
        assert written == {"csv": tmp_path / "clauses.csv"}
        assert sorted(p.name for p in tmp_path.iterdir()) == ["clauses.csv"]
