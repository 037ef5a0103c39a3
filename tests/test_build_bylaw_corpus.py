"""Tests for scripts/build_bylaw_corpus.py and scripts/bylaw_search.py."""
from __future__ import annotations

import importlib.util
from pathlib import Path
from typing import Any

import orjson
import pytest

TS = "2024-01-01T00:00:00+00:00"


def _load_script(name: str) -> Any:
    root = Path(__file__).resolve().parents[1]
    script_path = root / "scripts" / f"{name}.py"
    spec = importlib.util.spec_from_file_location(name, script_path)
    assert spec is not None
    module = importlib.util.module_from_spec(spec)
    assert spec.loader is not None
    spec.loader.exec_module(module)
    return module


@pytest.fixture()
def input_file(sample_text: str, tmp_path: Path) -> Path:
    path = tmp_path / "ubbl.txt"
    path.write_text(sample_text, encoding="utf-8")
    return path


@pytest.fixture()
def built_db(input_file: Path, tmp_path: Path) -> Path:
    mod = _load_script("build_bylaw_corpus")
    out = tmp_path / "out"
    rc = mod.main([
        "--input", str(input_file), "--output-dir", str(out),
        "--format", "duckdb", "--timestamp", TS, "--no-manifest",
    ])
    assert rc == 0
    return out / "corpus.duckdb"


class TestBuildScript:
    def test_ok_run(
        self, input_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        mod = _load_script("build_bylaw_corpus")
        out = tmp_path / "out"
        rc = mod.main([
            "--input", str(input_file), "--output-dir", str(out),
            "--format", "json", "--format", "csv", "--timestamp", TS,
        ])
        assert rc == 0
        payload = orjson.loads(capsys.readouterr().out)
        assert payload["status"] == "ok"
        assert payload["strategy"] == "proper"
        assert payload["parts"] == 3
        assert payload["clauses"] == 5
        assert payload["warnings"] == ["clause_count_out_of_band"]
        assert set(payload["outputs"]) == {"json", "csv", "manifest"}
        assert (out / "corpus.json").exists()
        assert (out / "run_manifest.json").exists()

    def test_default_format_is_json(self, input_file: Path, tmp_path: Path) -> None:
        mod = _load_script("build_bylaw_corpus")
        out = tmp_path / "out"
        assert mod.main(["--input", str(input_file), "--output-dir", str(out), "--no-manifest"]) == 0
        assert sorted(p.name for p in out.iterdir()) == ["corpus.json"]

    def test_number_range_and_dedupe(
        self, input_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        mod = _load_script("build_bylaw_corpus")
        rc = mod.main([
            "--input", str(input_file), "--output-dir", str(tmp_path / "out"),
            "--dedupe", "--number-range", "1", "4", "--no-manifest",
        ])
        assert rc == 0
        assert orjson.loads(capsys.readouterr().out)["clauses"] == 4

    def test_missing_input(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        mod = _load_script("build_bylaw_corpus")
        rc = mod.main(["--input", str(tmp_path / "nope.txt"), "--output-dir", str(tmp_path)])
        assert rc == 1
        assert orjson.loads(capsys.readouterr().out)["status"] == "error"

    def test_bad_strategy(
        self, input_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        mod = _load_script("build_bylaw_corpus")
        rc = mod.main([
            "--input", str(input_file), "--output-dir", str(tmp_path), "--strategy", "nope",
        ])
        assert rc == 2
        assert "presets" in orjson.loads(capsys.readouterr().out)["error"]


class TestCompareTo:
    def test_rebuild_reports_deltas(
        self, input_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        mod = _load_script("build_bylaw_corpus")
        out = tmp_path / "out"
        assert mod.main(["--input", str(input_file), "--output-dir", str(out)]) == 0
        first = orjson.loads(capsys.readouterr().out)
        assert "comparison" not in first

        rc = mod.main([
            "--input", str(input_file), "--output-dir", str(out),
            "--number-range", "1", "4", "--compare-to", str(out),
        ])
        assert rc == 0
        comparison = orjson.loads(capsys.readouterr().out)["comparison"]
        assert comparison["count_delta"] == {"clauses": -1, "parts": 0}
        assert comparison["warnings_count_delta"] == 0
        assert comparison["new_warning_codes"] == []
        assert comparison["input_changed"] is False
        assert comparison["previous_run_id"] != comparison["current_run_id"]

    def test_missing_previous_manifest(
        self, input_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        mod = _load_script("build_bylaw_corpus")
        out = tmp_path / "out"
        rc = mod.main([
            "--input", str(input_file), "--output-dir", str(out),
            "--compare-to", str(tmp_path / "nope.json"),
        ])
        assert rc == 1
        assert orjson.loads(capsys.readouterr().out)["status"] == "error"
        assert not out.exists()

    def test_needs_manifest(self, input_file: Path, tmp_path: Path) -> None:
        mod = _load_script("build_bylaw_corpus")
        with pytest.raises(SystemExit) as excinfo:
            mod.main([
                "--input", str(input_file), "--output-dir", str(tmp_path),
                "--no-manifest", "--compare-to", str(tmp_path),
            ])
        assert excinfo.value.code == 2


class TestSearchScript:
    def test_stats(self, built_db: Path, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        mod = _load_script("bylaw_search")
        assert mod.main(["--db", str(built_db), "--stats"]) == 0
        stats = orjson.loads(capsys.readouterr().out)
        assert stats["clauses"] == 5
        assert stats["parts"] == 3
        assert stats["warnings"] == 1

    def test_number(self, built_db: Path, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        mod = _load_script("bylaw_search")
        assert mod.main(["--db", str(built_db), "--number", "133"]) == 0
        clause = orjson.loads(capsys.readouterr().out)
        assert clause["id"] == "bylaw-133"
        assert clause["metadata"]["priority"] == "critical"

    def test_unknown_number(self, built_db: Path) -> None:
        mod = _load_script("bylaw_search")
        assert mod.main(["--db", str(built_db), "--number", "999"]) == 1

    def test_pattern_and_filters(self, built_db: Path, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        mod = _load_script("bylaw_search")
        assert mod.main(["--db", str(built_db), "--pattern", "plans"]) == 0
        captured = capsys.readouterr()
        assert [c["number"] for c in orjson.loads(captured.out)] == ["3", "4"]
        assert "Found 2 clauses" in captured.err

        assert mod.main(["--db", str(built_db), "--part", "1", "--limit", "1"]) == 0
        assert [c["number"] for c in orjson.loads(capsys.readouterr().out)] == ["1"]

    def test_missing_db(self, tmp_path: Path) -> None:
        mod = _load_script("bylaw_search")
        assert mod.main(["--db", str(tmp_path / "none.duckdb")]) == 1
