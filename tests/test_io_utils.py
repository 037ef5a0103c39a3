"""Tests for ubbl.io_utils."""
from __future__ import annotations

from pathlib import Path

import pytest

from ubbl.io_utils import (
    CorpusIOError,
    atomic_path,
    dumps_json,
    load_json,
    load_jsonl,
    read_text,
    save_json,
    save_jsonl,
    staged_paths,
    write_text,
)


class TestRead:
    def test_read_text(self, tmp_path: Path) -> None:
        path = tmp_path / "in.txt"
        path.write_text("PART I", encoding="utf-8")
        assert read_text(path) == "PART I"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(CorpusIOError, match="Cannot read input text"):
            read_text(tmp_path / "nope.txt")

    def test_invalid_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.txt"
        path.write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(CorpusIOError):
            read_text(path)


class TestAtomic:
    def test_success_renames(self, tmp_path: Path) -> None:
        target = tmp_path / "sub" / "out.txt"
        write_text("hello", target)
        assert target.read_text(encoding="utf-8") == "hello"
        assert [p.name for p in target.parent.iterdir()] == ["out.txt"]

    def test_failure_leaves_nothing(self, tmp_path: Path) -> None:
        target = tmp_path / "out.txt"
        with pytest.raises(RuntimeError):
            with atomic_path(target) as tmp:
                tmp.write_text("partial")
                raise RuntimeError("boom")
        assert list(tmp_path.iterdir()) == []

    def test_failure_keeps_previous(self, tmp_path: Path) -> None:
        target = tmp_path / "out.txt"
        write_text("old", target)
        with pytest.raises(RuntimeError):
            with atomic_path(target) as tmp:
                tmp.write_text("new")
                raise RuntimeError("boom")
        assert target.read_text(encoding="utf-8") == "old"


class TestStaged:
    def test_all_land_together(self, tmp_path: Path) -> None:
        targets = [tmp_path / "a.txt", tmp_path / "b.txt"]
        with staged_paths(targets) as staged:
            for tmp, text in zip(staged, ("alpha", "beta")):
                write_text(text, tmp)
            assert not any(t.exists() for t in targets)
        assert [t.read_text(encoding="utf-8") for t in targets] == ["alpha", "beta"]
        assert sorted(p.name for p in tmp_path.iterdir()) == ["a.txt", "b.txt"]

    def test_block_failure_keeps_previous(self, tmp_path: Path) -> None:
        first = tmp_path / "a.txt"
        write_text("old", first)
        with pytest.raises(RuntimeError):
            with staged_paths([first, tmp_path / "b.txt"]) as staged:
                write_text("new", staged[0])
                raise RuntimeError("boom")
        assert first.read_text(encoding="utf-8") == "old"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["a.txt"]

    def test_directory_target_rejected_up_front(self, tmp_path: Path) -> None:
        (tmp_path / "b.txt").mkdir()
        with pytest.raises(CorpusIOError, match="is a directory"):
            with staged_paths([tmp_path / "a.txt", tmp_path / "b.txt"]):
                pass
        assert sorted(p.name for p in tmp_path.iterdir()) == ["b.txt"]


class TestJson:
    def test_dumps_sorted(self) -> None:
        assert dumps_json({"b": 1, "a": 2}, pretty=False) == b'{"a":2,"b":1}'
        assert dumps_json({"a": 1}).startswith(b"{\n  ")

    def test_json_round_trip(self, tmp_path: Path) -> None:
        save_json({"clauses": [1, 2]}, tmp_path / "x.json")
        assert load_json(tmp_path / "x.json") == {"clauses": [1, 2]}

    def test_jsonl(self, tmp_path: Path) -> None:
        path = tmp_path / "x.jsonl"
        save_jsonl([{"id": "bylaw-1"}, {"id": "bylaw-2"}], path)
        assert path.read_bytes().count(b"\n") == 2
        assert load_jsonl(path) == [{"id": "bylaw-1"}, {"id": "bylaw-2"}]

    def test_empty_jsonl(self, tmp_path: Path) -> None:
        path = tmp_path / "x.jsonl"
        save_jsonl([], path)
        assert path.read_bytes() == b""
        assert load_jsonl(path) == []

    def test_load_missing(self, tmp_path: Path) -> None:
        with pytest.raises(CorpusIOError):
            load_json(tmp_path / "missing.json")
