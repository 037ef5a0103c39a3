"""I/O utilities for the run boundaries: text input, JSON/JSONL/text output.

Every writer goes through a sibling temp file that is renamed into place, so
a failed run never leaves a half-written corpus behind. ``staged_paths``
extends that to a group of files: all of them land, or none do. Any OSError
(or a UnicodeDecodeError on input) is re-raised as ``CorpusIOError``.
"""
from __future__ import annotations

import os
import tempfile
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import orjson


class CorpusIOError(RuntimeError):
    """Fatal read/write failure at a run boundary."""


def read_text(path: Path) -> str:
    """Read a UTF-8 text file once."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise CorpusIOError(f"Cannot read input text {path}: {exc}") from exc


@contextmanager
def atomic_path(path: Path) -> Iterator[Path]:
    """Yield a temp path next to ``path``; rename onto ``path`` on success."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        os.close(fd)
    except OSError as exc:
        raise CorpusIOError(f"Cannot prepare output {path}: {exc}") from exc
    tmp = Path(tmp_name)
    try:
        yield tmp
        os.replace(tmp, path)
    except OSError as exc:
        raise CorpusIOError(f"Cannot write output {path}: {exc}") from exc
    finally:
        if tmp.exists():
            tmp.unlink()


def _sibling(path: Path, suffix: str) -> Path:
    return path.with_name(f".{path.name}.{uuid.uuid4().hex[:12]}.{suffix}")


def _commit(pairs: list[tuple[Path, Path]]) -> None:
    """Rename each staged file onto its target, undoing all of it on failure."""
    done: list[tuple[Path, Path | None]] = []
    try:
        for staged, target in pairs:
            backup = None
            if target.exists():
                backup = _sibling(target, "bak")
                os.replace(target, backup)
            try:
                os.replace(staged, target)
            except OSError:
                if backup is not None:
                    os.replace(backup, target)
                raise
            done.append((target, backup))
    except OSError as exc:
        for target, backup in reversed(done):
            target.unlink()
            if backup is not None:
                os.replace(backup, target)
        raise CorpusIOError(f"Cannot commit outputs: {exc}") from exc
    for _target, backup in done:
        if backup is not None:
            backup.unlink()


@contextmanager
def staged_paths(targets: Sequence[Path]) -> Iterator[list[Path]]:
    """Yield one staging path per target; move them all into place on success.

    Nothing reaches a target until the block exits cleanly. If the block
    raises, or any rename fails, every target is left as it was.
    """
    for target in targets:
        if target.is_dir():
            raise CorpusIOError(f"Cannot write output {target}: is a directory")
    try:
        for target in targets:
            target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise CorpusIOError(f"Cannot prepare output {targets[0].parent}: {exc}") from exc
    staged = [_sibling(t, "stage") for t in targets]
    try:
        yield staged
        _commit(list(zip(staged, targets)))
    finally:
        for path in staged:
            if path.exists():
                path.unlink()


def write_bytes(data: bytes, path: Path) -> None:
    with atomic_path(path) as tmp:
        tmp.write_bytes(data)


def write_text(text: str, path: Path) -> None:
    write_bytes(text.encode("utf-8"), path)


def load_json(path: Path) -> Any:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise CorpusIOError(f"Cannot read {path}: {exc}") from exc
    return orjson.loads(raw)


def dumps_json(obj: Any, *, pretty: bool = True) -> bytes:
    opts = orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS if pretty else orjson.OPT_SORT_KEYS
    return orjson.dumps(obj, option=opts)


def save_json(obj: Any, path: Path, *, pretty: bool = True) -> None:
    write_bytes(dumps_json(obj, pretty=pretty), path)


def load_jsonl(path: Path) -> list[dict[str, Any]]:
    """Load a JSON Lines file (one JSON object per line). Blank lines skipped."""
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise CorpusIOError(f"Cannot read {path}: {exc}") from exc
    records: list[dict[str, Any]] = []
    for line in raw.split(b"\n"):
        line = line.strip()
        if line:
            records.append(orjson.loads(line))
    return records


def save_jsonl(records: list[dict[str, Any]], path: Path) -> None:
    lines = [orjson.dumps(r, option=orjson.OPT_SORT_KEYS) for r in records]
    write_bytes(b"\n".join(lines) + (b"\n" if lines else b""), path)
