"""Run-manifest utilities for corpus build reproducibility and comparison."""
from __future__ import annotations

import hashlib
import importlib
import subprocess
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from ubbl.io_utils import load_json, save_json

_duckdb_mod = importlib.import_module("duckdb")

MANIFEST_VERSION = "1.0"
MANIFEST_FILENAME = "run_manifest.json"

DEFAULT_TABLES: tuple[str, ...] = ("parts", "clauses", "warnings")


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format."""
    return datetime.now(UTC).isoformat()


def generate_run_id(prefix: str = "ubbl_build") -> str:
    """Generate a compact run id suitable for artifact naming."""
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
    return f"{prefix}_{ts}_{uuid4().hex[:8]}"


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def default_manifest_path(out_dir: Path) -> Path:
    """Canonical sidecar manifest path inside an output directory."""
    return out_dir / MANIFEST_FILENAME


def versioned_manifest_path(out_dir: Path, run_id: str) -> Path:
    return out_dir / f"run_manifest_{run_id}.json"


def git_commit_hash(*, search_from: Path | None = None) -> str | None:
    """Best-effort current git commit hash for reproducibility metadata."""
    cwd = (search_from or Path.cwd())
    if cwd.is_file():
        cwd = cwd.parent
    try:
        proc = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=str(cwd),
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError:
        return None
    if proc.returncode != 0:
        return None
    out = proc.stdout.strip()
    return out if out else None


def table_row_counts(
    db_path: Path,
    *,
    tables: tuple[str, ...] = DEFAULT_TABLES,
) -> dict[str, int]:
    """Read row counts for the corpus tables from a DuckDB export."""
    conn = _duckdb_mod.connect(str(db_path), read_only=True)
    try:
        existing = {
            str(r[0]) for r in conn.execute("SHOW TABLES").fetchall()
        }
        counts: dict[str, int] = {}
        for table in tables:
            if table not in existing:
                counts[table] = 0
                continue
            row = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
            counts[table] = int(row[0]) if row else 0
        return counts
    finally:
        conn.close()


def build_manifest(
    *,
    run_id: str,
    input_source: dict[str, Any],
    strategy_name: str,
    run_timestamp: str,
    counts: dict[str, int],
    warnings: list[dict[str, Any]],
    outputs: dict[str, str],
    timings_sec: dict[str, float],
    db_path: Path | None = None,
    git_commit: str | None = None,
    notes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the manifest payload for one pipeline run.

    ``table_row_counts`` is read back from the DuckDB export when one was
    written, so it reflects what actually landed on disk.
    """
    return {
        "manifest_version": MANIFEST_VERSION,
        "created_at": utc_now_iso(),
        "run_id": run_id,
        "run_timestamp": run_timestamp,
        "strategy": strategy_name,
        "git_commit": git_commit,
        "input_source": input_source,
        "counts": counts,
        "table_row_counts": table_row_counts(db_path) if db_path is not None else {},
        "warnings": warnings,
        "warnings_count": len(warnings),
        "outputs": outputs,
        "timings_sec": timings_sec,
        "notes": notes or {},
    }


def write_manifest(out_dir: Path, manifest: dict[str, Any]) -> tuple[Path, Path]:
    """Write canonical + versioned manifest files into ``out_dir``."""
    canonical = default_manifest_path(out_dir)
    versioned = versioned_manifest_path(out_dir, str(manifest["run_id"]))
    save_json(manifest, canonical, pretty=True)
    save_json(manifest, versioned, pretty=True)
    return canonical, versioned


def load_manifest(path: Path) -> dict[str, Any]:
    """Load a manifest from JSON."""
    data = load_json(path)
    if not isinstance(data, dict):
        raise ValueError(f"Invalid manifest payload in {path}")
    return data


def resolve_manifest_path(path: Path) -> Path:
    """Accept either a manifest file or an output directory holding one."""
    return default_manifest_path(path) if path.is_dir() else path


def _int_delta(current: Any, previous: Any) -> dict[str, int]:
    curr = current if isinstance(current, dict) else {}
    prev = previous if isinstance(previous, dict) else {}
    return {
        key: int(curr.get(key, 0) or 0) - int(prev.get(key, 0) or 0)
        for key in sorted(set(curr) | set(prev))
    }


def _warning_codes(manifest: dict[str, Any]) -> set[str]:
    return {
        str(w.get("code")) for w in manifest.get("warnings") or []
        if isinstance(w, dict) and w.get("code")
    }


def compare_manifests(
    current: dict[str, Any],
    previous: dict[str, Any],
) -> dict[str, Any]:
    """Compare two corpus builds: part/clause counts, DuckDB rows, warnings.

    Deltas are current minus previous. Warning codes are reported as the
    sorted codes that appeared or cleared between the two runs.
    """
    curr_warnings = int(current.get("warnings_count", 0) or 0)
    prev_warnings = int(previous.get("warnings_count", 0) or 0)

    curr_input = (current.get("input_source") or {}).get("sha256")
    prev_input = (previous.get("input_source") or {}).get("sha256")

    return {
        "current_run_id": current.get("run_id"),
        "previous_run_id": previous.get("run_id"),
        "input_changed": curr_input != prev_input,
        "strategy_changed": current.get("strategy") != previous.get("strategy"),
        "count_delta": _int_delta(current.get("counts"), previous.get("counts")),
        "table_row_delta": _int_delta(
            current.get("table_row_counts"), previous.get("table_row_counts"),
        ),
        "warnings_count_delta": curr_warnings - prev_warnings,
        "new_warning_codes": sorted(_warning_codes(current) - _warning_codes(previous)),
        "cleared_warning_codes": sorted(_warning_codes(previous) - _warning_codes(current)),
    }
