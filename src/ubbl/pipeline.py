"""End-to-end run: raw text -> parsed -> post-processed -> enriched -> validated.

Only ``build_corpus_from_path`` and ``write_outputs`` touch the filesystem.
Both raise CorpusIOError on failure, and nothing is written unless the whole
in-memory run succeeded. Parsing and validation issues never raise; they
arrive as ``PipelineResult.warnings``.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from ubbl.corpus_types import CorpusWarning, Document, warning_to_dict
from ubbl.enrichment import enrich_document
from ubbl.exporters import export_all
from ubbl.io_utils import read_text
from ubbl.postprocess import postprocess_document
from ubbl.run_manifest import (
    build_manifest,
    generate_run_id,
    git_commit_hash,
    sha256_text,
    utc_now_iso,
    write_manifest,
)
from ubbl.state_machine import parse_text
from ubbl.strategy import DEFAULT_STRATEGY, ClassificationStrategy
from ubbl.summary import summarize_corpus
from ubbl.validator import ValidationReport, validate_corpus

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Finished corpus plus everything the caller needs to report on it."""

    document: Document
    report: ValidationReport
    summary: dict[str, Any]
    strategy_name: str
    run_timestamp: str
    timings_sec: dict[str, float] = field(default_factory=dict)

    @property
    def warnings(self) -> tuple[CorpusWarning, ...]:
        return self.document.warnings


def run_pipeline(
    text: str,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
    *,
    timestamp: str | None = None,
    workers: int = 1,
) -> PipelineResult:
    """Run the in-memory pipeline over one raw text blob.

    ``timestamp`` becomes every clause's ``created_at``/``updated_at``; pass a
    fixed value to get byte-identical output across runs.
    """
    run_ts = timestamp or utc_now_iso()
    timings: dict[str, float] = {}

    t0 = time.perf_counter()
    doc = parse_text(text, strategy, timestamp=run_ts)
    timings["parse"] = round(time.perf_counter() - t0, 4)
    logger.debug("Parsed %d parts, %d clauses", len(doc.parts), len(doc.clauses))

    t0 = time.perf_counter()
    doc = postprocess_document(doc, strategy)
    timings["postprocess"] = round(time.perf_counter() - t0, 4)

    t0 = time.perf_counter()
    doc = enrich_document(doc, strategy, workers=workers)
    timings["enrich"] = round(time.perf_counter() - t0, 4)

    report = validate_corpus(doc, strategy)
    doc = replace(doc, warnings=doc.warnings + report.warnings)
    for w in doc.warnings:
        logger.warning("%s: %s", w.code, w.message)

    summary = summarize_corpus(doc, strategy)
    logger.info(
        "Built corpus: %d parts, %d clauses, %d warnings (strategy=%s)",
        len(doc.parts), len(doc.clauses), len(doc.warnings), strategy.name,
    )
    return PipelineResult(
        document=doc,
        report=report,
        summary=summary,
        strategy_name=strategy.name,
        run_timestamp=run_ts,
        timings_sec=timings,
    )


def build_corpus_from_path(
    input_path: Path,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
    *,
    timestamp: str | None = None,
    workers: int = 1,
) -> tuple[PipelineResult, str]:
    """Read the input once and run the pipeline. Returns (result, input text)."""
    text = read_text(input_path)
    logger.info("Read %d characters from %s", len(text), input_path)
    return run_pipeline(text, strategy, timestamp=timestamp, workers=workers), text


def write_outputs(
    result: PipelineResult,
    out_dir: Path,
    formats: list[str],
    *,
    input_path: Path | None = None,
    input_text: str | None = None,
    run_id: str | None = None,
    manifest: bool = True,
) -> dict[str, Path]:
    """Export every requested format, then the run manifest."""
    t0 = time.perf_counter()
    written = export_all(result.document, out_dir, formats, summary=result.summary)
    for fmt, path in written.items():
        logger.info("Wrote %s -> %s", fmt, path)
    if not manifest:
        return written

    timings = dict(result.timings_sec)
    timings["export"] = round(time.perf_counter() - t0, 4)
    rid = run_id or generate_run_id()
    input_source: dict[str, Any] = {"path": str(input_path) if input_path else None}
    if input_text is not None:
        input_source["sha256"] = sha256_text(input_text)
        input_source["chars"] = len(input_text)
    payload = build_manifest(
        run_id=rid,
        input_source=input_source,
        strategy_name=result.strategy_name,
        run_timestamp=result.run_timestamp,
        counts={
            "parts": len(result.document.parts),
            "clauses": len(result.document.clauses),
        },
        warnings=[warning_to_dict(w) for w in result.warnings],
        outputs={fmt: str(p) for fmt, p in written.items()},
        timings_sec=timings,
        db_path=written.get("duckdb"),
        git_commit=git_commit_hash(search_from=input_path),
    )
    canonical, _versioned = write_manifest(out_dir, payload)
    written["manifest"] = canonical
    return written
