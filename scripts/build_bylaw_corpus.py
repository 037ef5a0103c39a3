#!/usr/bin/env python3
"""Build the structured UBBL by-law corpus from extracted PDF text.

Reads one UTF-8 text file, runs classification, the document state machine,
post-processing, enrichment and validation, then writes the requested export
formats plus a run manifest into the output directory.

A JSON run summary goes to stdout; progress goes to stderr.

Usage:
    python3 scripts/build_bylaw_corpus.py --input data/ubbl_1984.txt \
      --output-dir out/ubbl --format json --format duckdb

    # Reproducible run with a fixed timestamp and the "simple" preset
    python3 scripts/build_bylaw_corpus.py --input data/ubbl_1984.txt \
      --output-dir out/ubbl --strategy simple --timestamp 2024-01-01T00:00:00+00:00

    # Only true by-laws 1-258, deduplicated, enrichment on 4 processes
    python3 scripts/build_bylaw_corpus.py --input data/ubbl_1984.txt \
      --output-dir out/ubbl --dedupe --number-range 1 258 --workers 4

    # Rebuild in place and report count/warning deltas against the last run
    python3 scripts/build_bylaw_corpus.py --input data/ubbl_1984.txt \
      --output-dir out/ubbl --compare-to out/ubbl
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import orjson

from ubbl.exporters import EXPORTERS
from ubbl.io_utils import CorpusIOError
from ubbl.pipeline import build_corpus_from_path, write_outputs
from ubbl.run_manifest import compare_manifests, load_manifest, resolve_manifest_path
from ubbl.strategy import PRESETS, StrategyError, get_strategy, merge_strategy

log = logging.getLogger("build_bylaw_corpus")


def dump_json(obj: object) -> None:
    sys.stdout.buffer.write(orjson.dumps(obj, option=orjson.OPT_INDENT_2))
    sys.stdout.buffer.write(b"\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build the structured UBBL by-law corpus from extracted text."
    )
    parser.add_argument(
        "--input", required=True, type=Path, help="Path to the extracted UTF-8 text"
    )
    parser.add_argument(
        "--output-dir", required=True, type=Path, help="Directory for exports + manifest"
    )
    parser.add_argument(
        "--strategy",
        default="proper",
        help=f"Preset name ({', '.join(sorted(PRESETS))}) or path to a strategy JSON",
    )
    parser.add_argument(
        "--format",
        dest="formats",
        action="append",
        choices=sorted(EXPORTERS),
        default=None,
        help="Export format (repeatable, default: json)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Processes for metadata enrichment (default: 1)",
    )
    parser.add_argument(
        "--timestamp",
        default=None,
        help="Fixed ISO-8601 run timestamp for reproducible output",
    )
    parser.add_argument(
        "--dedupe", action="store_true", help="Drop duplicate clauses (first wins)"
    )
    parser.add_argument(
        "--number-range",
        nargs=2,
        type=int,
        metavar=("LO", "HI"),
        default=None,
        help="Keep only clauses numbered LO..HI",
    )
    parser.add_argument(
        "--no-manifest", action="store_true", help="Skip writing run_manifest.json"
    )
    parser.add_argument(
        "--compare-to",
        type=Path,
        default=None,
        help="Previous run_manifest.json (or its output dir) to report deltas against",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Debug logging"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.compare_to is not None and args.no_manifest:
        parser.error("--compare-to needs the run manifest; drop --no-manifest")
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        strategy = get_strategy(args.strategy)
    except StrategyError as exc:
        log.error("Invalid strategy: %s", exc)
        dump_json({"status": "error", "error": str(exc)})
        return 2

    overrides: dict[str, object] = {}
    if args.dedupe:
        overrides["deduplicate"] = True
    if args.number_range is not None:
        overrides["number_range"] = tuple(args.number_range)
    if overrides:
        strategy = merge_strategy(strategy, overrides)

    # Read before the build: the previous manifest may live in --output-dir
    previous: dict[str, object] | None = None
    if args.compare_to is not None:
        try:
            previous = load_manifest(resolve_manifest_path(args.compare_to))
        except (CorpusIOError, ValueError) as exc:
            log.error("Cannot load previous manifest: %s", exc)
            dump_json({"status": "error", "error": str(exc)})
            return 1

    formats: list[str] = args.formats or ["json"]
    log.info("Building corpus from %s (strategy=%s)", args.input, strategy.name)

    try:
        result, text = build_corpus_from_path(
            args.input, strategy, timestamp=args.timestamp, workers=args.workers,
        )
        written = write_outputs(
            result,
            args.output_dir,
            formats,
            input_path=args.input,
            input_text=text,
            manifest=not args.no_manifest,
        )
    except CorpusIOError as exc:
        log.error("%s", exc)
        dump_json({"status": "error", "error": str(exc)})
        return 1

    report: dict[str, object] = {
        "status": "ok",
        "strategy": strategy.name,
        "parts": len(result.document.parts),
        "clauses": len(result.document.clauses),
        "warnings": [w.code for w in result.warnings],
        "outputs": {fmt: str(p) for fmt, p in written.items()},
        "summary": result.summary,
    }
    if previous is not None:
        comparison = compare_manifests(load_manifest(written["manifest"]), previous)
        log.info(
            "Compared with %s: clause delta %+d",
            comparison["previous_run_id"], comparison["count_delta"].get("clauses", 0),
        )
        report["comparison"] = comparison
    dump_json(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
