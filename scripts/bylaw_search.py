#!/usr/bin/env python3
"""Query an exported UBBL corpus database.

Substring search over clause titles and bodies, single-clause lookup, and
filtered listings. JSON results go to stdout, counts to stderr.

Usage:
    python3 scripts/bylaw_search.py --db out/ubbl/corpus.duckdb --pattern "staircase"
    python3 scripts/bylaw_search.py --db out/ubbl/corpus.duckdb --number 12A
    python3 scripts/bylaw_search.py --db out/ubbl/corpus.duckdb \
      --category fire_safety --priority critical
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import orjson

from ubbl.corpus import CorpusIndex, SchemaVersionError
from ubbl.corpus_types import clause_to_dict


def dump_json(obj: object) -> None:
    sys.stdout.buffer.write(orjson.dumps(obj, option=orjson.OPT_INDENT_2))
    sys.stdout.buffer.write(b"\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Query an exported UBBL corpus.")
    parser.add_argument("--db", required=True, type=Path, help="Path to corpus.duckdb")
    parser.add_argument("--pattern", default=None, help="Substring to search for")
    parser.add_argument("--number", default=None, help="Clause number, e.g. 12A")
    parser.add_argument("--part", type=int, default=None, help="Part ordinal filter")
    parser.add_argument("--category", default=None, help="Category filter")
    parser.add_argument("--priority", default=None, help="Priority filter")
    parser.add_argument(
        "--min-complexity", type=int, default=None, help="Minimum complexity level"
    )
    parser.add_argument(
        "--limit", type=int, default=50, help="Maximum results (default: 50)"
    )
    parser.add_argument(
        "--stats", action="store_true", help="Print corpus-level counts instead"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if not args.db.exists():
        print(f"Error: database not found: {args.db}", file=sys.stderr)
        return 1

    try:
        corpus = CorpusIndex(args.db)
    except SchemaVersionError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    with corpus:
        if args.stats:
            dump_json({
                "schema_version": corpus.schema_version,
                "parts": corpus.part_count,
                "clauses": corpus.clause_count,
                "by_category": corpus.category_counts(),
                "warnings": len(corpus.warnings()),
            })
            return 0

        if args.number is not None:
            clause = corpus.get_clause(args.number)
            if clause is None:
                print(f"No clause numbered {args.number}", file=sys.stderr)
                return 1
            dump_json(clause_to_dict(clause))
            return 0

        if args.pattern is not None:
            results = corpus.search(args.pattern, limit=args.limit)
        else:
            results = corpus.clauses(
                part_ordinal=args.part,
                category=args.category,
                priority=args.priority,
                min_complexity=args.min_complexity,
            )[: args.limit]

        print(f"Found {len(results)} clauses", file=sys.stderr)
        dump_json([clause_to_dict(c) for c in results])
    return 0


if __name__ == "__main__":
    sys.exit(main())
