#!/usr/bin/env python3
"""Ingest saved law pages into the versioned law-text store.

Each HTML file is one law page. For every page the document record and its
paragraph records are upserted; a record that fails to store is logged to
the store's error ledger and the run continues.

Usage::

    python3 scripts/ingest_law_html.py --html page.html \\
        --source-link https://www.fedlex.admin.ch/eli/cc/24/233_245_233/de \\
        --db law_store.duckdb --create-if-missing
    python3 scripts/ingest_law_html.py --html a.html b.html --dump-jsonl out/records.jsonl

Prints a JSON summary to stdout. Exit code 1 when any record failed to store
or a page could not be read, 2 when the store cannot be opened.
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from lawtext.html_utils import read_file
from lawtext.io_utils import dump_json, record_to_dict, save_jsonl
from lawtext.law_store import DatabaseError, LawStore
from lawtext.law_types import Diagnostic
from lawtext.page_reader import read_law_page
from lawtext.pipeline import ExtractionConfig, ingest_page
from lawtext.schema import SchemaVersionError

log = logging.getLogger("ingest_law_html")

DEFAULT_DB = "law_store.duckdb"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract law pages and upsert them into the law-text store.",
    )
    parser.add_argument(
        "--html", type=Path, nargs="+", required=True,
        help="Saved law page(s) to ingest",
    )
    parser.add_argument(
        "--source-link", action="append", default=[],
        help="Source URL per page, in --html order (default: the file URI)",
    )
    parser.add_argument(
        "--db", type=Path,
        default=Path(os.environ.get("LAWTEXT_DB", DEFAULT_DB)),
        help=f"Path to the store DuckDB (default: $LAWTEXT_DB or {DEFAULT_DB})",
    )
    parser.add_argument(
        "--create-if-missing", action="store_true",
        help="Create the store and its schema when the file does not exist",
    )
    parser.add_argument(
        "--heading-strategy", choices=("positional", "label"), default="positional",
        help="How enclosing headings are assigned to hierarchy levels",
    )
    parser.add_argument(
        "--dump-jsonl", type=Path, default=None,
        help="Also write every extracted record to this JSON Lines file",
    )
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    if args.source_link and len(args.source_link) != len(args.html):
        parser.error("--source-link must be given once per --html file")
    links = args.source_link or [p.resolve().as_uri() for p in args.html]
    config = ExtractionConfig(heading_strategy=args.heading_strategy)

    try:
        store = LawStore(args.db, create_if_missing=args.create_if_missing)
    except (FileNotFoundError, SchemaVersionError, DatabaseError) as exc:
        print(f"Cannot open store {args.db}: {exc}", file=sys.stderr)
        return 2

    pages: list[dict[str, object]] = []
    dumped: list[dict[str, object]] = []
    unreadable = 0
    failed = 0
    with store:
        for path, link in zip(args.html, links, strict=True):
            try:
                page = read_law_page(read_file(path), link)
            except OSError as exc:
                log.error("Cannot read %s: %s", path, exc)
                unreadable += 1
                continue

            diagnostics: list[Diagnostic] = []
            try:
                stats = ingest_page(page, store, config=config, diagnostics=diagnostics)
            except ValueError as exc:
                # no srn on the page: nothing can be keyed
                log.error("Skipping %s: %s", path, exc)
                unreadable += 1
                continue

            pages.append({
                "file": str(path),
                "srn": stats.srn,
                "articles": stats.articles,
                "document": record_to_dict(stats.documents),
                "paragraphs": record_to_dict(stats.paragraphs),
                "diagnostics": [record_to_dict(d) for d in diagnostics],
            })
            dumped.extend(record_to_dict(r) for r in stats.records)
            failed += stats.failed

    failed += unreadable
    if args.dump_jsonl is not None:
        save_jsonl(dumped, args.dump_jsonl)
        log.info("Wrote %d record(s) to %s", len(dumped), args.dump_jsonl)

    dump_json({
        "db": str(args.db),
        "pages": pages,
        "unreadable": unreadable,
        "failed": failed,
    })
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
