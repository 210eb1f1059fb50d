#!/usr/bin/env python3
"""Link free-text brand/power/length-unit/weather/scene-tag values to metadata records.

Dry-run by default; use --apply to write links. The free-text columns are
never modified. Unmatched values are listed per category with counts so they
can be curated into aliases; --out additionally writes the report as JSON.

Usage:
  python scripts/30_normalize_match/backfill_metadata_links.py
  python scripts/30_normalize_match/backfill_metadata_links.py --apply --batch 500
  python scripts/30_normalize_match/backfill_metadata_links.py --entities Rod Reel --out reports/backfill.json
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

# Ensure project root on sys.path for db imports regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from db.session import get_session, reconfigure
from taxonomy.backfill import ENTITY_NAMES, MetadataBackfill
from taxonomy.errors import BackfillAborted, BackfillLocked
from taxonomy.registry import MetadataRegistry


def _write_report(path: Optional[str], report) -> None:
    if not path:
        return
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(report.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
    print(f"Wrote report: {out}")


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Backfill metadata links for historical free-text rows.")
    ap.add_argument("--apply", action="store_true", help="Write links; default is dry-run")
    ap.add_argument("--entities", nargs="*", choices=ENTITY_NAMES, help="Restrict to these entity types")
    ap.add_argument("--batch", type=int, default=200, help="Rows per page (and per commit with --apply)")
    ap.add_argument("--out", help="Write the JSON report to this path")
    ap.add_argument("--db-url", help="Override CATCHLOG_DB_URL for this run")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s")
    if args.db_url:
        reconfigure(args.db_url)

    print("Applying metadata backfill..." if args.apply else "Dry run: metadata backfill preview")
    with get_session() as session:
        backfill = MetadataBackfill(
            session,
            MetadataRegistry(session, actor="backfill"),
            apply=args.apply,
            batch_size=args.batch,
            entities=args.entities,
        )
        try:
            report = backfill.run()
        except BackfillLocked as e:
            print(f"[error] {e}; try again once it finishes")
            return 3
        except BackfillAborted as e:
            print(f"[error] {e}")
            for line in e.report.format_lines():
                print(line)
            _write_report(args.out, e.report)
            return 1

    for line in report.format_lines():
        print(line)
    _write_report(args.out, report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
