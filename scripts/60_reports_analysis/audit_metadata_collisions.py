#!/usr/bin/env python3
"""Report metadata records whose value/aliases normalize to the same key.

A collision means free text matching that key links to whichever record was
created last, which is almost never what curators intended. Fix by editing
aliases or deactivating the duplicate.

Usage:
  python scripts/60_reports_analysis/audit_metadata_collisions.py
  python scripts/60_reports_analysis/audit_metadata_collisions.py --out reports/collisions.json --strict
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

# Ensure project root on sys.path for db imports regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from db.models import Metadata
from db.session import get_session, reconfigure
from taxonomy.registry import MetadataRegistry


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Audit the metadata registry for normalized key collisions")
    ap.add_argument("--out", help="Write collisions as JSON to this path")
    ap.add_argument("--strict", action="store_true", help="Exit 1 when any collision exists")
    ap.add_argument("--db-url", help="Override CATCHLOG_DB_URL for this run")
    args = ap.parse_args(argv)

    if args.db_url:
        reconfigure(args.db_url)

    with get_session() as session:
        index = MetadataRegistry(session).build_index()
        collisions = list(index.collisions)
        labels = {
            rec.id: f"{rec.category}:{rec.value} ({rec.label})"
            for rec in session.query(Metadata).filter(
                Metadata.id.in_({c.kept_id for c in collisions} | {c.shadowed_id for c in collisions})
            )
        } if collisions else {}

    if not collisions:
        print("No key collisions found.")
    else:
        print(f"Found {len(collisions)} key collision(s):")
        for c in collisions:
            print(f"- [{c.category}] {c.key!r}: {labels.get(c.kept_id, c.kept_id)} shadows {labels.get(c.shadowed_id, c.shadowed_id)}")

    if args.out:
        out = Path(args.out)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps([c.to_dict() for c in collisions], ensure_ascii=False, indent=2), encoding="utf-8")
        print(f"Wrote report: {out}")

    return 1 if (args.strict and collisions) else 0


if __name__ == "__main__":
    raise SystemExit(main())
