#!/usr/bin/env python3
"""
Load vocab/metadata.yaml into the metadata registry, keyed by (category, value).

New entries are created; existing entries get label/aliases/sort_order from
the file. Records missing from the file are left alone (deactivate them via
the admin API). Dry-run by default; --apply commits.

Canonical location: scripts/20_loaders/load_metadata.py
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

# Ensure project root on sys.path for db imports regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from ruamel.yaml import YAML

from db.models import Metadata
from db.session import get_session, reconfigure
from taxonomy.normalize import normalize_aliases
from taxonomy.registry import MetadataRegistry

DEFAULT_FILE = PROJECT_ROOT / "vocab" / "metadata.yaml"


def load_seed(path: Path) -> dict[str, list[dict]]:
    data = YAML(typ="safe").load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping of category -> entries")
    seed: dict[str, list[dict]] = {}
    for category, entries in data.items():
        if not isinstance(entries, list):
            raise ValueError(f"{path}: category {category!r} must be a list")
        rows = []
        for i, entry in enumerate(entries):
            if not isinstance(entry, dict) or not entry.get("value") or not entry.get("label"):
                raise ValueError(f"{path}: {category}[{i}] needs value and label")
            rows.append(
                {
                    "value": str(entry["value"]),
                    "label": str(entry["label"]),
                    "aliases": normalize_aliases(entry.get("aliases") or []),
                    "sort_order": int(entry.get("sort_order") or 0),
                }
            )
        seed[str(category)] = rows
    return seed


def sync_seed(registry: MetadataRegistry, seed: dict[str, list[dict]]) -> dict:
    """Upsert seed rows through the registry; returns counts and a change log."""
    session = registry.session
    created = updated = unchanged = 0
    changes: list[str] = []
    for category, rows in seed.items():
        for row in rows:
            rec = (
                session.query(Metadata)
                .filter(Metadata.category == category, Metadata.value == row["value"])
                .one_or_none()
            )
            if rec is None:
                registry.create(category, row["value"], row["label"], aliases=row["aliases"], sort_order=row["sort_order"])
                created += 1
                changes.append(f"+ {category}:{row['value']} ({row['label']})")
                continue
            diff = {
                k: row[k]
                for k in ("label", "aliases", "sort_order")
                if getattr(rec, k) != row[k]
            }
            if not diff:
                unchanged += 1
                continue
            registry.update(rec.id, **diff)
            updated += 1
            changes.append(f"~ {category}:{row['value']} {sorted(diff)}")
    return {"created": created, "updated": updated, "unchanged": unchanged, "changes": changes}


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Load curated metadata seed into the registry")
    ap.add_argument("--file", default=str(DEFAULT_FILE), help="Seed YAML path")
    ap.add_argument("--apply", action="store_true", help="Commit changes; default is dry-run")
    ap.add_argument("--db-url", help="Override CATCHLOG_DB_URL for this run")
    args = ap.parse_args(argv)

    if args.db_url:
        reconfigure(args.db_url)
    seed = load_seed(Path(args.file))

    with get_session() as session:
        summary = sync_seed(MetadataRegistry(session, actor="seed"), seed)
        for line in summary["changes"]:
            print(line)
        if args.apply:
            session.commit()
        else:
            session.rollback()
    mode = "applied" if args.apply else "dry-run"
    print(f"created={summary['created']} updated={summary['updated']} unchanged={summary['unchanged']} ({mode})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
