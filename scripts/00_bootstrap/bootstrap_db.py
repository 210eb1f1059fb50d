#!/usr/bin/env python3
"""Create or upgrade the catchlog schema.

Alembic is the default path and is safe to re-run on a live database.
--use-metadata calls create_all instead, for throwaway/test databases that
never need migrating.

Examples:
  python scripts/00_bootstrap/bootstrap_db.py
  python scripts/00_bootstrap/bootstrap_db.py --db-url sqlite:///./data/scratch.db --use-metadata
  python scripts/00_bootstrap/bootstrap_db.py --revision 0001_initial_metadata
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

# Ensure project root on sys.path for db imports regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from alembic import command
from alembic.config import Config

from db import session as db_session
from db.models import Base


def alembic_config(db_url: str) -> Config:
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    # '%' is interpolation syntax in ini values
    cfg.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))
    return cfg


def upgrade(db_url: str, revision: str = "head") -> None:
    print(f"Alembic upgrade -> {revision}")
    command.upgrade(alembic_config(db_url), revision)
    print("Upgrade complete.")


def create_all(echo: bool = False) -> None:
    print("Creating tables with Base.metadata.create_all")
    db_session.engine.echo = echo
    Base.metadata.create_all(bind=db_session.engine)
    print("create_all complete.")


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Create or upgrade the database schema")
    ap.add_argument("--db-url", default=os.environ.get("CATCHLOG_DB_URL", db_session.DEFAULT_DB_URL),
                    help="Target database URL (default: CATCHLOG_DB_URL or the project default)")
    ap.add_argument("--revision", default="head", help="Alembic revision to upgrade to")
    ap.add_argument("--use-metadata", action="store_true", help="Skip Alembic and run create_all")
    ap.add_argument("--echo", action="store_true", help="Echo SQL (with --use-metadata)")
    args = ap.parse_args(argv)

    if not (PROJECT_ROOT / "alembic.ini").is_file() and not args.use_metadata:
        print(f"[error] alembic.ini not found under {PROJECT_ROOT}")
        return 2

    # Anchors relative SQLite paths at the repo root and creates the parent dir
    db_session.reconfigure(args.db_url)
    print(f"Target DB: {db_session.DB_URL}")
    if args.use_metadata:
        create_all(echo=args.echo)
    else:
        upgrade(db_session.DB_URL, args.revision)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
